"""
Create a staff, agent or student login. Super admins come from SUPER_ADMIN_EMAIL on startup.

Usage:
  python -m admission_portal.scripts.create_user --email staff@example.com --name "Asha Rao" --role staff
"""

import argparse
import asyncio
import getpass
import sys

from admission_portal.auth.services import create_user
from admission_portal.core.enums import UserRole
from admission_portal.core.exceptions import ServiceError
from admission_portal.db.session import AsyncSessionLocal, create_tables


async def run(email: str, full_name: str, role: str, password: str, phone: str = None) -> int:
    await create_tables()
    async with AsyncSessionLocal() as session:
        try:
            user = await create_user(
                session,
                full_name=full_name,
                email=email,
                password=password,
                role=role,
                phone=phone,
            )
        except ServiceError as e:
            print(f"Error: {e.message}", file=sys.stderr)
            return 1
    print(f"Created {role} user {user.email} ({user.id})")
    return 0


def main() -> int:
    parser = argparse.ArgumentParser(description="Create a portal user")
    parser.add_argument("--email", required=True)
    parser.add_argument("--name", required=True, help="Full name")
    parser.add_argument("--role", choices=[r.value for r in UserRole], default=UserRole.STAFF.value)
    parser.add_argument("--phone")
    args = parser.parse_args()

    password = getpass.getpass("Password: ")
    if len(password) < 8:
        print("Password must be at least 8 characters", file=sys.stderr)
        return 1
    return asyncio.run(run(args.email, args.name, args.role, password, args.phone))


if __name__ == "__main__":
    sys.exit(main())
