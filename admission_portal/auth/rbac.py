from fastapi import Depends, HTTPException, status

from admission_portal.auth.dependencies import get_current_user
from admission_portal.auth.schemas import CurrentUser


def require_roles(*roles: str):
    """
    Dependency factory restricting an endpoint to the given roles.

    Example:
        Depends(require_roles("staff", "super_admin"))
    """

    async def _checker(current_user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
        if current_user.role not in roles:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Insufficient permissions",
            )
        return current_user

    return _checker


async def require_super_admin(
    current_user: CurrentUser = Depends(get_current_user),
) -> CurrentUser:
    """Only super admins may hard-delete records."""
    if current_user.role != "super_admin":
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Only Super Admin can perform this action",
        )
    return current_user
