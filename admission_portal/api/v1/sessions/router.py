from typing import List

from fastapi import APIRouter
from pydantic import BaseModel

from admission_portal.core.academic_session import available_sessions, current_session

router = APIRouter(prefix="/api/v1/sessions", tags=["sessions"])


class SessionsResponse(BaseModel):
    current: str
    available: List[str]


@router.get("", response_model=SessionsResponse)
async def list_sessions() -> SessionsResponse:
    """Current academic session and the selectable ones (current first)."""
    return SessionsResponse(current=current_session(), available=available_sessions())
