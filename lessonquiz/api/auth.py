from typing import List

from fastapi import APIRouter
from pydantic import BaseModel

from lessonquiz.core.auth import create_token
from lessonquiz.core.config import settings
from lessonquiz.core.errors import Forbidden

router = APIRouter()


class DevLogin(BaseModel):
    user_id: str
    roles: List[str] = ["student"]


@router.post("/dev-token")
def dev_token(payload: DevLogin):
    """Issue a signed token without a password. Local development only."""
    if not settings.ENABLE_DEV_LOGIN:
        raise Forbidden("Development login is disabled")
    token = create_token(payload.user_id, payload.roles)
    return {"access_token": token, "token_type": "bearer", "roles": payload.roles}
