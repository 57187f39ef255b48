from datetime import datetime, timedelta, timezone
from typing import List, Optional
import logging

import jwt
from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from pydantic import BaseModel

from lessonquiz.core.config import settings
from lessonquiz.core.errors import Forbidden, Unauthenticated

logger = logging.getLogger(__name__)


class TokenData(BaseModel):
    sub: str
    roles: List[str] = []


class IdentityVerifier:
    """Maps a bearer credential to a learner identity.

    Tokens are HS256 JWTs signed with APP_SECRET; signature, expiry, audience
    and subject are all checked. Swap this class out to delegate to an external
    identity provider.
    """

    def __init__(self, secret: str, algorithm: str = "HS256", audience: Optional[str] = None):
        self.secret = secret
        self.algorithm = algorithm
        self.audience = audience

    def verify(self, token: str) -> TokenData:
        try:
            payload = jwt.decode(
                token,
                self.secret,
                algorithms=[self.algorithm],
                audience=self.audience,
                options={"require": ["exp", "sub"]},
            )
        except jwt.PyJWTError as e:
            logger.info(f"Rejected bearer token: {e}")
            raise Unauthenticated("Invalid or expired token")
        return TokenData(sub=str(payload["sub"]), roles=payload.get("roles", []))


def get_verifier() -> IdentityVerifier:
    return IdentityVerifier(settings.APP_SECRET.get_secret_value(), settings.JWT_ALGORITHM, settings.JWT_AUDIENCE)


def create_token(user_id: str, roles: List[str], ttl_minutes: Optional[int] = None) -> str:
    now = datetime.now(timezone.utc)
    ttl = ttl_minutes if ttl_minutes is not None else settings.ACCESS_TOKEN_EXPIRE_MINUTES
    payload = {
        "sub": user_id,
        "roles": roles,
        "aud": settings.JWT_AUDIENCE,
        "iat": int(now.timestamp()),
        "exp": int((now + timedelta(minutes=ttl)).timestamp()),
    }
    return jwt.encode(payload, settings.APP_SECRET.get_secret_value(), algorithm=settings.JWT_ALGORITHM)


bearer = HTTPBearer(auto_error=False)


def get_current_user(
    creds: Optional[HTTPAuthorizationCredentials] = Depends(bearer),
    verifier: IdentityVerifier = Depends(get_verifier),
) -> TokenData:
    if creds is None or not creds.credentials:
        raise Unauthenticated()
    return verifier.verify(creds.credentials)


def get_optional_user(
    creds: Optional[HTTPAuthorizationCredentials] = Depends(bearer),
    verifier: IdentityVerifier = Depends(get_verifier),
) -> Optional[TokenData]:
    if creds is None or not creds.credentials:
        return None
    return verifier.verify(creds.credentials)


def ensure_roles(user: Optional[TokenData], *required: str) -> TokenData:
    if user is None:
        raise Unauthenticated()
    if not set(user.roles).intersection(required):
        raise Forbidden()
    return user
