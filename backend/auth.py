# auth.py — Caller resolution for the analytics API
# Tokens are issued by the task tracker's auth service; this module only
# verifies them and resolves the caller into {id, role}:
# - HS256 JWT, "sub" = profile id, "type" = "access"
# - Role read from the profile record, never trusted from the token
# - Admin gate raising AuthorizationError (403)

import os
import uuid
import secrets
from datetime import datetime, timedelta, timezone
from typing import Optional, Dict, Any

from jose import jwt, JWTError, ExpiredSignatureError
from fastapi import HTTPException, Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from pydantic import BaseModel
from sqlalchemy import select
from sqlalchemy.ext.asyncio import async_sessionmaker

from database import get_session_factory
from exceptions import AuthorizationError
from logging_system import get_logger, get_current_context
from models import Profile, ProfileRole

# ============================================================
# CONFIGURATION
# ============================================================

SECRET_KEY = os.getenv("JWT_SECRET_KEY", "")
if not SECRET_KEY:
    SECRET_KEY = secrets.token_urlsafe(64)
    import logging
    logging.getLogger(__name__).warning(
        "⚠️  JWT_SECRET_KEY not set. Generated ephemeral key; "
        "tokens from the tracker's auth service will be rejected."
    )

ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", "30"))

security = HTTPBearer()


# ============================================================
# PYDANTIC SCHEMAS
# ============================================================

class CurrentUser(BaseModel):
    id: str
    email: str
    full_name: str
    role: str

    @property
    def is_admin(self) -> bool:
        return self.role == ProfileRole.ADMIN.value


# ============================================================
# AUTH SERVICE
# ============================================================

class AuthService:
    """Token helpers shared with the tracker's auth service"""

    @staticmethod
    def create_access_token(data: Dict[str, Any], expires_delta: Optional[timedelta] = None) -> str:
        """Mint an access token (used by tooling and tests)"""
        to_encode = data.copy()
        now = datetime.now(timezone.utc)
        to_encode.update({
            "exp": now + (expires_delta or timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES)),
            "iat": now,
            "type": "access",
            "jti": str(uuid.uuid4()),
        })
        return jwt.encode(to_encode, SECRET_KEY, algorithm=ALGORITHM)

    @staticmethod
    def verify_token(token: str) -> Dict[str, Any]:
        try:
            return jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
        except ExpiredSignatureError:
            raise HTTPException(status_code=401, detail="Token expired")
        except JWTError:
            get_logger().security_event("invalid_token")
            raise HTTPException(status_code=401, detail="Invalid token")


# ============================================================
# FASTAPI DEPENDENCIES
# ============================================================

async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    session_factory: async_sessionmaker = Depends(get_session_factory),
) -> CurrentUser:
    payload = AuthService.verify_token(credentials.credentials)

    if payload.get("type") != "access":
        raise HTTPException(status_code=401, detail="Invalid token type")

    user_id = payload.get("sub")
    if not user_id:
        raise HTTPException(status_code=401, detail="Invalid token")

    # Short-lived session: the connection goes back to the pool before the
    # route fans out its own queries
    async with session_factory() as session:
        result = await session.execute(select(Profile).where(Profile.id == user_id))
        profile = result.scalar_one_or_none()
    if not profile:
        raise HTTPException(status_code=401, detail="User not found")

    context = get_current_context()
    if context:
        context.user_id = profile.id

    return CurrentUser(
        id=profile.id,
        email=profile.email,
        full_name=profile.full_name or "",
        role=profile.role.value if isinstance(profile.role, ProfileRole) else profile.role,
    )


async def require_admin(user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
    if not user.is_admin:
        get_logger().security_event("admin_route_denied", metadata={"user_id": user.id})
        raise AuthorizationError("Admin access required")
    return user
