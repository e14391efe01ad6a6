"""
Password hashing, session tokens and the current-actor dependencies.

The session credential is a signed JWT carried in an httpOnly cookie; API
clients may send the same token as ``Authorization: Bearer``.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

import bcrypt
import jwt
from fastapi import Depends, Request
from sqlalchemy import select

from eventflow.core.config import get_settings
from eventflow.core.exceptions import AuthenticationError, ForbiddenError
from eventflow.db.session import UnitOfWork, get_uow
from eventflow.models.user import ROLE_ADMIN, User


@dataclass(frozen=True)
class Actor:
    """The authenticated caller as seen by the booking and payment services."""

    id: int
    role: str
    email: str = ""
    name: str = ""

    @property
    def is_admin(self) -> bool:
        return self.role == ROLE_ADMIN

    @classmethod
    def from_user(cls, user: User) -> "Actor":
        return cls(id=user.id, role=user.role, email=user.email, name=user.name)


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(password: str, hashed_password: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode("utf-8"), hashed_password.encode("utf-8"))
    except ValueError:
        return False


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    settings = get_settings()
    payload = dict(data)
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    )
    payload["exp"] = expire
    return jwt.encode(payload, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def decode_access_token(token: str) -> dict:
    settings = get_settings()
    try:
        return jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    except jwt.PyJWTError as exc:
        raise AuthenticationError("Unauthorized, Invalid token") from exc


def _extract_token(request: Request) -> Optional[str]:
    settings = get_settings()
    token = request.cookies.get(settings.SESSION_COOKIE_NAME)
    if token:
        return token
    header = request.headers.get("Authorization", "")
    scheme, _, credentials = header.partition(" ")
    if scheme.lower() == "bearer" and credentials:
        return credentials
    return None


async def get_current_actor(
    request: Request,
    uow: UnitOfWork = Depends(get_uow),
) -> Actor:
    token = _extract_token(request)
    if not token:
        raise AuthenticationError("Unauthorized, No token provided")

    payload = decode_access_token(token)
    try:
        user_id = int(payload.get("sub"))
    except (TypeError, ValueError):
        raise AuthenticationError("Unauthorized, Invalid token")

    result = await uow.session.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()
    if not user or not user.is_active:
        await uow.rollback()
        raise AuthenticationError("Unauthorized, User not found")

    actor = Actor.from_user(user)
    # End the read so the endpoint starts its own transaction
    await uow.commit()
    return actor


async def require_admin(actor: Actor = Depends(get_current_actor)) -> Actor:
    if not actor.is_admin:
        raise ForbiddenError("Forbidden, Admin access required")
    return actor
