"""
Authentication endpoints: register, login, logout, current user.
"""

from fastapi import APIRouter, Depends, Response, status

from eventflow.core.config import get_settings
from eventflow.core.security import Actor, get_current_actor
from eventflow.db.session import UnitOfWork, get_uow
from eventflow.schemas.common import Envelope
from eventflow.schemas.user import AuthEnvelope, UserCreate, UserLogin, UserResponse
from eventflow.services.auth_service import authenticate_user, register_user

router = APIRouter(prefix="/auth", tags=["Authentication"])


@router.post("/register", response_model=AuthEnvelope, status_code=status.HTTP_201_CREATED)
async def register(user_data: UserCreate, uow: UnitOfWork = Depends(get_uow)):
    """Register a new user account."""
    user = await register_user(uow, user_data)
    return AuthEnvelope(message="User registered successfully", user=UserResponse.model_validate(user))


@router.post("/login", response_model=AuthEnvelope)
async def login(login_data: UserLogin, response: Response, uow: UnitOfWork = Depends(get_uow)):
    """Sets the session cookie; the token is also returned for API clients."""
    settings = get_settings()
    user, token = await authenticate_user(uow, login_data)
    response.set_cookie(
        key=settings.SESSION_COOKIE_NAME,
        value=token,
        httponly=True,
        secure=settings.SESSION_COOKIE_SECURE,
        samesite="lax",
        max_age=settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60,
    )
    return AuthEnvelope(message="Login successful", user=UserResponse.model_validate(user), token=token)


@router.post("/logout", response_model=Envelope)
async def logout(response: Response):
    response.delete_cookie(get_settings().SESSION_COOKIE_NAME)
    return Envelope(message="Logged out successfully")


@router.get("/me", response_model=UserResponse)
async def me(actor: Actor = Depends(get_current_actor)):
    return UserResponse(id=actor.id, name=actor.name, email=actor.email, role=actor.role)
