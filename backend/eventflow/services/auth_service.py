"""
Authentication service handling user registration and login.
"""

from sqlalchemy import select

from eventflow.core.config import get_settings
from eventflow.core.exceptions import AuthenticationError, ConflictError, ForbiddenError
from eventflow.core.logging import get_logger
from eventflow.core.security import create_access_token, hash_password, verify_password
from eventflow.db.session import UnitOfWork
from eventflow.models.user import ROLE_ADMIN, ROLE_USER, User
from eventflow.schemas.user import UserCreate, UserLogin

logger = get_logger(__name__)


def _role_for(email: str) -> str:
    admins = {e.strip().lower() for e in get_settings().ADMIN_EMAILS}
    return ROLE_ADMIN if email.lower() in admins else ROLE_USER


async def register_user(uow: UnitOfWork, user_data: UserCreate) -> User:
    """
    Register a new user with hashed password.
    Raises 409 if the email already exists.
    """
    db = uow.session
    email = user_data.email.lower()
    try:
        result = await db.execute(select(User).where(User.email == email))
        if result.scalar_one_or_none():
            logger.warning("registration_failed", reason="email_exists", email=email)
            raise ConflictError("Email already registered")

        user = User(
            name=user_data.name.strip(),
            email=email,
            hashed_password=hash_password(user_data.password),
            role=_role_for(email),
        )
        db.add(user)
        await db.flush()
        await db.refresh(user)
        await uow.commit()
    except Exception:
        await uow.rollback()
        raise

    logger.info("user_registered", user_id=user.id, email=user.email, role=user.role)
    return user


async def authenticate_user(uow: UnitOfWork, login_data: UserLogin) -> tuple[User, str]:
    """
    Check credentials and issue a session token.
    Raises 401 if credentials are invalid.
    """
    result = await uow.session.execute(select(User).where(User.email == login_data.email.lower()))
    user = result.scalar_one_or_none()
    await uow.commit()

    if not user or not verify_password(login_data.password, user.hashed_password):
        logger.warning("login_failed", email=login_data.email)
        raise AuthenticationError("Invalid email or password")

    if not user.is_active:
        raise ForbiddenError("Account is deactivated")

    token = create_access_token(data={"sub": str(user.id), "role": user.role})
    logger.info("user_logged_in", user_id=user.id)
    return user, token
