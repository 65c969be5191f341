import logging
from datetime import timedelta
from typing import Optional
from sqlalchemy.orm import Session
from koperasi.models.user import User, UserRoleEnum
from koperasi.core.security import verify_password, get_password_hash, create_access_token
from koperasi.core.config import settings
from koperasi.services.exceptions import ValidationError

logger = logging.getLogger(__name__)


def authenticate_user(db: Session, email: str, password: str) -> Optional[User]:
    """
    Authenticate user by email and password.

    Returns:
        User object if authentication succeeds, None otherwise
    """
    user = db.query(User).filter(User.email == email).first()
    if not user:
        logger.debug("User not found: %s", email)
        return None

    if not verify_password(password, user.password_hash):
        logger.debug("Password verification failed for user: %s", email)
        return None

    if not user.is_active:
        logger.debug("User %s is disabled, login denied", email)
        return None

    return user


def create_user(
    db: Session,
    email: str,
    password: str,
    name: str = None,
    role: UserRoleEnum = UserRoleEnum.STAFF
) -> User:
    """Create a back-office user."""
    if db.query(User).filter(User.email == email).first():
        raise ValidationError("Email already registered")
    if not password or len(password) < 6:
        raise ValidationError("Password must be at least 6 characters")

    user = User(
        email=email,
        password_hash=get_password_hash(password),
        name=name,
        role=role,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    logger.info("Created %s user %s", role.value, email)
    return user


def create_access_token_for_user(user: User) -> str:
    """Create access token for user."""
    return create_access_token(
        str(user.id),
        role=user.role.value if user.role else None,
        expires_delta=timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES),
    )
