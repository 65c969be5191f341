from datetime import datetime, timedelta
from typing import Optional
from jose import JWTError, jwt
import bcrypt
from koperasi.core.config import settings


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Check a back-office password against its stored bcrypt hash."""
    if not plain_password or not hashed_password:
        return False
    try:
        return bcrypt.checkpw(plain_password.encode("utf-8"), hashed_password.encode("utf-8"))
    except ValueError:
        # malformed hash in the user table
        return False


def get_password_hash(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def create_access_token(subject: str, role: Optional[str] = None, expires_delta: Optional[timedelta] = None) -> str:
    """
    Issue a signed JWT for a back-office user.

    ``sub`` is the user id; ``role`` is informational only, the role is
    always re-read from the database when the token is used.
    """
    issued_at = datetime.utcnow()
    expires_at = issued_at + (expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES))
    claims = {"sub": subject, "iat": issued_at, "exp": expires_at}
    if role:
        claims["role"] = role
    return jwt.encode(claims, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def decode_access_token(token: str) -> Optional[dict]:
    """Return the token claims, or None when the token is invalid or expired."""
    try:
        return jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    except JWTError:
        return None
