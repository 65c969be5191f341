from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session
from koperasi.db.base import get_db
from koperasi.schemas.auth import UserLogin, Token, UserResponse
from koperasi.services.auth import authenticate_user, create_access_token_for_user
from koperasi.core.audit import audit_user, write_audit_log
from koperasi.core.dependencies import get_current_active_user
from koperasi.models.user import User

router = APIRouter(prefix="/api/auth", tags=["auth"])


@router.post("/login", response_model=Token)
def login(credentials: UserLogin, db: Session = Depends(get_db)):
    """Login and get JWT token."""
    user = authenticate_user(db, credentials.email, credentials.password)
    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Incorrect email or password"
        )

    access_token = create_access_token_for_user(user)
    user_name, user_role = audit_user(user)
    write_audit_log(user_name=user_name, user_role=user_role, action="Login", details=f"email={user.email}")
    return {"access_token": access_token, "token_type": "bearer"}


@router.get("/me", response_model=UserResponse)
def get_current_user_info(current_user: User = Depends(get_current_active_user)):
    """Get current user information."""
    return UserResponse.from_user(current_user)
