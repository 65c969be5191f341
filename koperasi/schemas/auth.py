from pydantic import BaseModel, EmailStr
from typing import Optional


class UserLogin(BaseModel):
    email: EmailStr
    password: str


class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"


class UserResponse(BaseModel):
    id: str
    email: str
    name: Optional[str] = None
    role: str
    is_active: bool

    @classmethod
    def from_user(cls, obj):
        """Convert ORM object to response model."""
        return cls(
            id=str(obj.id),
            email=obj.email,
            name=obj.name,
            role=obj.role.value if obj.role else "staff",
            is_active=obj.is_active
        )

    class Config:
        from_attributes = True
