from sqlalchemy import Column, String, Boolean, DateTime, Enum as SQLEnum, Uuid, text
import uuid
from koperasi.db.base import Base
import enum


class UserRoleEnum(str, enum.Enum):
    """Back-office user roles."""
    ADMIN = "admin"
    STAFF = "staff"


class User(Base):
    """Back-office user (koperasi admin or staff)."""
    __tablename__ = "user"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    email = Column(String(255), nullable=False, unique=True, index=True)
    name = Column(String(150), nullable=True)
    password_hash = Column(String(255), nullable=False)
    role = Column(SQLEnum(UserRoleEnum, native_enum=False, values_callable=lambda obj: [e.value for e in obj]), default=UserRoleEnum.STAFF, nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, nullable=False, server_default=text("CURRENT_TIMESTAMP"))
