from koperasi.db.base import Base

# Import all models so Alembic can detect them
from koperasi.models.user import User, UserRoleEnum
from koperasi.models.product import Product
from koperasi.models.member import Member, ProductUpgrade
from koperasi.models.savings import Savings, SavingsStatus, SavingsType, PaymentType

__all__ = [
    "Base",
    "User",
    "UserRoleEnum",
    "Product",
    "Member",
    "ProductUpgrade",
    "Savings",
    "SavingsStatus",
    "SavingsType",
    "PaymentType",
]
