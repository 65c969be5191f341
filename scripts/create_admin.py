"""
Create a default admin user.
Usage: python scripts/create_admin.py
"""
import sys
from pathlib import Path

# Add project root to Python path
project_root = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(project_root))

from koperasi.db.base import SessionLocal
from koperasi.models.user import User, UserRoleEnum
from koperasi.services.auth import create_user


def create_admin(email: str = "admin@koperasi.co.id", password: str = "admin123", name: str = "Admin"):
    """Create an active user with the admin role."""
    db = SessionLocal()
    try:
        existing_user = db.query(User).filter(User.email == email).first()
        if existing_user:
            print(f"User with email {email} already exists!")
            return

        create_user(db, email=email, password=password, name=name, role=UserRoleEnum.ADMIN)
        print("Admin user created successfully!")
        print(f"   Email: {email}")
        print(f"   Password: {password}")
        print("   Role: admin")
        print("\nPlease change the password after first login!")

    except Exception as e:
        db.rollback()
        print(f"Error creating admin user: {e}")
        raise
    finally:
        db.close()


if __name__ == "__main__":
    import argparse

    parser = argparse.ArgumentParser(description="Create a default admin user")
    parser.add_argument("--email", default="admin@koperasi.co.id", help="Admin email")
    parser.add_argument("--password", default="admin123", help="Admin password")
    parser.add_argument("--name", default="Admin", help="Display name")

    args = parser.parse_args()

    create_admin(email=args.email, password=args.password, name=args.name)
