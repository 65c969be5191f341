"""
Seed demo data: savings products and a few members with payment history.
"""
import sys
from pathlib import Path

# Add project root to Python path
project_root = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(project_root))

from koperasi.db.base import SessionLocal
from koperasi.models.member import Member
from koperasi.models.product import Product
from koperasi.models.savings import SavingsStatus
from koperasi.services.member import create_member
from koperasi.services.savings import approve_savings, create_savings
from decimal import Decimal
from datetime import date


def seed_products(db):
    """Seed default savings products."""
    print("Seeding products...")
    products = [
        {"title": "Simpanan Bronze", "deposit_amount": Decimal("100000"), "term_duration": 12, "return_profit": Decimal("3.00")},
        {"title": "Simpanan Silver", "deposit_amount": Decimal("150000"), "term_duration": 12, "return_profit": Decimal("4.00")},
        {"title": "Simpanan Gold", "deposit_amount": Decimal("2000000"), "term_duration": 36, "return_profit": Decimal("6.00")},
    ]

    for product_data in products:
        existing = db.query(Product).filter(Product.title == product_data["title"]).first()
        if not existing:
            db.add(Product(**product_data))

    db.commit()
    print("Products seeded")


def seed_members(db):
    """Seed members and approved payments for their first periods."""
    print("Seeding members...")
    bronze = db.query(Product).filter(Product.title == "Simpanan Bronze").first()
    gold = db.query(Product).filter(Product.title == "Simpanan Gold").first()

    members = [
        {"uuid": "MEMBER_DEMO_001", "name": "Siti Aminah", "gender": "P", "city": "Bandung", "product": bronze, "paid": 3},
        {"uuid": "MEMBER_DEMO_002", "name": "Budi Santoso", "gender": "L", "city": "Bogor", "product": gold, "paid": 2},
    ]

    for member_data in members:
        if db.query(Member).filter(Member.uuid == member_data["uuid"]).first():
            continue
        product = member_data["product"]
        member = create_member(
            db,
            uuid=member_data["uuid"],
            name=member_data["name"],
            gender=member_data["gender"],
            city=member_data["city"],
            product_id=product.id,
            savings_start_date=date(date.today().year, 1, 1),
        )
        for period in range(1, member_data["paid"] + 1):
            record = create_savings(
                db,
                member_id=member.id,
                product_id=product.id,
                installment_period=period,
                amount=product.deposit_amount,
            )
            if record.status == SavingsStatus.PENDING:
                approve_savings(db, record.id)

    print("Members seeded")


if __name__ == "__main__":
    db = SessionLocal()
    try:
        seed_products(db)
        seed_members(db)
        print("\nSeed data complete!")
    except Exception as e:
        db.rollback()
        print(f"Error seeding data: {e}")
        raise
    finally:
        db.close()
