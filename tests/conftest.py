import os
import tempfile

# Settings are read at import time, so the environment has to be ready first.
_TMP = tempfile.mkdtemp(prefix="koperasi-tests-")
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["SECRET_KEY"] = "test-secret-key"
os.environ["ENABLE_SCHEDULER"] = "false"
os.environ["AUDIT_LOG_DIR"] = os.path.join(_TMP, "logs")
os.environ["UPLOADS_DIR"] = os.path.join(_TMP, "uploads")

from datetime import date, datetime
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from koperasi.db.base import get_db
from koperasi.main import app
from koperasi.models import Base
from koperasi.models.savings import PaymentType, Savings, SavingsStatus, SavingsType
from koperasi.models.user import UserRoleEnum
from koperasi.services.auth import create_access_token_for_user, create_user
from koperasi.services.member import create_member
from koperasi.services.product import create_product


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db_session(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client(session_factory):
    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def admin_user(db_session):
    return create_user(db_session, email="admin@koperasi.co.id", password="secret123", name="Admin", role=UserRoleEnum.ADMIN)


@pytest.fixture
def admin_token(admin_user):
    return create_access_token_for_user(admin_user)


@pytest.fixture
def auth_headers(admin_token):
    return {"Authorization": f"Bearer {admin_token}"}


@pytest.fixture
def make_product(db_session):
    counter = {"n": 0}

    def _make(deposit="100000", term=12, title=None, is_active=True):
        counter["n"] += 1
        return create_product(
            db_session,
            title=title or f"Produk {counter['n']}",
            deposit_amount=Decimal(deposit),
            term_duration=term,
            is_active=is_active,
        )

    return _make


@pytest.fixture
def make_member(db_session):
    counter = {"n": 0}

    def _make(product=None, start=date(2026, 1, 1), name=None, gender="L"):
        counter["n"] += 1
        return create_member(
            db_session,
            name=name or f"Anggota {counter['n']}",
            gender=gender,
            product_id=product.id if product else None,
            savings_start_date=start,
        )

    return _make


@pytest.fixture
def add_payment(db_session):
    """Insert a savings record directly, bypassing the submission workflow."""
    def _add(member, product, period, amount, status=SavingsStatus.APPROVED,
             savings_type=SavingsType.SETORAN, when=None, rejection_reason=None, proof_file=None):
        record = Savings(
            member_id=member.id,
            product_id=product.id,
            installment_period=period,
            amount=Decimal(str(amount)),
            savings_date=when or datetime.utcnow(),
            type=savings_type,
            status=status,
            payment_type=PaymentType.FULL,
            partial_sequence=1,
            rejection_reason=rejection_reason,
            proof_file=proof_file,
        )
        db_session.add(record)
        db_session.commit()
        db_session.refresh(record)
        return record

    return _add
