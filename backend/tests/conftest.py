from __future__ import annotations

import base64
import os
import sys
from datetime import date
from decimal import Decimal
from pathlib import Path
from typing import Generator

import pytest

# Ensure the project root (which exposes the ``backend`` package) is on ``sys.path``
PROJECT_ROOT = Path(__file__).resolve().parents[2]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("AUTH_JWT_SECRET", base64.urlsafe_b64encode(b"\x02" * 32).decode())
os.environ.setdefault("ACCESS_TOKEN_EXPIRE_MINUTES", "60")
os.environ["AUTO_MIGRATE"] = "0"

from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import Session, sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from backend.app import models  # noqa: E402
from backend.app.database import Base, enable_sqlite_foreign_keys, get_db  # noqa: E402
from backend.app.main import app  # noqa: E402
from backend.app.security import Identity, create_access_token, generate_password_hash  # noqa: E402
from backend.app.services import STATS_CACHE  # noqa: E402

TEST_PASSWORD = "Styl1st-Pass!"


@pytest.fixture
def user_password() -> str:
    return TEST_PASSWORD


@pytest.fixture
def engine():
    test_engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    enable_sqlite_foreign_keys(test_engine)
    Base.metadata.create_all(bind=test_engine)
    try:
        yield test_engine
    finally:
        Base.metadata.drop_all(bind=test_engine)
        test_engine.dispose()


@pytest.fixture
def db_session(engine) -> Generator[Session, None, None]:
    session = sessionmaker(bind=engine, autocommit=False, autoflush=False)()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture(autouse=True)
def _clear_stats_cache() -> Generator[None, None, None]:
    STATS_CACHE.clear()
    yield
    STATS_CACHE.clear()


def _create_user(db_session: Session, username: str, stylist_name: str, role: models.UserRole) -> models.User:
    user = models.User(
        username=username,
        stylist_name=stylist_name,
        role=role,
        password_hash=generate_password_hash(TEST_PASSWORD, iterations=1_000),
    )
    db_session.add(user)
    db_session.commit()
    db_session.refresh(user)
    return user


@pytest.fixture
def admin_user(db_session: Session) -> models.User:
    return _create_user(db_session, "owner", "Salon Owner", models.UserRole.ADMIN)


@pytest.fixture
def stylist(db_session: Session) -> models.User:
    return _create_user(db_session, "maria", "Maria", models.UserRole.USER)


@pytest.fixture
def other_stylist(db_session: Session) -> models.User:
    return _create_user(db_session, "jade", "Jade", models.UserRole.USER)


@pytest.fixture
def admin_identity(admin_user: models.User) -> Identity:
    return Identity(user_id=admin_user.id, role=models.UserRole.ADMIN)


@pytest.fixture
def stylist_identity(stylist: models.User) -> Identity:
    return Identity(user_id=stylist.id, role=models.UserRole.USER)


@pytest.fixture
def other_identity(other_stylist: models.User) -> Identity:
    return Identity(user_id=other_stylist.id, role=models.UserRole.USER)


def bearer(identity: Identity) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(identity)}"}


@pytest.fixture
def admin_headers(admin_identity: Identity) -> dict[str, str]:
    return bearer(admin_identity)


@pytest.fixture
def stylist_headers(stylist_identity: Identity) -> dict[str, str]:
    return bearer(stylist_identity)


@pytest.fixture
def other_headers(other_identity: Identity) -> dict[str, str]:
    return bearer(other_identity)


@pytest.fixture
def client(db_session: Session) -> Generator[TestClient, None, None]:
    def override_get_db() -> Generator[Session, None, None]:
        try:
            yield db_session
        finally:
            db_session.expire_all()

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.pop(get_db, None)


@pytest.fixture
def make_cycle(db_session: Session):
    def _make(name: str, start: date, end: date) -> models.Cycle:
        cycle = models.Cycle(name=name, start_date=start, end_date=end)
        db_session.add(cycle)
        db_session.commit()
        db_session.refresh(cycle)
        return cycle

    return _make


@pytest.fixture
def cycle_a(make_cycle) -> models.Cycle:
    return make_cycle("June A", date(2025, 6, 1), date(2025, 6, 14))


@pytest.fixture
def make_record(db_session: Session):
    """Insert a record directly, bypassing validation, to model legacy rows."""

    def _make(
        user: models.User,
        *,
        cycle: models.Cycle | None,
        occurred_on: str | None,
        price: str = "60.00",
        kind: models.RecordKind = models.RecordKind.SERVICE,
        tip: str | None = None,
        payments: list[tuple[models.PaymentMethod, str]] | None = None,
        name: str = "Haircut",
    ) -> models.Record:
        record_cls = models.ServiceRecord if kind == models.RecordKind.SERVICE else models.ProductRecord
        entries = payments if payments is not None else [(models.PaymentMethod.CASH, price)]
        record = record_cls(
            user_id=user.id,
            cycle_id=cycle.id if cycle is not None else None,
            name=name,
            price=Decimal(price),
            tip=Decimal(tip) if tip is not None else None,
            occurred_on=occurred_on,
            payments=[
                models.RecordPayment(method=method, amount=Decimal(amount))
                for method, amount in entries
            ],
        )
        db_session.add(record)
        db_session.commit()
        db_session.refresh(record)
        return record

    return _make
