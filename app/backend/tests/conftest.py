from __future__ import annotations

from collections.abc import Callable, Generator
from datetime import datetime, timedelta
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from harmonydesk.core.auth import ensure_user_principal
from harmonydesk.core.config import get_settings
from harmonydesk.db.base import Base
from harmonydesk.db.dependencies import get_db_session
import harmonydesk.models.entities  # noqa: F401
from harmonydesk.main import create_app
from harmonydesk.models.entities import County, Invoice, InvoiceStatus, User

TEST_TABLES = [
    User.__table__,
    County.__table__,
    Invoice.__table__,
]

SeedCounty = Callable[..., County]
SeedInvoice = Callable[..., Invoice]


@pytest.fixture(autouse=True)
def offline_settings(monkeypatch: pytest.MonkeyPatch) -> Generator[None, None, None]:
    monkeypatch.setenv("EMAIL_CHECK_DELIVERABILITY", "false")
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture()
def db_session() -> Generator[Session, None, None]:
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        future=True,
    )
    Base.metadata.create_all(bind=engine, tables=TEST_TABLES)
    TestingSessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)

    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine, tables=TEST_TABLES)


@pytest.fixture()
def client(db_session: Session) -> Generator[TestClient, None, None]:
    app = create_app()

    def override_db() -> Generator[Session, None, None]:
        yield db_session

    app.dependency_overrides[get_db_session] = override_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture()
def owner(db_session: Session) -> User:
    return ensure_user_principal(
        db_session,
        auth_subject="subject-mediator-one",
        email="mediator.one@test.local",
        display_name="Mediator One",
    )


@pytest.fixture()
def seed_county(db_session: Session) -> SeedCounty:
    def _seed(owner: User, *, name: str = "King", report_format: str = "csv_line_per_invoice") -> County:
        now = datetime.utcnow()
        county = County(
            owner_id=owner.id,
            name=name,
            report_format=report_format,
            created_at=now,
            updated_at=now,
        )
        db_session.add(county)
        db_session.commit()
        db_session.refresh(county)
        return county

    return _seed


@pytest.fixture()
def seed_invoice(db_session: Session) -> SeedInvoice:
    def _seed(
        owner: User,
        *,
        county: County | None,
        case_number: str = "A1",
        matter: str = "Smith v. Turner",
        contact: str = "Reed",
        hours: str | None = "3.5",
        rate: str | None = "250",
        status: InvoiceStatus = InvoiceStatus.SENT,
        age_minutes: int = 0,
    ) -> Invoice:
        invoice = Invoice(
            owner_id=owner.id,
            county_id=county.id if county is not None else None,
            case_number=case_number,
            matter=matter,
            contact=contact,
            hours=Decimal(hours) if hours is not None else None,
            rate=Decimal(rate) if rate is not None else None,
            status=status,
            created_at=datetime(2026, 9, 30, 12, 0) - timedelta(minutes=age_minutes),
        )
        db_session.add(invoice)
        db_session.commit()
        db_session.refresh(invoice)
        return invoice

    return _seed
