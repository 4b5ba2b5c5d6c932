"""
Pytest configuration and fixtures.

Ogni test riceve un database SQLite in memoria (aiosqlite, StaticPool)
con tutte le tabelle create, più le anagrafiche di base di
un'organizzazione: membri admin/supervisor/staff, camion, conducente,
cliente e categoria di spesa.
"""

import os

# Le impostazioni vanno fissate prima di importare app.*
os.environ["APP_ENV"] = "testing"
os.environ["DATABASE_URL"] = "sqlite+aiosqlite://"
os.environ["CRON_SECRET"] = "test-cron-secret"
os.environ["SMTP_HOST"] = ""

import uuid
from datetime import date, timedelta
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from app.core.database import get_db
from app.core.security import create_access_token, hash_password
from app.main import app
from app.models import (
    Base,
    Customer,
    Driver,
    ExpenseCategory,
    Invoice,
    InvoiceStatus,
    Member,
    MemberRole,
    Organization,
    Truck,
    User,
)
from app.services.change_notification_service import ChangeNotificationService, get_change_notifier

TEST_PASSWORD = "Password123!"


# ============================================================
# Fixtures per AsyncSession Mock
# ============================================================


@pytest.fixture
def mock_db():
    """Crea un mock di AsyncSession."""
    db = AsyncMock(spec=AsyncSession)
    db.execute = AsyncMock()
    db.add = MagicMock()
    db.commit = AsyncMock()
    db.rollback = AsyncMock()
    db.flush = AsyncMock()
    db.refresh = AsyncMock()
    db.delete = AsyncMock()
    return db


# ============================================================
# Fixtures per Database
# ============================================================


@pytest.fixture
async def engine():
    """Engine SQLite in memoria con lo schema completo."""
    test_engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield test_engine
    await test_engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


@pytest.fixture
async def db(session_factory):
    """Sessione usata dai test dei service."""
    async with session_factory() as session:
        yield session


# ============================================================
# Fixtures per Organizzazione e Membri
# ============================================================


async def _create_member(db: AsyncSession, organization: Organization, role: MemberRole, email: str) -> Member:
    user = User(
        email=email,
        hashed_password=hash_password(TEST_PASSWORD),
        full_name=f"Utente {role.value}",
        is_active=True,
    )
    db.add(user)
    await db.flush()

    member = Member(organization_id=organization.id, user=user, role=role.value)
    db.add(member)
    await db.commit()
    await db.refresh(member)
    return member


@pytest.fixture
async def organization(db):
    org = Organization(name="Trasporti Rossi", slug="trasporti-rossi")
    db.add(org)
    await db.commit()
    await db.refresh(org)
    return org


@pytest.fixture
async def other_organization(db):
    org = Organization(name="Logistica Bianchi", slug="logistica-bianchi")
    db.add(org)
    await db.commit()
    await db.refresh(org)
    return org


@pytest.fixture
async def admin_member(db, organization):
    return await _create_member(db, organization, MemberRole.ADMIN, "admin@rossi.example.com")


@pytest.fixture
async def supervisor_member(db, organization):
    return await _create_member(db, organization, MemberRole.SUPERVISOR, "supervisor@rossi.example.com")


@pytest.fixture
async def staff_member(db, organization):
    return await _create_member(db, organization, MemberRole.STAFF, "staff@rossi.example.com")


@pytest.fixture
async def other_admin_member(db, other_organization):
    return await _create_member(db, other_organization, MemberRole.ADMIN, "admin@bianchi.example.com")


# ============================================================
# Fixtures per Anagrafiche
# ============================================================


@pytest.fixture
async def truck(db, organization):
    truck = Truck(
        organization_id=organization.id,
        registration_no="AB123CD",
        make="Iveco",
        model="Stralis",
        current_mileage=120000,
    )
    db.add(truck)
    await db.commit()
    await db.refresh(truck)
    return truck


@pytest.fixture
async def driver(db, organization):
    driver = Driver(
        organization_id=organization.id,
        first_name="Mario",
        last_name="Rossi",
        phone="+39 333 1234567",
        email="mario.rossi@rossi.example.com",
        license_number="PAT-0001",
    )
    db.add(driver)
    await db.commit()
    await db.refresh(driver)
    return driver


@pytest.fixture
async def customer(db, organization):
    customer = Customer(
        organization_id=organization.id,
        name="Acme Logistica S.p.A.",
        email="amministrazione@acme.example.com",
        payment_terms=30,
    )
    db.add(customer)
    await db.commit()
    await db.refresh(customer)
    return customer


@pytest.fixture
async def fuel_category(db, organization):
    category = ExpenseCategory(
        organization_id=organization.id,
        name="Carburante",
        is_trip=True,
        is_truck=True,
    )
    db.add(category)
    await db.commit()
    await db.refresh(category)
    return category


@pytest.fixture
def make_invoice(db, organization, customer):
    """Factory di fatture già persistite."""

    async def _make(
        total: str = "1000.00",
        number: str = None,
        status: InvoiceStatus = InvoiceStatus.SENT,
        due_date: date = None,
        is_credit: bool = True,
        amount_paid: str = "0.00",
    ) -> Invoice:
        total_value = Decimal(total)
        paid_value = Decimal(amount_paid)
        invoice = Invoice(
            organization_id=organization.id,
            customer_id=customer.id,
            invoice_number=number or f"TEST-{uuid.uuid4().hex[:8]}",
            issue_date=date.today(),
            due_date=due_date if due_date is not None else (date.today() + timedelta(days=30) if is_credit else None),
            subtotal=total_value,
            tax=Decimal("0.00"),
            total=total_value,
            amount_paid=paid_value,
            balance=total_value - paid_value,
            status=status.value,
            is_credit=is_credit,
        )
        db.add(invoice)
        await db.commit()
        await db.refresh(invoice)
        return invoice

    return _make


# ============================================================
# Fixtures per Client HTTP
# ============================================================


@pytest.fixture
def auth_headers():
    """Header Authorization con un access token per il membro."""

    def _headers(member: Member) -> dict[str, str]:
        token = create_access_token(str(member.user_id), str(member.organization_id), member.role)
        return {"Authorization": f"Bearer {token}"}

    return _headers


@pytest.fixture
async def client(session_factory):
    """
    Client HTTP sull'app FastAPI con get_db sul database di test.

    Anche le notifiche di modifica inviate in background usano
    le sessioni del database di test.
    """

    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_change_notifier] = lambda: ChangeNotificationService(session_factory=session_factory)
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as http_client:
        yield http_client
    app.dependency_overrides.clear()
