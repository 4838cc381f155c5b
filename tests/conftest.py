"""
conftest.py — Shared Test Fixtures for the Estates back office

Provides an in-memory SQLite database, FastAPI TestClient with auth
overrides, and factory fixtures for core models (Profile, Provider,
Property, ArchitecturalPlan).

Business Rules:
- All tests run against isolated in-memory DB (no prod data risk)
- SQLite has no moderation functions, so every with_fallback pair runs
  its client-side path
- app.database.SessionLocal is rebound to the test engine so code that
  opens its own sessions (sign-in, realtime, connectivity) sees test data
- The change feed is reset between tests (no leaked subscribers)
- Object storage is a temp directory per test

Called by: all test files via pytest autodiscovery
Depends on: app.models (Base), app.database (get_db, SessionLocal),
            app.dependencies, app.change_feed
"""

import os

os.environ["TESTING"] = "1"  # Must be set before importing app modules
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["SECRET_KEY"] = "test-secret-key"

from datetime import datetime, timezone

import pytest
from fastapi import HTTPException
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from app.change_feed import change_feed
from app.database import SessionLocal
from app.models import ArchitecturalPlan, Base, Profile, Property, PropertyFeatures, PropertyLocation, Provider
from app.storage import LocalStorage

# ── In-memory SQLite engine ──────────────────────────────────────────

TEST_DB_URL = "sqlite://"  # in-memory, fresh per session

engine = create_engine(
    TEST_DB_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestSessionLocal = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)
SessionLocal.configure(bind=engine)


@event.listens_for(engine, "connect")
def _enable_fk(dbapi_conn, _):
    """SQLite ignores FKs by default — turn them on."""
    dbapi_conn.execute("PRAGMA foreign_keys=ON")


# ── Fixtures ─────────────────────────────────────────────────────────


@pytest.fixture(autouse=True)
def db_session():
    """Create all tables, yield a session, then tear down."""
    Base.metadata.create_all(bind=engine)
    session = TestSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture(autouse=True)
def _reset_change_feed():
    change_feed.clear()
    change_feed.available = True
    yield
    change_feed.clear()
    change_feed.available = True


@pytest.fixture()
def storage(tmp_path) -> LocalStorage:
    return LocalStorage(tmp_path, "http://test/media")


def _profile(db: Session, email: str, name: str, role: str, status: str = "approved") -> Profile:
    user = Profile(
        email=email,
        name=name,
        role=role,
        status=status,
        created_at=datetime.now(timezone.utc),
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture()
def admin_user(db_session: Session) -> Profile:
    """An admin account (actor for moderation)."""
    return _profile(db_session, "admin@estates.test", "Test Admin", "admin")


@pytest.fixture()
def test_user(db_session: Session) -> Profile:
    """A regular approved account."""
    return _profile(db_session, "buyer@estates.test", "Test Buyer", "user")


@pytest.fixture()
def provider_user(db_session: Session) -> Profile:
    """An approved provider account with its provider row."""
    user = _profile(db_session, "agent@estates.test", "Test Agent", "provider")
    db_session.add(Provider(
        user_id=user.id,
        business_name="Savannah Realty",
        business_email="office@savannah.test",
        business_phone="+254700000001",
        city="Nairobi",
        subscription_status="active",
    ))
    db_session.commit()
    db_session.refresh(user)
    return user


@pytest.fixture()
def test_provider(db_session: Session, provider_user: Profile) -> Provider:
    return db_session.query(Provider).filter_by(user_id=provider_user.id).one()


@pytest.fixture()
def pending_provider(db_session: Session) -> Provider:
    """A provider whose account is still awaiting approval."""
    user = _profile(db_session, "new-agent@estates.test", "New Agent", "provider", status="pending")
    provider = Provider(
        user_id=user.id,
        business_name="Coastline Homes",
        business_email="hello@coastline.test",
        city="Mombasa",
    )
    db_session.add(provider)
    db_session.commit()
    db_session.refresh(provider)
    return provider


def make_property(db: Session, provider: Provider | None = None, *, status: str = "pending",
                  title: str = "3 Bedroom Maisonette", type: str = "house", category: str = "sale",
                  price: float = 8_500_000, city: str = "Nairobi", bedrooms: int = 3,
                  area: float = 2400, area_unit: str = "sqft") -> Property:
    prop = Property(
        title=title,
        description="Spacious family home",
        type=type,
        category=category,
        price=price,
        status=status,
        provider_id=provider.id if provider else None,
        published_at=datetime.now(timezone.utc) if status == "published" else None,
        created_at=datetime.now(timezone.utc),
    )
    db.add(prop)
    db.flush()
    db.add(PropertyLocation(property_id=prop.id, address="Kiambu Road", city=city, country="Kenya"))
    db.add(PropertyFeatures(property_id=prop.id, bedrooms=bedrooms, bathrooms=2, area=area, area_unit=area_unit))
    db.commit()
    db.refresh(prop)
    return prop


@pytest.fixture()
def property_factory(db_session: Session):
    """make_property bound to the test session."""
    return lambda provider=None, **kw: make_property(db_session, provider, **kw)


@pytest.fixture()
def test_property(db_session: Session, test_provider: Provider) -> Property:
    """A pending provider listing."""
    return make_property(db_session, test_provider)


@pytest.fixture()
def published_property(db_session: Session, test_provider: Provider) -> Property:
    return make_property(db_session, test_provider, status="published", title="Garden Apartment",
                         type="apartment", category="rent", price=65_000)


@pytest.fixture()
def test_plan(db_session: Session, provider_user: Profile) -> ArchitecturalPlan:
    """A pending plan authored by the provider."""
    plan = ArchitecturalPlan(
        title="Modern 4BR Bungalow",
        category="bungalow",
        status="pending",
        bedrooms=4,
        bathrooms=3,
        area=2800,
        price=150_000,
        features=["open-plan", "solar"],
        tags=["modern"],
        created_by=provider_user.id,
    )
    db_session.add(plan)
    db_session.commit()
    db_session.refresh(plan)
    return plan


@pytest.fixture()
def published_plan(db_session: Session, provider_user: Profile) -> ArchitecturalPlan:
    plan = ArchitecturalPlan(
        title="Courtyard Villa",
        category="villa",
        status="published",
        bedrooms=5,
        area=4200,
        price=300_000,
        discount_percentage=10,
        features=["pool", "courtyard"],
        tags=["luxury"],
        style="contemporary",
        created_by=provider_user.id,
        published_at=datetime.now(timezone.utc),
    )
    db_session.add(plan)
    db_session.commit()
    db_session.refresh(plan)
    return plan


# ── TestClient fixtures ──────────────────────────────────────────────


def _client_for(db_session: Session, storage: LocalStorage, user: Profile | None):
    from app.database import get_db
    from app.dependencies import get_storage_backend, require_admin, require_provider, require_user
    from app.main import app

    def _override_db():
        yield db_session

    app.dependency_overrides[get_db] = _override_db
    app.dependency_overrides[get_storage_backend] = lambda: storage
    if user is not None:
        app.dependency_overrides[require_user] = lambda: user
        if user.role in ("provider", "admin"):
            app.dependency_overrides[require_provider] = lambda: user
        else:
            app.dependency_overrides[require_provider] = _forbidden("Provider account required")
        if user.role == "admin":
            app.dependency_overrides[require_admin] = lambda: user
        else:
            app.dependency_overrides[require_admin] = _forbidden("Admin access required")
    return app


def _forbidden(detail: str):
    def _deny():
        raise HTTPException(403, detail)

    return _deny


@pytest.fixture()
def client(db_session: Session, storage: LocalStorage) -> TestClient:
    """Anonymous TestClient (only get_db and storage overridden)."""
    app = _client_for(db_session, storage, None)
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture()
def admin_client(db_session: Session, storage: LocalStorage, admin_user: Profile) -> TestClient:
    """TestClient authenticated as admin_user."""
    app = _client_for(db_session, storage, admin_user)
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture()
def provider_client(db_session: Session, storage: LocalStorage, provider_user: Profile) -> TestClient:
    """TestClient authenticated as provider_user (not an admin)."""
    app = _client_for(db_session, storage, provider_user)
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture()
def user_client(db_session: Session, storage: LocalStorage, test_user: Profile) -> TestClient:
    """TestClient authenticated as a regular account."""
    app = _client_for(db_session, storage, test_user)
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()
