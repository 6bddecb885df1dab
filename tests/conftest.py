from contextlib import contextmanager
from datetime import datetime, timedelta
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from main import app
from core import config as core_config
from core import redis as core_redis
from core.db import Base, get_db
from models.product import Product
from models.store import Store
from models.subscription import Subscription
from models.user import User
from security.password import hash_password
from security import jwt as jwt_utils
from services import orders as orders_service


class FakeRedis:
    """In-memory stand-in for the few Redis commands the app uses."""

    def __init__(self):
        self._store = {}
        self._exp = {}

    def _cleanup(self, key):
        exp = self._exp.get(key)
        if exp is not None and datetime.utcnow().timestamp() > exp:
            self._store.pop(key, None)
            self._exp.pop(key, None)

    def setex(self, key, ttl, value):
        self._store[key] = value
        self._exp[key] = datetime.utcnow().timestamp() + int(ttl)

    def get(self, key):
        self._cleanup(key)
        return self._store.get(key)

    def exists(self, key):
        self._cleanup(key)
        return 1 if key in self._store else 0

    def ttl(self, key):
        self._cleanup(key)
        if key not in self._store:
            return -2  # key does not exist
        remain = int(self._exp.get(key, 0) - datetime.utcnow().timestamp())
        return max(remain, 0)

    def delete(self, key):
        self._store.pop(key, None)
        self._exp.pop(key, None)


@pytest.fixture(scope="session", autouse=True)
def test_settings():
    core_config.settings.JWT_SECRET = "test-secret"
    core_config.settings.REFRESH_SECRET = "test-refresh"
    core_config.settings.TESTING = True
    yield


@pytest.fixture(autouse=True)
def fake_redis(monkeypatch):
    fake = FakeRedis()
    monkeypatch.setattr(core_redis, "redis_client", fake)
    return fake


@pytest.fixture()
def db_session_override(monkeypatch):
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    @event.listens_for(engine, "connect")
    def _enable_foreign_keys(dbapi_conn, connection_record):
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    TestingSessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False, expire_on_commit=False)
    Base.metadata.create_all(bind=engine)

    db = TestingSessionLocal()

    def _get_db():
        try:
            yield db
        finally:
            pass

    @contextmanager
    def _db_session():
        # Background order submission writes to the same test database
        try:
            yield db
            db.commit()
        except Exception:
            db.rollback()
            raise

    app.dependency_overrides[get_db] = _get_db
    monkeypatch.setattr(orders_service, "db_session", _db_session)
    try:
        yield db
    finally:
        db.close()
        app.dependency_overrides.clear()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture()
def client(db_session_override):
    with TestClient(app) as c:
        yield c


@pytest.fixture
def make_owner(db_session_override):
    """Factory for owner accounts. ``subscription`` is a dict of window fields, or None for no row."""
    counter = {"n": 0}

    def _make(subscription="trial", email=None, name="Maria Souza"):
        counter["n"] += 1
        user = User(
            name=name,
            email=email or f"owner{counter['n']}@example.com",
            password_hash=hash_password("secret123"),
        )
        if subscription == "trial":
            user.subscription = Subscription(**Subscription.start_trial(7))
        elif subscription is not None:
            user.subscription = Subscription(**subscription)
        db_session_override.add(user)
        db_session_override.commit()
        db_session_override.refresh(user)
        return user

    return _make


@pytest.fixture
def expired_window():
    now = datetime.utcnow()
    return {
        "trial_start": now - timedelta(days=30),
        "trial_end": now - timedelta(days=23),
        "is_paid": False,
        "paid_until": None,
    }


@pytest.fixture
def owner(make_owner):
    return make_owner()


@pytest.fixture
def make_store(db_session_override):
    def _make(user, name="Lanchonete da Maria", whatsapp="(11) 98765-4321"):
        store = Store(owner_id=user.id, name=name, description="Lanches e bebidas", whatsapp=whatsapp)
        db_session_override.add(store)
        db_session_override.commit()
        db_session_override.refresh(store)
        return store

    return _make


@pytest.fixture
def store(owner, make_store):
    return make_store(owner)


@pytest.fixture
def make_product(db_session_override):
    def _make(store, name, price, category=None, active=True):
        product = Product(store_id=store.id, name=name, price=Decimal(price), category=category, active=active)
        db_session_override.add(product)
        db_session_override.commit()
        db_session_override.refresh(product)
        return product

    return _make


@pytest.fixture
def products(store, make_product):
    return {
        "burger": make_product(store, "Burger", "10.00", category="Lanches"),
        "fries": make_product(store, "Fries", "5.50", category="Porções"),
        "soda": make_product(store, "Soda", "6.00"),
        "hidden": make_product(store, "Old Special", "30.00", category="Lanches", active=False),
    }


@pytest.fixture
def auth_headers_for():
    def _headers(user):
        return {"Authorization": f"Bearer {jwt_utils.create_access_token(str(user.id))}"}

    return _headers


@pytest.fixture
def auth_headers(owner, auth_headers_for):
    """Return authorization headers with valid token."""
    return auth_headers_for(owner)
