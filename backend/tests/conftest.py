# Overview: Pytest fixtures for posledger backend tests.

"""
Pytest fixtures for posledger backend tests.

Provides the test app, a per-test clean database, and two tenants (stores A
and B, each with its own owner, cashier and product) for isolation tests.
Users created here get a placeholder hash; bcrypt is exercised by the user
service tests.
"""

from datetime import timedelta
from decimal import Decimal

import pytest

from posledger import create_app
from posledger.extensions import db
from posledger.models import Store, SubscriptionPlan, User, UserSubscription
from posledger.models.auth import ROLE_ADMINISTRATOR, ROLE_CASHIER, ROLE_OWNER
from posledger.models.subscriptions import SUBSCRIPTION_ACTIVE
from posledger.services import products_service
from posledger.time_utils import utcnow

TEST_PASSWORD_HASH = "not-a-real-hash"


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'RETRY_BACKOFF_SECONDS': 0,
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Create fresh database for each test."""
    with app.app_context():
        # Clear all data but keep schema
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        # Cleanup after test
        db.session.rollback()


def make_user(username, role, store_id=None):
    user = User(
        username=username,
        email=f"{username}@example.com",
        first_name=username.capitalize(),
        last_name="Test",
        password_hash=TEST_PASSWORD_HASH,
        role=role,
        store_id=store_id,
        is_active=True,
    )
    db.session.add(user)
    db.session.commit()
    return user


def make_store(owner, name, **fields):
    fields.setdefault("timezone", "UTC")
    fields.setdefault("tax_rate_bps", 0)
    store = Store(owner_id=owner.id, name=name, is_active=True, **fields)
    db.session.add(store)
    db.session.commit()
    return store


def make_product(store, actor, sku, stock="5", price="10.00", **fields):
    payload = {
        "sku": sku,
        "name": fields.pop("name", f"Product {sku}"),
        "purchase_price": fields.pop("purchase_price", "6.00"),
        "selling_price": price,
        "stock": stock,
    }
    payload.update(fields)
    return products_service.create_product(store.id, payload, actor.id).unwrap()


def make_plan(name="Test Plan", max_stores=2, max_users=3):
    plan = SubscriptionPlan(
        name=name,
        price=Decimal("100000.00"),
        currency="IDR",
        interval="monthly",
        max_stores=max_stores,
        max_users=max_users,
        features=[],
        is_active=True,
    )
    db.session.add(plan)
    db.session.commit()
    return plan


def make_subscription(owner, plan, status=SUBSCRIPTION_ACTIVE):
    start = utcnow()
    subscription = UserSubscription(
        user_id=owner.id,
        plan_id=plan.id,
        status=status,
        start_date=start,
        end_date=start + timedelta(days=30),
        auto_renew=True,
    )
    db.session.add(subscription)
    db.session.commit()
    return subscription


@pytest.fixture(scope='function')
def owner(db_session):
    return make_user("owner", ROLE_OWNER)


@pytest.fixture(scope='function')
def admin(db_session):
    return make_user("admin", ROLE_ADMINISTRATOR)


@pytest.fixture(scope='function')
def store_a(owner):
    return make_store(owner, "Store A")


@pytest.fixture(scope='function')
def cashier_a(store_a):
    return make_user("cashier_a", ROLE_CASHIER, store_id=store_a.id)


@pytest.fixture(scope='function')
def product_a(store_a, cashier_a):
    """Stock 5.000 at 10.00, recorded through the opening-stock movement."""
    return make_product(store_a, cashier_a, "SKU-A1")


@pytest.fixture(scope='function')
def owner_b(db_session):
    return make_user("owner_b", ROLE_OWNER)


@pytest.fixture(scope='function')
def store_b(owner_b):
    return make_store(owner_b, "Store B")


@pytest.fixture(scope='function')
def cashier_b(store_b):
    return make_user("cashier_b", ROLE_CASHIER, store_id=store_b.id)


@pytest.fixture(scope='function')
def product_b(store_b, cashier_b):
    return make_product(store_b, cashier_b, "SKU-B1")


@pytest.fixture(scope='function')
def plan(db_session):
    return make_plan()


def _file_backed_app(db_path, **overrides):
    """
    App on a file-backed SQLite database.

    Threads need separate connections to contend on the write lock; an
    in-memory database is a single shared connection.
    """
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': f"sqlite:///{db_path}",
        **overrides,
    })
    with app.app_context():
        db.create_all()
    return app


def _dispose_file_backed_app(app):
    with app.app_context():
        db.session.remove()
        db.drop_all()
        db.engine.dispose()


@pytest.fixture(scope='function')
def file_app(tmp_path):
    app = _file_backed_app(
        tmp_path / 'concurrency.sqlite3',
        LOCK_TIMEOUT_SECONDS=15,
        RETRY_BACKOFF_SECONDS=0.01,
    )
    yield app
    _dispose_file_backed_app(app)


@pytest.fixture(scope='function')
def short_lock_app(tmp_path):
    """File-backed app that gives up on the write lock after a fraction of a second."""
    app = _file_backed_app(
        tmp_path / 'locked.sqlite3',
        LOCK_TIMEOUT_SECONDS=0.2,
        RETRY_ATTEMPTS=2,
        RETRY_BACKOFF_SECONDS=0,
    )
    yield app
    _dispose_file_backed_app(app)
