import uuid
from contextlib import contextmanager
from typing import Optional

import pytest
import pytest_asyncio
from libs.auth.dependencies import get_current_user
from libs.auth.models import CUSTOMER_ROLE, SELLER_ROLE, SERVICE_ROLE, AuthUser
from services.marketplace_service.services import catalog_ops
from tests.factories import ProductFactory, StoreFactory

# ---------------------------------------------------------------------------
# Auth helpers
# ---------------------------------------------------------------------------


def make_user(role: str = CUSTOMER_ROLE, user_id: Optional[str] = None) -> AuthUser:
    return AuthUser(user_id=user_id or f"{role}-{uuid.uuid4().hex[:8]}", role=role)


def make_customer_user(user_id: Optional[str] = None) -> AuthUser:
    return make_user(CUSTOMER_ROLE, user_id)


def make_seller_user(user_id: Optional[str] = None) -> AuthUser:
    return make_user(SELLER_ROLE, user_id)


def make_service_user() -> AuthUser:
    return make_user(SERVICE_ROLE, "payments")


@contextmanager
def override_auth(app, user: AuthUser):
    """Authenticate requests made inside the block as ``user``."""
    previous = app.dependency_overrides.get(get_current_user)
    app.dependency_overrides[get_current_user] = lambda: user
    try:
        yield user
    finally:
        if previous is None:
            app.dependency_overrides.pop(get_current_user, None)
        else:
            app.dependency_overrides[get_current_user] = previous


# ---------------------------------------------------------------------------
# Seeding helpers
# ---------------------------------------------------------------------------


async def seed_store(db, owner_id: Optional[str] = None, **overrides):
    store = StoreFactory.create(owner_id=owner_id or f"seller-{uuid.uuid4().hex[:8]}", **overrides)
    db.add(store)
    await db.commit()
    return store


async def seed_product(db, store, **overrides):
    """Insert a flat-stock product and return it eagerly loaded."""
    product = ProductFactory.create(store_id=store.id, **overrides)
    db.add(product)
    await db.commit()
    return await catalog_ops.get_product(db, product.id)


async def seed_milk_tea(db, store, **overrides):
    product = ProductFactory.milk_tea(store.id, **overrides)
    db.add(product)
    await db.commit()
    return await catalog_ops.get_product(db, product.id)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def customer() -> AuthUser:
    return make_customer_user()


@pytest.fixture
def seller() -> AuthUser:
    return make_seller_user()


@pytest_asyncio.fixture
async def store(db_session, seller):
    return await seed_store(db_session, owner_id=seller.user_id)


@pytest_asyncio.fixture
async def milk_tea(db_session, store):
    return await seed_milk_tea(db_session, store)
