"""
Pytest fixtures for tienda backend tests.

Provides test database setup, two tenants with their locations and
accounts, a sample product catalog and authenticated request headers.
"""

import pytest
from tienda import create_app
from tienda.extensions import db
from tienda.models import Organization, Store
from tienda.models.auth import ROLE_ADMIN, ROLE_SUPERADMIN
from tienda.services.auth_service import create_user
from tienda.services.catalog_service import create_product
from tienda.services.employee_service import create_employee
from tienda.services.session_service import create_session
from tienda.services.stock_service import restock
from tienda.services.tenant_service import TenantContext


PASSWORD = "Password123!"


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
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


@pytest.fixture(scope='function')
def org_a(db_session):
    """Create Organization A (first tenant)."""
    org = Organization(name="Org A - Acme Corp", code="ACME", is_active=True)
    db_session.add(org)
    db_session.commit()
    return org


@pytest.fixture(scope='function')
def org_b(db_session):
    """Create Organization B (second tenant)."""
    org = Organization(name="Org B - Beta Inc", code="BETA", is_active=True)
    db_session.add(org)
    db_session.commit()
    return org


@pytest.fixture(scope='function')
def store_a(db_session, org_a):
    """Create Store A in Organization A."""
    store = Store(org_id=org_a.id, name="Centro", address="Av. Principal 1")
    db_session.add(store)
    db_session.commit()
    return store


@pytest.fixture(scope='function')
def store_a2(db_session, org_a):
    """Second location of Organization A."""
    store = Store(org_id=org_a.id, name="Norte")
    db_session.add(store)
    db_session.commit()
    return store


@pytest.fixture(scope='function')
def store_b(db_session, org_b):
    """Create Store B in Organization B."""
    store = Store(org_id=org_b.id, name="Centro")
    db_session.add(store)
    db_session.commit()
    return store


@pytest.fixture(scope='function')
def admin_a(db_session, org_a):
    return create_user("admin@acme.com", PASSWORD, ROLE_ADMIN, org_id=org_a.id, name="Ana Admin")


@pytest.fixture(scope='function')
def admin_b(db_session, org_b):
    return create_user("admin@beta.com", PASSWORD, ROLE_ADMIN, org_id=org_b.id, name="Beto Admin")


@pytest.fixture(scope='function')
def superadmin(db_session):
    return create_user("root@tienda.local", PASSWORD, ROLE_SUPERADMIN, name="Root")


@pytest.fixture(scope='function')
def ctx_a(org_a, admin_a):
    return TenantContext.for_admin(org_a.id, admin_a.id)


@pytest.fixture(scope='function')
def ctx_b(org_b, admin_b):
    return TenantContext.for_admin(org_b.id, admin_b.id)


@pytest.fixture(scope='function')
def seller_a(db_session, ctx_a, store_a):
    """Sales employee pinned to store_a."""
    return create_employee(
        ctx_a,
        name="Sofia Ventas",
        email="ventas@acme.com",
        password=PASSWORD,
        role="ventas",
        store_id=store_a.id,
    )


@pytest.fixture(scope='function')
def stocker_a(db_session, ctx_a, store_a):
    """Inventory employee pinned to store_a."""
    return create_employee(
        ctx_a,
        name="Ivan Inventario",
        email="inventario@acme.com",
        password=PASSWORD,
        role="inventario",
        store_id=store_a.id,
    )


@pytest.fixture(scope='function')
def seller_ctx(seller_a, org_a):
    return TenantContext(
        user_id=seller_a.user_id,
        org_id=org_a.id,
        role="employee",
        employee_role="ventas",
        store_id=seller_a.store_id,
    )


@pytest.fixture(scope='function')
def shirt_a(db_session, ctx_a):
    """Product in Organization A with Size and Color characteristics."""
    return create_product(
        ctx_a,
        patch={"name": "Shirt", "category": "Ropa"},
        characteristics=[
            {"name": "Size", "options": ["S", "M"]},
            {"name": "Color", "options": ["Red", "Blue"]},
        ],
    )


@pytest.fixture(scope='function')
def mug_b(db_session, ctx_b):
    """Attribute-less product in Organization B."""
    return create_product(ctx_b, patch={"name": "Mug"})


@pytest.fixture(scope='function')
def red_s_stock(ctx_a, shirt_a, store_a):
    """10 units of Shirt (S, Red) at store_a, 1500 cents each."""
    entry, _ = restock(
        ctx_a,
        shirt_a.id,
        option_ids(shirt_a, Size="S", Color="Red"),
        store_a.id,
        10,
        1500,
    )
    return entry


def option_ids(product, **chosen) -> list[int]:
    """Option ids of a product by characteristic name, e.g. Size="S"."""
    ids = []
    for characteristic in product.characteristics:
        if characteristic.name not in chosen:
            continue
        for option in characteristic.options:
            if option.value == chosen[characteristic.name]:
                ids.append(option.id)
    return ids


def auth_headers(user_id: int) -> dict:
    """Helper to create Authorization headers for a fresh session."""
    _, token = create_session(user_id=user_id)
    return {'Authorization': f'Bearer {token}'}


@pytest.fixture(scope='function')
def admin_headers(admin_a):
    return auth_headers(admin_a.id)


@pytest.fixture(scope='function')
def admin_b_headers(admin_b):
    return auth_headers(admin_b.id)


@pytest.fixture(scope='function')
def seller_headers(seller_a):
    return auth_headers(seller_a.user_id)


@pytest.fixture(scope='function')
def stocker_headers(stocker_a):
    return auth_headers(stocker_a.user_id)


@pytest.fixture(scope='function')
def superadmin_headers(superadmin):
    return auth_headers(superadmin.id)
