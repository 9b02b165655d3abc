import os
import tempfile
import time
import uuid
from decimal import Decimal
from types import SimpleNamespace

import jwt
import pytest

# A throwaway SQLite file per test run unless a database is provided (e.g. by Docker)
if 'TEST_DATABASE_URL' not in os.environ:
    os.environ['TEST_DATABASE_URL'] = 'sqlite:///' + os.path.join(
        tempfile.gettempdir(), f'commerce-test-{os.getpid()}.db'
    )

from commerce import create_app
from commerce import database
from commerce.models import (
    AppUser, Customer, Membership, MembershipStatus, PlatformAdmin, Product, ProductStatus,
    Tenant, TenantStatus,
)

TEST_IDENTITY_SECRET = 'test-identity-secret'


@pytest.fixture(scope='session')
def app():
    """Create application instance for testing."""
    app = create_app('config.TestConfig')
    return app


@pytest.fixture(autouse=True)
def _schema(app):
    """Fresh tables for every test."""
    database.create_all()
    yield
    database.get_session().remove()
    database.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def session():
    """Create database session for testing."""
    session = database.get_session()
    yield session
    session.rollback()
    session.remove()


def _suffix():
    return str(uuid.uuid4())[:8]


@pytest.fixture
def make_tenant(session):
    """Factory: create a tenant and return its id/slug."""
    def _make(slug=None, status=TenantStatus.ACTIVE, settings=None, name=None):
        slug = slug or f'store-{_suffix()}'
        tenant = Tenant(
            slug=slug,
            name=name or f'Store {slug}',
            status=status,
            template='retail',
            settings=settings if settings is not None else {'currency': 'KWD'},
        )
        session.add(tenant)
        session.commit()
        return SimpleNamespace(id=tenant.id, slug=tenant.slug)
    return _make


@pytest.fixture
def tenant1(make_tenant):
    """Create first test tenant."""
    return make_tenant(slug=f'tenant-one-{_suffix()}')


@pytest.fixture
def tenant2(make_tenant):
    """Create second test tenant for isolation tests."""
    return make_tenant(slug=f'tenant-two-{_suffix()}')


@pytest.fixture
def make_product(session):
    """Factory: create a product and return its id and initial values."""
    def _make(tenant, name='Widget', price='10.00', stock=10, status=ProductStatus.ACTIVE, sku=None):
        product = Product(
            tenant_id=tenant.id,
            name=name,
            sku=sku or f'SKU-{_suffix()}',
            price=Decimal(price),
            stock=stock,
            status=status,
        )
        session.add(product)
        session.commit()
        return SimpleNamespace(id=product.id, tenant_id=tenant.id, name=name, price=Decimal(price), stock=stock)
    return _make


@pytest.fixture
def product_tenant1(make_product, tenant1):
    """Create test product for tenant1."""
    return make_product(tenant1, name='Product T1', price='12.50', stock=5)


@pytest.fixture
def product_tenant2(make_product, tenant2):
    """Create test product for tenant2."""
    return make_product(tenant2, name='Product T2', price='20.00', stock=3)


@pytest.fixture
def make_member(session):
    """Factory: create an AppUser with a membership in ``tenant``."""
    def _make(tenant, role='OWNER', status=MembershipStatus.ACTIVE, uid=None, user_active=True):
        uid = uid or f'uid-{_suffix()}'
        user = session.query(AppUser).filter(AppUser.uid == uid).first()
        if user is None:
            user = AppUser(uid=uid, email=f'{uid}@staff.test', full_name=f'Staff {uid}', active=user_active)
            session.add(user)
            session.flush()
        session.add(Membership(tenant_id=tenant.id, user_id=user.id, role=role, status=status))
        session.commit()
        return SimpleNamespace(user_id=user.id, uid=uid, email=f'{uid}@staff.test', tenant=tenant, role=role)
    return _make


@pytest.fixture
def make_platform_admin(session):
    def _make(role='SUPER_ADMIN', active=True, uid=None):
        uid = uid or f'ops-{_suffix()}'
        user = AppUser(uid=uid, email=f'{uid}@platform.test', full_name='Platform Operator', active=True)
        session.add(user)
        session.flush()
        session.add(PlatformAdmin(user_id=user.id, role=role, active=active))
        session.commit()
        return SimpleNamespace(user_id=user.id, uid=uid, email=f'{uid}@platform.test', role=role)
    return _make


@pytest.fixture
def make_customer(session):
    """Factory: create a signed-up (non-guest) customer."""
    def _make(tenant, uid=None, email=None):
        uid = uid or f'cust-{_suffix()}'
        email = email or f'{uid}@shopper.test'
        customer = Customer(tenant_id=tenant.id, uid=uid, email=email, name='Signed In Shopper',
                            phone='+96550000000', is_guest=False)
        session.add(customer)
        session.commit()
        return SimpleNamespace(id=customer.id, uid=uid, email=email, tenant=tenant)
    return _make


@pytest.fixture
def make_token():
    """Factory: mint an identity token the way the identity provider would."""
    def _make(uid, email, user_type, tenant_slug=None, secret=TEST_IDENTITY_SECRET, expires_in=3600, **extra):
        claims = {
            'sub': uid,
            'email': email,
            'user_type': user_type,
            'iat': int(time.time()),
            'exp': int(time.time()) + expires_in,
        }
        if tenant_slug is not None:
            claims['tenant_slug'] = tenant_slug
        claims.update(extra)
        return jwt.encode(claims, secret, algorithm='HS256')
    return _make


@pytest.fixture
def auth_headers(make_token):
    """Factory: Authorization header for a member, customer or platform admin fixture."""
    def _make(principal, user_type, tenant_slug=None):
        token = make_token(principal.uid, principal.email, user_type, tenant_slug=tenant_slug)
        return {'Authorization': f'Bearer {token}'}
    return _make


@pytest.fixture
def owner1(make_member, tenant1):
    return make_member(tenant1, role='OWNER')


@pytest.fixture
def owner_headers(auth_headers, owner1, tenant1):
    return auth_headers(owner1, 'merchant_admin', tenant1.slug)


@pytest.fixture
def customer1(make_customer, tenant1):
    return make_customer(tenant1)


@pytest.fixture
def customer_headers(auth_headers, customer1, tenant1):
    return auth_headers(customer1, 'customer', tenant1.slug)


CHECKOUT_INFO = {'name': 'Guest Buyer', 'email': 'guest@example.com', 'phone': '+96551234567'}


@pytest.fixture
def checkout_info():
    return dict(CHECKOUT_INFO)


@pytest.fixture
def place_order(client, checkout_info):
    """Factory: add items to the client's cart and check out through the API."""
    def _place(tenant, items, headers=None, info=None):
        for product_id, qty in items:
            response = client.post(f'/api/storefront/{tenant.slug}/cart/add',
                                   json={'productId': product_id, 'qty': qty}, headers=headers)
            assert response.status_code == 200, response.get_json()
        return client.post(f'/api/storefront/{tenant.slug}/checkout',
                           json=info or checkout_info, headers=headers)
    return _place
