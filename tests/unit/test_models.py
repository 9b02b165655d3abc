"""
Unit tests for SQLAlchemy models.
"""

import uuid
from decimal import Decimal

import pytest

from commerce.models import (
    AppUser, Customer, Membership, MembershipStatus, Order, OrderStatus, Product, ProductStatus,
    Tenant, TenantStatus,
)


class TestTenantModel:
    """Tests for Tenant model."""

    def test_create_tenant(self, session):
        """Test creating a tenant."""
        suffix = str(uuid.uuid4())[:8]
        slug = f'test-tenant-{suffix}'
        tenant = Tenant(slug=slug, name=f'Test Tenant {suffix}', settings={'currency': 'KWD'})
        session.add(tenant)
        session.commit()

        assert tenant.id is not None
        assert tenant.status == TenantStatus.ACTIVE
        assert tenant.is_active
        assert tenant.setting('currency') == 'KWD'
        assert tenant.setting('missing', 'fallback') == 'fallback'

    def test_tenant_slug_unique(self, session, tenant1):
        """Test that tenant slug must be unique."""
        session.add(Tenant(slug=tenant1.slug, name='Duplicate Tenant'))

        with pytest.raises(Exception):  # IntegrityError
            session.commit()


class TestMembershipModel:
    """Tests for Membership model."""

    def test_one_membership_per_user_and_tenant(self, session, tenant1, make_member):
        member = make_member(tenant1, role='STAFF')
        session.add(Membership(tenant_id=tenant1.id, user_id=member.user_id, role='ADMIN'))

        with pytest.raises(Exception):  # IntegrityError
            session.commit()

    def test_user_can_belong_to_two_tenants(self, session, tenant1, tenant2, make_member):
        member = make_member(tenant1, role='OWNER', uid='shared-uid')
        make_member(tenant2, role='VIEWER', uid='shared-uid')

        user = session.query(AppUser).filter(AppUser.uid == 'shared-uid').one()
        assert sorted(m.role for m in user.memberships) == ['OWNER', 'VIEWER']
        assert all(m.status == MembershipStatus.ACTIVE for m in user.memberships)
        assert member.user_id == user.id


class TestProductModel:
    """Tests for Product model."""

    def test_defaults_to_draft(self, session, tenant1):
        product = Product(tenant_id=tenant1.id, name='Plain', price=Decimal('1.00'))
        session.add(product)
        session.commit()

        assert product.status == ProductStatus.DRAFT
        assert product.stock == 0
        assert not product.is_purchasable

    def test_stock_cannot_go_negative(self, session, tenant1):
        session.add(Product(tenant_id=tenant1.id, name='Broken', price=Decimal('1.00'), stock=-1))

        with pytest.raises(Exception):  # IntegrityError (check constraint)
            session.commit()

    def test_to_dict(self, session, product_tenant1):
        data = session.get(Product, product_tenant1.id).to_dict()
        assert data['price'] == '12.50'
        assert data['status'] == 'active'
        assert data['stock'] == 5


class TestCustomerModel:

    def test_email_unique_per_tenant(self, session, tenant1, tenant2):
        session.add(Customer(tenant_id=tenant1.id, email='same@shop.test', name='One'))
        session.add(Customer(tenant_id=tenant2.id, email='same@shop.test', name='Other store'))
        session.commit()

        session.add(Customer(tenant_id=tenant1.id, email='same@shop.test', name='Duplicate'))
        with pytest.raises(Exception):  # IntegrityError
            session.commit()


class TestOrderModel:

    def test_order_number_unique(self, session, tenant1):
        def order():
            return Order(tenant_id=tenant1.id, order_number='ORD-20250101-00000001', status=OrderStatus.PENDING,
                         customer_name='A B', customer_email='a@b.co', customer_phone='123456',
                         subtotal=Decimal('1'), tax=Decimal('0'), shipping=Decimal('0'), total=Decimal('1'),
                         currency='KWD')

        session.add(order())
        session.commit()
        session.add(order())
        with pytest.raises(Exception):  # IntegrityError
            session.commit()

    def test_to_dict_carries_timestamps(self, session, tenant1):
        order = Order(tenant_id=tenant1.id, order_number='ORD-20250101-0000000A', status=OrderStatus.PENDING,
                      customer_name='A B', customer_email='a@b.co', customer_phone='123456',
                      subtotal=Decimal('1'), tax=Decimal('0'), shipping=Decimal('0'), total=Decimal('1'),
                      currency='KWD')
        session.add(order)
        session.commit()

        data = order.to_dict(include_items=False)
        assert data['createdAt'] is not None
        assert data['updatedAt'] is not None
        assert 'items' not in data
