"""
Critical integration tests for tenant isolation.
These tests ensure that data is properly isolated between tenants.
"""

from commerce.models import Product


class TestAdminIsolation:
    """Merchant admins only ever reach their own store."""

    def test_owner_cannot_reach_other_tenant(self, client, tenant2, owner_headers):
        response = client.get(f'/api/admin/{tenant2.slug}/orders', headers=owner_headers)
        assert response.status_code == 403
        assert response.get_json()['error'] == 'WRONG_TENANT'

    def test_tenant_slug_in_url_is_case_insensitive(self, client, tenant1, owner_headers):
        response = client.get(f'/api/admin/{tenant1.slug.upper()}/orders', headers=owner_headers)
        assert response.status_code == 200

    def test_other_tenant_order_is_not_found(self, client, tenant1, tenant2, product_tenant2, owner_headers,
                                             place_order):
        foreign_order_id = place_order(tenant2, [(product_tenant2.id, 1)]).get_json()['orderId']

        response = client.get(f'/api/admin/{tenant1.slug}/orders/{foreign_order_id}', headers=owner_headers)
        assert response.status_code == 404
        assert response.get_json()['error'] == 'ORDER_NOT_FOUND'

        response = client.delete(f'/api/admin/{tenant1.slug}/orders/{foreign_order_id}', headers=owner_headers)
        assert response.status_code == 404

    def test_other_tenant_product_is_not_found(self, session, client, tenant1, product_tenant2, owner_headers):
        response = client.post(f'/api/admin/{tenant1.slug}/products/{product_tenant2.id}/stock',
                               json={'delta': 5}, headers=owner_headers)
        assert response.status_code == 404
        assert session.get(Product, product_tenant2.id).stock == 3

    def test_list_shows_only_own_orders(self, client, tenant1, tenant2, product_tenant1, product_tenant2,
                                        owner_headers, place_order):
        own = place_order(tenant1, [(product_tenant1.id, 1)]).get_json()['orderId']
        place_order(tenant2, [(product_tenant2.id, 1)])

        orders = client.get(f'/api/admin/{tenant1.slug}/orders', headers=owner_headers).get_json()['orders']
        assert [o['id'] for o in orders] == [own]


class TestCustomerIsolation:
    """Customers are bound to the tenant in their token."""

    def test_customer_cannot_use_other_tenant(self, client, tenant2, customer_headers):
        response = client.post(f'/api/storefront/{tenant2.slug}/payments/process',
                               json={'orderId': 1, 'amount': '1.00', 'currency': 'KWD'},
                               headers=customer_headers)
        assert response.status_code == 403
        assert response.get_json()['error'] == 'WRONG_TENANT'

    def test_customer_cannot_read_other_tenant_order_through_own_store(
            self, client, tenant1, tenant2, product_tenant2, customer_headers, place_order):
        foreign_order_id = place_order(tenant2, [(product_tenant2.id, 1)]).get_json()['orderId']
        response = client.get(f'/api/storefront/{tenant1.slug}/orders/{foreign_order_id}',
                              headers=customer_headers)
        assert response.status_code == 404

    def test_customer_on_admin_endpoint(self, client, tenant1, customer_headers):
        response = client.get(f'/api/admin/{tenant1.slug}/orders', headers=customer_headers)
        assert response.status_code == 403
        assert response.get_json()['error'] == 'WRONG_USER_TYPE'


class TestCartIsolation:

    def test_cart_does_not_follow_into_other_store(self, client, tenant1, tenant2, product_tenant1):
        client.post(f'/api/storefront/{tenant1.slug}/cart/add', json={'productId': product_tenant1.id})
        cart = client.get(f'/api/storefront/{tenant2.slug}/cart').get_json()['cart']
        assert cart['items'] == []
        assert cart['tenantSlug'] == tenant2.slug

    def test_cannot_add_other_tenant_product(self, client, tenant1, product_tenant2):
        response = client.post(f'/api/storefront/{tenant1.slug}/cart/add', json={'productId': product_tenant2.id})
        assert response.status_code == 400
        assert response.get_json()['error'] == 'PRODUCT_NOT_FOUND'


class TestUnauthenticated:

    def test_admin_requires_identity(self, client, tenant1):
        response = client.get(f'/api/admin/{tenant1.slug}/orders')
        assert response.status_code == 401
        assert response.get_json()['error'] == 'UNAUTHENTICATED'

    def test_expired_token_reports_expiry(self, client, tenant1, owner1, make_token):
        token = make_token(owner1.uid, owner1.email, 'merchant_admin', tenant1.slug, expires_in=-60)
        response = client.get(f'/api/admin/{tenant1.slug}/orders', headers={'Authorization': f'Bearer {token}'})
        assert response.status_code == 401
        assert 'expired' in response.get_json()['message']

    def test_forged_token(self, client, tenant1, owner1, make_token):
        token = make_token(owner1.uid, owner1.email, 'merchant_admin', tenant1.slug, secret='forged')
        response = client.get(f'/api/admin/{tenant1.slug}/orders', headers={'Authorization': f'Bearer {token}'})
        assert response.status_code == 401

    def test_platform_admin_reads_any_store(self, client, tenant2, make_platform_admin, auth_headers):
        admin = make_platform_admin(role='SUPPORT')
        response = client.get(f'/api/admin/{tenant2.slug}/orders', headers=auth_headers(admin, 'platform_admin'))
        assert response.status_code == 200
