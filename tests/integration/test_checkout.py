"""
Integration tests for cart and checkout through the storefront API.
"""

from decimal import Decimal

from commerce.models import (
    Customer, Order, OrderItem, OrderStatus, Payment, PaymentStatus, Product, ProductStatus,
    StockMove, StockMoveType, Tenant, TenantStatus,
)


def set_product(session, product_id, **values):
    session.query(Product).filter(Product.id == product_id).update(values)
    session.commit()


class TestCart:
    """Tests for the session cart endpoints."""

    def test_add_and_view(self, client, tenant1, product_tenant1):
        response = client.post(f'/api/storefront/{tenant1.slug}/cart/add',
                               json={'productId': product_tenant1.id, 'qty': 2})
        assert response.status_code == 200
        cart = response.get_json()['cart']
        assert cart['itemCount'] == 2
        assert cart['items'][0]['nameSnapshot'] == 'Product T1'
        assert cart['items'][0]['priceSnapshot'] == '12.50'

        cart = client.get(f'/api/storefront/{tenant1.slug}/cart').get_json()['cart']
        assert cart['items'][0]['productId'] == product_tenant1.id

    def test_update_remove_and_clear(self, client, tenant1, product_tenant1, make_product):
        other = make_product(tenant1, name='Other')
        base = f'/api/storefront/{tenant1.slug}'
        client.post(f'{base}/cart/add', json={'productId': product_tenant1.id, 'qty': 1})
        client.post(f'{base}/cart/add', json={'productId': other.id, 'qty': 1})

        cart = client.post(f'{base}/cart/update', json={'productId': product_tenant1.id, 'qty': 3}).get_json()['cart']
        assert cart['itemCount'] == 4

        cart = client.post(f'{base}/cart/update', json={'productId': product_tenant1.id, 'qty': 0}).get_json()['cart']
        assert [i['productId'] for i in cart['items']] == [other.id]

        cart = client.post(f'{base}/cart/remove', json={'productId': other.id}).get_json()['cart']
        assert cart['items'] == []

        client.post(f'{base}/cart/add', json={'productId': other.id, 'qty': 1})
        cart = client.delete(f'{base}/cart').get_json()['cart']
        assert cart['items'] == []

    def test_add_rejects_string_product_id(self, client, tenant1, product_tenant1):
        response = client.post(f'/api/storefront/{tenant1.slug}/cart/add',
                               json={'productId': str(product_tenant1.id), 'qty': 1})
        assert response.status_code == 400
        assert response.get_json()['error'] == 'VALIDATION_ERROR'

    def test_add_rejects_inactive_product(self, client, tenant1, make_product):
        draft = make_product(tenant1, status=ProductStatus.DRAFT)
        response = client.post(f'/api/storefront/{tenant1.slug}/cart/add', json={'productId': draft.id})
        assert response.status_code == 400
        assert response.get_json()['error'] == 'PRODUCT_NOT_FOUND'

    def test_catalog_lists_active_products_only(self, client, tenant1, product_tenant1, make_product):
        make_product(tenant1, name='Hidden', status=ProductStatus.INACTIVE)
        response = client.get(f'/api/storefront/{tenant1.slug}/products')
        assert response.status_code == 200
        names = [p['name'] for p in response.get_json()['products']]
        assert names == ['Product T1']


class TestCheckout:
    """Tests for POST /checkout."""

    def test_successful_checkout(self, client, session, tenant1, product_tenant1, place_order):
        response = place_order(tenant1, [(product_tenant1.id, 2)])
        assert response.status_code == 201
        data = response.get_json()
        assert data['success'] is True
        assert data['orderNumber'].startswith('ORD-')
        assert data['status'] == 'PENDING'
        assert data['total'] == '25.00'
        assert data['currency'] == 'KWD'

        order = session.query(Order).filter(Order.id == data['orderId']).one()
        assert order.tenant_id == tenant1.id
        assert order.subtotal == Decimal('25.00')
        assert [(i.product_id, i.qty, i.line_total) for i in order.items] == [
            (product_tenant1.id, 2, Decimal('25.00'))
        ]

        payment = session.query(Payment).filter(Payment.order_id == order.id).one()
        assert payment.id == data['paymentId']
        assert payment.status == PaymentStatus.PENDING
        assert payment.amount == Decimal('25.00')

        assert session.get(Product, product_tenant1.id).stock == 3
        move = session.query(StockMove).filter(StockMove.reference_id == order.id).one()
        assert move.type == StockMoveType.OUT
        assert move.qty == 2

    def test_cart_is_cleared_after_checkout(self, client, tenant1, product_tenant1, place_order):
        place_order(tenant1, [(product_tenant1.id, 1)])
        cart = client.get(f'/api/storefront/{tenant1.slug}/cart').get_json()['cart']
        assert cart['items'] == []

    def test_empty_cart(self, client, session, tenant1, checkout_info):
        response = client.post(f'/api/storefront/{tenant1.slug}/checkout', json=checkout_info)
        assert response.status_code == 400
        assert response.get_json()['error'] == 'CART_EMPTY'
        assert session.query(Order).count() == 0

    def test_live_price_wins_over_snapshot(self, client, session, tenant1, product_tenant1, place_order):
        client.post(f'/api/storefront/{tenant1.slug}/cart/add', json={'productId': product_tenant1.id, 'qty': 2})
        set_product(session, product_tenant1.id, price=Decimal('15.00'))

        response = place_order(tenant1, [])
        assert response.status_code == 201
        assert response.get_json()['total'] == '30.00'

        item = session.query(OrderItem).one()
        assert item.price_snapshot == Decimal('15.00')
        assert item.cart_price_snapshot == Decimal('12.50')

    def test_insufficient_stock_changes_nothing(self, client, session, tenant1, product_tenant1, make_product,
                                                place_order):
        plenty = make_product(tenant1, name='Plenty', stock=50)
        client.post(f'/api/storefront/{tenant1.slug}/cart/add', json={'productId': plenty.id, 'qty': 1})
        client.post(f'/api/storefront/{tenant1.slug}/cart/add', json={'productId': product_tenant1.id, 'qty': 4})
        set_product(session, product_tenant1.id, stock=2)

        response = place_order(tenant1, [])
        assert response.status_code == 400
        data = response.get_json()
        assert data['error'] == 'INSUFFICIENT_STOCK'
        assert data['productId'] == product_tenant1.id
        assert data['requested'] == 4
        assert data['available'] == 2

        assert session.get(Product, product_tenant1.id).stock == 2
        assert session.get(Product, plenty.id).stock == 50
        assert session.query(Order).count() == 0
        assert session.query(StockMove).count() == 0

        cart = client.get(f'/api/storefront/{tenant1.slug}/cart').get_json()['cart']
        assert len(cart['items']) == 2

    def test_product_deactivated_after_adding(self, client, session, tenant1, product_tenant1, place_order):
        client.post(f'/api/storefront/{tenant1.slug}/cart/add', json={'productId': product_tenant1.id, 'qty': 1})
        set_product(session, product_tenant1.id, status=ProductStatus.INACTIVE)

        response = place_order(tenant1, [])
        assert response.status_code == 400
        assert response.get_json()['error'] == 'PRODUCT_NOT_FOUND'
        assert session.get(Product, product_tenant1.id).stock == 5

    def test_suspended_tenant_rejects_checkout(self, client, session, tenant1, product_tenant1, place_order):
        client.post(f'/api/storefront/{tenant1.slug}/cart/add', json={'productId': product_tenant1.id, 'qty': 1})
        session.query(Tenant).filter(Tenant.id == tenant1.id).update({Tenant.status: TenantStatus.SUSPENDED})
        session.commit()

        response = place_order(tenant1, [])
        assert response.status_code == 403
        assert response.get_json()['error'] == 'TENANT_NOT_ACTIVE'

    def test_unknown_tenant(self, client, checkout_info):
        response = client.post('/api/storefront/nowhere/checkout', json=checkout_info)
        assert response.status_code == 404
        assert response.get_json()['error'] == 'TENANT_NOT_FOUND'

    def test_invalid_customer_details(self, client, session, tenant1, product_tenant1, place_order):
        response = place_order(tenant1, [(product_tenant1.id, 1)],
                               info={'name': 'X', 'email': 'not-an-email', 'phone': '123'})
        assert response.status_code == 400
        details = response.get_json()['details']
        assert set(details) == {'name', 'email', 'phone'}
        assert session.get(Product, product_tenant1.id).stock == 5

    def test_guest_customer_is_upserted_by_email(self, client, session, tenant1, product_tenant1, place_order):
        place_order(tenant1, [(product_tenant1.id, 1)],
                    info={'name': 'First Name', 'email': 'Repeat@Example.com', 'phone': '+96511111111'})
        place_order(tenant1, [(product_tenant1.id, 1)],
                    info={'name': 'Second Name', 'email': 'repeat@example.com', 'phone': '+96522222222'})

        customers = session.query(Customer).filter(Customer.tenant_id == tenant1.id).all()
        assert len(customers) == 1
        assert customers[0].email == 'repeat@example.com'
        assert customers[0].name == 'Second Name'
        assert customers[0].is_guest is True
        assert session.query(Order).filter(Order.customer_id == customers[0].id).count() == 2

    def test_signed_in_customer_is_bound(self, client, session, tenant1, product_tenant1, customer1,
                                         customer_headers, place_order):
        response = place_order(tenant1, [(product_tenant1.id, 1)], headers=customer_headers)
        assert response.status_code == 201
        order = session.get(Order, response.get_json()['orderId'])
        assert order.customer_id == customer1.id

    def test_guest_checkout_leaves_registered_account_untouched(self, client, session, tenant1, product_tenant1,
                                                                customer1, customer_headers, place_order):
        response = place_order(tenant1, [(product_tenant1.id, 1)],
                               info={'name': 'Anonymous Guest', 'email': customer1.email, 'phone': '+00000000'})
        assert response.status_code == 201
        order_id = response.get_json()['orderId']

        account = session.get(Customer, customer1.id)
        assert account.name == 'Signed In Shopper'
        assert account.phone == '+96550000000'
        assert account.is_guest is False

        order = session.get(Order, order_id)
        assert order.customer_id is None
        assert order.customer_name == 'Anonymous Guest'
        session.rollback()

        # The account holder cannot read an order placed anonymously with their email
        response = client.get(f'/api/storefront/{tenant1.slug}/orders/{order_id}', headers=customer_headers)
        assert response.status_code == 403

    def test_prices_are_frozen_on_the_order(self, client, session, tenant1, product_tenant1, place_order):
        response = place_order(tenant1, [(product_tenant1.id, 2)])
        assert response.status_code == 201
        order_id = response.get_json()['orderId']

        set_product(session, product_tenant1.id, price=Decimal('99.00'), name='Renamed')

        order = session.get(Order, order_id)
        assert order.total == Decimal('25.00')
        assert order.items[0].price_snapshot == Decimal('12.50')
        assert order.items[0].name_snapshot == 'Product T1'
        assert order.items[0].line_total == Decimal('25.00')

    def test_tax_and_shipping_from_tenant_settings(self, client, session, make_tenant, make_product, place_order):
        tenant = make_tenant(settings={'currency': 'KWD', 'tax_rate': '0.10', 'shipping_flat': '1.500'})
        product = make_product(tenant, price='20.00')

        response = place_order(tenant, [(product.id, 1)])
        assert response.status_code == 201
        assert response.get_json()['total'] == '23.50'

        order = session.get(Order, response.get_json()['orderId'])
        assert order.tax == Decimal('2.00')
        assert order.shipping == Decimal('1.50')
        assert order.status == OrderStatus.PENDING


class TestStoreInfo:
    """Tests for the public store header."""

    def test_active_store(self, client, make_tenant):
        tenant = make_tenant(name='Gulf Books', settings={'currency': 'USD'})
        response = client.get(f'/api/storefront/{tenant.slug.upper()}')
        assert response.status_code == 200
        assert response.get_json()['store'] == {
            'slug': tenant.slug, 'name': 'Gulf Books', 'template': 'retail', 'currency': 'USD',
        }

    def test_suspended_store(self, client, make_tenant):
        tenant = make_tenant(status=TenantStatus.SUSPENDED)
        response = client.get(f'/api/storefront/{tenant.slug}')
        assert response.status_code == 403
        assert response.get_json()['error'] == 'TENANT_NOT_ACTIVE'

    def test_unknown_store(self, client):
        response = client.get('/api/storefront/no-such-store')
        assert response.status_code == 404
        assert response.get_json()['error'] == 'TENANT_NOT_FOUND'
