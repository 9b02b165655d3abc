"""Customer lookup and guest upsert."""
import logging

from sqlalchemy.exc import IntegrityError

from commerce.models import Customer

logger = logging.getLogger(__name__)


def get_customer_by_uid(session, tenant_id, uid):
    return session.query(Customer).filter(
        Customer.tenant_id == tenant_id,
        Customer.uid == uid
    ).first()


def get_or_create_customer(session, tenant_id: int, email: str, name: str, phone: str = None, uid: str = None):
    """
    Get or create the customer keyed by (tenant_id, email).

    Safe under concurrent checkouts thanks to the unique constraint on
    (tenant_id, email): the insert runs in a savepoint and a losing racer
    re-reads the winner's row. Does not commit.

    Returns:
        Customer
    """
    email = email.strip().lower()

    customer = session.query(Customer).filter(
        Customer.tenant_id == tenant_id,
        Customer.email == email
    ).first()

    if customer is None:
        try:
            with session.begin_nested():
                customer = Customer(
                    tenant_id=tenant_id,
                    email=email,
                    name=name,
                    phone=phone,
                    uid=uid,
                    is_guest=uid is None
                )
                session.add(customer)
            return customer
        except IntegrityError:
            # Race condition: another checkout created it simultaneously
            logger.info(f"Customer {email} created concurrently for tenant {tenant_id}; re-reading")
            customer = session.query(Customer).filter(
                Customer.tenant_id == tenant_id,
                Customer.email == email
            ).one()

    if uid is None:
        # Anonymous checkouts only refresh guest rows; accounts are left untouched
        if customer.is_guest and not customer.uid:
            customer.name = name
            if phone:
                customer.phone = phone
        return customer

    if customer.uid is None or customer.uid == uid:
        customer.name = name
        if phone:
            customer.phone = phone
        if not customer.uid:
            customer.uid = uid
            customer.is_guest = False
    return customer


def list_customers(session, tenant_id, search=None, limit=50, offset=0):
    query = session.query(Customer).filter(Customer.tenant_id == tenant_id)
    if search:
        pattern = f'%{search.strip().lower()}%'
        query = query.filter(Customer.email.like(pattern) | Customer.name.ilike(pattern))
    return query.order_by(Customer.id.desc()).limit(limit).offset(offset).all()
