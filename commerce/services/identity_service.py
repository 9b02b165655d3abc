"""
Identity classification.

Maps a verified identity token onto exactly one of three caller variants.
Every failure is an UnauthenticatedError; there is no default user type.
"""
import logging
from dataclasses import dataclass, field
from typing import ClassVar, Optional, Tuple, Union

import jwt

from commerce.exceptions import UnauthenticatedError
from commerce.models import AppUser, Customer, Membership, MembershipStatus, PlatformAdmin, Tenant
from commerce.services.access_service import CUSTOMER_ROLE, UserType, permissions_for

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class VerifiedIdentity:
    uid: str
    email: str
    claims: dict = field(default_factory=dict)


class TokenVerifier:
    """Verifies HS256-style identity tokens issued by the identity provider."""

    def __init__(self, secret, algorithms=('HS256',), audience=None, leeway=0):
        self.secret = secret
        self.algorithms = list(algorithms)
        self.audience = audience
        self.leeway = leeway

    @classmethod
    def from_config(cls, config):
        return cls(
            secret=config['IDENTITY_TOKEN_SECRET'],
            algorithms=config.get('IDENTITY_TOKEN_ALGORITHMS', ['HS256']),
            audience=config.get('IDENTITY_TOKEN_AUDIENCE'),
        )

    def verify(self, token) -> VerifiedIdentity:
        """
        Verify a token and return the identity it names.

        Raises:
            UnauthenticatedError: missing, expired or invalid token, or one
                without ``sub``/``email`` claims
        """
        if not token:
            raise UnauthenticatedError('Missing identity token')
        try:
            claims = jwt.decode(
                token,
                self.secret,
                algorithms=self.algorithms,
                audience=self.audience,
                leeway=self.leeway,
                options={'verify_aud': self.audience is not None},
            )
        except jwt.ExpiredSignatureError:
            raise UnauthenticatedError('Identity token expired')
        except jwt.InvalidTokenError as e:
            logger.info(f"Rejected identity token: {e}")
            raise UnauthenticatedError('Invalid identity token')

        uid = claims.get('sub')
        email = claims.get('email')
        if not uid or not email:
            raise UnauthenticatedError('Identity token lacks subject or email')
        return VerifiedIdentity(uid=str(uid), email=str(email).lower(), claims=claims)


def extract_token(request, cookie_name='session'):
    """Bearer token from the Authorization header, else the identity cookie."""
    header = request.headers.get('Authorization', '')
    if header.lower().startswith('bearer '):
        token = header[7:].strip()
        if token:
            return token
    return request.cookies.get(cookie_name) or None


@dataclass(frozen=True)
class CustomerContext:
    uid: str
    email: str
    tenant_id: int
    tenant_slug: str
    customer_id: Optional[int] = None
    role: str = CUSTOMER_ROLE
    permissions: Tuple[str, ...] = permissions_for(UserType.CUSTOMER, CUSTOMER_ROLE)
    user_type: ClassVar[UserType] = UserType.CUSTOMER


@dataclass(frozen=True)
class MerchantAdminContext:
    uid: str
    email: str
    user_id: int
    role: str
    tenant_id: int
    tenant_slug: str
    permissions: Tuple[str, ...] = ()
    user_type: ClassVar[UserType] = UserType.MERCHANT_ADMIN


@dataclass(frozen=True)
class PlatformAdminContext:
    uid: str
    email: str
    user_id: int
    role: str
    permissions: Tuple[str, ...] = ()
    tenant_id: ClassVar[None] = None
    tenant_slug: ClassVar[None] = None
    user_type: ClassVar[UserType] = UserType.PLATFORM_ADMIN


UserContext = Union[CustomerContext, MerchantAdminContext, PlatformAdminContext]


def context_to_dict(context):
    """JSON-friendly view of a classified caller."""
    data = {
        'uid': context.uid,
        'email': context.email,
        'userType': context.user_type.value,
        'role': context.role,
        'tenantId': context.tenant_id,
        'tenantSlug': context.tenant_slug,
        'permissions': list(context.permissions),
    }
    if isinstance(context, CustomerContext):
        data['customerId'] = context.customer_id
    return data


def _tenant_for_claim(session, identity):
    slug = (identity.claims.get('tenant_slug') or '').strip().lower()
    if not slug:
        raise UnauthenticatedError('Identity token lacks a tenant binding')
    tenant = session.query(Tenant).filter(Tenant.slug == slug).first()
    if tenant is None:
        raise UnauthenticatedError('Identity token names an unknown tenant')
    return tenant


def _classify_platform_admin(session, identity):
    admin = (
        session.query(PlatformAdmin)
        .join(AppUser, AppUser.id == PlatformAdmin.user_id)
        .filter(
            AppUser.uid == identity.uid,
            AppUser.active == True,  # noqa: E712
            PlatformAdmin.active == True,  # noqa: E712
        )
        .first()
    )
    if admin is None:
        raise UnauthenticatedError('No active platform admin record for this identity')
    return PlatformAdminContext(
        uid=identity.uid,
        email=identity.email,
        user_id=admin.user_id,
        role=admin.role,
        permissions=permissions_for(UserType.PLATFORM_ADMIN, admin.role),
    )


def _classify_merchant_admin(session, identity):
    tenant = _tenant_for_claim(session, identity)
    user = session.query(AppUser).filter(AppUser.uid == identity.uid, AppUser.active == True).first()  # noqa: E712
    if user is None:
        raise UnauthenticatedError('No active user for this identity')

    membership = session.query(Membership).filter(
        Membership.tenant_id == tenant.id,
        Membership.user_id == user.id,
        Membership.status == MembershipStatus.ACTIVE,
    ).first()
    if membership is None:
        raise UnauthenticatedError('No active membership for this tenant')

    # Role always comes from the membership row, never from token claims
    return MerchantAdminContext(
        uid=identity.uid,
        email=identity.email,
        user_id=user.id,
        role=membership.role,
        tenant_id=tenant.id,
        tenant_slug=tenant.slug,
        permissions=permissions_for(UserType.MERCHANT_ADMIN, membership.role),
    )


def _classify_customer(session, identity):
    tenant = _tenant_for_claim(session, identity)
    customer = session.query(Customer).filter(
        Customer.tenant_id == tenant.id,
        Customer.uid == identity.uid,
    ).first()
    return CustomerContext(
        uid=identity.uid,
        email=identity.email,
        tenant_id=tenant.id,
        tenant_slug=tenant.slug,
        customer_id=customer.id if customer else None,
    )


_CLASSIFIERS = {
    UserType.PLATFORM_ADMIN: _classify_platform_admin,
    UserType.MERCHANT_ADMIN: _classify_merchant_admin,
    UserType.CUSTOMER: _classify_customer,
}


def classify_identity(session, identity: VerifiedIdentity) -> UserContext:
    """
    Classify a verified identity into exactly one caller variant.

    Raises:
        UnauthenticatedError: unknown or missing user type, or the records
            the type requires are absent or inactive
    """
    raw_type = identity.claims.get('user_type')
    try:
        user_type = UserType(raw_type)
    except ValueError:
        raise UnauthenticatedError('Identity token has no recognised user type')

    return _CLASSIFIERS[user_type](session, identity)
