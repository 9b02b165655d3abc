"""Tenant staff memberships: listing, role changes and revocation."""
import logging

from commerce.exceptions import BusinessLogicError, NotFoundError, ValidationError
from commerce.models import AppUser, Membership, MembershipRole, MembershipStatus
from commerce.models.audit_log import AuditAction
from commerce.services import audit_service

logger = logging.getLogger(__name__)


def list_members(session, tenant_id, include_revoked=False):
    query = session.query(Membership).filter(Membership.tenant_id == tenant_id)
    if not include_revoked:
        query = query.filter(Membership.status != MembershipStatus.REVOKED)
    return query.order_by(Membership.id).all()


def member_to_dict(membership):
    return {
        'userId': membership.user_id,
        'email': membership.user.email if membership.user else None,
        'fullName': membership.user.full_name if membership.user else None,
        'role': membership.role,
        'status': membership.status.value,
    }


def _get_member(session, tenant_id, user_id):
    membership = session.query(Membership).filter(
        Membership.tenant_id == tenant_id,
        Membership.user_id == user_id
    ).with_for_update().first()
    if membership is None:
        raise NotFoundError(f'Member {user_id} not found', code='MEMBER_NOT_FOUND', payload={'userId': user_id})
    return membership


def _active_owner_count(session, tenant_id):
    return session.query(Membership).filter(
        Membership.tenant_id == tenant_id,
        Membership.role == MembershipRole.OWNER.value,
        Membership.status == MembershipStatus.ACTIVE
    ).count()


def _guard_last_owner(session, membership):
    if membership.is_owner() and membership.is_active and _active_owner_count(session, membership.tenant_id) <= 1:
        raise BusinessLogicError('A store must keep at least one active owner', code='LAST_OWNER')


def add_member(session, tenant_id, user, role=MembershipRole.STAFF.value):
    """Create or reactivate a membership. Does not commit."""
    role = _parse_role(role)
    membership = session.query(Membership).filter(
        Membership.tenant_id == tenant_id,
        Membership.user_id == user.id
    ).first()
    if membership is None:
        membership = Membership(tenant_id=tenant_id, user_id=user.id, role=role,
                                status=MembershipStatus.ACTIVE)
        session.add(membership)
    else:
        membership.role = role
        membership.status = MembershipStatus.ACTIVE
    return membership


def _parse_role(role):
    try:
        return MembershipRole(str(role).upper()).value
    except ValueError:
        raise ValidationError(f'Unknown role: {role}', details={'role': role})


def change_role(session, tenant_id, user_id, new_role, actor=None):
    """Change a member's role. The last active owner cannot be demoted."""
    new_role = _parse_role(new_role)
    try:
        membership = _get_member(session, tenant_id, user_id)
        if membership.status == MembershipStatus.REVOKED:
            raise BusinessLogicError('Revoked members cannot change role', code='MEMBER_REVOKED')
        if membership.role != new_role:
            if new_role != MembershipRole.OWNER.value:
                _guard_last_owner(session, membership)
            old_role = membership.role
            membership.role = new_role
            audit_service.log_action(
                session, AuditAction.MEMBER_ROLE_CHANGED, tenant_id=tenant_id, actor=actor,
                resource_type='membership', resource_id=membership.id,
                details={'userId': user_id, 'from': old_role, 'to': new_role}
            )
        session.commit()
    except Exception:
        session.rollback()
        raise
    return membership


def revoke_member(session, tenant_id, user_id, actor=None):
    """Flip a membership to REVOKED. Never hard-deletes."""
    try:
        membership = _get_member(session, tenant_id, user_id)
        if membership.status != MembershipStatus.REVOKED:
            _guard_last_owner(session, membership)
            membership.status = MembershipStatus.REVOKED
            audit_service.log_action(
                session, AuditAction.MEMBER_REVOKED, tenant_id=tenant_id, actor=actor,
                resource_type='membership', resource_id=membership.id, details={'userId': user_id}
            )
        session.commit()
    except Exception:
        session.rollback()
        raise
    logger.info(f"Membership of user {user_id} in tenant {tenant_id} revoked")
    return membership


def get_or_create_user(session, uid, email, full_name=None):
    """Find an AppUser by uid, creating it if needed. Does not commit."""
    user = session.query(AppUser).filter(AppUser.uid == uid).first()
    if user is None:
        user = AppUser(uid=uid, email=email.strip().lower(), full_name=full_name, active=True)
        session.add(user)
        session.flush()
    return user
