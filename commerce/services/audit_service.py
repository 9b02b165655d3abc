"""
Audit logging service for administrative actions.
"""
import json
import logging

from flask import has_request_context, request

from commerce.models.audit_log import AuditLog, AuditAction

logger = logging.getLogger(__name__)


def log_action(
    session,
    action: AuditAction,
    tenant_id: int,
    actor=None,
    resource_type: str = None,
    resource_id: int = None,
    details: dict = None
):
    """
    Add an audit entry to the session.

    Args:
        session: Database session
        action: AuditAction enum value
        tenant_id: Tenant the action applies to
        actor: classified caller (anything with a ``uid``) or None for system actions
        resource_type: Type of resource affected (e.g., 'order', 'product')
        resource_id: ID of the affected resource
        details: Dict with additional details (will be JSON encoded)
    """
    try:
        actor_uid = getattr(actor, 'uid', None)
        ip_address = request.remote_addr if has_request_context() else None

        details_json = None
        if details:
            details_json = json.dumps(details, default=str)

        session.add(AuditLog(
            tenant_id=tenant_id,
            actor_uid=actor_uid,
            action=action,
            resource_type=resource_type,
            resource_id=resource_id,
            details=details_json,
            ip_address=ip_address,
        ))
        # Note: Caller is responsible for committing the session

        logger.info(f"Audit log created: {action.value} by {actor_uid or 'system'} on {resource_type} {resource_id}")

    except Exception as e:
        # Audit failures should not break business logic
        logger.error(f"Failed to create audit log: {e}")


def get_audit_logs(session, tenant_id: int, limit: int = 100, offset: int = 0, action_filter: AuditAction = None):
    """Retrieve audit logs for a tenant, newest first."""
    query = session.query(AuditLog).filter(AuditLog.tenant_id == tenant_id)
    if action_filter:
        query = query.filter(AuditLog.action == action_filter)
    return query.order_by(AuditLog.id.desc()).limit(limit).offset(offset).all()
