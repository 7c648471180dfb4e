"""Audit service: append-only trail of authentication events."""

import logging
from datetime import datetime
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from roster.models.audit_log import AuditLog

logger = logging.getLogger("roster.audit")

# Event names written by the auth and admin flows
USER_REGISTER = "user.register"
USER_LOGIN = "user.login"
USER_LOGIN_FAILED = "user.login_failed"
USER_LOGOUT = "user.logout"
USER_DELETED = "user.deleted"
TOKEN_REFRESH = "token.refresh"
TOKEN_REFRESH_REJECTED = "token.refresh_rejected"
SESSION_REVOKED = "session.revoked"

# Failures worth a WARNING in the application log as well
SUSPICIOUS_ACTIONS = {USER_LOGIN_FAILED, TOKEN_REFRESH_REJECTED}


class AuditService:
    """Writes and queries audit entries. Rows are never updated or deleted."""

    @staticmethod
    def log(
        db: Session,
        actor_id: Optional[int],
        actor_email: Optional[str],
        action: str,
        resource_type: str,
        resource_id=None,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> Optional[AuditLog]:
        """Persist one event and commit it.

        Called after the flow's own transaction has committed. A failed write
        is rolled back and logged, never raised: the caller has already
        persisted new tokens and must still receive them.
        """
        entry = AuditLog(
            actor_id=actor_id,
            actor_email=actor_email,
            action=action,
            resource_type=resource_type,
            resource_id=str(resource_id) if resource_id is not None else None,
            ip_address=ip_address or None,
            user_agent=(user_agent or "")[:500] or None,
        )
        try:
            db.add(entry)
            db.commit()
        except SQLAlchemyError:
            db.rollback()
            logger.exception("Could not record audit event %s for actor %s", action, actor_id)
            return None

        level = logging.WARNING if action in SUSPICIOUS_ACTIONS else logging.INFO
        logger.log(level, "%s actor=%s %s:%s ip=%s", action, actor_id, resource_type, resource_id, ip_address)
        return entry

    @staticmethod
    def query_logs(
        db: Session,
        actor_id: Optional[int] = None,
        action: Optional[str] = None,
        resource_type: Optional[str] = None,
        since: Optional[datetime] = None,
        page: int = 1,
        page_size: int = 50,
    ):
        """Newest first. ``action`` matches as a substring (``user.login``
        also finds ``user.login_failed``)."""
        query = db.query(AuditLog)
        if actor_id is not None:
            query = query.filter(AuditLog.actor_id == actor_id)
        if action:
            query = query.filter(AuditLog.action.contains(action))
        if resource_type:
            query = query.filter(AuditLog.resource_type == resource_type)
        if since is not None:
            query = query.filter(AuditLog.created_at >= since)

        total = query.count()
        logs = (
            query.order_by(AuditLog.created_at.desc(), AuditLog.id.desc())
            .offset((page - 1) * page_size)
            .limit(page_size)
            .all()
        )
        return {"logs": logs, "total": total, "page": page, "page_size": page_size}


audit_service = AuditService()
