"""Audit log model: append-only."""

from sqlalchemy import Column, Integer, String, DateTime, func
from roster.db.base import Base


class AuditLog(Base):
    """Immutable trail of authentication events.

    This table is APPEND-ONLY: no UPDATE or DELETE operations should ever
    be performed on it (enforced at application level). ``actor_id`` is a
    plain column so entries outlive deleted users.
    """
    __tablename__ = "audit_logs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    actor_id = Column(Integer, nullable=True, index=True)
    actor_email = Column(String(255), nullable=True)
    action = Column(String(100), nullable=False, index=True)  # e.g. "user.login"
    resource_type = Column(String(50), nullable=False, index=True)  # user, session, role
    resource_id = Column(String(100), nullable=True)
    ip_address = Column(String(45), nullable=True)
    user_agent = Column(String(500), nullable=True)
    created_at = Column(DateTime, server_default=func.now(), nullable=False, index=True)
