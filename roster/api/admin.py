"""Admin API router: token metadata inspection and the audit trail."""

from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from roster.core.permissions import Principal, require_admin_read
from roster.db.session import get_db
from roster.schemas.schemas import AuditLogOut, SessionMetadataOut
from roster.services.audit_service import audit_service
from roster.services.auth_service import auth_service

router = APIRouter(tags=["admin"])


@router.get("/token-metadata/{id}", response_model=SessionMetadataOut)
def get_token_metadata(
    id: int,
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_admin_read),
):
    """One session-metadata record, without its token hash."""
    return SessionMetadataOut.model_validate(auth_service.get_session_metadata(db, id))


@router.get("/audit")
def get_audit_logs(
    action: Optional[str] = Query(None),
    resource_type: Optional[str] = Query(None, alias="resourceType"),
    actor_id: Optional[int] = Query(None, alias="actorId"),
    since: Optional[datetime] = Query(None),
    page: int = Query(1, ge=1),
    page_size: int = Query(50, ge=1, le=200, alias="pageSize"),
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_admin_read),
):
    result = audit_service.query_logs(db, actor_id, action, resource_type, since, page, page_size)
    return {
        "logs": [AuditLogOut.model_validate(log).model_dump(by_alias=True) for log in result["logs"]],
        "total": result["total"],
        "page": result["page"],
        "pageSize": result["page_size"],
    }
