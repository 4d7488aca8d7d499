"""
Audit feed API routes.
"""
from typing import List, Optional
from datetime import datetime

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel

from app.core.config import settings
from app.core.rbac import get_registry
from app.db.models import AuditKind
from app.services.registry import MedicineRegistry

router = APIRouter(prefix="/api/audit", tags=["Audit"])


# ============= SCHEMAS =============

class AuditRecordResponse(BaseModel):
    seq: int
    kind: AuditKind
    fields: dict
    timestamp: datetime


class AuditPage(BaseModel):
    events: List[AuditRecordResponse]
    next_cursor: int


# ============= ROUTES =============

@router.get("/events", response_model=AuditPage)
async def poll_audit_events(
    after: int = Query(0, ge=0, description="Return records with seq greater than this cursor"),
    limit: int = Query(100, ge=1),
    kind: Optional[AuditKind] = Query(None, description="Filter by event kind"),
    registry: MedicineRegistry = Depends(get_registry),
):
    """Poll the append-only audit feed in append order."""
    records = registry.audit_events(after=after, limit=min(limit, settings.AUDIT_POLL_MAX), kind=kind)
    events = [
        AuditRecordResponse(seq=r.seq, kind=r.kind, fields=r.fields, timestamp=r.timestamp)
        for r in records
    ]
    return AuditPage(events=events, next_cursor=events[-1].seq if events else after)
