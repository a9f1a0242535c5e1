"""Audit log endpoints (administrators only)."""

from datetime import datetime
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query

from ....application.services.booking_service import ensure_aware
from ....domain.entities.audit_record import AuditAction, AuditQuery
from ....domain.entities.principal import Principal
from ....infrastructure.services import ServiceFactory, get_service_factory
from ..middleware.auth import get_current_principal
from ..schemas.booking_schemas import (
    AuditLogListResponse,
    AuditRecordResponse
)

router = APIRouter()


@router.get("")
async def list_audit_logs(
    actor_id: Optional[UUID] = Query(None),
    action: Optional[AuditAction] = Query(None),
    entity_id: Optional[UUID] = Query(None),
    entity_type: Optional[str] = Query(None),
    occurred_from: Optional[datetime] = Query(None),
    occurred_to: Optional[datetime] = Query(None),
    limit: int = Query(50, ge=1, le=500),
    offset: int = Query(0, ge=0),
    principal: Principal = Depends(get_current_principal),
    factory: ServiceFactory = Depends(get_service_factory)
) -> AuditLogListResponse:
    """List audit records, newest first."""
    query = AuditQuery(
        actor_id=actor_id,
        action=action,
        entity_id=entity_id,
        entity_type=entity_type,
        occurred_from=ensure_aware(occurred_from) if occurred_from else None,
        occurred_to=ensure_aware(occurred_to) if occurred_to else None,
        limit=limit,
        offset=offset
    )
    async with factory.get_audit_reader() as audit_reader:
        records = await audit_reader.list_records(principal, query)
    return AuditLogListResponse(
        records=[AuditRecordResponse.from_record(record) for record in records],
        count=len(records),
        limit=limit,
        offset=offset
    )
