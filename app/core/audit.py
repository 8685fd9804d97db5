"""Audit log for money-moving and admin actions."""

from typing import Any

from app.core.logging import get_logger
from app.models.audit_log import AuditLog

log = get_logger(__name__)


async def log_event(
    user_id: str | None,
    event_type: str,
    entity_type: str,
    entity_id: str | None = None,
    metadata: dict[str, Any] | None = None,
) -> None:
    """Append to audit_logs. An audit write failure is logged, never fails the money movement."""
    try:
        await AuditLog(
            user_id=user_id,
            event_type=event_type,
            entity_type=entity_type,
            entity_id=entity_id,
            metadata=metadata or {},
        ).insert()
    except Exception:
        log.exception("audit_write_failed", event_type=event_type, entity_type=entity_type, entity_id=entity_id)
