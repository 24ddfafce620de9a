"""Audit log for account lifecycle and image removal."""

from typing import Any

from imaginify.models.audit_log import AuditLog


async def log_event(
    clerk_id: str | None,
    event_type: str,
    entity_type: str,
    entity_id: str | None = None,
    metadata: dict[str, Any] | None = None,
) -> None:
    """Append to audit_logs collection."""
    await AuditLog(
        clerk_id=clerk_id,
        event_type=event_type,
        entity_type=entity_type,
        entity_id=entity_id,
        metadata=metadata or {},
    ).insert()
