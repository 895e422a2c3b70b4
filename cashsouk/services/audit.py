from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Any, Iterable

from fastapi.encoders import jsonable_encoder
from sqlalchemy.ext.asyncio import AsyncSession

from cashsouk.core.context import get_request_id
from cashsouk.core.logging import get_audit_logger
from cashsouk.models.audit_log import AuditLog

# Step payloads nest deeply (document lists, declarations); diffs stop at column.field.
MAX_DIFF_DEPTH = 2
SUMMARY_FIELDS = 3

_AUDIT_ENCODERS = {
    Decimal: str,
    datetime: lambda value: value.isoformat(),
    date: lambda value: value.isoformat(),
}


def serialize_for_audit(value: Any) -> Any:
    return jsonable_encoder(value, custom_encoder=_AUDIT_ENCODERS)


def model_snapshot(model: Any, *, exclude: Iterable[str] | None = None) -> dict[str, Any]:
    """Column values of an ORM row, JSON-ready."""
    if model is None:
        return {}
    skipped = set(exclude or ())
    return serialize_for_audit(
        {column.name: getattr(model, column.name) for column in model.__table__.columns if column.name not in skipped}
    )


def changed_paths(old: Any, new: Any, *, depth: int = MAX_DIFF_DEPTH, prefix: str = "") -> dict[str, dict[str, Any]]:
    if depth > 0 and isinstance(old, dict) and isinstance(new, dict):
        changes: dict[str, dict[str, Any]] = {}
        for key in sorted(set(old) | set(new), key=str):
            path = f"{prefix}.{key}" if prefix else str(key)
            changes.update(changed_paths(old.get(key), new.get(key), depth=depth - 1, prefix=path))
        return changes
    if old == new:
        return {}
    return {prefix or "value": {"from": old, "to": new}}


def _summary(action: str, changes: dict[str, dict[str, Any]] | None) -> str:
    if not changes:
        return action
    paths = list(changes)
    shown = ", ".join(paths[:SUMMARY_FIELDS])
    if len(paths) > SUMMARY_FIELDS:
        shown += f" (+{len(paths) - SUMMARY_FIELDS} more)"
    return f"{action}: {shown}"


def record_audit_log(
    db: AsyncSession,
    *,
    org_id: str | None,
    actor_id: str | None,
    action: str,
    resource_type: str,
    resource_id: str,
    old_value: Any | None = None,
    new_value: Any | None = None,
) -> AuditLog:
    """Stage an audit row in the caller's transaction and mirror it to the audit log stream."""
    before = serialize_for_audit(old_value) if old_value is not None else None
    after = serialize_for_audit(new_value) if new_value is not None else None
    changes = None
    if before is not None or after is not None:
        changes = changed_paths(before or {}, after or {}) or None
    entry = AuditLog(
        org_id=org_id,
        actor_id=actor_id,
        action=action,
        resource_type=resource_type,
        resource_id=resource_id,
        old_value=before,
        new_value=after,
        changes=changes,
        summary=_summary(action, changes),
    )
    db.add(entry)
    get_audit_logger().info(
        entry.summary,
        extra={
            "fields": {
                "action": action,
                "resource_type": resource_type,
                "resource_id": resource_id,
                "org_id": org_id,
                "audit_request_id": get_request_id(),
            }
        },
    )
    return entry
