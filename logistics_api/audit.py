"""
Audit context and options for route history.

The actor and request information travels as an explicit ``AuditContext``
argument from the HTTP layer down to the service, which turns it into history
entries according to the ``AuditOptions`` it was constructed with.
"""

from dataclasses import dataclass, field
from datetime import date, datetime, time, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Optional
from uuid import UUID

from pydantic import BaseModel

from logistics_api.models.route_history import ChangedField, HistoryMetadata


@dataclass(frozen=True)
class AuditContext:
    """Who performed a mutation, and from which request."""

    request_id: Optional[str] = None
    user_id: Optional[str] = None
    user_name: Optional[str] = None
    user_type: str = "system"
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    source: str = "api"
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @classmethod
    def system(cls, source: str = "system") -> "AuditContext":
        return cls(user_type="system", source=source)

    def actor_fields(self) -> dict[str, Optional[str]]:
        return {
            "user_id": self.user_id,
            "user_name": self.user_name,
            "user_type": self.user_type,
            "ip_address": self.ip_address,
            "user_agent": self.user_agent,
        }

    def metadata(self, reason: Optional[str] = None) -> HistoryMetadata:
        return HistoryMetadata(request_id=self.request_id, source=self.source, reason=reason)


@dataclass(frozen=True)
class AuditOptions:
    """Which route events are written to history and which fields are never diffed."""

    track_creation: bool = True
    track_updates: bool = True
    track_deletion: bool = True
    exclude_fields: frozenset[str] = frozenset({"updated_at", "created_at"})
    entity_display_name: str = "Route"


def to_audit_value(value: Any) -> Any:
    """Convert a value into something JSON serializable for the history table."""
    if value is None or isinstance(value, (str, int, float, bool)):
        return value
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (datetime, date, time)):
        return value.isoformat()
    if isinstance(value, (UUID, Decimal)):
        return str(value)
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json")
    if isinstance(value, (list, tuple)):
        return [to_audit_value(v) for v in value]
    if isinstance(value, dict):
        return {k: to_audit_value(v) for k, v in value.items()}
    return str(value)


def compute_changed_fields(
    current: BaseModel,
    updates: dict[str, Any],
    options: AuditOptions = AuditOptions(),
) -> list[ChangedField]:
    """
    Diff ``updates`` against the stored entity.

    Args:
        current: Entity as currently stored
        updates: Field values about to be written
        options: Audit options; excluded fields are never reported

    Returns:
        One ChangedField per field whose value actually changes
    """
    changes = []
    for name, new_value in updates.items():
        if name in options.exclude_fields:
            continue
        old_value = getattr(current, name, None)
        old_cmp, new_cmp = to_audit_value(old_value), to_audit_value(new_value)
        # numeric columns come back as float, inputs may be int
        if isinstance(old_cmp, (int, float)) and isinstance(new_cmp, (int, float)):
            if float(old_cmp) == float(new_cmp):
                continue
        elif old_cmp == new_cmp:
            continue
        changes.append(
            ChangedField(field_name=name, old_value=old_cmp, new_value=new_cmp)
        )
    return changes
