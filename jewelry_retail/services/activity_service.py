from __future__ import annotations

from decimal import Decimal
from enum import Enum

from sqlalchemy.orm import Session

from jewelry_retail.models import ActivityLog


def _jsonable(value):
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, dict):
        return {key: _jsonable(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [_jsonable(item) for item in value]
    return value


def log_activity(
    db: Session,
    *,
    module: str,
    action: str,
    record_id: int | None,
    record_label: str | None,
    actor: str | None = None,
    new_value: dict | None = None,
) -> None:
    db.add(
        ActivityLog(
            module=module,
            action=action,
            record_id=record_id,
            record_label=record_label,
            actor=actor,
            new_value=_jsonable(new_value or {}),
        )
    )
