# Overview: Append-only activity log written inside the caller's unit of work.

from __future__ import annotations

import json
from typing import Any

from ..extensions import db
from ..models import ActivityEvent
"""
Activity Log Invariants (authoritative)

- Append-only: no updates or deletes of existing events.
- No domain logic here; callers decide what is worth recording.
- Events are flushed inside the same transaction as the change they record,
  so a rolled-back operation leaves no activity behind.
"""


def append_activity(
    *,
    entity_type: str,
    entity_id: int,
    action: str,
    actor: str | None = None,
    payload: dict[str, Any] | None = None,
) -> ActivityEvent:
    ev = ActivityEvent(
        entity_type=entity_type,
        entity_id=entity_id,
        action=action,
        actor=actor,
        payload=json.dumps(payload, sort_keys=True, default=str) if payload is not None else None,
    )
    db.session.add(ev)
    db.session.flush()  # ensures ev.id is assigned without committing
    return ev


def list_activity(*, entity_type: str | None = None, entity_id: int | None = None, limit: int = 100):
    q = ActivityEvent.query
    if entity_type is not None:
        q = q.filter(ActivityEvent.entity_type == entity_type)
    if entity_id is not None:
        q = q.filter(ActivityEvent.entity_id == entity_id)
    return q.order_by(ActivityEvent.id.desc()).limit(limit).all()
