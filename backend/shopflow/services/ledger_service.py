# Overview: Service-layer operations for the change feed; encapsulates business logic and database work.

from __future__ import annotations

import json
from typing import Optional
from datetime import datetime

from ..extensions import db
from ..models import ChangeEvent
from shopflow.time_utils import utcnow
"""
Change Feed Invariants (authoritative)

- Append-only log of catalog and ledger changes.
- No domain/business logic in the feed itself.
- Events are written inside the same DB transaction as the change they record.
- The event id is the polling cursor: readers ask for everything after the
  last id they saw.
"""

COLLECTIONS = {"products", "sales"}


def record_change(
    *,
    collection: str,
    document_id: str,
    event_type: str,
    actor_user_id: str | None = None,
    occurred_at: Optional[datetime] = None,
    payload: Optional[dict] = None,
) -> ChangeEvent:
    """
    Append a change event to the current transaction.

    - No commit here; the caller's commit publishes it.
    - occurred_at defaults to now (UTC).
    """
    if collection not in COLLECTIONS:
        raise ValueError(f"Unknown collection {collection!r}")

    ev = ChangeEvent(
        collection=collection,
        document_id=document_id,
        event_type=event_type,
        actor_user_id=actor_user_id,
        occurred_at=occurred_at or utcnow(),
        payload=json.dumps(payload, sort_keys=True) if payload is not None else None,
    )
    db.session.add(ev)
    return ev


def changes_since(after_id: int = 0, collection: str | None = None, limit: int = 200) -> dict:
    """Events with id > after_id, oldest first, plus the cursor to resume from."""
    query = db.session.query(ChangeEvent).filter(ChangeEvent.id > after_id)
    if collection:
        query = query.filter(ChangeEvent.collection == collection)

    events = query.order_by(ChangeEvent.id.asc()).limit(limit).all()
    cursor = events[-1].id if events else after_id
    return {
        "events": [event.to_dict() for event in events],
        "cursor": cursor,
        "has_more": len(events) == limit,
    }
