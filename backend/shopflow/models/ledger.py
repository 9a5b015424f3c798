from __future__ import annotations

import json

from ..extensions import db
from shopflow.time_utils import to_utc_z


class ChangeEvent(db.Model):
    """
    Append-only change feed over the catalog and the sales ledger.

    Rows are written in the same transaction as the change they describe, so
    a reader never sees an event for a rolled-back write. The autoincrement
    id is the polling cursor.
    """
    __tablename__ = "change_events"
    __table_args__ = (
        db.Index("ix_change_events_collection_id", "collection", "id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    collection = db.Column(db.String(32), nullable=False)
    document_id = db.Column(db.String(32), nullable=False)
    event_type = db.Column(db.String(64), nullable=False)

    actor_user_id = db.Column(db.String(32), nullable=True)

    occurred_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    payload = db.Column(db.Text, nullable=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "collection": self.collection,
            "document_id": self.document_id,
            "event_type": self.event_type,
            "actor_user_id": self.actor_user_id,
            "occurred_at": to_utc_z(self.occurred_at),
            "payload": json.loads(self.payload) if self.payload else None,
        }
