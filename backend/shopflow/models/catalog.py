from __future__ import annotations

import uuid

from ..extensions import db
from shopflow.time_utils import to_utc_z


def new_document_id() -> str:
    return uuid.uuid4().hex


class Product(db.Model):
    """
    Catalog entry: what the shop sells and how many are on hand.

    STOCK INVARIANT:
    quantity never goes negative. Checkout is the only path that decrements it
    and Return is the only path that increments it; both run inside a locked
    transaction and bump version_id, so a concurrent writer holding a stale
    row fails with StaleDataError instead of overwriting.

    BARCODE:
    Optional and deliberately not unique. Lookups by barcode may return
    several products.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.Index("ix_products_name", "name"),
        db.Index("ix_products_created_at", "created_at"),
    )

    id = db.Column(db.String(32), primary_key=True, default=new_document_id)

    name = db.Column(db.String(255), nullable=False)
    barcode = db.Column(db.String(64), nullable=True, index=True)

    # Authoritative storage in cents (frontend may only format for display)
    purchase_price_cents = db.Column(db.Integer, nullable=False, default=0)
    selling_price_cents = db.Column(db.Integer, nullable=False, default=0)

    quantity = db.Column(db.Integer, nullable=False, default=0)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Product id={self.id} name={self.name!r} quantity={self.quantity}>"

    def to_dict(self, include_costs: bool = True) -> dict:
        data = {
            "id": self.id,
            "name": self.name,
            "barcode": self.barcode,
            "selling_price_cents": self.selling_price_cents,
            "quantity": self.quantity,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
        if include_costs:
            data["purchase_price_cents"] = self.purchase_price_cents
        return data
