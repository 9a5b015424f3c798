from __future__ import annotations

from ..extensions import db
from shopflow.time_utils import to_utc_z
from .catalog import new_document_id


class Sale(db.Model):
    """
    Immutable sale record written by checkout.

    WHY: A sale is the point-in-time copy of what the customer was charged.
    total_amount_cents is computed once from the cart snapshot and never
    recomputed; later returns and price recalculations only touch individual
    items.
    """
    __tablename__ = "sales"
    __table_args__ = (
        db.Index("ix_sales_created_at", "created_at"),
        db.Index("ix_sales_created_by_created_at", "created_by", "created_at"),
    )

    id = db.Column(db.String(32), primary_key=True, default=new_document_id)

    total_amount_cents = db.Column(db.Integer, nullable=False)

    # User attribution, copied at sale time
    created_by = db.Column(db.String(32), nullable=False)
    created_by_name = db.Column(db.String(255), nullable=True)
    created_by_role = db.Column(db.String(16), nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    version_id = db.Column(db.Integer, nullable=False, default=1)

    items = db.relationship(
        "SaleItem",
        back_populates="sale",
        order_by="SaleItem.position",
        lazy="selectin",
    )
    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Sale id={self.id} total_amount_cents={self.total_amount_cents}>"

    def item_at(self, index: int) -> "SaleItem | None":
        for item in self.items:
            if item.position == index:
                return item
        return None

    def to_dict(self, include_costs: bool = True) -> dict:
        return {
            "id": self.id,
            "items": [item.to_dict(include_costs=include_costs) for item in self.items],
            "total_amount_cents": self.total_amount_cents,
            "created_by": self.created_by,
            "created_by_name": self.created_by_name,
            "created_by_role": self.created_by_role,
            "created_at": to_utc_z(self.created_at),
            "version_id": self.version_id,
        }


class SaleItem(db.Model):
    """
    One line of a sale, addressed by its position within the sale.

    product_id is a plain copy, not a foreign key: the product may be deleted
    later and the sale must still read back intact.

    returned is a one-way flag. Once set, returned_at/returned_by/
    returned_by_role are never written again.
    """
    __tablename__ = "sale_items"
    __table_args__ = (
        db.UniqueConstraint("sale_id", "position", name="uq_sale_items_sale_position"),
        # productId -> sales lookup used by price recalculation
        db.Index("ix_sale_items_product_id", "product_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    sale_id = db.Column(db.String(32), db.ForeignKey("sales.id"), nullable=False, index=True)
    position = db.Column(db.Integer, nullable=False)

    product_id = db.Column(db.String(32), nullable=False)
    name = db.Column(db.String(255), nullable=False)

    quantity = db.Column(db.Integer, nullable=False)
    purchase_price_cents = db.Column(db.Integer, nullable=False, default=0)
    selling_price_cents = db.Column(db.Integer, nullable=False)

    returned = db.Column(db.Boolean, nullable=False, default=False)
    returned_at = db.Column(db.DateTime(timezone=True), nullable=True)
    returned_by = db.Column(db.String(32), nullable=True)
    returned_by_role = db.Column(db.String(16), nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    sale = db.relationship("Sale", back_populates="items")
    __mapper_args__ = {"version_id_col": version_id}

    @property
    def line_total_cents(self) -> int:
        return self.selling_price_cents * self.quantity

    @property
    def profit_cents(self) -> int:
        return (self.selling_price_cents - self.purchase_price_cents) * self.quantity

    def to_dict(self, include_costs: bool = True) -> dict:
        data = {
            "index": self.position,
            "product_id": self.product_id,
            "name": self.name,
            "quantity": self.quantity,
            "selling_price_cents": self.selling_price_cents,
            "line_total_cents": self.line_total_cents,
            "returned": self.returned,
            "returned_at": to_utc_z(self.returned_at) if self.returned_at else None,
            "returned_by": self.returned_by,
            "returned_by_role": self.returned_by_role,
        }
        if include_costs:
            data["purchase_price_cents"] = self.purchase_price_cents
        return data
