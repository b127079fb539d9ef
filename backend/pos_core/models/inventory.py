from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


class InventoryMovement(db.Model):
    """
    Append-only inventory ledger row.

    Stock on hand for (outlet, product) is SUM(quantity_delta) over
    COMPLETED movements. Rows are never updated or deleted; corrections are
    new compensating movements (see immutability.py).
    """
    __tablename__ = "inventory_movements"
    __table_args__ = (
        db.Index("ix_invmov_outlet_product_occurred", "outlet_id", "product_id", "occurred_at"),
        db.Index("ix_invmov_reference", "reference_type", "reference_id"),
        # One movement per referenced document line (a sale line is decremented once)
        db.UniqueConstraint(
            "outlet_id", "reference_type", "reference_id", "reference_line",
            name="uq_invmov_outlet_reference_line",
        ),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    outlet_id = db.Column(db.Integer, db.ForeignKey("outlets.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    # Signed: positive = receiving, negative = sale/consumption
    quantity_delta = db.Column(db.Integer, nullable=False)

    movement_type = db.Column(db.String(16), nullable=False, index=True)  # IN, OUT, ADJUSTMENT, TRANSFER

    reference_type = db.Column(db.String(16), nullable=True)  # SALE, PURCHASE, RETURN, MANUAL, LOSS, PRODUCTION, TRANSFER
    reference_id = db.Column(db.String(64), nullable=True)
    reference_line = db.Column(db.Integer, nullable=True)

    status = db.Column(db.String(16), nullable=False, default="COMPLETED", index=True)  # COMPLETED, PENDING, CANCELLED

    note = db.Column(db.String(255), nullable=True)
    created_by_user_id = db.Column(db.Integer, nullable=True)

    occurred_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        index=True,
    )

    outlet = db.relationship("Outlet")
    product = db.relationship("Product")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "outlet_id": self.outlet_id,
            "product_id": self.product_id,
            "quantity_delta": self.quantity_delta,
            "movement_type": self.movement_type,
            "reference_type": self.reference_type,
            "reference_id": self.reference_id,
            "reference_line": self.reference_line,
            "status": self.status,
            "note": self.note,
            "created_by_user_id": self.created_by_user_id,
            "occurred_at": to_utc_z(self.occurred_at),
        }


class StockLevel(db.Model):
    """
    Materialized stock counter per (outlet, product).

    A cache over InventoryMovement, updated in the same transaction as each
    COMPLETED movement. version_id gives compare-and-swap semantics: two
    writers decrementing the same counter cannot both commit.
    The ledger stays authoritative; reconcile_stock_levels() audits it.
    """
    __tablename__ = "stock_levels"
    __table_args__ = (
        db.UniqueConstraint("outlet_id", "product_id", name="uq_stock_levels_outlet_product"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    outlet_id = db.Column(db.Integer, db.ForeignKey("outlets.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    quantity = db.Column(db.Integer, nullable=False, default=0)
    last_movement_at = db.Column(db.DateTime(timezone=True), nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    product = db.relationship("Product")
    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self) -> dict:
        return {
            "outlet_id": self.outlet_id,
            "product_id": self.product_id,
            "quantity": self.quantity,
            "last_movement_at": to_utc_z(self.last_movement_at),
            "version_id": self.version_id,
        }
