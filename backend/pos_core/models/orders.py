from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


class Order(db.Model):
    """
    Point-of-sale order.

    Created once by the sale orchestrator, already CONFIRMED and PAID: a
    counter sale settles immediately. Its inventory movements and its single
    register ledger entry reference it by (reference_type='SALE',
    reference_id=str(order.id)).
    """
    __tablename__ = "orders"
    __table_args__ = (
        db.UniqueConstraint("outlet_id", "number", name="uq_orders_outlet_number"),
        db.Index("ix_orders_outlet_created", "outlet_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    outlet_id = db.Column(db.Integer, db.ForeignKey("outlets.id"), nullable=False, index=True)
    session_id = db.Column(db.Integer, db.ForeignKey("register_sessions.id"), nullable=False, index=True)

    # Human-readable number (e.g., "CMD-2026-000123")
    number = db.Column(db.String(64), nullable=False, index=True)

    client_name = db.Column(db.String(255), nullable=True)
    client_email = db.Column(db.String(255), nullable=True)
    client_phone = db.Column(db.String(64), nullable=True)
    client_address = db.Column(db.String(255), nullable=True)

    status = db.Column(db.String(16), nullable=False, default="CONFIRMED", index=True)
    payment_status = db.Column(db.String(16), nullable=False, default="PAID", index=True)
    payment_method = db.Column(db.String(16), nullable=False)

    # Totals in minor units; tax stored as basis points (1800 = 18%)
    total_ht = db.Column(db.BigInteger, nullable=False)
    total_ttc = db.Column(db.BigInteger, nullable=False)
    tax_rate_bps = db.Column(db.Integer, nullable=False)

    notes = db.Column(db.Text, nullable=True)
    created_by_user_id = db.Column(db.Integer, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    confirmed_at = db.Column(db.DateTime(timezone=True), nullable=True)

    outlet = db.relationship("Outlet")
    session = db.relationship("RegisterSession", backref=db.backref("orders", lazy=True))
    lines = db.relationship(
        "OrderLine",
        back_populates="order",
        order_by="OrderLine.line_index",
        lazy=True,
    )

    def to_dict(self, include_lines: bool = False) -> dict:
        data = {
            "id": self.id,
            "outlet_id": self.outlet_id,
            "session_id": self.session_id,
            "number": self.number,
            "client_name": self.client_name,
            "client_email": self.client_email,
            "client_phone": self.client_phone,
            "client_address": self.client_address,
            "status": self.status,
            "payment_status": self.payment_status,
            "payment_method": self.payment_method,
            "total_ht": self.total_ht,
            "total_ttc": self.total_ttc,
            "tax_rate_bps": self.tax_rate_bps,
            "notes": self.notes,
            "created_by_user_id": self.created_by_user_id,
            "created_at": to_utc_z(self.created_at),
            "confirmed_at": to_utc_z(self.confirmed_at) if self.confirmed_at else None,
        }
        if include_lines:
            data["lines"] = [line.to_dict() for line in self.lines]
        return data


class OrderLine(db.Model):
    """Individual line items on an order, kept in entry order."""
    __tablename__ = "order_lines"
    __table_args__ = (
        db.UniqueConstraint("order_id", "line_index", name="uq_order_lines_order_index"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=False, index=True)
    line_index = db.Column(db.Integer, nullable=False)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False)

    # Snapshot of the product name at sale time
    product_name = db.Column(db.String(255), nullable=False)
    description = db.Column(db.String(255), nullable=True)

    quantity = db.Column(db.Integer, nullable=False)
    unit_price = db.Column(db.BigInteger, nullable=False)
    total = db.Column(db.BigInteger, nullable=False)

    order = db.relationship("Order", back_populates="lines")
    product = db.relationship("Product")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "order_id": self.order_id,
            "line_index": self.line_index,
            "product_id": self.product_id,
            "product_name": self.product_name,
            "description": self.description,
            "quantity": self.quantity,
            "unit_price": self.unit_price,
            "total": self.total,
        }


class DocumentSequence(db.Model):
    """
    Atomic per-outlet document sequences.

    WHY: Order numbers must be unique per outlet; a locked counter replaces
    random suffixes that could collide.
    """
    __tablename__ = "document_sequences"
    __table_args__ = (
        db.UniqueConstraint("outlet_id", "document_type", name="uq_doc_sequences_outlet_type"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    outlet_id = db.Column(db.Integer, db.ForeignKey("outlets.id"), nullable=False, index=True)
    document_type = db.Column(db.String(32), nullable=False, index=True)
    next_number = db.Column(db.Integer, nullable=False, default=1)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "outlet_id": self.outlet_id,
            "document_type": self.document_type,
            "next_number": self.next_number,
            "updated_at": to_utc_z(self.updated_at),
        }
