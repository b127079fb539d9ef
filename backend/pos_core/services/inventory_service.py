# Overview: Service-layer operations for inventory; encapsulates business logic and database work.

# backend/pos_core/services/inventory_service.py

from __future__ import annotations

import uuid
from datetime import datetime

from flask import current_app
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError

from ..errors import InsufficientStockError, ValidationError
from ..extensions import db
from ..models import InventoryMovement, Product, StockLevel
from ..time_utils import utcnow
from ..validation import clean_text, parse_choice, parse_int
from .catalog_service import get_outlet, get_product
from .concurrency import ConcurrentUpdateError, lock_for_update, run_in_transaction
"""
Inventory Invariants (authoritative)

Inventory model:
- The InventoryMovement log is the source of truth. Stock on hand for
  (outlet, product) = SUM(quantity_delta) over COMPLETED movements.
- Movements are append-only. PENDING and CANCELLED rows are recorded but
  never counted; corrections are new compensating movements.
- StockLevel is a materialized counter updated in the same transaction as
  each COMPLETED append. It serializes check-then-decrement (row lock +
  version column) and is audited against the log by reconcile_stock_levels().

Ledger surface:
- append_movement() does no quantity validation: it is a dumb, fully
  auditable append. Availability rules live in the callers (receive,
  adjust, transfer, sales).
"""


MOVEMENT_TYPES = ("IN", "OUT", "ADJUSTMENT", "TRANSFER")
MOVEMENT_STATUSES = ("COMPLETED", "PENDING", "CANCELLED")
REFERENCE_TYPES = ("SALE", "PURCHASE", "RETURN", "MANUAL", "LOSS", "PRODUCTION", "TRANSFER")


# =============================================================================
# STOCK QUERIES
# =============================================================================

def current_stock(outlet_id: int, product_id: int, as_of: datetime | None = None) -> int:
    """
    Stock on hand from the ledger: SUM(quantity_delta) over COMPLETED movements.

    Order of application is irrelevant (plain sum), so replaying the log in
    any order yields the same figure.
    """
    q = db.session.query(
        func.coalesce(func.sum(InventoryMovement.quantity_delta), 0)
    ).filter(
        InventoryMovement.outlet_id == outlet_id,
        InventoryMovement.product_id == product_id,
        InventoryMovement.status == "COMPLETED",
    )
    if as_of is not None:
        q = q.filter(InventoryMovement.occurred_at <= as_of)

    return int(q.scalar() or 0)


def get_stock_level(outlet_id: int, product_id: int, *, lock: bool = False) -> StockLevel | None:
    query = db.session.query(StockLevel).filter_by(outlet_id=outlet_id, product_id=product_id)
    if lock:
        query = lock_for_update(query)
    return query.first()


def available_quantity(outlet_id: int, product_id: int, *, lock: bool = False) -> int:
    """Counter value when materialized, ledger sum otherwise."""
    level = get_stock_level(outlet_id, product_id, lock=lock)
    if level is not None:
        return level.quantity
    return current_stock(outlet_id, product_id)


def check_available(outlet_id: int, requested: dict[int, int]) -> None:
    """
    Verify stock for {product_id: quantity} under row locks.

    Products are locked in id order so two sales touching the same products
    cannot deadlock. Non-trackable products are skipped.

    Raises:
        InsufficientStockError naming every short product
    """
    shortfalls = []
    for product_id in sorted(requested):
        product = db.session.get(Product, product_id)
        if product is None or not product.is_trackable:
            continue
        wanted = requested[product_id]
        on_hand = available_quantity(outlet_id, product_id, lock=True)
        if on_hand < wanted:
            shortfalls.append({
                "product_id": product_id,
                "product_name": product.name,
                "requested_quantity": wanted,
                "on_hand": on_hand,
                "shortfall": wanted - on_hand,
            })

    if shortfalls:
        raise InsufficientStockError(shortfalls)


# =============================================================================
# LEDGER APPEND
# =============================================================================

def _apply_to_stock_level(outlet_id: int, product_id: int, delta: int, occurred_at: datetime) -> StockLevel:
    level = get_stock_level(outlet_id, product_id, lock=True)
    if level is None:
        # Seed from the log so a counter created late still reconciles
        level = StockLevel(
            outlet_id=outlet_id,
            product_id=product_id,
            quantity=current_stock(outlet_id, product_id),
        )
        db.session.add(level)
        try:
            db.session.flush()
        except IntegrityError as exc:
            raise ConcurrentUpdateError("stock level created concurrently") from exc

    level.quantity = level.quantity + delta
    level.last_movement_at = occurred_at
    return level


def _append_movement_locked(
    *,
    outlet_id: int,
    product_id: int,
    quantity_delta: int,
    movement_type: str,
    reference_type: str | None = None,
    reference_id: str | None = None,
    reference_line: int | None = None,
    status: str = "COMPLETED",
    note: str | None = None,
    user_id: int | None = None,
    occurred_at: datetime | None = None,
) -> InventoryMovement:
    occurred_at = occurred_at or utcnow()

    if status == "COMPLETED":
        _apply_to_stock_level(outlet_id, product_id, quantity_delta, occurred_at)

    movement = InventoryMovement(
        outlet_id=outlet_id,
        product_id=product_id,
        quantity_delta=quantity_delta,
        movement_type=movement_type,
        reference_type=reference_type,
        reference_id=str(reference_id) if reference_id is not None else None,
        reference_line=reference_line,
        status=status,
        note=note,
        created_by_user_id=user_id,
        occurred_at=occurred_at,
    )
    db.session.add(movement)
    db.session.flush()  # ensures movement.id is assigned without committing
    return movement


def append_movement(
    outlet_id: int,
    product_id: int,
    quantity_delta: int,
    movement_type: str,
    *,
    reference_type: str | None = None,
    reference_id: str | None = None,
    reference_line: int | None = None,
    status: str = "COMPLETED",
    note: str | None = None,
    user_id: int | None = None,
    occurred_at: datetime | None = None,
    commit: bool = True,
) -> InventoryMovement:
    """
    Append one immutable movement.

    No quantity rule is applied here (a negative stock is recorded as is);
    only the shape of the row is checked.
    """
    quantity_delta = parse_int(quantity_delta, "quantity_delta")
    movement_type = parse_choice(movement_type, "movement_type", MOVEMENT_TYPES)
    status = parse_choice(status, "status", MOVEMENT_STATUSES)
    if reference_type is not None:
        reference_type = parse_choice(reference_type, "reference_type", REFERENCE_TYPES)
    note = clean_text(note, "note", max_length=255)

    kwargs = dict(
        outlet_id=outlet_id,
        product_id=product_id,
        quantity_delta=quantity_delta,
        movement_type=movement_type,
        reference_type=reference_type,
        reference_id=reference_id,
        reference_line=reference_line,
        status=status,
        note=note,
        user_id=user_id,
        occurred_at=occurred_at,
    )

    if not commit:
        return _append_movement_locked(**kwargs)

    get_outlet(outlet_id)
    get_product(product_id)
    return run_in_transaction(
        lambda: _append_movement_locked(**kwargs),
        description="Inventory movement append",
    )


# =============================================================================
# RECEIVING / ADJUSTMENT / TRANSFER
# =============================================================================

def receive_stock(
    outlet_id: int,
    product_id: int,
    quantity: int,
    *,
    reference_type: str = "PURCHASE",
    reference_id: str | None = None,
    note: str | None = None,
    user_id: int | None = None,
) -> InventoryMovement:
    """Record goods received at an outlet (IN movement, quantity > 0)."""
    quantity = parse_int(quantity, "quantity", minimum=1)
    return append_movement(
        outlet_id,
        product_id,
        quantity,
        "IN",
        reference_type=reference_type,
        reference_id=reference_id,
        note=note or "Stock received",
        user_id=user_id,
    )


def adjust_stock(
    outlet_id: int,
    product_id: int,
    quantity_delta: int,
    *,
    reason: str,
    reference_type: str = "MANUAL",
    user_id: int | None = None,
) -> InventoryMovement:
    """
    Count correction, breakage, loss.

    A negative correction may not take a trackable product below zero.
    """
    quantity_delta = parse_int(quantity_delta, "quantity_delta")
    if quantity_delta == 0:
        raise ValidationError("quantity_delta must be non-zero for ADJUSTMENT")
    reason = clean_text(reason, "reason", max_length=255, required=True)
    reference_type = parse_choice(reference_type, "reference_type", REFERENCE_TYPES)

    get_outlet(outlet_id)
    product = get_product(product_id)

    def _op():
        if quantity_delta < 0:
            check_available(outlet_id, {product.id: -quantity_delta})
        return _append_movement_locked(
            outlet_id=outlet_id,
            product_id=product.id,
            quantity_delta=quantity_delta,
            movement_type="ADJUSTMENT",
            reference_type=reference_type,
            note=reason,
            user_id=user_id,
        )

    return run_in_transaction(_op, description="Stock adjustment")


def transfer_stock(
    from_outlet_id: int,
    to_outlet_id: int,
    product_id: int,
    quantity: int,
    *,
    reference_id: str | None = None,
    note: str | None = None,
    user_id: int | None = None,
) -> tuple[InventoryMovement, InventoryMovement]:
    """
    Move stock between outlets as two TRANSFER movements in one transaction.

    Returns:
        (outbound movement at source, inbound movement at destination)
    """
    quantity = parse_int(quantity, "quantity", minimum=1)
    if from_outlet_id == to_outlet_id:
        raise ValidationError("Source and destination outlets must differ")

    get_outlet(from_outlet_id)
    get_outlet(to_outlet_id)
    product = get_product(product_id)
    reference_id = reference_id or f"TRF-{uuid.uuid4().hex[:12].upper()}"
    note = clean_text(note, "note", max_length=255)

    def _op():
        check_available(from_outlet_id, {product.id: quantity})
        occurred_at = utcnow()
        outbound = _append_movement_locked(
            outlet_id=from_outlet_id,
            product_id=product.id,
            quantity_delta=-quantity,
            movement_type="TRANSFER",
            reference_type="TRANSFER",
            reference_id=reference_id,
            note=note or f"Transfer to outlet {to_outlet_id}",
            user_id=user_id,
            occurred_at=occurred_at,
        )
        inbound = _append_movement_locked(
            outlet_id=to_outlet_id,
            product_id=product.id,
            quantity_delta=quantity,
            movement_type="TRANSFER",
            reference_type="TRANSFER",
            reference_id=reference_id,
            note=note or f"Transfer from outlet {from_outlet_id}",
            user_id=user_id,
            occurred_at=occurred_at,
        )
        return outbound, inbound

    return run_in_transaction(_op, description="Stock transfer")


# =============================================================================
# LISTINGS / ALERTS / AUDIT
# =============================================================================

def list_movements(
    outlet_id: int | None = None,
    *,
    product_id: int | None = None,
    movement_type: str | None = None,
    reference_type: str | None = None,
    reference_id: str | None = None,
    limit: int = 200,
) -> list[InventoryMovement]:
    query = db.session.query(InventoryMovement)
    if outlet_id is not None:
        query = query.filter(InventoryMovement.outlet_id == outlet_id)
    if product_id is not None:
        query = query.filter(InventoryMovement.product_id == product_id)
    if movement_type:
        query = query.filter(InventoryMovement.movement_type == movement_type.upper())
    if reference_type:
        query = query.filter(InventoryMovement.reference_type == reference_type.upper())
    if reference_id is not None:
        query = query.filter(InventoryMovement.reference_id == str(reference_id))
    return query.order_by(
        InventoryMovement.occurred_at.desc(),
        InventoryMovement.id.desc(),
    ).limit(limit).all()


def low_stock(outlet_id: int, threshold: int | None = None) -> list[dict]:
    """Trackable, active products whose counter is at or below threshold."""
    if threshold is None:
        threshold = current_app.config.get("LOW_STOCK_THRESHOLD", 5)

    rows = (
        db.session.query(StockLevel, Product)
        .join(Product, Product.id == StockLevel.product_id)
        .filter(
            StockLevel.outlet_id == outlet_id,
            StockLevel.quantity <= threshold,
            Product.is_trackable.is_(True),
            Product.is_active.is_(True),
        )
        .order_by(StockLevel.quantity, Product.name)
        .all()
    )
    return [
        {
            "product_id": product.id,
            "product_name": product.name,
            "sku": product.sku,
            "quantity": level.quantity,
            "threshold": threshold,
        }
        for level, product in rows
    ]


def reconcile_stock_levels(outlet_id: int | None = None, *, repair: bool = False) -> list[dict]:
    """
    Compare every StockLevel counter to the ledger sum.

    Returns one dict per mismatching (outlet, product). With repair=True the
    counters are rewritten from the ledger, which stays authoritative.
    """
    def _collect() -> list[dict]:
        sums = db.session.query(
            InventoryMovement.outlet_id,
            InventoryMovement.product_id,
            func.coalesce(func.sum(InventoryMovement.quantity_delta), 0),
        ).filter(InventoryMovement.status == "COMPLETED")
        levels = db.session.query(StockLevel)
        if outlet_id is not None:
            sums = sums.filter(InventoryMovement.outlet_id == outlet_id)
            levels = levels.filter(StockLevel.outlet_id == outlet_id)

        ledger = {
            (o_id, p_id): int(total or 0)
            for o_id, p_id, total in sums.group_by(
                InventoryMovement.outlet_id, InventoryMovement.product_id
            ).all()
        }
        counters = {(lv.outlet_id, lv.product_id): lv for lv in levels.all()}

        discrepancies = []
        for key in sorted(set(ledger) | set(counters)):
            ledger_qty = ledger.get(key, 0)
            level = counters.get(key)
            counter_qty = level.quantity if level is not None else None
            if counter_qty == ledger_qty:
                continue
            if counter_qty is None and ledger_qty == 0:
                continue
            discrepancies.append({
                "outlet_id": key[0],
                "product_id": key[1],
                "ledger_quantity": ledger_qty,
                "counter_quantity": counter_qty,
            })
            if repair:
                if level is None:
                    db.session.add(StockLevel(outlet_id=key[0], product_id=key[1], quantity=ledger_qty))
                else:
                    level.quantity = ledger_qty
        return discrepancies

    if not repair:
        return _collect()

    discrepancies = run_in_transaction(_collect, description="Stock level reconciliation")
    if discrepancies:
        current_app.logger.warning("Repaired %d stock counters from the ledger", len(discrepancies))
    return discrepancies
