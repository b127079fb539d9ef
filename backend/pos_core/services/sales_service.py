"""
Sales Service - point-of-sale settlement

WHY: A counter sale touches three ledgers that must agree: the order, the
inventory log and the cash drawer. create_sale() writes all of them in ONE
database transaction, so a failure anywhere leaves no partial sale behind.

PRECONDITIONS (checked in this order, no write survives a failure):
1. An OPEN register session exists for (outlet, today)
2. Every trackable product has stock >= requested quantity
3. Line items non-empty, quantity > 0, unit_price >= 0

EFFECTS (fixed order, inside the transaction):
1. totals   2. order number   3. order   4. order lines
5. one OUT movement per line (-quantity)   6. one SALE ledger entry (total_ttc)
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any

from flask import current_app

from ..errors import NotFoundError, OpenSessionRequiredError, ValidationError
from ..extensions import db
from ..models import InventoryMovement, Order, OrderLine, Product, RegisterLedgerEntry
from ..time_utils import utcnow
from ..validation import (
    BPS_PER_UNIT,
    MAX_AMOUNT,
    clean_text,
    parse_int,
    parse_payment_method,
    parse_tax_rate,
)
from . import register_service
from .concurrency import run_in_transaction
from .document_service import next_document_number
from .inventory_service import _append_movement_locked, check_available


@dataclass(frozen=True)
class SaleLineInput:
    product_id: int
    quantity: int
    unit_price: int | None
    description: str | None = None


@dataclass(frozen=True)
class SaleReceipt:
    """Plain result of a settled sale; counts let callers verify 1:1 with lines."""
    order_id: int
    order_number: str
    session_id: int
    total_ht: int
    total_ttc: int
    tax_rate_bps: int
    line_count: int
    movements_created: int
    ledger_entries_created: int

    def to_dict(self) -> dict:
        return asdict(self)


def compute_totals(lines: list[tuple[int, int]], tax_rate_bps: int) -> tuple[int, int]:
    """
    lines: (quantity, unit_price) pairs in minor units.

    total_ttc = total_ht + tax, tax rounded half-up to the minor unit.
    """
    total_ht = sum(quantity * unit_price for quantity, unit_price in lines)
    tax = (total_ht * tax_rate_bps + BPS_PER_UNIT // 2) // BPS_PER_UNIT
    return total_ht, total_ht + tax


def _parse_line_items(items: Any) -> list[SaleLineInput]:
    """Shape checks only; business rules on values run after the stock check."""
    if items is None:
        items = []
    if not isinstance(items, (list, tuple)):
        raise ValidationError("items must be a list")

    parsed = []
    for index, item in enumerate(items):
        if not isinstance(item, dict):
            raise ValidationError(f"items[{index}] must be an object")
        unit_price = item.get("unit_price")
        # Sign rules are value checks and run later; size is bounded here
        parsed.append(SaleLineInput(
            product_id=parse_int(item.get("product_id"), f"items[{index}].product_id", minimum=1),
            quantity=parse_int(item.get("quantity"), f"items[{index}].quantity", maximum=MAX_AMOUNT),
            unit_price=(
                parse_int(unit_price, f"items[{index}].unit_price", maximum=MAX_AMOUNT)
                if unit_price is not None else None
            ),
            description=clean_text(item.get("description"), f"items[{index}].description", max_length=255),
        ))
    return parsed


def _parse_client(client: Any) -> dict:
    if client is None:
        return {}
    if not isinstance(client, dict):
        raise ValidationError("client must be an object")
    return {
        "client_name": clean_text(client.get("name"), "client.name", max_length=255),
        "client_email": clean_text(client.get("email"), "client.email", max_length=255),
        "client_phone": clean_text(client.get("phone"), "client.phone", max_length=64),
        "client_address": clean_text(client.get("address"), "client.address", max_length=255),
    }


def _load_products(lines: list[SaleLineInput]) -> dict[int, Product]:
    products: dict[int, Product] = {}
    for line in lines:
        if line.product_id in products:
            continue
        product = db.session.get(Product, line.product_id)
        if product is None:
            raise ValidationError("Product not found", details={"product_id": line.product_id})
        if not product.is_active:
            raise ValidationError("Product is inactive", details={"product_id": line.product_id})
        products[line.product_id] = product
    return products


def _resolve_line_values(lines: list[SaleLineInput], products: dict[int, Product]) -> list[int]:
    """Enforce non-empty / quantity > 0 / unit_price >= 0; returns the unit prices."""
    if not lines:
        raise ValidationError("Cannot create a sale with no line items")

    prices = []
    for index, line in enumerate(lines):
        if line.quantity <= 0:
            raise ValidationError(
                f"items[{index}].quantity must be > 0",
                details={"line_index": index, "quantity": line.quantity},
            )
        unit_price = line.unit_price
        if unit_price is None:
            unit_price = products[line.product_id].price
            if unit_price is None:
                raise ValidationError(
                    f"items[{index}].unit_price is required (product has no price)",
                    details={"line_index": index, "product_id": line.product_id},
                )
        if unit_price < 0:
            raise ValidationError(
                f"items[{index}].unit_price must be >= 0",
                details={"line_index": index, "unit_price": unit_price},
            )
        if line.quantity * unit_price > MAX_AMOUNT:
            raise ValidationError(
                f"items[{index}] total cannot exceed {MAX_AMOUNT}",
                details={"line_index": index, "quantity": line.quantity, "unit_price": unit_price},
            )
        prices.append(unit_price)
    return prices


def create_sale(
    outlet_id: int,
    items: list[dict],
    payment_method: str,
    *,
    client: dict | None = None,
    tax_rate=None,
    notes: str | None = None,
    user_id: int | None = None,
) -> SaleReceipt:
    """
    Settle one counter sale atomically.

    Args:
        outlet_id: outlet where the sale happens
        items: [{"product_id", "quantity", "unit_price"?, "description"?}, ...]
        payment_method: CASH, MOBILE_MONEY, CARD, CHEQUE or TRANSFER
        client: optional {"name", "email", "phone", "address"}
        tax_rate: decimal rate (0.18); DEFAULT_TAX_RATE when omitted

    Raises:
        OpenSessionRequiredError, InsufficientStockError, ValidationError,
        PersistenceError (details list the steps rolled back)
    """
    lines = _parse_line_items(items)
    payment_method = parse_payment_method(payment_method)
    if tax_rate is None:
        tax_rate = current_app.config.get("DEFAULT_TAX_RATE", "0.20")
    tax_rate_bps = parse_tax_rate(tax_rate)
    client_fields = _parse_client(client)
    notes = clean_text(notes, "notes", max_length=2000)
    prefix = current_app.config.get("ORDER_NUMBER_PREFIX", "CMD")

    progress: list[str] = []

    def _op() -> SaleReceipt:
        # Precondition 1: open drawer today
        session = register_service.get_open_session(outlet_id, lock=True)
        if session is None:
            raise OpenSessionRequiredError(
                "No open register session for this outlet today. Open the register first.",
                details={"outlet_id": outlet_id},
            )

        # Precondition 2: stock, under per-(outlet, product) locks
        products = _load_products(lines)
        requested: dict[int, int] = {}
        for line in lines:
            requested[line.product_id] = requested.get(line.product_id, 0) + line.quantity
        check_available(outlet_id, requested)

        # Precondition 3: line values
        unit_prices = _resolve_line_values(lines, products)

        # Effect 1: totals
        total_ht, total_ttc = compute_totals(
            [(line.quantity, price) for line, price in zip(lines, unit_prices)],
            tax_rate_bps,
        )
        if total_ttc > MAX_AMOUNT:
            raise ValidationError(
                f"Sale total cannot exceed {MAX_AMOUNT}",
                details={"total_ht": total_ht, "total_ttc": total_ttc},
            )
        progress.append("totals")

        # Effect 2: order number
        now = utcnow()
        number = next_document_number(
            outlet_id=outlet_id,
            document_type="ORDER",
            prefix=prefix,
            year=now.year,
        )
        progress.append(f"order_number:{number}")

        # Effect 3: order
        order = Order(
            outlet_id=outlet_id,
            session_id=session.id,
            number=number,
            status="CONFIRMED",
            payment_status="PAID",
            payment_method=payment_method,
            total_ht=total_ht,
            total_ttc=total_ttc,
            tax_rate_bps=tax_rate_bps,
            notes=notes,
            created_by_user_id=user_id,
            created_at=now,
            confirmed_at=now,
            **client_fields,
        )
        db.session.add(order)
        db.session.flush()
        progress.append(f"order:{order.id}")

        # Effect 4: lines, order preserved
        for index, (line, price) in enumerate(zip(lines, unit_prices)):
            db.session.add(OrderLine(
                order_id=order.id,
                line_index=index,
                product_id=line.product_id,
                product_name=products[line.product_id].name,
                description=line.description,
                quantity=line.quantity,
                unit_price=price,
                total=line.quantity * price,
            ))
        db.session.flush()
        progress.append(f"order_lines:{len(lines)}")

        # Effect 5: one OUT movement per line
        movement_ids = []
        for index, line in enumerate(lines):
            movement = _append_movement_locked(
                outlet_id=outlet_id,
                product_id=line.product_id,
                quantity_delta=-line.quantity,
                movement_type="OUT",
                reference_type="SALE",
                reference_id=str(order.id),
                reference_line=index,
                note=f"Sale {number} - {products[line.product_id].name}",
                user_id=user_id,
                occurred_at=now,
            )
            movement_ids.append(movement.id)
        progress.append(f"inventory_movements:{','.join(str(m) for m in movement_ids)}")

        # Effect 6: exactly one SALE entry for total_ttc
        entry = register_service.append_ledger_entry(
            session.id,
            "SALE",
            total_ttc,
            payment_method,
            reference_type="SALE",
            reference_id=str(order.id),
            description=f"Sale {number} - {client_fields.get('client_name') or 'walk-in'}",
            user_id=user_id,
            commit=False,
        )
        progress.append(f"ledger_entry:{entry.id}")

        return SaleReceipt(
            order_id=order.id,
            order_number=number,
            session_id=session.id,
            total_ht=total_ht,
            total_ttc=total_ttc,
            tax_rate_bps=tax_rate_bps,
            line_count=len(lines),
            movements_created=len(movement_ids),
            ledger_entries_created=1,
        )

    receipt = run_in_transaction(_op, description="Sale", progress=progress)
    current_app.logger.info(
        "Sale %s settled at outlet %s: total_ttc=%s via %s",
        receipt.order_number, outlet_id, receipt.total_ttc, payment_method,
    )
    return receipt


# =============================================================================
# READS
# =============================================================================

def get_order(order_id: int) -> Order:
    order = db.session.get(Order, order_id)
    if order is None:
        raise NotFoundError("Order not found", details={"order_id": order_id})
    return order


def list_orders(
    outlet_id: int | None = None,
    *,
    session_id: int | None = None,
    limit: int = 100,
) -> list[Order]:
    query = db.session.query(Order)
    if outlet_id is not None:
        query = query.filter(Order.outlet_id == outlet_id)
    if session_id is not None:
        query = query.filter(Order.session_id == session_id)
    return query.order_by(Order.created_at.desc(), Order.id.desc()).limit(limit).all()


def get_order_settlement(order_id: int) -> dict:
    """
    Everything written for one order, plus a consistency verdict:
    one movement per line with quantity_delta == -quantity, and exactly one
    SALE ledger entry for total_ttc.
    """
    order = get_order(order_id)
    reference_id = str(order.id)

    movements = (
        db.session.query(InventoryMovement)
        .filter_by(outlet_id=order.outlet_id, reference_type="SALE", reference_id=reference_id)
        .order_by(InventoryMovement.reference_line)
        .all()
    )
    entries = (
        db.session.query(RegisterLedgerEntry)
        .filter_by(entry_type="SALE", reference_type="SALE", reference_id=reference_id)
        .all()
    )

    by_line = {m.reference_line: m for m in movements}
    movements_match = len(movements) == len(order.lines) and all(
        line.line_index in by_line
        and by_line[line.line_index].product_id == line.product_id
        and by_line[line.line_index].quantity_delta == -line.quantity
        for line in order.lines
    )
    ledger_matches = len(entries) == 1 and entries[0].amount == order.total_ttc

    return {
        "order": order.to_dict(include_lines=True),
        "inventory_movements": [m.to_dict() for m in movements],
        "ledger_entries": [e.to_dict() for e in entries],
        "is_consistent": movements_match and ledger_matches,
    }
