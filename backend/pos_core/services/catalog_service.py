# Overview: Service-layer operations for outlets and products (reference data).

from __future__ import annotations

from sqlalchemy.exc import IntegrityError

from ..errors import NotFoundError, ValidationError
from ..extensions import db
from ..models import Outlet, Product
from ..validation import clean_text, parse_amount


def create_outlet(code: str, name: str) -> Outlet:
    code = clean_text(code, "code", max_length=32, required=True).upper()
    name = clean_text(name, "name", max_length=128, required=True)

    existing = db.session.query(Outlet).filter_by(code=code).first()
    if existing:
        raise ValidationError(f"Outlet '{code}' already exists")

    outlet = Outlet(code=code, name=name, is_active=True)
    db.session.add(outlet)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ValidationError(f"Outlet '{code}' already exists")
    return outlet


def get_outlet(outlet_id: int, *, require_active: bool = False) -> Outlet:
    outlet = db.session.get(Outlet, outlet_id)
    if outlet is None:
        raise NotFoundError("Outlet not found", details={"outlet_id": outlet_id})
    if require_active and not outlet.is_active:
        raise ValidationError("Outlet is inactive", details={"outlet_id": outlet_id})
    return outlet


def list_outlets(include_inactive: bool = False) -> list[Outlet]:
    query = db.session.query(Outlet)
    if not include_inactive:
        query = query.filter_by(is_active=True)
    return query.order_by(Outlet.code).all()


def create_product(
    name: str,
    *,
    sku: str | None = None,
    price: int | None = None,
    is_trackable: bool = True,
) -> Product:
    name = clean_text(name, "name", max_length=255, required=True)
    sku = clean_text(sku, "sku", max_length=64)
    if sku:
        sku = sku.upper()
        if db.session.query(Product).filter_by(sku=sku).first():
            raise ValidationError(f"SKU '{sku}' already exists")
    if price is not None:
        price = parse_amount(price, "price")

    product = Product(name=name, sku=sku, price=price, is_trackable=bool(is_trackable), is_active=True)
    db.session.add(product)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ValidationError(f"SKU '{sku}' already exists")
    return product


def get_product(product_id: int) -> Product:
    product = db.session.get(Product, product_id)
    if product is None:
        raise NotFoundError("Product not found", details={"product_id": product_id})
    return product


def list_products(include_inactive: bool = False) -> list[Product]:
    query = db.session.query(Product)
    if not include_inactive:
        query = query.filter_by(is_active=True)
    return query.order_by(Product.name).all()
