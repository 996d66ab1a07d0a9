# Overview: Service-layer operations for inventory; encapsulates business logic and database work.

# backend/wingrow/services/inventory_service.py

from __future__ import annotations

from typing import Any, Iterable

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError

from ..errors import ConflictError, InsufficientStockError, NotFoundError, ValidationError
from ..extensions import db
from ..models import InventoryItem
from ..validation import amount_to_cents, clean_text, coerce_non_negative_int, coerce_price_cents
from .concurrency import run_with_retry
from wingrow.time_utils import utcnow
"""
Inventory Stock Ledger Invariants (authoritative)

Stock model:
- Stock is a mutable non-negative integer on InventoryItem.
- It changes in exactly two ways: a manager sets it (set_stock / update_item),
  or an issue request is approved (decrement_stock).

Business invariants:
- stock >= 0 at all times.
- A decrement is ONE conditional statement:
      UPDATE inventory_items SET stock = stock - :qty
      WHERE id = :id AND stock >= :qty
  Zero affected rows means the decrement would go negative (or the item is
  gone). There is no separate read-then-check, so two concurrent approvals
  can never both pass a stale stock check.
- Seeding is insert-if-absent by name; existing items (stock, price) are
  never touched by a re-seed.
"""

DEFAULT_SEED_STOCK = 20
DEFAULT_UNIT = "pcs"

# Standard field kit issued to organizers
DEFAULT_CATALOG = (
    "Apron",
    "Cap",
    "Flex",
    "Tent Cloths",
    "Table",
    "Tent Structure",
    "Small Rate Board",
    "Jacket",
    "Big Rate Board",
    "Diary",
    "Marker",
)

NAME_MAX_LENGTH = 255


def _get_item(item_id: int) -> InventoryItem:
    item = db.session.get(InventoryItem, item_id)
    if item is None:
        raise NotFoundError("Item not found")
    return item


def list_items() -> list[InventoryItem]:
    return db.session.query(InventoryItem).order_by(InventoryItem.name.asc()).all()


def seed_catalog(names: Iterable[str] | None = None) -> list[InventoryItem]:
    """
    Idempotent upsert: insert each missing name with stock 20 / unit "pcs".

    Existing items are left untouched. Each insert commits on its own so a
    concurrent seeder inserting the same name only skips that one row.
    """
    wanted = []
    for raw in DEFAULT_CATALOG if names is None else names:
        name = clean_text(raw, "name", max_length=NAME_MAX_LENGTH)
        if name and name not in wanted:
            wanted.append(name)

    existing = {
        row.name
        for row in db.session.query(InventoryItem.name).filter(InventoryItem.name.in_(wanted)).all()
    } if wanted else set()

    for name in wanted:
        if name in existing:
            continue
        db.session.add(InventoryItem(name=name, unit=DEFAULT_UNIT, stock=DEFAULT_SEED_STOCK))
        try:
            db.session.commit()
        except IntegrityError:
            # Someone else inserted it first; insert-if-absent means we're done
            db.session.rollback()

    return list_items()


def create_item(
    name: Any,
    *,
    unit: Any = None,
    stock: Any = None,
    unit_price: Any = None,
    sku: Any = None,
) -> InventoryItem:
    """Direct creation of a catalog item. Names are unique."""
    clean_name = clean_text(name, "name", max_length=NAME_MAX_LENGTH)
    if not clean_name:
        raise ValidationError("name is required")

    item = InventoryItem(
        name=clean_name,
        unit=clean_text(unit, "unit", max_length=32, default=DEFAULT_UNIT),
        sku=clean_text(sku, "sku", max_length=64),
        stock=0 if stock is None else coerce_non_negative_int(stock, "stock"),
        unit_price_cents=0 if unit_price is None else amount_to_cents(unit_price, "unitPrice", allow_zero=True),
    )

    if db.session.query(InventoryItem.id).filter_by(name=clean_name).first():
        raise ConflictError(f"Item '{clean_name}' already exists")

    db.session.add(item)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ConflictError(f"Item '{clean_name}' already exists")
    return item


def update_item(item_id: int, **changes: Any) -> InventoryItem:
    """
    Manager edit of stock and/or price.

    Accepts `stock` and `unit_price` keyword arguments; absent keys are left
    unchanged. Stock is validated before anything is written; price never
    fails (non-numeric counts as 0, negatives clamp to 0).
    """
    values = {}
    if "stock" in changes:
        values["stock"] = coerce_non_negative_int(changes["stock"], "stock")
    if "unit_price" in changes:
        values["unit_price_cents"] = coerce_price_cents(changes["unit_price"])

    def _op():
        item = _get_item(item_id)
        if values:
            # Absolute overwrite: a manager count replaces whatever is on hand
            for key, value in values.items():
                setattr(item, key, value)
            db.session.commit()
        return item

    return run_with_retry(_op)


def set_stock(item_id: int, new_stock: Any) -> InventoryItem:
    return update_item(item_id, stock=new_stock)


def set_price(item_id: int, new_price: Any) -> InventoryItem:
    return update_item(item_id, unit_price=new_price)


def decrement_stock(item_id: int, qty: int) -> InventoryItem:
    """
    Atomically subtract qty from stock, refusing to go below zero.

    Runs inside the caller's transaction and does NOT commit: the caller
    commits together with its own state change, or rolls back both.

    Raises:
        NotFoundError: item does not exist
        InsufficientStockError: stock < qty at the moment of the update
    """
    if qty <= 0:
        raise ValidationError("qty must be a positive integer")

    result = db.session.execute(
        update(InventoryItem)
        .where(InventoryItem.id == item_id, InventoryItem.stock >= qty)
        .values(stock=InventoryItem.stock - qty, updated_at=utcnow())
        .execution_options(synchronize_session=False)
    )

    if result.rowcount == 0:
        item = db.session.get(InventoryItem, item_id)
        if item is None:
            raise NotFoundError("Item not found")
        db.session.refresh(item)
        raise InsufficientStockError(
            f"Insufficient stock for '{item.name}': requested {qty}, available {item.stock}"
        )

    item = db.session.get(InventoryItem, item_id)
    db.session.refresh(item)
    return item


def add_issue_totals(item_id: int, *, cost_cents: int = 0, paid_cents: int = 0) -> None:
    """
    Grow the item's mirrored totalCost / amountPaid in place.

    Increment-in-SQL so concurrent approvals and payments on different
    requests for the same item never overwrite each other. Does not commit.
    """
    db.session.execute(
        update(InventoryItem)
        .where(InventoryItem.id == item_id)
        .values(
            total_cost_cents=InventoryItem.total_cost_cents + cost_cents,
            amount_paid_cents=InventoryItem.amount_paid_cents + paid_cents,
        )
        .execution_options(synchronize_session=False)
    )
