from __future__ import annotations

from ..extensions import db
from wingrow.time_utils import to_utc_z, utcnow
from wingrow.validation import cents_to_amount

REQUEST_PENDING = "PENDING"
REQUEST_APPROVED = "APPROVED"
REQUEST_REJECTED = "REJECTED"

REQUEST_STATUSES = (REQUEST_PENDING, REQUEST_APPROVED, REQUEST_REJECTED)

SETTLEMENT_DUE = "DUE"
SETTLEMENT_PARTIAL = "PARTIAL"
SETTLEMENT_PAID = "PAID"


def request_total_cost_cents(issued_qty: int | None, unit_price_cents: int | None) -> int:
    return (issued_qty or 0) * (unit_price_cents or 0)


def amount_pending_cents(total_cost_cents: int, amount_paid_cents: int | None) -> int:
    """Outstanding balance; overpayment never makes it negative."""
    return max(0, total_cost_cents - (amount_paid_cents or 0))


def settlement_status(status: str, total_cost_cents: int, amount_paid_cents: int | None) -> str | None:
    if status != REQUEST_APPROVED:
        return None
    paid = amount_paid_cents or 0
    if paid >= total_cost_cents:
        return SETTLEMENT_PAID
    if paid <= 0:
        return SETTLEMENT_DUE
    return SETTLEMENT_PARTIAL


class InventoryItem(db.Model):
    """
    Stock-keeping item in the shared catalog.

    Business invariants:
    - stock is never negative (CHECK constraint, and every decrement is a
      conditional UPDATE, see inventory_service.decrement_stock)
    - total_cost_cents / amount_paid_cents mirror the approved issue requests
      for this item and only ever grow
    """
    __tablename__ = "inventory_items"
    __table_args__ = (
        db.CheckConstraint("stock >= 0", name="ck_inventory_items_stock_non_negative"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False, unique=True)
    sku = db.Column(db.String(64), nullable=False, default="")
    unit = db.Column(db.String(32), nullable=False, default="pcs")

    stock = db.Column(db.Integer, nullable=False, default=0)

    # Authoritative storage in cents (JSON exposes decimal amounts)
    unit_price_cents = db.Column(db.Integer, nullable=False, default=0)
    total_cost_cents = db.Column(db.Integer, nullable=False, default=0)
    amount_paid_cents = db.Column(db.Integer, nullable=False, default=0)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    def __repr__(self) -> str:
        return f"<InventoryItem id={self.id} name={self.name!r} stock={self.stock}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "sku": self.sku or "",
            "unit": self.unit,
            "stock": self.stock,
            "unitPrice": cents_to_amount(self.unit_price_cents),
            "totalCost": cents_to_amount(self.total_cost_cents),
            "amountPaid": cents_to_amount(self.amount_paid_cents),
            "createdAt": to_utc_z(self.created_at),
            "updatedAt": to_utc_z(self.updated_at),
        }


class IssueRequest(db.Model):
    """
    An organizer's request to draw stock of one item.

    STATE MACHINE:
        PENDING -> APPROVED   (stock decremented in the same transaction)
        PENDING -> REJECTED   (stock untouched)

    Pricing is frozen at approval (unit_price_cents copied from the item);
    total cost, pending balance and settlement status are computed from
    issued_qty, unit_price_cents and amount_paid_cents on every read.
    """
    __tablename__ = "issue_requests"
    __table_args__ = (
        db.Index("ix_issue_requests_requester_created", "requested_by", "created_at"),
        db.Index("ix_issue_requests_status_created", "status", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    requested_by = db.Column(db.String(64), nullable=False)

    item_id = db.Column(db.Integer, db.ForeignKey("inventory_items.id"), nullable=False, index=True)
    # Snapshot so renamed items don't rewrite history
    item_name = db.Column(db.String(255), nullable=False)

    qty = db.Column(db.Integer, nullable=False)
    note = db.Column(db.Text, nullable=False, default="")

    status = db.Column(db.String(16), nullable=False, default=REQUEST_PENDING)

    issued_qty = db.Column(db.Integer, nullable=True)
    unit_price_cents = db.Column(db.Integer, nullable=True)

    amount_paid_cents = db.Column(db.Integer, nullable=False, default=0)
    last_payment_at = db.Column(db.DateTime(timezone=True), nullable=True)
    last_payment_by = db.Column(db.String(64), nullable=True)
    last_payment_proof_url = db.Column(db.String(512), nullable=True)

    decided_by = db.Column(db.String(64), nullable=True)
    decided_at = db.Column(db.DateTime(timezone=True), nullable=True)
    decision_note = db.Column(db.Text, nullable=False, default="")

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    item = db.relationship("InventoryItem", backref=db.backref("issue_requests", lazy=True))

    @property
    def total_cost_cents(self) -> int:
        return request_total_cost_cents(self.issued_qty, self.unit_price_cents)

    @property
    def amount_pending_cents(self) -> int:
        return amount_pending_cents(self.total_cost_cents, self.amount_paid_cents)

    @property
    def settlement_status(self) -> str | None:
        return settlement_status(self.status, self.total_cost_cents, self.amount_paid_cents)

    def __repr__(self) -> str:
        return f"<IssueRequest id={self.id} item_id={self.item_id} qty={self.qty} status={self.status}>"

    def payment_summary(self) -> dict:
        return {
            "id": self.id,
            "amountPaid": cents_to_amount(self.amount_paid_cents),
            "amountPending": cents_to_amount(self.amount_pending_cents),
            "totalCost": cents_to_amount(self.total_cost_cents),
            "unitPrice": cents_to_amount(self.unit_price_cents),
            "settlementStatus": self.settlement_status,
        }

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "requestedBy": self.requested_by,
            "itemId": self.item_id,
            "itemName": self.item_name,
            "qty": self.qty,
            "note": self.note or "",
            "status": self.status,
            "issuedQty": self.issued_qty,
            **self.payment_summary(),
            "lastPaymentAt": to_utc_z(self.last_payment_at),
            "lastPaymentProofUrl": self.last_payment_proof_url or "",
            "decidedBy": self.decided_by or "",
            "decidedAt": to_utc_z(self.decided_at),
            "decisionNote": self.decision_note or "",
            "createdAt": to_utc_z(self.created_at),
            "updatedAt": to_utc_z(self.updated_at),
        }
