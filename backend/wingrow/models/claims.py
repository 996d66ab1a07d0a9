from __future__ import annotations

from sqlalchemy.ext.orderinglist import ordering_list

from ..extensions import db
from wingrow.time_utils import to_utc_z, utcnow
from wingrow.validation import cents_to_amount

CLAIM_DRAFT = "DRAFT"
CLAIM_SUBMITTED = "SUBMITTED"
CLAIM_APPROVED = "APPROVED"
CLAIM_REJECTED = "REJECTED"
CLAIM_PAID = "PAID"

CLAIM_STATUSES = (CLAIM_DRAFT, CLAIM_SUBMITTED, CLAIM_APPROVED, CLAIM_REJECTED, CLAIM_PAID)


def claim_total_cents(items) -> int:
    """Total of a claim is always the sum of its current lines."""
    return sum(item.amount_cents or 0 for item in items)


class Claim(db.Model):
    """
    Expense claim raised by an organizer.

    STATE MACHINE:
        DRAFT -> SUBMITTED -> APPROVED -> PAID
                           -> REJECTED

    - Lines are editable only in DRAFT, and only by the owner.
    - An owner has at most one DRAFT (partial unique index below).
    - total_amount_cents is denormalized for listing; it is recomputed on every
      line change and before submission, never accepted from input.

    CONCURRENCY: version_id_col turns every flush into a compare-and-swap on
    version_id; a concurrent writer gets StaleDataError and retries.
    """
    __tablename__ = "claims"
    __table_args__ = (
        db.Index(
            "uq_claims_one_draft_per_owner",
            "owner_id",
            unique=True,
            sqlite_where=db.text("status = 'DRAFT'"),
            postgresql_where=db.text("status = 'DRAFT'"),
        ),
        db.Index("ix_claims_status_created", "status", "created_at"),
        db.Index("ix_claims_owner_created", "owner_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    owner_id = db.Column(db.String(64), nullable=False)
    status = db.Column(db.String(16), nullable=False, default=CLAIM_DRAFT)

    total_amount_cents = db.Column(db.Integer, nullable=False, default=0)

    submitted_at = db.Column(db.DateTime(timezone=True), nullable=True)

    # Decision (approve or reject)
    approved_by = db.Column(db.String(64), nullable=True)
    approved_at = db.Column(db.DateTime(timezone=True), nullable=True)
    manager_comment = db.Column(db.Text, nullable=False, default="")

    # Payout
    payment_ref = db.Column(db.String(128), nullable=False, default="")
    paid_at = db.Column(db.DateTime(timezone=True), nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    items = db.relationship(
        "ClaimItem",
        back_populates="claim",
        order_by="ClaimItem.position",
        collection_class=ordering_list("position"),
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    __mapper_args__ = {"version_id_col": version_id}

    def recalculate_total(self) -> int:
        self.total_amount_cents = claim_total_cents(self.items)
        return self.total_amount_cents

    def __repr__(self) -> str:
        return f"<Claim id={self.id} owner_id={self.owner_id!r} status={self.status}>"

    def items_summary(self) -> dict:
        return {
            "items": [item.to_dict() for item in self.items],
            "totalAmount": cents_to_amount(claim_total_cents(self.items)),
        }

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "userId": self.owner_id,
            "status": self.status,
            **self.items_summary(),
            "submittedAt": to_utc_z(self.submitted_at),
            "approvedBy": self.approved_by or "",
            "approvedAt": to_utc_z(self.approved_at),
            "managerComment": self.manager_comment or "",
            "paymentRef": self.payment_ref or "",
            "paidAt": to_utc_z(self.paid_at),
            "createdAt": to_utc_z(self.created_at),
            "updatedAt": to_utc_z(self.updated_at),
        }


class ClaimItem(db.Model):
    """One expense line. Position is maintained by the ordering_list on Claim.items."""
    __tablename__ = "claim_items"
    __table_args__ = (
        db.Index("ix_claim_items_claim_position", "claim_id", "position"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    claim_id = db.Column(db.Integer, db.ForeignKey("claims.id"), nullable=False, index=True)
    position = db.Column(db.Integer, nullable=False)

    date = db.Column(db.DateTime(timezone=True), nullable=False)
    category = db.Column(db.String(64), nullable=False, default="Other")
    amount_cents = db.Column(db.Integer, nullable=False)
    notes = db.Column(db.Text, nullable=False, default="")
    receipt_url = db.Column(db.String(512), nullable=False, default="")

    claim = db.relationship("Claim", back_populates="items")

    def to_dict(self) -> dict:
        return {
            "date": to_utc_z(self.date),
            "category": self.category,
            "amount": cents_to_amount(self.amount_cents),
            "notes": self.notes or "",
            "receiptUrl": self.receipt_url or "",
        }
