# Overview: Service-layer operations for expense claims; encapsulates business logic and database work.

"""
Expense Claim Lifecycle Service

STATE MACHINE:
    DRAFT -> SUBMITTED -> APPROVED -> PAID
                       -> REJECTED

RULES:
1. An organizer has at most one DRAFT; POST /claims returns it or creates it.
2. Lines are added/removed only by the owner and only while DRAFT. Any other
   claim id is reported as "Draft claim not found" (no existence leaks).
3. A claim cannot be submitted without lines.
4. Only managers decide (SUBMITTED -> APPROVED/REJECTED) and pay
   (APPROVED -> PAID). Marking an already PAID claim is an idempotent re-entry.
5. total_amount_cents is recomputed from lines on every mutation and before
   submission.

CONCURRENCY:
Every read-modify-write runs through run_with_retry. Claim flushes are
version-checked (version_id_col), so two writers racing on one claim cannot
both win; the loser is replayed against fresh state.
"""

from __future__ import annotations

from typing import Any

from sqlalchemy.exc import IntegrityError

from ..errors import InvalidStateError, NotFoundError, ValidationError, ForbiddenError
from ..extensions import db
from ..models import Claim, ClaimItem
from ..models.claims import (
    CLAIM_APPROVED,
    CLAIM_DRAFT,
    CLAIM_PAID,
    CLAIM_REJECTED,
    CLAIM_SUBMITTED,
)
from ..validation import ClaimItemInput, REF_MAX_LENGTH, NOTES_MAX_LENGTH, clean_text
from .concurrency import lock_for_update, run_with_retry
from .identity import CallerContext, require_manager
from wingrow.time_utils import utcnow


def _get_owned_draft(claim_id: int, owner_id: str) -> Claim:
    claim = lock_for_update(
        db.session.query(Claim).filter_by(id=claim_id, owner_id=owner_id, status=CLAIM_DRAFT)
    ).first()
    if claim is None:
        raise NotFoundError("Draft claim not found")
    return claim


def _get_claim(claim_id: int, *, lock: bool = False) -> Claim:
    query = db.session.query(Claim).filter_by(id=claim_id)
    if lock:
        query = lock_for_update(query)
    claim = query.first()
    if claim is None:
        raise NotFoundError("Claim not found")
    return claim


def _parse_index(index: Any) -> int:
    if isinstance(index, bool):
        raise ValidationError("Invalid item index")
    try:
        return int(str(index).strip())
    except (TypeError, ValueError):
        raise ValidationError("Invalid item index")


def get_or_create_draft(owner_id: str) -> Claim:
    """
    Return the owner's DRAFT claim, creating an empty one if none exists.

    Two concurrent first calls race on the partial unique index
    (owner_id WHERE status='DRAFT'); the loser rolls back and returns the
    winner's draft.
    """
    existing = db.session.query(Claim).filter_by(owner_id=owner_id, status=CLAIM_DRAFT).first()
    if existing is not None:
        return existing

    claim = Claim(owner_id=owner_id, status=CLAIM_DRAFT, total_amount_cents=0)
    db.session.add(claim)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        existing = db.session.query(Claim).filter_by(owner_id=owner_id, status=CLAIM_DRAFT).first()
        if existing is None:
            raise
        return existing
    return claim


def add_item(claim_id: int, owner_id: str, fields: Any) -> Claim:
    """
    Append an expense line to the owner's DRAFT claim.

    Raises:
        ValidationError: missing/unparseable date, non-positive amount, oversized text
        NotFoundError: no DRAFT claim with that id belongs to owner_id
    """
    line = ClaimItemInput.from_payload(fields)

    def _op():
        claim = _get_owned_draft(claim_id, owner_id)
        claim.items.append(ClaimItem(
            date=line.date,
            category=line.category,
            amount_cents=line.amount_cents,
            notes=line.notes,
            receipt_url=line.receipt_url,
        ))
        claim.recalculate_total()
        db.session.commit()
        return claim

    return run_with_retry(_op)


def remove_item(claim_id: int, owner_id: str, index: Any) -> Claim:
    """
    Remove the line at `index` (0-based, current order) from the owner's DRAFT claim.

    Raises:
        NotFoundError: no owned DRAFT claim with that id
        ValidationError: index is not an integer within current bounds
    """
    def _op():
        claim = _get_owned_draft(claim_id, owner_id)
        position = _parse_index(index)
        if position < 0 or position >= len(claim.items):
            raise ValidationError("Invalid item index")
        # ordering_list renumbers the remaining lines
        claim.items.pop(position)
        claim.recalculate_total()
        db.session.commit()
        return claim

    return run_with_retry(_op)


def submit_claim(claim_id: int, owner_id: str) -> Claim:
    """DRAFT -> SUBMITTED. Lines are frozen from here on."""
    def _op():
        claim = _get_owned_draft(claim_id, owner_id)
        if not claim.items:
            raise ValidationError("No items to submit")

        claim.recalculate_total()
        claim.status = CLAIM_SUBMITTED
        claim.submitted_at = utcnow()
        db.session.commit()
        return claim

    return run_with_retry(_op)


def decide_claim(claim_id: int, caller: CallerContext, approve: bool, comment: Any = None) -> Claim:
    """
    SUBMITTED -> APPROVED (approve=True) or SUBMITTED -> REJECTED.

    Raises:
        ForbiddenError: caller is not a manager
        NotFoundError: claim does not exist
        InvalidStateError: claim is not SUBMITTED (includes a second decision)
    """
    require_manager(caller)
    comment_text = clean_text(comment, "comment", max_length=NOTES_MAX_LENGTH)

    def _op():
        claim = _get_claim(claim_id, lock=True)
        if claim.status != CLAIM_SUBMITTED:
            raise InvalidStateError(
                f"Cannot {'approve' if approve else 'reject'} claim {claim_id}: "
                f"current status is '{claim.status}', must be '{CLAIM_SUBMITTED}'"
            )

        claim.status = CLAIM_APPROVED if approve else CLAIM_REJECTED
        claim.approved_by = caller.user_id
        claim.approved_at = utcnow()
        claim.manager_comment = comment_text
        db.session.commit()
        return claim

    return run_with_retry(_op)


def mark_paid(claim_id: int, caller: CallerContext, payment_ref: Any = None) -> Claim:
    """
    APPROVED -> PAID, recording payout time and reference.

    Re-marking a PAID claim is allowed: it refreshes paid_at and, if a
    non-empty reference is given, replaces payment_ref.
    """
    require_manager(caller)
    ref = clean_text(payment_ref, "paymentRef", max_length=REF_MAX_LENGTH)

    def _op():
        claim = _get_claim(claim_id, lock=True)
        if claim.status not in (CLAIM_APPROVED, CLAIM_PAID):
            raise InvalidStateError("Only approved/paid claims can be marked paid")

        claim.status = CLAIM_PAID
        if ref:
            claim.payment_ref = ref
        claim.paid_at = utcnow()
        db.session.commit()
        return claim

    return run_with_retry(_op)


def list_claims(
    *,
    owner_id: str | None = None,
    status: str | None = None,
    oldest_first: bool = False,
) -> list[Claim]:
    """
    List claims, newest first unless oldest_first (manager pending queue).

    status=APPROVED also returns PAID claims so the approved bucket stays
    stable after payout.
    """
    query = db.session.query(Claim)
    if owner_id is not None:
        query = query.filter(Claim.owner_id == owner_id)

    if status == CLAIM_APPROVED:
        query = query.filter(Claim.status.in_([CLAIM_APPROVED, CLAIM_PAID]))
    elif status:
        query = query.filter(Claim.status == status)

    if oldest_first:
        query = query.order_by(Claim.created_at.asc(), Claim.id.asc())
    else:
        query = query.order_by(Claim.created_at.desc(), Claim.id.desc())
    return query.all()


def get_claim(claim_id: int, caller: CallerContext) -> Claim:
    """Owner or any manager may read a claim."""
    claim = _get_claim(claim_id)
    if not caller.is_manager and claim.owner_id != caller.user_id:
        raise ForbiddenError("Forbidden")
    return claim
