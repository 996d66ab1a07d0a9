# Overview: Service-layer operations for inventory issue requests; encapsulates business logic and database work.

"""
Issue Request Lifecycle Service

STATE MACHINE:
    PENDING -> APPROVED    manager; stock decremented atomically, price frozen
    PENDING -> REJECTED    manager; stock untouched

APPROVED and REJECTED are terminal. Payments keep accruing on APPROVED
requests indefinitely; they never reopen a request.

ATOMICITY OF APPROVAL:
Approval is all-or-nothing inside one database transaction:
    1. conditional stock decrement (inventory_service.decrement_stock)
    2. conditional status flip   WHERE id = :id AND status = 'PENDING'
    3. mirror the cost onto the item's running totals
    4. commit
If any step fails the whole transaction rolls back, so an InsufficientStock
approval leaves the request PENDING and the stock unchanged, and two managers
approving the same request cannot both decrement stock.

SETTLEMENT:
amount_paid only grows. totalCost, amountPending = max(0, totalCost -
amountPaid) and settlementStatus are computed from stored fields on every
read (see models.inventory), never stored.
"""

from __future__ import annotations

from typing import Any

from sqlalchemy import update

from ..errors import InvalidStateError, NotFoundError, ValidationError
from ..extensions import db
from ..models import InventoryItem, IssueRequest
from ..models.inventory import REQUEST_APPROVED, REQUEST_PENDING, REQUEST_REJECTED
from ..validation import (
    NOTES_MAX_LENGTH,
    URL_MAX_LENGTH,
    amount_to_cents,
    clean_text,
    parse_positive_int,
)
from . import inventory_service
from .concurrency import run_with_retry
from .identity import CallerContext, require_manager
from wingrow.time_utils import utcnow


def _get_request(request_id: int) -> IssueRequest:
    issue_request = db.session.get(IssueRequest, request_id, populate_existing=True)
    if issue_request is None:
        raise NotFoundError("Request not found")
    return issue_request


def _transition(request_id: int, **values: Any) -> bool:
    """Flip a PENDING request; False if someone else decided it first."""
    result = db.session.execute(
        update(IssueRequest)
        .where(IssueRequest.id == request_id, IssueRequest.status == REQUEST_PENDING)
        .values(updated_at=utcnow(), **values)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


def create_request(requester_id: str, item_id: Any, qty: Any, note: Any = None) -> IssueRequest:
    """
    Create a PENDING request, snapshotting the item's name.

    Raises:
        ValidationError: item id missing or qty not a positive integer
        NotFoundError: item does not exist
    """
    if item_id is None or str(item_id).strip() == "":
        raise ValidationError("itemId and positive integer qty required")
    try:
        item_pk = parse_positive_int(item_id, "itemId")
    except ValidationError:
        raise NotFoundError("Item not found")
    n = parse_positive_int(qty, "qty")
    note_text = clean_text(note, "note", max_length=NOTES_MAX_LENGTH)

    item = db.session.get(InventoryItem, item_pk)
    if item is None:
        raise NotFoundError("Item not found")

    issue_request = IssueRequest(
        requested_by=requester_id,
        item_id=item.id,
        item_name=item.name,
        qty=n,
        note=note_text,
        status=REQUEST_PENDING,
    )
    db.session.add(issue_request)
    db.session.commit()
    return issue_request


def list_requests(*, requester_id: str | None = None, status: str | None = None) -> list[IssueRequest]:
    """Newest first. requester_id restricts to one organizer's requests."""
    query = db.session.query(IssueRequest)
    if requester_id is not None:
        query = query.filter(IssueRequest.requested_by == requester_id)
    if status:
        query = query.filter(IssueRequest.status == status)
    return query.order_by(IssueRequest.created_at.desc(), IssueRequest.id.desc()).all()


def approve_request(
    request_id: int,
    caller: CallerContext,
    issued_qty: Any = None,
) -> tuple[IssueRequest, InventoryItem]:
    """
    PENDING -> APPROVED, issuing stock.

    issued_qty defaults to the requested qty; when given it must be a positive
    integer (it may be lower or higher than requested).

    Returns (request, item) after commit.

    Raises:
        ForbiddenError: caller is not a manager
        ValidationError: issued_qty given but not a positive integer
        NotFoundError: request (or its item) does not exist
        InvalidStateError: request is not PENDING
        InsufficientStockError: item stock < issued qty; nothing is changed
    """
    require_manager(caller)
    explicit_qty = None
    if issued_qty is not None and str(issued_qty).strip() != "":
        explicit_qty = parse_positive_int(issued_qty, "issuedQty")

    def _op():
        issue_request = _get_request(request_id)
        if issue_request.status != REQUEST_PENDING:
            raise InvalidStateError(
                f"Cannot approve request {request_id}: "
                f"current status is '{issue_request.status}', must be '{REQUEST_PENDING}'"
            )

        qty = explicit_qty or issue_request.qty
        item = inventory_service.decrement_stock(issue_request.item_id, qty)

        # Price is read under the write lock taken by the decrement
        unit_price_cents = item.unit_price_cents or 0
        flipped = _transition(
            request_id,
            status=REQUEST_APPROVED,
            issued_qty=qty,
            unit_price_cents=unit_price_cents,
            decided_by=caller.user_id,
            decided_at=utcnow(),
        )
        if not flipped:
            # Decided concurrently; rollback in run_with_retry restores stock
            raise InvalidStateError(f"Request {request_id} is no longer pending")

        inventory_service.add_issue_totals(item.id, cost_cents=qty * unit_price_cents)
        db.session.commit()

        db.session.refresh(issue_request)
        db.session.refresh(item)
        return issue_request, item

    return run_with_retry(_op)


def reject_request(request_id: int, caller: CallerContext, note: Any = None) -> IssueRequest:
    """PENDING -> REJECTED. Stock is not touched."""
    require_manager(caller)
    note_text = clean_text(note, "note", max_length=NOTES_MAX_LENGTH)

    def _op():
        issue_request = _get_request(request_id)
        if issue_request.status != REQUEST_PENDING:
            raise InvalidStateError(
                f"Cannot reject request {request_id}: "
                f"current status is '{issue_request.status}', must be '{REQUEST_PENDING}'"
            )

        values = dict(status=REQUEST_REJECTED, decided_by=caller.user_id, decided_at=utcnow())
        if note_text:
            values["decision_note"] = note_text
        if not _transition(request_id, **values):
            raise InvalidStateError(f"Request {request_id} is no longer pending")

        db.session.commit()
        db.session.refresh(issue_request)
        return issue_request

    return run_with_retry(_op)


def record_payment(
    request_id: int,
    caller: CallerContext,
    amount: Any,
    proof_url: Any = None,
) -> IssueRequest:
    """
    Add a payment against an APPROVED request.

    amount_paid is incremented in SQL (never read-then-written), so
    concurrent payments all count. Overpayment is accepted; the pending
    balance bottoms out at zero.

    Raises:
        ValidationError: amount is not a non-negative number
        NotFoundError: request does not exist
        InvalidStateError: request is not APPROVED
    """
    cents = amount_to_cents(amount, "amount", allow_zero=True)
    proof = clean_text(proof_url, "proofUrl", max_length=URL_MAX_LENGTH)

    def _op():
        issue_request = _get_request(request_id)
        if issue_request.status != REQUEST_APPROVED:
            raise InvalidStateError("Only approved requests can accept payments")

        now = utcnow()
        values = dict(
            amount_paid_cents=IssueRequest.amount_paid_cents + cents,
            last_payment_at=now,
            last_payment_by=caller.user_id,
            updated_at=now,
        )
        if proof:
            values["last_payment_proof_url"] = proof

        db.session.execute(
            update(IssueRequest)
            .where(IssueRequest.id == request_id, IssueRequest.status == REQUEST_APPROVED)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        inventory_service.add_issue_totals(issue_request.item_id, paid_cents=cents)
        db.session.commit()

        db.session.refresh(issue_request)
        return issue_request

    return run_with_retry(_op)
