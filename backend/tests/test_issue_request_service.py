"""
Issue request lifecycle tests.

Verifies:
- Requests are created PENDING with the item name snapshotted
- Approval decrements stock and freezes price in one transaction
- Insufficient stock leaves both the request and the stock untouched
- A request is decided at most once
- Payments accumulate; pending balance and settlement status are derived
"""

import pytest

from wingrow.errors import (
    ForbiddenError,
    InsufficientStockError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)
from wingrow.extensions import db
from wingrow.models import InventoryItem
from wingrow.models.inventory import (
    REQUEST_APPROVED,
    REQUEST_PENDING,
    REQUEST_REJECTED,
    SETTLEMENT_DUE,
    SETTLEMENT_PAID,
    SETTLEMENT_PARTIAL,
)
from wingrow.services import inventory_service, issue_request_service


def _stock(item_id):
    item = db.session.get(InventoryItem, item_id)
    db.session.refresh(item)
    return item.stock


# =============================================================================
# CREATION
# =============================================================================


class TestCreateRequest:

    def test_creates_pending(self, tent):
        req = issue_request_service.create_request("u1", tent.id, 5, "for stall 4")
        assert req.status == REQUEST_PENDING
        assert req.item_name == "Tent"
        assert req.qty == 5
        assert req.note == "for stall 4"
        assert req.requested_by == "u1"
        assert req.settlement_status is None
        assert _stock(tent.id) == 20

    def test_accepts_string_ids(self, tent):
        req = issue_request_service.create_request("u1", str(tent.id), "3")
        assert req.qty == 3

    @pytest.mark.parametrize("qty", [0, -1, 2.5, "abc", None])
    def test_bad_qty(self, tent, qty):
        with pytest.raises(ValidationError):
            issue_request_service.create_request("u1", tent.id, qty)

    def test_missing_item_id(self):
        with pytest.raises(ValidationError):
            issue_request_service.create_request("u1", None, 1)

    def test_unknown_item(self):
        with pytest.raises(NotFoundError):
            issue_request_service.create_request("u1", 999, 1)

    def test_snapshot_survives_rename(self, tent):
        req = issue_request_service.create_request("u1", tent.id, 1)
        tent.name = "Big Tent"
        db.session.commit()
        db.session.refresh(req)
        assert req.item_name == "Tent"


# =============================================================================
# DECISIONS
# =============================================================================


class TestApprove:

    def test_approve_issues_stock(self, tent, manager_caller):
        req = issue_request_service.create_request("u1", tent.id, 5)
        req, item = issue_request_service.approve_request(req.id, manager_caller)

        assert req.status == REQUEST_APPROVED
        assert req.issued_qty == 5
        assert req.unit_price_cents == 1000
        assert req.decided_by == "mgr1"
        assert item.stock == 15
        assert item.total_cost_cents == 5000

    def test_issued_qty_override(self, tent, manager_caller):
        req = issue_request_service.create_request("u1", tent.id, 5)
        req, item = issue_request_service.approve_request(req.id, manager_caller, 7)
        assert req.issued_qty == 7
        assert item.stock == 13

    @pytest.mark.parametrize("issued", [0, -2, "x", 1.5])
    def test_bad_issued_qty(self, tent, manager_caller, issued):
        req = issue_request_service.create_request("u1", tent.id, 5)
        with pytest.raises(ValidationError):
            issue_request_service.approve_request(req.id, manager_caller, issued)
        assert _stock(tent.id) == 20

    def test_insufficient_stock_changes_nothing(self, tent, manager_caller):
        req = issue_request_service.create_request("u1", tent.id, 25)
        with pytest.raises(InsufficientStockError):
            issue_request_service.approve_request(req.id, manager_caller)

        db.session.refresh(req)
        assert req.status == REQUEST_PENDING
        assert req.issued_qty is None
        assert _stock(tent.id) == 20

    def test_price_frozen_at_approval(self, tent, manager_caller):
        req = issue_request_service.create_request("u1", tent.id, 2)
        issue_request_service.approve_request(req.id, manager_caller)
        inventory_service.set_price(tent.id, 99)

        db.session.refresh(req)
        assert req.unit_price_cents == 1000
        assert req.total_cost_cents == 2000

    def test_cannot_approve_twice(self, tent, manager_caller):
        req = issue_request_service.create_request("u1", tent.id, 5)
        issue_request_service.approve_request(req.id, manager_caller)
        with pytest.raises(InvalidStateError):
            issue_request_service.approve_request(req.id, manager_caller)
        assert _stock(tent.id) == 15

    def test_organizer_forbidden(self, tent, organizer_caller):
        req = issue_request_service.create_request("u1", tent.id, 5)
        with pytest.raises(ForbiddenError):
            issue_request_service.approve_request(req.id, organizer_caller)
        assert _stock(tent.id) == 20

    def test_unknown_request(self, manager_caller):
        with pytest.raises(NotFoundError):
            issue_request_service.approve_request(999, manager_caller)


class TestReject:

    def test_reject_leaves_stock(self, tent, manager_caller):
        req = issue_request_service.create_request("u1", tent.id, 5)
        req = issue_request_service.reject_request(req.id, manager_caller, "not needed")
        assert req.status == REQUEST_REJECTED
        assert req.decision_note == "not needed"
        assert _stock(tent.id) == 20

    def test_rejected_is_terminal(self, tent, manager_caller):
        req = issue_request_service.create_request("u1", tent.id, 5)
        issue_request_service.reject_request(req.id, manager_caller)
        with pytest.raises(InvalidStateError):
            issue_request_service.approve_request(req.id, manager_caller)
        with pytest.raises(InvalidStateError):
            issue_request_service.reject_request(req.id, manager_caller)
        assert _stock(tent.id) == 20

    def test_approved_cannot_be_rejected(self, tent, manager_caller):
        req = issue_request_service.create_request("u1", tent.id, 5)
        issue_request_service.approve_request(req.id, manager_caller)
        with pytest.raises(InvalidStateError):
            issue_request_service.reject_request(req.id, manager_caller)


# =============================================================================
# PAYMENTS
# =============================================================================


class TestPayments:

    @pytest.fixture
    def approved(self, tent, manager_caller):
        req = issue_request_service.create_request("u1", tent.id, 5)
        req, _ = issue_request_service.approve_request(req.id, manager_caller, 4)
        return req

    def test_settlement_progression(self, approved, organizer_caller):
        assert approved.settlement_status == SETTLEMENT_DUE

        req = issue_request_service.record_payment(approved.id, organizer_caller, 15)
        assert req.payment_summary() == {
            "id": approved.id,
            "amountPaid": 15.0,
            "amountPending": 25.0,
            "totalCost": 40.0,
            "unitPrice": 10.0,
            "settlementStatus": SETTLEMENT_PARTIAL,
        }

        req = issue_request_service.record_payment(approved.id, organizer_caller, 30)
        summary = req.payment_summary()
        assert summary["amountPaid"] == 45.0
        assert summary["amountPending"] == 0.0
        assert summary["settlementStatus"] == SETTLEMENT_PAID

    def test_payment_mirrors_onto_item(self, approved, tent, organizer_caller):
        issue_request_service.record_payment(approved.id, organizer_caller, "12.5")
        item = db.session.get(InventoryItem, tent.id)
        db.session.refresh(item)
        assert item.total_cost_cents == 4000
        assert item.amount_paid_cents == 1250

    def test_zero_payment_allowed(self, approved, organizer_caller):
        req = issue_request_service.record_payment(approved.id, organizer_caller, 0)
        assert req.amount_paid_cents == 0
        assert req.settlement_status == SETTLEMENT_DUE

    def test_proof_and_payer_recorded(self, approved, organizer_caller):
        req = issue_request_service.record_payment(
            approved.id, organizer_caller, 5, "/uploads/1_proof.png"
        )
        assert req.last_payment_by == "u1"
        assert req.last_payment_proof_url == "/uploads/1_proof.png"
        assert req.last_payment_at is not None

    @pytest.mark.parametrize("amount", [-1, "abc", None])
    def test_bad_amount(self, approved, organizer_caller, amount):
        with pytest.raises(ValidationError):
            issue_request_service.record_payment(approved.id, organizer_caller, amount)

    def test_pending_request_rejects_payment(self, tent, organizer_caller):
        req = issue_request_service.create_request("u1", tent.id, 5)
        with pytest.raises(InvalidStateError):
            issue_request_service.record_payment(req.id, organizer_caller, 10)

    def test_unknown_request(self, organizer_caller):
        with pytest.raises(NotFoundError):
            issue_request_service.record_payment(999, organizer_caller, 10)


class TestListRequests:

    def test_filters(self, tent, manager_caller):
        mine = issue_request_service.create_request("u1", tent.id, 1)
        theirs = issue_request_service.create_request("u2", tent.id, 1)
        issue_request_service.approve_request(theirs.id, manager_caller)

        assert [r.id for r in issue_request_service.list_requests(requester_id="u1")] == [mine.id]
        assert [r.id for r in issue_request_service.list_requests(status=REQUEST_APPROVED)] == [theirs.id]
        assert [r.id for r in issue_request_service.list_requests()] == [theirs.id, mine.id]


def test_issue_and_settle_scenario(tent, manager_caller, organizer_caller):
    """Request 5, issue 4 at 10.00, then pay 15 and 30."""
    req = issue_request_service.create_request("u1", tent.id, 5)
    req, item = issue_request_service.approve_request(req.id, manager_caller, 4)
    assert req.total_cost_cents == 4000
    assert item.stock == 16

    issue_request_service.record_payment(req.id, organizer_caller, 15)
    req = issue_request_service.record_payment(req.id, organizer_caller, 30)
    assert req.amount_paid_cents == 4500
    assert req.amount_pending_cents == 0
    assert req.settlement_status == SETTLEMENT_PAID
