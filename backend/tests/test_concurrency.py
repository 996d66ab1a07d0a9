"""
Concurrency tests against a temporary SQLite file.

Each worker thread runs in its own app context (and so its own session and
connection), the same way concurrent requests would.
"""

import threading

import pytest

from wingrow import create_app
from wingrow.errors import InsufficientStockError, InvalidStateError
from wingrow.extensions import db
from wingrow.models import Claim, InventoryItem, IssueRequest
from wingrow.models.claims import CLAIM_DRAFT
from wingrow.services import claim_service, issue_request_service
from wingrow.services.identity import CallerContext, ROLE_MANAGER, ROLE_ORGANIZER


pytestmark = pytest.mark.concurrency

MANAGER = CallerContext(user_id="mgr1", role=ROLE_MANAGER)
ORGANIZER = CallerContext(user_id="u1", role=ROLE_ORGANIZER)


@pytest.fixture
def file_app(tmp_path):
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': f"sqlite:///{tmp_path / 'concurrency.db'}",
        'UPLOAD_FOLDER': str(tmp_path / "uploads"),
    })
    with app.app_context():
        db.create_all()

    yield app

    with app.app_context():
        db.session.remove()
        db.drop_all()
        db.session.remove()
        db.engine.dispose()


def _run_threads(app, targets):
    """Start all workers together; return whatever each one returned or raised."""
    results = []
    lock = threading.Lock()
    barrier = threading.Barrier(len(targets))

    def worker(target):
        with app.app_context():
            try:
                barrier.wait()
                outcome = target()
            except Exception as exc:
                outcome = exc
            finally:
                db.session.remove()
            with lock:
                results.append(outcome)

    threads = [threading.Thread(target=worker, args=(t,)) for t in targets]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    return results


def _make_item(app, stock, unit_price_cents=1000):
    with app.app_context():
        item = InventoryItem(name="Tent", unit="pcs", stock=stock, unit_price_cents=unit_price_cents)
        db.session.add(item)
        db.session.commit()
        return item.id


def _make_request(app, item_id, qty):
    with app.app_context():
        return issue_request_service.create_request("u1", item_id, qty).id


def test_concurrent_approvals_never_oversell(file_app):
    item_id = _make_item(file_app, stock=5)
    first = _make_request(file_app, item_id, 3)
    second = _make_request(file_app, item_id, 3)

    results = _run_threads(file_app, [
        lambda: issue_request_service.approve_request(first, MANAGER) and "approved",
        lambda: issue_request_service.approve_request(second, MANAGER) and "approved",
    ])

    assert results.count("approved") == 1
    failures = [r for r in results if r != "approved"]
    assert len(failures) == 1
    assert isinstance(failures[0], InsufficientStockError)

    with file_app.app_context():
        assert db.session.get(InventoryItem, item_id).stock == 2
        statuses = sorted(db.session.get(IssueRequest, rid).status for rid in (first, second))
        assert statuses == ["APPROVED", "PENDING"]


def test_same_request_approved_once(file_app):
    item_id = _make_item(file_app, stock=10)
    request_id = _make_request(file_app, item_id, 4)

    results = _run_threads(file_app, [
        lambda: issue_request_service.approve_request(request_id, MANAGER) and "approved",
        lambda: issue_request_service.approve_request(request_id, MANAGER) and "approved",
    ])

    assert results.count("approved") == 1
    assert any(isinstance(r, InvalidStateError) for r in results)

    with file_app.app_context():
        assert db.session.get(InventoryItem, item_id).stock == 6


def test_concurrent_payments_all_count(file_app):
    item_id = _make_item(file_app, stock=10)
    request_id = _make_request(file_app, item_id, 5)
    with file_app.app_context():
        issue_request_service.approve_request(request_id, MANAGER)

    results = _run_threads(file_app, [
        lambda: issue_request_service.record_payment(request_id, ORGANIZER, 10) and "paid"
        for _ in range(5)
    ])

    assert results == ["paid"] * 5
    with file_app.app_context():
        req = db.session.get(IssueRequest, request_id)
        assert req.amount_paid_cents == 5000
        assert req.settlement_status == "PAID"
        assert db.session.get(InventoryItem, item_id).amount_paid_cents == 5000


def test_concurrent_draft_creation_yields_one_draft(file_app):
    results = _run_threads(file_app, [
        lambda: claim_service.get_or_create_draft("u1").id
        for _ in range(4)
    ])

    assert all(isinstance(r, int) for r in results), results
    assert len(set(results)) == 1
    with file_app.app_context():
        drafts = db.session.query(Claim).filter_by(owner_id="u1", status=CLAIM_DRAFT).count()
        assert drafts == 1


def test_concurrent_line_additions_keep_total(file_app):
    with file_app.app_context():
        claim_id = claim_service.get_or_create_draft("u1").id

    results = _run_threads(file_app, [
        lambda: claim_service.add_item(claim_id, "u1", {"date": "2024-01-01", "amount": 10}) and "added"
        for _ in range(4)
    ])

    assert results == ["added"] * 4
    with file_app.app_context():
        claim = db.session.get(Claim, claim_id)
        assert len(claim.items) == 4
        assert claim.total_amount_cents == 4000
        assert sorted(i.position for i in claim.items) == [0, 1, 2, 3]
