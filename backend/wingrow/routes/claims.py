# Overview: Flask API routes for expense claims; parses input and returns JSON responses.

# backend/wingrow/routes/claims.py
"""
Expense claim routes.

SECURITY: All routes require authentication.
- Organizer routes act only on the caller's own DRAFT claim
- Decision and payout routes require the manager role
- Identity always comes from the session (g.caller), never from the body

Errors are raised as DomainError subclasses and rendered by the shared
handler in errors.py.
"""

from flask import Blueprint, current_app, g, request

from ..decorators import require_auth, require_role
from ..models.claims import CLAIM_STATUSES, CLAIM_SUBMITTED
from ..services import claim_service
from ..services.identity import ROLE_MANAGER
from ..validation import parse_flag, parse_status, require_object


claims_bp = Blueprint("claims", __name__, url_prefix="/api/claims")


# ---- Manager queues first so they read before "/<id>" ----

@claims_bp.get("/approvals")
@require_auth
@require_role(ROLE_MANAGER)
def list_approvals_route():
    """
    All claims for managers, optionally by status.

    status=APPROVED includes PAID claims.
    """
    status = parse_status(request.args.get("status"), CLAIM_STATUSES)
    claims = claim_service.list_claims(status=status)
    return {"claims": [c.to_dict() for c in claims]}, 200


@claims_bp.get("/approvals/pending")
@require_auth
@require_role(ROLE_MANAGER)
def pending_approvals_route():
    """Manager work queue: SUBMITTED claims, oldest first."""
    claims = claim_service.list_claims(status=CLAIM_SUBMITTED, oldest_first=True)
    return {"claims": [c.to_dict() for c in claims]}, 200


@claims_bp.post("/<int:claim_id>/approve")
@require_auth
@require_role(ROLE_MANAGER)
def approve_claim_route(claim_id: int):
    payload = require_object(request.get_json(silent=True))
    claim = claim_service.decide_claim(claim_id, g.caller, True, payload.get("comment"))
    current_app.logger.info("Claim %s approved by %s", claim_id, g.caller.user_id)
    return {"ok": True, "claim": claim.to_dict()}, 200


@claims_bp.post("/<int:claim_id>/reject")
@require_auth
@require_role(ROLE_MANAGER)
def reject_claim_route(claim_id: int):
    payload = require_object(request.get_json(silent=True))
    claim = claim_service.decide_claim(claim_id, g.caller, False, payload.get("comment"))
    current_app.logger.info("Claim %s rejected by %s", claim_id, g.caller.user_id)
    return {"ok": True, "claim": claim.to_dict()}, 200


@claims_bp.post("/<int:claim_id>/mark-paid")
@require_auth
@require_role(ROLE_MANAGER)
def mark_paid_route(claim_id: int):
    payload = require_object(request.get_json(silent=True))
    claim = claim_service.mark_paid(claim_id, g.caller, payload.get("paymentRef"))
    current_app.logger.info("Claim %s marked paid by %s (ref=%r)", claim_id, g.caller.user_id, claim.payment_ref)
    return {"ok": True, "claim": claim.to_dict()}, 200


# ---- Organizer routes ----

@claims_bp.post("")
@require_auth
def create_or_get_draft_route():
    """Return the caller's DRAFT claim id, creating the draft if needed."""
    claim = claim_service.get_or_create_draft(g.caller.user_id)
    return {"ok": True, "claimId": claim.id}, 200


@claims_bp.post("/<int:claim_id>/items")
@require_auth
def add_item_route(claim_id: int):
    """
    Body: {date, amount, category?, notes?, receiptUrl?}

    Response: {items, totalAmount}
    """
    payload = request.get_json(silent=True)
    claim = claim_service.add_item(claim_id, g.caller.user_id, payload)
    return {"ok": True, **claim.items_summary()}, 200


@claims_bp.delete("/<int:claim_id>/items/<idx>")
@require_auth
def delete_item_route(claim_id: int, idx: str):
    claim = claim_service.remove_item(claim_id, g.caller.user_id, idx)
    return {"ok": True, **claim.items_summary()}, 200


@claims_bp.post("/<int:claim_id>/submit")
@require_auth
def submit_claim_route(claim_id: int):
    claim = claim_service.submit_claim(claim_id, g.caller.user_id)
    return {"ok": True, "claim": claim.to_dict()}, 200


@claims_bp.get("")
@require_auth
def list_claims_route():
    """
    Query: mine=true|false, status=DRAFT|SUBMITTED|APPROVED|REJECTED|PAID

    Organizers always see only their own claims; managers see everyone's
    unless mine=true.
    """
    status = parse_status(request.args.get("status"), CLAIM_STATUSES)
    owner_id = None
    if parse_flag(request.args.get("mine")) or not g.caller.is_manager:
        owner_id = g.caller.user_id

    claims = claim_service.list_claims(owner_id=owner_id, status=status)
    return {"claims": [c.to_dict() for c in claims]}, 200


# ---- Common ----

@claims_bp.get("/<int:claim_id>")
@require_auth
def get_claim_route(claim_id: int):
    claim = claim_service.get_claim(claim_id, g.caller)
    return {"claim": claim.to_dict()}, 200
