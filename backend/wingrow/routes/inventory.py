# Overview: Flask API routes for inventory items and issue requests; parses input and returns JSON responses.

# backend/wingrow/routes/inventory.py
"""
Inventory management routes.

SECURITY: All routes require authentication.
- Anyone can list items, raise requests, see their own requests and record payments
- Seeding, item edits and request decisions require the manager role
"""
from flask import Blueprint, current_app, g, request

from ..decorators import require_auth, require_role
from ..errors import InsufficientStockError, ValidationError
from ..models.inventory import REQUEST_STATUSES
from ..services import inventory_service, issue_request_service
from ..services.identity import ROLE_MANAGER
from ..validation import parse_flag, parse_status, require_object


inventory_bp = Blueprint("inventory", __name__, url_prefix="/api/inventory")


# ----- Items -----

@inventory_bp.get("/items")
@require_auth
def list_items_route():
    items = inventory_service.list_items()
    return {"items": [i.to_dict() for i in items]}, 200


@inventory_bp.post("/items")
@require_auth
@require_role(ROLE_MANAGER)
def create_item_route():
    payload = require_object(request.get_json(silent=True))
    item = inventory_service.create_item(
        payload.get("name"),
        unit=payload.get("unit"),
        stock=payload.get("stock"),
        unit_price=payload.get("unitPrice"),
        sku=payload.get("sku"),
    )
    return {"item": item.to_dict()}, 201


@inventory_bp.post("/seed")
@require_auth
@require_role(ROLE_MANAGER)
def seed_items_route():
    """
    Insert the standard catalog (or body.names) where missing.

    Existing items keep their stock and price.
    """
    payload = require_object(request.get_json(silent=True))
    names = payload.get("names")
    if names is not None and not isinstance(names, list):
        raise ValidationError("names must be a list of item names")

    items = inventory_service.seed_catalog(names)
    return {"items": [i.to_dict() for i in items]}, 200


@inventory_bp.patch("/items/<int:item_id>")
@require_auth
@require_role(ROLE_MANAGER)
def update_item_route(item_id: int):
    """
    Body: {stock?, unitPrice?}

    Older clients send qty/price; they are honored when the new key is absent.
    """
    payload = require_object(request.get_json(silent=True))

    changes = {}
    if "stock" in payload:
        changes["stock"] = payload["stock"]
    elif "qty" in payload:
        changes["stock"] = payload["qty"]
    if "unitPrice" in payload:
        changes["unit_price"] = payload["unitPrice"]
    elif "price" in payload:
        changes["unit_price"] = payload["price"]

    item = inventory_service.update_item(item_id, **changes)
    return {"item": item.to_dict()}, 200


# ----- Requests -----

@inventory_bp.post("/requests")
@require_auth
def create_request_route():
    payload = require_object(request.get_json(silent=True))
    issue_request = issue_request_service.create_request(
        g.caller.user_id,
        payload.get("itemId"),
        payload.get("qty"),
        payload.get("note"),
    )
    return {"request": issue_request.to_dict()}, 201


@inventory_bp.get("/requests")
@require_auth
def list_requests_route():
    """
    Query: mine=true|false, status=PENDING|APPROVED|REJECTED

    Non-managers only ever see their own requests. An unknown status is
    ignored rather than rejected.
    """
    status = parse_status(request.args.get("status"), REQUEST_STATUSES, strict=False)
    requester_id = None
    if parse_flag(request.args.get("mine")) or not g.caller.is_manager:
        requester_id = g.caller.user_id

    requests = issue_request_service.list_requests(requester_id=requester_id, status=status)
    return {"requests": [r.to_dict() for r in requests]}, 200


@inventory_bp.post("/requests/<int:request_id>/approve")
@require_auth
@require_role(ROLE_MANAGER)
def approve_request_route(request_id: int):
    payload = require_object(request.get_json(silent=True))
    try:
        issue_request, item = issue_request_service.approve_request(
            request_id, g.caller, payload.get("issuedQty")
        )
    except InsufficientStockError as e:
        current_app.logger.warning("Request %s not approved: %s", request_id, e.message)
        raise

    current_app.logger.info(
        "Request %s approved by %s: issued %s of item %s",
        request_id, g.caller.user_id, issue_request.issued_qty, item.id,
    )
    return {"request": issue_request.to_dict(), "item": item.to_dict()}, 200


@inventory_bp.post("/requests/<int:request_id>/reject")
@require_auth
@require_role(ROLE_MANAGER)
def reject_request_route(request_id: int):
    payload = require_object(request.get_json(silent=True))
    issue_request = issue_request_service.reject_request(request_id, g.caller, payload.get("note"))
    current_app.logger.info("Request %s rejected by %s", request_id, g.caller.user_id)
    return {"request": issue_request.to_dict()}, 200


@inventory_bp.post("/requests/<int:request_id>/payments")
@require_auth
def add_payment_route(request_id: int):
    """
    Body: {amount, proofUrl?}

    Response: {id, amountPaid, amountPending, totalCost, unitPrice, settlementStatus}
    """
    payload = require_object(request.get_json(silent=True))
    issue_request = issue_request_service.record_payment(
        request_id,
        g.caller,
        payload.get("amount"),
        payload.get("proofUrl"),
    )
    return issue_request.payment_summary(), 200
