# Overview: Flask API routes for receipt and payment-proof uploads.

from flask import Blueprint, request, send_from_directory

from ..decorators import require_auth
from ..services import upload_service


uploads_bp = Blueprint("uploads", __name__)


@uploads_bp.post("/api/uploads")
@require_auth
def upload_file_route():
    """
    Multipart upload, field name "file".

    Response: {url}  e.g. "/uploads/1718000000000_receipt.jpg"
    """
    url = upload_service.save_upload(request.files.get("file"))
    return {"ok": True, "url": url}, 201


@uploads_bp.get("/uploads/<path:filename>")
def serve_upload_route(filename: str):
    return send_from_directory(upload_service.upload_folder(), filename)
