# Overview: Service-layer operations for receipt and payment-proof uploads.

from __future__ import annotations

import os
import time

from flask import current_app
from werkzeug.datastructures import FileStorage
from werkzeug.utils import secure_filename

from ..errors import ValidationError

UPLOAD_URL_PREFIX = "/uploads"


def upload_folder() -> str:
    folder = current_app.config.get("UPLOAD_FOLDER") or os.path.join(current_app.instance_path, "uploads")
    os.makedirs(folder, exist_ok=True)
    return folder


def save_upload(file: FileStorage | None) -> str:
    """
    Store an uploaded file as <epoch-ms>_<safe name> and return its public URL.

    The URL is what claim lines (receiptUrl) and payments (proofUrl) reference.
    """
    if file is None or not file.filename:
        raise ValidationError("No file uploaded")

    safe_name = secure_filename(file.filename)
    if not safe_name:
        raise ValidationError("Invalid file name")

    stored_name = f"{int(time.time() * 1000)}_{safe_name}"
    file.save(os.path.join(upload_folder(), stored_name))
    return f"{UPLOAD_URL_PREFIX}/{stored_name}"
