# Overview: Object-storage operations for product images; image bytes never reach this server.

from __future__ import annotations

import time

import cloudinary.uploader
import cloudinary.utils
from flask import current_app

from ..errors import ServiceError

UPLOAD_ALLOWED_FORMATS = "jpg,png,webp"
UPLOAD_TRANSFORMATION = "w_1200,q_auto,f_auto"

# destroy() answers "not found" for an image that is already gone
DESTROY_OK_RESULTS = {"ok", "not found"}


class UploadSigningUnavailable(ServiceError):
    """Storage credentials are not configured on this server."""
    status_code = 503


def _storage_credentials() -> dict | None:
    config = current_app.config
    credentials = {
        "cloud_name": config.get("CLOUDINARY_CLOUD_NAME"),
        "api_key": config.get("CLOUDINARY_API_KEY"),
        "api_secret": config.get("CLOUDINARY_API_SECRET"),
    }
    if not credentials["api_key"] or not credentials["api_secret"]:
        return None
    return credentials


def sign_upload(folder: str | None = None, timestamp: int | None = None) -> dict:
    """
    Parameters for a signed client-side direct upload.

    The browser posts the file straight to the storage provider with these
    values; only the resulting {url, public_id} pair comes back to us.
    """
    credentials = _storage_credentials()
    if credentials is None:
        raise UploadSigningUnavailable("Image upload is not configured")

    folder = folder or current_app.config.get("UPLOAD_FOLDER")
    timestamp = int(time.time()) if timestamp is None else timestamp

    params = {
        "timestamp": timestamp,
        "folder": folder,
        "allowed_formats": UPLOAD_ALLOWED_FORMATS,
        "transformation": UPLOAD_TRANSFORMATION,
    }

    return {
        "signature": cloudinary.utils.api_sign_request(params, credentials["api_secret"]),
        "timestamp": timestamp,
        "cloud_name": credentials["cloud_name"],
        "api_key": credentials["api_key"],
        "folder": folder,
        "allowed_formats": UPLOAD_ALLOWED_FORMATS,
        "transformation": UPLOAD_TRANSFORMATION,
    }


def delete_image(public_id: str | None) -> bool:
    """
    Remove one image from object storage.

    Storage failures are logged and reported as False, never raised: a
    leftover image must not block deleting its product.
    """
    if not public_id:
        return False

    credentials = _storage_credentials()
    if credentials is None:
        current_app.logger.warning("Image storage not configured; leaving image %s in place", public_id)
        return False

    try:
        response = cloudinary.uploader.destroy(public_id, **credentials)
    except Exception:
        current_app.logger.exception("Failed to delete image %s from storage", public_id)
        return False

    result = (response or {}).get("result")
    if result not in DESTROY_OK_RESULTS:
        current_app.logger.warning("Storage refused to delete image %s: %s", public_id, result)
        return False
    return True
