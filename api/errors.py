"""
api.errors - JSON error handlers for the API blueprint.

Service errors are user-facing: their message goes back verbatim.
"""

import logging

from flask import jsonify

from api import api_bp
from services.errors import (
    ActorUnresolved,
    InsufficientStock,
    NotFound,
    PermissionDenied,
    RecordingFailed,
    ServiceError,
)

logger = logging.getLogger(__name__)

# checked in order; anything else is a 400
_STATUS = (
    (NotFound, 404),
    (InsufficientStock, 409),
    (ActorUnresolved, 401),
    (PermissionDenied, 403),
    (RecordingFailed, 503),
)


def status_for(exc: ServiceError) -> int:
    for cls, status in _STATUS:
        if isinstance(exc, cls):
            return status
    return 400


@api_bp.errorhandler(ServiceError)
def api_service_error(exc: ServiceError):
    body = {"error": str(exc), "code": exc.code}
    if isinstance(exc, InsufficientStock):
        body["requested"] = float(exc.requested)
        body["available"] = float(exc.available)
    return jsonify(body), status_for(exc)


@api_bp.errorhandler(404)
def api_not_found(_e):
    return jsonify({"error": "not found"}), 404


@api_bp.errorhandler(400)
def api_bad_request(_e):
    return jsonify({"error": "bad request"}), 400


@api_bp.errorhandler(500)
def api_server_error(_e):
    logger.error("Unhandled API error: %s", _e)
    return jsonify({"error": "internal server error"}), 500
