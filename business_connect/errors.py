"""API error type and the app-wide error handlers."""
from __future__ import annotations

import traceback

from flask import Flask, current_app, jsonify, request
from sqlalchemy.orm.exc import StaleDataError
from werkzeug.exceptions import HTTPException

from .extensions import db


class ApiError(Exception):
    """An error with an HTTP status, a machine-readable code and a message."""

    status_code = 400

    def __init__(self, error: str, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.error = error
        self.message = message
        if status_code is not None:
            self.status_code = status_code

    def to_dict(self) -> dict[str, str]:
        return {"error": self.error, "message": self.message}


class NotFound(ApiError):
    status_code = 404


class Unauthorized(ApiError):
    status_code = 401

    def __init__(self, message: str = "not authorized") -> None:
        super().__init__("unauthorized", message)


class PermissionDenied(ApiError):
    status_code = 403

    def __init__(self, message: str) -> None:
        super().__init__("forbidden", message)


def json_body() -> dict:
    """The request's JSON object; a missing body is ``{}``, any other JSON value is a 400."""
    payload = request.get_json(silent=True)
    if payload is None:
        return {}
    if not isinstance(payload, dict):
        raise ApiError("invalid_payload", "request body must be a JSON object")
    return payload


def register_error_handlers(app: Flask) -> None:
    @app.errorhandler(ApiError)
    def handle_api_error(exc: ApiError):
        db.session.rollback()
        return jsonify(exc.to_dict()), exc.status_code

    @app.errorhandler(StaleDataError)
    def handle_stale_data(exc: StaleDataError):
        db.session.rollback()
        current_app.logger.warning("Concurrent update rejected on %s %s", request.method, request.path)
        return (
            jsonify({
                "error": "conflict",
                "message": "the resource was modified by another request, reload and retry",
            }),
            409,
        )

    @app.errorhandler(HTTPException)
    def handle_http_exception(exc: HTTPException):
        return jsonify({"error": exc.name.lower().replace(" ", "_"), "message": exc.description}), exc.code

    @app.errorhandler(Exception)
    def handle_unexpected(exc: Exception):
        db.session.rollback()
        current_app.logger.exception(
            "Unhandled error on %s %s", request.method, request.path, exc_info=exc
        )
        payload = {"error": "internal_error", "message": str(exc) or exc.__class__.__name__}
        if current_app.config.get("ENV") != "production":
            payload["stack"] = traceback.format_exception(type(exc), exc, exc.__traceback__)
        return jsonify(payload), 500
