"""Centralized JSON (RFC 7807) error handling for the API."""

from __future__ import annotations

import logging
from http import HTTPStatus
from typing import Any

from flask import Flask, Response, jsonify, request
from marshmallow import ValidationError
from sqlalchemy.exc import IntegrityError, OperationalError
from werkzeug.exceptions import HTTPException

from sessionguard.core.logger import ensure_request_id
from sessionguard.services._shared.errors import (
    ConflictError,
    NotFoundError,
    StoreUnavailableError,
    TokenFormatError,
)
from sessionguard.services.auth.dto import AuthFailure, AuthFailureKind

log = logging.getLogger(__name__)


def _http_status_to_code(status_code: int) -> str:
    """Map common HTTP status codes to canonical, stable error codes."""
    mapping = {
        400: "bad_request",
        401: "unauthorized",
        403: "forbidden",
        404: "not_found",
        405: "method_not_allowed",
        409: "conflict",
        413: "payload_too_large",
        415: "unsupported_media_type",
        422: "unprocessable_entity",
        423: "locked",
        429: "too_many_requests",
        500: "internal_server_error",
        503: "service_unavailable",
    }
    return mapping.get(status_code, "error")


# Every AuthFailureKind must appear here; the ``code`` is the kind's value.
AUTH_FAILURE_STATUS: dict[AuthFailureKind, HTTPStatus] = {
    AuthFailureKind.NO_TOKEN: HTTPStatus.UNAUTHORIZED,
    AuthFailureKind.INVALID_SIGNATURE: HTTPStatus.UNAUTHORIZED,
    AuthFailureKind.EXPIRED: HTTPStatus.UNAUTHORIZED,
    AuthFailureKind.REVOKED: HTTPStatus.UNAUTHORIZED,
    AuthFailureKind.USER_GONE: HTTPStatus.UNAUTHORIZED,
    AuthFailureKind.PASSWORD_CHANGED: HTTPStatus.UNAUTHORIZED,
    AuthFailureKind.INVALID_REFRESH_TOKEN: HTTPStatus.UNAUTHORIZED,
    AuthFailureKind.INVALID_CREDENTIALS: HTTPStatus.UNAUTHORIZED,
    AuthFailureKind.ACCOUNT_DISABLED: HTTPStatus.UNAUTHORIZED,
    AuthFailureKind.ACCOUNT_LOCKED: HTTPStatus.LOCKED,
    AuthFailureKind.TOKEN_FORMAT: HTTPStatus.BAD_REQUEST,
    AuthFailureKind.UNAVAILABLE: HTTPStatus.SERVICE_UNAVAILABLE,
}


def _as_problem(
    *,
    status: int,
    code: str,
    message: str,
    details: dict[str, Any] | None = None,
) -> dict[str, Any]:
    """
    Build an RFC 7807 Problem Details dict.

    :param status: HTTP status code.
    :param code: Stable machine-consumable error code.
    :param message: Human-readable error summary (safe for clients).
    :param details: Optional safe, structured details.
    :returns: Problem+JSON dictionary.
    :rtype: dict
    """
    instance = request.path if request else None
    problem = {
        "type": "about:blank",
        "title": HTTPStatus(status).phrase,
        "status": status,
        "detail": message,
        "instance": instance,
        "code": code,
    }
    if details:
        problem["details"] = details
    # Always attach correlation id
    problem["request_id"] = ensure_request_id()
    return problem


def _problem_response(problem: dict[str, Any]) -> Response:
    """
    Return a Flask response with ``application/problem+json`` media type.

    :param problem: Problem details payload.
    :returns: Flask JSON Response with proper MIME type.
    :rtype: flask.Response
    """
    resp = jsonify(problem)
    resp.mimetype = "application/problem+json"
    return resp


class APIError(Exception):
    """
    Represent a JSON-serializable API error.

    Parameters
    ----------
    message : str
        Human-readable description presented to clients.
    status_code : int, optional
        HTTP status code to return. Defaults to ``400``.
    code : str, optional
        Machine-readable identifier, typically snake_case. Defaults to
        ``"bad_request"``.
    details : dict[str, Any] | None, optional
        Optional structured payload (e.g., ``lock_until``) included in the
        response body.
    """

    def __init__(
        self,
        message: str,
        status_code: int = 400,
        code: str = "bad_request",
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = int(status_code)
        self.code = code
        self.details = details or {}

    def to_problem(self) -> dict[str, Any]:
        """
        Serialize error metadata into an RFC 7807 problem.

        :returns: Problem details dictionary.
        :rtype: dict
        """
        return _as_problem(
            status=self.status_code,
            code=self.code,
            message=self.message,
            details=self.details or None,
        )


class NotFound(APIError):
    """404 when resources are missing."""

    def __init__(self, message: str = "Resource not found") -> None:
        super().__init__(message, status_code=HTTPStatus.NOT_FOUND, code="not_found")


class Conflict(APIError):
    """409 for uniqueness/constraint collisions."""

    def __init__(self, message: str = "Conflict") -> None:
        super().__init__(message, status_code=HTTPStatus.CONFLICT, code="conflict")


class Forbidden(APIError):
    """403 when authorization denies access."""

    def __init__(self, message: str = "Forbidden") -> None:
        super().__init__(message, status_code=HTTPStatus.FORBIDDEN, code="forbidden")


def from_auth_failure(failure: AuthFailure) -> APIError:
    """
    Translate an :class:`AuthFailure` into its HTTP representation.

    ``ACCOUNT_LOCKED`` carries ``details.lock_until`` (ISO 8601, UTC).
    """
    details: dict[str, Any] = {}
    if failure.lock_until is not None:
        details["lock_until"] = failure.lock_until.isoformat()
    return APIError(
        failure.message,
        status_code=AUTH_FAILURE_STATUS[failure.kind],
        code=failure.kind.value,
        details=details,
    )


def init_app(app: Flask) -> None:
    """
    Attach JSON error handlers to the Flask app.

    Notes
    -----
    - Guarantees RFC 7807 responses for all handled errors.
    - Ensures a correlation ``request_id`` is present on every error.
    - Emits 5xx with ``exc_info`` for traceability; 4xx as warnings.
    """

    @app.errorhandler(APIError)
    def handle_api_error(err: APIError):
        problem = err.to_problem()
        level = log.error if err.status_code >= 500 else log.warning
        level(
            "APIError: code=%s status=%s msg=%s request_id=%s",
            err.code,
            err.status_code,
            err.message,
            problem.get("request_id"),
        )
        return _problem_response(problem), err.status_code

    @app.errorhandler(ConflictError)
    def handle_conflict(err: ConflictError):
        return handle_api_error(Conflict(err.detail))

    @app.errorhandler(NotFoundError)
    def handle_not_found(err: NotFoundError):
        return handle_api_error(NotFound(f"{err.entity} not found"))

    @app.errorhandler(TokenFormatError)
    def handle_token_format(err: TokenFormatError):
        return handle_api_error(
            APIError(str(err), status_code=HTTPStatus.BAD_REQUEST, code=AuthFailureKind.TOKEN_FORMAT.value)
        )

    @app.errorhandler(StoreUnavailableError)
    def handle_store_unavailable(err: StoreUnavailableError):
        log.error("StoreUnavailable: store=%s", err.store, exc_info=err.cause)
        return handle_api_error(
            APIError(
                "Service temporarily unavailable",
                status_code=HTTPStatus.SERVICE_UNAVAILABLE,
                code="service_unavailable",
            )
        )

    @app.errorhandler(HTTPException)
    def handle_http_exception(err: HTTPException):
        status = int(err.code or HTTPStatus.INTERNAL_SERVER_ERROR)
        error_code = _http_status_to_code(status)
        # Werkzeug may provide HTML-ish description; normalize for clients
        message = (err.description or error_code.replace("_", " ").capitalize()).strip()
        if status == HTTPStatus.NOT_FOUND and request:
            message = f"Route '{request.path}' not found"
        problem = _as_problem(status=status, code=error_code, message=message)
        level = log.error if status >= 500 else log.warning
        level(
            "HTTPException: code=%s status=%s detail=%s request_id=%s",
            error_code,
            status,
            message,
            problem.get("request_id"),
        )
        return _problem_response(problem), status

    @app.errorhandler(ValidationError)
    def handle_validation_error(err: ValidationError):
        problem = _as_problem(
            status=HTTPStatus.UNPROCESSABLE_ENTITY,
            code="validation_error",
            message="Validation failed",
            details={"errors": err.messages},
        )
        log.warning("ValidationError: request_id=%s", problem.get("request_id"))
        return _problem_response(problem), HTTPStatus.UNPROCESSABLE_ENTITY

    @app.errorhandler(IntegrityError)
    def handle_integrity_error(err: IntegrityError):
        # Do not leak raw DB error to clients
        problem = _as_problem(
            status=HTTPStatus.CONFLICT,
            code="conflict",
            message="Resource conflict",
        )
        log.error("IntegrityError: request_id=%s", problem.get("request_id"), exc_info=True)
        return _problem_response(problem), HTTPStatus.CONFLICT

    @app.errorhandler(OperationalError)
    def handle_operational_error(err: OperationalError):
        problem = _as_problem(
            status=HTTPStatus.SERVICE_UNAVAILABLE,
            code="service_unavailable",
            message="Service temporarily unavailable",
        )
        log.error("OperationalError: request_id=%s", problem.get("request_id"), exc_info=True)
        return _problem_response(problem), HTTPStatus.SERVICE_UNAVAILABLE

    @app.errorhandler(Exception)
    def handle_unexpected_error(err: Exception):
        # Unexpected server-side error; never leak internal details
        problem = _as_problem(
            status=HTTPStatus.INTERNAL_SERVER_ERROR,
            code="internal_server_error",
            message="Unexpected error",
        )
        log.error("Unhandled exception: request_id=%s", problem.get("request_id"), exc_info=True)
        return _problem_response(problem), HTTPStatus.INTERNAL_SERVER_ERROR
