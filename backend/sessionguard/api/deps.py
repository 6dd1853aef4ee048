"""Shared API helpers for request parsing and cross-cutting concerns."""

from __future__ import annotations

import functools
import time
from collections.abc import Callable
from typing import Any, TypeVar, cast

from flask import Response, current_app, g, jsonify, request

from sessionguard.core.errors import Forbidden, from_auth_failure
from sessionguard.core.wiring import get_auth_service
from sessionguard.services._shared.dto import RequestContext
from sessionguard.services.auth import AuthFailure, Identity, extract_bearer

F = TypeVar("F", bound=Callable[..., Any])


def request_context() -> RequestContext:
    """Capture client IP (after ProxyFix) and ``User-Agent`` of the request."""

    return RequestContext(ip=request.remote_addr, user_agent=request.headers.get("User-Agent"))


def bearer_token() -> str | None:
    return extract_bearer(request.headers.get("Authorization"))


def current_identity() -> Identity:
    """Return the identity attached by :func:`require_auth`."""

    return cast(Identity, g.identity)


def require_auth(func: F) -> F:
    """Run the auth guard and attach the verified :class:`Identity` to ``g``.

    Failures are raised as problem+json API errors (401/423/503).
    """

    @functools.wraps(func)
    def wrapper(*args: Any, **kwargs: Any):
        outcome = get_auth_service().verify(bearer_token(), request_context())
        if isinstance(outcome, AuthFailure):
            raise from_auth_failure(outcome)
        g.identity = outcome
        return func(*args, **kwargs)

    return wrapper  # type: ignore[return-value]


def require_role(*roles: str) -> Callable[[F], F]:
    """Ensure the authenticated user holds one of ``roles``.

    The role is read from the user record on every request, so a demotion
    applies to tokens that are already out.
    """

    def decorator(func: F) -> F:
        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any):
            role = current_identity().role
            if role not in roles:
                raise Forbidden(f"User role {role} is not authorized to access this route")
            return func(*args, **kwargs)

        return require_auth(wrapper)  # type: ignore[arg-type]

    return decorator


def unwrap(outcome: Any) -> Any:
    """Return a successful outcome or raise the API error for a failure."""

    if isinstance(outcome, AuthFailure):
        raise from_auth_failure(outcome)
    return outcome


def json_response(payload: Any, *, status: int = 200) -> Response:
    """Return a JSON response enforcing a consistent MIME type."""

    response = jsonify(payload)
    response.status_code = status
    return response


def timing(func: F) -> F:
    """Decorator capturing handler execution time in milliseconds."""

    @functools.wraps(func)
    def wrapper(*args: Any, **kwargs: Any):
        start = time.perf_counter()
        try:
            return func(*args, **kwargs)
        finally:
            elapsed_ms = (time.perf_counter() - start) * 1000
            request_endpoint = getattr(request, "endpoint", None)
            current_app.logger.debug(
                "request.elapsed",
                extra={"endpoint": request_endpoint, "elapsed_ms": round(elapsed_ms, 2)},
            )

    return wrapper  # type: ignore[return-value]
