"""WSGI proxy middleware configuration helper."""

from __future__ import annotations

from flask import Flask
from werkzeug.middleware.proxy_fix import ProxyFix


def init_app(app: Flask) -> None:
    """Apply :class:`werkzeug.middleware.proxy_fix.ProxyFix` when enabled.

    Client IPs recorded on refresh tokens and blacklist entries come from
    ``request.remote_addr``, so behind a reverse proxy this must be on.
    Controlled by ``USE_PROXYFIX``; trusts a single ``X-Forwarded-For`` hop.
    """
    if app.config.get("USE_PROXYFIX", True):
        app.wsgi_app = ProxyFix(app.wsgi_app, x_for=1, x_proto=1, x_host=1)
