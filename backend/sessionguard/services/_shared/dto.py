# comments in English; reST docstrings strict
from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class RequestContext:
    """
    Client metadata captured at the delivery layer.

    :param ip: Client address (after proxy resolution), if known.
    :type ip: str | None
    :param user_agent: Raw ``User-Agent`` header, if present.
    :type user_agent: str | None
    """

    ip: str | None = None
    user_agent: str | None = None


EMPTY_CONTEXT = RequestContext()
