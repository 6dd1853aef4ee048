"""Best-effort device classification from a ``User-Agent`` header.

The result is stored next to refresh tokens so users can recognise their
sessions. It is informational only and never feeds a security decision.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

# Order matters: the first matching pattern wins.
_PLATFORMS: tuple[tuple[re.Pattern[str], str], ...] = (
    (re.compile(r"mobile", re.IGNORECASE), "Mobile"),
    (re.compile(r"tablet", re.IGNORECASE), "Tablet"),
)
_BROWSERS: tuple[tuple[re.Pattern[str], str], ...] = (
    (re.compile(r"chrome", re.IGNORECASE), "Chrome"),
    (re.compile(r"firefox", re.IGNORECASE), "Firefox"),
    (re.compile(r"safari", re.IGNORECASE), "Safari"),
    (re.compile(r"edge", re.IGNORECASE), "Edge"),
)


@dataclass(frozen=True, slots=True)
class DeviceInfo:
    platform: str
    browser: str


def platform_of(user_agent: str | None) -> str:
    for pattern, name in _PLATFORMS:
        if user_agent and pattern.search(user_agent):
            return name
    return "Desktop"


def browser_of(user_agent: str | None) -> str:
    for pattern, name in _BROWSERS:
        if user_agent and pattern.search(user_agent):
            return name
    return "Unknown"


def classify_device(user_agent: str | None) -> DeviceInfo:
    return DeviceInfo(platform=platform_of(user_agent), browser=browser_of(user_agent))
