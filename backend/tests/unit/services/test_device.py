"""Tests for best-effort device classification."""

from __future__ import annotations

import pytest

from sessionguard.services._shared.device import DeviceInfo, classify_device

EDGE_ON_WINDOWS = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/124.0 Safari/537.36 Edg/124.0"
)
SAFARI_ON_IPAD = (
    "Mozilla/5.0 (iPad; CPU OS 17_4 like Mac OS X) AppleWebKit/605.1.15 "
    "(KHTML, like Gecko) Version/17.4 Tablet Safari/604.1"
)


@pytest.mark.parametrize(
    ("user_agent", "expected"),
    [
        (
            "Mozilla/5.0 (Linux; Android 14) Chrome/124.0 Mobile Safari/537.36",
            DeviceInfo("Mobile", "Chrome"),
        ),
        ("Mozilla/5.0 (X11; Linux x86_64; rv:125.0) Firefox/125.0", DeviceInfo("Desktop", "Firefox")),
        (SAFARI_ON_IPAD, DeviceInfo("Tablet", "Safari")),
        ("curl/8.5.0", DeviceInfo("Desktop", "Unknown")),
        (None, DeviceInfo("Desktop", "Unknown")),
        ("", DeviceInfo("Desktop", "Unknown")),
    ],
)
def test_classify_device(user_agent, expected):
    assert classify_device(user_agent) == expected


def test_chromium_based_edge_is_reported_as_chrome():
    """First matching pattern wins and Edge advertises ``Chrome`` first."""
    assert classify_device(EDGE_ON_WINDOWS).browser == "Chrome"
