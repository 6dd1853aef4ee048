"""Unit tests for :class:`TokenIssuer` over in-memory doubles."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

import pytest

from sessionguard.services._shared.dto import RequestContext
from sessionguard.services._shared.ports import (
    InMemoryRefreshTokenStore,
    StubTokenProvider,
    UserSnapshot,
)
from sessionguard.services.auth import AuthTokenConfig, TokenIssuer
from tests.helpers.auth import CHROME_ON_ANDROID

T0 = datetime(2024, 1, 1, 12, 0, tzinfo=UTC)


@pytest.fixture()
def tokens():
    return StubTokenProvider()


@pytest.fixture()
def store():
    return InMemoryRefreshTokenStore(ttl=timedelta(days=7))


@pytest.fixture()
def issuer(tokens, store):
    return TokenIssuer(tokens=tokens, refresh_store=store, cfg=AuthTokenConfig())


def test_issue_returns_signed_access_and_stored_refresh(issuer, tokens, store, freeze_time):
    """
    GIVEN a known user
    WHEN a pair is issued
    THEN the access token carries the user id as a string plus the role
    AND the refresh token is an active record owned by the user.
    """
    user = UserSnapshot(id=7, role="admin")

    with freeze_time("2024-01-01 12:00:00"):
        pair = issuer.issue(user, RequestContext(ip="10.0.0.1", user_agent=CHROME_ON_ANDROID))
        claims = tokens.decode(pair.access_token)
        record = store.lookup_active(pair.refresh_token)

    assert claims["sub"] == "7"
    assert claims["role"] == "admin"
    assert claims["type"] == "access"
    assert record is not None
    assert record.user_id == 7
    assert record.created_by_ip == "10.0.0.1"
    assert (record.platform, record.browser) == ("Mobile", "Chrome")


def test_issue_reports_expiries(issuer, freeze_time):
    with freeze_time("2024-01-01 12:00:00"):
        pair = issuer.issue(UserSnapshot(id=1, role="customer"))

    assert pair.access_expires_at == T0 + timedelta(minutes=15)
    assert pair.refresh_expires_at == T0 + timedelta(days=7)


def test_every_issue_produces_distinct_tokens(issuer):
    user = UserSnapshot(id=1, role="customer")

    first = issuer.issue(user)
    second = issuer.issue(user)

    assert first.access_token != second.access_token
    assert first.refresh_token != second.refresh_token
    assert len(first.refresh_token) == 80
