"""Unit tests for :class:`AuthGuard` (access token verification)."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

import pytest

from sessionguard.models.token_blacklist import BlacklistReason
from sessionguard.services._shared.errors import StoreUnavailableError
from sessionguard.services._shared.ports import InMemoryUserDirectory, UserSnapshot
from sessionguard.services.auth import AuthFailure, AuthFailureKind, Identity, extract_bearer
from tests.helpers.auth import memory_service

ALICE = UserSnapshot(id=1, role="customer")
T0 = datetime(2024, 1, 1, 12, 0, tzinfo=UTC)


@pytest.fixture()
def svc():
    return memory_service(ALICE)


def _kind(outcome) -> AuthFailureKind:
    assert isinstance(outcome, AuthFailure), outcome
    return outcome.kind


class _DownBlacklist:
    def is_blacklisted(self, token):
        raise StoreUnavailableError("blacklist")


class _FlakyDirectory(InMemoryUserDirectory):
    def touch_last_active(self, user_id, at):
        raise StoreUnavailableError("users")


# --------------------------------------------------------------------------- #
# Happy path
# --------------------------------------------------------------------------- #


def test_fresh_token_yields_identity(svc):
    pair = svc.issue(ALICE)

    outcome = svc.verify(pair.access_token)

    assert isinstance(outcome, Identity)
    assert outcome.user_id == 1
    assert outcome.role == "customer"
    assert outcome.token == pair.access_token
    assert outcome.jti


def test_role_comes_from_the_user_record(svc):
    pair = svc.issue(ALICE)
    svc.users.update(ALICE.id, role="admin")

    assert svc.verify(pair.access_token).role == "admin"


def test_success_refreshes_last_active(svc, freeze_time):
    with freeze_time("2024-01-01 12:00:00"):
        pair = svc.issue(ALICE)
        svc.verify(pair.access_token)

    assert svc.users.last_active[1] == T0


def test_last_active_failure_does_not_fail_the_request():
    """
    GIVEN a user directory whose last_active write is down
    WHEN a valid token is verified
    THEN the request still authenticates.
    """
    svc = memory_service()
    svc.guard.users = _FlakyDirectory(ALICE)
    pair = svc.issue(ALICE)

    assert isinstance(svc.verify(pair.access_token), Identity)


# --------------------------------------------------------------------------- #
# Failure kinds
# --------------------------------------------------------------------------- #


@pytest.mark.parametrize("token", [None, ""])
def test_missing_token(svc, token):
    assert _kind(svc.verify(token)) is AuthFailureKind.NO_TOKEN


def test_unknown_or_tampered_token(svc):
    pair = svc.issue(ALICE)

    assert _kind(svc.verify(pair.access_token + "x")) is AuthFailureKind.INVALID_SIGNATURE


def test_expiry_boundary(svc, freeze_time):
    """
    GIVEN an access token issued at 12:00 with a 15 minute lifetime
    WHEN it is verified at 12:14:59 and at 12:15:01
    THEN the first succeeds and the second fails with EXPIRED.
    """
    with freeze_time("2024-01-01 12:00:00") as frozen:
        pair = svc.issue(ALICE)
        frozen.move_to("2024-01-01 12:14:59")
        assert isinstance(svc.verify(pair.access_token), Identity)
        frozen.move_to("2024-01-01 12:15:01")
        assert _kind(svc.verify(pair.access_token)) is AuthFailureKind.EXPIRED


def test_blacklist_is_checked_before_signature(svc, freeze_time):
    """A revoked token reports REVOKED even after it has also expired."""
    with freeze_time("2024-01-01 12:00:00") as frozen:
        pair = svc.issue(ALICE)
        svc.blacklist.add(pair.access_token, user_id=1, reason=BlacklistReason.LOGOUT)
        frozen.move_to("2024-01-01 13:00:00")

        assert _kind(svc.verify(pair.access_token)) is AuthFailureKind.REVOKED


def test_user_gone(svc):
    pair = svc.issue(ALICE)
    svc.users.remove(ALICE.id)

    assert _kind(svc.verify(pair.access_token)) is AuthFailureKind.USER_GONE


def test_password_change_invalidates_older_tokens(svc, freeze_time):
    """
    GIVEN a token issued at 12:00 that verifies at 12:01
    WHEN the password changes at 12:02
    THEN verifying it at 12:03 fails with PASSWORD_CHANGED
    AND the token is blacklisted, so the next attempt reports REVOKED
    AND a token issued after the change is accepted.
    """
    with freeze_time("2024-01-01 12:00:00") as frozen:
        old = svc.issue(ALICE)
        frozen.move_to("2024-01-01 12:01:00")
        assert isinstance(svc.verify(old.access_token), Identity)

        frozen.move_to("2024-01-01 12:02:00")
        svc.users.update(1, password_changed_at=T0 + timedelta(minutes=2, seconds=-1))
        fresh = svc.issue(ALICE)

        frozen.move_to("2024-01-01 12:03:00")
        assert _kind(svc.verify(old.access_token)) is AuthFailureKind.PASSWORD_CHANGED
        assert svc.blacklist.is_blacklisted(old.access_token)
        assert _kind(svc.verify(old.access_token)) is AuthFailureKind.REVOKED
        assert isinstance(svc.verify(fresh.access_token), Identity)


def test_locked_account_reports_lock_end(svc, freeze_time):
    with freeze_time("2024-01-01 12:00:00") as frozen:
        pair = svc.issue(ALICE)
        lock_until = T0 + timedelta(minutes=10)
        svc.users.update(1, account_locked=True, lock_until=lock_until)

        outcome = svc.verify(pair.access_token)
        assert _kind(outcome) is AuthFailureKind.ACCOUNT_LOCKED
        assert outcome.lock_until == lock_until

        frozen.move_to("2024-01-01 12:10:01")
        assert isinstance(svc.verify(pair.access_token), Identity)


def test_store_outage_is_not_an_authorization_failure(svc):
    pair = svc.issue(ALICE)
    svc.guard.blacklist = _DownBlacklist()

    assert _kind(svc.verify(pair.access_token)) is AuthFailureKind.UNAVAILABLE


# --------------------------------------------------------------------------- #
# Header parsing
# --------------------------------------------------------------------------- #


@pytest.mark.parametrize(
    ("header", "expected"),
    [
        ("Bearer abc.def", "abc.def"),
        ("bearer abc.def", "abc.def"),
        ("BEARER   abc.def  ", "abc.def"),
        ("Basic dXNlcjpwdw==", None),
        ("Bearer", None),
        ("Bearer   ", None),
        ("", None),
        (None, None),
    ],
)
def test_extract_bearer(header, expected):
    assert extract_bearer(header) == expected
