"""Unit tests for refresh token rotation and logout."""

from __future__ import annotations

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import replace

import pytest

from sessionguard.models.refresh_token import RefreshTokenState
from sessionguard.services._shared.errors import StoreUnavailableError
from sessionguard.services._shared.ports import InMemoryRefreshTokenStore, UserSnapshot
from sessionguard.services.auth import (
    AuthFailure,
    AuthFailureKind,
    AuthTokenConfig,
    Identity,
    LogoutResult,
    LogoutScope,
    TokenPair,
)
from tests.helpers.auth import memory_service

ALICE = UserSnapshot(id=1, role="customer")
BOB = UserSnapshot(id=2, role="customer")


@pytest.fixture()
def svc():
    return memory_service(ALICE, BOB)


def _kind(outcome) -> AuthFailureKind:
    assert isinstance(outcome, AuthFailure), outcome
    return outcome.kind


class _RacingStore(InMemoryRefreshTokenStore):
    """Lets another caller win the revoke between lookup and revoke."""

    def lookup_active(self, token):
        view = super().lookup_active(token)
        if view is not None:
            super().revoke(token, ip="10.9.9.9", replaced_by="winner")
        return view


class _FlakyRevoke(InMemoryRefreshTokenStore):
    """Fails the first rotation revoke as if the backend dropped out."""

    failed = False

    def revoke(self, token, *, ip, replaced_by=None, user_id=None):
        if replaced_by is not None and not self.failed:
            self.failed = True
            raise StoreUnavailableError("refresh_tokens")
        return super().revoke(token, ip=ip, replaced_by=replaced_by, user_id=user_id)


# --------------------------------------------------------------------------- #
# Rotation
# --------------------------------------------------------------------------- #


def test_rotate_replaces_token_and_links_successor(svc):
    r1 = svc.issue(ALICE).refresh_token

    pair = svc.rotate(r1)

    assert isinstance(pair, TokenPair)
    assert pair.refresh_token != r1
    old = svc.refresh_store.get(r1)
    assert old.state is RefreshTokenState.REVOKED_REPLACED
    assert old.replaced_by_token == pair.refresh_token
    assert svc.refresh_store.get(pair.refresh_token).state is RefreshTokenState.ACTIVE
    assert isinstance(svc.verify(pair.access_token), Identity)


def test_refresh_token_is_single_use(svc):
    """
    GIVEN R1 rotated into R2
    WHEN R1 is presented again
    THEN it is rejected, while R2 still rotates.
    """
    r1 = svc.issue(ALICE).refresh_token
    r2 = svc.rotate(r1).refresh_token

    assert _kind(svc.rotate(r1)) is AuthFailureKind.INVALID_REFRESH_TOKEN
    assert isinstance(svc.rotate(r2), TokenPair)


@pytest.mark.parametrize("token", [None, "", "no-such-token"])
def test_rotate_rejects_missing_or_unknown(svc, token):
    assert _kind(svc.rotate(token)) is AuthFailureKind.INVALID_REFRESH_TOKEN


def test_rotate_rejects_expired_token(svc, freeze_time):
    with freeze_time("2024-01-01 12:00:00") as frozen:
        r1 = svc.issue(ALICE).refresh_token
        frozen.move_to("2024-01-08 12:00:01")

        assert _kind(svc.rotate(r1)) is AuthFailureKind.INVALID_REFRESH_TOKEN


def test_rotate_rejects_when_owner_is_gone(svc):
    r1 = svc.issue(ALICE).refresh_token
    svc.users.remove(ALICE.id)

    assert _kind(svc.rotate(r1)) is AuthFailureKind.INVALID_REFRESH_TOKEN


def test_reuse_is_logged_without_revoking_by_default(svc, caplog):
    r1 = svc.issue(ALICE).refresh_token
    r2 = svc.rotate(r1).refresh_token

    with caplog.at_level(logging.WARNING):
        svc.rotate(r1)

    assert "refresh.reuse_detected" in caplog.messages
    assert isinstance(svc.rotate(r2), TokenPair)


def test_reuse_revokes_every_session_when_enabled():
    """
    GIVEN reuse_revokes_all is on
    WHEN an already-rotated token is presented
    THEN the live successor and other sessions of the user are revoked.
    """
    svc = memory_service(ALICE, cfg=AuthTokenConfig(reuse_revokes_all=True))
    r1 = svc.issue(ALICE).refresh_token
    other = svc.issue(ALICE).refresh_token
    r2 = svc.rotate(r1).refresh_token

    assert _kind(svc.rotate(r1)) is AuthFailureKind.INVALID_REFRESH_TOKEN

    assert _kind(svc.rotate(r2)) is AuthFailureKind.INVALID_REFRESH_TOKEN
    assert _kind(svc.rotate(other)) is AuthFailureKind.INVALID_REFRESH_TOKEN
    assert svc.refresh_store.list_active_for_user(ALICE.id) == []


def test_concurrent_rotation_has_exactly_one_winner(svc):
    """
    GIVEN one refresh token
    WHEN eight callers rotate it at the same moment
    THEN exactly one receives a pair
    AND the user ends up with exactly one active refresh token.
    """
    r1 = svc.issue(ALICE).refresh_token
    callers = 8
    barrier = threading.Barrier(callers)

    def _race(_):
        barrier.wait()
        return svc.rotate(r1)

    with ThreadPoolExecutor(max_workers=callers) as pool:
        outcomes = list(pool.map(_race, range(callers)))

    winners = [o for o in outcomes if isinstance(o, TokenPair)]
    losers = [o for o in outcomes if isinstance(o, AuthFailure)]
    assert len(winners) == 1
    assert all(o.kind is AuthFailureKind.INVALID_REFRESH_TOKEN for o in losers)
    active = svc.refresh_store.list_active_for_user(ALICE.id)
    assert [v.token for v in active] == [winners[0].refresh_token]


def test_losing_rotation_revokes_its_own_successor():
    svc = memory_service(ALICE)
    racing = _RacingStore(ttl=svc.cfg.refresh_expires)
    svc.rotation.refresh_store = racing
    svc.issuer.refresh_store = racing
    r1 = svc.issue(ALICE).refresh_token

    assert _kind(svc.rotate(r1)) is AuthFailureKind.INVALID_REFRESH_TOKEN
    assert racing.list_active_for_user(ALICE.id) == []
    assert racing.get(r1).replaced_by_token == "winner"


def test_store_failure_during_revoke_discards_the_successor():
    """
    GIVEN the store drops out while revoking the presented token
    WHEN the caller retries the same token once it is back
    THEN the user holds exactly one active refresh token.
    """
    svc = memory_service(ALICE)
    flaky = _FlakyRevoke(ttl=svc.cfg.refresh_expires)
    svc.rotation.refresh_store = flaky
    svc.issuer.refresh_store = flaky
    r1 = svc.issue(ALICE).refresh_token

    assert _kind(svc.rotate(r1)) is AuthFailureKind.UNAVAILABLE
    assert [v.token for v in flaky.list_active_for_user(ALICE.id)] == [r1]

    retry = svc.rotate(r1)
    assert isinstance(retry, TokenPair)
    assert [v.token for v in flaky.list_active_for_user(ALICE.id)] == [retry.refresh_token]


def test_rotate_rejects_and_revokes_for_disabled_owner(svc):
    r1 = svc.issue(ALICE).refresh_token
    svc.users.update(ALICE.id, is_active=False)

    assert _kind(svc.rotate(r1)) is AuthFailureKind.INVALID_REFRESH_TOKEN
    assert svc.refresh_store.get(r1).state is RefreshTokenState.REVOKED_TERMINAL

    svc.users.update(ALICE.id, is_active=True)
    assert _kind(svc.rotate(r1)) is AuthFailureKind.INVALID_REFRESH_TOKEN


# --------------------------------------------------------------------------- #
# Logout
# --------------------------------------------------------------------------- #


def test_single_logout_revokes_access_and_refresh(svc):
    pair = svc.issue(ALICE)

    result = svc.revoke(pair.access_token, pair.refresh_token)

    assert result == LogoutResult(scope=LogoutScope.SINGLE, revoked_sessions=1)
    assert _kind(svc.verify(pair.access_token)) is AuthFailureKind.REVOKED
    assert svc.refresh_store.get(pair.refresh_token).state is RefreshTokenState.REVOKED_TERMINAL
    assert _kind(svc.rotate(pair.refresh_token)) is AuthFailureKind.INVALID_REFRESH_TOKEN


def test_single_logout_leaves_other_devices_alone(svc):
    phone = svc.issue(ALICE)
    laptop = svc.issue(ALICE)

    svc.revoke(phone.access_token, phone.refresh_token)

    assert isinstance(svc.verify(laptop.access_token), Identity)
    assert isinstance(svc.rotate(laptop.refresh_token), TokenPair)


def test_single_logout_ignores_unknown_or_foreign_refresh_token(svc):
    alice = svc.issue(ALICE)
    bob = svc.issue(BOB)

    assert svc.revoke(alice.access_token, "no-such-token").revoked_sessions == 0
    second = svc.issue(ALICE)
    assert svc.revoke(second.access_token, bob.refresh_token).revoked_sessions == 0
    assert isinstance(svc.rotate(bob.refresh_token), TokenPair)


def test_logout_all_devices(svc):
    sessions = [svc.issue(ALICE) for _ in range(3)]
    current = sessions[0]

    result = svc.revoke(current.access_token, scope=LogoutScope.ALL_DEVICES)

    assert result == LogoutResult(scope=LogoutScope.ALL_DEVICES, revoked_sessions=3)
    for pair in sessions:
        assert _kind(svc.rotate(pair.refresh_token)) is AuthFailureKind.INVALID_REFRESH_TOKEN
    assert _kind(svc.verify(current.access_token)) is AuthFailureKind.REVOKED


def test_revoke_requires_a_valid_access_token(svc):
    assert _kind(svc.revoke(None)) is AuthFailureKind.NO_TOKEN
    assert _kind(svc.revoke("garbage")) is AuthFailureKind.INVALID_SIGNATURE


def test_logout_with_undecodable_token_reports_format_error(svc):
    identity = replace(svc.verify(svc.issue(ALICE).access_token), token="garbage")

    assert _kind(svc.logout(identity)) is AuthFailureKind.TOKEN_FORMAT
