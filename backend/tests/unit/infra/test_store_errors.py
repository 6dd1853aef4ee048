"""Translation of database failures into store outages."""

from __future__ import annotations

import pytest
from sqlalchemy.exc import DBAPIError, IntegrityError, OperationalError

from sessionguard.services._shared.errors import StoreUnavailableError, unavailable_as, violates


def test_operational_error_becomes_store_unavailable():
    cause = OperationalError("SELECT 1", {}, Exception("connection refused"))

    with pytest.raises(StoreUnavailableError) as excinfo, unavailable_as("refresh_tokens"):
        raise cause

    assert excinfo.value.store == "refresh_tokens"
    assert excinfo.value.cause is cause


def test_invalidated_connection_becomes_store_unavailable():
    with pytest.raises(StoreUnavailableError), unavailable_as("users"):
        raise DBAPIError("SELECT 1", {}, Exception("gone"), connection_invalidated=True)


def test_integrity_errors_pass_through():
    with pytest.raises(IntegrityError), unavailable_as("users"):
        raise IntegrityError("INSERT", {}, Exception("UNIQUE constraint failed: users.email"))


def test_violates_matches_constraint_or_column():
    exc = IntegrityError("INSERT", {}, Exception("UNIQUE constraint failed: users.email"))

    assert violates(exc, "uq_users_email", column="users.email")
    assert not violates(exc, "uq_users_email")
    assert not violates(exc, "uq_other", column="token_blacklist.token_hash")
