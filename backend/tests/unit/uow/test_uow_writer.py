"""
Unit tests for the SQLAlchemy units of work, using factories.
"""

from __future__ import annotations

import pytest

from sessionguard.models import User
from sessionguard.uow import SQLAlchemyReadOnlyUnitOfWork, SQLAlchemyUnitOfWork
from tests.factories.user import UserFactory


class TestSQLAlchemyUnitOfWorkWriter:
    def test_writer_uow_commits_on_success(self, app, db, session):
        """
        GIVEN a writer UoW
        WHEN we create a user via repo inside the context and leave without exception
        THEN the transaction is committed and the row is visible afterwards.
        """
        initial = db.session.query(User).count()

        with SQLAlchemyUnitOfWork() as uow:
            u = UserFactory.build()  # build = no persist
            uow.users.add(u)

        after = db.session.query(User).count()
        assert after == initial + 1

    def test_writer_uow_rolls_back_on_exception(self, app, db, session):
        """
        GIVEN a writer UoW
        WHEN an exception is raised inside the context
        THEN the transaction is rolled back and no rows are persisted.
        """
        initial = db.session.query(User).count()

        with pytest.raises(RuntimeError), SQLAlchemyUnitOfWork() as uow:
            u = UserFactory.build()
            uow.users.add(u)
            raise RuntimeError("boom")

        after = db.session.query(User).count()
        assert after == initial


class TestSQLAlchemyReadOnlyUnitOfWork:
    def test_reads_committed_rows(self, app, db, session):
        user = UserFactory()

        with SQLAlchemyReadOnlyUnitOfWork() as uow:
            assert uow.users.get_by_email(user.email) is not None

    def test_disallows_commit(self, app, db, session):
        with SQLAlchemyReadOnlyUnitOfWork() as uow, pytest.raises(RuntimeError, match="cannot commit"):
            uow.commit()

    def test_always_rolls_back_changes(self, app, db, session):
        user = UserFactory(full_name="Original Name")

        with SQLAlchemyReadOnlyUnitOfWork() as uow:
            uow.users.get(user.id).full_name = "Changed In RO"

        with SQLAlchemyReadOnlyUnitOfWork() as uow:
            assert uow.users.get(user.id).full_name == "Original Name"
