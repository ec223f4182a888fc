"""
Tests for the unit of work: shared session, atomic commit, rollback and the
audit timestamps stamped at flush.
"""

import pytest
from sqlalchemy.exc import IntegrityError

from library_lending.database import UnitOfWork
from library_lending.database.schema import Category
from library_lending.exceptions import InvalidOperationError


def test_repositories_share_one_session(uow):
    assert uow.books.session is uow.members.session
    assert uow.borrow_records.session is uow.session
    assert uow.books is uow.books


def test_commit_persists_and_stamps_audit_fields(uow_factory):
    with uow_factory() as uow:
        category = uow.categories.add(Category(name="History"))
        uow.commit()
        assert category.created_on is not None
        assert category.updated_on is None
        assert category.is_deleted is False

        category.description = "Everything that already happened"
        uow.categories.update(category)
        uow.commit()
        assert category.updated_on is not None

    with uow_factory() as uow:
        stored = uow.categories.get_by_id(category.id)
        assert stored.description == "Everything that already happened"


def test_uncommitted_changes_are_discarded_on_close(uow_factory):
    with uow_factory() as uow:
        category = uow.categories.add(Category(name="History"))

    with uow_factory() as uow:
        assert uow.categories.get_by_id(category.id) is None


def test_exception_rolls_back(uow_factory):
    with pytest.raises(RuntimeError), uow_factory() as uow:
        category = uow.categories.add(Category(name="History"))
        uow.session.flush()
        raise RuntimeError("boom")

    with uow_factory() as uow:
        assert uow.categories.get_by_id(category.id) is None


def test_transaction_commits_on_success(uow_factory):
    with uow_factory() as uow:
        with uow.transaction():
            assert uow.in_transaction is True
            first = uow.categories.add(Category(name="History"))
            second = uow.categories.add(Category(name="Poetry"))
        assert uow.in_transaction is False

    with uow_factory() as uow:
        assert uow.categories.exists(first.id)
        assert uow.categories.exists(second.id)


def test_transaction_rolls_back_every_write(uow_factory):
    with uow_factory() as uow:
        with pytest.raises(ValueError), uow.transaction():
            category = uow.categories.add(Category(name="History"))
            uow.session.flush()
            raise ValueError("abort")
        assert uow.in_transaction is False

    with uow_factory() as uow:
        assert uow.categories.get_by_id(category.id) is None


def test_nested_transaction_rejected(uow):
    uow.begin_transaction()
    with pytest.raises(InvalidOperationError):
        uow.begin_transaction()
    uow.rollback_transaction()


def test_commit_transaction_requires_open_transaction(uow):
    with pytest.raises(InvalidOperationError):
        uow.commit_transaction()


def test_failed_commit_propagates_persistence_error(uow_factory):
    with uow_factory() as uow:
        uow.categories.add(Category(name="History"))
        uow.commit()

    with uow_factory() as uow:
        uow.begin_transaction()
        uow.categories.add(Category(name="History"))
        with pytest.raises(IntegrityError):
            uow.commit_transaction()
        assert uow.in_transaction is False

        # The session is usable again after the rollback
        assert uow.categories.count() == 1


def test_audit_fields_follow_the_unit_of_work_clock(db_manager, clock):
    clock.advance(days=400)

    with UnitOfWork(db_manager.session_factory, clock=clock) as uow:
        category = uow.categories.add(Category(name="History"))
        uow.commit()
        assert category.created_on == clock.now

        clock.advance(hours=2)
        assert uow.categories.soft_delete(category.id) is True
        uow.commit()
        assert category.deleted_on == clock.now
        assert category.updated_on == clock.now
