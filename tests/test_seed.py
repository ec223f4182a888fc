"""Tests for sample data generation."""

import random
from collections import Counter

from sqlalchemy import select

from library_lending.config import MAX_ACTIVE_LOANS
from library_lending.database.schema import Book, BorrowRecord, Member
from library_lending.database.seed import SampleDataGenerator, generate_isbn13, seed_database
from library_lending.models import OUTSTANDING_STATUSES, BorrowStatus, normalize_isbn


def test_seed_counts(db_manager):
    with db_manager.session_scope() as session:
        counts = seed_database(session, authors=10, books=30, members=15, loans=60, seed=7)

    assert counts["authors"] == 10
    assert counts["categories"] == 15
    assert counts["books"] == 30
    assert counts["members"] == 15
    assert 0 < counts["borrow_records"] <= 60


def test_seeded_data_respects_lending_rules(db_manager):
    with db_manager.session_scope() as session:
        seed_database(session, authors=10, books=20, members=10, loans=120, seed=3)

    with db_manager.session_scope() as session:
        books = session.execute(select(Book)).scalars().all()
        records = session.execute(select(BorrowRecord)).scalars().all()

        outstanding_per_book = Counter(
            r.book_id for r in records if r.status in OUTSTANDING_STATUSES
        )
        for book in books:
            assert 0 <= book.available_copies <= book.total_copies
            assert book.total_copies - book.available_copies == outstanding_per_book[book.id]
            assert normalize_isbn(book.isbn) == book.isbn

        borrowed_per_member = Counter(
            r.member_id for r in records if r.status == BorrowStatus.BORROWED
        )
        assert max(borrowed_per_member.values(), default=0) <= MAX_ACTIVE_LOANS

        for record in records:
            if record.status == BorrowStatus.RETURNED:
                assert record.return_date is not None
                assert record.return_date >= record.borrow_date
            if record.fine_amount is not None:
                assert record.fine_amount > 0

        members = {m.id: m for m in session.execute(select(Member)).scalars().all()}
        emails = [m.email for m in members.values()]
        assert len(emails) == len(set(emails))


def test_generator_is_reproducible():
    first = SampleDataGenerator(seed=11).authors(5)
    second = SampleDataGenerator(seed=11).authors(5)
    assert [a.last_name for a in first] == [a.last_name for a in second]


def test_generated_isbns_are_valid():
    rng = random.Random(1)
    for _ in range(50):
        isbn = generate_isbn13(rng)
        assert normalize_isbn(isbn) == isbn
