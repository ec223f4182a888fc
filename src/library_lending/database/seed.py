"""
Sample data generation for the library lending core.

Builds a reproducible catalog (authors, categories, books), a member base
with a mix of valid, expired and inactive memberships, and a loan history.
The generated data respects the same rules the lending core enforces:
copy counts stay within bounds, every outstanding loan accounts for exactly
one copy off the shelf, and no member holds more than the loan limit.
"""

import logging
import random
from datetime import datetime, timedelta

from faker import Faker
from sqlalchemy.orm import Session

from ..config import LOAN_PERIOD_DAYS, MAX_ACTIVE_LOANS
from ..models.borrow_record import BorrowStatus
from ..services.borrowing import compute_fine
from .schema import Author, Book, BorrowRecord, Category, Member

logger = logging.getLogger(__name__)

CATEGORY_NAMES = [
    "Fiction", "Mystery", "Science Fiction", "Fantasy", "Romance",
    "Thriller", "Biography", "History", "Science", "Philosophy",
    "Poetry", "Children's", "Young Adult", "Self-Help", "Business",
]


class ProgressReporter:
    """Logs progress through the generation steps."""

    def __init__(self, total_steps: int) -> None:
        self.total_steps = total_steps
        self.current_step = 0

    def update(self, task: str) -> None:
        self.current_step += 1
        percentage = (self.current_step / self.total_steps) * 100
        logger.info("[%5.1f%%] %s", percentage, task)


def generate_isbn13(rng: random.Random) -> str:
    """Generate a valid ISBN-13 number."""
    body = "978" + "".join(str(rng.randint(0, 9)) for _ in range(9))
    total = sum(int(digit) * (3 if i % 2 else 1) for i, digit in enumerate(body))
    return f"{body}{(10 - total % 10) % 10}"


class SampleDataGenerator:
    """
    Seeded generator for a coherent sample library.

    The same seed always yields the same rows, apart from the generated ids.
    """

    def __init__(self, seed: int = 42, now: datetime | None = None):
        self.fake = Faker()
        self.fake.seed_instance(seed)
        self.rng = random.Random(seed)
        self.now = now or datetime.now()

    def authors(self, count: int) -> list[Author]:
        seen: set[tuple[str, str]] = set()
        authors = []
        while len(authors) < count:
            name = (self.fake.first_name(), self.fake.last_name())
            if name in seen:
                continue
            seen.add(name)
            authors.append(
                Author(
                    first_name=name[0],
                    last_name=name[1],
                    biography=self.fake.text(max_nb_chars=300),
                    birth_date=self.fake.date_of_birth(minimum_age=25, maximum_age=100),
                )
            )
        return authors

    def categories(self) -> list[Category]:
        return [
            Category(name=name, description=self.fake.sentence(nb_words=10))
            for name in CATEGORY_NAMES
        ]

    def books(self, authors: list[Author], categories: list[Category], count: int) -> list[Book]:
        isbns: set[str] = set()
        books = []
        while len(books) < count:
            isbn = generate_isbn13(self.rng)
            if isbn in isbns:
                continue
            isbns.add(isbn)
            total = self.rng.randint(1, 6)
            books.append(
                Book(
                    title=self.fake.catch_phrase().title(),
                    isbn=isbn,
                    description=self.fake.text(max_nb_chars=400),
                    page_count=self.rng.randint(80, 900),
                    published_date=self.fake.date_between(start_date="-80y", end_date="-1y"),
                    total_copies=total,
                    available_copies=total,
                    author=self.rng.choice(authors),
                    category=self.rng.choice(categories),
                )
            )
        return books

    def members(self, count: int) -> list[Member]:
        members = []
        for i in range(count):
            email = self.fake.unique.email().lower()
            start = self.fake.date_time_between(start_date="-5y", end_date="-30d")
            roll = self.rng.random()
            if roll < 0.15:
                expiration = self.now - timedelta(days=self.rng.randint(1, 365))
            elif roll < 0.7:
                expiration = self.now + timedelta(days=self.rng.randint(30, 730))
            else:
                expiration = None
            members.append(
                Member(
                    first_name=self.fake.first_name(),
                    last_name=self.fake.last_name(),
                    email=email,
                    phone_number=f"555{i:07d}",
                    address=self.fake.address().replace("\n", ", "),
                    membership_start=start,
                    expiration=expiration,
                    is_active=self.rng.random() > 0.05,
                )
            )
        return members

    def loans(self, members: list[Member], books: list[Book], count: int) -> list[BorrowRecord]:
        """
        Loan history: mostly returned loans plus some still outstanding.

        Outstanding loans take a copy off the book's shelf count as they are
        generated, and are only given to members below the loan limit.
        """
        eligible = [m for m in members if m.is_membership_valid(self.now)]
        if not eligible or not books:
            return []
        active_per_member: dict[int, int] = {id(m): 0 for m in eligible}
        records = []

        for _ in range(count):
            member = self.rng.choice(eligible)
            book = self.rng.choice(books)
            borrowed = self.fake.date_time_between(start_date="-1y", end_date=self.now)
            due = borrowed + timedelta(days=LOAN_PERIOD_DAYS)
            record = BorrowRecord(
                book=book,
                member=member,
                borrow_date=borrowed,
                due_date=due,
                notes="Book borrowed successfully",
            )

            outstanding = (
                self.rng.random() < 0.25
                and book.available_copies > 0
                and active_per_member[id(member)] < MAX_ACTIVE_LOANS
            )
            if outstanding:
                book.available_copies -= 1
                active_per_member[id(member)] += 1
                record.status = BorrowStatus.BORROWED
            else:
                returned = min(
                    borrowed + timedelta(days=self.rng.randint(1, LOAN_PERIOD_DAYS + 10)),
                    self.now,
                )
                record.status = BorrowStatus.RETURNED
                record.return_date = returned
                fine = compute_fine(due, returned)
                record.fine_amount = fine if fine > 0 else None
                record.notes = "Book returned successfully"
            records.append(record)

        return records


def seed_database(
    session: Session,
    *,
    authors: int = 40,
    books: int = 200,
    members: int = 60,
    loans: int = 300,
    seed: int = 42,
) -> dict[str, int]:
    """
    Insert a generated sample library through ``session`` and commit it.

    Returns:
        Number of rows created per table
    """
    generator = SampleDataGenerator(seed=seed)
    progress = ProgressReporter(total_steps=5)

    author_rows = generator.authors(authors)
    session.add_all(author_rows)
    progress.update(f"Generated {len(author_rows)} authors")

    category_rows = generator.categories()
    session.add_all(category_rows)
    progress.update(f"Generated {len(category_rows)} categories")

    book_rows = generator.books(author_rows, category_rows, books)
    session.add_all(book_rows)
    progress.update(f"Generated {len(book_rows)} books")

    member_rows = generator.members(members)
    session.add_all(member_rows)
    progress.update(f"Generated {len(member_rows)} members")

    loan_rows = generator.loans(member_rows, book_rows, loans)
    session.add_all(loan_rows)
    session.commit()
    progress.update(f"Generated {len(loan_rows)} loans")

    return {
        "authors": len(author_rows),
        "categories": len(category_rows),
        "books": len(book_rows),
        "members": len(member_rows),
        "borrow_records": len(loan_rows),
    }
