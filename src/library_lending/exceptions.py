"""
Domain error taxonomy for the lending core.

Business-rule violations are raised as one of these types at the point where
they are detected. Persistence failures are never converted; SQLAlchemy errors
reach the caller unchanged.
"""


class LendingError(Exception):
    """Base exception for lending domain errors."""


class NotFoundError(LendingError):
    """Raised when an entity id or identifier does not resolve to a live row."""

    def __init__(self, entity: str, identifier: object):
        self.entity = entity
        self.identifier = identifier
        super().__init__(f"{entity} with identifier '{identifier}' was not found.")


class DuplicateEntityError(LendingError):
    """Raised when a create or update would violate a uniqueness rule."""

    def __init__(self, entity: str, field: str, value: object):
        self.entity = entity
        self.field = field
        self.value = value
        super().__init__(f"{entity} with {field} '{value}' already exists.")


class InvalidOperationError(LendingError):
    """Raised on a state-machine or invariant violation."""

    def __init__(self, operation: str, reason: str):
        self.operation = operation
        self.reason = reason
        super().__init__(f"Invalid operation '{operation}': {reason}")


class MemberCannotBorrowError(LendingError):
    """Raised when a member fails the borrowing eligibility rules."""

    def __init__(self, reason: str, current: int | None = None, maximum: int | None = None):
        self.reason = reason
        self.current = current
        self.maximum = maximum
        message = f"Member cannot borrow books: {reason}"
        if current is not None and maximum is not None:
            message += f". Current borrow count: {current}, Max allowed: {maximum}"
        super().__init__(message)


class BookNotAvailableError(LendingError):
    """Raised when a book has no copy that can be lent."""

    def __init__(self, title: str, reason: str | None = None):
        self.title = title
        self.reason = reason
        message = f"Book '{title}' is not available for borrowing."
        if reason:
            message += f" Reason: {reason}"
        super().__init__(message)


class OperationCancelledError(LendingError):
    """Raised when a caller cancels an operation before it was committed."""

    def __init__(self, operation: str):
        self.operation = operation
        super().__init__(f"Operation '{operation}' was cancelled before commit")
