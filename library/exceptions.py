"""Circulation error hierarchy.

Every error is recoverable and surfaced to the caller. The ``code`` attribute
is a stable identifier the HTTP layer returns alongside the message.
"""


class LibraryError(Exception):
    """Base exception for circulation errors."""

    code = "library_error"


class BookUnavailable(LibraryError):
    """No copies of the requested book are available to lend."""

    code = "book_unavailable"

    def __init__(self, book_id: int, message: str | None = None):
        self.book_id = book_id
        super().__init__(message or f"Book {book_id} is not available")


class BookNotFound(BookUnavailable):
    """The requested book does not exist."""

    code = "book_not_found"

    def __init__(self, book_id: int):
        super().__init__(book_id, f"Book {book_id} not found")


class InvalidRecord(LibraryError):
    """The borrow record cannot be returned."""

    code = "invalid_record"

    def __init__(self, record_id: int, message: str | None = None):
        self.record_id = record_id
        super().__init__(message or f"Invalid record or book already returned: {record_id}")


class RecordNotFound(InvalidRecord):
    code = "record_not_found"

    def __init__(self, record_id: int):
        super().__init__(record_id, f"Borrow record {record_id} not found")


class AlreadyReturned(InvalidRecord):
    code = "already_returned"

    def __init__(self, record_id: int):
        super().__init__(record_id, f"Borrow record {record_id} was already returned")


class UserNotFound(LibraryError):
    code = "user_not_found"

    def __init__(self, user_id: int):
        self.user_id = user_id
        super().__init__(f"User {user_id} not found")


class AlreadyReserved(LibraryError):
    """The member already holds a reservation for this book."""

    code = "already_reserved"

    def __init__(self, user_id: int, book_id: int):
        self.user_id = user_id
        self.book_id = book_id
        super().__init__(f"User {user_id} already reserved book {book_id}")


class Retryable(LibraryError):
    """Transient lock contention; the operation made no change and may be retried."""

    code = "retryable"

    def __init__(self, operation: str, attempts: int):
        self.operation = operation
        self.attempts = attempts
        super().__init__(f"{operation} failed after {attempts} attempts due to lock contention")
