"""
db/errors.py
------------
Exception hierarchy for the data-access layer and the duplicate-key
classifier used by callers to tell "already exists" apart from other
store failures.

Two families:
    - UsageError: the call itself is invalid (empty field map, empty
      filter, bad identifier, closed handle). Raised before any
      statement reaches the store.
    - StoreError: the store rejected or failed a statement. Wraps the
      original psycopg2 error, which stays reachable as `original`
      and as `__cause__`.
"""

from typing import Optional

from psycopg2 import errorcodes, errors

# Text PostgreSQL puts in the message of a unique-constraint violation.
_UNIQUE_VIOLATION_TEXT = "duplicate key value violates unique constraint"


class DatabaseError(Exception):
    """Base class for every error raised by the db package."""


class UsageError(DatabaseError, ValueError):
    """The caller broke the contract of an operation."""


class HandleClosedError(UsageError):
    """An operation was attempted on a closed ConnectionHandle."""


class InvalidIdentifierError(UsageError):
    """A table, column or index name failed the identifier allow-list."""


class UnsupportedValueError(UsageError, TypeError):
    """A field value has no matching value variant."""


class StoreError(DatabaseError):
    """
    A statement failed inside the store.

    Attributes:
        operation: Static description of the failing operation.
        original: The underlying driver exception.
    """

    def __init__(self, operation: str, original: Optional[BaseException] = None):
        self.operation = operation
        self.original = original
        if original is not None:
            super().__init__(f"{operation}: {original}")
        else:
            super().__init__(operation)


def _error_chain(err: BaseException):
    """Yield err followed by every error it wraps."""
    seen = set()
    while err is not None and id(err) not in seen:
        seen.add(id(err))
        yield err
        err = getattr(err, "original", None) or err.__cause__


def is_duplicate_error(err: Optional[BaseException]) -> bool:
    """
    Return True if err is (or wraps) a unique-constraint violation.

    Args:
        err: Any exception, or None.

    Returns:
        False for None and for unrelated errors.
    """
    if err is None:
        return False
    for e in _error_chain(err):
        if isinstance(e, errors.UniqueViolation):
            return True
        if getattr(e, "pgcode", None) == errorcodes.UNIQUE_VIOLATION:
            return True
        if _UNIQUE_VIOLATION_TEXT in str(e):
            return True
    return False
