"""
db/identifiers.py
-----------------
Allow-list validation for names interpolated into generated SQL.

Table, column and index names cannot be bound as parameters, so every
one of them goes through `validate_identifier` before it is written
into a statement.
"""

import re

from db.errors import InvalidIdentifierError

# PostgreSQL truncates identifiers longer than NAMEDATALEN - 1 bytes.
MAX_IDENTIFIER_LENGTH = 63

_IDENTIFIER_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


def validate_identifier(name: str, kind: str = "identifier") -> str:
    """
    Check that `name` is a plain SQL identifier.

    Args:
        name: The candidate name.
        kind: What the name is used for, for the error message.

    Returns:
        The name, unchanged.

    Raises:
        InvalidIdentifierError: If the name is not a string, is empty,
            is too long, or contains anything but letters, digits and
            underscores (or starts with a digit).
    """
    if not isinstance(name, str) or not _IDENTIFIER_RE.match(name):
        raise InvalidIdentifierError(f"Invalid {kind} name: {name!r}")
    if len(name) > MAX_IDENTIFIER_LENGTH:
        raise InvalidIdentifierError(
            f"{kind.capitalize()} name exceeds {MAX_IDENTIFIER_LENGTH} characters: {name!r}"
        )
    return name
