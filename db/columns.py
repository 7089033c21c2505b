"""
db/columns.py
-------------
Schema descriptor for one table column.
"""

from dataclasses import dataclass
from typing import Optional

from db.identifiers import validate_identifier

PRIMARY_KEY_SUFFIX = "GENERATED BY DEFAULT AS IDENTITY PRIMARY KEY"


@dataclass(frozen=True)
class ColumnSpec:
    """
    Declarative description of one column.

    Attributes:
        name: Column name, unique within its table.
        type: Column type in PostgreSQL syntax, used verbatim
            (e.g. 'VARCHAR(255)', 'JSONB', 'TIMESTAMPTZ').
        nullable: Omit the NOT NULL clause.
        primary: Auto-generated identity primary key.
        unique: Add a UNIQUE clause.
        default: Default expression, used verbatim (e.g. 'NOW()', '0').
    """
    name: str
    type: str
    nullable: bool = False
    primary: bool = False
    unique: bool = False
    default: Optional[str] = None

    def __post_init__(self):
        validate_identifier(self.name, "column")

    def definition(self) -> str:
        """Render the column-definition clause used in CREATE TABLE."""
        parts = [self.name, self.type]
        if self.primary:
            parts.append(PRIMARY_KEY_SUFFIX)
        else:
            if not self.nullable:
                parts.append("NOT NULL")
            if self.unique:
                parts.append("UNIQUE")
            if self.default:
                parts.append(f"DEFAULT {self.default}")
        return " ".join(parts)
