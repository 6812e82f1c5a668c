"""
SQL text helpers shared by the query and bulk update paths.

- `Dialect` - placeholder/typing convention of the target database
- `flatten_args()` - expand list/tuple arguments into positional arguments
- `ph()` - generate placeholder groups for VALUES and IN clauses
- `insert_stmt()` - multi-row INSERT statement text
"""
import enum
import logging
from typing import Any

import numpy as np
from dbmap.exceptions import ConfigurationError

logger = logging.getLogger(__name__)


class Dialect(enum.Enum):
    """SQL placeholder convention.

    MySQL and SQLite use anonymous ``?`` placeholders. PostgreSQL uses
    numbered ``$N`` placeholders and needs explicit casts on untyped values.
    """
    MYSQL = 'mysql'
    POSTGRESQL = 'postgresql'
    SQLITE = 'sqlite'

    @classmethod
    def coerce(cls, value: 'Dialect | str | None') -> 'Dialect':
        """Accept a Dialect, its name, or None (MySQL)."""
        if value is None:
            return cls.MYSQL
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).lower())
        except ValueError:
            available = [d.value for d in cls]
            raise ConfigurationError(f'Unsupported dialect: {value}. Available: {available}') from None

    @property
    def numbered(self) -> bool:
        """Whether placeholders are numbered ($1, $2, ...)."""
        return self is Dialect.POSTGRESQL

    def placeholder(self, position: int) -> str:
        """Placeholder for the 1-based argument ``position``."""
        if self.numbered:
            return f'${position}'
        return '?'


def _is_sequence_arg(arg: Any) -> bool:
    return isinstance(arg, list | tuple | np.ndarray)


def flatten_args(args: tuple | list) -> list[Any]:
    """Flatten list, tuple and 1-D array arguments into positional arguments.

    Order is preserved across arguments and within each sequence.

    >>> flatten_args((1, [2, 3], 4))
    [1, 2, 3, 4]
    >>> flatten_args(('a', (), 'b'))
    ['a', 'b']
    """
    flat: list[Any] = []
    for arg in args:
        if isinstance(arg, np.ndarray):
            flat.extend(arg.tolist())
        elif _is_sequence_arg(arg):
            flat.extend(arg)
        else:
            flat.append(arg)
    return flat


def ph(columns: int, rows: int = 1, offset: int = 0,
       dialect: Dialect | str | None = None) -> str:
    """Generate placeholder groups.

    Numbered placeholders start at ``offset + 1``.

    >>> ph(3)
    '(?,?,?)'
    >>> ph(2, 2, dialect='postgresql')
    '($1,$2),($3,$4)'
    >>> ph(2, 1, 4, Dialect.POSTGRESQL)
    '($5,$6)'
    """
    if columns < 1 or rows < 1:
        raise ConfigurationError(f'Placeholders need at least one column and row, got {columns}x{rows}')
    dialect = Dialect.coerce(dialect)
    groups = []
    position = offset
    for _ in range(rows):
        tokens = []
        for _ in range(columns):
            position += 1
            tokens.append(dialect.placeholder(position))
        groups.append('(' + ','.join(tokens) + ')')
    return ','.join(groups)


def insert_stmt(table: str, columns: list[str], rows: int,
                dialect: Dialect | str | None = None) -> str:
    """Generate a multi-row INSERT statement.

    >>> insert_stmt('users', ['name', 'age'], 2)
    'INSERT INTO users ( name,age ) VALUES (?,?),(?,?)'
    """
    if not table or not columns:
        raise ConfigurationError('no table name or column name(s) provided')
    return f"INSERT INTO {table} ( {','.join(columns)} ) VALUES {ph(len(columns), rows, 0, dialect)}"


if __name__ == '__main__':
    __import__('doctest').testmod(optionflags=4 | 8 | 32)
