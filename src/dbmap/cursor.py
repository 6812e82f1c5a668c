"""
Cursor acquisition and statement execution against a caller's handle.

A handle may be:
- a DB-API 2.0 connection (psycopg, sqlite3, PyMySQL, ...)
- a SQLAlchemy ``Connection`` (its pooled DB-API connection is used)
- a DB-API cursor, used as-is (psycopg cursors are swapped for a raw cursor
  on the same connection when the statement uses numbered placeholders)
"""
import logging
import time
from collections.abc import Iterator
from dataclasses import dataclass
from functools import wraps
from typing import Any

import psycopg
import sqlalchemy as sa
from dbmap.exceptions import ConfigurationError
from dbmap.sql import Dialect

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ExecResult:
    """Outcome of a write statement."""
    rowcount: int = 0
    lastrowid: int | None = 0

    def rows_affected(self) -> int:
        return self.rowcount

    def last_insert_id(self) -> int | None:
        return self.lastrowid


def dumpsql(func):
    """Decorator for logging SQL statements and arguments."""
    @wraps(func)
    def wrapper(cursor: Any, operation: str, args: list, *a: Any, **kw: Any):
        start = time.time()
        logger.debug(f'SQL:\n{operation}\nargs: {args}')
        try:
            return func(cursor, operation, args, *a, **kw)
        except Exception:
            logger.error(f'Error with query:\nSQL:\n{operation}\nargs: {args}')
            raise
        finally:
            logger.debug(f'Query time: {time.time() - start:.4f}s')
    return wrapper


def is_cursor(handle: Any) -> bool:
    return hasattr(handle, 'execute') and hasattr(handle, 'description') and hasattr(handle, 'fetchmany')


def _is_psycopg(obj: Any) -> bool:
    return type(obj).__module__.split('.')[0] == 'psycopg'


def _raw_cursor(connection: Any) -> Any:
    """psycopg cursor taking ``$N`` placeholders; default cursors only take ``%s``."""
    return psycopg.RawCursor(connection)


def get_cursor(handle: Any, dialect: Dialect | str | None = None) -> tuple[Any, bool]:
    """Return a DB-API cursor for a handle and whether the caller must close it.

    With a numbered dialect, psycopg handles get a raw cursor so ``$N``
    placeholders reach the server unchanged.
    """
    numbered = dialect is not None and Dialect.coerce(dialect).numbered
    if isinstance(handle, sa.Connection):
        dbapi_connection = handle.connection.dbapi_connection
        if numbered and _is_psycopg(dbapi_connection):
            return _raw_cursor(dbapi_connection), True
        return handle.connection.cursor(), True
    if isinstance(handle, sa.Engine):
        raise ConfigurationError('Pass a Connection from engine.connect(), not an Engine')
    if is_cursor(handle):
        if numbered and _is_psycopg(handle) and not isinstance(handle, psycopg.RawCursor):
            return _raw_cursor(handle.connection), True
        return handle, False
    if hasattr(handle, 'cursor'):
        if numbered and _is_psycopg(handle):
            return _raw_cursor(handle), True
        return handle.cursor(), True
    raise ConfigurationError(f'Cannot obtain a cursor from {type(handle).__name__}')


@dumpsql
def execute(cursor: Any, operation: str, args: list) -> Any:
    """Execute one statement; arguments are passed only when present."""
    if args:
        cursor.execute(operation, args)
    else:
        cursor.execute(operation)
    return cursor


def iter_rows(cursor: Any, size: int = 5000) -> Iterator[tuple]:
    """Iterate through cursor results in chunks, in emission order."""
    while True:
        chunked = cursor.fetchmany(size)
        if not chunked:
            break
        yield from chunked


def close_quietly(cursor: Any) -> None:
    try:
        cursor.close()
    except Exception as e:
        logger.debug(f'Could not close cursor: {e}')
