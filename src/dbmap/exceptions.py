"""
Database-specific exception classes.
"""
import re
import sqlite3

import psycopg
import sqlalchemy.exc

PERMANENT_PATTERNS = [
    # Transaction already finished
    r'transaction.*(already|has been).*(committed|rolled back|closed|finished)',
    r'current transaction is aborted',
    r'this transaction is inactive',
    r'no transaction is active',
    # Argument count mismatch
    r'incorrect number of bindings',
    r'the query has \d+ placeholders? but \d+ parameters? (was|were) passed',
    r'not all arguments converted',
    r'not enough arguments',
    r'wrong number of arguments',
]

# Handle already closed by the caller. Matched against the whole message:
# server-side drops ("SSL connection has been closed unexpectedly",
# "server closed the connection unexpectedly") are transient.
CLOSED_HANDLE_PATTERNS = [
    r'(the )?connection (is|already|has been) closed\.?',
    r'cannot operate on a closed database\.?',
    r'(the )?cursor (is|already) closed\.?',
    r'this connection is closed\.?',
]

_PERMANENT_REGEX = re.compile('|'.join(PERMANENT_PATTERNS), re.IGNORECASE)
_CLOSED_HANDLE_REGEX = re.compile('|'.join(CLOSED_HANDLE_PATTERNS), re.IGNORECASE)


class DatabaseError(Exception):
    """Base class for all dbmap errors.
    """


class ConfigurationError(DatabaseError):
    """Invalid options, missing table/columns/primary key, bad placeholder counts.
    """


class BindError(ConfigurationError):
    """Destination record type cannot be mapped onto result columns.
    """


class ExecutionError(DatabaseError):
    """Error issuing a statement against the database.
    """


class PermanentError(ExecutionError):
    """Execution error that will fail again if retried.
    """


class QueryCancelled(DatabaseError):
    """The governing context was cancelled or its deadline passed.
    """


class PostProcessError(DatabaseError):
    """A destination record's post-processing hook failed.

    The originating hook error is available as ``__cause__``.
    """

    def __init__(self, index: int, count: int, cause: BaseException) -> None:
        self.index = index
        self.count = count
        super().__init__(f'post processing failed for row {index} of {count}: {cause}')
        self.__cause__ = cause


DbConnectionError = (
    psycopg.OperationalError,
    psycopg.InterfaceError,
    sqlite3.OperationalError,
    sqlite3.InterfaceError,
    sqlalchemy.exc.DisconnectionError,
    )

# Raised once a transaction or connection has already been finished
FinishedResourceError = (
    sqlalchemy.exc.ResourceClosedError,
    psycopg.errors.InFailedSqlTransaction,
    )

NEVER_RETRY = (
    ConfigurationError,
    PermanentError,
    QueryCancelled,
    PostProcessError,
    )


def is_permanent_error(exc: BaseException) -> bool:
    """Check if an execution error will definitely fail again.

    Returns True for:
    - the underlying transaction has already been committed or rolled back
    - the underlying connection has already been closed
    - the number of arguments does not match the placeholders in the statement
    - the library's own configuration, cancellation and post-processing errors

    Every other execution error is treated as transient.

    >>> is_permanent_error(sqlite3.ProgrammingError('Cannot operate on a closed database.'))
    True
    >>> is_permanent_error(sqlite3.OperationalError('database is locked'))
    False
    >>> is_permanent_error(psycopg.OperationalError('SSL connection has been closed unexpectedly'))
    False
    """
    if isinstance(exc, NEVER_RETRY + FinishedResourceError):
        return True
    message = str(exc).strip()
    if _CLOSED_HANDLE_REGEX.fullmatch(message):
        return True
    return bool(_PERMANENT_REGEX.search(message))


if __name__ == '__main__':
    __import__('doctest').testmod(optionflags=4 | 8 | 32)
