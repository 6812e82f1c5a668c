"""
Query execution and result materialization.

    q(ctx, db, sql, *args, options=opts) -> (result, error)

Pipeline: flatten arguments → execute (optionally with retry) → decode each
row → bind into destination records when ``options.concrete_struct`` is set →
``post_fetch`` → ``post_unmarshal`` hooks → result.

The core functions never raise; they return a ``(result, error)`` pair and
any error discards all partial results. ``must_q`` and ``must_e`` raise
instead.
"""
import logging
from typing import Any

from dbmap.adapters.column_info import columns_from_cursor
from dbmap.adapters.type_conversion import TypeConverter
from dbmap.adapters.type_mapping import decode_row
from dbmap.context import Context, background
from dbmap.cursor import ExecResult, close_quietly, execute, get_cursor
from dbmap.cursor import iter_rows
from dbmap.exceptions import ConfigurationError
from dbmap.options import Options
from dbmap.postprocess import run_post_unmarshal
from dbmap.retry import run_with_retry
from dbmap.sql import flatten_args
from dbmap.structure import BindPlan, bind_row, get_bind_plan, scan_fast_row

logger = logging.getLogger(__name__)


def prepare_args(args: tuple | list) -> list[Any]:
    """Flatten sequence arguments and convert values for the driver."""
    return TypeConverter.convert_params(flatten_args(args))


def _open_cursor(ctx: Context, db: Any, sql: str, args: list, options: Options) -> tuple[Any, bool]:
    """Execute the statement under the retry policy, returning the live cursor."""
    def attempt() -> tuple[Any, bool]:
        ctx.check()
        cursor, owned = get_cursor(db, options.dialect)
        try:
            execute(cursor, sql, args)
        except Exception:
            if owned:
                close_quietly(cursor)
            raise
        return cursor, owned

    return run_with_retry(ctx, options.retry_policy, attempt)


def _materialize(ctx: Context, cursor: Any, plan: BindPlan | None, options: Options) -> list[Any]:
    columns = columns_from_cursor(cursor)
    if not columns:
        return []

    fast = plan is not None and plan.fast_scan
    config = options.decoder_config
    results: list[Any] = []
    for raw in iter_rows(cursor):
        ctx.check()
        if fast:
            results.append(scan_fast_row(plan, raw))
            continue
        row = decode_row(columns, raw, options.raw_results)
        results.append(row if plan is None else bind_row(plan, row, config))
    logger.debug(f'Materialized {len(results)} row(s) across {len(columns)} column(s)')
    return results


def select(ctx: Context | None, db: Any, sql: str, *args: Any,
           options: Options | None = None) -> Any:
    """Execute a query and materialize its rows, raising on error.

    Returns a list of dicts, a list of destination records, or with
    ``single_result`` the first item (None when no rows matched).
    """
    if db is None:
        raise ConfigurationError('no database handle provided')
    ctx = ctx or background()
    options = options or Options()

    plan = None
    if options.concrete_struct is not None:
        plan = get_bind_plan(options.concrete_struct, options.decoder_config.tag_name)

    cursor, owned = _open_cursor(ctx, db, sql, prepare_args(args), options)
    try:
        results = _materialize(ctx, cursor, plan, options)
    finally:
        if owned:
            close_quietly(cursor)

    if options.post_fetch is not None:
        options.post_fetch(ctx)

    if plan is not None and plan.post_unmarshal:
        run_post_unmarshal(ctx, results, options.concurrent_post_unmarshal, options.max_workers)

    if options.single_result:
        return results[0] if results else None
    return results


def execute_write(ctx: Context | None, db: Any, sql: str, *args: Any,
                  options: Options | None = None, flatten: bool = True) -> ExecResult:
    """Execute a write statement, raising on error. No rows are decoded.

    With ``flatten=False`` arguments are bound exactly as given, for callers
    whose argument list is already positional (list values stay intact).
    """
    if db is None:
        raise ConfigurationError('no database handle provided')
    ctx = ctx or background()
    retry_policy = options.retry_policy if options is not None else None
    dialect = options.dialect if options is not None else None
    params = prepare_args(args) if flatten else TypeConverter.convert_params(list(args))

    def attempt() -> ExecResult:
        ctx.check()
        cursor, owned = get_cursor(db, dialect)
        try:
            execute(cursor, sql, params)
            return ExecResult(cursor.rowcount, getattr(cursor, 'lastrowid', None))
        finally:
            if owned:
                close_quietly(cursor)

    return run_with_retry(ctx, retry_policy, attempt)


def q(ctx: Context | None, db: Any, sql: str, *args: Any,
      options: Options | None = None) -> tuple[Any, Exception | None]:
    """Query and materialize rows; returns ``(result, error)``.

    >>> import sqlite3
    >>> cn = sqlite3.connect(':memory:')
    >>> q(None, cn, 'SELECT ? AS n', 1)
    ([{'n': Nullable(value=1, valid=True)}], None)
    """
    try:
        return select(ctx, db, sql, *args, options=options), None
    except Exception as err:
        return None, err


def e(ctx: Context | None, db: Any, sql: str, *args: Any,
      options: Options | None = None) -> tuple[ExecResult | None, Exception | None]:
    """Execute a write statement; returns ``(ExecResult, error)``."""
    try:
        return execute_write(ctx, db, sql, *args, options=options), None
    except Exception as err:
        return None, err


def must_q(ctx: Context | None, db: Any, sql: str, *args: Any,
           options: Options | None = None) -> Any:
    """Like ``q`` but raises the error instead of returning it."""
    result, err = q(ctx, db, sql, *args, options=options)
    if err is not None:
        raise err
    return result


def must_e(ctx: Context | None, db: Any, sql: str, *args: Any,
           options: Options | None = None) -> ExecResult:
    """Like ``e`` but raises the error instead of returning it."""
    result, err = e(ctx, db, sql, *args, options=options)
    if err is not None:
        raise err
    return result


if __name__ == '__main__':
    __import__('doctest').testmod(optionflags=4 | 8 | 32)
