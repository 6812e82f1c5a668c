"""
Multi-row UPDATE in a single statement.

Builds one ``UPDATE ... SET col = CASE WHEN pk = ? THEN ? ... END`` statement
covering every row in ``update_data``, keyed by primary key value:

    opts = BulkUpdateOptions(table='tablename', columns=['name', 'age'], primary_key='id')
    update_data = {
        1: ['rabbit', 5],
        2: ['cat', 8],
    }
    result, err = bulk_update(ctx, db, update_data, opts)

Each value list must line up with ``columns``; None (or an absent Nullable)
sets the column to NULL. The primary key order is captured once and shared by
every CASE block and the trailing ``IN`` clause.

NOTE: benchmark against a transaction of single-row updates for your workload.
"""
import datetime
import decimal
import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

import numpy as np
from dbmap.adapters.type_conversion import TypeConverter
from dbmap.context import Context
from dbmap.cursor import ExecResult
from dbmap.exceptions import ConfigurationError
from dbmap.options import Options
from dbmap.query import execute_write
from dbmap.sql import Dialect, ph

logger = logging.getLogger(__name__)


@dataclass
class BulkUpdateOptions:
    """Options

    - table: table name
    - columns: columns to update, in order
    - primary_key: column identifying each row
    - stmt_suffix: extra SQL appended to the statement
    - dialect: placeholder convention, MySQL by default
    """
    table: str = ''
    columns: list[str] = field(default_factory=list)
    primary_key: str = ''
    stmt_suffix: str = ''
    dialect: Dialect | str = Dialect.MYSQL

    def __post_init__(self):
        self.dialect = Dialect.coerce(self.dialect)


@dataclass(frozen=True)
class BulkUpdateStatement:
    sql: str
    args: list[Any]


def sql_cast_type(value: Any) -> str:
    """SQL type used to cast a bound value under numbered-placeholder dialects.

    >>> sql_cast_type(5), sql_cast_type('x'), sql_cast_type(1.5), sql_cast_type(True)
    ('INT', 'VARCHAR', 'NUMERIC', 'BOOLEAN')
    >>> sql_cast_type({'a': 1})
    'TEXT'
    """
    if isinstance(value, bool | np.bool_):
        return 'BOOLEAN'
    if isinstance(value, int | np.integer):
        return 'INT'
    if isinstance(value, str):
        return 'VARCHAR'
    if isinstance(value, float | decimal.Decimal | np.floating):
        return 'NUMERIC'
    if isinstance(value, datetime.datetime):
        return 'TIMESTAMP'
    if isinstance(value, datetime.date):
        return 'DATE'
    if isinstance(value, datetime.time):
        return 'TIME'
    return 'TEXT'


def _validate(update_data: Mapping[Any, Sequence[Any]], opts: BulkUpdateOptions) -> None:
    if not opts.table or not opts.columns:
        raise ConfigurationError('no table name or column name(s) provided')
    if not update_data:
        return
    if not opts.primary_key:
        raise ConfigurationError('primary key column in database table needs to be specified')
    width = len(opts.columns)
    for key, values in update_data.items():
        if len(values) != width:
            raise ConfigurationError(f'update data for key {key!r} has {len(values)} value(s), '
                                     f'expected {width} (one per column)')


def build_bulk_update(update_data: Mapping[Any, Sequence[Any]],
                      opts: BulkUpdateOptions) -> BulkUpdateStatement | None:
    """Build the statement and its positional arguments.

    Returns None when ``update_data`` is empty.

    >>> stmt = build_bulk_update({1: ['rabbit', None]}, BulkUpdateOptions('t', ['name', 'age'], 'id'))
    >>> stmt.sql.splitlines()[-1]
    'WHERE id IN (?)'
    >>> stmt.args
    [1, 'rabbit', 1, 1]
    """
    _validate(update_data, opts)
    if not update_data:
        return None

    dialect = Dialect.coerce(opts.dialect)
    pk = opts.primary_key
    keys = list(update_data)

    args: list[Any] = []
    position = 0
    sets = []
    for j, column in enumerate(opts.columns):
        lines = [f'{column} = CASE']
        for key in keys:
            bound_key = TypeConverter.convert_value(key)
            value = TypeConverter.convert_value(update_data[key][j])
            if value is None:
                position += 1
                lines.append(f'\tWHEN {pk} = {dialect.placeholder(position)} THEN NULL')
                args.append(bound_key)
                continue
            if dialect.numbered:
                lines.append(f'\tWHEN {pk} = ${position + 1} THEN ${position + 2}::{sql_cast_type(value)}')
            else:
                lines.append(f'\tWHEN {pk} = ? THEN ?')
            position += 2
            args.extend((bound_key, value))
        lines.append('END')
        sets.append('\n'.join(lines))

    sql = f'UPDATE {opts.table} SET\n' + ',\n'.join(sets)
    sql += f'\nWHERE {pk} IN {ph(len(keys), 1, position, dialect)}'
    if opts.stmt_suffix:
        sql += ' ' + opts.stmt_suffix
    args.extend(TypeConverter.convert_value(key) for key in keys)

    logger.debug(f'Bulk update of {len(keys)} row(s) x {len(opts.columns)} column(s) on {opts.table}')
    return BulkUpdateStatement(sql, args)


def bulk_update(ctx: Context | None, db: Any, update_data: Mapping[Any, Sequence[Any]],
                opts: BulkUpdateOptions) -> tuple[ExecResult | None, Exception | None]:
    """Update many rows in one round trip; returns ``(ExecResult, error)``.

    Runs once on the write path: no retry, no decoding.
    """
    try:
        stmt = build_bulk_update(update_data, opts)
        if stmt is None:
            return ExecResult(0, 0), None
        return execute_write(ctx, db, stmt.sql, *stmt.args,
                             options=Options(dialect=opts.dialect), flatten=False), None
    except Exception as err:
        return None, err


if __name__ == '__main__':
    __import__('doctest').testmod(optionflags=4 | 8 | 32)
