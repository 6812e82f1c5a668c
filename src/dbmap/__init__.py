"""
Typed result materialization and bulk updates over DB-API connections.

Queries return name-keyed dicts or caller-defined dataclass records:

    rows, err = q(ctx, cn, 'SELECT id, name FROM users WHERE id IN (?)', [1, 2])
    users, err = q(ctx, cn, sql, options=Options(concrete_struct=User))

Many rows can be updated in one statement with ``bulk_update``. Core
functions return ``(result, error)`` pairs; ``must_q`` and ``must_e`` raise.
"""
__version__ = '0.1.0'

from dbmap.adapters.type_mapping import TypeHandler, TypeHandlerRegistry
from dbmap.adapters.type_mapping import decode_value
from dbmap.bulk import BulkUpdateOptions, build_bulk_update, bulk_update
from dbmap.context import Context, background, with_cancel, with_timeout
from dbmap.cursor import ExecResult
from dbmap.exceptions import BindError, ConfigurationError, DatabaseError
from dbmap.exceptions import ExecutionError, PermanentError, PostProcessError
from dbmap.exceptions import QueryCancelled, is_permanent_error
from dbmap.options import Options, std_time_conversion
from dbmap.options import std_time_conversion_config
from dbmap.query import e, must_e, must_q, q
from dbmap.retry import RetryPolicy
from dbmap.sql import Dialect, flatten_args, insert_stmt, ph
from dbmap.structure import DecoderConfig, PostUnmarshaler, ScanFaster
from dbmap.structure import struct_values
from dbmap.types import ABSENT, ColumnDescriptor, Nullability, Nullable
from dbmap.types import ScanKind, SemanticType

MYSQL = Dialect.MYSQL
POSTGRESQL = Dialect.POSTGRESQL
SQLITE = Dialect.SQLITE

__all__ = [
    'q',
    'e',
    'must_q',
    'must_e',
    'bulk_update',
    'build_bulk_update',
    'BulkUpdateOptions',
    'ExecResult',
    'Options',
    'DecoderConfig',
    'RetryPolicy',
    'std_time_conversion',
    'std_time_conversion_config',
    'ScanFaster',
    'PostUnmarshaler',
    'struct_values',
    'ph',
    'insert_stmt',
    'flatten_args',
    'Dialect',
    'MYSQL',
    'POSTGRESQL',
    'SQLITE',
    'Context',
    'background',
    'with_cancel',
    'with_timeout',
    'ColumnDescriptor',
    'Nullability',
    'Nullable',
    'ABSENT',
    'ScanKind',
    'SemanticType',
    'TypeHandler',
    'TypeHandlerRegistry',
    'decode_value',
    'DatabaseError',
    'ConfigurationError',
    'BindError',
    'ExecutionError',
    'PermanentError',
    'PostProcessError',
    'QueryCancelled',
    'is_permanent_error',
]
