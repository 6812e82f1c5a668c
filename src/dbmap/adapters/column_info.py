"""
Column metadata extraction across database drivers.

Builds one ColumnDescriptor per result column from ``cursor.description``.
Each driver reports types differently:

- psycopg: ``type_code`` is a PostgreSQL OID, resolved to the type name
- PyMySQL / MySQLdb: ``type_code`` is a FIELD_TYPE constant, ``null_ok`` is set
  and UNSIGNED comes from the field flags, which ``description`` omits
- sqlite3: only column names are reported
- anything else: a string ``type_code`` is taken as the type name
"""
import logging
from typing import Any

from dbmap.adapters.type_mapping import normalize_type_name
from dbmap.types import ColumnDescriptor, Nullability, ScanKind
from psycopg.postgres import types as pg_types

logger = logging.getLogger(__name__)

# MySQL protocol FIELD_TYPE constants -> reported type name
mysql_types: dict[int, str] = {
    0: 'DECIMAL',
    1: 'TINYINT',
    2: 'SMALLINT',
    3: 'INT',
    4: 'FLOAT',
    5: 'DOUBLE',
    6: 'NULL',
    7: 'TIMESTAMP',
    8: 'BIGINT',
    9: 'MEDIUMINT',
    10: 'DATE',
    11: 'TIME',
    12: 'DATETIME',
    13: 'YEAR',
    15: 'VARCHAR',
    16: 'BIT',
    245: 'JSON',
    246: 'DECIMAL',
    247: 'ENUM',
    248: 'SET',
    249: 'TINYBLOB',
    250: 'MEDIUMBLOB',
    251: 'LONGBLOB',
    252: 'BLOB',
    253: 'VARCHAR',
    254: 'CHAR',
    255: 'GEOMETRY',
}

signed_scan_kinds: dict[str, ScanKind] = {
    'TINYINT': ScanKind.INT8,
    'SMALLINT': ScanKind.INT16,
    'INT2': ScanKind.INT16,
    'YEAR': ScanKind.INT16,
    'MEDIUMINT': ScanKind.INT32,
    'INT': ScanKind.INT32,
    'INT4': ScanKind.INT32,
    'INTEGER': ScanKind.INT32,
    'BIGINT': ScanKind.INT64,
    'INT8': ScanKind.INT64,
}

# MySQL column flag bit (FLAG.UNSIGNED in PyMySQL and MySQLdb)
UNSIGNED_FLAG = 32

unsigned_scan_kinds: dict[ScanKind, ScanKind] = {
    ScanKind.INT8: ScanKind.UINT8,
    ScanKind.INT16: ScanKind.UINT16,
    ScanKind.INT32: ScanKind.UINT32,
    ScanKind.INT64: ScanKind.UINT64,
}


def scan_kind_for(type_name: str) -> ScanKind | None:
    """Integer width hint for a normalized type name, None for non-integers.

    >>> scan_kind_for('INT UNSIGNED')
    <ScanKind.UINT32: (32, False)>
    """
    words = type_name.split()
    base = ' '.join(w for w in words if w != 'UNSIGNED')
    kind = signed_scan_kinds.get(base)
    if kind is not None and 'UNSIGNED' in words:
        return unsigned_scan_kinds[kind]
    return kind


def get_driver_name(cursor: Any) -> str:
    """Identify the DB-API driver behind a cursor from its module path."""
    type_name = f'{type(cursor).__module__}.{type(cursor).__name__}'.lower()
    if 'psycopg' in type_name:
        return 'postgresql'
    if 'sqlite3' in type_name:
        return 'sqlite'
    if 'pymysql' in type_name or 'mysqldb' in type_name:
        return 'mysql'
    return 'unknown'


def _postgres_type_name(type_code: Any) -> str:
    if isinstance(type_code, str):
        return type_code.upper()
    info = pg_types.get(type_code)
    if info is None:
        logger.debug(f'Unknown PostgreSQL type OID {type_code}')
        return ''
    return info.name.upper()


def _extract_postgres_column(item: Any) -> tuple[str, str, bool | None]:
    return (
        getattr(item, 'name', None) or item[0],
        _postgres_type_name(getattr(item, 'type_code', None)),
        getattr(item, 'null_ok', None),
    )


def _extract_mysql_column(item: Any) -> tuple[str, str, bool | None]:
    type_code = item[1]
    if isinstance(type_code, str):
        type_name = type_code.upper()
    else:
        type_name = mysql_types.get(type_code, '')
    null_ok = item[6] if len(item) >= 7 else None
    return item[0], type_name, null_ok


def mysql_field_flags(cursor: Any) -> list[int]:
    """Per-column MySQL flags of the current result set.

    MySQLdb exposes them as ``description_flags``. PyMySQL keeps them on the
    field packets of ``cursor._result``.
    """
    flags = getattr(cursor, 'description_flags', None)
    if flags is None:
        fields = getattr(getattr(cursor, '_result', None), 'fields', None) or ()
        flags = [getattr(f, 'flags', 0) for f in fields]
    return [int(f or 0) for f in flags]


def _extract_generic_column(item: Any) -> tuple[str, str, bool | None]:
    type_code = item[1] if len(item) > 1 else None
    type_name = type_code.upper() if isinstance(type_code, str) else ''
    null_ok = item[6] if len(item) >= 7 else None
    if null_ok is not None:
        null_ok = bool(null_ok)
    return item[0], type_name, null_ok


_extractors = {
    'postgresql': _extract_postgres_column,
    'mysql': _extract_mysql_column,
}


def column_from_description(item: Any, driver: str = 'unknown', flags: int = 0) -> ColumnDescriptor:
    """Create a ColumnDescriptor from one ``cursor.description`` item.

    ``flags`` are the MySQL field flags of the column, if known.
    """
    extract = _extractors.get(driver, _extract_generic_column)
    name, type_name, null_ok = extract(item)
    type_name = normalize_type_name(type_name)
    unsigned = flags & UNSIGNED_FLAG and 'UNSIGNED' not in type_name.split()
    if unsigned and scan_kind_for(type_name) is not None:
        type_name = f'{type_name} UNSIGNED'
    return ColumnDescriptor(
        name=name,
        type_name=type_name,
        nullability=Nullability.from_flag(null_ok),
        scan_kind=scan_kind_for(type_name),
        )


def columns_from_cursor(cursor: Any) -> list[ColumnDescriptor]:
    """Create ColumnDescriptors for the current result set of a cursor."""
    if cursor.description is None:
        return []
    driver = get_driver_name(cursor)
    flags = mysql_field_flags(cursor) if driver == 'mysql' else []
    columns = [
        column_from_description(item, driver, flags[i] if i < len(flags) else 0)
        for i, item in enumerate(cursor.description)
        ]
    logger.debug(f'Columns ({driver}): {[(c.name, c.type_name) for c in columns]}')
    return columns
