"""
Column type decoding for query results.

Turns the value a driver hands back for one (row, column) pair into a typed
Python value, driven by the column's reported database type name:

1. The type name selects a TypeHandler from the registry
2. The handler converts the raw cell (bytes, text or a driver-native value)
3. Nullability decides whether the result is wrapped as Nullable

Decoding is best effort. Malformed numeric, date and time text degrades to
the type's zero value and malformed JSON to an absent value; nothing here
raises for cell contents.
"""
import datetime
import json
import logging
import re
from decimal import Decimal
from typing import Any

import dateutil.parser
from dbmap.types import ABSENT, ColumnDescriptor, Nullable, ScanKind
from dbmap.types import SemanticType, zero_value

logger = logging.getLogger(__name__)

TIMESTAMP_LAYOUT = '%Y-%m-%d %H:%M:%S'
DATE_LAYOUT = '%Y-%m-%d'
TIME_LAYOUTS = ('%H:%M:%S', '%H:%M:%S.%f')
TRUE_STRINGS: set[str] = {'true', 'TRUE', '1'}

_TYPE_ARGS = re.compile(r'\(.*?\)')


def normalize_type_name(type_name: str | None) -> str:
    """Upper-case a reported type name and drop size/precision arguments.

    >>> normalize_type_name('varchar(255)')
    'VARCHAR'
    >>> normalize_type_name('decimal(10, 2) unsigned')
    'DECIMAL UNSIGNED'
    """
    if not type_name:
        return ''
    return ' '.join(_TYPE_ARGS.sub('', type_name).upper().split())


def _text(value: Any) -> str:
    if isinstance(value, bytes | bytearray | memoryview):
        return bytes(value).decode('utf-8', errors='replace')
    return str(value)


def raw_bytes(value: Any) -> bytes | None:
    """Copy a cell's contents as bytes; SQL NULL stays None."""
    if value is None:
        return None
    if isinstance(value, bytes | bytearray | memoryview):
        return bytes(value)
    if isinstance(value, str):
        return value.encode()
    return str(value).encode()


class TypeHandler:
    """Base class for column type handlers.

    A handler recognizes a set of reported type names and converts raw cell
    values into a single semantic type.
    """

    semantic_type = SemanticType.STRING
    type_names: frozenset[str] = frozenset()

    def handles_type(self, type_name: str) -> bool:
        """Check if this handler recognizes the normalized type name."""
        return type_name in self.type_names

    def semantic_for(self, column: ColumnDescriptor) -> SemanticType:
        return self.semantic_type

    def convert_value(self, value: Any, column: ColumnDescriptor) -> Any:
        """Convert a non-NULL raw cell. Subclasses override."""
        return value


class StringHandler(TypeHandler):
    semantic_type = SemanticType.STRING
    type_names = frozenset({
        'CHAR', 'VARCHAR', 'TEXT', 'NCHAR', 'NVARCHAR', 'NTEXT', 'TINYTEXT',
        'MEDIUMTEXT', 'LONGTEXT', 'CHARACTER', 'CHARACTER VARYING', 'BPCHAR',
        'NAME', 'CITEXT', 'UUID', 'ENUM', 'SET', 'CLOB',
        })

    def handles_type(self, type_name: str) -> bool:
        return type_name in self.type_names or type_name.endswith('TEXT')

    def convert_value(self, value: Any, column: ColumnDescriptor) -> str:
        return _text(value)


class FloatHandler(TypeHandler):
    semantic_type = SemanticType.FLOAT
    type_names = frozenset({
        'FLOAT', 'DOUBLE', 'DECIMAL', 'NUMERIC', 'REAL', 'FLOAT4', 'FLOAT8',
        'DOUBLE PRECISION', 'MONEY', 'DECIMAL UNSIGNED', 'DOUBLE UNSIGNED',
        'FLOAT UNSIGNED',
        })

    def convert_value(self, value: Any, column: ColumnDescriptor) -> float:
        if isinstance(value, float | int | Decimal) and not isinstance(value, bool):
            return float(value)
        try:
            return float(_text(value).strip())
        except ValueError:
            logger.debug(f'Malformed float in column {column.name!r}: {value!r}')
            return 0.0


class IntegerHandler(TypeHandler):
    """Signed and unsigned integers, width chosen by the column's scan kind."""

    semantic_type = SemanticType.INT
    type_names = frozenset({
        'INT', 'INTEGER', 'TINYINT', 'SMALLINT', 'MEDIUMINT', 'BIGINT',
        'INT2', 'INT4', 'INT8', 'YEAR', 'SERIAL', 'BIGSERIAL', 'SMALLSERIAL',
        })

    def handles_type(self, type_name: str) -> bool:
        if type_name in self.type_names:
            return True
        base = type_name.replace('UNSIGNED', '').strip()
        return base != type_name and base in self.type_names

    def scan_kind(self, column: ColumnDescriptor) -> ScanKind:
        if column.scan_kind is not None:
            return column.scan_kind
        if 'UNSIGNED' in column.type_name.upper().split():
            return ScanKind.UINT64
        return ScanKind.INT64

    def semantic_for(self, column: ColumnDescriptor) -> SemanticType:
        if self.scan_kind(column).signed:
            return SemanticType.INT
        return SemanticType.UINT

    def convert_value(self, value: Any, column: ColumnDescriptor) -> int:
        if isinstance(value, bool):
            number = int(value)
        elif isinstance(value, int):
            number = value
        else:
            try:
                number = int(_text(value).strip())
            except ValueError:
                logger.debug(f'Malformed integer in column {column.name!r}: {value!r}')
                return 0
        low, high = self.scan_kind(column).bounds()
        if not low <= number <= high:
            logger.debug(f'Integer {number} out of range for column {column.name!r}')
            return 0
        return number


class BoolHandler(TypeHandler):
    semantic_type = SemanticType.BOOL
    type_names = frozenset({'BOOL', 'BOOLEAN'})

    def convert_value(self, value: Any, column: ColumnDescriptor) -> bool:
        if isinstance(value, bool):
            return value
        return _text(value) in TRUE_STRINGS


class TimestampHandler(TypeHandler):
    semantic_type = SemanticType.TIMESTAMP
    type_names = frozenset({
        'DATETIME', 'TIMESTAMP', 'TIMESTAMPTZ', 'TIMESTAMP WITH TIME ZONE',
        'TIMESTAMP WITHOUT TIME ZONE', 'DATETIME2', 'DATETIMEOFFSET',
        })

    def convert_value(self, value: Any, column: ColumnDescriptor) -> datetime.datetime:
        if isinstance(value, datetime.datetime):
            return value
        if isinstance(value, datetime.date):
            return datetime.datetime.combine(value, datetime.time.min)
        text = _text(value).strip()
        try:
            return datetime.datetime.strptime(text, TIMESTAMP_LAYOUT)
        except ValueError:
            pass
        try:
            return dateutil.parser.isoparse(text)
        except ValueError:
            logger.debug(f'Malformed timestamp in column {column.name!r}: {value!r}')
            return zero_value(self.semantic_type)


class DateHandler(TypeHandler):
    semantic_type = SemanticType.DATE
    type_names = frozenset({'DATE'})

    def convert_value(self, value: Any, column: ColumnDescriptor) -> datetime.date:
        if isinstance(value, datetime.datetime):
            return value.date()
        if isinstance(value, datetime.date):
            return value
        text = _text(value).strip()
        try:
            return datetime.datetime.strptime(text, DATE_LAYOUT).date()
        except ValueError:
            pass
        try:
            return dateutil.parser.isoparse(text).date()
        except ValueError:
            logger.debug(f'Malformed date in column {column.name!r}: {value!r}')
            return zero_value(self.semantic_type)


class TimeHandler(TypeHandler):
    semantic_type = SemanticType.TIME
    type_names = frozenset({
        'TIME', 'TIMETZ', 'TIME WITH TIME ZONE', 'TIME WITHOUT TIME ZONE',
        })

    def convert_value(self, value: Any, column: ColumnDescriptor) -> datetime.time:
        if isinstance(value, datetime.time):
            return value
        if isinstance(value, datetime.timedelta):
            # MySQL drivers hand TIME columns back as timedelta
            if datetime.timedelta(0) <= value < datetime.timedelta(days=1):
                return (datetime.datetime.min + value).time()
            return zero_value(self.semantic_type)
        text = _text(value).strip()
        for layout in TIME_LAYOUTS:
            try:
                return datetime.datetime.strptime(text, layout).time()
            except ValueError:
                continue
        logger.debug(f'Malformed time in column {column.name!r}: {value!r}')
        return zero_value(self.semantic_type)


class JsonHandler(TypeHandler):
    """JSON documents. Invalid JSON decodes to an absent value."""

    semantic_type = SemanticType.JSON
    type_names = frozenset({'JSON', 'JSONB'})

    def convert_value(self, value: Any, column: ColumnDescriptor) -> Any:
        if not isinstance(value, str | bytes | bytearray | memoryview):
            # already decoded by the driver (psycopg)
            return value
        try:
            return json.loads(_text(value))
        except ValueError:
            logger.debug(f'Invalid JSON in column {column.name!r}')
            return ABSENT


class BytesHandler(TypeHandler):
    semantic_type = SemanticType.BYTES
    type_names = frozenset({
        'BLOB', 'TINYBLOB', 'MEDIUMBLOB', 'LONGBLOB', 'BYTEA', 'BINARY',
        'VARBINARY', 'BIT', 'GEOMETRY',
        })

    def convert_value(self, value: Any, column: ColumnDescriptor) -> bytes:
        return raw_bytes(value)


class NullHandler(TypeHandler):
    semantic_type = SemanticType.ABSENT
    type_names = frozenset({'NULL'})


class NativeHandler(TypeHandler):
    """Columns whose driver reports no type name keep the driver's value."""

    semantic_type = SemanticType.NATIVE

    def handles_type(self, type_name: str) -> bool:
        return type_name == ''

    def convert_value(self, value: Any, column: ColumnDescriptor) -> Any:
        if isinstance(value, bytearray | memoryview):
            return bytes(value)
        return value


class TypeHandlerRegistry:
    """Registry of column type handlers.

    Handlers are consulted in registration order; the first one that
    recognizes a type name wins. Unrecognized names fall back to strings.
    """

    _instance = None

    @classmethod
    def get_instance(cls) -> 'TypeHandlerRegistry':
        """Get singleton instance.
        """
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    def __init__(self) -> None:
        self._handlers: list[TypeHandler] = [
            NullHandler(),
            NativeHandler(),
            BoolHandler(),
            IntegerHandler(),
            FloatHandler(),
            TimestampHandler(),
            DateHandler(),
            TimeHandler(),
            JsonHandler(),
            BytesHandler(),
            StringHandler(),
            ]
        self._fallback = StringHandler()
        self._resolved: dict[str, TypeHandler] = {}

    def register_handler(self, handler: TypeHandler) -> None:
        """Register a handler ahead of the built-in ones.
        """
        self._handlers.insert(0, handler)
        self._resolved.clear()

    def get_handler(self, type_name: str | None) -> TypeHandler:
        """Find the handler for a reported type name.
        """
        name = normalize_type_name(type_name)
        handler = self._resolved.get(name)
        if handler is not None:
            return handler
        handler = next((h for h in self._handlers if h.handles_type(name)), None)
        if handler is None:
            logger.debug(f'Unrecognized column type {name!r}, decoding as string')
            handler = self._fallback
        self._resolved[name] = handler
        return handler

    def semantic_type(self, column: ColumnDescriptor) -> SemanticType:
        return self.get_handler(column.type_name).semantic_for(column)


def decode_value(column: ColumnDescriptor, raw: Any, raw_results: bool = False,
                 registry: TypeHandlerRegistry | None = None) -> Any:
    """Decode one raw cell for a column.

    Columns known to be NOT NULL yield bare values; a NULL cell there
    degrades to the zero value. Every other column yields a Nullable.
    With ``raw_results`` the cell's bytes are copied instead.

    >>> col = ColumnDescriptor('age', 'INT')
    >>> decode_value(col, b'42')
    Nullable(value=42, valid=True)
    >>> decode_value(col, None)
    Nullable(value=None, valid=False)
    >>> from dbmap.types import Nullability
    >>> decode_value(ColumnDescriptor('age', 'INT', Nullability.NOT_NULL), None)
    0
    """
    if raw_results:
        return raw_bytes(raw)

    registry = registry or TypeHandlerRegistry.get_instance()
    handler = registry.get_handler(column.type_name)

    if raw is None or isinstance(handler, NullHandler):
        if column.wraps:
            return ABSENT
        return zero_value(handler.semantic_for(column))

    value = handler.convert_value(raw, column)

    if isinstance(value, Nullable):
        return value if column.wraps else value.get()
    if column.wraps:
        return Nullable.of(value)
    return value


def decode_row(columns: list[ColumnDescriptor], raw_row: Any,
               raw_results: bool = False) -> dict[str, Any]:
    """Decode a whole row into a column-name keyed mapping in cursor order."""
    registry = TypeHandlerRegistry.get_instance()
    return {
        col.name: decode_value(col, raw, raw_results, registry)
        for col, raw in zip(columns, raw_row)
        }


if __name__ == '__main__':
    __import__('doctest').testmod(optionflags=4 | 8 | 32)
