"""
Core value types for result materialization.

This module provides:
- Nullability: tri-state nullability reported by the driver
- ScanKind: integer width/signedness hint for integer columns
- SemanticType: the family a decoded value belongs to
- Nullable: explicit present/absent wrapper for decoded values
- ColumnDescriptor: per-query column metadata
"""
import datetime
import enum
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

T = TypeVar('T')


class Nullability(enum.Enum):
    """Driver-reported nullability of a result column."""
    NULLABLE = 'nullable'
    NOT_NULL = 'not_null'
    UNKNOWN = 'unknown'

    @classmethod
    def from_flag(cls, flag: bool | None) -> 'Nullability':
        """Map a DB-API ``null_ok`` flag onto the tri-state."""
        if flag is None:
            return cls.UNKNOWN
        return cls.NULLABLE if flag else cls.NOT_NULL


class ScanKind(enum.Enum):
    """Native integer width hint. Value is (bits, signed)."""
    INT8 = (8, True)
    INT16 = (16, True)
    INT32 = (32, True)
    INT64 = (64, True)
    UINT8 = (8, False)
    UINT16 = (16, False)
    UINT32 = (32, False)
    UINT64 = (64, False)

    @property
    def bits(self) -> int:
        return self.value[0]

    @property
    def signed(self) -> bool:
        return self.value[1]

    def bounds(self) -> tuple[int, int]:
        """Inclusive (min, max) representable by this width."""
        if self.signed:
            half = 1 << (self.bits - 1)
            return -half, half - 1
        return 0, (1 << self.bits) - 1


class SemanticType(enum.Enum):
    """Family of a decoded value."""
    ABSENT = 'absent'
    STRING = 'string'
    INT = 'int'
    UINT = 'uint'
    FLOAT = 'float'
    BOOL = 'bool'
    DATE = 'date'
    TIME = 'time'
    TIMESTAMP = 'timestamp'
    JSON = 'json'
    BYTES = 'bytes'
    NATIVE = 'native'


ZERO_VALUES: dict[SemanticType, Any] = {
    SemanticType.STRING: '',
    SemanticType.INT: 0,
    SemanticType.UINT: 0,
    SemanticType.FLOAT: 0.0,
    SemanticType.BOOL: False,
    SemanticType.DATE: datetime.date.min,
    SemanticType.TIME: datetime.time.min,
    SemanticType.TIMESTAMP: datetime.datetime.min,
    SemanticType.JSON: None,
    SemanticType.BYTES: b'',
    SemanticType.NATIVE: None,
    SemanticType.ABSENT: None,
}


def zero_value(semantic: SemanticType) -> Any:
    """Zero value for a semantic type."""
    return ZERO_VALUES[semantic]


@dataclass(frozen=True, slots=True)
class Nullable(Generic[T]):
    """Present/absent wrapper for values of nullable or unknown-nullability columns.

    ``valid`` distinguishes SQL NULL (absent) from a present value, which
    matters for JSON columns where a present value may itself be ``None``.

    >>> Nullable.of(5)
    Nullable(value=5, valid=True)
    >>> ABSENT.get(7)
    7
    """
    value: T | None = None
    valid: bool = False

    @classmethod
    def of(cls, value: T) -> 'Nullable[T]':
        return cls(value, True)

    @property
    def absent(self) -> bool:
        return not self.valid

    def get(self, default: Any = None) -> Any:
        """Return the wrapped value, or ``default`` when absent."""
        return self.value if self.valid else default

    def __bool__(self) -> bool:
        return self.valid


ABSENT: Nullable[Any] = Nullable()


def unwrap(value: Any) -> Any:
    """Strip a Nullable wrapper; absent becomes None."""
    if isinstance(value, Nullable):
        return value.get()
    return value


@dataclass(frozen=True, slots=True)
class ColumnDescriptor:
    """Immutable metadata for one result column, shared by every row of a query.

    ``type_name`` is the driver's reported database type name upper-cased;
    an empty string means the driver reports no type.
    """
    name: str
    type_name: str = ''
    nullability: Nullability = Nullability.UNKNOWN
    scan_kind: ScanKind | None = None

    @property
    def wraps(self) -> bool:
        """Whether decoded values for this column are wrapped as Nullable."""
        return self.nullability is not Nullability.NOT_NULL


if __name__ == '__main__':
    __import__('doctest').testmod(optionflags=4 | 8 | 32)
