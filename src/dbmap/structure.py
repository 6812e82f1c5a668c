"""
Binding decoded rows onto destination record types.

A destination is a dataclass. Each field maps to the result column named by
its ``metadata[tag_name]`` entry (default tag ``'db'``), falling back to the
field name; a tag of ``'-'`` excludes the field.

Two optional capabilities change how records are built and finished:

- ScanFaster: ``scan_fast()`` returns the attribute names to assign, in cursor
  column order. Raw driver values are assigned directly, skipping decoding.
- PostUnmarshaler: ``post_unmarshal(ctx, row, count)`` runs once per record
  after every row has been materialized.

Capabilities and the field mapping are resolved once per destination type
(BindPlan) and cached, never per row.
"""
import dataclasses
import logging
import threading
import types
import typing
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, Protocol, runtime_checkable

import cachetools
from dbmap.exceptions import BindError
from dbmap.types import unwrap

logger = logging.getLogger(__name__)

DecodeHook = Callable[[type, Any, Any], Any]


@runtime_checkable
class ScanFaster(Protocol):
    """Destination records that accept raw driver values directly."""

    def scan_fast(self) -> list[str]:
        ...


@runtime_checkable
class PostUnmarshaler(Protocol):
    """Destination records with a per-record hook run after fetching."""

    def post_unmarshal(self, ctx: Any, row: int, count: int) -> None:
        ...


@dataclass
class DecoderConfig:
    """Controls the generic binding path.

    - decode_hook: ``hook(from_type, to_type, value) -> value`` applied to
      every bound value before coercion
    - weakly_typed_input: coerce between str, int, float and bool to match
      the field annotation
    - tag_name: field metadata key holding the column name
    """
    decode_hook: DecodeHook | None = None
    weakly_typed_input: bool = False
    tag_name: str = 'db'


@dataclass(frozen=True)
class FieldSpec:
    name: str
    column: str
    annotation: Any
    init: bool


@dataclass(frozen=True)
class BindPlan:
    """Per-type binding metadata, fixed before any row is decoded."""
    record_type: type
    fields: tuple[FieldSpec, ...]
    fast_scan: bool
    post_unmarshal: bool
    annotations: dict[str, Any] = dataclasses.field(default_factory=dict)

    @property
    def columns(self) -> list[str]:
        return [f.column for f in self.fields]


_plan_cache: cachetools.LRUCache = cachetools.LRUCache(maxsize=256)
_plan_lock = threading.RLock()


def record_type_of(prototype: Any) -> type:
    """Destination type for a class or an instance used as prototype."""
    return prototype if isinstance(prototype, type) else type(prototype)


def get_bind_plan(prototype: Any, tag_name: str = 'db') -> BindPlan:
    """Resolve (and cache) the binding plan for a destination type.

    Raises BindError for non-dataclass destinations, unresolvable
    annotations, non-string tags and duplicate column tags.
    """
    record_type = record_type_of(prototype)
    key = (record_type, tag_name)
    with _plan_lock:
        plan = _plan_cache.get(key)
        if plan is None:
            plan = _build_plan(record_type, tag_name)
            _plan_cache[key] = plan
    return plan


def _build_plan(record_type: type, tag_name: str) -> BindPlan:
    fast_scan = issubclass(record_type, ScanFaster)
    post = issubclass(record_type, PostUnmarshaler)

    if not dataclasses.is_dataclass(record_type):
        if fast_scan:
            return BindPlan(record_type, (), True, post)
        raise BindError(f'{record_type.__name__} is not a dataclass')

    try:
        hints = typing.get_type_hints(record_type)
    except (NameError, TypeError) as err:
        raise BindError(f'Cannot resolve field types of {record_type.__name__}: {err}') from err

    specs: list[FieldSpec] = []
    seen: dict[str, str] = {}
    for f in dataclasses.fields(record_type):
        column = f.metadata.get(tag_name, f.name)
        if not isinstance(column, str) or not column:
            raise BindError(f'{record_type.__name__}.{f.name}: {tag_name!r} tag must be a non-empty string')
        if column == '-':
            continue
        if column in seen:
            raise BindError(f'{record_type.__name__}: column {column!r} tagged on both '
                            f'{seen[column]!r} and {f.name!r}')
        seen[column] = f.name
        specs.append(FieldSpec(f.name, column, hints.get(f.name, Any), f.init))

    logger.debug(f'Bind plan for {record_type.__name__}: {[(s.name, s.column) for s in specs]}')
    return BindPlan(record_type, tuple(specs), fast_scan, post, hints)


def clear_plan_cache() -> None:
    with _plan_lock:
        _plan_cache.clear()


def optional_inner(annotation: Any) -> tuple[bool, Any]:
    """Split ``X | None`` into (True, X)."""
    origin = typing.get_origin(annotation)
    if origin is typing.Union or origin is types.UnionType:
        args = [a for a in typing.get_args(annotation) if a is not type(None)]
        if len(args) < len(typing.get_args(annotation)):
            return True, args[0] if len(args) == 1 else Any
    return False, annotation


def zero_for(annotation: Any) -> Any:
    """Zero value for a field annotation.

    >>> zero_for(int), zero_for(str | None), zero_for(list[int])
    (0, None, [])
    """
    optional, inner = optional_inner(annotation)
    if optional:
        return None
    base = typing.get_origin(inner) or inner
    if base in {int, float, str, bool, bytes, list, dict, set, tuple}:
        return base()
    return None


def _field_default(f: dataclasses.Field, annotation: Any) -> Any:
    if f.default is not dataclasses.MISSING:
        return f.default
    if f.default_factory is not dataclasses.MISSING:
        return f.default_factory()
    return zero_for(annotation)


_TRUE_STRINGS = {'1', 't', 'true', 'y', 'yes', 'on'}
_FALSE_STRINGS = {'', '0', 'f', 'false', 'n', 'no', 'off'}


def weak_coerce(value: Any, annotation: Any, field_name: str = '') -> Any:
    """Coerce between str, int, float and bool to match ``annotation``.

    >>> weak_coerce(42, str), weak_coerce('7', int), weak_coerce(1, bool)
    ('42', 7, True)
    """
    optional, target = optional_inner(annotation)
    if value is None:
        return None if optional else zero_for(target)
    if target not in {str, int, float, bool} or type(value) is target:
        return value
    try:
        if target is str:
            if isinstance(value, bool):
                return '1' if value else '0'
            if isinstance(value, bytes):
                return value.decode()
            return str(value)
        if target is bool:
            if isinstance(value, str | bytes):
                text = (value.decode() if isinstance(value, bytes) else value).strip().lower()
                if text in _TRUE_STRINGS:
                    return True
                if text in _FALSE_STRINGS:
                    return False
                raise ValueError(f'invalid boolean {value!r}')
            return bool(value)
        if target is int:
            if isinstance(value, str | bytes):
                text = value.decode() if isinstance(value, bytes) else value
                return int(text.strip() or 0)
            return int(value)
        if isinstance(value, str | bytes):
            text = value.decode() if isinstance(value, bytes) else value
            return float(text.strip() or 0)
        return float(value)
    except (TypeError, ValueError) as err:
        raise BindError(f'Cannot convert {value!r} to {target.__name__} for field {field_name!r}') from err


def _prepare(value: Any, spec: FieldSpec, config: DecoderConfig) -> Any:
    value = unwrap(value)
    if config.decode_hook is not None:
        value = config.decode_hook(type(value), spec.annotation, value)
    if config.weakly_typed_input:
        value = weak_coerce(value, spec.annotation, spec.name)
    return value


def bind_row(plan: BindPlan, row: dict[str, Any], config: DecoderConfig | None = None) -> Any:
    """Build one destination record from a decoded, name-keyed row.

    Mapped fields without a matching column get the zero value of their
    annotation, not the dataclass default. Fields tagged ``'-'`` are outside the binding and keep
    their default.
    """
    config = config or DecoderConfig()
    kwargs: dict[str, Any] = {}
    late: dict[str, Any] = {}
    for spec in plan.fields:
        if spec.column in row:
            value = _prepare(row[spec.column], spec, config)
        else:
            value = zero_for(spec.annotation)
        if spec.init:
            kwargs[spec.name] = value
        else:
            late[spec.name] = value
    record = _construct(plan, kwargs)
    for name, value in late.items():
        object.__setattr__(record, name, value)
    return record


def _construct(plan: BindPlan, kwargs: dict[str, Any]) -> Any:
    for f in dataclasses.fields(plan.record_type):
        if f.init and f.name not in kwargs:
            kwargs[f.name] = _field_default(f, plan.annotations.get(f.name, Any))
    return plan.record_type(**kwargs)


def scan_fast_row(plan: BindPlan, raw_row: Any) -> Any:
    """Assign raw driver values straight onto a fresh record's scan targets."""
    record = _new_record(plan)
    targets = list(record.scan_fast())
    if len(targets) != len(raw_row):
        raise BindError(f'{plan.record_type.__name__}.scan_fast returned {len(targets)} targets '
                        f'for {len(raw_row)} columns')
    for name, value in zip(targets, raw_row):
        object.__setattr__(record, name, value)
    return record


def _new_record(plan: BindPlan) -> Any:
    if not dataclasses.is_dataclass(plan.record_type):
        return plan.record_type()
    record = _construct(plan, {s.name: zero_for(s.annotation) for s in plan.fields if s.init})
    for spec in plan.fields:
        if not spec.init:
            object.__setattr__(record, spec.name, zero_for(spec.annotation))
    return record


def struct_values(*records: Any, tag_name: str = 'db') -> list[Any]:
    """Flatten dataclass records into positional arguments, in field order.

    Fields tagged ``'-'`` are skipped. Pairs with ``insert_stmt``:

    >>> @dataclass
    ... class User:
    ...     name: str
    ...     age: int
    ...     notes: str = dataclasses.field(default='', metadata={'db': '-'})
    >>> struct_values(User('rabbit', 5), User('cat', 8))
    ['rabbit', 5, 'cat', 8]
    """
    values: list[Any] = []
    for record in records:
        if not dataclasses.is_dataclass(record) or isinstance(record, type):
            raise BindError(f'{type(record).__name__} is not a dataclass instance')
        for f in dataclasses.fields(record):
            if f.metadata.get(tag_name) == '-':
                continue
            values.append(getattr(record, f.name))
    return values


if __name__ == '__main__':
    __import__('doctest').testmod(optionflags=4 | 8 | 32)
