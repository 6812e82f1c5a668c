"""
Per-call options for query materialization.
"""
import datetime
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

import dateutil.parser
from dbmap.exceptions import ConfigurationError
from dbmap.retry import RetryPolicy
from dbmap.sql import Dialect
from dbmap.structure import DecoderConfig, optional_inner

__all__ = [
    'Options',
    'DecoderConfig',
    'std_time_conversion',
    'std_time_conversion_config',
]


def std_time_conversion(from_type: type, to_type: Any, value: Any) -> Any:
    """Decode hook converting text and datetimes into date/datetime fields.

    >>> std_time_conversion(str, datetime.datetime, '2024-01-02 03:04:05')
    datetime.datetime(2024, 1, 2, 3, 4, 5)
    >>> std_time_conversion(datetime.datetime, datetime.date, datetime.datetime(2024, 1, 2, 3))
    datetime.date(2024, 1, 2)
    """
    _, to_type = optional_inner(to_type)
    if to_type is datetime.datetime:
        if isinstance(value, str | bytes) and value:
            text = value.decode() if isinstance(value, bytes) else value
            return dateutil.parser.parse(text)
        if isinstance(value, datetime.date) and not isinstance(value, datetime.datetime):
            return datetime.datetime.combine(value, datetime.time.min)
    if to_type is datetime.date:
        if isinstance(value, datetime.datetime):
            return value.date()
        if isinstance(value, str | bytes) and value:
            text = value.decode() if isinstance(value, bytes) else value
            return dateutil.parser.parse(text).date()
    return value


def std_time_conversion_config() -> DecoderConfig:
    """DecoderConfig with the time conversion hook and weak typing enabled."""
    return DecoderConfig(decode_hook=std_time_conversion, weakly_typed_input=True)


@dataclass
class Options:
    """Options

    - concrete_struct: destination record type (or instance) to bind rows into;
      None returns name-keyed dicts
    - decoder_config: hook, weak typing and tag name for binding
    - single_result: return only the first row (None when there are no rows)
    - raw_results: every column yields a copy of its raw bytes
    - retry_policy: retry transient execution errors with backoff
    - post_fetch: ``post_fetch(ctx)`` called once after all rows are read,
      before post-processing; raising aborts the call
    - concurrent_post_unmarshal: run post-processing hooks in parallel
    - max_workers: cap on post-processing threads (None for one per processor)
    - dialect: placeholder convention of the statement; numbered (PostgreSQL)
      statements run on a raw cursor under psycopg. None leaves the driver default
    """
    concrete_struct: Any = None
    decoder_config: DecoderConfig = field(default_factory=DecoderConfig)
    single_result: bool = False
    raw_results: bool = False
    retry_policy: RetryPolicy | None = None
    post_fetch: Callable[[Any], None] | None = None
    concurrent_post_unmarshal: bool = False
    max_workers: int | None = None
    dialect: Dialect | str | None = None

    def __post_init__(self):
        if self.decoder_config is None:
            self.decoder_config = DecoderConfig()
        if self.post_fetch is not None and not callable(self.post_fetch):
            raise ConfigurationError('post_fetch must be callable')
        if self.retry_policy is not None and not isinstance(self.retry_policy, RetryPolicy):
            raise ConfigurationError('retry_policy must be a RetryPolicy')
        if self.max_workers is not None and self.max_workers < 1:
            raise ConfigurationError('max_workers must be at least 1')
        if self.dialect is not None:
            self.dialect = Dialect.coerce(self.dialect)
