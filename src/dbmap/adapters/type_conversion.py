"""
Type conversion utilities for statement arguments.

This module handles the conversion of Python values to database-compatible
formats when sending arguments to the database (Python → Database direction
only). Decoding results is the job of ``dbmap.adapters.type_mapping``.

It provides:
1. A TypeConverter class for direct argument conversion
2. Unwrapping of Nullable values (absent becomes NULL)
3. Support for NumPy and Pandas scalar types, NaN and NA becoming NULL

Usage:
    params = TypeConverter.convert_params(my_params)
    cursor.execute(sql, params)
"""
import datetime
import logging
import math
from typing import Any

import numpy as np
import pandas as pd
from dbmap.types import Nullable

logger = logging.getLogger(__name__)

NUMPY_FLOAT_TYPES = (np.floating,)
NUMPY_INT_TYPES = (np.integer, np.unsignedinteger)


def _convert_numpy_value(val: Any) -> float | int | bool | datetime.datetime | None:
    """Convert NumPy scalar to the equivalent Python value.

    >>> _convert_numpy_value(np.int32(42))
    42
    >>> _convert_numpy_value(np.float64('nan')) is None
    True
    """
    if isinstance(val, np.floating) and np.isnan(val):
        return None

    if isinstance(val, np.datetime64):
        if np.isnat(val):
            return None
        return pd.Timestamp(val).to_pydatetime()

    if isinstance(val, np.floating | np.integer | np.unsignedinteger | np.bool_):
        return val.item()

    return val


class TypeConverter:
    """Universal type conversion for statement arguments."""

    @staticmethod
    def convert_value(value: Any) -> Any:
        """Convert a single value to a database-compatible format.

        >>> TypeConverter.convert_value(Nullable.of(3))
        3
        >>> TypeConverter.convert_value(float('nan')) is None
        True
        """
        if isinstance(value, Nullable):
            value = value.get()

        if value is None:
            return None

        if isinstance(value, float) and (math.isnan(value) or math.isinf(value)):
            return None

        if isinstance(value, np.generic):
            return _convert_numpy_value(value)

        if isinstance(value, pd.Timestamp):
            return None if pd.isna(value) else value.to_pydatetime()

        if value is pd.NA or value is pd.NaT:
            return None

        return value

    @staticmethod
    def convert_params(params: Any) -> Any:
        """Convert a collection of arguments for database operations."""
        if params is None:
            return None

        if isinstance(params, dict):
            return {k: TypeConverter.convert_value(v) for k, v in params.items()}

        if isinstance(params, list | tuple):
            return type(params)(TypeConverter.convert_value(v) for v in params)

        return TypeConverter.convert_value(params)


if __name__ == '__main__':
    __import__('doctest').testmod(optionflags=4 | 8 | 32)
