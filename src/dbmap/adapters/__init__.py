"""
Column metadata, result decoding and argument conversion.
"""
from dbmap.adapters.column_info import columns_from_cursor
from dbmap.adapters.type_conversion import TypeConverter
from dbmap.adapters.type_mapping import TypeHandlerRegistry, decode_row
from dbmap.adapters.type_mapping import decode_value

__all__ = [
    'columns_from_cursor',
    'TypeConverter',
    'TypeHandlerRegistry',
    'decode_row',
    'decode_value',
]
