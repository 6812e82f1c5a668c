"""
Tests for column type decoding: type families, nullability wrapping and
best-effort degradation of malformed cell contents.
"""
import datetime
import decimal

import pytest
from dbmap.adapters.type_mapping import TypeHandler, TypeHandlerRegistry
from dbmap.adapters.type_mapping import decode_row, decode_value
from dbmap.adapters.type_mapping import normalize_type_name
from dbmap.types import ABSENT, ColumnDescriptor, Nullability, Nullable
from dbmap.types import ScanKind, SemanticType


def not_null(type_name, scan_kind=None):
    return ColumnDescriptor('col', type_name, Nullability.NOT_NULL, scan_kind)


def nullable(type_name, scan_kind=None):
    return ColumnDescriptor('col', type_name, Nullability.NULLABLE, scan_kind)


class TestTypeFamilies:
    """Each reported type family decodes into its semantic type."""

    @pytest.mark.parametrize(('type_name', 'raw', 'expected'), [
        ('VARCHAR', b'hello', 'hello'),
        ('TEXT', 'plain', 'plain'),
        ('MEDIUMTEXT', b'long', 'long'),
        ('NVARCHAR', b'wide', 'wide'),
        ('DOUBLE', b'1.5', 1.5),
        ('DECIMAL', decimal.Decimal('2.25'), 2.25),
        ('NUMERIC', '3', 3.0),
        ('INT', b'42', 42),
        ('BIGINT', 7, 7),
        ('TINYINT', b'-3', -3),
        ('TIMESTAMP', b'2024-01-02 03:04:05', datetime.datetime(2024, 1, 2, 3, 4, 5)),
        ('DATE', b'2024-01-02', datetime.date(2024, 1, 2)),
        ('TIME', b'03:04:05', datetime.time(3, 4, 5)),
        ('JSON', b'{"a": [1, 2]}', {'a': [1, 2]}),
        ('JSONB', '[1, 2]', [1, 2]),
        ('GEOGRAPHY', b'POINT(1 2)', 'POINT(1 2)'),
    ], ids=[
        'varchar', 'text', 'mediumtext', 'nvarchar', 'double', 'decimal', 'numeric',
        'int', 'bigint_native', 'tinyint', 'timestamp', 'date', 'time', 'json',
        'jsonb', 'unrecognized_as_string',
    ])
    def test_decodes_family(self, type_name, raw, expected):
        assert decode_value(not_null(type_name), raw) == expected

    @pytest.mark.parametrize(('raw', 'expected'), [
        (b'true', True),
        (b'TRUE', True),
        (b'1', True),
        (b'True', False),
        (b'0', False),
        (b'yes', False),
        (True, True),
    ])
    def test_bool_normalization(self, raw, expected):
        assert decode_value(not_null('BOOL'), raw) is expected

    def test_timestamp_falls_back_to_timezone_layout(self):
        value = decode_value(not_null('TIMESTAMPTZ'), b'2024-01-02T03:04:05+02:00')
        assert value.utcoffset() == datetime.timedelta(hours=2)
        assert value.hour == 3

    def test_date_falls_back_to_timestamp_date_part(self):
        value = decode_value(not_null('DATE'), b'2024-01-02T23:00:00Z')
        assert value == datetime.date(2024, 1, 2)

    def test_time_from_timedelta(self):
        value = decode_value(not_null('TIME'), datetime.timedelta(hours=1, minutes=2))
        assert value == datetime.time(1, 2)

    def test_type_names_case_insensitive(self):
        assert decode_value(not_null('varchar(32)'), b'x') == 'x'
        assert decode_value(not_null('int unsigned'), b'5') == 5


class TestIntegerWidths:

    def test_scan_kind_selects_width(self):
        assert decode_value(not_null('TINYINT', ScanKind.INT8), b'127') == 127
        assert decode_value(not_null('TINYINT', ScanKind.INT8), b'128') == 0

    def test_unsigned_rejects_negative(self):
        assert decode_value(not_null('INT', ScanKind.UINT32), b'-1') == 0
        assert decode_value(not_null('INT', ScanKind.UINT32), b'4294967295') == 4294967295

    def test_defaults_to_signed_64_bit(self):
        assert decode_value(not_null('INT'), str(2 ** 63 - 1)) == 2 ** 63 - 1
        assert decode_value(not_null('INT'), str(2 ** 63)) == 0

    def test_semantic_type_follows_signedness(self):
        registry = TypeHandlerRegistry.get_instance()
        assert registry.semantic_type(not_null('INT', ScanKind.UINT64)) is SemanticType.UINT
        assert registry.semantic_type(not_null('INT')) is SemanticType.INT


class TestMalformedDegradesToZero:

    @pytest.mark.parametrize(('type_name', 'raw', 'expected'), [
        ('INT', b'abc', 0),
        ('INT', b'1.5', 0),
        ('FLOAT', b'n/a', 0.0),
        ('DATETIME', b'yesterday', datetime.datetime.min),
        ('DATE', b'32/13/2024', datetime.date.min),
        ('TIME', b'25:99', datetime.time.min),
    ])
    def test_not_null_column(self, type_name, raw, expected):
        assert decode_value(not_null(type_name), raw) == expected

    def test_nullable_column_wraps_zero(self):
        assert decode_value(nullable('INT'), b'abc') == Nullable.of(0)


class TestNullability:

    @pytest.mark.parametrize('type_name', ['VARCHAR', 'INT', 'FLOAT', 'BOOL', 'TIMESTAMP',
                                           'DATE', 'TIME', 'JSON', 'BLOB'])
    def test_not_null_never_wrapped_even_for_null_cell(self, type_name):
        value = decode_value(not_null(type_name), None)
        assert not isinstance(value, Nullable)

    @pytest.mark.parametrize(('type_name', 'zero'), [
        ('VARCHAR', ''), ('INT', 0), ('FLOAT', 0.0), ('BOOL', False),
    ])
    def test_not_null_null_cell_is_zero(self, type_name, zero):
        assert decode_value(not_null(type_name), None) == zero

    @pytest.mark.parametrize('nullability', [Nullability.NULLABLE, Nullability.UNKNOWN])
    def test_null_cell_is_absent(self, nullability):
        col = ColumnDescriptor('col', 'VARCHAR', nullability)
        assert decode_value(col, None) is ABSENT

    @pytest.mark.parametrize('nullability', [Nullability.NULLABLE, Nullability.UNKNOWN])
    def test_value_is_present(self, nullability):
        col = ColumnDescriptor('col', 'INT', nullability)
        value = decode_value(col, b'9')
        assert value.valid
        assert value.value == 9

    def test_explicit_null_type_is_absent(self):
        assert decode_value(nullable('NULL'), b'anything') is ABSENT


class TestJson:

    def test_malformed_json_is_absent(self):
        assert decode_value(nullable('JSON'), b'{"a": ') is ABSENT

    def test_malformed_json_not_null_is_none(self):
        assert decode_value(not_null('JSON'), b'{oops') is None

    def test_json_null_literal_is_present(self):
        value = decode_value(nullable('JSON'), b'null')
        assert value.valid
        assert value.value is None

    def test_driver_decoded_json_passes_through(self):
        assert decode_value(not_null('JSONB'), {'k': 1}) == {'k': 1}


class TestRawResults:

    def test_every_column_yields_bytes(self):
        assert decode_value(not_null('INT'), b'42', raw_results=True) == b'42'
        assert decode_value(not_null('INT'), 42, raw_results=True) == b'42'
        assert decode_value(nullable('JSON'), '{"a": 1}', raw_results=True) == b'{"a": 1}'

    def test_copy_is_detached_from_buffer(self):
        buffer = bytearray(b'abc')
        value = decode_value(not_null('BLOB'), buffer, raw_results=True)
        buffer[0] = ord('z')
        assert value == b'abc'

    def test_null_stays_none(self):
        assert decode_value(nullable('VARCHAR'), None, raw_results=True) is None


class TestRegistry:

    def test_unreported_type_keeps_driver_value(self):
        col = ColumnDescriptor('n', '')
        assert decode_value(col, 5) == Nullable.of(5)

    def test_custom_handler_takes_precedence(self):
        class UpperHandler(TypeHandler):
            type_names = frozenset({'SHOUT'})

            def convert_value(self, value, column):
                return value.upper()

        registry = TypeHandlerRegistry()
        registry.register_handler(UpperHandler())
        assert decode_value(not_null('SHOUT'), 'hey', registry=registry) == 'HEY'

    def test_decode_row_preserves_column_order(self):
        columns = [ColumnDescriptor('id', 'INT', Nullability.NOT_NULL),
                   ColumnDescriptor('name', 'VARCHAR', Nullability.NOT_NULL)]
        row = decode_row(columns, (b'1', b'x'))
        assert list(row) == ['id', 'name']
        assert row == {'id': 1, 'name': 'x'}

    @pytest.mark.parametrize(('raw', 'expected'), [
        ('varchar(255)', 'VARCHAR'),
        ('  double   precision ', 'DOUBLE PRECISION'),
        (None, ''),
    ])
    def test_normalize_type_name(self, raw, expected):
        assert normalize_type_name(raw) == expected
