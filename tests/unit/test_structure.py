"""
Tests for binding decoded rows onto destination records.
"""
import dataclasses
import datetime
from dataclasses import dataclass

import pytest
from dbmap.exceptions import BindError
from dbmap.options import std_time_conversion
from dbmap.structure import DecoderConfig, bind_row, get_bind_plan, scan_fast_row
from dbmap.structure import struct_values, weak_coerce, zero_for
from dbmap.types import ABSENT, Nullable

from tests.fixtures.records import FastUser, Recorder, TaggedUser, User
from tests.fixtures.records import hooked_type


class TestBindPlan:

    def test_columns_default_to_field_names(self):
        plan = get_bind_plan(User)
        assert plan.columns == ['id', 'name', 'value', 'active']
        assert not plan.fast_scan
        assert not plan.post_unmarshal

    def test_tags_rename_and_skip(self):
        assert get_bind_plan(TaggedUser).columns == ['id', 'name']

    def test_custom_tag_name(self):
        @dataclass
        class Row:
            a: int = dataclasses.field(default=0, metadata={'col': 'x'})

        assert get_bind_plan(Row, tag_name='col').columns == ['x']
        assert get_bind_plan(Row).columns == ['a']

    def test_plan_cached_per_type(self):
        assert get_bind_plan(User) is get_bind_plan(User(1, 'a'))

    def test_capabilities_detected(self):
        assert get_bind_plan(FastUser).fast_scan
        assert get_bind_plan(hooked_type(Recorder())).post_unmarshal

    def test_duplicate_column_rejected(self):
        @dataclass
        class Dup:
            a: int = dataclasses.field(default=0, metadata={'db': 'x'})
            b: int = dataclasses.field(default=0, metadata={'db': 'x'})

        with pytest.raises(BindError, match='tagged on both'):
            get_bind_plan(Dup)

    def test_non_string_tag_rejected(self):
        @dataclass
        class BadTag:
            a: int = dataclasses.field(default=0, metadata={'db': 5})

        with pytest.raises(BindError):
            get_bind_plan(BadTag)

    def test_unresolvable_annotation_rejected(self):
        @dataclass
        class Unresolved:
            a: 'MissingType' = None  # noqa: F821

        with pytest.raises(BindError, match='Cannot resolve'):
            get_bind_plan(Unresolved)

    def test_non_dataclass_rejected(self):
        class Plain:
            pass

        with pytest.raises(BindError, match='not a dataclass'):
            get_bind_plan(Plain)

    def test_non_dataclass_with_fast_scan_allowed(self):
        class Plain:
            def __init__(self):
                self.a = None

            def scan_fast(self):
                return ['a']

        plan = get_bind_plan(Plain)
        assert plan.fast_scan
        assert scan_fast_row(plan, (5,)).a == 5


class TestBindRow:

    def test_unwraps_and_ignores_extra_columns(self):
        row = {'id': Nullable.of(1), 'name': 'Alice', 'extra': 3, 'value': ABSENT}
        assert bind_row(get_bind_plan(User), row) == User(1, 'Alice', None, False)

    def test_missing_columns_zeroed(self):
        record = bind_row(get_bind_plan(User), {'name': 'x'})
        assert record == User(0, 'x', None, False)

    def test_missing_columns_ignore_field_defaults(self):
        @dataclass
        class Defaults:
            id: int = 5
            name: str = 'default-name'
            tags: list[str] = dataclasses.field(default_factory=lambda: ['a'])
            label: str = dataclasses.field(init=False, default='unset')

        record = bind_row(get_bind_plan(Defaults), {'id': 1})
        assert record.id == 1
        assert record.name == ''
        assert record.tags == []
        assert record.label == ''

    def test_tagged_fields(self):
        record = bind_row(get_bind_plan(TaggedUser), {'id': 4, 'name': 'Dana'})
        assert record == TaggedUser(4, 'Dana')
        assert record.note == 'n/a'

    def test_non_init_field_assigned(self):
        @dataclass
        class WithLate:
            id: int = 0
            label: str = dataclasses.field(init=False, default='')

        record = bind_row(get_bind_plan(WithLate), {'id': 1, 'label': 'late'})
        assert record.label == 'late'

    def test_values_pass_through_without_weak_typing(self):
        record = bind_row(get_bind_plan(User), {'id': '7', 'name': 5})
        assert record.id == '7'
        assert record.name == 5

    def test_weak_typing(self):
        config = DecoderConfig(weakly_typed_input=True)
        row = {'id': '7', 'name': 5, 'value': Nullable.of('3'), 'active': 'yes'}
        assert bind_row(get_bind_plan(User), row, config) == User(7, '5', 3, True)

    def test_weak_typing_failure(self):
        config = DecoderConfig(weakly_typed_input=True)
        with pytest.raises(BindError, match="field 'id'"):
            bind_row(get_bind_plan(User), {'id': 'abc', 'name': 'x'}, config)

    def test_decode_hook_sees_source_and_target_types(self):
        seen = []

        def hook(from_type, to_type, value):
            seen.append((from_type, to_type))
            return value

        bind_row(get_bind_plan(User), {'id': 1, 'name': 'a'}, DecoderConfig(decode_hook=hook))
        assert seen == [(int, int), (str, str)]

    def test_time_conversion_hook(self):
        @dataclass
        class Event:
            at: datetime.datetime | None = None
            on: datetime.date | None = None

        config = DecoderConfig(decode_hook=std_time_conversion)
        row = {'at': '2024-01-02 03:04:05', 'on': datetime.datetime(2024, 5, 6, 7)}
        record = bind_row(get_bind_plan(Event), row, config)
        assert record.at == datetime.datetime(2024, 1, 2, 3, 4, 5)
        assert record.on == datetime.date(2024, 5, 6)


class TestScanFast:

    def test_assigns_raw_values_in_column_order(self):
        record = scan_fast_row(get_bind_plan(FastUser), (1, b'raw'))
        assert record == FastUser(1, b'raw')

    def test_unscanned_fields_zeroed(self):
        @dataclass
        class Partial:
            id: int = 9
            name: str = 'default-name'

            def scan_fast(self):
                return ['id']

        record = scan_fast_row(get_bind_plan(Partial), (3,))
        assert record == Partial(3, '')

    def test_target_count_mismatch(self):
        with pytest.raises(BindError, match='2 targets for 3 columns'):
            scan_fast_row(get_bind_plan(FastUser), (1, 'a', 'b'))


class TestCoercion:

    @pytest.mark.parametrize(('value', 'annotation', 'expected'), [
        (42, str, '42'),
        (True, str, '1'),
        (b'x', str, 'x'),
        ('7', int, 7),
        (' 8 ', int, 8),
        ('', int, 0),
        (2.9, int, 2),
        (True, int, 1),
        ('1.5', float, 1.5),
        (3, float, 3.0),
        ('off', bool, False),
        ('T', bool, True),
        (0, bool, False),
        (None, int, 0),
        (None, int | None, None),
        ('5', int | None, 5),
        ([1], list, [1]),
    ])
    def test_weak_coerce(self, value, annotation, expected):
        result = weak_coerce(value, annotation)
        assert result == expected
        assert type(result) is type(expected)

    def test_weak_coerce_invalid_bool(self):
        with pytest.raises(BindError):
            weak_coerce('maybe', bool, 'flag')

    @pytest.mark.parametrize(('annotation', 'expected'), [
        (int, 0), (str, ''), (float, 0.0), (bool, False), (bytes, b''),
        (list[int], []), (dict[str, int], {}), (int | None, None),
        (datetime.date, None),
    ])
    def test_zero_for(self, annotation, expected):
        assert zero_for(annotation) == expected


class TestStructValues:

    def test_flattens_in_field_order_skipping_excluded(self):
        assert struct_values(TaggedUser(1, 'a', 'ignored'), TaggedUser(2, 'b')) == [1, 'a', 2, 'b']

    def test_rejects_non_dataclass_instances(self):
        with pytest.raises(BindError):
            struct_values(User)
        with pytest.raises(BindError):
            struct_values({'id': 1})
