"""Tests for record construction, zero values and deep copies."""
import enum
from dataclasses import dataclass, field
from typing import Dict, FrozenSet, List, Optional, Tuple

import pytest

from attrstate import (
    DecodeError,
    build_record,
    deep_copy,
    is_zero,
    schema_by_path,
    string_value,
    zero_record,
)
from attrstate.records import as_plain_mapping, coerce, zero_value

from sample_records import Common, Counter, Network, PlainCounter, Rule, Settings


class Color(enum.Enum):
    RED = 'red'
    BLUE = 'blue'


@dataclass
class Palette:
    primary: Optional[Color] = None
    pairs: Optional[Tuple[str, int]] = None
    shades: FrozenSet[str] = frozenset()
    weights: Dict[str, float] = field(default_factory=dict)


class TestDeepCopy:
    """Copies share no mutable storage with the original."""

    def test_nested_isolation(self):
        original = Network(tags={'a': '1'}, rules=[Rule(name='ssh', port=22)],
                           settings=Settings(mode='fast'))
        copied = deep_copy(original)
        assert copied == original
        copied.tags['b'] = '2'
        copied.rules[0].port = 2222
        copied.settings.mode = 'slow'
        assert original.tags == {'a': '1'}
        assert original.rules[0].port == 22
        assert original.settings.mode == 'fast'

    def test_attr_values_shared(self):
        """Immutable attribute values are not duplicated."""
        value = string_value('x')
        assert deep_copy({'v': value})['v'] is value


class TestZeroValues:

    def test_zero_value_per_type(self):
        assert zero_value(str) == ''
        assert zero_value(int) == 0
        assert zero_value(float) == 0.0
        assert zero_value(bool) is False
        assert zero_value(Optional[int]) is None
        assert zero_value(List[str]) is None
        assert zero_value(Color) is None
        assert zero_value(Settings) == Settings()

    def test_zero_record_uses_defaults(self):
        """Field defaults take precedence over type zeros."""
        record = zero_record(Network)
        assert record.common == Common()
        assert record.size == 0
        assert record.tags is None

    def test_is_zero(self):
        assert is_zero(None)
        assert is_zero('')
        assert is_zero(0)
        assert is_zero(False)
        assert is_zero(Counter())
        assert not is_zero(True)
        assert not is_zero('x')
        assert not is_zero([])
        assert not is_zero({})
        assert not is_zero(Counter(count=1))


class TestBuildRecord:
    """Records from wire-name mappings."""

    def test_wire_names_and_squash(self):
        record = build_record(Network, {'name': 'web', 'region': 'eu', 'project_id': 'p'})
        assert record.network_name == 'web'
        assert record.common == Common(region='eu', projectId='p')

    def test_none_values(self):
        """None sets optional fields to None and resets others to their default."""
        assert build_record(Counter, {'name': None, 'count': None}) == Counter(name='', count=None)
        assert build_record(PlainCounter, {'count': None}) == PlainCounter(count=0)

    def test_nested_records_from_mappings(self):
        record = build_record(Network, {
            'rules': [{'name': 'ssh', 'port': 22, 'enabled': True}],
            'settings': {'mode': 'fast'},
        })
        assert record.rules == [Rule(name='ssh', port=22, enabled=True)]
        assert record.settings == Settings(mode='fast')

    def test_type_errors_name_the_key(self):
        with pytest.raises(DecodeError, match="'count': expected type 'int', got 'str'"):
            build_record(PlainCounter, {'count': 'many'})

    def test_nested_type_error(self):
        with pytest.raises(DecodeError, match='rules'):
            build_record(Network, {'rules': [{'port': 'x'}]})

    def test_unknown_keys_ignored(self):
        assert build_record(Counter, {'name': 'a', 'other': 1}) == Counter(name='a')


class TestCoerce:
    """Generic values to declared Python types."""

    def test_containers(self):
        assert coerce(['a', 'b'], Tuple[str, ...]) == ('a', 'b')
        assert coerce(['a', 1], Tuple[str, int]) == ('a', 1)
        assert coerce(['a', 'a'], FrozenSet[str]) == frozenset({'a'})
        assert coerce({'k': 1}, Dict[str, float]) == {'k': 1.0}

    def test_integral_float_accepted_for_int(self):
        assert coerce(3.0, int) == 3
        with pytest.raises(TypeError):
            coerce(3.5, int)

    def test_bool_is_not_int(self):
        with pytest.raises(TypeError):
            coerce(True, int)

    def test_tuple_length(self):
        with pytest.raises(ValueError):
            coerce(['a'], Tuple[str, int])

    def test_enum(self):
        record = build_record(Palette, {'primary': 'blue', 'pairs': ['x', 1], 'shades': ['a']})
        assert record.primary is Color.BLUE
        assert record.pairs == ('x', 1)
        assert record.shades == frozenset({'a'})


class TestSchemaByPath:
    """Dotted lookups through mappings and records."""

    def test_mapping_then_record(self):
        root = {'config': Network(settings=Settings(mode='fast'))}
        assert schema_by_path(root, 'config.settings.mode') == 'fast'

    def test_wire_and_field_names(self):
        network = Network(network_name='web')
        assert schema_by_path(network, 'name') == 'web'
        assert schema_by_path(network, 'network_name') == 'web'

    def test_empty_path(self):
        root = {'a': 1}
        assert schema_by_path(root, '') is root

    def test_missing_step(self):
        with pytest.raises(KeyError):
            schema_by_path({'a': {}}, 'a.b')
        with pytest.raises(KeyError):
            schema_by_path(Network(), 'nothing')

    def test_scalar_step(self):
        with pytest.raises(TypeError):
            schema_by_path({'a': 1}, 'a.b')


class TestPlainMapping:

    def test_wire_names_and_enums(self):
        palette = Palette(primary=Color.RED, shades=frozenset({'a'}))
        assert as_plain_mapping(palette) == {
            'primary': 'red',
            'pairs': None,
            'shades': ['a'],
            'weights': {},
        }
