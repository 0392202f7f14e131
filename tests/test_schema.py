"""Tests for schema derivation."""
from dataclasses import dataclass
from typing import Any, Dict, FrozenSet, List, Optional, Set, Tuple

import pytest

from attrstate import (
    BOOL,
    DYNAMIC,
    FLOAT64,
    INT64,
    STRING,
    ImmutableString,
    ListType,
    MapType,
    ObjectType,
    RequiresReplace,
    SetType,
    StringChoicesValidator,
    TupleType,
    UnsupportedTypeError,
    attr_field,
    derive_schema,
    generate_data_source_schema,
    generate_resource_schema,
    has_dynamic_inner_type,
    int64_value,
    schema_attrs_from_record,
    type_to_attr_type,
)

from sample_records import Network, NetworkRef, NetworkState, NetworkUpdate, Rule, Settings, Shapes

RULE_TYPE = ObjectType({'name': STRING, 'port': INT64, 'enabled': BOOL})


class TestTypeMapping:
    """Python annotations to attribute types."""

    @pytest.mark.parametrize('py_type, expected', [
        (str, STRING),
        (bool, BOOL),
        (int, INT64),
        (float, FLOAT64),
        (Optional[str], STRING),
        (List[int], ListType(INT64)),
        (Set[str], SetType(STRING)),
        (FrozenSet[int], SetType(INT64)),
        (Tuple[str, ...], ListType(STRING)),
        (Tuple[str, int], TupleType((STRING, INT64))),
        (Dict[str, bool], MapType(BOOL)),
        (List[Rule], ListType(RULE_TYPE)),
        (Any, DYNAMIC),
        (List[Any], DYNAMIC),
        (Dict[str, Any], DYNAMIC),
        (list, DYNAMIC),
    ])
    def test_mapping(self, py_type, expected):
        """Each supported annotation maps to its attribute type."""
        assert type_to_attr_type(py_type) == expected

    def test_set_semantics(self):
        """List-like types become sets when requested."""
        assert type_to_attr_type(List[str], set_semantics=True) == SetType(STRING)

    def test_non_string_map_keys_rejected(self):
        with pytest.raises(UnsupportedTypeError):
            type_to_attr_type(Dict[int, str])

    def test_unsupported_type_rejected(self):
        with pytest.raises(UnsupportedTypeError):
            type_to_attr_type(bytes)

    def test_recursive_field_skipped(self):
        """A self-referencing field has no finite attribute type and is dropped."""
        @dataclass
        class Node:
            value: str = ''
            child: Optional['Node'] = None

        assert type_to_attr_type(Node) == ObjectType({'value': STRING})

    def test_nested_record(self):
        """Nested records become object types."""
        assert type_to_attr_type(Settings) == ObjectType({'mode': STRING, 'retries': INT64})


class TestDynamicDetection:
    """Reachability of Any through containers and records."""

    def test_direct(self):
        assert has_dynamic_inner_type(Any)
        assert has_dynamic_inner_type(Optional[List[Dict[str, Any]]])

    def test_through_record(self):
        """A record with an Any field makes a list of it dynamic."""
        @dataclass
        class Loose:
            payload: Any = None

        assert has_dynamic_inner_type(Loose)
        assert type_to_attr_type(List[Loose]) == DYNAMIC

    def test_static_types(self):
        assert not has_dynamic_inner_type(List[Rule])
        assert not has_dynamic_inner_type(Dict[str, int])


class TestDeriveSchema:
    """derive_schema over whole records."""

    def test_network(self, network_schema):
        """Every wire-visible field gets an attribute type."""
        assert network_schema == {
            'region': STRING,
            'project_id': STRING,
            'name': STRING,
            'description': STRING,
            'size': INT64,
            'tier': STRING,
            'secret': STRING,
            'tags': MapType(STRING),
            'rules': ListType(RULE_TYPE),
            'settings': ObjectType({'mode': STRING, 'retries': INT64}),
            'labels': ListType(STRING),
            'metadata': DYNAMIC,
        }

    def test_set_semantics_fields(self):
        """Named list fields derive as sets."""
        schema = derive_schema(Network, set_semantics_fields=['labels', 'rules'])
        assert schema['labels'] == SetType(STRING)
        assert schema['rules'] == SetType(RULE_TYPE)

    def test_container_shapes(self):
        schema = derive_schema(Shapes)
        assert schema == {
            'numbers': ListType(INT64),
            'unique': SetType(STRING),
            'frozen': ListType(STRING),
            'pair': TupleType((STRING, INT64)),
            'ratio': FLOAT64,
            'lookup': MapType(INT64),
            'anything': DYNAMIC,
            'blobs': DYNAMIC,
        }

    def test_result_is_a_copy(self):
        """Mutating the returned dict does not affect later calls."""
        first = derive_schema(Network)
        first.pop('name')
        assert 'name' in derive_schema(Network)

    def test_unsupported_field_skipped(self):
        """Fields without an attribute type are left out with a warning."""
        @dataclass
        class WithBytes:
            name: str = ''
            raw: bytes = b''

        assert derive_schema(WithBytes) == {'name': STRING}


class TestAttributeFlags:
    """Required/optional/computed variants and behavioural flags."""

    def test_required_and_optional(self):
        """Required fields are required; everything else optional+computed."""
        attrs = schema_attrs_from_record(Network)
        assert attrs['name'].required
        assert not attrs['name'].optional
        assert attrs['description'].optional and attrs['description'].computed

    def test_extra_required(self):
        attrs = schema_attrs_from_record(Network, extra_required_attrs=['region'])
        assert attrs['region'].required

    def test_default_forces_optional_computed(self):
        """A default makes the attribute optional and computed."""
        @dataclass
        class Defaulted:
            size: int = attr_field(required=True, schema_default='3', default=0)

        attrs = schema_attrs_from_record(Defaulted)
        assert not attrs['size'].required
        assert attrs['size'].optional and attrs['size'].computed
        assert attrs['size'].default.value == int64_value(3)

    def test_validators_and_modifiers(self):
        """Choices become validators; forcenew becomes RequiresReplace."""
        attrs = schema_attrs_from_record(Network)
        assert attrs['tier'].validators == [StringChoicesValidator(('gold', 'silver'))]
        assert RequiresReplace() in attrs['tier'].plan_modifiers
        assert attrs['secret'].sensitive

    def test_sensitive_list(self):
        attrs = schema_attrs_from_record(Network, sensitive_attrs=['description'])
        assert attrs['description'].sensitive

    def test_immutable_list(self):
        """Names in the immutable list get the guard for their kind."""
        attrs = schema_attrs_from_record(Network, immutable_attrs=['region'])
        assert attrs['region'].plan_modifiers == [ImmutableString()]
        assert attrs['region'].is_immutable
        assert not attrs['name'].is_immutable

    def test_computed_variant(self):
        """The computed variant drops requirements, defaults and validators."""
        attrs = schema_attrs_from_record(Network, set_as_computed=True)
        for attribute in attrs.values():
            assert attribute.optional and attribute.computed
            assert not attribute.required
            assert attribute.default is None
            assert not attribute.validators

    def test_nested_attributes(self):
        """Nested records keep their own attribute schemas."""
        attrs = schema_attrs_from_record(Network)
        assert attrs['rules'].nesting == 'list'
        assert set(attrs['rules'].nested) == {'name', 'port', 'enabled'}
        assert attrs['settings'].nesting == 'single'
        assert attrs['settings'].nested['mode'].validators


class TestResourceSchema:
    """Combining create, update and state records."""

    def test_create_variant_wins(self):
        """Attributes from create keep their flags; others come from update/state."""
        schema = generate_resource_schema(Network, NetworkUpdate, NetworkState,
                                          immutable_attrs=['region', 'id'])
        attrs = schema.attributes
        assert attrs['name'].required
        assert attrs['tier'].validators
        assert attrs['id'].computed and not attrs['id'].required
        assert attrs['status'].computed
        assert attrs['id'].is_immutable
        assert schema.immutable_attributes() == ['region', 'id']

    def test_immutable_metadata_on_state_record(self):
        """Immutable metadata on a state-only field guards the attribute."""
        schema = generate_resource_schema(Network, state_type=NetworkState)
        assert schema.attributes['id'].is_immutable

    def test_object_type(self):
        """The schema object type lists every attribute."""
        schema = generate_resource_schema(NetworkRef, state_type=NetworkState)
        assert set(schema.object_type().attr_types) >= {'id', 'status', 'name'}

    def test_data_source_schema(self):
        """Data-source schemas drop defaults, force-replace and guards."""
        schema = generate_data_source_schema(Network, NetworkState)
        attrs = schema.attributes
        assert attrs['size'].default is None
        assert not attrs['tier'].plan_modifiers
        assert attrs['tier'].validators
        assert not attrs['id'].plan_modifiers
