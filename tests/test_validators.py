"""Tests for configuration validators and static defaults."""
import logging

import pytest

from attrstate import (
    BOOL,
    FLOAT64,
    INT64,
    STRING,
    DefaultValue,
    ListChoicesValidator,
    ListType,
    ObjectType,
    ResourceSchema,
    SetChoicesValidator,
    SetType,
    StringChoicesValidator,
    Validator,
    apply_defaults,
    bool_value,
    float64_value,
    int64_value,
    list_value,
    null_value,
    object_value,
    parse_default,
    schema_attrs_from_record,
    set_value,
    string_value,
    unknown_value,
    validate_config,
)
from attrstate.attr_values import null_filled_object
from attrstate.diagnostics import Diagnostics
from attrstate.validators import choices_validator_for

from sample_records import Network


@pytest.fixture
def schema():
    return ResourceSchema(attributes=schema_attrs_from_record(Network))


def config(schema, **values):
    return null_filled_object(schema.object_type(), values)


def settings_value(schema, mode):
    settings_type = schema.attr_types()['settings']
    return object_value(settings_type.attr_types, {
        'mode': string_value(mode),
        'retries': null_value(INT64),
    })


class TestChoicesValidators:
    """Enumerated value checks."""

    def test_string_choice(self):
        diagnostics = Diagnostics()
        StringChoicesValidator(('gold', 'silver')).validate('tier', string_value('bronze'), diagnostics)
        [error] = diagnostics.errors()
        assert error.summary == 'Invalid Value'
        assert error.detail == 'Value must be one of: gold, silver'
        assert error.path == 'tier'

    def test_valid_and_unknown_pass(self):
        diagnostics = Diagnostics()
        validator = StringChoicesValidator(('gold',))
        validator.validate('tier', string_value('gold'), diagnostics)
        validator.validate('tier', unknown_value(STRING), diagnostics)
        validator.validate('tier', null_value(STRING), diagnostics)
        assert len(diagnostics) == 0

    def test_list_choice(self):
        """One bad element produces a single diagnostic."""
        diagnostics = Diagnostics()
        value = list_value(STRING, [string_value('a'), string_value('z'), string_value('y')])
        ListChoicesValidator(('a', 'b')).validate('zones', value, diagnostics)
        [error] = diagnostics.errors()
        assert error.summary == 'Invalid Value in List'
        assert error.detail == 'All values must be one of: a, b'

    def test_set_choice(self):
        diagnostics = Diagnostics()
        value = set_value(STRING, [string_value('z')])
        SetChoicesValidator(('a',)).validate('zones', value, diagnostics)
        assert diagnostics.errors()[0].summary == 'Invalid Value in Set'

    def test_validator_for_kind(self):
        assert choices_validator_for(STRING, ('a',)) == StringChoicesValidator(('a',))
        assert choices_validator_for(ListType(STRING), ('a',)) == ListChoicesValidator(('a',))
        assert choices_validator_for(SetType(STRING), ('a',)) == SetChoicesValidator(('a',))
        assert choices_validator_for(INT64, ('1',)) is None
        assert choices_validator_for(STRING, ()) is None

    def test_incomplete_validator_cannot_be_created(self):
        """Subclasses must implement description and validate."""
        class Unchecked(Validator):
            def description(self):
                return ''

        with pytest.raises(TypeError):
            Unchecked()


class TestValidateConfig:
    """Whole-configuration validation."""

    def test_missing_required(self, schema):
        diagnostics = validate_config(config(schema, tier=string_value('gold')), schema)
        [error] = diagnostics.errors()
        assert error.summary == 'Missing Required Attribute'
        assert error.detail == "The attribute 'name' is required, but no definition was found."

    def test_unknown_required_is_fine(self, schema):
        """A required value that is not yet known is not missing."""
        diagnostics = validate_config(config(schema, name=unknown_value(STRING)), schema)
        assert not diagnostics.has_error()

    def test_invalid_choice(self, schema):
        diagnostics = validate_config(config(schema, name=string_value('web'),
                                             tier=string_value('bronze')), schema)
        assert [d.path for d in diagnostics.errors()] == ['tier']

    def test_nested_choice(self, schema):
        """Validators of nested records report the nested path."""
        diagnostics = validate_config(config(schema, name=string_value('web'),
                                             settings=settings_value(schema, 'medium')), schema)
        assert [d.path for d in diagnostics.errors()] == ['settings.mode']

    def test_valid_config(self, schema):
        diagnostics = validate_config(config(schema, name=string_value('web'), tier=string_value('gold'),
                                             settings=settings_value(schema, 'fast')), schema)
        assert len(diagnostics) == 0


class TestParseDefault:
    """Default literals."""

    @pytest.mark.parametrize('attr_type, literal, expected', [
        (STRING, 'x', string_value('x')),
        (INT64, '10', int64_value(10)),
        (FLOAT64, '1.5', float64_value(1.5)),
        (BOOL, 'T', bool_value(True)),
        (BOOL, '0', bool_value(False)),
        (ListType(INT64), '1,,2', list_value(INT64, [int64_value(1), int64_value(2)])),
        (ListType(STRING), 'a,,b', list_value(STRING, [string_value('a'), string_value(''),
                                                        string_value('b')])),
        (SetType(STRING), 'a,a,b', set_value(STRING, [string_value('a'), string_value('b')])),
    ])
    def test_literals(self, attr_type, literal, expected):
        assert parse_default(attr_type, literal) == expected

    def test_no_literal(self):
        assert parse_default(STRING, None) is None

    def test_invalid_literal_ignored(self, caplog):
        """A literal that does not parse is dropped with a warning."""
        with caplog.at_level(logging.WARNING, logger='attrstate.validators'):
            assert parse_default(BOOL, 'yes') is None
            assert parse_default(INT64, 'ten') is None
        assert 'Ignoring default' in caplog.text

    def test_unsupported_kind_ignored(self):
        assert parse_default(ObjectType({'a': STRING}), 'x') is None

    def test_description(self):
        assert DefaultValue(int64_value(10)).description() == 'Defaults to 10'


class TestApplyDefaults:

    def test_null_replaced_by_default(self, schema):
        result = apply_defaults(config(schema, name=string_value('web')), schema)
        assert result.attributes()['size'] == int64_value(10)
        assert result.attributes()['name'] == string_value('web')

    def test_set_values_kept(self, schema):
        result = apply_defaults(config(schema, size=int64_value(3)), schema)
        assert result.attributes()['size'] == int64_value(3)

    def test_unknown_left_alone(self, schema):
        result = apply_defaults(config(schema, size=unknown_value(INT64)), schema)
        assert result.attributes()['size'].is_unknown()
