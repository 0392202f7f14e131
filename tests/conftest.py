"""Pytest configuration and shared fixtures."""
import pytest

from attrstate import (
    ObjectType,
    clear_caches,
    derive_schema,
    int64_value,
    null_value,
    object_value,
    string_value,
    INT64,
    STRING,
)
from attrstate.settings import _current_settings, ConverterSettings

from sample_records import Counter, Network


@pytest.fixture(autouse=True)
def reset_caches_and_settings():
    """Start every test with empty caches and default converter settings."""
    clear_caches()
    token = _current_settings.set(ConverterSettings())

    yield

    _current_settings.reset(token)
    clear_caches()


@pytest.fixture
def counter_schema():
    """Attribute types of the Counter record."""
    return {'name': STRING, 'count': INT64}


@pytest.fixture
def counter_object(counter_schema):
    """Counter object with a null count."""
    return object_value(counter_schema, {
        'name': string_value('db1'),
        'count': null_value(INT64),
    })


@pytest.fixture
def counter_with_count(counter_schema):
    """Counter object with a known count."""
    return object_value(counter_schema, {
        'name': string_value('db1'),
        'count': int64_value(3),
    })


@pytest.fixture
def network_schema():
    """Attribute types derived from the Network record."""
    return derive_schema(Network)


@pytest.fixture
def network_object_type(network_schema):
    return ObjectType(network_schema)


@pytest.fixture
def counter_type():
    return Counter
