"""Tests for deep merging of attribute trees."""
from attrstate import (
    INT64,
    STRING,
    ListType,
    MapType,
    ObjectType,
    SetType,
    int64_value,
    list_value,
    map_value,
    merge_into,
    merge_objects,
    merge_plan_into_state,
    null_value,
    object_value,
    set_value,
    string_value,
    unknown_value,
)

ITEM = {'name': STRING, 'size': INT64}
ITEM_TYPE = ObjectType(ITEM)


def item(name=None, size=None):
    return object_value(ITEM, {
        'name': string_value(name) if name is not None else null_value(STRING),
        'size': int64_value(size) if size is not None else null_value(INT64),
    })


class TestMergeInto:
    """Attribute-level merge rules."""

    def test_non_known_incoming_skipped(self):
        """Null and unknown incoming values leave the existing value alone."""
        existing = {'a': string_value('x'), 'b': string_value('y')}
        merge_into(existing, {'a': null_value(STRING), 'b': unknown_value(STRING)})
        assert existing == {'a': string_value('x'), 'b': string_value('y')}

    def test_scalar_replaced_and_added(self):
        existing = {'a': string_value('x')}
        merge_into(existing, {'a': string_value('z'), 'c': int64_value(1)})
        assert existing == {'a': string_value('z'), 'c': int64_value(1)}

    def test_incoming_not_modified(self):
        incoming = {'obj': item(name='n')}
        existing = {'obj': item(size=1)}
        merge_into(existing, incoming)
        assert incoming == {'obj': item(name='n')}

    def test_object_merged_recursively(self):
        """Known incoming attributes override; missing ones are kept."""
        existing = {'obj': item(name='old', size=1)}
        merge_into(existing, {'obj': item(name='new')})
        assert existing['obj'] == item(name='new', size=1)

    def test_object_replaces_non_known(self):
        existing = {'obj': null_value(ITEM_TYPE)}
        merge_into(existing, {'obj': item(name='new')})
        assert existing['obj'] == item(name='new')


class TestMaps:
    """Maps of objects merge by key."""

    def test_map_of_objects(self):
        """Existing keys merge, new keys are added, unknown elements skipped."""
        map_type = MapType(ITEM_TYPE)
        existing = {'m': map_value(ITEM_TYPE, {'k1': item(name='a', size=1)})}
        merge_into(existing, {'m': map_value(ITEM_TYPE, {
            'k1': item(size=2),
            'k2': item(name='b'),
            'k3': unknown_value(ITEM_TYPE),
        })})
        merged = existing['m']
        assert merged.attr_type == map_type
        assert merged.items() == {'k1': item(name='a', size=2), 'k2': item(name='b')}

    def test_map_of_scalars_replaced(self):
        existing = {'m': map_value(STRING, {'a': string_value('1')})}
        merge_into(existing, {'m': map_value(STRING, {'b': string_value('2')})})
        assert existing['m'].items() == {'b': string_value('2')}


class TestLists:
    """Lists of objects merge by index; other lists replace."""

    def test_list_of_scalars_replaced(self):
        existing = {'l': list_value(STRING, [string_value('a'), string_value('b')])}
        merge_into(existing, {'l': list_value(STRING, [string_value('c')])})
        assert existing['l'] == list_value(STRING, [string_value('c')])

    def test_list_of_objects_by_index(self):
        """Null incoming elements keep the existing element; extras are appended."""
        existing = {'l': list_value(ITEM_TYPE, [item(name='a', size=1), item(name='b', size=2)])}
        merge_into(existing, {'l': list_value(ITEM_TYPE, [
            item(size=10),
            null_value(ITEM_TYPE),
            item(name='c'),
        ])})
        assert existing['l'].elements() == [
            item(name='a', size=10),
            item(name='b', size=2),
            item(name='c'),
        ]

    def test_shorter_incoming_list_truncates(self):
        existing = {'l': list_value(ITEM_TYPE, [item(name='a'), item(name='b')])}
        merge_into(existing, {'l': list_value(ITEM_TYPE, [item(size=1)])})
        assert existing['l'].elements() == [item(name='a', size=1)]


class TestSets:

    def test_non_known_elements_dropped(self):
        """Set elements that are null or unknown do not survive the merge."""
        existing = {'s': set_value(STRING, [string_value('old')])}
        merge_into(existing, {'s': set_value(STRING, [string_value('a'), unknown_value(STRING)])})
        assert existing['s'] == set_value(STRING, [string_value('a')])
        assert existing['s'].attr_type == SetType(STRING)


class TestMergeObjects:

    def test_idempotent(self):
        """Merging an object with itself changes nothing."""
        value = item(name='a', size=1)
        assert merge_objects(value, value) == value
        once = merge_objects(item(name='a'), item(size=2))
        assert merge_objects(once, item(size=2)) == once


class TestMergePlanIntoState:
    """Overlaying the plan on a state built from an action result."""

    SCHEMA = {'name': STRING, 'size': INT64, 'tags': ListType(STRING)}

    def test_plan_fills_missing_state(self):
        """Null state attributes are filled from the plan; known ones are overridden."""
        state = object_value(self.SCHEMA, {
            'name': string_value('remote'),
            'size': null_value(INT64),
            'tags': null_value(ListType(STRING)),
        })
        plan = object_value(self.SCHEMA, {
            'name': unknown_value(STRING),
            'size': int64_value(3),
            'tags': null_value(ListType(STRING)),
        })
        result = merge_plan_into_state(plan, state, self.SCHEMA)
        assert result.attributes() == {
            'name': string_value('remote'),
            'size': int64_value(3),
            'tags': null_value(ListType(STRING)),
        }

    def test_drops_attributes_outside_schema(self):
        """Only schema attributes of the right type are kept."""
        state = object_value({'name': STRING, 'extra': STRING, 'size': STRING}, {
            'name': string_value('a'),
            'extra': string_value('x'),
            'size': string_value('wrong'),
        })
        result = merge_plan_into_state(None, state, self.SCHEMA)
        assert result.attr_type == ObjectType(self.SCHEMA)
        assert result.attributes()['name'] == string_value('a')
        assert result.attributes()['size'] == null_value(INT64)
