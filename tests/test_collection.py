"""Tests for Collection identity, save, removal and sorting semantics."""

from __future__ import annotations

from typing import Any, Dict, List, Optional
from unittest.mock import Mock

import pytest

from cough.collection import Collection, SortOrder, SortType
from cough.db.base import BaseAdapter
from cough.exceptions import CollectionError, ConfigurationError


class Item:
    """In-memory persisted object; ``assign_key`` is applied on save."""

    def __init__(
        self,
        key: Optional[str] = None,
        value: Any = None,
        label: str = "",
        assign_key: Optional[str] = None,
        succeeds: bool = True,
    ) -> None:
        self._key = key
        self.value = value
        self.label = label
        self.assign_key = assign_key
        self.succeeds = succeeds
        self.save_calls = 0

    def has_key(self) -> bool:
        return self._key is not None

    def key(self) -> str:
        return self._key

    def save(self) -> bool:
        self.save_calls += 1
        if self.succeeds and self._key is None and self.assign_key is not None:
            self._key = self.assign_key
        return self.succeeds

    def get_value(self) -> Any:
        return self.value


class TestMembership:
    """add/get/remove."""

    def test_add_keyed_and_unkeyed(self):
        collection = Collection()
        keyed = collection.add(Item("1"))
        unkeyed = collection.add(Item())

        assert len(collection) == 2
        assert collection.get("1") is keyed
        assert collection.get(1) is keyed
        assert collection.get(keyed) is keyed
        assert collection.get(unkeyed) is unkeyed
        assert collection.get("2") is None
        assert collection.get(Item()) is None

    def test_composite_key_is_flattened(self):
        collection = Collection()
        item = collection.add(Item("7,9"))

        assert collection.get((7, 9)) is item
        assert collection.get([7, 9]) is item

    def test_add_replaces_same_key(self):
        collection = Collection()
        collection.add(Item("1", label="old"))
        newer = collection.add(Item("1", label="new"))

        assert len(collection) == 1
        assert collection.get("1") is newer

    def test_contains(self):
        item = Item("1")
        collection = Collection(elements=[item])

        assert "1" in collection
        assert item in collection
        assert "2" not in collection

    def test_remove_moves_to_removed_list(self):
        collection = Collection()
        item = collection.add(Item("1"))

        assert collection.remove("1") is item
        assert collection.get("1") is None
        assert list(collection) == []
        assert collection.removed_elements == (item,)

    def test_remove_unkeyed_by_reference(self):
        collection = Collection()
        item = collection.add(Item())

        assert collection.remove(item) is item
        assert collection.is_empty()

    def test_add_after_remove_cancels_removal(self):
        collection = Collection()
        item = collection.add(Item("1"))
        collection.remove(item)

        collection.add(item)

        assert collection.get("1") is item
        assert collection.removed_elements == ()
        assert collection.save() is True
        assert item.save_calls == 1

    def test_remove_missing_returns_none(self):
        collection = Collection()

        assert collection.remove("nope") is None
        assert collection.remove(Item()) is None
        assert collection.removed_elements == ()


class TestSave:
    """Bulk save semantics."""

    def test_new_element_is_reindexed_under_real_key(self):
        collection = Collection()
        item = collection.add(Item(assign_key="K1"))

        assert collection.save() is True
        assert collection.get("K1") is item
        assert len(collection) == 1
        assert collection.keys() == ["K1"]

    def test_removed_element_saved_once_and_forgotten(self):
        collection = Collection()
        item = collection.add(Item("1"))
        collection.remove(item)

        assert collection.get(item) is None
        assert collection.save() is True
        assert item.save_calls == 1
        assert collection.get(item) is None
        assert list(collection) == []
        assert collection.removed_elements == ()

        collection.save()
        assert item.save_calls == 1

    def test_every_element_attempted_after_failure(self):
        failing = Item("A", succeeds=False)
        passing = Item("B")
        collection = Collection(elements=[failing, passing])

        assert collection.save() is False
        assert failing.save_calls == 1
        assert passing.save_calls == 1

    def test_removed_list_cleared_even_when_saves_fail(self):
        collection = Collection()
        item = collection.add(Item("1", succeeds=False))
        collection.remove(item)

        assert collection.save() is False
        assert collection.removed_elements == ()

    def test_failed_new_element_keeps_synthetic_key(self):
        collection = Collection()
        item = collection.add(Item(assign_key="K1", succeeds=False))

        assert collection.save() is False
        assert collection.get(item) is item
        assert collection.get("K1") is None


class TestPositions:
    """Positional accessors."""

    def test_positions(self):
        first, middle, last = Item("a"), Item("b"), Item("c")
        collection = Collection(elements=[first, middle, last])

        assert collection.get_first() is first
        assert collection.get_position(1) is middle
        assert collection.get_last() is last
        assert collection.get_position(3) is None
        assert collection.get_position(-1) is None

    def test_empty(self):
        collection = Collection()

        assert collection.is_empty()
        assert collection.get_first() is None
        assert collection.get_last() is None


class TestSorting:
    """sort_by_keys / sort_by_method / sort_by_methods."""

    @staticmethod
    def values(collection: Collection) -> List[Any]:
        return [item.value for item in collection]

    def make(self, values: List[Any]) -> Collection:
        return Collection(elements=[Item(str(i), value=value) for i, value in enumerate(values)])

    def test_sort_by_method(self):
        collection = self.make([3, 1, 2])

        collection.sort_by_method("value")
        assert self.values(collection) == [1, 2, 3]

        collection.sort_by_method("value", SortOrder.DESC)
        assert self.values(collection) == [3, 2, 1]

    def test_sort_by_method_calls_methods(self):
        collection = self.make([3, 1, 2])

        collection.sort_by_method("get_value")

        assert self.values(collection) == [1, 2, 3]

    def test_sort_by_method_is_stable(self):
        collection = Collection(elements=[
            Item("a", value=1, label="first"),
            Item("b", value=0),
            Item("c", value=1, label="second"),
        ])

        collection.sort_by_method("value", SortOrder.DESC)

        assert [item.key() for item in collection] == ["a", "c", "b"]

    def test_none_sorts_first(self):
        collection = self.make([2, None, 1])

        collection.sort_by_method("value")

        assert self.values(collection) == [None, 1, 2]

    @pytest.mark.parametrize("sort_type", [SortType.NUMERIC, SortType.STRING])
    def test_none_sorts_first_for_every_sort_type(self, sort_type):
        collection = Collection(elements=[
            Item("x", value=-5),
            Item("e", value=""),
            Item("n", value=None),
        ])

        collection.sort_by_methods(("value", sort_type))

        assert collection.keys()[0] == "n"

    def test_mixed_types_sort_numbers_first(self):
        collection = Collection(elements=[
            Item("s", value="b"),
            Item("i", value=1),
            Item("f", value=0.5),
            Item("t", value="a"),
        ])

        collection.sort_by_method("value")
        assert collection.keys() == ["f", "i", "t", "s"]

        collection.sort_by_method("value", SortOrder.DESC)
        assert collection.keys() == ["s", "t", "i", "f"]

    def test_sort_by_keys(self):
        collection = self.make(["x", "y", "z"])

        collection.sort_by_keys(["2", "0", "1"])

        assert collection.keys() == ["2", "0", "1"]

    def test_sort_by_keys_unknown_key_fails_fast(self):
        collection = self.make(["x", "y"])

        with pytest.raises(CollectionError):
            collection.sort_by_keys(["1", "99"])

        assert collection.keys() == ["0", "1"]

    def test_sort_by_methods_composite(self):
        collection = Collection(elements=[
            Item("1", value=2, label="b"),
            Item("2", value=1, label="z"),
            Item("3", value=2, label="a"),
            Item("4", value=1, label="c"),
        ])

        collection.sort_by_methods("value", SortOrder.DESC, "label")

        assert collection.keys() == ["3", "1", "4", "2"]

    def test_sort_by_methods_tuples_and_types(self):
        collection = Collection(elements=[
            Item("1", value="10", label="x"),
            Item("2", value="9", label="x"),
            Item("3", value="100", label="a"),
        ])

        collection.sort_by_methods(("label",), ("value", SortType.NUMERIC))
        assert collection.keys() == ["3", "2", "1"]

        collection.sort_by_methods(("value", SortType.STRING, SortOrder.ASC))
        assert collection.keys() == ["1", "3", "2"]

    def test_sort_by_methods_requires_accessor(self):
        collection = self.make([1])

        with pytest.raises(CollectionError):
            collection.sort_by_methods()
        with pytest.raises(CollectionError):
            collection.sort_by_methods(SortOrder.DESC, "value")


class TestLoadGuards:
    """Load paths that must not reach the database."""

    @staticmethod
    def descriptor(pk_fields: List[str]) -> Mock:
        element_type = Mock()
        element_type.primary_key_field_names.return_value = pk_fields
        element_type.get_db.return_value = Mock(spec=BaseAdapter)
        return element_type

    def test_load_by_ids_empty_runs_no_query(self):
        element_type = self.descriptor(["id"])
        collection = Collection(element_type)
        collection.add(Item("1"))

        assert collection.load_by_ids([]) is True

        db = element_type.get_db.return_value
        db.execute.assert_not_called()
        db.select_database.assert_not_called()
        assert collection.keys() == ["1"]

    def test_load_by_ids_requires_single_primary_key(self):
        collection = Collection(self.descriptor(["order_id", "line_no"]))

        with pytest.raises(ConfigurationError):
            collection.load_by_ids(["1"])

    def test_load_by_hash_empty_is_noop(self):
        element_type = self.descriptor(["id"])
        collection = Collection(element_type)

        assert collection.load_by_hash({}) is True
        element_type.get_db.return_value.execute.assert_not_called()

    def test_missing_element_type(self):
        with pytest.raises(ConfigurationError):
            Collection().load()

    def test_load_failure_returns_false(self):
        element_type = self.descriptor(["id"])
        element_type.database_name.return_value = None
        db = element_type.get_db.return_value
        db.execute.return_value = False
        db.get_last_error.return_value = "boom"

        collection = Collection(element_type)

        assert collection.load_by_sql("SELECT 1") is False
        assert collection.is_empty()


def test_subclass_declares_element_type():
    element_type = Mock()

    class Products(Collection):
        pass

    Products.element_type = element_type

    assert Products().get_db() is element_type.get_db.return_value
