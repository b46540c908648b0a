"""Lazy traversal helpers over collections."""

from typing import TYPE_CHECKING, Any, Callable, Iterator, List, Optional, Tuple, Union

if TYPE_CHECKING:
    from cough.collection import Collection

Accessor = Union[str, Callable[[Any], Any]]


def resolve_accessor(element: Any, accessor: Accessor) -> Any:
    """Read a value from ``element`` through a method name, attribute name or callable."""
    if callable(accessor):
        return accessor(element)
    value = getattr(element, accessor)
    return value() if callable(value) else value


class CollectionIterator:
    """Iterates a collection's elements in key order, with random seeking.

    The key order is captured when the iterator is created.
    """

    def __init__(self, collection: "Collection") -> None:
        self._collection = collection
        self._keys: List[str] = list(collection.keys())
        self._position = 0

    def __iter__(self) -> "CollectionIterator":
        return self

    def __next__(self) -> Any:
        if not self.valid():
            raise StopIteration
        element = self.current()
        self._position += 1
        return element

    def valid(self) -> bool:
        return self._position < len(self._keys)

    def seek(self, position: int) -> None:
        """Move to an absolute position.

        Raises:
            IndexError: If ``position`` is outside the collection.
        """
        if position < 0 or position >= len(self._keys):
            raise IndexError(f"Seek position {position} is out of range")
        self._position = position

    def key(self) -> Optional[str]:
        if not self.valid():
            return None
        return self._keys[self._position]

    def current(self) -> Any:
        if not self.valid():
            return None
        return self._collection.get(self._keys[self._position])

    def rewind(self) -> None:
        self._position = 0


class KeyValueIterator:
    """Yields ``(key, value)`` pairs projected from each element.

    Handy for building option lists, e.g.
    ``dict(collection.get_key_value_iterator('name'))``.
    """

    def __init__(self, collection: "Collection", value: Accessor, key: Accessor = 'key') -> None:
        self._collection = collection
        self._value = value
        self._key = key

    def __iter__(self) -> Iterator[Tuple[Any, Any]]:
        for element in CollectionIterator(self._collection):
            yield resolve_accessor(element, self._key), resolve_accessor(element, self._value)
