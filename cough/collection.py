"""Keyed collections of persisted objects."""

import logging
from decimal import Decimal
from enum import Enum
from typing import (
    Any,
    Dict,
    Generic,
    Iterable,
    List,
    Mapping,
    Optional,
    Sequence,
    Tuple,
    Type,
    TypeVar,
    Union,
)

from cough.db.base import BaseAdapter, ExecuteOutcome
from cough.exceptions import CollectionError, ConfigurationError
from cough.iterators import Accessor, CollectionIterator, KeyValueIterator, resolve_accessor
from cough.objects import ObjectDescriptor, PersistedObject

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=PersistedObject)
Key = Union[str, int, Sequence[Any]]


class SortOrder(str, Enum):
    """Sort direction."""
    ASC = "asc"
    DESC = "desc"


class SortType(str, Enum):
    """How sort values are compared."""
    REGULAR = "regular"
    NUMERIC = "numeric"
    STRING = "string"


def _sort_value(value: Any, sort_type: SortType) -> Tuple[bool, int, str, Any]:
    """Build a comparable sort key; None sorts before everything else.

    Values of different types never meet in a comparison: numbers rank
    before everything else, the rest group by type name.
    """
    if value is None:
        return (False, 0, '', 0)
    if sort_type is SortType.NUMERIC:
        try:
            value = float(value)
        except (TypeError, ValueError):
            value = 0.0
    elif sort_type is SortType.STRING:
        value = str(value)
    if isinstance(value, (int, float, Decimal)):
        return (True, 0, '', value)
    return (True, 1, type(value).__name__, value)


class Collection(Generic[T]):
    """Ordered, key-addressable container of persisted objects.

    Elements are indexed by their flattened key, or by a synthetic key while
    they have none. Loading and saving go through the element type, which
    implements :class:`~cough.objects.ObjectDescriptor`.

    Example:
        >>> products = Collection(Product)
        >>> products.load_by_ids([1, 2, 3])
        >>> products.sort_by_method('name')
        >>> products.save()

    Subclasses may set ``element_type`` instead of passing it in, and may
    override ``get_load_sql()`` to load with different SQL.
    """

    element_type: Optional[Type[T]] = None

    def __init__(self, element_type: Optional[Type[T]] = None, elements: Iterable[T] = ()) -> None:
        """Initialize collection.

        Args:
            element_type: Class of the collected objects (an ObjectDescriptor).
            elements: Objects to add straight away.
        """
        if element_type is not None:
            self.element_type = element_type
        self._elements: Dict[str, T] = {}
        self._removed: List[T] = []
        for element in elements:
            self.add(element)

    # Element type

    def _descriptor(self) -> ObjectDescriptor:
        if self.element_type is None:
            raise ConfigurationError(f"{type(self).__name__} has no element type to load or save with")
        return self.element_type

    def get_db(self) -> BaseAdapter:
        """Get the adapter the element type persists through."""
        return self._descriptor().get_db()

    def get_load_sql(self) -> str:
        """Base SQL used by the ``load*`` methods."""
        return self._descriptor().default_load_sql()

    # Loading

    def load(self) -> bool:
        """Load using ``get_load_sql()``."""
        return self.load_by_sql(self.get_load_sql())

    def load_by_sql(self, sql: str) -> bool:
        """Load one element per row returned by ``sql``.

        Returns:
            False if the statement failed (see the adapter's ``get_last_error()``).
        """
        db = self._select_element_database()
        return self._populate(db.execute(sql), db)

    def load_by_hash(self, field_values: Mapping[str, Any]) -> bool:
        """Load elements whose fields equal the given values.

        Args:
            field_values: Field name to value; None matches NULL.
        """
        if not field_values:
            return True
        db = self.get_db()
        sql = f"{self.get_load_sql()} WHERE {db.build_where_sql(field_values)}"
        return self.load_by_sql(sql)

    def load_by_ids(self, ids: Sequence[Any], field_name: Optional[str] = None) -> bool:
        """Load elements whose primary key (or ``field_name``) is in ``ids``.

        Raises:
            ConfigurationError: If ``field_name`` is omitted and the element
                type does not have exactly one primary key field.
        """
        descriptor = self._descriptor()
        if field_name is None:
            pk_fields = list(descriptor.primary_key_field_names())
            if len(pk_fields) != 1:
                raise ConfigurationError(
                    'Unable to load by ids without one and only one primary key or explicit field name',
                    details={'primary_key_fields': pk_fields},
                )
            field_name = pk_fields[0]

        if not ids:
            return True

        db = self.get_db()
        quoted_ids = ','.join(db.quote(value) for value in ids)
        column = f"{db.quote_identifier(descriptor.table_name())}.{db.quote_identifier(field_name)}"
        return self.load_by_sql(f"{self.get_load_sql()} WHERE {column} IN ({quoted_ids})")

    def load_by_prepared_stmt(self, sql: str, parameters: Sequence[Any], type_hints: str = '') -> bool:
        """Load elements using a prepared statement.

        Args:
            sql: Statement with ``?`` placeholders.
            parameters: Values bound positionally.
            type_hints: Optional per-parameter type characters.
        """
        db = self._select_element_database()
        return self._populate(db.execute_prepared(sql, parameters, type_hints), db)

    def _select_element_database(self) -> BaseAdapter:
        descriptor = self._descriptor()
        db = descriptor.get_db()
        database_name = descriptor.database_name()
        if database_name:
            db.select_database(database_name)
        return db

    def _populate(self, result: ExecuteOutcome, db: BaseAdapter) -> bool:
        if result is False:
            logger.warning(f"{type(self).__name__} load failed: {db.get_last_error()}")
            return False
        if result is True:
            return True

        descriptor = self._descriptor()
        loaded = 0
        for row in result:
            self.add(descriptor.from_row(row))
            loaded += 1
        logger.debug(f"{type(self).__name__} loaded {loaded} elements")
        return True

    # Saving

    def save(self) -> bool:
        """Save every element, then every removed element.

        Every element is attempted even after a failure. Elements that gain
        a key while saving are re-indexed under it. The removed list is
        emptied afterwards whatever the outcome. Nothing is rolled back.

        Returns:
            True if and only if every save returned True.
        """
        success = True
        temporary_keys: Dict[str, T] = {}

        for key, element in list(self._elements.items()):
            if not element.has_key():
                temporary_keys[key] = element
            if not element.save():
                success = False

        for key, element in temporary_keys.items():
            if element.has_key():
                del self._elements[key]
                self._elements[self._normalize_key(element.key())] = element

        for element in self._removed:
            if not element.save():
                success = False
        flushed = len(self._removed)
        self._removed = []

        logger.debug(
            f"{type(self).__name__} saved {len(self._elements)} elements and "
            f"{flushed} removed elements (success={success})"
        )
        return success

    # Membership

    @staticmethod
    def _normalize_key(key: Key) -> str:
        if isinstance(key, (list, tuple)):
            return ','.join(str(part) for part in key)
        return str(key)

    @staticmethod
    def _synthetic_key(element: Any) -> str:
        return f"~{id(element):x}"

    def add(self, element: T) -> T:
        """Add an element, keyed or not.

        Adding back a removed element cancels its pending removal.

        Returns:
            The element that was added.
        """
        self._removed = [removed for removed in self._removed if removed is not element]
        if element.has_key():
            self._elements[self._normalize_key(element.key())] = element
        else:
            self._elements[self._synthetic_key(element)] = element
        return element

    def _resolve_key(self, element_or_key: Union[T, Key]) -> Optional[str]:
        if isinstance(element_or_key, PersistedObject):
            if element_or_key.has_key():
                key = self._normalize_key(element_or_key.key())
                return key if key in self._elements else None
            for key, element in self._elements.items():
                if element is element_or_key:
                    return key
            return None
        if element_or_key is None:
            return None
        key = self._normalize_key(element_or_key)
        return key if key in self._elements else None

    def get(self, element_or_key: Union[T, Key]) -> Optional[T]:
        """Get an element by key, or find an unkeyed element by identity.

        Returns:
            The element, or None if it is not in the collection.
        """
        key = self._resolve_key(element_or_key)
        if key is None:
            return None
        return self._elements[key]

    def remove(self, element_or_key: Union[T, Key]) -> Optional[T]:
        """Take an element out of the collection until the next ``save()``.

        The element is saved (and then forgotten) by the next ``save()``.

        Returns:
            The removed element, or None if nothing matched.
        """
        key = self._resolve_key(element_or_key)
        if key is None:
            return None
        element = self._elements.pop(key)
        self._removed.append(element)
        return element

    @property
    def removed_elements(self) -> Tuple[T, ...]:
        return tuple(self._removed)

    # Positional access

    def get_position(self, n: int) -> Optional[T]:
        """Get the ``n``-th element in iteration order (0-based), or None."""
        if n < 0 or n >= len(self._elements):
            return None
        iterator = self.get_iterator()
        iterator.seek(n)
        return iterator.current()

    def get_first(self) -> Optional[T]:
        return self.get_position(0)

    def get_last(self) -> Optional[T]:
        if not self._elements:
            return None
        return self.get_position(len(self._elements) - 1)

    def is_empty(self) -> bool:
        return not self._elements

    # Sorting

    def sort_by_keys(self, ordered_keys: Iterable[Key]) -> None:
        """Reorder to exactly ``ordered_keys``.

        Elements whose keys are not listed are dropped from the collection.

        Raises:
            CollectionError: If a key is not in the collection.
        """
        keys = [self._normalize_key(key) for key in ordered_keys]
        missing = [key for key in keys if key not in self._elements]
        if missing:
            raise CollectionError(
                f"Cannot sort {type(self).__name__} by keys it does not hold: {missing}",
                details={'missing_keys': missing},
            )
        self._elements = {key: self._elements[key] for key in keys}

    def sort_by_method(self, accessor: Accessor, direction: SortOrder = SortOrder.ASC) -> None:
        """Stable sort by the value each element returns for ``accessor``.

        Example:
            ``collection.sort_by_method('get_product_name', SortOrder.DESC)``
        """
        self.sort_by_methods(accessor, direction)

    def sort_by_methods(self, *args: Any) -> None:
        """Sort by several accessors, like a multi-column ORDER BY.

        Each accessor name may be followed by a SortOrder and/or SortType
        flag, or given as an ``(accessor, *flags)`` tuple::

            collection.sort_by_methods('manufacturer', SortOrder.DESC, 'name')
            collection.sort_by_methods(('price', SortType.NUMERIC), 'name')

        Raises:
            CollectionError: With no accessors, or a flag before any accessor.
        """
        orderings: List[List[Any]] = []
        for arg in args:
            if isinstance(arg, tuple):
                accessor, *flags = arg
                orderings.append([accessor, SortOrder.ASC, SortType.REGULAR])
                for flag in flags:
                    self._apply_sort_flag(orderings[-1], flag)
            elif isinstance(arg, (SortOrder, SortType)):
                if not orderings:
                    raise CollectionError(f"Sort flag {arg!r} given before any accessor")
                self._apply_sort_flag(orderings[-1], arg)
            else:
                orderings.append([arg, SortOrder.ASC, SortType.REGULAR])

        if not orderings:
            raise CollectionError('missing parameter in sort_by_methods')

        items = list(self._elements.items())
        # Stable sorts from the least significant accessor up.
        for accessor, order, sort_type in reversed(orderings):
            values = {key: _sort_value(resolve_accessor(element, accessor), sort_type) for key, element in items}
            items.sort(key=lambda item: values[item[0]], reverse=order is SortOrder.DESC)

        self.sort_by_keys(key for key, _ in items)

    @staticmethod
    def _apply_sort_flag(ordering: List[Any], flag: Any) -> None:
        if isinstance(flag, SortOrder):
            ordering[1] = flag
        elif isinstance(flag, SortType):
            ordering[2] = flag
        else:
            raise CollectionError(f"Unknown sort flag {flag!r}")

    # Iteration

    def get_iterator(self) -> CollectionIterator:
        return CollectionIterator(self)

    def get_key_value_iterator(self, value: Accessor, key: Accessor = 'key') -> KeyValueIterator:
        """Iterate ``(key, value)`` projections of the elements."""
        return KeyValueIterator(self, value, key)

    def keys(self) -> List[str]:
        return list(self._elements.keys())

    def values(self) -> List[T]:
        return list(self._elements.values())

    def items(self) -> List[Tuple[str, T]]:
        return list(self._elements.items())

    def __iter__(self) -> CollectionIterator:
        return self.get_iterator()

    def __len__(self) -> int:
        return len(self._elements)

    def __contains__(self, element_or_key: object) -> bool:
        return self._resolve_key(element_or_key) is not None

    def __repr__(self) -> str:
        element_name = self.element_type.__name__ if self.element_type else None
        return f"<{type(self).__name__} of {element_name}: {len(self)} elements, {len(self._removed)} removed>"
