"""Interfaces a persisted domain object type exposes to collections."""

from typing import Any, Dict, List, Optional, Protocol, runtime_checkable

from cough.db.base import BaseAdapter


@runtime_checkable
class PersistedObject(Protocol):
    """Instance side of a domain object.

    ``key()`` is only meaningful when ``has_key()`` is True; composite keys
    are flattened to one string (parts joined with ``,``).
    """

    def has_key(self) -> bool: ...

    def key(self) -> str: ...

    def save(self) -> bool: ...


@runtime_checkable
class ObjectDescriptor(Protocol):
    """Type side of a domain object, usually implemented as classmethods.

    Collections never look behaviour up by name: they are given the element
    type and call these methods on it.
    """

    @classmethod
    def table_name(cls) -> str: ...

    @classmethod
    def primary_key_field_names(cls) -> List[str]: ...

    @classmethod
    def default_load_sql(cls) -> str: ...

    @classmethod
    def database_name(cls) -> Optional[str]: ...

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> PersistedObject: ...

    @classmethod
    def get_db(cls) -> BaseAdapter: ...
