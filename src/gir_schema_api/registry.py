"""Name → entity registries used for deduplication and cross-reference lookup.

A :class:`TypeRegistry` is an explicit object handed to the model builder;
nothing here is global. One registry enforces a single namespace across all
type categories (aliases, constants, enumerations, bitfields, records,
classes). A second, record-only map answers "is this name a record or
class?" without scanning every type.

Registration policy:
    * First registration wins. A later entity with a colliding name is
      rejected (``register`` returns ``False``) and never overwrites.
    * Sharing one registry across several documents merges their type
      namespaces; the load order then decides which duplicate survives.

Example::

        from gir_schema_api.models import Alias, Class
        from gir_schema_api.registry import TypeRegistry

        registry = TypeRegistry()
        registry.register(Alias(name="Quark", type="guint32"))
        registry.register(Alias(name="Quark", type="gint"))   # -> False
        registry.lookup("Quark").type                          # 'guint32'
"""

from __future__ import annotations

import threading
from typing import Dict, Iterator, List, Optional

from .models import Class, Datatype, EntityKind, Record, without_namespace


class TypeRegistry:
    """Registry of named types with a first-write-wins policy.

    Writes take a lock so builds running on several threads still observe
    one winner per name; which thread wins is up to the caller's ordering.
    """

    def __init__(self) -> None:
        self._types: Dict[str, Datatype] = {}
        self._records: Dict[str, Record] = {}
        self._lock = threading.Lock()

    def register(self, entity: Datatype) -> bool:
        """Register ``entity`` under its name.

        Returns:
            True if the entity was registered, False if the name was taken.
        """
        with self._lock:
            if entity.name in self._types:
                return False
            self._types[entity.name] = entity
            return True

    def register_record(self, record: Record) -> bool:
        with self._lock:
            if record.name in self._records:
                return False
            self._records[record.name] = record
            return True

    def lookup(self, name: str) -> Optional[Datatype]:
        return self._types.get(name)

    def lookup_record(self, name: str) -> Optional[Record]:
        return self._records.get(name)

    def is_record(self, name: str) -> bool:
        return name in self._records

    def kind_of(self, name: str) -> Optional[EntityKind]:
        """Return the kind tag of the registered entity, if any."""
        entity = self._types.get(name)
        return entity.kind if entity is not None else None

    def names(self) -> List[str]:
        """Registered names in registration order."""
        return list(self._types)

    def resolve_parent(self, cls: Class) -> Optional[Record]:
        """Resolve a class's parent by name (qualifiers are ignored)."""
        if not cls.parent:
            return None
        name = cls.parent
        return self._records.get(name) or self._records.get(without_namespace(name))

    def ancestry(self, cls: Class) -> List[Record]:
        """Return the chain of known ancestors, nearest first.

        The walk stops at the first parent that is not registered and on
        cycles.
        """
        chain: List[Record] = []
        seen = {cls.name}
        current: Optional[Record] = cls
        while isinstance(current, Class):
            parent = self.resolve_parent(current)
            if parent is None or parent.name in seen:
                break
            seen.add(parent.name)
            chain.append(parent)
            current = parent
        return chain

    def clear(self) -> None:
        with self._lock:
            self._types.clear()
            self._records.clear()

    def __contains__(self, name: object) -> bool:
        return name in self._types

    def __len__(self) -> int:
        return len(self._types)

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._types))
