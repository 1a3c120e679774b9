"""Index registry: entity label to index definition.

Manifesto:
    Whatever assembles index definitions owns an ``IndexRegistry`` and passes
    it along; there is no module-level registry. Registration happens at
    startup, lookups happen everywhere afterwards. Calling ``freeze()`` once
    startup is done turns late registrations into errors.

Tags:
    registry, index-discovery, keyspine

Doc-Types:
    api-reference
"""

from __future__ import annotations

import threading
from collections.abc import Iterator, Mapping
from dataclasses import dataclass

from keyspine.core.errors import DefinitionError, IndexNotRegisteredError, RegistryFrozenError
from keyspine.core.logging import get_logger

from .compiler import FieldTypes, IndexPlan, compile_index
from .index import PrimaryIndex

logger = get_logger(__name__)


@dataclass(frozen=True, slots=True)
class RegistryEntry:
    entity: str
    index: PrimaryIndex


class IndexRegistry:
    """
    Thread-safe mapping of entity label to :class:`PrimaryIndex`.

    All access goes through one lock. Registration order is kept so code
    generation over ``all()`` is deterministic.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._entries: dict[str, RegistryEntry] = {}
        self._frozen = False

    def register(self, entity: str, index: PrimaryIndex, *, validate: bool = True) -> PrimaryIndex:
        """
        Register ``index`` for ``entity``; re-registering replaces the
        definition but keeps the original position.

        Raises:
            RegistryFrozenError: the registry is frozen
            DefinitionError: ``validate`` is on and the index is invalid
        """
        if validate:
            index.validate()
        with self._lock:
            if self._frozen:
                raise RegistryFrozenError(entity)
            replaced = entity in self._entries
            self._entries[entity] = RegistryEntry(entity, index)
        logger.debug(
            "index_registered",
            entity=entity,
            table=index.table_name,
            gsis=len(index.secondary),
            replaced=replaced,
        )
        return index

    def get(self, entity: str) -> PrimaryIndex:
        """
        Raises:
            IndexNotRegisteredError: nothing is registered for ``entity``
        """
        with self._lock:
            entry = self._entries.get(entity)
        if entry is None:
            raise IndexNotRegisteredError(entity)
        return entry.index

    def all(self) -> list[RegistryEntry]:
        """All entries in registration order."""
        with self._lock:
            return list(self._entries.values())

    def compile_all(self, field_types: Mapping[str, FieldTypes], **kwargs) -> list[IndexPlan]:
        """Compile every registered index with its entity's field type table."""
        plans = []
        for entry in self.all():
            if entry.entity not in field_types:
                raise DefinitionError(f"no field types for entity {entry.entity!r}")
            plans.append(compile_index(entry.entity, entry.index, field_types[entry.entity], **kwargs))
        return plans

    def freeze(self) -> None:
        with self._lock:
            self._frozen = True

    @property
    def frozen(self) -> bool:
        return self._frozen

    def clear(self) -> None:
        """Drop every entry and unfreeze. Intended for tests."""
        with self._lock:
            self._entries.clear()
            self._frozen = False

    def __contains__(self, entity: object) -> bool:
        with self._lock:
            return entity in self._entries

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __iter__(self) -> Iterator[str]:
        return iter([entry.entity for entry in self.all()])


__all__ = ["RegistryEntry", "IndexRegistry"]
