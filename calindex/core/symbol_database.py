"""In-memory symbol database over parsed objects.

Objects are indexed by (kind, id), by lowercase name, and by kind, with
secondary indices for table fields and per-object procedures.

There is no internal locking. A host that inserts from several threads must
serialize ``insert`` and ``clear`` itself; concurrent reads are safe once
loading has finished.
"""

import re
from typing import Iterator, Optional

from loguru import logger

from calindex.core.enums import ObjectKind
from calindex.core.exceptions import InvalidArgumentError
from calindex.core.models import CodeObject, Entity, Field, ObjectSummary, Procedure, TableObject

# Number of fields and procedures carried in an object summary
SUMMARY_PREFIX = 10

ObjectKey = tuple[ObjectKind, int]


def compile_name_pattern(pattern: str) -> re.Pattern:
    """Compile a ``*`` wildcard pattern into an anchored, case-insensitive regex.

    Every character other than ``*`` matches literally.
    """
    return re.compile(".*".join(re.escape(piece) for piece in pattern.split("*")), re.IGNORECASE)


def _procedures(entity: Entity) -> list[Procedure]:
    if isinstance(entity, CodeObject):
        return entity.procedures
    return []


def _check_paging(limit: Optional[int], offset: int) -> None:
    if limit is not None and limit < 0:
        raise InvalidArgumentError(f"limit must not be negative: {limit}", field="limit")
    if offset < 0:
        raise InvalidArgumentError(f"offset must not be negative: {offset}", field="offset")


class SymbolDatabase:
    """Multi-index store of parsed objects."""

    def __init__(self):
        self._objects: dict[ObjectKey, Entity] = {}
        self._by_name: dict[str, dict[ObjectKey, Entity]] = {}
        self._by_kind: dict[ObjectKind, dict[int, Entity]] = {}
        self._fields_by_table: dict[int, list[Field]] = {}
        self._procedures_by_owner: dict[ObjectKey, list[Procedure]] = {}

    def __len__(self) -> int:
        return len(self._objects)

    def __contains__(self, key: object) -> bool:
        return key in self._objects

    def __iter__(self) -> Iterator[Entity]:
        return iter(list(self._objects.values()))

    # =========================================================================
    # Mutation
    # =========================================================================

    def insert(self, entity: Entity) -> None:
        """Insert or fully replace an object.

        A replaced object keeps its original insertion position in every
        index; stale name entries of the previous version are dropped.
        """
        key = entity.key
        previous = self._objects.get(key)
        if previous is not None:
            self._drop_name(previous)
            logger.debug(f"Replacing {entity.kind.value} {entity.id} {entity.name}")

        self._objects[key] = entity
        self._by_name.setdefault(entity.name.lower(), {})[key] = entity
        self._by_kind.setdefault(entity.kind, {})[entity.id] = entity

        if isinstance(entity, TableObject):
            self._fields_by_table[entity.id] = entity.fields
        procedures = _procedures(entity)
        if procedures:
            self._procedures_by_owner[key] = procedures
        else:
            self._procedures_by_owner.pop(key, None)

    def _drop_name(self, entity: Entity) -> None:
        name_key = entity.name.lower()
        bucket = self._by_name.get(name_key)
        if bucket is None:
            return
        bucket.pop(entity.key, None)
        if not bucket:
            del self._by_name[name_key]

    def clear(self) -> None:
        self._objects.clear()
        self._by_name.clear()
        self._by_kind.clear()
        self._fields_by_table.clear()
        self._procedures_by_owner.clear()

    # =========================================================================
    # Lookup
    # =========================================================================

    def get(self, kind: ObjectKind, id_or_name: int | str) -> Optional[Entity]:
        """Look up one object by id, or by case-insensitive name within ``kind``."""
        if isinstance(id_or_name, int) and not isinstance(id_or_name, bool):
            return self._objects.get((kind, id_or_name))
        text = str(id_or_name).strip()
        if text.isdigit():
            return self._objects.get((kind, int(text)))
        for entity in self._by_name.get(text.lower(), {}).values():
            if entity.kind == kind:
                return entity
        return None

    def find_by_name(self, name: str) -> list[Entity]:
        """Every object with this name, across kinds, in insertion order."""
        bucket = self._by_name.get(name.strip().lower(), {})
        order = {key: index for index, key in enumerate(self._objects)}
        return sorted(bucket.values(), key=lambda entity: order[entity.key])

    def search(
        self,
        pattern: str,
        kind: Optional[ObjectKind] = None,
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> list[Entity]:
        """Match object names against a ``*`` wildcard pattern.

        Raises:
            InvalidArgumentError: If limit or offset is negative
        """
        _check_paging(limit, offset)
        matches = self._matches(pattern, kind)
        end = None if limit is None else offset + limit
        return matches[offset:end]

    def count(self, pattern: str, kind: Optional[ObjectKind] = None) -> int:
        return len(self._matches(pattern, kind))

    def _matches(self, pattern: str, kind: Optional[ObjectKind]) -> list[Entity]:
        regex = compile_name_pattern(pattern)
        candidates = self.by_kind(kind) if kind is not None else self._objects.values()
        return [entity for entity in candidates if regex.fullmatch(entity.name)]

    def summarize(self, kind: ObjectKind, object_id: int) -> Optional[ObjectSummary]:
        """Core fields plus the first fields and procedures of one object."""
        entity = self._objects.get((kind, object_id))
        if entity is None:
            return None
        fields = entity.fields if isinstance(entity, TableObject) else []
        procedures = _procedures(entity)
        return ObjectSummary(
            kind=entity.kind,
            id=entity.id,
            name=entity.name,
            metadata=entity.metadata,
            fields=fields[:SUMMARY_PREFIX],
            procedures=procedures[:SUMMARY_PREFIX],
            total_fields=len(fields),
            total_procedures=len(procedures),
        )

    # =========================================================================
    # Accessors
    # =========================================================================

    def fields_of(self, table_id: int) -> list[Field]:
        return self._fields_by_table.get(table_id, [])

    def procedures_of(self, kind: ObjectKind, object_id: int) -> list[Procedure]:
        return self._procedures_by_owner.get((kind, object_id), [])

    def by_kind(self, kind: ObjectKind) -> list[Entity]:
        return list(self._by_kind.get(kind, {}).values())

    def entities(self) -> list[Entity]:
        return list(self._objects.values())

    def stats(self) -> dict[str, int]:
        """Object counts per kind, for kinds that have any objects."""
        return {
            kind.value: len(self._by_kind[kind])
            for kind in ObjectKind
            if self._by_kind.get(kind)
        }
