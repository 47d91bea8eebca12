"""In-memory variable registry.

The registry caches the normalized variable catalog and answers lookups by
id, by (source, field), by short id and by system-id triple. Lookups are
synchronous and read the current snapshot; `load()` is the only coroutine.

The cache has no TTL. It is filled on the first `load()`, dropped by
`clear_cache()` and refilled on the next `load()`. Every refill builds a
complete RegistrySnapshot before swapping it in with a single assignment.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Iterable, Optional

from varref.core.registry.catalog import (
    CatalogFetchError,
    VariableCatalog,
    normalize_catalog,
)
from varref.models.variables import VariableRecord, VariableType
from varref.utils.text import normalize_key

logger = logging.getLogger(__name__)

EXACT = "exact"
CASEFOLD = "casefold"
NORMALIZED = "normalized"


def _fold(text: str) -> str:
    return (text or "").strip().casefold()


@dataclass(frozen=True)
class RegistrySnapshot:
    """Immutable view of the cached records and their lookup indexes."""

    records: tuple[VariableRecord, ...] = ()
    by_key: dict = field(default_factory=dict)
    by_id: dict = field(default_factory=dict)
    by_source_field: dict = field(default_factory=dict)

    @classmethod
    def build(cls, records: Iterable[VariableRecord]) -> "RegistrySnapshot":
        records = tuple(records)
        by_key: dict[tuple[str, str], VariableRecord] = {}
        by_id: dict[str, VariableRecord] = {}
        by_source_field: dict[str, dict[tuple[str, str], list[VariableRecord]]] = {
            EXACT: {},
            CASEFOLD: {},
            NORMALIZED: {},
        }

        for record in records:
            by_key.setdefault(record.key, record)
            by_id.setdefault(record.id, record)
            keys = {
                EXACT: (record.source_name, record.field),
                CASEFOLD: (_fold(record.source_name), _fold(record.field)),
                NORMALIZED: (normalize_key(record.source_name), normalize_key(record.field)),
            }
            for mode, key in keys.items():
                by_source_field[mode].setdefault(key, []).append(record)

        return cls(
            records=records,
            by_key=by_key,
            by_id=by_id,
            by_source_field=by_source_field,
        )


EMPTY_SNAPSHOT = RegistrySnapshot.build(())


def merge_records(
    primary: Iterable[VariableRecord],
    secondary: Iterable[VariableRecord],
) -> list[VariableRecord]:
    """Concatenate two record lists, dropping duplicate (id, field) keys.

    Records from `primary` win over records from `secondary`.
    """
    merged: list[VariableRecord] = []
    seen: set[tuple[str, str]] = set()
    for record in list(primary) + list(secondary):
        if record.key in seen:
            continue
        seen.add(record.key)
        merged.append(record)
    return merged


class VariableRegistry:
    """Invalidatable cache of the variable catalog.

    Construct one per application and share it. Concurrent `load()` calls
    share one in-flight fetch.
    """

    def __init__(self, catalog: VariableCatalog, short_id_length: int = 4):
        self.catalog = catalog
        self.short_id_length = short_id_length
        self.last_error: Optional[CatalogFetchError] = None

        self._snapshot: RegistrySnapshot = EMPTY_SNAPSHOT
        self._fetched: tuple[VariableRecord, ...] = ()
        self._local: tuple[VariableRecord, ...] = ()
        self._stale: Optional[RegistrySnapshot] = None
        self._loaded = False
        self._generation = 0
        self._inflight: Optional[asyncio.Task] = None

    # =========================================================================
    # Cache lifecycle
    # =========================================================================

    @property
    def is_loaded(self) -> bool:
        return self._loaded

    @property
    def records(self) -> list[VariableRecord]:
        return list(self._snapshot.records)

    async def load(self) -> list[VariableRecord]:
        """Return the cached records, fetching the catalog if needed.

        Never raises on fetch failure. The last known records (or only the
        locally registered ones) are returned and the error is logged and
        kept in `last_error`.
        """
        if self._loaded:
            return list(self._snapshot.records)

        if self._inflight is None:
            self._inflight = asyncio.ensure_future(self._refresh(self._generation))
        return await asyncio.shield(self._inflight)

    async def _refresh(self, generation: int) -> list[VariableRecord]:
        try:
            entries = await self.catalog.fetch_entries()
            fetched = normalize_catalog(entries)
        except Exception as e:
            error = e if isinstance(e, CatalogFetchError) else CatalogFetchError("catalog", e)
            return self._fall_back(generation, error)
        finally:
            if generation == self._generation:
                self._inflight = None

        snapshot = RegistrySnapshot.build(merge_records(fetched, self._local))
        if generation != self._generation:
            # Cache was cleared while this fetch was running
            logger.debug("Discarding catalog fetch from generation %d", generation)
            return list(snapshot.records)

        self._fetched = tuple(fetched)
        self._snapshot = snapshot
        self._stale = None
        self._loaded = True
        self.last_error = None
        logger.info(
            "Loaded %d variables (%d fetched, %d local)",
            len(snapshot.records),
            len(fetched),
            len(self._local),
        )
        return list(snapshot.records)

    def _fall_back(self, generation: int, error: CatalogFetchError) -> list[VariableRecord]:
        self.last_error = error
        fallback = self._stale or self._snapshot
        logger.warning(
            "Variable catalog unavailable, using %d cached variables: %s",
            len(fallback.records),
            error,
        )
        if generation == self._generation:
            self._snapshot = fallback
        return list(fallback.records)

    def clear_cache(self) -> None:
        """Drop fetched records so the next `load()` refetches.

        The dropped snapshot is kept only as a fallback for a failed refetch.
        Locally registered records survive.
        """
        if self._fetched:
            self._stale = self._snapshot
        self._generation += 1
        self._inflight = None
        self._loaded = False
        self._fetched = ()
        self._snapshot = RegistrySnapshot.build(self._local)
        logger.debug("Variable cache cleared (generation %d)", self._generation)

    def register(self, records: Iterable[VariableRecord]) -> int:
        """Merge locally supplied records into the registry.

        Fetched records win over local ones with the same (id, field).

        Returns:
            Number of new local records
        """
        before = len(self._local)
        self._local = tuple(merge_records(self._local, records))
        self._snapshot = RegistrySnapshot.build(merge_records(self._fetched, self._local))
        return len(self._local) - before

    def stats(self) -> dict:
        return {
            "total": len(self._snapshot.records),
            "fetched": len(self._fetched),
            "local": len(self._local),
            "loaded": self._loaded,
            "last_error": str(self.last_error) if self.last_error else None,
        }

    # =========================================================================
    # Lookups
    # =========================================================================

    def find_by_id(self, record_id: str) -> Optional[VariableRecord]:
        """First record with this id, in catalog order."""
        if not record_id:
            return None
        return self._snapshot.by_id.get(record_id)

    def records_by_source_field(
        self,
        source: str,
        field_name: str,
        mode: str = EXACT,
    ) -> list[VariableRecord]:
        """All records with this (source, field) under the given match mode."""
        if not source or not field_name:
            return []
        if mode == EXACT:
            key = (source, field_name)
        elif mode == CASEFOLD:
            key = (_fold(source), _fold(field_name))
        elif mode == NORMALIZED:
            key = (normalize_key(source), normalize_key(field_name))
        else:
            raise ValueError(f"Unknown match mode: {mode}")
        return list(self._snapshot.by_source_field[mode].get(key, ()))

    def find_by_source_field(self, source: str, field_name: str) -> Optional[VariableRecord]:
        """Find a record by source name and field.

        Tries an exact match, then a case-insensitive one, then a fuzzy
        match on NFKC-normalized, whitespace-collapsed keys.
        """
        for mode in (EXACT, CASEFOLD, NORMALIZED):
            matches = self.records_by_source_field(source, field_name, mode)
            if matches:
                if mode != EXACT:
                    logger.debug(
                        "Matched %s.%s by %s comparison", source, field_name, mode
                    )
                return matches[0]
        return None

    def find_by_short_id(
        self,
        short_id: str,
        field_name: Optional[str] = None,
    ) -> Optional[VariableRecord]:
        """Find a record whose id starts with short_id (case-insensitive).

        When several ids share the prefix, the first record in catalog order
        wins and the collision is logged.
        """
        if not short_id:
            return None
        prefix = short_id.casefold()
        matches = [
            r
            for r in self._snapshot.records
            if r.id.casefold().startswith(prefix)
            and (field_name is None or r.field == field_name)
        ]
        if not matches:
            return None
        distinct_ids = {r.id for r in matches}
        if len(distinct_ids) > 1:
            logger.warning(
                "Short id '%s' is ambiguous (%d ids: %s), using %s",
                short_id,
                len(distinct_ids),
                ", ".join(sorted(distinct_ids)),
                matches[0].id,
            )
        return matches[0]

    def find_by_system_id(
        self,
        record_id: str,
        field_name: Optional[str],
        type: Optional[VariableType] = None,
    ) -> Optional[VariableRecord]:
        """Find a record by (id, field), falling back to a case-insensitive field.

        A field-less lookup returns the first record with the id. When a
        type is given the record must also have it.
        """
        if not record_id:
            return None
        if not field_name:
            record = self.find_by_id(record_id)
        else:
            record = self._snapshot.by_key.get((record_id, field_name))
            if record is None:
                folded = field_name.casefold()
                record = next(
                    (
                        r
                        for r in self._snapshot.records
                        if r.id == record_id and r.field.casefold() == folded
                    ),
                    None,
                )
        if record is not None and type is not None and record.type != type:
            return None
        return record

    def source_id_for(self, source: str) -> Optional[str]:
        """Map a source name to the id of its first record.

        Exact names win over normalized ones.
        """
        if not source:
            return None
        normalized = normalize_key(source)
        fallback = None
        for record in self._snapshot.records:
            if record.source_name == source:
                return record.id
            if fallback is None and normalize_key(record.source_name) == normalized:
                fallback = record.id
        return fallback
