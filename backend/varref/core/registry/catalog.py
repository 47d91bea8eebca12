"""Variable catalog clients.

The catalog service owns the list of variables. This module fetches it,
unwraps the different envelope shapes the service has used over time and
normalizes every entry into a VariableRecord.
"""

import logging
from abc import ABC, abstractmethod
from typing import Any, Iterable, Optional

import httpx
from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from varref.core.identifiers.grammar import parse_identifier
from varref.models.variables import VariableRecord, VariableType

logger = logging.getLogger(__name__)


class CatalogFetchError(Exception):
    """Raised when the catalog cannot be fetched or decoded."""

    def __init__(self, endpoint: str, cause: Optional[BaseException] = None):
        self.endpoint = endpoint
        self.cause = cause
        message = f"Failed to fetch variable catalog from {endpoint}"
        if cause is not None:
            message = f"{message}: {cause}"
        super().__init__(message)


# =============================================================================
# Response normalization
# =============================================================================


def unwrap_catalog_response(payload: Any) -> list[dict]:
    """Extract the entry list from a catalog response body.

    Accepts a bare list, `{"data": [...]}` or `{"data": {"data": [...]}}`.
    Anything else yields an empty list.
    """
    if isinstance(payload, list):
        return [e for e in payload if isinstance(e, dict)]
    if isinstance(payload, dict):
        data = payload.get("data")
        if isinstance(data, list):
            return [e for e in data if isinstance(e, dict)]
        if isinstance(data, dict) and isinstance(data.get("data"), list):
            return [e for e in data["data"] if isinstance(e, dict)]
    return []


def normalize_catalog_entry(entry: dict) -> Optional[VariableRecord]:
    """Convert one raw catalog entry into a VariableRecord.

    The catalog identifier string is authoritative for id and field when it
    is a full system identifier. Otherwise the id comes from the owning
    source and the field from the entry itself.

    Returns:
        The record, or None when no id or field can be determined
    """
    source = entry.get("source") if isinstance(entry.get("source"), dict) else {}
    name = str(entry.get("name") or "")
    identifier = str(entry.get("identifier") or "")

    record_id: Optional[str] = None
    field: Optional[str] = None
    source_name: Optional[str] = None

    parsed = parse_identifier(identifier) if identifier else None
    if parsed is not None and parsed.is_system and parsed.field:
        record_id, field = parsed.id, parsed.field
    elif parsed is not None and parsed.is_display:
        source_name, field = parsed.source, parsed.field

    record_id = record_id or source.get("id") or entry.get("sourceId") or entry.get("id")
    field = field or entry.get("field") or name
    source_name = (
        source.get("name")
        or entry.get("sourceName")
        or entry.get("source_name")
        or source_name
        or name
    )

    if not record_id or not field:
        logger.debug("Skipping catalog entry without id/field: %s", entry)
        return None

    value = entry.get("value")
    return VariableRecord(
        id=str(record_id),
        source_name=str(source_name or ""),
        field=str(field),
        type=VariableType.parse(entry.get("type")),
        value="" if value is None else str(value),
        name=name,
        identifier=identifier,
        source_id=str(source["id"]) if source.get("id") else None,
    )


def normalize_catalog(entries: Iterable[dict]) -> list[VariableRecord]:
    """Normalize entries, keeping the first record per (id, field)."""
    records: list[VariableRecord] = []
    seen: set[tuple[str, str]] = set()
    for entry in entries:
        record = normalize_catalog_entry(entry)
        if record is None or record.key in seen:
            continue
        seen.add(record.key)
        records.append(record)
    return records


# =============================================================================
# Catalog clients
# =============================================================================


class VariableCatalog(ABC):
    """Source of raw catalog entries."""

    @abstractmethod
    async def fetch_entries(self) -> list[dict]:
        """Fetch raw catalog entries.

        Raises:
            CatalogFetchError: If the catalog cannot be retrieved
        """

    async def close(self) -> None:
        """Release any held resources."""


class StaticVariableCatalog(VariableCatalog):
    """In-memory catalog, used for embedding and tests."""

    def __init__(self, entries: Optional[list[dict]] = None):
        self.entries = list(entries or [])
        self.fetch_count = 0

    async def fetch_entries(self) -> list[dict]:
        self.fetch_count += 1
        return list(self.entries)


class HttpVariableCatalog(VariableCatalog):
    """Catalog served over HTTP as `GET {base_url}{path}`."""

    def __init__(
        self,
        base_url: str,
        path: str = "/variables",
        timeout: float = 10.0,
        max_retries: int = 3,
        retry_wait_min: float = 0.5,
        retry_wait_max: float = 5.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.endpoint = base_url.rstrip("/") + "/" + path.lstrip("/")
        self.timeout = timeout
        self.max_retries = max(1, max_retries)
        self.retry_wait_min = retry_wait_min
        self.retry_wait_max = retry_wait_max
        self._client = client
        self._owns_client = client is None

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout)
        return self._client

    async def _get_once(self) -> Any:
        response = await self.client.get(self.endpoint)
        response.raise_for_status()
        return response.json()

    async def fetch_entries(self) -> list[dict]:
        """Fetch and unwrap the catalog, retrying transport and HTTP errors.

        Raises:
            CatalogFetchError: After the last attempt fails, or when the body
                is not valid JSON
        """
        try:
            async for attempt in AsyncRetrying(
                stop=stop_after_attempt(self.max_retries),
                wait=wait_exponential(
                    multiplier=1, min=self.retry_wait_min, max=self.retry_wait_max
                ),
                retry=retry_if_exception_type(httpx.HTTPError),
                reraise=True,
            ):
                with attempt:
                    if attempt.retry_state.attempt_number > 1:
                        logger.info(
                            "Retrying catalog fetch (attempt %d/%d)",
                            attempt.retry_state.attempt_number,
                            self.max_retries,
                        )
                    payload = await self._get_once()
        except (httpx.HTTPError, ValueError) as e:
            raise CatalogFetchError(self.endpoint, e) from e

        entries = unwrap_catalog_response(payload)
        logger.debug("Fetched %d catalog entries from %s", len(entries), self.endpoint)
        return entries

    async def close(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None
