"""Pytest configuration and fixtures for varref tests."""

import asyncio
import copy

import pytest

from varref.core.registry.cache import VariableRegistry
from varref.core.registry.catalog import StaticVariableCatalog
from varref.models.variables import VariableRecord

# Catalog as served by the variable service
CATALOG_ENTRIES = [
    {
        "id": "v1",
        "name": "name",
        "identifier": "@gv_abc123_name",
        "type": "npc",
        "source": {"id": "abc123", "name": "npc"},
        "value": "小明",
    },
    {
        "id": "v2",
        "name": "age",
        "identifier": "@gv_abc123_age",
        "type": "npc",
        "source": {"id": "abc123", "name": "npc"},
        "value": 18,
    },
    {
        "id": "v3",
        "name": "name",
        "identifier": "@gv_c0ffee99_name",
        "type": "npc",
        "source": {"id": "c0ffee99", "name": "云透"},
        "value": "云透",
    },
    {
        "id": "v4",
        "name": "status",
        "identifier": "@gv_7a5k0001_status",
        "type": "worktask",
        "source": {"id": "7a5k0001", "name": "寻找宝藏任务"},
        "value": "进行中",
    },
    {
        "id": "v5",
        "name": "value",
        "identifier": "@gv_cus70001_value",
        "type": "custom",
        "source": {"id": "cus70001", "name": "测试"},
        "value": "42",
    },
]


@pytest.fixture
def catalog_entries() -> list[dict]:
    """Fresh copy of the sample catalog."""
    return copy.deepcopy(CATALOG_ENTRIES)


@pytest.fixture
def catalog(catalog_entries) -> StaticVariableCatalog:
    return StaticVariableCatalog(catalog_entries)


@pytest.fixture
def registry(catalog) -> VariableRegistry:
    """Registry already loaded from the sample catalog."""
    registry = VariableRegistry(catalog)
    # Private loop so the loop used by async tests is left alone
    loop = asyncio.new_event_loop()
    try:
        loop.run_until_complete(registry.load())
    finally:
        loop.close()
    return registry


@pytest.fixture
def registry_factory():
    """Build a registry holding exactly the given records."""

    def build(*records: VariableRecord) -> VariableRegistry:
        registry = VariableRegistry(StaticVariableCatalog([]))
        registry.register(records)
        return registry

    return build
