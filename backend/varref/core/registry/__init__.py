"""Variable catalog access and caching."""

from .cache import RegistrySnapshot, VariableRegistry, merge_records
from .catalog import (
    CatalogFetchError,
    HttpVariableCatalog,
    StaticVariableCatalog,
    VariableCatalog,
    normalize_catalog,
    normalize_catalog_entry,
    unwrap_catalog_response,
)
from .type_rules import DEFAULT_TYPE_RULES, TypeRule, infer_type

__all__ = [
    "RegistrySnapshot",
    "VariableRegistry",
    "merge_records",
    "CatalogFetchError",
    "HttpVariableCatalog",
    "StaticVariableCatalog",
    "VariableCatalog",
    "normalize_catalog",
    "normalize_catalog_entry",
    "unwrap_catalog_response",
    "DEFAULT_TYPE_RULES",
    "TypeRule",
    "infer_type",
]
