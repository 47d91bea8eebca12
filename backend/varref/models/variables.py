"""Variable catalog models.

A VariableRecord is the canonical, normalized form of one catalog entry.
Records are immutable: the registry replaces them wholesale on reload.
"""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class VariableType(str, Enum):
    """Owning-entity type of a variable."""

    NPC = "npc"
    TASK = "task"
    CUSTOM = "custom"
    FILE = "file"
    WORKFLOW = "workflow"
    UNKNOWN = "unknown"

    @classmethod
    def parse(cls, value: Optional[str]) -> "VariableType":
        """Map a catalog type string onto the enum.

        Unrecognized or empty values become UNKNOWN.
        """
        if not value:
            return cls.UNKNOWN
        key = str(value).strip().lower().replace("-", "_")
        key = TYPE_ALIASES.get(key, key)
        try:
            return cls(key)
        except ValueError:
            return cls.UNKNOWN


# Catalog spellings seen in older data
TYPE_ALIASES = {
    "worktask": "task",
    "work_task": "task",
    "flow": "workflow",
    "user": "custom",
}


class VariableRecord(BaseModel):
    """Canonical catalog entry."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., description="Id referenced by system identifiers")
    source_name: str = Field(..., description="Human label of the owning entity")
    field: str = Field(..., description="Property name within the source")
    type: VariableType = Field(default=VariableType.UNKNOWN)
    value: str = Field(default="", description="Current resolved value")

    # Catalog metadata carried verbatim
    name: str = ""
    identifier: str = ""
    source_id: Optional[str] = None

    @property
    def key(self) -> tuple[str, str]:
        """Cache key: a source id owns one record per field."""
        return (self.id, self.field)

    @property
    def system_identifier(self) -> str:
        return f"@gv_{self.id}_{self.field}"

    def short_id(self, length: int = 4) -> str:
        return self.id[:length]

    def display_identifier(self, short_id_length: int = 4) -> str:
        """Render `@source.field#shortId` for this record."""
        return f"@{self.source_name}.{self.field}#{self.short_id(short_id_length)}"
