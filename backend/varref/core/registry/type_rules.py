"""Heuristic variable-type inference for identifiers with no catalog record.

Rules are checked in order; the first rule whose needle occurs in the
source name wins. Callers can pass their own table to override the
defaults.
"""

from dataclasses import dataclass
from typing import Iterable, Optional

from varref.models.variables import VariableType


@dataclass(frozen=True)
class TypeRule:
    """Maps a substring of the source name to a variable type."""

    needle: str
    type: VariableType
    suffix_only: bool = False
    case_sensitive: bool = True

    def matches(self, source_name: str) -> bool:
        haystack = source_name if self.case_sensitive else source_name.lower()
        needle = self.needle if self.case_sensitive else self.needle.lower()
        if self.suffix_only:
            return haystack.endswith(needle)
        return needle in haystack


DEFAULT_TYPE_RULES: tuple[TypeRule, ...] = (
    TypeRule("工作流", VariableType.WORKFLOW),
    TypeRule("workflow", VariableType.WORKFLOW, case_sensitive=False),
    TypeRule("任务", VariableType.TASK),
    TypeRule("task", VariableType.TASK, case_sensitive=False),
    TypeRule("是谁", VariableType.TASK, suffix_only=True),
    TypeRule("NPC", VariableType.NPC),
    TypeRule("npc", VariableType.NPC),
)


def infer_type(
    source_name: Optional[str],
    rules: Iterable[TypeRule] = DEFAULT_TYPE_RULES,
    default: VariableType = VariableType.CUSTOM,
) -> VariableType:
    """Guess a variable type from its source name.

    Args:
        source_name: Source segment of a display identifier
        rules: Ordered rule table
        default: Type returned when no rule matches

    Returns:
        The inferred VariableType
    """
    if not source_name:
        return default
    for rule in rules:
        if rule.matches(source_name):
            return rule.type
    return default
