# podflow/core/models/task.py
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping


def _empty_value() -> dict[str, Any]:
    return {}


@dataclass(frozen=True)
class TaskNode:
    """One node of the workflow graph, as handed to the dispatcher.

    Owned by the scheduler; the dispatcher only reads it.

    Fields:
        index: position within the execution context (0 is the root)
        label: node name; None for untagged nodes
        value: resolved node configuration
        depends_on: names of upstream nodes
    """

    index: int
    label: str | None
    value: Mapping[str, Any] = field(default_factory=_empty_value)
    depends_on: tuple[str, ...] = ()

    @property
    def display_name(self) -> str:
        return self.label if self.label else f'<node {self.index}>'
