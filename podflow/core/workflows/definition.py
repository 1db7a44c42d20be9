# podflow/core/workflows/definition.py
"""
Workflow files: one root mapping whose entries are task nodes.

    workflow:
      create-pod:
        type: k8s
        template: {apiVersion: v1, kind: Pod, ...}
      smoke-test:
        type: bash
        script: curl -fsS http://svc/health
        depends_on: [create-pod]

Everything except `depends_on` is passed to the dispatcher untouched.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping

import yaml

from podflow.core.defaults import DEFAULT_ROOT_LABEL
from podflow.core.errors import (
    ErrorCode,
    WorkflowValidationError,
    ValidationReport,
    raise_collected,
)
from podflow.core.models.task import TaskNode

DEPENDS_ON_FIELD = 'depends_on'


def _empty_nodes() -> dict[str, dict[str, Any]]:
    return {}


def _empty_deps() -> dict[str, tuple[str, ...]]:
    return {}


@dataclass
class WorkflowDefinition:
    """Validated workflow graph. Construct via parse_workflow/load_workflow."""

    root_label: str = DEFAULT_ROOT_LABEL
    nodes: dict[str, dict[str, Any]] = field(default_factory=_empty_nodes)
    dependencies: dict[str, tuple[str, ...]] = field(default_factory=_empty_deps)

    def root_node(self) -> TaskNode:
        return TaskNode(index=0, label=self.root_label, value={})

    def dependents(self, name: str) -> list[str]:
        """Nodes that list `name` directly in depends_on."""
        return [n for n, deps in self.dependencies.items() if name in deps]

    def task_nodes(self) -> list[TaskNode]:
        """Task nodes in topological order, indexed from 1 (0 is the root)."""
        order = _topological_order(self.nodes, self.dependencies)
        if order is None:
            raise WorkflowValidationError(
                message='cycle detected in workflow',
                code=ErrorCode.WORKFLOW_CYCLE_DETECTED,
            )
        return [
            TaskNode(
                index=i,
                label=name,
                value=self.nodes[name],
                depends_on=self.dependencies[name],
            )
            for i, name in enumerate(order, start=1)
        ]


def _topological_order(
    nodes: Mapping[str, Any],
    dependencies: Mapping[str, tuple[str, ...]],
) -> list[str] | None:
    """Kahn's algorithm, stable in definition order. None when cyclic."""
    in_degree: dict[str, int] = {
        name: len([d for d in dependencies.get(name, ()) if d in nodes])
        for name in nodes
    }
    queue = [name for name in nodes if in_degree[name] == 0]
    order: list[str] = []

    while queue:
        current = queue.pop(0)
        order.append(current)
        for name in nodes:
            if current in dependencies.get(name, ()):
                in_degree[name] -= 1
                if in_degree[name] == 0:
                    queue.append(name)

    if len(order) != len(nodes):
        return None
    return order


def parse_workflow(
    data: Any, *, root_label: str = DEFAULT_ROOT_LABEL
) -> WorkflowDefinition:
    """Validate decoded workflow data, collecting every error before raising."""
    report = ValidationReport('workflow')

    root = data.get(root_label) if isinstance(data, Mapping) else None
    if not isinstance(root, Mapping):
        raise WorkflowValidationError(
            message=f"workflow file must contain a '{root_label}' mapping",
            code=ErrorCode.WORKFLOW_INVALID_ROOT,
            notes=[f'top-level keys: {sorted(data) if isinstance(data, Mapping) else type(data).__name__}'],
            help_text=f'nest task nodes under a top-level `{root_label}:` key',
        )
    if not root:
        raise WorkflowValidationError(
            message='workflow has no task nodes',
            code=ErrorCode.WORKFLOW_NO_NODES,
        )

    nodes: dict[str, dict[str, Any]] = {}
    dependencies: dict[str, tuple[str, ...]] = {}
    for name, node in root.items():
        if not isinstance(node, Mapping):
            report.add(
                WorkflowValidationError(
                    message=f"node '{name}' must be a mapping",
                    code=ErrorCode.WORKFLOW_INVALID_NODE,
                    notes=[f'got {type(node).__name__}'],
                )
            )
            continue
        deps = node.get(DEPENDS_ON_FIELD, [])
        if isinstance(deps, str):
            deps = [deps]
        if not isinstance(deps, list) or not all(isinstance(d, str) for d in deps):
            report.add(
                WorkflowValidationError(
                    message=f"node '{name}': {DEPENDS_ON_FIELD} must be a list of node names",
                    code=ErrorCode.WORKFLOW_INVALID_NODE,
                )
            )
            deps = []
        nodes[str(name)] = {k: v for k, v in node.items() if k != DEPENDS_ON_FIELD}
        dependencies[str(name)] = tuple(deps)

    known = {str(name) for name in root}
    for name, deps in dependencies.items():
        for dep in deps:
            if dep == name:
                report.add(
                    WorkflowValidationError(
                        message=f"node '{name}' depends on itself",
                        code=ErrorCode.WORKFLOW_SELF_DEPENDENCY,
                        help_text=f"remove '{name}' from its own {DEPENDS_ON_FIELD}",
                    )
                )
            elif dep not in known:
                report.add(
                    WorkflowValidationError(
                        message='dependency references node not in workflow',
                        code=ErrorCode.WORKFLOW_INVALID_DEPENDENCY,
                        notes=[f"node '{name}' waits for unknown node '{dep}'"],
                        help_text=f'known nodes: {", ".join(map(str, root))}',
                    )
                )

    if not report.has_errors() and _topological_order(nodes, dependencies) is None:
        report.add(
            WorkflowValidationError(
                message='cycle detected in workflow',
                code=ErrorCode.WORKFLOW_CYCLE_DETECTED,
                notes=['workflows must be acyclic directed graphs (DAG)'],
                help_text='remove circular depends_on references',
            )
        )

    raise_collected(report)
    return WorkflowDefinition(
        root_label=root_label, nodes=nodes, dependencies=dependencies
    )


def load_workflow(
    path: str | Path, *, root_label: str = DEFAULT_ROOT_LABEL
) -> WorkflowDefinition:
    """Read and validate a YAML (or JSON) workflow file."""
    try:
        with Path(path).open('r', encoding='utf-8') as stream:
            data = yaml.safe_load(stream)
    except (OSError, yaml.YAMLError) as exc:
        raise WorkflowValidationError(
            message=f'cannot read workflow file {path}',
            code=ErrorCode.WORKFLOW_FILE_UNREADABLE,
            notes=[str(exc)],
        ) from exc
    return parse_workflow(data, root_label=root_label)
