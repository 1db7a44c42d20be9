# podflow/core/workflows/runner.py
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable

from podflow.core.errors import TaskExecutionError
from podflow.core.logging import get_logger
from podflow.core.models.task import TaskNode
from podflow.core.types.result import Result
from podflow.core.types.status import NodeStatus
from podflow.core.workflows.definition import WorkflowDefinition

logger = get_logger('runner')

type NodeRunner = Callable[[TaskNode], Result[None, TaskExecutionError]]


def _empty_statuses() -> dict[str, NodeStatus]:
    return {}


def _empty_errors() -> dict[str, TaskExecutionError]:
    return {}


@dataclass
class WorkflowRunSummary:
    """Per-node outcome of one workflow run."""

    statuses: dict[str, NodeStatus] = field(default_factory=_empty_statuses)
    errors: dict[str, TaskExecutionError] = field(default_factory=_empty_errors)

    @property
    def succeeded(self) -> bool:
        return all(s is NodeStatus.COMPLETED for s in self.statuses.values())

    def nodes_with(self, status: NodeStatus) -> list[str]:
        return [name for name, s in self.statuses.items() if s is status]


class WorkflowRunner:
    """Walk a workflow in topological order, one node at a time.

    The node runner (normally a TaskDispatcher) is injected. A failed node
    skips everything downstream of it; unrelated branches keep running.
    Nodes run sequentially on the calling thread.
    """

    def __init__(self, node_runner: NodeRunner) -> None:
        self.node_runner = node_runner

    def run(self, workflow: WorkflowDefinition) -> WorkflowRunSummary:
        nodes = workflow.task_nodes()
        summary = WorkflowRunSummary(
            statuses={node.display_name: NodeStatus.PENDING for node in nodes}
        )

        for node in nodes:
            name = node.display_name
            blocked = [
                dep for dep in node.depends_on
                if summary.statuses.get(dep) in (NodeStatus.FAILED, NodeStatus.SKIPPED)
            ]
            if blocked:
                summary.statuses[name] = NodeStatus.SKIPPED
                logger.warning(f'{name}: skipped, upstream not completed: {blocked}')
                continue

            summary.statuses[name] = NodeStatus.RUNNING
            logger.info(f'{name}: started ({node.index}/{len(nodes)})')
            result = self.node_runner(node)
            if result.is_err():
                error = result.err_value
                summary.statuses[name] = NodeStatus.FAILED
                summary.errors[name] = error
                logger.error(f'{name}: failed: {error.message}')
            else:
                summary.statuses[name] = NodeStatus.COMPLETED
                logger.info(f'{name}: completed')

        return summary
