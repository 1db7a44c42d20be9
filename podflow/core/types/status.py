# core/types/status.py
"""
Core enums used throughout podflow.
This module should not import from other podflow modules.
"""

from enum import Enum


class NodeStatus(Enum):
    """Execution status of a workflow node"""

    PENDING = 'pending'  # Not yet reached in topological order.
    RUNNING = 'running'  # Dispatcher invocation in progress.
    COMPLETED = 'completed'  # Dispatcher returned Ok.
    FAILED = 'failed'  # Dispatcher returned Err.
    SKIPPED = 'skipped'  # An upstream dependency failed or was skipped.

    @property
    def is_terminal(self) -> bool:
        """Whether this status represents a final state (no further transitions)."""
        return self in NODE_TERMINAL_STATES


NODE_TERMINAL_STATES: frozenset[NodeStatus] = frozenset({
    NodeStatus.COMPLETED,
    NodeStatus.FAILED,
    NodeStatus.SKIPPED,
})


class WatchState(Enum):
    """Lifecycle of a single readiness watch session"""

    STARTING = 'starting'  # Stream not yet established.
    WATCHING = 'watching'  # Consuming events.
    DONE = 'done'  # Result recorded; stream torn down.
