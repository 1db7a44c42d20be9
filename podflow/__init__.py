"""podflow - execute workflow steps against Kubernetes and the local shell"""

# Install Rust-style error handler on import
from .core.errors import install_error_handler as _install_error_handler

_install_error_handler()

from .core.app import build_dispatcher
from .core.errors import (
    ErrorCode,
    PodflowError,
    ConfigurationError,
    WorkflowValidationError,
    MultipleValidationErrors,
    TaskExecutionError,
    ConfigExtractionError,
    ResourceOperationError,
    ReadinessError,
    ReadinessDecodeError,
    ReadinessFault,
    WatchTimeoutError,
    WatchCancelledError,
    ProcessError,
)
from .core.execution.dispatcher import TaskDispatcher, ResourceOperations, DispatchResult
from .core.execution.readiness import (
    ReadinessWatcher,
    ReadinessCondition,
    WatchSession,
    WatchEvent,
    EventSource,
    POD_RUNNING,
)
from .core.execution.script_runner import ScriptRunner
from .core.models.config import ExecutorConfig
from .core.models.resources import ResourceHandle, PodObject
from .core.models.task import TaskNode
from .core.types.result import Result, Ok, Err, is_ok, is_err
from .core.types.status import NodeStatus, WatchState
from .core.workflows import (
    WorkflowDefinition,
    WorkflowRunner,
    WorkflowRunSummary,
    load_workflow,
    parse_workflow,
)

__all__ = [
    # Execution
    'TaskDispatcher',
    'ResourceOperations',
    'DispatchResult',
    'ReadinessWatcher',
    'ReadinessCondition',
    'WatchSession',
    'WatchEvent',
    'EventSource',
    'POD_RUNNING',
    'ScriptRunner',
    'build_dispatcher',
    # Models
    'ExecutorConfig',
    'ResourceHandle',
    'PodObject',
    'TaskNode',
    'NodeStatus',
    'WatchState',
    # Workflows
    'WorkflowDefinition',
    'WorkflowRunner',
    'WorkflowRunSummary',
    'load_workflow',
    'parse_workflow',
    # Results
    'Result',
    'Ok',
    'Err',
    'is_ok',
    'is_err',
    # Errors
    'ErrorCode',
    'PodflowError',
    'ConfigurationError',
    'WorkflowValidationError',
    'MultipleValidationErrors',
    'TaskExecutionError',
    'ConfigExtractionError',
    'ResourceOperationError',
    'ReadinessError',
    'ReadinessDecodeError',
    'ReadinessFault',
    'WatchTimeoutError',
    'WatchCancelledError',
    'ProcessError',
]
