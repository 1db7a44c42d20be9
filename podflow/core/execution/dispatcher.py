# podflow/core/execution/dispatcher.py
from __future__ import annotations

from typing import Protocol, Sequence

from podflow.core.defaults import (
    ACTION_APPLY,
    ACTION_FIELD,
    DEFAULT_ACTION,
    DEFAULT_ROOT_LABEL,
    DEFAULT_SCRIPT,
    DEFAULT_TYPE,
    SCRIPT_FIELD,
    TYPE_BASH,
    TYPE_FIELD,
    TYPE_K8S,
)
from podflow.core.errors import (
    ConfigExtractionError,
    ErrorCode,
    ResourceOperationError,
    TaskExecutionError,
)
from podflow.core.execution.readiness import ReadinessWatcher
from podflow.core.execution.script_runner import ScriptRunner
from podflow.core.fields import get_field, template_field
from podflow.core.logging import get_logger
from podflow.core.models.resources import ResourceHandle
from podflow.core.models.task import TaskNode
from podflow.core.types.result import Err, Ok, Result

logger = get_logger('dispatcher')

type DispatchResult = Result[None, TaskExecutionError]


class ResourceOperations(Protocol):
    """Cluster mutations the dispatcher delegates to. Failures raise."""

    def apply(self, manifest_json: str) -> Sequence[ResourceHandle]: ...

    def delete(self, manifest_json: str) -> None: ...


class TaskDispatcher:
    """Per-node runner handed to the workflow scheduler.

    Classifies a node by its `type` and `action` fields and runs it to
    completion on the calling thread:

    - type k8s, action apply: apply the template, then block until the
      first returned resource is ready (later handles are not watched)
    - type k8s, any other action: delete the template's resources
    - type bash: run `script` through the ScriptRunner

    The k8s and bash branches are checked independently, k8s first.
    """

    def __init__(
        self,
        resources: ResourceOperations,
        watcher: ReadinessWatcher,
        script_runner: ScriptRunner,
        *,
        root_label: str = DEFAULT_ROOT_LABEL,
    ) -> None:
        self.resources = resources
        self.watcher = watcher
        self.script_runner = script_runner
        self.root_label = root_label

    def __call__(self, task: TaskNode) -> DispatchResult:
        return self.dispatch(task)

    def dispatch(self, task: TaskNode) -> DispatchResult:
        if task.index == 0 or not task.label or task.label == self.root_label:
            return Ok(None)

        action = get_field(task.value, ACTION_FIELD, DEFAULT_ACTION)
        task_type = get_field(task.value, TYPE_FIELD, DEFAULT_TYPE)
        logger.debug(f'{task.display_name}: type={task_type} action={action}')

        if task_type == TYPE_K8S:
            result = self._run_resource(task, action)
            if result.is_err():
                return _tag(result, task)

        if task_type == TYPE_BASH:
            script = get_field(task.value, SCRIPT_FIELD, DEFAULT_SCRIPT)
            logger.info(f'{task.display_name}: running script')
            script_result = self.script_runner.run(script)
            if script_result.is_err():
                return _tag(script_result, task)

        return Ok(None)

    def _run_resource(self, task: TaskNode, action: str) -> DispatchResult:
        try:
            manifest_json = template_field(task.value)
        except ConfigExtractionError as exc:
            return Err(exc)

        if action == ACTION_APPLY:
            try:
                handles = list(self.resources.apply(manifest_json))
            except Exception as exc:
                logger.error(f'{task.display_name}: apply failed: {exc}')
                return Err(
                    _resource_error('apply', ErrorCode.RESOURCE_APPLY_FAILED, exc)
                )

            logger.info(f'{task.display_name}: applied {len(handles)} resource(s)')
            if not handles:
                return Ok(None)
            if len(handles) > 1:
                logger.debug(
                    f'{task.display_name}: only {handles[0].describe()} is watched for readiness'
                )

            ready = self.watcher.wait_for_ready(handles[0])
            if ready.is_err():
                return Err(ready.err_value)
            return Ok(None)

        try:
            self.resources.delete(manifest_json)
        except Exception as exc:
            logger.error(f'{task.display_name}: delete failed: {exc}')
            return Err(_resource_error('delete', ErrorCode.RESOURCE_DELETE_FAILED, exc))

        logger.info(f'{task.display_name}: deleted')
        return Ok(None)


def _resource_error(
    operation: str, code: ErrorCode, exc: Exception
) -> ResourceOperationError:
    error = ResourceOperationError(
        message=f'{operation} failed: {type(exc).__name__}: {exc}',
        code=code,
        operation=operation,
    )
    error.__cause__ = exc
    return error


def _tag(result: Err[TaskExecutionError], task: TaskNode) -> Err[TaskExecutionError]:
    if result.err_value.task_name is None:
        result.err_value.task_name = task.display_name
    return result
