from podflow.core.workflows.definition import (
    WorkflowDefinition,
    load_workflow,
    parse_workflow,
)
from podflow.core.workflows.runner import WorkflowRunner, WorkflowRunSummary

__all__ = [
    'WorkflowDefinition',
    'WorkflowRunner',
    'WorkflowRunSummary',
    'load_workflow',
    'parse_workflow',
]
