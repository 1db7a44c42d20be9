"""Shared default constants for podflow."""

# Task configuration field names and their defaults.
ACTION_FIELD: str = 'action'
TYPE_FIELD: str = 'type'
TEMPLATE_FIELD: str = 'template'
SCRIPT_FIELD: str = 'script'

DEFAULT_ACTION: str = 'apply'
DEFAULT_TYPE: str = 'k8s'
DEFAULT_SCRIPT: str = ''

ACTION_APPLY: str = 'apply'
ACTION_DELETE: str = 'delete'
TYPE_K8S: str = 'k8s'
TYPE_BASH: str = 'bash'

# Label of the workflow root node; the root itself is never executed.
DEFAULT_ROOT_LABEL: str = 'workflow'

# Pod phase that satisfies the default readiness condition.
READY_PHASE: str = 'Running'

# Delay before re-establishing a watch stream that ended without resolving.
DEFAULT_RESYNC_INTERVAL_MS: int = 1_000

# Scripts are fed to the interpreter on stdin.
DEFAULT_SHELL_COMMAND: tuple[str, ...] = ('bash', '-s')

DEFAULT_FIELD_MANAGER: str = 'podflow'
