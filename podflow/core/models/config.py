# podflow/core/models/config.py
from __future__ import annotations

import os
from typing import Annotated, Mapping, Optional, Self

from pydantic import BaseModel, Field, ValidationError, model_validator

from podflow.core.defaults import (
    DEFAULT_FIELD_MANAGER,
    DEFAULT_RESYNC_INTERVAL_MS,
    DEFAULT_ROOT_LABEL,
    DEFAULT_SHELL_COMMAND,
)
from podflow.core.errors import (
    ConfigurationError,
    ErrorCode,
    ValidationReport,
    raise_collected,
)

_ENV_PREFIX = 'PODFLOW_'


def _default_shell_command() -> list[str]:
    return list(DEFAULT_SHELL_COMMAND)


class ExecutorConfig(BaseModel):
    """
    Configuration for the task executor.

    The readiness wait blocks forever unless ready_timeout_s is set.
    """

    ready_timeout_s: Optional[Annotated[float, Field(gt=0)]] = Field(
        default=None,
        description='Upper bound for a readiness wait in seconds; None waits forever',
    )
    resync_interval_ms: Annotated[int, Field(ge=100, le=60_000)] = Field(
        default=DEFAULT_RESYNC_INTERVAL_MS,
        description='Delay before re-opening a watch stream that ended (100ms-60s)',
    )
    shell_command: list[str] = Field(
        default_factory=_default_shell_command,
        description='Interpreter command; the script is written to its stdin',
    )
    root_label: str = Field(default=DEFAULT_ROOT_LABEL, min_length=1)
    field_manager: str = Field(default=DEFAULT_FIELD_MANAGER, min_length=1)
    kubeconfig: Optional[str] = None
    context: Optional[str] = None
    in_cluster: bool = False
    loglevel: str = 'INFO'

    @model_validator(mode='after')
    def validate_executor(self) -> Self:
        report = ValidationReport('executor')
        if not self.shell_command or not self.shell_command[0]:
            report.add(
                ConfigurationError(
                    message='shell_command must name an executable',
                    code=ErrorCode.CONFIG_INVALID_EXECUTOR,
                    notes=[f'shell_command={self.shell_command!r}'],
                    help_text="use the default ['bash', '-s'] or another stdin-reading shell",
                )
            )
        if self.in_cluster and (self.kubeconfig or self.context):
            report.add(
                ConfigurationError(
                    message='in_cluster cannot be combined with kubeconfig/context',
                    code=ErrorCode.CONFIG_INVALID_EXECUTOR,
                    notes=[
                        f'kubeconfig={self.kubeconfig!r}',
                        f'context={self.context!r}',
                    ],
                    help_text='drop in_cluster, or drop kubeconfig and context',
                )
            )
        if self.loglevel.upper() not in ('DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'):
            report.add(
                ConfigurationError(
                    message=f"unknown loglevel '{self.loglevel}'",
                    code=ErrorCode.CONFIG_INVALID_EXECUTOR,
                    help_text='use one of DEBUG, INFO, WARNING, ERROR, CRITICAL',
                )
            )

        raise_collected(report)
        return self

    @classmethod
    def from_env(
        cls,
        environ: Mapping[str, str] | None = None,
        **overrides: object,
    ) -> ExecutorConfig:
        """Build a config from PODFLOW_* variables; explicit overrides win.

        Recognized: PODFLOW_READY_TIMEOUT_S, PODFLOW_RESYNC_INTERVAL_MS,
        PODFLOW_SHELL (space separated), PODFLOW_ROOT_LABEL,
        PODFLOW_FIELD_MANAGER, PODFLOW_KUBECONFIG, PODFLOW_CONTEXT,
        PODFLOW_IN_CLUSTER, PODFLOW_LOGLEVEL.
        """
        env = os.environ if environ is None else environ
        values: dict[str, object] = {}

        def _get(name: str) -> str | None:
            raw = env.get(_ENV_PREFIX + name)
            return raw if raw else None

        if (raw := _get('READY_TIMEOUT_S')) is not None:
            values['ready_timeout_s'] = raw
        if (raw := _get('RESYNC_INTERVAL_MS')) is not None:
            values['resync_interval_ms'] = raw
        if (raw := _get('SHELL')) is not None:
            values['shell_command'] = raw.split()
        if (raw := _get('ROOT_LABEL')) is not None:
            values['root_label'] = raw
        if (raw := _get('FIELD_MANAGER')) is not None:
            values['field_manager'] = raw
        if (raw := _get('KUBECONFIG')) is not None:
            values['kubeconfig'] = raw
        if (raw := _get('CONTEXT')) is not None:
            values['context'] = raw
        if (raw := _get('IN_CLUSTER')) is not None:
            values['in_cluster'] = raw.lower() in ('1', 'true', 'yes')
        if (raw := _get('LOGLEVEL')) is not None:
            values['loglevel'] = raw

        values.update({k: v for k, v in overrides.items() if v is not None})

        try:
            return cls.model_validate(values)
        except ValidationError as exc:
            raise ConfigurationError(
                message='invalid executor configuration',
                code=ErrorCode.CONFIG_INVALID_ENV,
                notes=[
                    f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}"
                    for err in exc.errors()
                ],
                help_text=f'check {_ENV_PREFIX}* environment variables and CLI flags',
            ) from exc
