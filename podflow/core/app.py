# podflow/core/app.py
from __future__ import annotations

from kubernetes import client
from kubernetes.dynamic import DynamicClient

from podflow.core.execution.dispatcher import TaskDispatcher
from podflow.core.execution.readiness import POD_RUNNING, ReadinessWatcher
from podflow.core.execution.script_runner import ScriptRunner
from podflow.core.kube.client import (
    KubeEventSource,
    KubeResourceClient,
    load_kube_config,
)
from podflow.core.logging import get_logger
from podflow.core.models.config import ExecutorConfig

logger = get_logger('app')


def build_dispatcher(
    cfg: ExecutorConfig,
    api_client: client.ApiClient | None = None,
) -> TaskDispatcher:
    """Wire a TaskDispatcher against a live cluster.

    Each readiness wait gets its own KubeEventSource.
    """
    api = api_client if api_client is not None else load_kube_config(cfg)
    # Discovery happens once; sessions share the dynamic client but not streams
    dynamic = DynamicClient(api)
    resources = KubeResourceClient(
        api, field_manager=cfg.field_manager, dynamic=dynamic
    )
    watcher = ReadinessWatcher(
        lambda: KubeEventSource(api, dynamic=dynamic),
        POD_RUNNING,
        timeout=cfg.ready_timeout_s,
        resync_interval_ms=cfg.resync_interval_ms,
    )
    logger.debug(
        f'Dispatcher ready (shell={cfg.shell_command}, timeout={cfg.ready_timeout_s})'
    )
    return TaskDispatcher(
        resources,
        watcher,
        ScriptRunner(cfg.shell_command),
        root_label=cfg.root_label,
    )
