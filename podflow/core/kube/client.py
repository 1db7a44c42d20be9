# podflow/core/kube/client.py
"""
Kubernetes adapter for the dispatcher and readiness watcher.

  KubeResourceClient  -> apply/delete manifests through the dynamic client
  KubeEventSource     -> list-then-watch stream for one readiness session
"""

from __future__ import annotations

import json
import threading
from typing import Any, Callable, Iterator

from kubernetes import client, config, watch
from kubernetes.client.exceptions import ApiException
from kubernetes.dynamic import DynamicClient
from kubernetes.dynamic.exceptions import ConflictError, NotFoundError

from podflow.core.defaults import DEFAULT_FIELD_MANAGER
from podflow.core.execution.readiness import WatchEvent
from podflow.core.logging import get_logger
from podflow.core.models.config import ExecutorConfig
from podflow.core.models.resources import ResourceHandle

logger = get_logger('kube')

_DEFAULT_NAMESPACE = 'default'
# Server-side watch timeout; the session re-opens the stream when it ends.
_WATCH_TIMEOUT_S = 300
_HTTP_GONE = 410


def load_kube_config(cfg: ExecutorConfig) -> client.ApiClient:
    """Build an ApiClient from in-cluster credentials or a kubeconfig."""
    if cfg.in_cluster:
        config.load_incluster_config()
        return client.ApiClient()
    return config.new_client_from_config(
        config_file=cfg.kubeconfig, context=cfg.context
    )


def split_manifests(manifest_json: str) -> list[dict[str, Any]]:
    """Decode a serialized template into individual object manifests.

    Accepts one object, a list of objects, or a `kind: List` wrapper.
    """
    data = json.loads(manifest_json)
    items = data if isinstance(data, list) else [data]
    manifests: list[dict[str, Any]] = []
    for item in items:
        if not isinstance(item, dict):
            raise ValueError(f'manifest must be an object, got {type(item).__name__}')
        if item.get('kind') == 'List':
            manifests.extend(item.get('items') or [])
        else:
            manifests.append(item)
    return manifests


class KubeResourceClient:
    """Create/update and delete resources described by serialized manifests."""

    def __init__(
        self,
        api_client: client.ApiClient,
        *,
        field_manager: str = DEFAULT_FIELD_MANAGER,
        default_namespace: str = _DEFAULT_NAMESPACE,
        dynamic: DynamicClient | None = None,
    ) -> None:
        self.dynamic = dynamic if dynamic is not None else DynamicClient(api_client)
        self.field_manager = field_manager
        self.default_namespace = default_namespace

    def _locate(self, manifest: dict[str, Any]) -> tuple[Any, str, str | None]:
        """Return (api resource, object name, namespace or None)."""
        api_version = manifest.get('apiVersion')
        kind = manifest.get('kind')
        metadata = manifest.get('metadata') or {}
        name = metadata.get('name')
        if not api_version or not kind or not name:
            raise ValueError('manifest requires apiVersion, kind and metadata.name')
        resource = self.dynamic.resources.get(api_version=api_version, kind=kind)
        namespace = None
        if resource.namespaced:
            namespace = metadata.get('namespace') or self.default_namespace
        return resource, name, namespace

    def apply(self, manifest_json: str) -> list[ResourceHandle]:
        handles: list[ResourceHandle] = []
        for manifest in split_manifests(manifest_json):
            resource, name, namespace = self._locate(manifest)
            try:
                obj = self.dynamic.create(
                    resource,
                    body=manifest,
                    namespace=namespace,
                    field_manager=self.field_manager,
                )
                verb = 'created'
            except ConflictError:
                obj = self.dynamic.patch(
                    resource,
                    body=manifest,
                    name=name,
                    namespace=namespace,
                    content_type='application/merge-patch+json',
                    field_manager=self.field_manager,
                )
                verb = 'configured'

            metadata = obj.metadata
            handle = ResourceHandle(
                api_version=manifest['apiVersion'],
                kind=resource.kind,
                name=metadata.name or name,
                namespace=metadata.namespace or namespace or '',
                resource=resource.name,
            )
            logger.info(f'{handle.describe()} {verb}')
            handles.append(handle)
        return handles

    def delete(self, manifest_json: str) -> None:
        for manifest in split_manifests(manifest_json):
            resource, name, namespace = self._locate(manifest)
            try:
                self.dynamic.delete(resource, name=name, namespace=namespace)
            except NotFoundError:
                logger.info(f'{resource.kind.lower()} {namespace}/{name} already absent')
                continue
            logger.info(f'{resource.kind.lower()} {namespace}/{name} deleted')


class KubeEventSource:
    """List-then-watch over a handle's namespace and collection, unfiltered.

    One instance backs one readiness session. The first stream lists the
    collection; later streams resume from the last resourceVersion seen,
    and fall back to a fresh list only after HTTP 410. stop() ends the
    stream and unblocks a pending read.
    """

    def __init__(
        self,
        api_client: client.ApiClient,
        *,
        timeout_seconds: int = _WATCH_TIMEOUT_S,
        dynamic: DynamicClient | None = None,
        watch_factory: Callable[[], watch.Watch] = watch.Watch,
    ) -> None:
        self.dynamic = dynamic if dynamic is not None else DynamicClient(api_client)
        self.timeout_seconds = timeout_seconds
        self.watch_factory = watch_factory
        self.resource_version: str | None = None
        self._lock = threading.Lock()
        self._watcher: watch.Watch | None = None
        self._response: Any = None
        self._stopped = False

    def stream(self, handle: ResourceHandle) -> Iterator[WatchEvent]:
        with self._lock:
            if self._stopped:
                return
            watcher = self.watch_factory()
            self._watcher = watcher

        resource = self.dynamic.resources.get(
            api_version=handle.api_version, kind=handle.kind
        )

        def _open(*args: Any, **kwargs: Any) -> Any:
            response = resource.get(*args, **kwargs)
            with self._lock:
                self._response = response
                stopped = self._stopped
            if stopped:
                _shutdown(response)
            return response

        if self.resource_version is None:
            logger.debug(f'{handle.describe()}: listing {resource.name}')
        else:
            logger.debug(
                f'{handle.describe()}: resuming watch at resourceVersion {self.resource_version}'
            )
        try:
            for event in watcher.stream(
                _open,
                namespace=handle.namespace or None,
                resource_version=self.resource_version,
                serialize=False,
                timeout_seconds=self.timeout_seconds,
            ):
                raw = event['raw_object']
                self._remember_version(raw)
                yield WatchEvent(type=event['type'], object=raw)
        except ApiException as exc:
            if exc.status != _HTTP_GONE:
                raise
            # Resource version expired: the next stream lists from scratch
            self.resource_version = None
            logger.debug(f'{handle.describe()}: watch expired (410), re-listing')
        finally:
            with self._lock:
                self._response = None

    def _remember_version(self, raw: Any) -> None:
        metadata = raw.get('metadata') if isinstance(raw, dict) else None
        version = metadata.get('resourceVersion') if isinstance(metadata, dict) else None
        if isinstance(version, str) and version:
            self.resource_version = version

    def stop(self) -> None:
        with self._lock:
            self._stopped = True
            watcher, response = self._watcher, self._response
        if watcher is not None:
            watcher.stop()
        if response is not None:
            _shutdown(response)


def _shutdown(response: Any) -> None:
    """Shut the watch socket down so a read blocked on it returns."""
    try:
        response.shutdown()
    except (OSError, RuntimeError, ValueError) as exc:
        logger.debug(f'Watch response already closed: {exc}')
