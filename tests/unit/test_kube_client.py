"""Unit tests for the Kubernetes adapter, against a fake dynamic client."""

from __future__ import annotations

import json
from types import SimpleNamespace
from typing import Any, Iterator

import pytest
from kubernetes.client.exceptions import ApiException
from kubernetes.dynamic.exceptions import ConflictError, NotFoundError

from podflow.core.kube.client import KubeEventSource, KubeResourceClient, split_manifests
from podflow.core.models.resources import ResourceHandle

pytestmark = pytest.mark.unit

POD = {
    'apiVersion': 'v1',
    'kind': 'Pod',
    'metadata': {'name': 'web', 'namespace': 'apps'},
}
NAMESPACE = {
    'apiVersion': 'v1',
    'kind': 'Namespace',
    'metadata': {'name': 'apps'},
}


class _FakeResponse:
    """Stands in for the streaming HTTP response behind a watch."""

    def __init__(self) -> None:
        self.shut_down = False

    def shutdown(self) -> None:
        self.shut_down = True


class _Resources:
    def __init__(self) -> None:
        self.lookups: list[tuple[str, str]] = []
        self.list_calls: list[dict[str, Any]] = []
        self.responses: list[_FakeResponse] = []

    def _open(self, **kwargs: Any) -> _FakeResponse:
        self.list_calls.append(kwargs)
        self.responses.append(_FakeResponse())
        return self.responses[-1]

    def get(self, *, api_version: str, kind: str) -> SimpleNamespace:
        self.lookups.append((api_version, kind))
        return SimpleNamespace(
            kind=kind,
            name=f'{kind.lower()}s',
            namespaced=kind != 'Namespace',
            get=self._open,
        )


class FakeDynamic:
    """Records calls the way DynamicClient would receive them."""

    def __init__(
        self,
        *,
        create_exc: Exception | None = None,
        delete_exc: Exception | None = None,
    ) -> None:
        self.resources = _Resources()
        self.create_exc = create_exc
        self.delete_exc = delete_exc
        self.calls: list[tuple[str, dict[str, Any]]] = []

    def _instance(self, body: dict[str, Any], namespace: str | None) -> SimpleNamespace:
        return SimpleNamespace(
            metadata=SimpleNamespace(name=body['metadata']['name'], namespace=namespace)
        )

    def create(self, resource: Any, **kwargs: Any) -> SimpleNamespace:
        self.calls.append(('create', kwargs))
        if self.create_exc is not None:
            raise self.create_exc
        return self._instance(kwargs['body'], kwargs['namespace'])

    def patch(self, resource: Any, **kwargs: Any) -> SimpleNamespace:
        self.calls.append(('patch', kwargs))
        return self._instance(kwargs['body'], kwargs['namespace'])

    def delete(self, resource: Any, **kwargs: Any) -> None:
        self.calls.append(('delete', kwargs))
        if self.delete_exc is not None:
            raise self.delete_exc


class FakeWatch:
    """Opens the request through `func`, as kubernetes.watch.Watch does."""

    def __init__(
        self,
        events: list[dict[str, Any]] | None = None,
        exc: Exception | None = None,
    ) -> None:
        self.events = events or []
        self.exc = exc
        self.kwargs: dict[str, Any] = {}
        self.stopped = False

    def stream(self, func: Any, **kwargs: Any) -> Iterator[dict[str, Any]]:
        self.kwargs = kwargs
        func(watch=True, _preload_content=False, **kwargs)
        yield from self.events
        if self.exc is not None:
            raise self.exc

    def stop(self) -> None:
        self.stopped = True


def _event(kind: str, name: str, version: str, phase: str = 'Pending') -> dict[str, Any]:
    raw = {
        'metadata': {'name': name, 'namespace': 'apps', 'resourceVersion': version},
        'status': {'phase': phase},
    }
    return {'type': kind, 'object': raw, 'raw_object': raw}


def _client(dynamic: FakeDynamic) -> KubeResourceClient:
    return KubeResourceClient(None, dynamic=dynamic)  # type: ignore[arg-type]


class TestSplitManifests:
    def test_single_object(self) -> None:
        assert split_manifests(json.dumps(POD)) == [POD]

    def test_list_of_objects(self) -> None:
        assert split_manifests(json.dumps([NAMESPACE, POD])) == [NAMESPACE, POD]

    def test_kind_list_wrapper_is_expanded(self) -> None:
        wrapped = {'apiVersion': 'v1', 'kind': 'List', 'items': [NAMESPACE, POD]}
        assert split_manifests(json.dumps(wrapped)) == [NAMESPACE, POD]

    def test_non_object_item_rejected(self) -> None:
        with pytest.raises(ValueError, match='must be an object'):
            split_manifests(json.dumps([POD, 'oops']))


class TestKubeResourceClientApply:
    def test_create_returns_handle(self) -> None:
        dynamic = FakeDynamic()

        handles = _client(dynamic).apply(json.dumps(POD))

        assert handles == [
            ResourceHandle(
                api_version='v1', kind='Pod', name='web', namespace='apps', resource='pods'
            )
        ]
        verb, kwargs = dynamic.calls[0]
        assert verb == 'create'
        assert kwargs['field_manager'] == 'podflow'
        assert kwargs['namespace'] == 'apps'

    def test_conflict_falls_back_to_merge_patch(self) -> None:
        dynamic = FakeDynamic(create_exc=ConflictError(ApiException(status=409, reason='Conflict')))

        handles = _client(dynamic).apply(json.dumps(POD))

        assert [verb for verb, _ in dynamic.calls] == ['create', 'patch']
        patch_kwargs = dynamic.calls[1][1]
        assert patch_kwargs['name'] == 'web'
        assert patch_kwargs['content_type'] == 'application/merge-patch+json'
        assert handles[0].name == 'web'

    def test_namespace_defaults_for_namespaced_kinds(self) -> None:
        dynamic = FakeDynamic()
        manifest = {'apiVersion': 'v1', 'kind': 'Pod', 'metadata': {'name': 'web'}}

        handles = _client(dynamic).apply(json.dumps(manifest))

        assert handles[0].namespace == 'default'

    def test_cluster_scoped_kind_has_no_namespace(self) -> None:
        dynamic = FakeDynamic()

        handles = _client(dynamic).apply(json.dumps(NAMESPACE))

        assert dynamic.calls[0][1]['namespace'] is None
        assert handles[0].namespace == ''

    def test_handles_follow_manifest_order(self) -> None:
        handles = _client(FakeDynamic()).apply(json.dumps([NAMESPACE, POD]))

        assert [h.kind for h in handles] == ['Namespace', 'Pod']

    def test_manifest_without_name_rejected(self) -> None:
        with pytest.raises(ValueError, match='metadata.name'):
            _client(FakeDynamic()).apply(json.dumps({'apiVersion': 'v1', 'kind': 'Pod'}))

    def test_other_api_errors_propagate(self) -> None:
        dynamic = FakeDynamic(create_exc=ApiException(status=403, reason='Forbidden'))

        with pytest.raises(ApiException):
            _client(dynamic).apply(json.dumps(POD))


class TestKubeResourceClientDelete:
    def test_delete_by_name(self) -> None:
        dynamic = FakeDynamic()

        _client(dynamic).delete(json.dumps(POD))

        assert dynamic.calls == [('delete', {'name': 'web', 'namespace': 'apps'})]

    def test_missing_object_is_tolerated(self) -> None:
        dynamic = FakeDynamic(delete_exc=NotFoundError(ApiException(status=404, reason='Not Found')))

        _client(dynamic).delete(json.dumps(POD))

        assert len(dynamic.calls) == 1


class TestKubeEventSource:
    HANDLE = ResourceHandle(
        api_version='v1', kind='Pod', name='web', namespace='apps', resource='pods'
    )

    def _source(self, dynamic: FakeDynamic, *watches: FakeWatch) -> KubeEventSource:
        pending = list(watches)
        return KubeEventSource(
            None,  # type: ignore[arg-type]
            dynamic=dynamic,  # type: ignore[arg-type]
            timeout_seconds=5,
            watch_factory=lambda: pending.pop(0),  # type: ignore[arg-type, return-value]
        )

    def test_yields_raw_objects_for_the_whole_namespace(self) -> None:
        dynamic = FakeDynamic()
        event = _event('MODIFIED', 'other', '7', phase='Running')
        watcher = FakeWatch([event])

        events = list(self._source(dynamic, watcher).stream(self.HANDLE))

        assert [(e.type, e.object) for e in events] == [('MODIFIED', event['raw_object'])]
        assert watcher.kwargs['namespace'] == 'apps'
        assert watcher.kwargs['timeout_seconds'] == 5
        assert watcher.kwargs['resource_version'] is None
        assert 'name' not in dynamic.resources.list_calls[0]
        assert 'field_selector' not in dynamic.resources.list_calls[0]

    def test_next_stream_resumes_from_last_resource_version(self) -> None:
        dynamic = FakeDynamic()
        first = FakeWatch([_event('ADDED', 'web', '41'), _event('MODIFIED', 'web', '42')])
        second = FakeWatch()
        source = self._source(dynamic, first, second)

        list(source.stream(self.HANDLE))
        list(source.stream(self.HANDLE))

        assert first.kwargs['resource_version'] is None
        assert second.kwargs['resource_version'] == '42'
        assert dynamic.resources.list_calls[1]['resource_version'] == '42'

    def test_events_without_version_keep_the_last_one(self) -> None:
        error_status = {'type': 'ERROR', 'object': {}, 'raw_object': {'kind': 'Status'}}
        source = self._source(
            FakeDynamic(), FakeWatch([_event('MODIFIED', 'web', '9'), error_status])
        )

        list(source.stream(self.HANDLE))

        assert source.resource_version == '9'

    def test_expired_resource_version_ends_stream_and_relists(self) -> None:
        first = FakeWatch(
            [_event('MODIFIED', 'web', '42')],
            exc=ApiException(status=410, reason='Gone'),
        )
        second = FakeWatch()
        source = self._source(FakeDynamic(), first, second)

        assert len(list(source.stream(self.HANDLE))) == 1
        list(source.stream(self.HANDLE))

        assert second.kwargs['resource_version'] is None

    def test_other_api_errors_propagate(self) -> None:
        watcher = FakeWatch(exc=ApiException(status=500, reason='Internal'))

        with pytest.raises(ApiException):
            list(self._source(FakeDynamic(), watcher).stream(self.HANDLE))

    def test_stop_before_stream_yields_nothing(self) -> None:
        dynamic = FakeDynamic()
        source = self._source(dynamic, FakeWatch([_event('MODIFIED', 'web', '1')]))

        source.stop()

        assert list(source.stream(self.HANDLE)) == []
        assert dynamic.resources.list_calls == []

    def test_stop_shuts_down_the_open_response(self) -> None:
        dynamic = FakeDynamic()
        watcher = FakeWatch([_event('MODIFIED', 'web', '1'), _event('MODIFIED', 'web', '2')])
        source = self._source(dynamic, watcher)
        stream = source.stream(self.HANDLE)

        next(stream)
        source.stop()

        assert watcher.stopped is True
        assert dynamic.resources.responses[0].shut_down is True

    def test_stop_tolerates_an_already_released_response(self) -> None:
        class _Released(_FakeResponse):
            def shutdown(self) -> None:
                raise RuntimeError('connection already released to the pool')

        watcher = FakeWatch([_event('MODIFIED', 'web', '1')])
        source = self._source(FakeDynamic(), watcher)
        stream = source.stream(self.HANDLE)
        next(stream)
        source._response = _Released()

        source.stop()

        assert watcher.stopped is True
