# podflow/core/execution/readiness.py
"""
Blocking readiness wait driven by a list-then-watch event stream.

Flow:
  1. wait_for_ready() opens one WatchSession for the handle
  2. The session pumps events from its EventSource on a dedicated thread
  3. MODIFIED events are decoded and checked against the ReadinessCondition
  4. The first terminal outcome (ready, decode error, fault, timeout,
     cancellation) resolves the session exactly once and stops the stream
  5. The caller, blocked on the session's completion event, gets the result

ADDED events from the first listing and all DELETED events are never
inspected: an object that is already ready when the watch starts is not
detected until it is updated again. When a stream ends and is re-listed,
an ADDED event for an object seen in an earlier stream counts as an
update, so a change made between two streams is not lost.
"""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Generic, Iterator, Mapping, Protocol, TypeVar

from pydantic import BaseModel, ValidationError

from podflow.core.defaults import DEFAULT_RESYNC_INTERVAL_MS, READY_PHASE
from podflow.core.errors import (
    ErrorCode,
    ReadinessDecodeError,
    ReadinessError,
    ReadinessFault,
    WatchCancelledError,
    WatchTimeoutError,
)
from podflow.core.logging import get_logger
from podflow.core.models.resources import PodObject, ResourceHandle
from podflow.core.types.result import Err, Ok, Result
from podflow.core.types.status import WatchState

logger = get_logger('readiness')

M = TypeVar('M', bound=BaseModel)

type ReadinessResult = Result[BaseModel, ReadinessError]

UPDATE_EVENT = 'MODIFIED'
ADD_EVENT = 'ADDED'
DELETE_EVENT = 'DELETED'

type ObjectKey = tuple[str | None, str]

# Poll granularity for timeout/cancellation checks while blocked.
_WAIT_POLL_S: float = 0.1
# How long to wait for the pump thread after the session resolved.
_JOIN_TIMEOUT_S: float = 2.0


@dataclass(frozen=True)
class ReadinessCondition(Generic[M]):
    """Named predicate deciding when a watched object is ready.

    `model` is the shape raw watch objects are decoded into before
    `is_ready` is evaluated.
    """

    name: str
    model: type[M]
    is_ready: Callable[[M], bool]


def _pod_is_running(pod: PodObject) -> bool:
    return pod.status.phase == READY_PHASE


POD_RUNNING: ReadinessCondition[PodObject] = ReadinessCondition(
    name='pod-running',
    model=PodObject,
    is_ready=_pod_is_running,
)


@dataclass(frozen=True)
class WatchEvent:
    """One event from a watch stream: type is ADDED, MODIFIED or DELETED."""

    type: str
    object: Any


class EventSource(Protocol):
    """List-then-watch stream over the handle's namespace and collection."""

    def stream(self, handle: ResourceHandle) -> Iterator[WatchEvent]: ...

    def stop(self) -> None: ...


class WatchSession(Generic[M]):
    """Runtime state of one readiness wait.

    The result is recorded once; later resolution attempts are ignored.
    """

    def __init__(
        self,
        handle: ResourceHandle,
        source: EventSource,
        condition: ReadinessCondition[M],
        *,
        resync_interval_s: float = DEFAULT_RESYNC_INTERVAL_MS / 1000,
        target_only: bool = False,
    ) -> None:
        self.handle = handle
        self.source = source
        self.condition = condition
        self.resync_interval_s = resync_interval_s
        self.target_only = target_only
        self.state = WatchState.STARTING
        self._lock = threading.Lock()
        self._done = threading.Event()
        self._result: Result[M, ReadinessError] | None = None
        # Objects observed in earlier streams, and in the current one
        self._known: set[ObjectKey] = set()
        self._listed: set[ObjectKey] = set()

    @property
    def done(self) -> bool:
        return self._done.is_set()

    @property
    def result(self) -> Result[M, ReadinessError] | None:
        return self._result

    def resolve(self, result: Result[M, ReadinessError]) -> bool:
        """Record the terminal result and tear the stream down.

        Returns False when the session had already resolved.
        """
        with self._lock:
            if self._result is not None:
                return False
            self._result = result
            self.state = WatchState.DONE
        self._done.set()
        try:
            self.source.stop()
        except Exception as exc:
            logger.debug(f'Ignoring error while stopping watch stream: {exc}')
        return True

    def begin_stream(self) -> None:
        """Mark a stream boundary before (re-)opening the source."""
        self._known |= self._listed
        self._listed = set()

    def _fail(self, error: ReadinessError) -> None:
        self.resolve(Err(error))

    def handle_event(self, event: WatchEvent) -> None:
        """Process one event behind a fault boundary.

        MODIFIED events are inspected. An ADDED event is inspected only when
        a re-list reports an object already seen in an earlier stream.
        """
        if self.done:
            return
        key = _object_key(event.object)
        if event.type == DELETE_EVENT:
            if key is not None:
                self._known.discard(key)
                self._listed.discard(key)
            return
        relisted = event.type == ADD_EVENT and key is not None and key in self._known
        if key is not None:
            self._listed.add(key)
        if event.type != UPDATE_EVENT and not relisted:
            return
        try:
            self._on_update(event.object)
        except Exception as exc:
            logger.exception(
                f'Unexpected error processing watch event for {self.handle.describe()}'
            )
            self._fail(
                ReadinessFault(
                    message=f'readiness watch fault: {type(exc).__name__}: {exc}',
                    code=ErrorCode.READINESS_FAULT,
                    resource=self.handle.describe(),
                )
            )

    def _on_update(self, raw: Any) -> None:
        try:
            obj = self.condition.model.model_validate(raw)
        except ValidationError as exc:
            logger.error(
                f'{self.handle.describe()}: could not decode watch event '
                f'({self.condition.model.__name__})'
            )
            self._fail(
                ReadinessDecodeError(
                    message=f'could not decode watched object as {self.condition.model.__name__}',
                    code=ErrorCode.READINESS_DECODE_FAILED,
                    resource=self.handle.describe(),
                    notes=[
                        f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}"
                        for err in exc.errors()
                    ],
                )
            )
            return

        if self.target_only and _object_name(obj) != self.handle.name:
            return

        if self.condition.is_ready(obj):
            logger.info(
                f'{self.handle.describe()}: condition {self.condition.name} met'
            )
            self.resolve(Ok(obj))

    def pump(self) -> None:
        """Consume the stream until the session resolves.

        Runs on the session thread. A stream that ends without resolving is
        re-opened after resync_interval_s; the source resumes from where it
        left off, or lists the collection again.
        """
        try:
            while not self.done:
                with self._lock:
                    if self._result is None:
                        self.state = WatchState.WATCHING
                self.begin_stream()
                for event in self.source.stream(self.handle):
                    if self.done:
                        break
                    self.handle_event(event)
                if not self.done:
                    logger.debug(
                        f'{self.handle.describe()}: watch stream ended, re-listing'
                    )
                    self._done.wait(self.resync_interval_s)
        except Exception as exc:
            if self.done:
                # Stream errors after stop() are expected teardown noise
                return
            logger.exception(f'Watch stream failed for {self.handle.describe()}')
            self._fail(
                ReadinessFault(
                    message=f'readiness watch stream failed: {type(exc).__name__}: {exc}',
                    code=ErrorCode.READINESS_FAULT,
                    resource=self.handle.describe(),
                )
            )

    def wait(
        self,
        timeout: float | None = None,
        cancel: threading.Event | None = None,
    ) -> Result[M, ReadinessError]:
        """Block until resolved, the timeout elapses, or cancel is set."""
        if timeout is None and cancel is None:
            self._done.wait()
        else:
            deadline = None if timeout is None else time.monotonic() + timeout
            while not self._done.wait(_WAIT_POLL_S):
                if cancel is not None and cancel.is_set():
                    self._fail(
                        WatchCancelledError(
                            message='readiness wait cancelled',
                            code=ErrorCode.READINESS_CANCELLED,
                            resource=self.handle.describe(),
                        )
                    )
                elif deadline is not None and time.monotonic() >= deadline:
                    self._fail(
                        WatchTimeoutError(
                            message=f'{self.handle.describe()} not ready after {timeout}s',
                            code=ErrorCode.READINESS_TIMEOUT,
                            resource=self.handle.describe(),
                            timeout_s=timeout,
                        )
                    )

        assert self._result is not None
        return self._result


def _object_name(obj: BaseModel) -> str | None:
    metadata = getattr(obj, 'metadata', None)
    return getattr(metadata, 'name', None)


def _object_key(raw: Any) -> ObjectKey | None:
    """(namespace, name) of a raw watch object, None when it has no name."""
    metadata = raw.get('metadata') if isinstance(raw, Mapping) else None
    if not isinstance(metadata, Mapping):
        return None
    name = metadata.get('name')
    if not isinstance(name, str):
        return None
    namespace = metadata.get('namespace')
    return (namespace if isinstance(namespace, str) else None, name)


class ReadinessWatcher:
    """Block the caller until a resource satisfies a readiness condition.

    Each call opens a fresh EventSource from `source_factory` and a single
    WatchSession; nothing is shared between calls. Without a timeout the
    wait only ends when the condition is met or an error resolves it.
    """

    def __init__(
        self,
        source_factory: Callable[[], EventSource],
        condition: ReadinessCondition[Any] = POD_RUNNING,
        *,
        timeout: float | None = None,
        resync_interval_ms: int = DEFAULT_RESYNC_INTERVAL_MS,
        target_only: bool = False,
    ) -> None:
        self.source_factory = source_factory
        self.condition = condition
        self.timeout = timeout
        self.resync_interval_ms = resync_interval_ms
        self.target_only = target_only

    def wait_for_ready(
        self,
        handle: ResourceHandle,
        *,
        timeout: float | None = None,
        cancel: threading.Event | None = None,
    ) -> ReadinessResult:
        effective_timeout = timeout if timeout is not None else self.timeout

        try:
            source = self.source_factory()
        except Exception as exc:
            logger.exception(f'Could not open watch stream for {handle.describe()}')
            return Err(
                ReadinessFault(
                    message=f'could not open watch stream: {type(exc).__name__}: {exc}',
                    code=ErrorCode.READINESS_FAULT,
                    resource=handle.describe(),
                )
            )

        session: WatchSession[Any] = WatchSession(
            handle,
            source,
            self.condition,
            resync_interval_s=self.resync_interval_ms / 1000,
            target_only=self.target_only,
        )
        limit = f'{effective_timeout}s' if effective_timeout is not None else 'none'
        logger.info(
            f'Waiting for {handle.describe()} ({self.condition.name}, timeout: {limit})'
        )

        thread = threading.Thread(
            target=session.pump,
            name=f'podflow-watch-{handle.name}',
            daemon=True,
        )
        thread.start()
        try:
            result = session.wait(timeout=effective_timeout, cancel=cancel)
        finally:
            if not session.done:
                # Interrupted (e.g. KeyboardInterrupt): release the stream
                session.resolve(
                    Err(
                        WatchCancelledError(
                            message='readiness wait interrupted',
                            code=ErrorCode.READINESS_CANCELLED,
                            resource=handle.describe(),
                        )
                    )
                )
            thread.join(timeout=_JOIN_TIMEOUT_S)
            if thread.is_alive():
                logger.warning(
                    f'Watch thread for {handle.describe()} did not stop within '
                    f'{_JOIN_TIMEOUT_S}s; leaving it to exit with the stream'
                )
        return result
