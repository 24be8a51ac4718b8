"""Simulated live streaming of soil readings.

The simulator is a small state machine driven on the running asyncio loop::

    idle -> streaming -> (paused <-> streaming) -> finished | idle

``start`` first tries a live websocket when one is configured; each JSON
object received is normalised and appended to the sink.  When no socket can
be opened the loaded dataset is replayed instead, one record per tick, until
the cursor reaches the end of the dataset.

Every transition that leaves ``streaming`` releases the timer task and the
socket before returning, so at most one of each exists at any time.
"""

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import (
    Any,
    AsyncIterator,
    Awaitable,
    Callable,
    List,
    MutableSequence,
    Optional,
    Protocol,
    Sequence,
    Tuple,
)

import websockets
from websockets.exceptions import ConnectionClosed, WebSocketException

from models.records import SoilRecord, StreamMode, StreamState
from services.normalizer import normalize_row, today_iso

logger = logging.getLogger(__name__)


class LiveSocket(Protocol):
    def __aiter__(self) -> AsyncIterator[Any]: ...

    async def close(self) -> None: ...


Connector = Callable[[str], Awaitable[LiveSocket]]


class StreamTransitionError(RuntimeError):
    """Raised when a transition is requested from a state that does not allow it."""


@dataclass(frozen=True)
class StreamStatus:
    state: StreamState
    mode: Optional[StreamMode]
    cursor: int
    total: int
    last_update: Optional[datetime]


async def open_websocket(url: str) -> LiveSocket:
    return await websockets.connect(url)


class IntervalTimer:
    """Call ``callback`` every ``interval`` seconds until it returns ``False``."""

    def __init__(self, interval: float, callback: Callable[[], bool]) -> None:
        self.interval = interval
        self._callback = callback
        self._task: Optional[asyncio.Task[None]] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self._task is not None:
            raise RuntimeError("Timer already started.")
        self._task = asyncio.get_running_loop().create_task(self._run())

    def cancel(self) -> Optional[asyncio.Task[None]]:
        """Cancel the pending task and hand it back so the caller can await it."""
        task, self._task = self._task, None
        if task is None or task.done() or task is asyncio.current_task():
            return None
        task.cancel()
        return task

    async def wait(self) -> None:
        if self._task is not None:
            await asyncio.wait({self._task})

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.interval)
            if not self._callback():
                return


class StreamSimulator:
    """Feeds ``sink`` from a live socket or by replaying the current dataset."""

    def __init__(
        self,
        dataset_provider: Callable[[], Sequence[SoilRecord]],
        sink: MutableSequence[SoilRecord],
        *,
        live_url: Optional[str] = None,
        interval: float = 1.0,
        connect_timeout: float = 2.0,
        connector: Optional[Connector] = None,
        timezone_name: str = "UTC",
    ) -> None:
        self._dataset_provider = dataset_provider
        self._sink = sink
        self.live_url = live_url
        self.interval = interval
        self.connect_timeout = connect_timeout
        self._connector: Connector = connector or open_websocket
        self._timezone_name = timezone_name
        self._lock = asyncio.Lock()

        self._state = StreamState.idle
        self._mode: Optional[StreamMode] = None
        self._cursor = 0
        self._snapshot: Tuple[SoilRecord, ...] = ()
        self._last_update: Optional[datetime] = None
        self._timer: Optional[IntervalTimer] = None
        self._socket: Optional[LiveSocket] = None
        self._reader: Optional[asyncio.Task[None]] = None

    @property
    def state(self) -> StreamState:
        return self._state

    @property
    def mode(self) -> Optional[StreamMode]:
        return self._mode

    @property
    def cursor(self) -> int:
        return self._cursor

    @property
    def has_timer(self) -> bool:
        return self._timer is not None

    @property
    def has_socket(self) -> bool:
        return self._socket is not None

    def status(self) -> StreamStatus:
        return StreamStatus(
            state=self._state,
            mode=self._mode,
            cursor=self._cursor,
            total=len(self._snapshot),
            last_update=self._last_update,
        )

    async def start(self) -> None:
        async with self._lock:
            await self._release()
            del self._sink[:]
            self._cursor = 0
            self._last_update = None
            self._mode = None
            self._snapshot = tuple(self._dataset_provider())
            self._state = StreamState.streaming
            self._log("Stream started")

            if await self._connect_live():
                return
            self._begin_replay()

    async def pause(self) -> None:
        async with self._lock:
            if self._state is not StreamState.streaming:
                raise StreamTransitionError(
                    f"Cannot pause a stream that is {self._state.value}."
                )
            await self._release()
            self._state = StreamState.paused
            self._log("Stream paused")

    async def resume(self) -> None:
        async with self._lock:
            if self._state is not StreamState.paused:
                raise StreamTransitionError(
                    f"Cannot resume a stream that is {self._state.value}."
                )
            self._state = StreamState.streaming
            self._log("Stream resumed")
            if self._mode is StreamMode.live and await self._connect_live():
                return
            self._begin_replay()

    async def stop(self) -> None:
        async with self._lock:
            await self._release()
            self._state = StreamState.idle
            self._log("Stream stopped")
            self._mode = None
            self._cursor = 0
            self._snapshot = ()
            self._last_update = None

    async def aclose(self) -> None:
        await self.stop()

    async def join(self) -> None:
        """Wait until the replay timer (if any) has run to completion."""
        timer = self._timer
        if timer is not None:
            await timer.wait()

    def tick(self) -> bool:
        """Emit the record under the cursor; return whether more ticks are needed."""
        if self._state is not StreamState.streaming or self._mode is not StreamMode.replay:
            return False

        if self._cursor < len(self._snapshot):
            self._sink.append(self._snapshot[self._cursor])
            self._cursor += 1
            self._last_update = _utcnow()

        if self._cursor >= len(self._snapshot):
            timer, self._timer = self._timer, None
            if timer is not None:
                timer.cancel()
            self._finish()
            return False
        return True

    def _begin_replay(self) -> None:
        self._mode = StreamMode.replay
        if self._cursor >= len(self._snapshot):
            self._finish()
            return
        self._timer = IntervalTimer(self.interval, self.tick)
        self._timer.start()

    def _finish(self) -> None:
        self._state = StreamState.finished
        self._log("Stream finished")

    async def _connect_live(self) -> bool:
        if not self.live_url:
            return False
        try:
            socket = await asyncio.wait_for(
                self._connector(self.live_url), timeout=self.connect_timeout
            )
        except (OSError, asyncio.TimeoutError, WebSocketException) as exc:
            logger.info(
                "Live stream unavailable, falling back to replay",
                extra={"reason": str(exc) or type(exc).__name__},
            )
            return False

        self._socket = socket
        self._mode = StreamMode.live
        self._reader = asyncio.get_running_loop().create_task(self._consume(socket))
        self._log("Live stream connected")
        return True

    async def _consume(self, socket: LiveSocket) -> None:
        try:
            async for message in socket:
                self._receive(message)
        except ConnectionClosed as exc:
            logger.info("Live stream connection dropped", extra={"reason": str(exc)})
        finally:
            if self._socket is socket:
                # Closed from the server side rather than by a transition.
                self._socket = None
                self._reader = None
                self._state = StreamState.idle
                self._log("Live stream ended")

    def _receive(self, message: Any) -> None:
        if self._state is not StreamState.streaming:
            return
        try:
            payload = json.loads(message)
        except (TypeError, ValueError):
            logger.warning("Ignoring non-JSON live message", extra={"reason": "invalid json"})
            return
        if not isinstance(payload, dict):
            logger.warning("Ignoring live message", extra={"reason": "expected a JSON object"})
            return
        self._sink.append(normalize_row(payload, today=today_iso(self._timezone_name)))
        self._last_update = _utcnow()

    async def _release(self) -> None:
        pending: List[asyncio.Task[None]] = []

        timer, self._timer = self._timer, None
        if timer is not None:
            task = timer.cancel()
            if task is not None:
                pending.append(task)

        reader, self._reader = self._reader, None
        socket, self._socket = self._socket, None
        if reader is not None and not reader.done() and reader is not asyncio.current_task():
            reader.cancel()
            pending.append(reader)

        if pending:
            await asyncio.wait(pending)

        if socket is not None:
            try:
                await socket.close()
            except (OSError, WebSocketException) as exc:
                logger.debug("Error while closing live socket", extra={"reason": str(exc)})

    def _log(self, message: str) -> None:
        logger.info(
            message,
            extra={
                "stream_state": self._state.value,
                "stream_mode": self._mode.value if self._mode else None,
                "cursor": self._cursor,
            },
        )


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)
