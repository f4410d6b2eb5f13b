# Copyright 2025 DataStax Inc.
#
# Licensed under the Apache License, Version 2.0 (the "License"); you may not
# use this file except in compliance with the License. You may obtain a copy of
# the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS, WITHOUT
# WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied. See the
# License for the specific language governing permissions and limitations under
# the License.

"""MongodServer - start and stop a local mongod process."""

from __future__ import annotations

import asyncio
import atexit
import logging
from collections import defaultdict
from collections.abc import AsyncIterator, Callable, Mapping
from contextlib import asynccontextmanager
from functools import partial
from typing import TYPE_CHECKING, Any

from .config import DEFAULT_HOST, ServerConfig, resolve_config
from .exceptions import MongodError, ProcessError
from .lines import LineAggregator
from .logging import LogConfig, LogEntry, LogForwarder
from .process import OutputStream, ProcessHandle, Spawner, read_chunks, spawn_process
from .queue import SerialQueue
from .signals import Failure, Pid, Port, Ready, Signal, classify, is_terminal

if TYPE_CHECKING:
    from types import TracebackType

logger = logging.getLogger(__name__)

EVENTS = frozenset({"opening", "open", "closing", "close", "stdout", "stderr"})

CompletionCallback = Callable[[BaseException | None, None], Any]


class MongodServer:
    """Start and stop a local mongod process.

    ``open()`` spawns mongod and settles once the server logs that it is
    waiting for connections, or rejects with a typed error when it reports a
    startup failure. ``close()`` terminates the process and settles once it
    has exited. Both return immediately with a task; calls made while the same
    operation is already in progress return that task again. Open and close
    operations run one at a time, in call order.

    Events (subscribe with ``on``):
    - ``opening``, ``open``, ``closing``, ``close``: lifecycle transitions
    - ``stdout``, ``stderr``: every line of process output

    Example:
        ```python
        server = MongodServer({"port": 27018, "dbpath": "/tmp/db"})
        await server.open()
        print(server.pid, server.port)
        await server.close()

        async with MongodServer.start({"port": 27018}) as server:
            ...
        ```
    """

    def __init__(
        self,
        config: ServerConfig | Mapping[str, Any] | int | str | None = None,
        *,
        spawner: Spawner | None = None,
        log_config: LogConfig | None = None,
    ) -> None:
        self.config = resolve_config(config)

        self.pid: int | None = None
        self.port: int | None = None
        self.process: ProcessHandle | None = None

        self.is_opening = False
        self.is_closing = False
        self.is_running = False

        self._spawner = spawner or spawn_process
        self._queue = SerialQueue()
        self._open_attempt: asyncio.Task[None] | None = None
        self._close_attempt: asyncio.Task[None] | None = None

        # State of the process spawned by the most recent open
        self._starting: asyncio.Task[Any] | None = None
        self._startup: asyncio.Future[None] | None = None
        self._exited: asyncio.Future[int] | None = None
        self._watcher: asyncio.Task[None] | None = None

        self._listeners: dict[str, list[Callable[..., Any]]] = defaultdict(list)

        if log_config is None:
            log_config = LogConfig()

        self._log_forwarder: LogForwarder | None = None
        if log_config.capture:
            self._log_forwarder = LogForwarder.from_config(log_config)
            self._log_forwarder.attach(self)

    @classmethod
    @asynccontextmanager
    async def start(
        cls,
        config: ServerConfig | Mapping[str, Any] | int | str | None = None,
        *,
        spawner: Spawner | None = None,
        log_config: LogConfig | None = None,
    ) -> AsyncIterator[MongodServer]:
        """Open a server for the duration of the context.

        Yields:
            The running MongodServer. It is closed when the context exits.
        """
        server = cls(config, spawner=spawner, log_config=log_config)
        async with server:
            yield server

    @property
    def uri(self) -> str:
        """Connection string for the running server."""
        if not self.is_running or self.port is None:
            raise RuntimeError("mongod is not running")
        return f"mongodb://{DEFAULT_HOST}:{self.port}"

    def open(self, callback: CompletionCallback | None = None) -> asyncio.Task[None]:
        """Start the server.

        Args:
            callback: Invoked as ``callback(error, None)`` once the attempt
                      settles; ``error`` is None on success.

        Returns:
            The pending open attempt.
        """
        if not self.is_opening or _settled(self._open_attempt):
            self.is_opening = True
            self.is_closing = False
            self._open_attempt = self._queue.add(self._open)
            logger.debug(f"Queued open ({self._queue.pending} pending)")

        attempt = self._open_attempt
        if callback is not None:
            _notify(attempt, callback)
        return attempt

    def close(self, callback: CompletionCallback | None = None) -> asyncio.Task[None]:
        """Stop the server.

        Args:
            callback: Invoked as ``callback(error, None)`` once the attempt
                      settles; ``error`` is None on success.

        Returns:
            The pending close attempt.
        """
        if not self.is_closing or _settled(self._close_attempt):
            self.is_closing = True
            self.is_opening = False
            self._close_attempt = self._queue.add(self._close)
            logger.debug(f"Queued close ({self._queue.pending} pending)")

        attempt = self._close_attempt
        if callback is not None:
            _notify(attempt, callback)
        return attempt

    def on(self, event: str, listener: Callable[..., Any]) -> None:
        """Subscribe ``listener`` to ``event``."""
        if event not in EVENTS:
            raise ValueError(f"Unknown event: {event!r}")
        self._listeners[event].append(listener)

    def off(self, event: str, listener: Callable[..., Any]) -> None:
        """Unsubscribe ``listener`` from ``event`` if it is subscribed."""
        listeners = self._listeners.get(event, [])
        if listener in listeners:
            listeners.remove(listener)

    def get_recent_logs(self, limit: int = 100) -> list[LogEntry]:
        """Get recent log entries from the server.

        Only available when log_config.capture is True.
        """
        if self._log_forwarder is None:
            return []
        return self._log_forwarder.get_recent(limit)

    # Context manager support

    async def __aenter__(self) -> MongodServer:
        await self.open()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        await self.close()

    # Queued operations

    async def _open(self) -> None:
        attempt = asyncio.current_task()
        try:
            if self.is_closing or self.is_running:
                return
            await self._start(attempt)
        except MongodError:
            raise
        except Exception as e:
            raise ProcessError(f"Failed to start {self.config.bin}: {e}") from e
        finally:
            if self._open_attempt is attempt:
                self.is_opening = False

    async def _close(self) -> None:
        attempt = asyncio.current_task()
        try:
            if self.is_opening or not self.is_running:
                return
            process, exited = self.process, self._exited
            if process is None or exited is None:
                raise ProcessError("mongod is marked running but has no process")

            self._emit("closing")
            logger.info(f"Stopping mongod (pid {process.pid})...")
            self._terminate(process)
            await asyncio.shield(exited)
            logger.info("mongod stopped")
        finally:
            if self._close_attempt is attempt:
                self.is_closing = False

    async def _start(self, attempt: asyncio.Task[Any] | None) -> None:
        self._emit("opening")

        args = self.config.to_cli_args()
        logger.info(f"Starting {self.config.bin} {' '.join(args)}")
        process = await self._spawner(self.config.bin, args)

        loop = asyncio.get_running_loop()
        startup: asyncio.Future[None] = loop.create_future()
        exited: asyncio.Future[int] = loop.create_future()

        self.process = process
        self._starting = attempt
        self._startup = startup
        self._exited = exited
        atexit.register(self._kill_on_exit)
        self._watcher = asyncio.create_task(self._watch(process, startup, exited))

        try:
            await asyncio.shield(startup)
        except MongodError as e:
            logger.error(f"mongod failed to start: {e}")
            if self._stop_failed(process):
                await asyncio.shield(exited)
            else:
                self._detach(process)
            raise
        finally:
            self._starting = None

    def _stop_failed(self, process: ProcessHandle) -> bool:
        """Stop a process that failed to start. Returns False if it cannot be."""
        try:
            self._terminate(process)
            return True
        except ProcessError as e:
            logger.warning(f"{e}; killing mongod (pid {process.pid})")

        try:
            process.kill()
        except ProcessLookupError:
            pass
        except OSError as e:
            logger.error(f"Failed to kill mongod (pid {process.pid}): {e}")
            return False
        return True

    def _detach(self, process: ProcessHandle) -> None:
        """Forget a process that could not be stopped."""
        atexit.unregister(self._kill_on_exit)
        if self.process is process:
            self.process = None
            self.pid = None
            self.port = None
        self.is_running = False
        self.is_closing = False
        self._emit("close")

    def _terminate(self, process: ProcessHandle) -> None:
        if process.returncode is not None:
            return
        try:
            process.terminate()
        except ProcessLookupError:
            pass
        except OSError as e:
            raise ProcessError(f"Failed to stop {self.config.bin}: {e}") from e

    # Process observation

    async def _watch(
        self,
        process: ProcessHandle,
        startup: asyncio.Future[None],
        exited: asyncio.Future[int],
    ) -> None:
        try:
            await asyncio.gather(
                self._pump(process.stdout, "stdout"),
                self._pump(process.stderr, "stderr"),
            )
        except Exception:
            logger.exception("Error reading mongod output")

        code = await process.wait()
        self._on_exit(process, startup, exited, code)

    async def _pump(self, stream: OutputStream | None, event: str) -> None:
        aggregator = LineAggregator(partial(self._handle_line, event))
        await read_chunks(stream, aggregator.feed)
        aggregator.flush()

    def _handle_line(self, event: str, line: str) -> None:
        self._emit(event, line)
        for signal in classify(line):
            self._handle_signal(signal)

    def _handle_signal(self, signal: Signal) -> None:
        if not is_terminal(signal):
            if isinstance(signal, Pid):
                self.pid = signal.value
            elif isinstance(signal, Port):
                self.port = signal.value
            return

        startup = self._startup
        if startup is None or startup.done():
            return

        if isinstance(signal, Ready):
            if self.pid is None and self.process is not None:
                self.pid = self.process.pid
            self.is_running = True
            self._opened()
            logger.info(f"mongod is ready (pid {self.pid}, port {self.port})")
            self._emit("open")
            startup.set_result(None)
        elif isinstance(signal, Failure):
            self._opened()
            self.is_closing = True
            self._emit("closing")
            startup.set_exception(signal.to_exception())

    def _opened(self) -> None:
        if self._open_attempt is self._starting:
            self.is_opening = False

    def _on_exit(
        self,
        process: ProcessHandle,
        startup: asyncio.Future[None],
        exited: asyncio.Future[int],
        code: int,
    ) -> None:
        logger.info(f"mongod (pid {process.pid}) exited with code {code}")

        # A detached process no longer owns the instance state.
        current = self.process is process
        if current:
            atexit.unregister(self._kill_on_exit)
            self.process = None
            self.pid = None
            self.port = None
            self.is_running = False
            self.is_closing = False

        if not startup.done():
            self._opened()
            startup.set_exception(
                ProcessError(
                    f"{self.config.bin} exited with code {code} "
                    "before accepting connections",
                    exit_code=code,
                )
            )

        if current:
            self._emit("close")
        exited.set_result(code)

    def _kill_on_exit(self) -> None:
        """Kill the process when the interpreter exits."""
        process = self.process
        if process is None or process.returncode is not None:
            return
        try:
            process.kill()
        except OSError:
            pass

    def _emit(self, event: str, *args: Any) -> None:
        for listener in list(self._listeners.get(event, ())):
            try:
                listener(*args)
            except Exception:
                logger.exception(f"{event!r} listener failed")


def _settled(attempt: asyncio.Task[None] | None) -> bool:
    return attempt is None or attempt.done()


def _notify(attempt: asyncio.Task[None], callback: CompletionCallback) -> None:
    def on_done(task: asyncio.Task[None]) -> None:
        error = asyncio.CancelledError() if task.cancelled() else task.exception()
        try:
            callback(error, None)
        except Exception:
            logger.exception("Completion callback failed")

    attempt.add_done_callback(on_done)
