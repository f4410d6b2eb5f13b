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

"""Process-control boundary used by MongodServer."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Protocol

logger = logging.getLogger(__name__)

# Bytes requested per read from a process pipe
CHUNK_SIZE = 64 * 1024


class OutputStream(Protocol):
    async def read(self, n: int = -1) -> bytes: ...


class ProcessHandle(Protocol):
    """The parts of a spawned process the lifecycle relies on.

    ``asyncio.subprocess.Process`` satisfies this protocol.
    """

    pid: int
    returncode: int | None
    stdout: OutputStream | None
    stderr: OutputStream | None

    def terminate(self) -> None: ...

    def kill(self) -> None: ...

    async def wait(self) -> int: ...


Spawner = Callable[[str, list[str]], Awaitable[ProcessHandle]]


async def spawn_process(binary: str, args: list[str]) -> ProcessHandle:
    """Start ``binary`` with ``args``, piping stdout and stderr."""
    logger.debug(f"Command: {binary} {' '.join(args)}")
    return await asyncio.create_subprocess_exec(
        binary,
        *args,
        stdin=asyncio.subprocess.DEVNULL,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE,
    )


async def read_chunks(stream: OutputStream | None, on_chunk: Callable[[bytes], None]) -> None:
    """Pass every chunk read from ``stream`` to ``on_chunk`` until EOF."""
    if stream is None:
        return
    while chunk := await stream.read(CHUNK_SIZE):
        on_chunk(chunk)
