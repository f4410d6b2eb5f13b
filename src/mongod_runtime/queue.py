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

"""Single-concurrency operation queue."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from typing import TypeVar

T = TypeVar("T")


class SerialQueue:
    """Run queued operations one at a time, in the order they were added.

    ``add`` returns immediately with a task for the operation. The task waits
    for every previously added operation to settle before calling its factory.
    ``asyncio.Lock`` hands itself to waiters in FIFO order, which gives the
    ordering guarantee.
    """

    def __init__(self) -> None:
        self._lock: asyncio.Lock | None = None
        self._pending = 0

    @property
    def pending(self) -> int:
        """Number of operations queued or running."""
        return self._pending

    def add(self, factory: Callable[[], Awaitable[T]]) -> asyncio.Task[T]:
        """Queue an operation. Must be called from a running event loop."""
        loop = asyncio.get_running_loop()
        if self._lock is None:
            self._lock = asyncio.Lock()
        self._pending += 1
        return loop.create_task(self._run(self._lock, factory))

    async def _run(self, lock: asyncio.Lock, factory: Callable[[], Awaitable[T]]) -> T:
        try:
            async with lock:
                return await factory()
        finally:
            self._pending -= 1
