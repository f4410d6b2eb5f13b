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

"""Reassemble chunked process output into lines."""

import codecs
import re
from collections.abc import Callable

_NEWLINE_RE = re.compile(r"\r?\n")


class LineAggregator:
    """Split a stream of text chunks into complete lines.

    Each newline-terminated line (``\\n`` or ``\\r\\n``) is passed to
    ``callback`` once, in order. An unterminated tail is kept and prefixed to
    the next chunk; it is only delivered by :meth:`flush`.
    """

    def __init__(self, callback: Callable[[str], None]) -> None:
        self._callback = callback
        self._buffer = ""
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")

    def feed(self, chunk: bytes | str) -> None:
        """Consume a chunk and deliver every line it completes."""
        if isinstance(chunk, bytes):
            chunk = self._decoder.decode(chunk)

        fragments = _NEWLINE_RE.split(self._buffer + chunk)
        self._buffer = fragments.pop()

        for line in fragments:
            self._callback(line)

    def flush(self) -> None:
        """Deliver the buffered tail, if any, as a final line."""
        tail = self._buffer + self._decoder.decode(b"", final=True)
        self._buffer = ""
        tail = tail.removesuffix("\r")
        if tail:
            self._callback(tail)
