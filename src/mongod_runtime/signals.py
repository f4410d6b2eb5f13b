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

"""Lifecycle signals recognized in mongod diagnostic output.

mongod has no structured readiness probe we can rely on before a client
connects, so startup is tracked by scanning its log lines. Only the handful of
messages needed for the lifecycle are recognized:

- ``MongoDB starting : pid=1234 port=27017 ...`` (or the structured
  ``"pid":1234`` / ``"port":27017`` attributes)
- ``waiting for connections on port 27017``
- ``listen(): bind() failed Address already in use for socket: ...``
- ``listen(): bind() failed Permission denied for socket: ...``
- ``Error parsing option "port" as int: ...``
- ``exception in initAndListen: ...``
"""

import re
from dataclasses import dataclass
from typing import Any

from .exceptions import ErrorCode, MongodError, error_for_code

# Alternatives are tried in order at each position. An error token must start a
# word and swallows the rest of the line.
_SIGNAL_RE = re.compile(
    r'(?:pid=|"pid":\s*)(?P<pid>\d+)'
    r'|(?:port=|"port":\s*)(?P<port>\d+)'
    r"|(?P<ready>waiting\s+for\s+connections)"
    r"|(?P<in_use>already\s+in\s+use)"
    r"|(?P<denied>denied\s+for\s+socket)"
    r"|(?P<error>\b(?:error|exception|badvalue).*)",
    re.IGNORECASE | re.DOTALL,
)


@dataclass(frozen=True)
class Pid:
    """Process id reported by the server."""

    value: int


@dataclass(frozen=True)
class Port:
    """Port the server reported binding to."""

    value: int


@dataclass(frozen=True)
class Ready:
    """The server is accepting connections."""


@dataclass(frozen=True)
class Failure:
    """The server reported a startup failure."""

    code: ErrorCode
    message: str

    def to_exception(self) -> MongodError:
        return error_for_code(self.code, self.message)


Signal = Pid | Port | Ready | Failure


def classify(line: Any) -> list[Signal]:
    """Extract every recognized signal from a log line, in order of appearance."""
    if not isinstance(line, str):
        return []

    signals: list[Signal] = []

    for match in _SIGNAL_RE.finditer(line):
        if match["pid"] is not None:
            signals.append(Pid(int(match["pid"])))
        elif match["port"] is not None:
            signals.append(Port(int(match["port"])))
        elif match["ready"] is not None:
            signals.append(Ready())
        elif match["in_use"] is not None:
            signals.append(Failure(ErrorCode.ADDRESS_IN_USE, "Address already in use"))
        elif match["denied"] is not None:
            signals.append(Failure(ErrorCode.PERMISSION_DENIED, "Permission denied"))
        else:
            signals.append(Failure(ErrorCode.STARTUP_FAILURE, match["error"].strip()))

    return signals


def is_terminal(signal: Signal) -> bool:
    """Whether a signal settles a pending open attempt."""
    return isinstance(signal, Ready | Failure)


def parse_line(line: Any) -> MongodError | None:
    """Return the first failure reported by ``line`` as an exception.

    Returns None for lines that report readiness, only carry a pid or port, or
    are not recognized at all.
    """
    for signal in classify(line):
        if isinstance(signal, Ready):
            return None
        if isinstance(signal, Failure):
            return signal.to_exception()
    return None
