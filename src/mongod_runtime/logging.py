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

"""Log capture and forwarding for mongod output."""

from __future__ import annotations

import logging
import re
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING, Any

import msgspec

if TYPE_CHECKING:
    from .server import MongodServer

# Map mongod severity letters to Python logging levels
LOG_LEVEL_MAP = {
    "F": logging.CRITICAL,
    "E": logging.ERROR,
    "W": logging.WARNING,
    "I": logging.INFO,
    "D": logging.DEBUG,
}

# <timestamp> <severity> <component> [<context>] <message>
_LEGACY_LINE_RE = re.compile(
    r"^(?P<timestamp>\d{4}-\d\d-\d\dT\S+)\s+"
    r"(?P<severity>[FEWID]\d?)\s+"
    r"(?P<component>\S+)\s+"
    r"\[(?P<context>[^\]]*)\]\s?"
    r"(?P<message>.*)$"
)


class _StructuredLine(msgspec.Struct):
    """A mongod 4.4+ structured log line."""

    msg: str
    t: dict[str, str] = msgspec.field(default_factory=dict)
    s: str = "I"
    c: str | None = None
    id: int | None = None
    ctx: str | None = None
    attr: dict[str, Any] = msgspec.field(default_factory=dict)


_structured_decoder = msgspec.json.Decoder(_StructuredLine)


@dataclass
class LogConfig:
    """Configuration for capturing mongod output.

    Attributes:
        capture: Whether to forward mongod output to Python logging
        python_logger: Name of the Python logger to forward logs to
        max_entries: Number of recent entries kept for get_recent()
    """

    capture: bool = True
    python_logger: str = "mongod.server"
    max_entries: int = 1000


@dataclass
class LogEntry:
    """A single log entry from the mongod server."""

    timestamp: datetime
    level: int
    message: str
    severity: str = "I"
    component: str | None = None
    context: str | None = None
    log_id: int | None = None
    stream: str | None = None
    attr: dict[str, Any] = field(default_factory=dict)


def _parse_timestamp(value: str | None) -> datetime:
    if not value:
        return datetime.now()
    try:
        return datetime.fromisoformat(value)
    except ValueError:
        return datetime.now()


def _severity_level(severity: str) -> int:
    return LOG_LEVEL_MAP.get(severity[:1].upper(), logging.INFO)


def parse_log_line(line: str, stream: str | None = None) -> LogEntry:
    """Parse a mongod log line into a LogEntry.

    Structured (JSON) lines and the legacy text format are recognized; any
    other text becomes an INFO entry carrying the line as its message.
    """
    if line.startswith("{"):
        try:
            data = _structured_decoder.decode(line)
        except msgspec.DecodeError:
            pass
        else:
            return LogEntry(
                timestamp=_parse_timestamp(data.t.get("$date")),
                level=_severity_level(data.s),
                message=data.msg,
                severity=data.s,
                component=data.c,
                context=data.ctx,
                log_id=data.id,
                stream=stream,
                attr=data.attr,
            )

    match = _LEGACY_LINE_RE.match(line)
    if match is not None:
        return LogEntry(
            timestamp=_parse_timestamp(match["timestamp"]),
            level=_severity_level(match["severity"]),
            message=match["message"],
            severity=match["severity"],
            component=match["component"],
            context=match["context"],
            stream=stream,
        )

    return LogEntry(
        timestamp=datetime.now(),
        level=logging.INFO,
        message=line,
        stream=stream,
    )


class LogForwarder:
    """Forwards mongod output lines to Python logging.

    Subscribes to a server's ``stdout`` and ``stderr`` events, parses each
    line and logs it on the configured logger. It also maintains a buffer of
    recent log entries for programmatic access.
    """

    def __init__(
        self,
        logger_name: str = "mongod.server",
        max_entries: int = 1000,
    ) -> None:
        self._logger = logging.getLogger(logger_name)
        self._entries: deque[LogEntry] = deque(maxlen=max_entries)
        self._server: MongodServer | None = None

    @classmethod
    def from_config(cls, config: LogConfig) -> LogForwarder:
        return cls(logger_name=config.python_logger, max_entries=config.max_entries)

    def attach(self, server: MongodServer) -> None:
        """Start forwarding output from ``server``."""
        if self._server is server:
            return
        self.detach()
        server.on("stdout", self._on_stdout)
        server.on("stderr", self._on_stderr)
        self._server = server

    def detach(self) -> None:
        """Stop forwarding output."""
        if self._server is None:
            return
        self._server.off("stdout", self._on_stdout)
        self._server.off("stderr", self._on_stderr)
        self._server = None

    def get_recent(self, limit: int = 100) -> list[LogEntry]:
        """Get recent log entries.

        Args:
            limit: Maximum number of entries to return

        Returns:
            List of LogEntry objects, most recent last
        """
        if limit <= 0:
            return []
        entries = list(self._entries)
        return entries[-limit:]

    def _on_stdout(self, line: str) -> None:
        self._forward(parse_log_line(line, "stdout"))

    def _on_stderr(self, line: str) -> None:
        self._forward(parse_log_line(line, "stderr"))

    def _forward(self, entry: LogEntry) -> None:
        if not entry.message:
            return
        self._entries.append(entry)
        extra = {
            "component": entry.component,
            "context": entry.context,
            "log_id": entry.log_id,
            "stream": entry.stream,
            "attr": entry.attr,
        }
        self._logger.log(entry.level, entry.message, extra=extra)
