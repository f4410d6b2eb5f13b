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

"""Start and stop a local MongoDB server.

This package manages the lifecycle of a single ``mongod`` subprocess: it
starts the process, watches its output until the server is waiting for
connections (or reports why it could not start), and stops it again.

Example:
    ```python
    from mongod_runtime import MongodServer

    server = MongodServer({"port": 27018, "dbpath": "/tmp/db"})
    await server.open()
    try:
        print(f"Server running at {server.uri}")
    finally:
        await server.close()

    # As a context manager
    async with MongodServer.start(27018) as server:
        print(server.pid, server.port)
    ```
"""

from .config import (
    DEFAULT_BINARY,
    DEFAULT_HOST,
    DEFAULT_PORT,
    ServerConfig,
    parse_config,
    parse_flags,
)
from .exceptions import (
    AddressInUseError,
    ErrorCode,
    MongodError,
    PermissionDeniedError,
    ProcessError,
    StartupError,
)
from .lines import LineAggregator
from .logging import LogConfig, LogEntry, LogForwarder
from .process import ProcessHandle, Spawner, spawn_process
from .server import MongodServer
from .signals import Failure, Pid, Port, Ready, Signal, classify, parse_line
from .utils import find_binary, find_free_port, is_port_in_use

__version__ = "0.1.0"

__all__ = [
    # Main server
    "MongodServer",
    # Configuration
    "ServerConfig",
    "LogConfig",
    "DEFAULT_BINARY",
    "DEFAULT_HOST",
    "DEFAULT_PORT",
    "parse_config",
    "parse_flags",
    # Output parsing
    "LineAggregator",
    "Signal",
    "Pid",
    "Port",
    "Ready",
    "Failure",
    "classify",
    "parse_line",
    "LogEntry",
    "LogForwarder",
    # Errors
    "ErrorCode",
    "MongodError",
    "AddressInUseError",
    "PermissionDeniedError",
    "StartupError",
    "ProcessError",
    # Process control
    "ProcessHandle",
    "Spawner",
    "spawn_process",
    # Utilities
    "find_binary",
    "find_free_port",
    "is_port_in_use",
]
