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

"""Pure Python utilities for running mongod."""

import os
import shutil
import socket
from pathlib import Path

from .config import BINARY_ENV_VAR, DEFAULT_BINARY, DEFAULT_HOST


def find_binary() -> Path:
    """Locate the mongod binary.

    Resolution order:
    1. MONGOD_BINARY environment variable
    2. ``mongod`` on PATH

    Raises:
        FileNotFoundError: If no binary is found.
    """
    explicit = os.environ.get(BINARY_ENV_VAR)
    if explicit:
        binary = Path(explicit)
        if not binary.exists():
            raise FileNotFoundError(
                f"{BINARY_ENV_VAR} set but file not found: {binary}"
            )
        return binary

    found = shutil.which(DEFAULT_BINARY)
    if found is None:
        raise FileNotFoundError(
            f"{DEFAULT_BINARY} not found on PATH. "
            f"Install MongoDB or set {BINARY_ENV_VAR}=/path/to/mongod"
        )
    return Path(found)


def find_free_port(host: str = DEFAULT_HOST) -> int:
    """Ask the OS for a port that nothing on ``host`` is listening on.

    The port is released before returning, so another process may take it
    before mongod binds; callers retry on AddressInUseError.
    """
    with socket.create_server((host, 0)) as listener:
        return listener.getsockname()[1]


def is_port_in_use(port: int, host: str = DEFAULT_HOST) -> bool:
    """Whether binding ``port`` on ``host`` would fail, as it would for mongod."""
    try:
        listener = socket.create_server((host, port))
    except OSError:
        return True
    listener.close()
    return False
