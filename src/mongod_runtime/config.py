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

"""Configuration for a mongod process and its command-line flags."""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

DEFAULT_BINARY = "mongod"
DEFAULT_PORT = 27017

# mongod binds to localhost only unless told otherwise
DEFAULT_HOST = "127.0.0.1"

# Environment variable overriding the default binary
BINARY_ENV_VAR = "MONGOD_BINARY"

# Keys copied by parse_config when no config file is given, with their aliases
_PASS_THROUGH_KEYS = {
    "dbpath": "dbpath",
    "port": "port",
    "storage_engine": "storage_engine",
    "storageEngine": "storage_engine",
    "nojournal": "nojournal",
}


def default_binary() -> str:
    """Return the mongod binary to run when none is configured."""
    return os.environ.get(BINARY_ENV_VAR) or DEFAULT_BINARY


@dataclass(frozen=True)
class ServerConfig:
    """Resolved configuration for a mongod process.

    Attributes:
        bin: Path or name of the mongod binary
        conf: Path to a mongod configuration file. When set, it alone
              determines the command-line flags.
        port: Port to listen on (number or numeric string)
        dbpath: Data directory
        storage_engine: Storage engine name (e.g. ``inMemory``)
        nojournal: Disable journaling
    """

    bin: str = field(default_factory=default_binary)
    conf: str | None = None
    port: int | str | None = DEFAULT_PORT
    dbpath: str | None = None
    storage_engine: str | None = None
    nojournal: bool | None = None

    def to_cli_args(self) -> list[str]:
        """Convert config to CLI arguments for mongod."""
        return parse_flags(self)


def parse_config(source: Any, target: dict[str, Any] | None = None) -> dict[str, Any]:
    """Copy recognized configuration values from ``source`` into ``target``.

    Only ``bin`` and ``conf`` are copied when ``source`` names a config file;
    every other value is ignored in that case. A bare ``int`` or ``str`` source
    is taken as a port. Unrecognized keys and ``None`` values are skipped.

    Args:
        source: A mapping, a port, or anything else (ignored)
        target: Mapping to update. A new dict is used if not provided.

    Returns:
        The updated target
    """
    if target is None:
        target = {}

    if isinstance(source, bool):
        return target

    if isinstance(source, int | str):
        target["port"] = source
        return target

    if not isinstance(source, Mapping):
        return target

    if source.get("bin") is not None:
        target["bin"] = source["bin"]

    if source.get("conf") is not None:
        target["conf"] = source["conf"]
        return target

    for key, name in _PASS_THROUGH_KEYS.items():
        if source.get(key) is not None:
            target[name] = source[key]

    return target


def parse_flags(config: ServerConfig | Mapping[str, Any]) -> list[str]:
    """Build mongod command-line flags from a configuration.

    Flags are emitted in a fixed order: ``--nojournal``, ``--storageEngine``,
    ``--dbpath``, ``--port``. A config file replaces all of them with
    ``--config <path>``.
    """
    if isinstance(config, ServerConfig):
        values: Mapping[str, Any] = {
            "conf": config.conf,
            "port": config.port,
            "dbpath": config.dbpath,
            "storage_engine": config.storage_engine,
            "nojournal": config.nojournal,
        }
    else:
        values = parse_config(config)

    if values.get("conf") is not None:
        return ["--config", str(values["conf"])]

    flags: list[str] = []

    if values.get("nojournal"):
        flags.append("--nojournal")

    if values.get("storage_engine") is not None:
        flags.extend(["--storageEngine", str(values["storage_engine"])])

    if values.get("dbpath") is not None:
        flags.extend(["--dbpath", str(values["dbpath"])])

    if values.get("port") is not None:
        flags.extend(["--port", str(values["port"])])

    return flags


def resolve_config(source: ServerConfig | Mapping[str, Any] | int | str | None) -> ServerConfig:
    """Build a ServerConfig from a config object, mapping, or bare port."""
    if isinstance(source, ServerConfig):
        return source

    values = parse_config(source)
    if "conf" in values:
        # A config file owns the port; keep the default out of the record.
        values.setdefault("port", None)
    return ServerConfig(**values)
