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

"""Tests for runtime utilities."""

import socket

import pytest

from mongod_runtime.config import DEFAULT_HOST
from mongod_runtime.utils import find_binary, find_free_port, is_port_in_use


class TestFindFreePort:
    def test_find_free_port_returns_int(self):
        port = find_free_port()
        assert isinstance(port, int)

    def test_find_free_port_returns_valid_range(self):
        port = find_free_port()
        assert 1024 <= port <= 65535

    def test_find_free_port_is_available(self):
        port = find_free_port()
        # Port should be free immediately after finding it
        assert not is_port_in_use(port)


class TestIsPortInUse:
    def test_unused_port_returns_false(self):
        port = find_free_port()
        assert not is_port_in_use(port)

    def test_bound_port_returns_true(self):
        with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
            s.bind(("127.0.0.1", 0))
            s.listen(1)
            assert is_port_in_use(s.getsockname()[1])

    def test_listener_on_host(self):
        with socket.create_server((DEFAULT_HOST, 0)) as listener:
            port = listener.getsockname()[1]
            assert is_port_in_use(port, DEFAULT_HOST)
        assert not is_port_in_use(port, DEFAULT_HOST)


class TestFindBinary:
    def test_environment_override(self, monkeypatch, tmp_path):
        binary = tmp_path / "mongod"
        binary.write_text("")
        monkeypatch.setenv("MONGOD_BINARY", str(binary))
        assert find_binary() == binary

    def test_environment_override_missing(self, monkeypatch, tmp_path):
        monkeypatch.setenv("MONGOD_BINARY", str(tmp_path / "missing"))
        with pytest.raises(FileNotFoundError, match="MONGOD_BINARY"):
            find_binary()

    def test_not_on_path(self, monkeypatch, tmp_path):
        monkeypatch.delenv("MONGOD_BINARY", raising=False)
        monkeypatch.setenv("PATH", str(tmp_path))
        with pytest.raises(FileNotFoundError, match="not found on PATH"):
            find_binary()
