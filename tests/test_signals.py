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

"""Tests for classifying mongod log lines."""

import pytest

from mongod_runtime.exceptions import (
    AddressInUseError,
    ErrorCode,
    PermissionDeniedError,
    StartupError,
)
from mongod_runtime.signals import (
    Failure,
    Pid,
    Port,
    Ready,
    classify,
    is_terminal,
    parse_line,
)

READY = (
    "2017-01-08T15:31:53.598-0800 I NETWORK  [thread1] waiting for connections "
    "on port 27017"
)
STARTING = (
    "2017-01-08T15:31:53.000-0800 I CONTROL  [initandlisten] MongoDB starting : "
    "pid=4242 port=27017 dbpath=/data/db 64-bit host=localhost"
)
IN_USE = (
    "2017-01-08T15:46:59.256-0800 E NETWORK  [initandlisten] listen(): bind() "
    "failed Address already in use for socket: 0.0.0.0:27017"
)
DENIED = (
    "2017-01-08T15:38:00.708-0800 E NETWORK  [initandlisten] listen(): bind() "
    "failed Permission denied for socket: 0.0.0.0:1"
)
PARSE_ERROR = (
    'Error parsing option "port" as int: Bad digit "f" while parsing fubar'
)
EXCEPTION = (
    "2017-01-08T15:42:56.097-0800 I STORAGE  [initandlisten] exception in "
    "initAndListen: 18656 Cannot start server with an unknown storage engine: "
    "WiredTiger, terminating"
)


class TestClassify:
    def test_ready(self):
        assert classify(READY) == [Ready()]

    def test_ready_is_case_insensitive(self):
        assert classify("WAITING  FOR CONNECTIONS") == [Ready()]

    def test_pid_and_port(self):
        assert classify(STARTING) == [Pid(4242), Port(27017)]

    def test_structured_pid_and_port(self):
        line = (
            '{"t":{"$date":"2024-01-01T00:00:00.000+00:00"},"s":"I","c":"NETWORK",'
            '"id":23016,"ctx":"listener","msg":"Waiting for connections",'
            '"attr":{"port":27018,"ssl":"off"}}'
        )
        assert classify(line) == [Ready(), Port(27018)]

    def test_address_in_use(self):
        signals = classify(IN_USE)
        assert signals == [Failure(ErrorCode.ADDRESS_IN_USE, "Address already in use")]

    def test_permission_denied(self):
        signals = classify(DENIED)
        assert signals == [Failure(ErrorCode.PERMISSION_DENIED, "Permission denied")]

    def test_parse_error_keeps_message(self):
        [signal] = classify(PARSE_ERROR)
        assert signal.code == ErrorCode.STARTUP_FAILURE
        assert signal.message == PARSE_ERROR

    def test_exception_message_starts_at_token(self):
        [signal] = classify(EXCEPTION)
        assert signal.code == ErrorCode.STARTUP_FAILURE
        assert signal.message.startswith("exception in initAndListen: 18656")
        assert signal.message.endswith("terminating")

    def test_bad_value(self):
        [signal] = classify("BadValue: nojournal is not allowed  ")
        assert signal == Failure(
            ErrorCode.STARTUP_FAILURE, "BadValue: nojournal is not allowed"
        )

    def test_error_swallows_rest_of_line(self):
        signals = classify("pid=12 error: port=99 waiting for connections")
        assert signals == [
            Pid(12),
            Failure(ErrorCode.STARTUP_FAILURE, "error: port=99 waiting for connections"),
        ]

    def test_error_inside_a_word_is_ignored(self):
        line = (
            '{"t":{"$date":"2024-01-01T00:00:00.000+00:00"},"s":"I","c":"CONTROL",'
            '"id":23403,"ctx":"initandlisten","msg":"Build Info","attr":{"buildInfo":'
            '{"version":"7.0.5","environment":{"distarch":"x86_64",'
            '"ccflags":"-Werror -include mongo/platform/basic.h -ggdb"}}}}'
        )
        assert classify(line) == []
        assert classify("no NoSuchException here, terrors aside") == []

    def test_structured_listener_error(self):
        line = (
            '{"t":{"$date":"2024-01-01T00:00:00.000+00:00"},"s":"E","c":"CONTROL",'
            '"id":20568,"ctx":"initandlisten","msg":"Error setting up listener",'
            '"attr":{"error":{"code":9001,"codeName":"SocketException"}}}'
        )
        [signal] = classify(line)
        assert signal.code == ErrorCode.STARTUP_FAILURE
        assert signal.message.startswith("Error setting up listener")

    @pytest.mark.parametrize("value", ["invalid", "", None, {}, 1234])
    def test_unrecognized(self, value):
        assert classify(value) == []

    def test_is_terminal(self):
        assert is_terminal(Ready())
        assert is_terminal(Failure(ErrorCode.STARTUP_FAILURE, "x"))
        assert not is_terminal(Pid(1))
        assert not is_terminal(Port(1))


class TestParseLine:
    def test_ready_has_no_error(self):
        assert parse_line(READY) is None

    def test_address_in_use(self):
        error = parse_line(IN_USE)
        assert isinstance(error, AddressInUseError)
        assert error.code == -1

    def test_permission_denied(self):
        error = parse_line(DENIED)
        assert isinstance(error, PermissionDeniedError)
        assert error.code == -2

    @pytest.mark.parametrize("line", [PARSE_ERROR, EXCEPTION])
    def test_startup_errors(self, line):
        error = parse_line(line)
        assert isinstance(error, StartupError)
        assert error.code == -3

    @pytest.mark.parametrize("value", ["invalid", "", None, {}, 1234, STARTING])
    def test_unrecognized(self, value):
        assert parse_line(value) is None
