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

from enum import IntEnum


class ErrorCode(IntEnum):
    ADDRESS_IN_USE = -1
    PERMISSION_DENIED = -2
    STARTUP_FAILURE = -3
    PROCESS_ERROR = -4


class MongodError(Exception):
    """Base exception for all mongod lifecycle errors."""

    def __init__(self, message: str, code: ErrorCode | None = None):
        super().__init__(message)
        self.message = message
        self.code = code or self.default_code

    @property
    def default_code(self) -> ErrorCode:
        """Default error code for this exception type."""
        return ErrorCode.STARTUP_FAILURE


class AddressInUseError(MongodError):
    """The requested port is already bound by another process."""

    def __init__(self, message: str = "Address already in use"):
        super().__init__(message)

    @property
    def default_code(self) -> ErrorCode:
        return ErrorCode.ADDRESS_IN_USE


class PermissionDeniedError(MongodError):
    """The server was not allowed to bind its socket (e.g. a privileged port)."""

    def __init__(self, message: str = "Permission denied"):
        super().__init__(message)

    @property
    def default_code(self) -> ErrorCode:
        return ErrorCode.PERMISSION_DENIED


class StartupError(MongodError):
    """The server reported an error, exception or bad value while starting."""


class ProcessError(MongodError):
    """Failure of the process itself rather than something it reported."""

    def __init__(self, message: str, exit_code: int | None = None):
        super().__init__(message)
        self.exit_code = exit_code

    @property
    def default_code(self) -> ErrorCode:
        return ErrorCode.PROCESS_ERROR


_ERRORS_BY_CODE: dict[ErrorCode, type[MongodError]] = {
    ErrorCode.ADDRESS_IN_USE: AddressInUseError,
    ErrorCode.PERMISSION_DENIED: PermissionDeniedError,
    ErrorCode.STARTUP_FAILURE: StartupError,
    ErrorCode.PROCESS_ERROR: ProcessError,
}


def error_for_code(code: ErrorCode, message: str) -> MongodError:
    """Build the exception type registered for ``code``."""
    return _ERRORS_BY_CODE[code](message)
