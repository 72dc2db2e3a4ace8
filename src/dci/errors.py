# Copyright 2024 Michael Maillet, Damien Davison, Sacha Davison
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""
Exceptions raised while managing Docker Compose instances.

Usage:
    from dci.errors import CommandError, ResolutionError

    raise ResolutionError("web", "Cannot determine container Id for service: web")
"""
from enum import Enum
from typing import List, Optional


class ErrorCode(str, Enum):
    """
    Error codes.
    """
    COMMAND_FAILED = "COMMAND_FAILED"
    RESOLUTION_FAILED = "RESOLUTION_FAILED"
    MANIFEST_INVALID = "MANIFEST_INVALID"


class DciError(Exception):
    """
    Base exception for dci.

    Attributes:
        code: The error code from ErrorCode enum
        message: Human-readable error message
    """

    def __init__(self, code: ErrorCode, message: str):
        self.code = code
        self.message = message
        super().__init__(message)


class CommandError(DciError):
    """
    An external docker or compose invocation failed or could not be launched.
    """

    def __init__(self, command: List[str], exit_code: int, stderr: str = ""):
        self.command = list(command)
        self.exit_code = exit_code
        self.stderr = stderr
        message = f"Command '{' '.join(command)}' failed with exit code {exit_code}"
        if stderr.strip():
            message = f"{message}: {stderr.strip()}"
        super().__init__(ErrorCode.COMMAND_FAILED, message)


class ResolutionError(DciError):
    """
    A service could not be mapped to a live container and its ports.
    """

    def __init__(self, service_name: str, message: Optional[str] = None):
        self.service_name = service_name
        super().__init__(
            ErrorCode.RESOLUTION_FAILED,
            message or f"Cannot determine container Id for service: {service_name}",
        )


class ManifestError(DciError):
    """
    The compose file is missing or malformed.
    """

    def __init__(self, message: str):
        super().__init__(ErrorCode.MANIFEST_INVALID, message)
