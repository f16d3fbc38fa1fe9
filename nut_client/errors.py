# NUT Client - Error Types
# Author: IntelligentToasters
# License: GNU General Public License v3.0
#
# Defines the exception hierarchy raised by the response grammars and
# delivered through request futures and lifecycle events.
#
# This program is free software: you can redistribute it and/or modify
# it under the terms of the GNU General Public License as published by
# the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.
#
# This program is distributed in the hope that it will be useful,
# but WITHOUT ANY WARRANTY; without even the implied warranty of
# MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE.  See the
# GNU General Public License for more details.
#
# You should have received a copy of the GNU General Public License
# along with this program.  If not, see <https://www.gnu.org/licenses/>.

"""Exception hierarchy for the NUT client.

- `TransportError`: socket failures and unexpected closure. Delivered to the
  lifecycle `on_error` event, or to a pending request when the connection
  goes away underneath it.
- `ProtocolError`: the server answered ``ERR <message>``.
- `BusyError`: a request was attempted while another one is outstanding.
- `EmptyResponseError`: a grammar was handed an empty frame.
- `MalformedResponseError`: a list line did not match its kind's pattern.
"""
from __future__ import annotations

from typing import Dict, Optional

BUSY_MESSAGE = "Other communication still running"
EMPTY_MESSAGE = "Empty response"

# Error codes documented for upsd; used for ProtocolError.description
ERROR_DESCRIPTIONS: Dict[str, str] = {
    "ACCESS-DENIED": "The client's host and/or authentication details are not sufficient",
    "UNKNOWN-UPS": "The UPS specified in the request is not known to upsd",
    "VAR-NOT-SUPPORTED": "The variable is not supported by the UPS",
    "CMD-NOT-SUPPORTED": "The instant command is not supported by the UPS",
    "INVALID-ARGUMENT": "The client sent an argument that upsd could not parse",
    "INSTCMD-FAILED": "upsd failed to deliver the instant command",
    "SET-FAILED": "upsd failed to deliver the set request",
    "READONLY": "The variable is not writable",
    "TOO-LONG": "The value is too long for the variable",
    "FEATURE-NOT-SUPPORTED": "The server does not support this feature",
    "FEATURE-NOT-CONFIGURED": "The feature is supported but not configured",
    "ALREADY-SSL-MODE": "TLS mode is already enabled",
    "DRIVER-NOT-CONNECTED": "upsd cannot talk to the driver for this UPS",
    "DATA-STALE": "upsd is connected to the driver but the data is stale",
    "ALREADY-LOGGED-IN": "The client already sent LOGIN for a UPS",
    "INVALID-PASSWORD": "The password is not valid",
    "ALREADY-SET-PASSWORD": "The client already set a PASSWORD",
    "INVALID-USERNAME": "The username is not valid",
    "ALREADY-SET-USERNAME": "The client already set a USERNAME",
    "USERNAME-REQUIRED": "The requested command requires a username",
    "PASSWORD-REQUIRED": "The requested command requires a password",
    "UNKNOWN-COMMAND": "upsd does not recognize the command",
    "INVALID-VALUE": "The value is not valid for the variable",
}


class NutError(Exception):
    """Base class for every error raised by the NUT client."""


class TransportError(NutError):
    """The TCP connection failed or closed."""


class ProtocolError(NutError):
    """The server replied with an ``ERR`` line."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    @property
    def code(self) -> str:
        parts = self.message.split(None, 1)
        return parts[0] if parts else ""

    @property
    def description(self) -> Optional[str]:
        return ERROR_DESCRIPTIONS.get(self.code)


class BusyError(NutError):
    """A request was issued while another one is still outstanding."""

    def __init__(self, message: str = BUSY_MESSAGE):
        super().__init__(message)


class EmptyResponseError(NutError):
    def __init__(self, message: str = EMPTY_MESSAGE):
        super().__init__(message)


class MalformedResponseError(NutError):
    """A reply line did not have the shape its list kind requires."""

    def __init__(self, kind: str, line: str, message: Optional[str] = None):
        super().__init__(message or f"malformed {kind} line: {line!r}")
        self.kind = kind
        self.line = line


class IncompleteResponseError(MalformedResponseError):
    """A list frame ended without its ``END LIST`` marker or an ``ERR`` line."""

    def __init__(self, kind: str, data: str):
        super().__init__(kind, data, f"no END LIST {kind} in response")
