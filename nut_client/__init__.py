# NUT Client - UPS Monitoring Protocol Library
# Author: IntelligentToasters
# License: GNU General Public License v3.0
#
# This module provides a lightweight client for the Network UPS Tools (upsd)
# line-oriented text protocol over a persistent TCP connection.
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

"""NUT client package

This package provides a small client for querying and controlling UPS
devices through a Network UPS Tools ``upsd`` server. It exposes:

- `NutClient`: owns the TCP connection, reports connect/error/disconnect to
  `ConnectionListener` objects and offers the protocol operations (LIST, GET,
  SET, INSTCMD, USERNAME/PASSWORD, LOGIN, MASTER, FSD, HELP, VER, NETVER,
  LOGOUT). Every operation returns a `concurrent.futures.Future` and accepts
  an optional ``callback(result, error)``.
- `parser`: the response grammars, usable on their own.
- The `NutError` hierarchy delivered through futures and listener events.

The library has no third-party dependencies so it can be embedded in CLIs
or long-running services. The MQTT bridge under scripts/ needs the ``mqtt``
extra (paho-mqtt).
"""

from .client import NutClient, DEFAULT_HOST, DEFAULT_PORT
from .dispatcher import Status
from .errors import (
    NutError,
    TransportError,
    ProtocolError,
    BusyError,
    EmptyResponseError,
    MalformedResponseError,
    IncompleteResponseError,
)
from .events import ConnectionListener
from .parser import Range

__all__ = [
    "NutClient",
    "DEFAULT_HOST",
    "DEFAULT_PORT",
    "Status",
    "ConnectionListener",
    "Range",
    "NutError",
    "TransportError",
    "ProtocolError",
    "BusyError",
    "EmptyResponseError",
    "MalformedResponseError",
    "IncompleteResponseError",
]
__version__ = "0.1.0"
