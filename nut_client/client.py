# NUT Client - Connection Manager
# Author: IntelligentToasters
# License: GNU General Public License v3.0
#
# Provides the NutClient class: owns the TCP connection to a upsd server,
# surfaces its lifecycle as events and exposes the protocol operations.
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

"""nut_client.client

NutClient: a client for the Network UPS Tools ``upsd`` text protocol over a
single persistent TCP connection.

High-level responsibilities
- Own the transport and report its lifecycle to ConnectionListener objects
  (`on_connected`, `on_error`, `on_disconnected`).
- Turn inbound text into frames (FrameAssembler) and hand each frame to the
  request waiting for it (CommandDispatcher).
- Offer one method per protocol operation. Each builds the command line,
  pairs it with its grammar and returns a `concurrent.futures.Future`.

Completion
- Every operation returns a Future. Pass ``callback`` to receive
  ``callback(result, error)`` instead; it is attached to the same Future, so
  both styles see the same single outcome.
- Only one request may be outstanding. A second one fails immediately with
  BusyError ("Other communication still running"); nothing is queued.
- There is no request timeout. Use ``future.result(timeout=...)`` to bound a
  wait; a server that stops answering leaves the client busy until
  `disconnect` is called.

Usage::

    client = NutClient("192.168.1.10")
    client.connect()
    print(client.list_vars("ups1").result(timeout=5))
    client.disconnect()
"""
from __future__ import annotations

import logging
import threading
from concurrent.futures import Future
from typing import Any, Callable, Dict, List, Optional

from . import commands
from . import parser
from .dispatcher import CommandDispatcher, Grammar, Request, Status
from .errors import TransportError
from .events import ConnectionListener
from .framing import FrameAssembler, TERMINATOR
from .parser import Range
from .transport import TcpTransport

log = logging.getLogger(__name__)

DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 3493

Callback = Callable[[Any, Optional[BaseException]], None]


def _adapt_callback(callback: Callback) -> Callable[["Future[Any]"], None]:
    def _done(future: "Future[Any]") -> None:
        if future.cancelled():
            return
        error = future.exception()
        if error is not None:
            callback(None, error)
        else:
            callback(future.result(), None)

    return _done


class NutClient:
    """Client for one upsd server.

    Only ``host`` and ``port`` are configurable. Call `connect` before
    issuing requests and `disconnect` when done.
    """

    def __init__(self, host: str = DEFAULT_HOST, port: int = DEFAULT_PORT):
        self.host = host
        self.port = int(port)

        self._listeners: List[ConnectionListener] = []
        self._listeners_lock = threading.Lock()
        self._connected = False

        self._assembler = FrameAssembler()
        self._dispatcher = CommandDispatcher(self._write)
        self._transport = None
        self._attach(TcpTransport(self.host, self.port))

    def _attach(self, transport) -> None:
        """Wire a transport's callbacks to this client."""
        transport.on_connect = self._handle_connect
        transport.on_data = self._handle_data
        transport.on_error = self._handle_error
        transport.on_close = self._handle_close
        self._transport = transport

    # Lifecycle
    @property
    def connected(self) -> bool:
        return self._connected

    @property
    def status(self) -> Status:
        return self._dispatcher.status

    def add_listener(self, listener: ConnectionListener) -> None:
        with self._listeners_lock:
            if listener not in self._listeners:
                self._listeners.append(listener)

    def remove_listener(self, listener: ConnectionListener) -> None:
        with self._listeners_lock:
            if listener in self._listeners:
                self._listeners.remove(listener)

    def connect(self) -> None:
        """Block until the connection is established.

        A failure is reported through the listeners' `on_error` and
        `on_disconnected(True)`; check `connected` afterwards.
        """
        self._transport.open()

    def disconnect(self) -> None:
        """Send LOGOUT without waiting for its reply, then close.

        LOGOUT is written directly, bypassing the busy check, so it goes out
        even when another request is outstanding; that request then fails
        with TransportError once the connection closes. The reply to LOGOUT
        is discarded.
        """
        if self._transport.connected:
            logout = commands.build_command(commands.LOGOUT)
            log.debug("sending %s (status %s)", logout, self._dispatcher.status.value)
            try:
                self._write(logout + TERMINATOR)
            except TransportError as exc:
                log.debug("LOGOUT not sent: %s", exc)
        self._transport.close()

    def _write(self, line: str) -> None:
        self._transport.write(line)

    def _notify(self, event: Callable[[ConnectionListener], None], name: str) -> None:
        with self._listeners_lock:
            listeners = list(self._listeners)
        for listener in listeners:
            try:
                event(listener)
            except Exception:
                log.warning("listener %r failed in %s", listener, name, exc_info=True)

    def _handle_connect(self) -> None:
        self._connected = True
        self._notify(lambda listener: listener.on_connected(), "on_connected")

    def _handle_data(self, chunk: str) -> None:
        frame = self._assembler.feed(chunk)
        if frame is not None:
            self._dispatcher.complete(frame)

    def _handle_error(self, error: Exception) -> None:
        self._connected = False
        self._notify(lambda listener: listener.on_error(error), "on_error")

    def _handle_close(self, had_error: bool) -> None:
        self._connected = False
        self._assembler.clear()
        self._dispatcher.reset(TransportError("Connection closed"))
        self._notify(lambda listener: listener.on_disconnected(had_error), "on_disconnected")

    # Request plumbing
    def _request(self, grammar: Grammar, verb: str, *args: object,
                 callback: Optional[Callback] = None) -> "Future[Any]":
        command = commands.build_command(verb, *args)
        request = Request(command, grammar)
        if callback is not None:
            request.future.add_done_callback(_adapt_callback(callback))
        self._dispatcher.send(command, request)
        return request.future

    # LIST operations
    def list_ups(self, callback: Optional[Callback] = None) -> "Future[Dict[str, str]]":
        """UPS name -> description for every device the server knows."""
        return self._request(parser.list_grammar("UPS"), commands.LIST_UPS, callback=callback)

    def list_vars(self, ups: str, callback: Optional[Callback] = None) -> "Future[Dict[str, str]]":
        return self._request(parser.list_grammar("VAR"), commands.LIST_VAR, ups, callback=callback)

    def list_rw_vars(self, ups: str, callback: Optional[Callback] = None) -> "Future[Dict[str, str]]":
        """Writable variables of ``ups`` with their current values."""
        return self._request(parser.list_grammar("RW"), commands.LIST_RW, ups, callback=callback)

    def list_commands(self, ups: str, callback: Optional[Callback] = None) -> "Future[List[str]]":
        return self._request(parser.list_grammar("CMD"), commands.LIST_CMD, ups, callback=callback)

    def list_enum(self, ups: str, name: str,
                  callback: Optional[Callback] = None) -> "Future[List[str]]":
        """Allowed values of the enumerated variable ``name``."""
        return self._request(parser.list_grammar("ENUM"), commands.LIST_ENUM, ups, name,
                             callback=callback)

    def list_range(self, ups: str, name: str,
                   callback: Optional[Callback] = None) -> "Future[List[Range]]":
        return self._request(parser.list_grammar("RANGE"), commands.LIST_RANGE, ups, name,
                             callback=callback)

    def list_clients(self, ups: str, callback: Optional[Callback] = None) -> "Future[List[str]]":
        """Addresses of the clients logged in to ``ups``."""
        return self._request(parser.list_grammar("CLIENT"), commands.LIST_CLIENT, ups,
                             callback=callback)

    # GET operations; an unknown answer resolves to None
    def get_var(self, ups: str, name: str,
                callback: Optional[Callback] = None) -> "Future[Optional[str]]":
        return self._request(parser.parse_var, commands.GET_VAR, ups, name, callback=callback)

    def get_var_type(self, ups: str, name: str,
                     callback: Optional[Callback] = None) -> "Future[Optional[str]]":
        return self._request(parser.parse_type, commands.GET_TYPE, ups, name, callback=callback)

    def get_var_description(self, ups: str, name: str,
                            callback: Optional[Callback] = None) -> "Future[Optional[str]]":
        return self._request(parser.parse_description, commands.GET_DESC, ups, name,
                             callback=callback)

    def get_command_description(self, ups: str, command: str,
                                callback: Optional[Callback] = None) -> "Future[Optional[str]]":
        return self._request(parser.parse_command_description, commands.GET_CMDDESC, ups, command,
                             callback=callback)

    # Acknowledged operations; success resolves to None
    def set_var(self, ups: str, name: str, value: object,
                callback: Optional[Callback] = None) -> "Future[None]":
        """Set the read-write variable ``name``. Needs a privileged login."""
        return self._request(parser.parse_ack, commands.SET_VAR, ups, name, value,
                             callback=callback)

    def run_command(self, ups: str, command: str,
                    callback: Optional[Callback] = None) -> "Future[None]":
        """Run the instant command ``command`` (see `list_commands`)."""
        return self._request(parser.parse_ack, commands.INSTCMD, ups, command, callback=callback)

    def set_username(self, username: str, callback: Optional[Callback] = None) -> "Future[None]":
        return self._request(parser.parse_ack, commands.USERNAME, username, callback=callback)

    def set_password(self, password: str, callback: Optional[Callback] = None) -> "Future[None]":
        return self._request(parser.parse_ack, commands.PASSWORD, password, callback=callback)

    def login(self, ups: str, callback: Optional[Callback] = None) -> "Future[None]":
        """Register this connection as a client of ``ups``."""
        return self._request(parser.parse_ack, commands.LOGIN, ups, callback=callback)

    def master(self, ups: str, callback: Optional[Callback] = None) -> "Future[None]":
        """Declare this client the primary controller of ``ups``."""
        return self._request(parser.parse_ack, commands.MASTER, ups, callback=callback)

    def force_shutdown(self, ups: str, callback: Optional[Callback] = None) -> "Future[None]":
        """Set the forced shutdown flag on ``ups``; only ``OK FSD-SET`` succeeds."""
        return self._request(parser.parse_fsd, commands.FSD, ups, callback=callback)

    def logout(self, callback: Optional[Callback] = None) -> "Future[None]":
        return self._request(parser.parse_ack, commands.LOGOUT, callback=callback)

    # Server information, returned verbatim
    def help(self, callback: Optional[Callback] = None) -> "Future[str]":
        return self._request(parser.parse_text, commands.HELP, callback=callback)

    def version(self, callback: Optional[Callback] = None) -> "Future[str]":
        return self._request(parser.parse_text, commands.VER, callback=callback)

    def network_version(self, callback: Optional[Callback] = None) -> "Future[str]":
        return self._request(parser.parse_text, commands.NETVER, callback=callback)
