# NUT Client - TCP Transport
# Author: IntelligentToasters
# License: GNU General Public License v3.0
#
# Provides TcpTransport: owns the socket to upsd and a background reader
# thread, and reports connect, data, error and close through callbacks.
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

"""nut_client.transport

TcpTransport keeps one TCP connection open and pushes whatever it reads to
its owner. It knows nothing about frames or commands.

Callbacks (assign before calling `open`)
- on_connect(): the socket is connected; fired before the reader thread
  starts, so it always precedes on_data and on_close
- on_data(text): a decoded chunk arrived; chunks do not follow line
  boundaries
- on_error(exc): a TransportError describing a socket failure
- on_close(had_error): the socket is gone; called once per open

Design notes
- `open` blocks until the connection is established or has failed. A
  failure is reported through on_error followed by on_close(True); `open`
  itself does not raise.
- `close` half-closes the socket (like a FIN after the last request) so any
  request written just before still reaches the server, then waits briefly
  for the reader to observe the server closing its end.
- Writes are guarded by `self._lock`; reads only happen on the reader thread.
"""
from __future__ import annotations

import logging
import socket
import threading
from typing import Callable, Optional

from .errors import TransportError

log = logging.getLogger(__name__)

CONNECT_TIMEOUT = 10.0
CLOSE_TIMEOUT = 2.0
RECV_SIZE = 4096
ENCODING = "ascii"


class TcpTransport:
    """Persistent TCP connection with a background reader thread."""

    def __init__(self, host: str, port: int, connect_timeout: float = CONNECT_TIMEOUT):
        self.host = host
        self.port = port
        self._connect_timeout = float(connect_timeout)

        self.on_connect: Optional[Callable[[], None]] = None
        self.on_data: Optional[Callable[[str], None]] = None
        self.on_error: Optional[Callable[[Exception], None]] = None
        self.on_close: Optional[Callable[[bool], None]] = None

        self._sock: Optional[socket.socket] = None
        self._lock = threading.Lock()
        self._thread: Optional[threading.Thread] = None
        self._connected = False
        self._closing = False

    @property
    def connected(self) -> bool:
        return self._connected

    def open(self) -> bool:
        """Connect to host:port. Returns True when connected."""
        if self._thread is not None and self._thread.is_alive():
            return self._connected
        log.debug("connecting to %s:%s", self.host, self.port)
        try:
            sock = socket.create_connection((self.host, self.port), timeout=self._connect_timeout)
        except OSError as exc:
            log.debug("connect to %s:%s failed: %s", self.host, self.port, exc)
            self._emit(self.on_error, TransportError(f"connect to {self.host}:{self.port} failed: {exc}"))
            self._emit(self.on_close, True)
            return False

        # blocking reads from here on; there is no request timeout
        sock.settimeout(None)
        with self._lock:
            self._sock = sock
            self._connected = True
            self._closing = False
        log.debug("connected to %s:%s", self.host, self.port)
        # on_connect must precede anything the reader reports, on_close included
        self._emit(self.on_connect)
        self._thread = threading.Thread(target=self._read_loop, args=(sock,), daemon=True, name="nut-reader")
        self._thread.start()
        return True

    def write(self, data: str) -> None:
        """Send ``data``. Raises TransportError if not connected or on failure."""
        with self._lock:
            if self._sock is None or not self._connected:
                raise TransportError("Not connected")
            try:
                self._sock.sendall(data.encode(ENCODING))
            except (OSError, UnicodeEncodeError) as exc:
                raise TransportError(f"write failed: {exc}") from exc

    def close(self) -> None:
        """Close the connection. Safe to call when already closed."""
        with self._lock:
            sock = self._sock
            if sock is None:
                return
            self._closing = True
            self._connected = False
        try:
            sock.shutdown(socket.SHUT_WR)
        except OSError as exc:
            log.debug("shutdown(SHUT_WR) failed: %s", exc)

        thread = self._thread
        if thread is None or thread is threading.current_thread():
            return
        thread.join(timeout=CLOSE_TIMEOUT)
        if thread.is_alive():
            # the server did not close its end; unblock the reader
            log.debug("server did not close within %.1fs, forcing", CLOSE_TIMEOUT)
            try:
                sock.shutdown(socket.SHUT_RDWR)
            except OSError:
                pass
            thread.join(timeout=CLOSE_TIMEOUT)

    def _read_loop(self, sock: socket.socket) -> None:
        had_error = False
        try:
            while True:
                try:
                    chunk = sock.recv(RECV_SIZE)
                except OSError as exc:
                    if self._closing:
                        break
                    log.debug("socket error while reading: %s", exc)
                    had_error = True
                    self._connected = False
                    self._emit(self.on_error, TransportError(str(exc)))
                    break
                if not chunk:
                    log.debug("connection closed by peer")
                    break
                self._emit(self.on_data, chunk.decode(ENCODING, errors="replace"))
        finally:
            with self._lock:
                self._connected = False
                self._sock = None
            try:
                sock.close()
            except OSError:
                pass
            self._emit(self.on_close, had_error)

    @staticmethod
    def _emit(callback, *args) -> None:
        if callback is not None:
            callback(*args)
