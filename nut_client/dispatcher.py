# NUT Client - Command Dispatcher
# Author: IntelligentToasters
# License: GNU General Public License v3.0
#
# Enforces the single-outstanding-request discipline of the upsd protocol and
# binds each request to the grammar that interprets its reply.
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

"""nut_client.dispatcher

Request: one command paired with its grammar and a completion future.

CommandDispatcher: a two-state automaton.

- IDLE -> WAITING on `send`: the request is registered, then the command
  line is written.
- WAITING -> IDLE on `complete` (a frame arrived), on a failed write, or on
  `reset` (the connection went away).

There is no queue. A request sent while WAITING fails at once with
BusyError and never reaches the transport; callers serialize their own
requests, for example by chaining on the returned futures.

Thread safety
- `send` runs on the caller's thread and `complete` on the transport reader
  thread. State changes are guarded by `self._lock` (an RLock); grammars and
  completion callbacks run outside the lock so they may issue the next
  request straight away.
"""
from __future__ import annotations

import enum
import logging
import threading
from concurrent.futures import Future
from typing import Any, Callable, Optional

from .commands import redact
from .errors import BusyError, NutError, TransportError
from .framing import TERMINATOR

log = logging.getLogger(__name__)

Grammar = Callable[[Optional[str]], Any]


class Status(enum.Enum):
    IDLE = "idle"
    WAITING = "waiting"


class Request:
    """A command awaiting its reply.

    The future is the only completion primitive; callback style callers are
    served by attaching an adapter to it (see `NutClient`).
    """

    def __init__(self, command: str, grammar: Grammar):
        self.command = command
        self.grammar = grammar
        self.future: "Future[Any]" = Future()

    def complete(self, frame: str) -> None:
        """Run the grammar on ``frame`` and resolve the future exactly once."""
        if self.future.done():
            # cancelled by the caller
            return
        try:
            result = self.grammar(frame)
        except NutError as exc:
            log.debug("%s failed: %s", redact(self.command), exc)
            self.future.set_exception(exc)
        else:
            self.future.set_result(result)

    def fail(self, exc: BaseException) -> None:
        if not self.future.done():
            self.future.set_exception(exc)

    def __repr__(self) -> str:
        return f"Request({redact(self.command)!r})"


class CommandDispatcher:
    """Serialize requests against one writable transport.

    ``write`` is called with the full line, terminator included, and is
    expected to raise TransportError when the line cannot be sent.
    """

    def __init__(self, write: Callable[[str], None]):
        self._write = write
        self._lock = threading.RLock()
        self._status = Status.IDLE
        self._request: Optional[Request] = None

    @property
    def status(self) -> Status:
        return self._status

    @property
    def pending(self) -> Optional[Request]:
        return self._request

    def send(self, command: str, request: Optional[Request] = None) -> bool:
        """Dispatch ``command`` if no other request is outstanding.

        Returns True when the line was written. When the dispatcher is busy
        the request (if any) fails synchronously with BusyError.
        """
        with self._lock:
            busy = self._status is Status.WAITING
            if not busy:
                self._status = Status.WAITING
                self._request = request

        if busy:
            log.debug("rejecting %s: request still outstanding", redact(command))
            if request is not None:
                request.fail(BusyError())
            return False

        log.debug("sending %s", redact(command))
        try:
            self._write(command + TERMINATOR)
        except TransportError as exc:
            log.debug("write of %s failed: %s", redact(command), exc)
            self.reset(exc)
            return False
        return True

    def complete(self, frame: str) -> None:
        """Hand a complete frame to the registered request."""
        with self._lock:
            request = self._request
            self._request = None
            self._status = Status.IDLE
        if request is None:
            log.debug("discarding unsolicited frame: %r", frame)
            return
        request.complete(frame)

    def reset(self, error: Optional[BaseException] = None) -> None:
        """Return to IDLE, failing the pending request with ``error``."""
        with self._lock:
            request = self._request
            self._request = None
            self._status = Status.IDLE
        if request is not None:
            request.fail(error or TransportError("Connection closed"))
