# NUT Client - Lifecycle Events
# Author: IntelligentToasters
# License: GNU General Public License v3.0
#
# Listener interface for connection lifecycle notifications.
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

"""Connection lifecycle listener.

Subclass ConnectionListener and override the events you care about, then
register it with `NutClient.add_listener`. Events are delivered on the thread
that observed the transition (the caller of `connect` for establishment and
failures to connect, the reader thread for everything afterwards).
"""
from __future__ import annotations


class ConnectionListener:
    """Receives the three connection lifecycle events. All are no-ops."""

    def on_connected(self) -> None:
        """The TCP connection is established."""

    def on_error(self, error: Exception) -> None:
        """The transport failed; the client is no longer connected."""

    def on_disconnected(self, had_error: bool) -> None:
        """The transport closed; ``had_error`` tells whether a failure caused it."""
