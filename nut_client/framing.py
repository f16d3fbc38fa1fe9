# NUT Client - Frame Assembly
# Author: IntelligentToasters
# License: GNU General Public License v3.0
#
# Accumulates text received from upsd and decides when a complete response
# frame is available for the registered grammar.
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

"""nut_client.framing

FrameAssembler collects inbound chunks and releases the whole buffer as one
frame as soon as it ends with a line terminator.

Known limitation
- Completion is decided on the position of the trailing terminator, not on
  the ``BEGIN LIST``/``END LIST`` markers. A list reply split by the network
  exactly at a line boundary is released before its ``END LIST`` line has
  arrived; the list grammars report that case as IncompleteResponseError.
"""
from __future__ import annotations

from typing import Optional

TERMINATOR = "\n"


class FrameAssembler:
    """Line-terminator based frame assembler."""

    def __init__(self) -> None:
        self._buffer = ""

    @property
    def pending(self) -> str:
        """Text received but not yet released as a frame."""
        return self._buffer

    def feed(self, chunk: str) -> Optional[str]:
        """Append ``chunk``; return the complete frame or None.

        The buffer is cleared exactly when a frame is returned.
        """
        self._buffer += chunk
        if not self._buffer.endswith(TERMINATOR):
            return None
        frame, self._buffer = self._buffer, ""
        return frame

    def clear(self) -> None:
        self._buffer = ""
