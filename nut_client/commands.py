# NUT Client - Command Builders
# Author: IntelligentToasters
# License: GNU General Public License v3.0
#
# Protocol verbs understood by upsd and the helper that serializes a verb and
# its arguments into a single request line.
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

"""Request line construction.

A request is one line: the verb followed by space separated arguments. The
line terminator is added by the dispatcher, so a built command never contains
one. Arguments with spaces, quotes or backslashes are quoted the way upsd
expects (``"..."`` with ``\\"`` and ``\\\\`` escapes).
"""
from __future__ import annotations

import re

LIST_UPS = "LIST UPS"
LIST_VAR = "LIST VAR"
LIST_RW = "LIST RW"
LIST_CMD = "LIST CMD"
LIST_ENUM = "LIST ENUM"
LIST_RANGE = "LIST RANGE"
LIST_CLIENT = "LIST CLIENT"
GET_VAR = "GET VAR"
GET_TYPE = "GET TYPE"
GET_DESC = "GET DESC"
GET_CMDDESC = "GET CMDDESC"
SET_VAR = "SET VAR"
INSTCMD = "INSTCMD"
USERNAME = "USERNAME"
PASSWORD = "PASSWORD"
LOGIN = "LOGIN"
MASTER = "MASTER"
FSD = "FSD"
HELP = "HELP"
VER = "VER"
NETVER = "NETVER"
LOGOUT = "LOGOUT"

# Verbs whose arguments must never show up in logs
SENSITIVE_VERBS = frozenset({PASSWORD})

_NEEDS_QUOTING = re.compile(r'[\s"\\]')


def quote(value: str) -> str:
    """Quote ``value`` if upsd would otherwise split or misread it."""
    if value and not _NEEDS_QUOTING.search(value):
        return value
    escaped = value.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


def build_command(verb: str, *args: object) -> str:
    """Build a request line (without terminator).

    Raises:
        ValueError: if an argument contains a line terminator.
    """
    parts = [verb]
    for arg in args:
        text = str(arg)
        if "\n" in text or "\r" in text:
            raise ValueError(f"argument for {verb} contains a line terminator: {text!r}")
        parts.append(quote(text))
    return " ".join(parts)


def redact(command: str) -> str:
    """Return ``command`` with sensitive arguments masked, for logging."""
    for verb in SENSITIVE_VERBS:
        if command.startswith(verb + " "):
            return f"{verb} ****"
    return command
