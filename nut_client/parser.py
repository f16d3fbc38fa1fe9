# NUT Client - Response Grammars
# Author: IntelligentToasters
# License: GNU General Public License v3.0
#
# Provides deterministic helpers for translating upsd reply frames into
# Python native values: list blocks, scalar GET replies and acknowledgements.
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

"""Parsing helpers for upsd reply frames.

Every grammar takes the full text of one frame and either returns the parsed
value or raises a NutError subclass. None of them touch connection state.

Key functions
- parse_list(data, kind) -> dict | list
    Scan a ``BEGIN LIST <kind>`` ... ``END LIST <kind>`` block. UPS, VAR and
    RW blocks produce a name -> value dict; CMD, ENUM and CLIENT produce a
    list of strings; RANGE produces a list of Range.

- parse_type / parse_description / parse_command_description / parse_var
    Single-line GET replies. Return the value, or None when the line is
    neither a match nor an ``ERR`` reply (the server does not know it).

- parse_ack(data) -> None
    Minimal result used by SET VAR, INSTCMD, USERNAME, PASSWORD, MASTER,
    LOGIN and LOGOUT.

- parse_fsd(data) -> None
    FSD reply; only ``OK FSD-SET`` is success.

- parse_text(data) -> str
    HELP, VER and NETVER replies, returned verbatim.

Notes and conventions
- An empty frame always raises EmptyResponseError.
- ``ERR`` replies raise ProtocolError with the text after the 4-character
  ``ERR `` prefix.
- Quoted fields may contain spaces; ``\\"`` and ``\\\\`` escapes are undone.
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Union

from .errors import (
    EmptyResponseError,
    IncompleteResponseError,
    MalformedResponseError,
    ProtocolError,
)

_TOKEN = r"(\S+)"
_SKIP = r"\S+"
_QUOTED = r'"((?:[^"\\]|\\.)*)"'
_ESCAPE_RE = re.compile(r"\\(.)")


@dataclass(frozen=True)
class Range:
    """One allowed interval from a ``LIST RANGE`` reply."""

    min: str
    max: str


# Field patterns for the lines inside each list block
LIST_PATTERNS: Dict[str, re.Pattern[str]] = {
    "UPS": re.compile(rf"^UPS\s+{_TOKEN}\s+{_QUOTED}"),
    "VAR": re.compile(rf"^VAR\s+{_SKIP}\s+{_TOKEN}\s+{_QUOTED}"),
    "RW": re.compile(rf"^RW\s+{_SKIP}\s+{_TOKEN}\s+{_QUOTED}"),
    "CMD": re.compile(rf"^CMD\s+{_SKIP}\s+{_TOKEN}"),
    "ENUM": re.compile(rf"^ENUM\s+{_SKIP}\s+{_SKIP}\s+{_QUOTED}"),
    "RANGE": re.compile(rf"^RANGE\s+{_SKIP}\s+{_SKIP}\s+{_QUOTED}\s+{_QUOTED}"),
    "CLIENT": re.compile(rf"^CLIENT\s+{_SKIP}\s+{_TOKEN}"),
}

MAPPING_KINDS = frozenset({"UPS", "VAR", "RW"})

_TYPE_RE = re.compile(rf"^TYPE\s+{_SKIP}\s+{_SKIP}\s+(\S[^\r\n]*)")
_DESC_RE = re.compile(rf"^DESC\s+{_SKIP}\s+{_SKIP}\s+{_QUOTED}")
_CMDDESC_RE = re.compile(rf"^CMDDESC\s+{_SKIP}\s+{_SKIP}\s+{_QUOTED}")
_VAR_RE = re.compile(rf"^VAR\s+{_SKIP}\s+{_SKIP}\s+{_QUOTED}")

ListResult = Union[Dict[str, str], List[str], List[Range]]


def unquote(value: str) -> str:
    """Undo upsd's backslash escaping inside a quoted field."""
    return _ESCAPE_RE.sub(r"\1", value)


def _error_message(line: str) -> str:
    return line[4:].rstrip("\r\n")


def _require_data(data: Optional[str]) -> str:
    if not data:
        raise EmptyResponseError()
    return data


def parse_list(data: Optional[str], kind: str) -> ListResult:
    """Parse a list block of the given kind.

    Raises ProtocolError on an ``ERR`` line (any partial collection is
    dropped), MalformedResponseError when a data line does not match the
    kind's pattern and IncompleteResponseError when the frame ends before
    ``END LIST <kind>``.
    """
    data = _require_data(data)
    try:
        pattern = LIST_PATTERNS[kind]
    except KeyError:
        raise ValueError(f"unknown list kind {kind!r}") from None

    begin = f"BEGIN LIST {kind}"
    end = f"END LIST {kind}"
    prefix = f"{kind} "

    mapping: Dict[str, str] = {}
    items: List[Any] = []
    for line in data.split("\n"):
        line = line.rstrip("\r")
        if line.startswith(begin):
            continue
        if line.startswith(prefix):
            m = pattern.match(line)
            if m is None:
                raise MalformedResponseError(kind, line)
            if kind in MAPPING_KINDS:
                mapping[m.group(1)] = unquote(m.group(2))
            elif kind == "RANGE":
                items.append(Range(min=unquote(m.group(1)), max=unquote(m.group(2))))
            elif kind == "ENUM":
                items.append(unquote(m.group(1)))
            else:
                items.append(m.group(1))
        elif line.startswith(end):
            return mapping if kind in MAPPING_KINDS else items
        elif line.startswith("ERR"):
            raise ProtocolError(_error_message(line))
    raise IncompleteResponseError(kind, data)


def _parse_scalar(data: Optional[str], pattern: re.Pattern[str], quoted: bool) -> Optional[str]:
    data = _require_data(data)
    m = pattern.match(data)
    if m is not None:
        value = m.group(1)
        return unquote(value) if quoted else value.rstrip()
    if data.startswith("ERR"):
        raise ProtocolError(_error_message(data))
    # neither a match nor an error: the server has no answer for it
    return None


def parse_type(data: Optional[str]) -> Optional[str]:
    """``TYPE <ups> <var> <type...>`` -> type descriptor, e.g. ``RW STRING:64``."""
    return _parse_scalar(data, _TYPE_RE, quoted=False)


def parse_description(data: Optional[str]) -> Optional[str]:
    return _parse_scalar(data, _DESC_RE, quoted=True)


def parse_command_description(data: Optional[str]) -> Optional[str]:
    return _parse_scalar(data, _CMDDESC_RE, quoted=True)


def parse_var(data: Optional[str]) -> Optional[str]:
    """``VAR <ups> <var> "<value>"`` reply to ``GET VAR``."""
    return _parse_scalar(data, _VAR_RE, quoted=True)


def parse_ack(data: Optional[str]) -> None:
    """Minimal result: raise on ``ERR``, otherwise succeed without a value."""
    data = _require_data(data)
    if data.startswith("ERR"):
        raise ProtocolError(_error_message(data))
    return None


def parse_fsd(data: Optional[str]) -> None:
    data = _require_data(data)
    if data.startswith("OK FSD-SET"):
        return None
    if data.startswith("ERR "):
        data = data[4:]
    raise ProtocolError(data.rstrip("\r\n"))


def parse_text(data: Optional[str]) -> str:
    return _require_data(data)


def list_grammar(kind: str) -> Callable[[Optional[str]], ListResult]:
    """Bind parse_list to one kind so it can be registered as a grammar."""
    if kind not in LIST_PATTERNS:
        raise ValueError(f"unknown list kind {kind!r}")

    def _grammar(data: Optional[str]) -> ListResult:
        return parse_list(data, kind)

    _grammar.__name__ = f"parse_list_{kind.lower()}"
    return _grammar
