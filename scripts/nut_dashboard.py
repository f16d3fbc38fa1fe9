#!/usr/bin/env python3
# NUT Client - Terminal Dashboard
# Author: IntelligentToasters
# License: GNU General Public License v3.0
#
# Provides a lightweight terminal dashboard displaying the variables of one
# UPS served by upsd, refreshed periodically, together with the connection
# status reported by the client's lifecycle events.
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
"""
NUT CLI Dashboard

Displays:
- Server version and connection status
- Selected UPS variables (charge, runtime, load, voltages, status)
- All remaining variables when --all is given

The dashboard issues one request at a time (LIST VAR) and waits for its
Future before the next redraw, so it never trips the client's busy check.

Usage:
    scripts/nut_dashboard.py --host 192.168.1.10 --ups ups1
"""
from __future__ import annotations

import argparse
import concurrent.futures
import logging
import signal
import sys
import threading
from datetime import datetime

sys.path.insert(0, '.')

from nut_client import ConnectionListener, NutClient, NutError

log = logging.getLogger(__name__)

# Variables shown at the top of the dashboard, in order
DEFAULT_VARS = [
    "ups.status",
    "battery.charge",
    "battery.runtime",
    "ups.load",
    "input.voltage",
    "output.voltage",
    "battery.voltage",
    "ups.temperature",
]

LABELS = {
    "ups.status": "Status",
    "battery.charge": "Battery Charge",
    "battery.runtime": "Remaining Runtime",
    "ups.load": "Load",
    "input.voltage": "Input Voltage",
    "output.voltage": "Output Voltage",
    "battery.voltage": "Battery Voltage",
    "ups.temperature": "Temperature",
}

UNITS = {
    "battery.charge": "%",
    "battery.runtime": "s",
    "ups.load": "%",
    "input.voltage": "V",
    "output.voltage": "V",
    "battery.voltage": "V",
    "ups.temperature": "°C",
}

# ups.status flags
STATUS_FLAGS = {
    "OL": "online",
    "OB": "on battery",
    "LB": "low battery",
    "HB": "high battery",
    "RB": "replace battery",
    "CHRG": "charging",
    "DISCHRG": "discharging",
    "BYPASS": "bypass",
    "CAL": "calibrating",
    "OFF": "offline",
    "OVER": "overloaded",
    "TRIM": "trimming",
    "BOOST": "boosting",
    "FSD": "forced shutdown",
}


class StatusTracker(ConnectionListener):
    """Keeps the latest connection state for display."""

    def __init__(self):
        self.connected = False
        self.last_error = None
        self.changed = threading.Event()

    def on_connected(self):
        self.connected = True
        self.last_error = None
        self.changed.set()

    def on_error(self, error):
        self.connected = False
        self.last_error = str(error)
        self.changed.set()

    def on_disconnected(self, had_error):
        self.connected = False
        if not had_error and self.last_error is None:
            self.last_error = "connection closed"
        self.changed.set()


def clear_screen():
    sys.stdout.write('\x1b[2J\x1b[H')


def format_status(raw):
    flags = [STATUS_FLAGS.get(f, f) for f in raw.split()]
    return f"{raw} ({', '.join(flags)})" if flags else raw


def format_val(name, val):
    if val is None:
        return "-"
    if name == "ups.status":
        return format_status(val)
    if name == "battery.runtime":
        try:
            seconds = int(float(val))
        except ValueError:
            return val
        return f"{seconds // 60} min {seconds % 60} s"
    unit = UNITS.get(name, '')
    return f"{val} {unit}".strip()


def fetch_vars(client, ups, timeout):
    """LIST VAR with a bounded wait.

    The client has no request timeout, so an unanswered request would keep it
    busy forever. On timeout the connection is dropped and reopened before
    the TimeoutError is re-raised.
    """
    try:
        return client.list_vars(ups).result(timeout=timeout)
    except concurrent.futures.TimeoutError:
        log.warning("LIST VAR %s: no reply within %ss, reconnecting", ups, timeout)
        client.disconnect()
        client.connect()
        raise


def main():
    parser = argparse.ArgumentParser(description="Terminal dashboard for a NUT UPS")
    parser.add_argument("--host", default="127.0.0.1")
    parser.add_argument("--port", default=3493, type=int)
    parser.add_argument("--ups", default=None, help="UPS name (default: first one listed by the server)")
    parser.add_argument("--interval", default=2.0, type=float, help="Refresh interval in seconds")
    parser.add_argument("--timeout", default=5.0, type=float, help="Per-request timeout in seconds")
    parser.add_argument("--all", action="store_true", help="Show every variable, not just the summary")
    parser.add_argument("--verbose", action="store_true", help="Enable verbose (DEBUG) logging output")
    args = parser.parse_args()

    logging.basicConfig(level=(logging.DEBUG if args.verbose else logging.INFO))
    # Silence library logs by default (be chatty only with --verbose)
    pkg_log = logging.getLogger('nut_client')
    pkg_log.setLevel(logging.DEBUG if args.verbose else logging.WARNING)

    client = NutClient(host=args.host, port=args.port)
    tracker = StatusTracker()
    client.add_listener(tracker)
    client.connect()
    if not client.connected:
        print(f"Unable to connect to {args.host}:{args.port}: {tracker.last_error}")
        return 1

    stop = threading.Event()

    def handle_exit(signum=None, frame=None):
        stop.set()

    signal.signal(signal.SIGINT, handle_exit)
    try:
        signal.signal(signal.SIGTERM, handle_exit)
    except Exception:
        pass

    try:
        version = client.version().result(timeout=args.timeout).strip()
        ups = args.ups
        if ups is None:
            devices = client.list_ups().result(timeout=args.timeout)
            if not devices:
                print("Server reports no UPS devices")
                client.disconnect()
                return 1
            ups = sorted(devices)[0]
    except (NutError, concurrent.futures.TimeoutError) as exc:
        print(f"Initial query failed: {exc}")
        client.disconnect()
        return 1

    last_error = None
    try:
        while not stop.is_set():
            variables = {}
            if tracker.connected:
                try:
                    variables = fetch_vars(client, ups, args.timeout)
                    last_error = None
                except NutError as exc:
                    last_error = str(exc)
                except concurrent.futures.TimeoutError:
                    last_error = f"no reply within {args.timeout}s"

            clear_screen()
            print(f"NUT Dashboard - {ups}@{args.host}:{args.port}")
            print("=" * 40)
            print(f"  Server    : {version}")
            conn_text = "connected" if tracker.connected else (tracker.last_error or "disconnected")
            print(f"  Connection: {conn_text}")
            if last_error:
                print(f"  Last error: {last_error}")

            print("\nSummary:")
            for name in DEFAULT_VARS:
                if name in variables:
                    print(f"  {LABELS.get(name, name):18}: {format_val(name, variables[name])}")

            if args.all:
                print("\nAll variables:")
                for name in sorted(variables):
                    print(f"  {name:32} {variables[name]}")

            print(f"\nUpdated {datetime.now().strftime('%H:%M:%S')} - Ctrl+C to quit")

            if not tracker.connected:
                break
            stop.wait(args.interval)
    finally:
        client.disconnect()
    return 0


if __name__ == "__main__":
    sys.exit(main())
