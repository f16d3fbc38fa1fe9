#!/usr/bin/env python3
# NUT Client - MQTT Bridge
# Author: IntelligentToasters
# License: GNU General Public License v3.0
#
# Connects to a upsd server, polls the variables of one UPS, and publishes
# them to an MQTT broker. Instant commands received on a command topic are
# forwarded to the UPS.
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
MQTT bridge for a NUT UPS

Publishes:
- nut/<ups>/availability : "online" / "offline", driven by the client's
  lifecycle events
- nut/<ups>/state        : JSON object of every variable from LIST VAR

Subscribes:
- nut/<ups>/command      : payload is an instant command name (see LIST CMD),
  forwarded as INSTCMD. Requires --username/--password with instcmds rights.

Broker settings default to the NUT_MQTT_BROKER, NUT_MQTT_PORT,
NUT_MQTT_USERNAME and NUT_MQTT_PASSWORD environment variables.

Usage:
    scripts/mqtt_bridge.py --nut-host 192.168.1.10 --ups ups1 --interval 5
"""

import argparse
import concurrent.futures
import json
import logging
import os
import signal
import sys
import threading
import time

import paho.mqtt.client as mqtt

sys.path.insert(0, '.')

from nut_client import ConnectionListener, NutClient, NutError

log = logging.getLogger(__name__)

TOPIC_ROOT = "nut"
REQUEST_TIMEOUT = 5.0


class AvailabilityPublisher(ConnectionListener):
    """Mirror the upsd connection state onto the availability topic."""

    def __init__(self, bridge):
        self.bridge = bridge

    def on_connected(self):
        log.info("Connected to upsd at %s:%s", self.bridge.nut.host, self.bridge.nut.port)
        self.bridge.publish_availability(True)

    def on_error(self, error):
        log.warning("upsd connection error: %s", error)

    def on_disconnected(self, had_error):
        log.info("Disconnected from upsd (error: %s)", had_error)
        self.bridge.publish_availability(False)


class NutMQTTBridge:
    def __init__(self, ups, nut_host="127.0.0.1", nut_port=3493, broker="localhost", port=1883,
                 username=None, password=None, mqtt_username=None, mqtt_password=None):
        self.ups = ups
        self.broker = broker
        self.mqtt_port = port
        self.username = username
        self.password = password
        self.mqtt_username = mqtt_username
        self.mqtt_password = mqtt_password
        self.running = True

        self.availability_topic = f"{TOPIC_ROOT}/{ups}/availability"
        self.state_topic = f"{TOPIC_ROOT}/{ups}/state"
        self.command_topic = f"{TOPIC_ROOT}/{ups}/command"

        self.nut = NutClient(host=nut_host, port=nut_port)
        self.nut.add_listener(AvailabilityPublisher(self))

        # One request at a time: the poll loop and MQTT commands share the client
        self.nut_lock = threading.Lock()

        self.client = mqtt.Client(mqtt.CallbackAPIVersion.VERSION2, client_id=f"nut_bridge_{ups}")
        self.client.on_connect = self.on_connect
        self.client.on_disconnect = self.on_disconnect
        self.client.on_message = self.on_message

    def on_connect(self, client, userdata, connect_flags, reason_code, properties):
        """Callback for when the client connects to the broker"""
        if reason_code == 0:
            log.info(f"Connected to MQTT broker at {self.broker}:{self.mqtt_port}")
            self.client.subscribe(self.command_topic, qos=1)
            self.publish_availability(self.nut.connected)
        else:
            log.error(f"Failed to connect to MQTT broker, return code {reason_code}")

    def on_disconnect(self, client, userdata, disconnect_flags, reason_code, properties):
        log.info(f"Disconnected from MQTT broker (code: {reason_code})")

    def on_message(self, client, userdata, msg):
        """Forward a command topic message as an instant command."""
        command = msg.payload.decode('utf-8', errors='replace').strip()
        if not command or any(c.isspace() for c in command):
            log.warning(f"Invalid command payload on {msg.topic}: '{command}' (ignored)")
            return
        try:
            with self.nut_lock:
                self.nut.run_command(self.ups, command).result(timeout=REQUEST_TIMEOUT)
            log.info(f"Instant command {command}: OK")
        except NutError as exc:
            log.warning(f"Instant command {command} failed: {exc}")
        except concurrent.futures.TimeoutError:
            log.warning(f"Instant command {command}: no reply within {REQUEST_TIMEOUT}s")
            self.recover()

    def publish_availability(self, online):
        self.client.publish(self.availability_topic, "online" if online else "offline", qos=1, retain=True)
        log.debug(f"Published: {self.availability_topic} = {'online' if online else 'offline'}")

    def publish_state(self, variables):
        payload = json.dumps(variables, sort_keys=True)
        self.client.publish(self.state_topic, payload, qos=1, retain=True)
        log.debug(f"Published state with {len(variables)} variables")

    def login(self):
        """Send credentials so instant commands are permitted."""
        if not (self.username and self.password):
            return
        with self.nut_lock:
            self.nut.set_username(self.username).result(timeout=REQUEST_TIMEOUT)
            self.nut.set_password(self.password).result(timeout=REQUEST_TIMEOUT)
        log.debug("Sent upsd credentials")

    def recover(self):
        """Reconnect to upsd after a request went unanswered.

        The client has no request timeout and stays busy until the
        connection is dropped, so reopen it and log in again.
        """
        log.warning(f"Reconnecting to upsd at {self.nut.host}:{self.nut.port}")
        with self.nut_lock:
            self.nut.disconnect()
            self.nut.connect()
        if not self.nut.connected:
            log.error("upsd reconnect failed")
            return False
        try:
            self.login()
        except (NutError, concurrent.futures.TimeoutError) as e:
            log.error(f"upsd login failed: {e}")
            self.nut.disconnect()
            return False
        return True

    def connect(self):
        """Connect to upsd and the MQTT broker"""
        self.nut.connect()
        if not self.nut.connected:
            log.error(f"Failed to connect to upsd at {self.nut.host}:{self.nut.port}")
            return False
        try:
            self.login()
        except (NutError, concurrent.futures.TimeoutError) as e:
            log.error(f"upsd login failed: {e}")
            self.nut.disconnect()
            return False

        if self.mqtt_username and self.mqtt_password:
            self.client.username_pw_set(self.mqtt_username, self.mqtt_password)
        self.client.will_set(self.availability_topic, "offline", qos=1, retain=True)
        try:
            log.debug(f"Connecting to MQTT broker at {self.broker}:{self.mqtt_port}...")
            self.client.connect(self.broker, self.mqtt_port, keepalive=60)
            self.client.loop_start()
            return True
        except Exception as e:
            log.error(f"Failed to connect to MQTT broker: {e}")
            self.nut.disconnect()
            return False

    def disconnect(self):
        """Disconnect from MQTT broker and upsd"""
        log.info("Shutting down...")
        self.running = False
        self.nut.disconnect()
        self.client.publish(self.availability_topic, "offline", qos=1, retain=True)
        time.sleep(0.5)  # Give publish time to complete
        self.client.loop_stop()
        self.client.disconnect()

    def run(self, interval=5):
        """Main loop - poll LIST VAR and publish until stopped or upsd goes away"""
        if not self.connect():
            return
        log.info(f"Publishing {self.ups} variables every {interval} second(s)...")
        try:
            while self.running and self.nut.connected:
                try:
                    with self.nut_lock:
                        variables = self.nut.list_vars(self.ups).result(timeout=REQUEST_TIMEOUT)
                    self.publish_state(variables)
                except NutError as exc:
                    log.warning(f"LIST VAR {self.ups} failed: {exc}")
                except concurrent.futures.TimeoutError:
                    log.warning(f"LIST VAR {self.ups}: no reply within {REQUEST_TIMEOUT}s")
                    self.recover()
                time.sleep(interval)
        except KeyboardInterrupt:
            log.info("Interrupted by user")
        if self.running:
            self.disconnect()

    def signal_handler(self, sig, frame):
        """Handle termination signals gracefully"""
        self.disconnect()
        sys.exit(0)


def main():
    """Main entry point"""
    parser = argparse.ArgumentParser(description="MQTT bridge for a NUT UPS")
    parser.add_argument("--nut-host", default="127.0.0.1", help="upsd hostname or IP (default: 127.0.0.1)")
    parser.add_argument("--nut-port", default=3493, type=int, help="upsd port (default: 3493)")
    parser.add_argument("--ups", required=True, help="UPS name as known to upsd")
    parser.add_argument("--username", default=None, help="upsd username (needed for instant commands)")
    parser.add_argument("--password", default=None, help="upsd password")
    parser.add_argument("--broker", default=os.environ.get("NUT_MQTT_BROKER", "localhost"))
    parser.add_argument("--broker-port", default=int(os.environ.get("NUT_MQTT_PORT", "1883")), type=int)
    parser.add_argument("--interval", default=5, type=int, help="Publish interval in seconds (default: 5)")
    parser.add_argument("--verbose", action="store_true", help="Enable verbose (DEBUG) logging")
    args = parser.parse_args()

    log_level = logging.DEBUG if args.verbose else logging.WARNING
    log_format = '[%(asctime)s] %(levelname)s: %(message)s'
    logging.basicConfig(level=log_level, format=log_format, datefmt='%H:%M:%S')

    bridge = NutMQTTBridge(
        ups=args.ups,
        nut_host=args.nut_host,
        nut_port=args.nut_port,
        broker=args.broker,
        port=args.broker_port,
        username=args.username,
        password=args.password,
        mqtt_username=os.environ.get("NUT_MQTT_USERNAME"),
        mqtt_password=os.environ.get("NUT_MQTT_PASSWORD"),
    )

    signal.signal(signal.SIGINT, bridge.signal_handler)
    signal.signal(signal.SIGTERM, bridge.signal_handler)

    bridge.run(interval=args.interval)


if __name__ == "__main__":
    main()
