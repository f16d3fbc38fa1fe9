"""Tests for NutClient against an in-memory transport."""

import pytest

from nut_client import (
    BusyError,
    ConnectionListener,
    EmptyResponseError,
    MalformedResponseError,
    NutClient,
    ProtocolError,
    Range,
    Status,
    TransportError,
)


class RecordingListener(ConnectionListener):
    def __init__(self):
        self.events = []

    def on_connected(self):
        self.events.append(("connected",))

    def on_error(self, error):
        self.events.append(("error", error))

    def on_disconnected(self, had_error):
        self.events.append(("disconnected", had_error))


OPERATIONS = [
    ("list_ups", (), "LIST UPS\n"),
    ("list_vars", ("ups1",), "LIST VAR ups1\n"),
    ("list_rw_vars", ("ups1",), "LIST RW ups1\n"),
    ("list_commands", ("ups1",), "LIST CMD ups1\n"),
    ("list_enum", ("ups1", "input.transfer.low"), "LIST ENUM ups1 input.transfer.low\n"),
    ("list_range", ("ups1", "input.transfer.low"), "LIST RANGE ups1 input.transfer.low\n"),
    ("list_clients", ("ups1",), "LIST CLIENT ups1\n"),
    ("get_var", ("ups1", "ups.status"), "GET VAR ups1 ups.status\n"),
    ("get_var_type", ("ups1", "battery.charge"), "GET TYPE ups1 battery.charge\n"),
    ("get_var_description", ("ups1", "battery.charge"), "GET DESC ups1 battery.charge\n"),
    ("get_command_description", ("ups1", "load.off"), "GET CMDDESC ups1 load.off\n"),
    ("set_var", ("ups1", "input.transfer.low", "100"), "SET VAR ups1 input.transfer.low 100\n"),
    ("run_command", ("ups1", "beeper.mute"), "INSTCMD ups1 beeper.mute\n"),
    ("set_username", ("admin",), "USERNAME admin\n"),
    ("set_password", ("secret",), "PASSWORD secret\n"),
    ("login", ("ups1",), "LOGIN ups1\n"),
    ("master", ("ups1",), "MASTER ups1\n"),
    ("force_shutdown", ("ups1",), "FSD ups1\n"),
    ("help", (), "HELP\n"),
    ("version", (), "VER\n"),
    ("network_version", (), "NETVER\n"),
    ("logout", (), "LOGOUT\n"),
]


@pytest.mark.parametrize("method,args,line", OPERATIONS)
def test_operation_writes_one_line(client, transport, method, args, line):
    """Dispatch while idle writes exactly one line and waits."""
    getattr(client, method)(*args)
    assert transport.writes == [line]
    assert client.status is Status.WAITING


def test_connect_emits_connected(transport):
    client = NutClient("upsd.test")
    listener = RecordingListener()
    client.add_listener(listener)
    client._attach(transport)
    assert not client.connected
    assert client.connect() is None
    assert client.connected
    assert listener.events == [("connected",)]


def test_default_port():
    assert NutClient().port == 3493


def test_list_ups_roundtrip(client, transport):
    future = client.list_ups()
    transport.deliver('BEGIN LIST UPS\nUPS ups1 "Test UPS"\nEND LIST UPS\n')
    assert future.result(timeout=1) == {"ups1": "Test UPS"}
    assert client.status is Status.IDLE


def test_fragmented_reply(client, transport):
    """Nothing is parsed until the buffer ends with a newline."""
    future = client.get_var_type("ups1", "battery.charge")
    transport.deliver("TYPE ups1 batt")
    assert not future.done()
    transport.deliver("ery.charge ENUM\n")
    assert future.result(timeout=1) == "ENUM"


def test_list_range_result(client, transport):
    future = client.list_range("ups1", "input.transfer.low")
    transport.deliver('RANGE ups1 input.transfer.low "90" "105"\nEND LIST RANGE ups1 input.transfer.low\n')
    assert future.result(timeout=1) == [Range(min="90", max="105")]


def test_ack_success(client, transport):
    future = client.set_var("ups1", "input.transfer.low", "100")
    transport.deliver("OK SET-VAR\n")
    assert future.result(timeout=1) is None


def test_protocol_error_delivered(client, transport):
    future = client.run_command("ups1", "load.off")
    transport.deliver("ERR ACCESS-DENIED\n")
    with pytest.raises(ProtocolError) as exc_info:
        future.result(timeout=1)
    assert exc_info.value.code == "ACCESS-DENIED"
    assert client.status is Status.IDLE


def test_scalar_unknown_resolves_to_none(client, transport):
    future = client.get_var_description("ups1", "battery.charge")
    transport.deliver("UNEXPECTED\n")
    assert future.result(timeout=1) is None


def test_busy_second_request(client, transport):
    """A second request fails immediately and the first still completes."""
    first = client.list_ups()
    second = client.version()
    assert second.done()
    with pytest.raises(BusyError) as exc_info:
        second.result()
    assert str(exc_info.value) == "Other communication still running"
    assert transport.writes == ["LIST UPS\n"]

    transport.deliver('BEGIN LIST UPS\nUPS ups1 "Test UPS"\nEND LIST UPS\n')
    assert first.result(timeout=1) == {"ups1": "Test UPS"}


def test_callback_success(client, transport):
    results = []
    future = client.get_var_type("ups1", "battery.charge", callback=lambda res, err: results.append((res, err)))
    transport.deliver("TYPE ups1 battery.charge ENUM\n")
    assert results == [("ENUM", None)]
    assert future.result() == "ENUM"


def test_callback_busy_is_synchronous(client, transport):
    client.list_ups()
    results = []
    client.help(callback=lambda res, err: results.append((res, err)))
    assert len(results) == 1
    res, err = results[0]
    assert res is None
    assert isinstance(err, BusyError)


def test_callback_failure(client, transport):
    results = []
    client.force_shutdown("ups1", callback=lambda res, err: results.append((res, err)))
    transport.deliver("ERR ACCESS-DENIED\n")
    assert len(results) == 1
    assert results[0][0] is None
    assert str(results[0][1]) == "ACCESS-DENIED"


def test_callback_can_chain_next_request(client, transport):
    """The client is idle again by the time a completion callback runs."""
    chained = []

    def on_version(res, err):
        chained.append(client.network_version())

    client.version(callback=on_version)
    transport.deliver("Network UPS Tools upsd 2.8.0\n")
    assert transport.writes == ["VER\n", "NETVER\n"]
    transport.deliver("1.3\n")
    assert chained[0].result(timeout=1) == "1.3\n"


def test_empty_frame_never_reaches_grammar(client, transport):
    """An empty chunk does not end with a newline, so nothing completes."""
    future = client.help()
    transport.deliver("")
    assert not future.done()


def test_malformed_list_is_delivered_not_raised(client, transport):
    future = client.list_vars("ups1")
    transport.deliver("BEGIN LIST VAR ups1\nVAR broken\nEND LIST VAR ups1\n")
    with pytest.raises(MalformedResponseError):
        future.result(timeout=1)
    assert client.status is Status.IDLE


def test_unsolicited_frame_keeps_client_idle(client, transport):
    transport.deliver("OK\n")
    assert client.status is Status.IDLE


def test_disconnect_sends_logout_and_closes(client, transport):
    listener = RecordingListener()
    client.add_listener(listener)
    client.disconnect()
    assert transport.writes == ["LOGOUT\n"]
    assert transport.closed
    assert not client.connected
    assert client.status is Status.IDLE
    assert listener.events == [("disconnected", False)]


def test_disconnect_while_busy(client, transport):
    """LOGOUT is written anyway and the pending request fails on close."""
    pending = client.list_ups()
    client.disconnect()
    assert transport.writes == ["LIST UPS\n", "LOGOUT\n"]
    assert transport.closed
    with pytest.raises(TransportError):
        pending.result(timeout=1)
    assert client.status is Status.IDLE


def test_disconnect_when_not_connected(transport):
    client = NutClient("upsd.test")
    client._attach(transport)
    client.disconnect()
    assert transport.writes == []


def test_request_when_not_connected(transport):
    client = NutClient("upsd.test")
    client._attach(transport)
    future = client.list_ups()
    with pytest.raises(TransportError):
        future.result(timeout=1)
    assert client.status is Status.IDLE


def test_transport_failure_events(client, transport):
    listener = RecordingListener()
    client.add_listener(listener)
    pending = client.list_vars("ups1")
    transport.deliver("BEGIN LIST VAR ups1\n")
    boom = TransportError("connection reset")
    transport.fail(boom)

    assert listener.events == [("error", boom), ("disconnected", True)]
    assert not client.connected
    assert client.status is Status.IDLE
    assert client._assembler.pending == ""
    with pytest.raises(TransportError):
        pending.result(timeout=1)


def test_failing_listener_does_not_block_others(client, transport):
    class Broken(ConnectionListener):
        def on_disconnected(self, had_error):
            raise RuntimeError("listener bug")

    good = RecordingListener()
    client.add_listener(Broken())
    client.add_listener(good)
    client.disconnect()
    assert good.events == [("disconnected", False)]


def test_remove_listener(client, transport):
    listener = RecordingListener()
    client.add_listener(listener)
    client.remove_listener(listener)
    client.disconnect()
    assert listener.events == []


def test_argument_with_newline_rejected(client, transport):
    with pytest.raises(ValueError):
        client.run_command("ups1", "load.off\nFSD ups1")
    assert transport.writes == []
    assert client.status is Status.IDLE


def test_empty_response_error_type():
    assert str(EmptyResponseError()) == "Empty response"


class RacingTransport:
    """Lets another request slip in while disconnect() inspects the link."""

    def __init__(self, inner, intruder):
        self._inner = inner
        self._intruder = intruder

    @property
    def connected(self):
        self._intruder()
        return self._inner.connected

    def __getattr__(self, name):
        return getattr(self._inner, name)


def test_disconnect_writes_logout_when_request_slips_in(client, transport):
    """A request dispatched by another thread mid-disconnect cannot drop LOGOUT."""
    slipped = []
    client._transport = RacingTransport(transport, lambda: slipped.append(client.list_ups()))
    client.disconnect()
    assert transport.writes == ["LIST UPS\n", "LOGOUT\n"]
    assert transport.closed
    with pytest.raises(TransportError):
        slipped[0].result(timeout=1)


def test_listener_failure_is_logged_with_event_name(client, transport, caplog):
    class Broken(ConnectionListener):
        def on_error(self, error):
            raise RuntimeError("listener bug")

    good = RecordingListener()
    client.add_listener(Broken())
    client.add_listener(good)
    boom = TransportError("reset")
    with caplog.at_level("WARNING", logger="nut_client.client"):
        transport.fail(boom)
    assert good.events == [("error", boom), ("disconnected", True)]
    assert "on_error" in caplog.text


def test_duck_typed_listener_receives_events(transport):
    """Listeners need only the three event methods."""
    client = NutClient("upsd.test")
    client._attach(transport)
    seen = []

    class Plain:
        def on_connected(self):
            seen.append("connected")

        def on_error(self, error):
            seen.append("error")

        def on_disconnected(self, had_error):
            seen.append(("disconnected", had_error))

    client.add_listener(Plain())
    client.connect()
    client.disconnect()
    assert seen == ["connected", ("disconnected", False)]
