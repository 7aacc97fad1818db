"""Tests for the E8257D driver using a scripted mock transport."""

from __future__ import annotations

import logging
import sys
import threading
from collections import deque
from unittest.mock import MagicMock, patch

import pytest

from rfbench_core.errors import StateError
from rfbench_scpi.codec import parse_number
from rfbench_scpi.connection import ScpiConnection
from rfbench_scpi.errors import (
    ScpiCommandError,
    ScpiResponseError,
    ScpiTransportError,
    UnexpectedModelError,
)

from rfbench_agilent.amplitude import Amplitude
from rfbench_agilent.e8257d import (
    E8257d,
    SessionState,
    connect,
    connect_transport,
    disconnect,
)

# ---------------------------------------------------------------------------
# Mock transport
# ---------------------------------------------------------------------------


class MockTransport:
    """In-memory transport that replays pre-loaded responses."""

    def __init__(self, responses: list[str] | None = None) -> None:
        self.responses: deque[str] = deque(responses or [])
        self.written: list[str] = []
        self.closed: bool = False

    def write(self, message: str) -> None:
        self.written.append(message)

    def read(self) -> str:
        if not self.responses:
            raise ScpiTransportError("read timed out")
        return self.responses.popleft()

    def close(self) -> None:
        self.closed = True


NO_ERROR = '+0,"No error"'
ERR = "SYST:ERR?"
IDN = "Agilent,E8257D,SN123,1.0"


def _source(*responses: str) -> tuple[E8257d, MockTransport]:
    transport = MockTransport(list(responses))
    return E8257d(ScpiConnection(transport)), transport


def _unit_writes(original: str, key: str = ":POW?") -> list[str]:
    """Expected wire traffic of a successful amplitude transaction."""
    return [
        ":UNIT:POW?", ERR,
        ":UNIT:POW DBM", ERR,
        key, ERR,
        f":UNIT:POW {original}", ERR,
    ]


# ---------------------------------------------------------------------------
# Checked operations
# ---------------------------------------------------------------------------


class TestCheckedOperations:
    """Tests for post/set/set_sequence/query/query_sequence on the driver."""

    def test_post(self) -> None:
        source, transport = _source(NO_ERROR)
        source.post("*CLS")
        assert transport.written == ["*CLS", ERR]

    def test_set(self) -> None:
        source, transport = _source(NO_ERROR)
        source.set(":FREQ", 1e9)
        assert transport.written == [":FREQ 1000000000.0", ERR]

    def test_set_device_error(self) -> None:
        source, _ = _source('-222,"Data out of range"', NO_ERROR)
        with pytest.raises(ScpiCommandError) as exc_info:
            source.set(":FREQ", 1e12)
        assert exc_info.value.errors[0].code == -222

    def test_set_sequence(self) -> None:
        source, transport = _source(NO_ERROR)
        source.set_sequence(":LIST:DWEL", [1, 2])
        assert transport.written == [":LIST:DWEL 1,2", ERR]

    def test_query(self) -> None:
        source, _ = _source("+2.4E+09", NO_ERROR)
        assert source.query(parse_number, ":FREQ") == 2.4e9

    def test_query_sequence(self) -> None:
        source, _ = _source("1,2,3", NO_ERROR)
        assert source.query_sequence(parse_number, ":LIST:FREQ") == (1.0, 2.0, 3.0)


# ---------------------------------------------------------------------------
# Amplitude unit transaction
# ---------------------------------------------------------------------------


class TestQueryAmplitude:
    """Tests for the amplitude unit transaction."""

    def test_starting_in_dbm(self) -> None:
        source, transport = _source("DBM", NO_ERROR, NO_ERROR, "-10.0", NO_ERROR, NO_ERROR)
        assert source.query_amplitude(":POW") == Amplitude(-10.0)
        assert transport.written == _unit_writes("DBM")

    def test_starting_in_watt_restores_watt(self) -> None:
        source, transport = _source("WATT", NO_ERROR, NO_ERROR, "-10.0", NO_ERROR, NO_ERROR)
        assert source.query_amplitude(":POW") == Amplitude(-10.0)
        assert transport.written == _unit_writes("WATT")

    def test_sequence(self) -> None:
        source, transport = _source("V", NO_ERROR, NO_ERROR, "-10,-20.5", NO_ERROR, NO_ERROR)
        result = source.query_amplitude_sequence(":LIST:POW")
        assert result == (Amplitude(-10.0), Amplitude(-20.5))
        assert transport.written == _unit_writes("V", ":LIST:POW?")

    def test_unit_query_failure_changes_nothing(self) -> None:
        source, transport = _source('""')
        with pytest.raises(ScpiResponseError):
            source.query_amplitude(":POW")
        assert transport.written == [":UNIT:POW?"]

    def test_pin_failure_still_restores(self) -> None:
        source, transport = _source(
            "V", NO_ERROR,
            '-224,"Illegal parameter value"', NO_ERROR,
            NO_ERROR, NO_ERROR,
        )
        with pytest.raises(ScpiCommandError):
            source.query_amplitude(":POW")
        assert transport.written[-2:] == [":UNIT:POW V", ERR]

    def test_device_error_in_query_restores_unit(self) -> None:
        source, transport = _source(
            "V", NO_ERROR,
            NO_ERROR,
            "-10.0", '-221,"Settings conflict"', NO_ERROR,
            NO_ERROR, NO_ERROR,
        )
        with pytest.raises(ScpiCommandError) as exc_info:
            source.query_amplitude(":POW")
        assert exc_info.value.errors[0].code == -221
        assert transport.written[-2:] == [":UNIT:POW V", ERR]

    def test_parse_failure_restores_unit(self) -> None:
        source, transport = _source("V", NO_ERROR, NO_ERROR, "garbage", NO_ERROR, NO_ERROR)
        with pytest.raises(ScpiResponseError):
            source.query_amplitude(":POW")
        assert transport.written[-2:] == [":UNIT:POW V", ERR]

    def test_restore_failure_after_failure_keeps_original_error(
        self, caplog: pytest.LogCaptureFixture
    ) -> None:
        source, _ = _source(
            "V", NO_ERROR,
            NO_ERROR,
            "garbage",
            NO_ERROR,
            '-221,"Settings conflict"', NO_ERROR,
        )
        with caplog.at_level(logging.WARNING, logger="rfbench_agilent.e8257d"):
            with pytest.raises(ScpiResponseError):
                source.query_amplitude(":POW")
        assert "Failed to restore power unit to V" in caplog.text

    def test_restore_failure_after_success_raises(self) -> None:
        source, _ = _source(
            "V", NO_ERROR,
            NO_ERROR,
            "-10.0", NO_ERROR,
            '-221,"Settings conflict"', NO_ERROR,
        )
        with pytest.raises(ScpiCommandError):
            source.query_amplitude(":POW")

    def test_interrupt_inside_block_restores_unit(self) -> None:
        source, transport = _source("VEMF", NO_ERROR, NO_ERROR, NO_ERROR, NO_ERROR)
        with pytest.raises(KeyboardInterrupt):
            with source.power_unit() as original:
                assert original == "VEMF"
                raise KeyboardInterrupt
        assert transport.written[-2:] == [":UNIT:POW VEMF", ERR]

    def test_reply_in_other_unit_rejected(self) -> None:
        source, _ = _source("DBM", NO_ERROR, NO_ERROR, "0.07 V", NO_ERROR, NO_ERROR)
        with pytest.raises(ScpiResponseError):
            source.query_amplitude(":POW")

    def test_parse_failure_reports_queued_errors_before_restore(
        self, caplog: pytest.LogCaptureFixture
    ) -> None:
        source, transport = _source(
            "V", NO_ERROR,
            NO_ERROR,
            "garbage",
            '-221,"Settings conflict"', NO_ERROR,
            NO_ERROR,
        )
        with caplog.at_level(logging.WARNING, logger="rfbench_agilent.e8257d"):
            with pytest.raises(ScpiResponseError) as exc_info:
                source.query_amplitude(":POW")
        assert [e.code for e in exc_info.value.device_errors] == [-221]
        assert "Settings conflict" in caplog.text
        assert "Failed to restore" not in caplog.text
        assert transport.written[-4:] == [ERR, ERR, ":UNIT:POW V", ERR]


# ---------------------------------------------------------------------------
# Initialisation
# ---------------------------------------------------------------------------


class TestInitialise:
    """Tests for the initialisation checks."""

    def test_success(self) -> None:
        source, transport = _source(IDN, NO_ERROR)
        source.initialise()
        assert source.state is SessionState.VERIFIED
        assert transport.written == ["*IDN?", ERR]

    def test_unexpected_model_short_circuits(self) -> None:
        source, transport = _source("Agilent,E4438C,SN123,1.0", NO_ERROR)
        with pytest.raises(UnexpectedModelError) as exc_info:
            source.initialise()
        assert exc_info.value.expected == "E8257D"
        assert exc_info.value.actual == "E4438C"
        assert transport.written == ["*IDN?"]
        assert source.state is SessionState.UNCHECKED
        assert transport.closed is False

    def test_custom_expected_model(self) -> None:
        transport = MockTransport(["Agilent,E8267D,SN1,1.0", NO_ERROR])
        source = E8257d(ScpiConnection(transport), expected_model="E8267D")
        source.initialise()
        assert source.state is SessionState.VERIFIED

    def test_queued_errors_fail(self) -> None:
        source, _ = _source(IDN, '-310,"System error"', NO_ERROR)
        with pytest.raises(ScpiCommandError):
            source.initialise()
        assert source.state is SessionState.UNCHECKED

    def test_malformed_identity(self) -> None:
        source, _ = _source("garbage")
        with pytest.raises(ScpiResponseError):
            source.initialise()


class TestConnect:
    """Tests for connect, connect_transport and disconnect."""

    def test_connect_transport(self) -> None:
        transport = MockTransport([IDN, NO_ERROR])
        source = connect_transport(transport)
        assert source.state is SessionState.VERIFIED

    def test_connect_transport_closes_on_failure(self) -> None:
        transport = MockTransport(["Agilent,E4438C,SN123,1.0"])
        with pytest.raises(UnexpectedModelError):
            connect_transport(transport)
        assert transport.closed is True

    def test_connect_over_visa(self) -> None:
        mock_pyvisa = MagicMock()
        resource = mock_pyvisa.ResourceManager.return_value.open_resource.return_value
        resource.read.side_effect = [IDN, NO_ERROR]
        with patch.dict(sys.modules, {"pyvisa": mock_pyvisa}):
            source = connect("TCPIP::192.168.1.50::INSTR", 3000)
        assert source.state is SessionState.VERIFIED
        assert resource.timeout == 3000
        assert [c.args[0] for c in resource.write.call_args_list] == ["*IDN?", ERR]

    def test_disconnect(self) -> None:
        source, transport = _source(NO_ERROR)
        disconnect(source)
        assert transport.written == [":SYST:COMM:GTL", ERR]
        assert transport.closed is True
        assert source.state is SessionState.CLOSED

    def test_disconnect_closes_even_if_local_control_fails(self) -> None:
        source, transport = _source('-100,"Command error"', NO_ERROR)
        with pytest.raises(ScpiCommandError):
            disconnect(source)
        assert transport.written[0] == ":SYST:COMM:GTL"
        assert transport.closed is True

    def test_close_idempotent(self) -> None:
        source, _ = _source()
        source.close()
        source.close()
        assert source.state is SessionState.CLOSED


# ---------------------------------------------------------------------------
# Session guard
# ---------------------------------------------------------------------------


class TestSessionGuard:
    """Tests for the single-operation-in-flight guard."""

    def test_closed_session_rejects_operations(self) -> None:
        source, transport = _source()
        source.close()
        with pytest.raises(StateError, match="closed"):
            source.post("*CLS")
        assert transport.written == []

    def test_concurrent_operation_rejected(self) -> None:
        source, transport = _source("V", NO_ERROR, NO_ERROR, NO_ERROR)
        entered = threading.Event()
        release = threading.Event()

        def hold_transaction() -> None:
            with source.power_unit():
                entered.set()
                release.wait(timeout=5)

        worker = threading.Thread(target=hold_transaction)
        worker.start()
        try:
            assert entered.wait(timeout=5)
            with pytest.raises(StateError, match="in progress"):
                source.post("*CLS")
        finally:
            release.set()
            worker.join(timeout=5)
        assert "*CLS" not in transport.written
        assert transport.written[-2:] == [":UNIT:POW V", ERR]

    def test_close_during_operation_rejected(self) -> None:
        source, transport = _source("V", NO_ERROR, NO_ERROR, NO_ERROR)
        entered = threading.Event()
        release = threading.Event()

        def hold_transaction() -> None:
            with source.power_unit():
                entered.set()
                release.wait(timeout=5)

        worker = threading.Thread(target=hold_transaction)
        worker.start()
        try:
            assert entered.wait(timeout=5)
            with pytest.raises(StateError, match="in progress"):
                source.close()
            assert transport.closed is False
        finally:
            release.set()
            worker.join(timeout=5)
        assert transport.written[-2:] == [":UNIT:POW V", ERR]
        source.close()
        assert transport.closed is True


# ---------------------------------------------------------------------------
# Typed helpers
# ---------------------------------------------------------------------------


class TestTypedHelpers:
    """Tests for the typed convenience methods."""

    def test_set_amplitude_sends_explicit_unit(self) -> None:
        source, transport = _source(NO_ERROR)
        source.set_amplitude(Amplitude(-12.5))
        assert transport.written[0] == ":POW -12.5 DBM"

    def test_output(self) -> None:
        source, transport = _source(NO_ERROR, "1", NO_ERROR)
        source.enable_output()
        assert source.is_output_enabled() is True
        assert transport.written[0] == ":OUTP 1"

    def test_get_identity_is_checked(self) -> None:
        source, transport = _source(IDN, NO_ERROR)
        assert source.get_identity().serial == "SN123"
        assert transport.written == ["*IDN?", ERR]

    def test_set_amplitude_list_pins_unit(self) -> None:
        source, transport = _source("V", NO_ERROR, NO_ERROR, NO_ERROR, NO_ERROR)
        source.set_amplitude_list([Amplitude(-10.0), Amplitude(-20.0)])
        assert transport.written == [
            ":UNIT:POW?", ERR,
            ":UNIT:POW DBM", ERR,
            ":LIST:POW -10.0,-20.0", ERR,
            ":UNIT:POW V", ERR,
        ]
