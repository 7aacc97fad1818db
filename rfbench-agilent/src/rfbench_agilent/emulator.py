"""Agilent E8257D emulator.

Provides an in-process SCPI emulator implementing the ``ScpiTransport``
protocol. It covers the subset of the E8257D command set used by
:class:`~rfbench_agilent.e8257d.E8257d`: identity, error queue, power unit,
CW frequency and power, RF output, list sweep points and local control.

Power replies honour the selected ``:UNIT:POW``, so a driver that forgets
to pin the unit reads back the wrong numbers, as it would on hardware.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Callable

# ---------------------------------------------------------------------------
# Long-form -> short-form SCPI keyword map
# ---------------------------------------------------------------------------

_LONG_TO_SHORT: dict[str, str] = {
    "FREQUENCY": "FREQ",
    "POWER": "POW",
    "OUTPUT": "OUTP",
    "SOURCE": "SOUR",
    "LEVEL": "LEV",
    "IMMEDIATE": "IMM",
    "AMPLITUDE": "AMPL",
    "STATE": "STAT",
    "FIXED": "FIX",
    "SYSTEM": "SYST",
    "ERROR": "ERR",
    "NEXT": "NEXT",
    "COMMUNICATE": "COMM",
    "GTLOCAL": "GTL",
}

# Segments that are optional and should be stripped during normalization
_OPTIONAL_SEGMENTS: set[str] = {"SOUR", "LEV", "IMM", "AMPL", "STAT", "CW", "FIX", "NEXT"}

# Offsets from dBm for the logarithmic units, 50 ohm system.
_LOG_UNIT_OFFSETS: dict[str, float] = {
    "DBM": 0.0,
    "DBUV": 106.98970004336019,
    "DBUVEMF": 113.01029995663981,
}
_LINEAR_UNITS: frozenset[str] = frozenset({"V", "VEMF"})
_IMPEDANCE_OHMS = 50.0

_COMMAND_ERROR = (-100, "Command error")
_PARAMETER_ERROR = (-224, "Illegal parameter value")
_DATA_OUT_OF_RANGE = (-222, "Data out of range")


def _normalize_header(header: str) -> str:
    """Normalize a SCPI header to canonical short form.

    1. Uppercase
    2. Strip leading colon
    3. Split on ``:``
    4. Map long forms to short forms
    5. Drop optional segments
    6. Rejoin with ``:``
    """
    upper = header.upper()
    if upper.startswith(":"):
        upper = upper[1:]
    segments = upper.split(":")
    short_segments = [_LONG_TO_SHORT.get(seg, seg) for seg in segments]
    filtered = [seg for seg in short_segments if seg not in _OPTIONAL_SEGMENTS]
    return ":".join(filtered)


def dbm_to_unit(dbm: float, unit: str) -> float:
    """Convert a dBm level to *unit* (``DBM``, ``DBUV``, ``DBUVEMF``, ``V``, ``VEMF``)."""
    if unit in _LOG_UNIT_OFFSETS:
        return dbm + _LOG_UNIT_OFFSETS[unit]
    volts = math.sqrt(_IMPEDANCE_OHMS * 10 ** ((dbm - 30.0) / 10.0))
    return 2.0 * volts if unit == "VEMF" else volts


def unit_to_dbm(value: float, unit: str) -> float:
    """Convert a level expressed in *unit* back to dBm."""
    if unit in _LOG_UNIT_OFFSETS:
        return value - _LOG_UNIT_OFFSETS[unit]
    volts = value / 2.0 if unit == "VEMF" else value
    if volts <= 0:
        raise ValueError("linear power level must be positive")
    return 10.0 * math.log10(volts**2 / _IMPEDANCE_OHMS) + 30.0


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class E8257dEmulatorConfig:
    """Configuration for an E8257D emulator instance.

    Args:
        identity: ``*IDN?`` response string.
        min_frequency: Lowest settable frequency in Hz (> 0).
        max_frequency: Highest settable frequency in Hz.
        min_power: Lowest settable power in dBm.
        max_power: Highest settable power in dBm.
    """

    identity: str
    min_frequency: float = 250e3
    max_frequency: float = 20e9
    min_power: float = -135.0
    max_power: float = 25.0

    def __post_init__(self) -> None:
        if not self.identity:
            raise ValueError("identity must be non-empty")
        if self.min_frequency <= 0:
            raise ValueError("min_frequency must be > 0")
        if self.max_frequency <= self.min_frequency:
            raise ValueError("max_frequency must be > min_frequency")
        if self.max_power <= self.min_power:
            raise ValueError("max_power must be > min_power")


# ---------------------------------------------------------------------------
# Internal instrument state
# ---------------------------------------------------------------------------


@dataclass
class _SourceState:
    frequency: float = 1e9
    power_dbm: float = -135.0
    power_unit: str = "DBM"
    output_enabled: bool = False
    remote: bool = True
    list_frequencies: list[float] = field(default_factory=lambda: [1e9])
    list_powers_dbm: list[float] = field(default_factory=lambda: [-135.0])


# ---------------------------------------------------------------------------
# Emulator
# ---------------------------------------------------------------------------


class E8257dEmulator:
    """In-process Agilent E8257D emulator implementing ``ScpiTransport``.

    Args:
        config: Emulator configuration specifying model characteristics.
    """

    def __init__(self, config: E8257dEmulatorConfig) -> None:
        self._config = config
        self._state = _SourceState(power_dbm=config.min_power, list_powers_dbm=[config.min_power])
        self._response_buffer: str = ""
        self._error_queue: list[tuple[int, str]] = []
        self._injected: dict[str, tuple[int, str]] = {}
        self._replies: dict[str, str] = {}
        self.history: list[str] = []
        self.closed: bool = False

        self._set_handlers: dict[str, Callable[[str], None]] = {
            "UNIT:POW": self._set_power_unit,
            "FREQ": self._set_frequency,
            "POW": self._set_power,
            "OUTP": self._set_output,
            "LIST:FREQ": self._set_list_frequencies,
            "LIST:POW": self._set_list_powers,
            "SYST:COMM:GTL": self._go_to_local,
        }

        self._query_handlers: dict[str, Callable[[], str]] = {
            "UNIT:POW?": lambda: self._state.power_unit,
            "FREQ?": lambda: f"{self._state.frequency:+.12E}",
            "POW?": self._get_power,
            "OUTP?": lambda: "1" if self._state.output_enabled else "0",
            "LIST:FREQ?": self._get_list_frequencies,
            "LIST:POW?": self._get_list_powers,
        }

    # -- Transport interface ------------------------------------------------

    def write(self, message: str) -> None:
        """Process a SCPI command or query string."""
        line = message.strip()
        if not line:
            return
        self.history.append(line)

        is_query, header, args = self._parse_line(line)

        if self._handle_common_command(header, is_query):
            return

        self._state.remote = True
        self._dispatch(header, args, is_query)

    def read(self) -> str:
        """Return and clear the buffered response."""
        resp = self._response_buffer
        self._response_buffer = ""
        return resp

    def close(self) -> None:
        """Close the emulator (no-op for in-process transport)."""
        self.closed = True

    # -- Test helpers -------------------------------------------------------

    @property
    def power_unit(self) -> str:
        """The currently selected power unit."""
        return self._state.power_unit

    @property
    def power_dbm(self) -> float:
        """The current CW power in dBm, independent of the selected unit."""
        return self._state.power_dbm

    @property
    def is_remote(self) -> bool:
        """False after ``:SYST:COMM:GTL`` until the next instrument command."""
        return self._state.remote

    @property
    def pending_errors(self) -> tuple[tuple[int, str], ...]:
        """Errors currently in the queue, oldest first."""
        return tuple(self._error_queue)

    def push_error(self, code: int, message: str) -> None:
        """Append an error to the queue as if the firmware had reported it."""
        self._error_queue.append((code, message))

    def fail_on(self, header: str, code: int = -221, message: str = "Settings conflict") -> None:
        """Queue an error every time *header* is received.

        The command itself is still carried out. *header* is matched after
        normalization, so ``":UNIT:POW"`` and ``"UNIT:POWER"`` are the same,
        and a query is given with its ``?``.
        """
        self._injected[self._injection_key(header)] = (code, message)

    def set_reply(self, header: str, reply: str) -> None:
        """Answer the query *header* with *reply* instead of the emulated value.

        Matched like :meth:`fail_on`. Injected errors still apply.
        """
        self._replies[self._injection_key(header)] = reply

    def clear_failures(self) -> None:
        """Remove every injected failure and reply override."""
        self._injected.clear()
        self._replies.clear()

    # -- Parsing ------------------------------------------------------------

    @staticmethod
    def _parse_line(line: str) -> tuple[bool, str, str]:
        """Parse a SCPI line into (is_query, header, args)."""
        is_query = "?" in line
        if is_query:
            qmark_idx = line.index("?")
            header = line[: qmark_idx + 1]
            args = line[qmark_idx + 1 :].strip()
        else:
            parts = line.split(None, 1)
            header = parts[0]
            args = parts[1] if len(parts) > 1 else ""
        return is_query, header, args

    @staticmethod
    def _injection_key(header: str) -> str:
        if header.endswith("?"):
            return _normalize_header(header.rstrip("?")) + "?"
        return _normalize_header(header)

    def _handle_common_command(self, header: str, is_query: bool) -> bool:
        """Handle IEEE 488.2 and SYST:ERR? commands. Returns True if handled."""
        upper_header = header.upper()
        if upper_header == "*IDN?":
            self._response_buffer = self._config.identity
            return True
        if upper_header == "*OPC?":
            self._response_buffer = "1"
            return True
        if upper_header == "*RST":
            self._reset()
            return True
        if upper_header == "*CLS":
            self._error_queue.clear()
            return True
        if is_query and _normalize_header(header.rstrip("?")) == "SYST:ERR":
            self._response_buffer = self._pop_error()
            return True
        return False

    def _dispatch(self, header: str, args: str, is_query: bool) -> None:
        """Dispatch a normalized command or query to handler tables."""
        key = self._injection_key(header)
        if is_query:
            handler = self._query_handlers.get(key)
            if handler is None:
                self._error_queue.append(_COMMAND_ERROR)
            else:
                reply = self._replies.get(key)
                self._response_buffer = handler() if reply is None else reply
        else:
            handler_set = self._set_handlers.get(key)
            if handler_set is None:
                self._error_queue.append(_COMMAND_ERROR)
            else:
                handler_set(args)
        injected = self._injected.get(key)
        if injected is not None:
            self._error_queue.append(injected)

    def _reset(self) -> None:
        self._state = _SourceState(
            power_dbm=self._config.min_power, list_powers_dbm=[self._config.min_power]
        )

    def _pop_error(self) -> str:
        if self._error_queue:
            code, msg = self._error_queue.pop(0)
            return f'{code},"{msg}"'
        return '+0,"No error"'

    def _parse_level(self, text: str) -> float | None:
        """Parse a power argument (``-10``, ``-10 DBM``, ``0.1 V``) to dBm."""
        parts = text.split()
        if not parts or len(parts) > 2:
            return None
        unit = parts[1].upper() if len(parts) == 2 else self._state.power_unit
        if unit not in _LOG_UNIT_OFFSETS and unit not in _LINEAR_UNITS:
            return None
        try:
            return unit_to_dbm(float(parts[0]), unit)
        except ValueError:
            return None

    # -- Set handlers -------------------------------------------------------

    def _set_power_unit(self, args: str) -> None:
        unit = args.strip().upper()
        if unit not in _LOG_UNIT_OFFSETS and unit not in _LINEAR_UNITS:
            self._error_queue.append(_PARAMETER_ERROR)
            return
        self._state.power_unit = unit

    def _set_frequency(self, args: str) -> None:
        try:
            value = float(args.strip())
        except ValueError:
            self._error_queue.append(_PARAMETER_ERROR)
            return
        if not self._config.min_frequency <= value <= self._config.max_frequency:
            self._error_queue.append(_DATA_OUT_OF_RANGE)
            return
        self._state.frequency = value

    def _set_power(self, args: str) -> None:
        dbm = self._parse_level(args.strip())
        if dbm is None:
            self._error_queue.append(_PARAMETER_ERROR)
            return
        if not self._config.min_power <= dbm <= self._config.max_power:
            self._error_queue.append(_DATA_OUT_OF_RANGE)
            return
        self._state.power_dbm = dbm

    def _set_output(self, args: str) -> None:
        token = args.strip().upper()
        if token in ("ON", "1"):
            self._state.output_enabled = True
        elif token in ("OFF", "0"):
            self._state.output_enabled = False
        else:
            self._error_queue.append(_PARAMETER_ERROR)

    def _set_list_frequencies(self, args: str) -> None:
        try:
            values = [float(p) for p in args.split(",")]
        except ValueError:
            self._error_queue.append(_PARAMETER_ERROR)
            return
        if any(not self._config.min_frequency <= v <= self._config.max_frequency for v in values):
            self._error_queue.append(_DATA_OUT_OF_RANGE)
            return
        self._state.list_frequencies = values

    def _set_list_powers(self, args: str) -> None:
        levels = [self._parse_level(p.strip()) for p in args.split(",")]
        if any(level is None for level in levels):
            self._error_queue.append(_PARAMETER_ERROR)
            return
        values = [level for level in levels if level is not None]
        if any(not self._config.min_power <= v <= self._config.max_power for v in values):
            self._error_queue.append(_DATA_OUT_OF_RANGE)
            return
        self._state.list_powers_dbm = values

    def _go_to_local(self, args: str) -> None:
        if args.strip():
            self._error_queue.append(_PARAMETER_ERROR)
            return
        self._state.remote = False

    # -- Query handlers -----------------------------------------------------

    def _format_power(self, dbm: float) -> str:
        return f"{dbm_to_unit(dbm, self._state.power_unit):+.8E}"

    def _get_power(self) -> str:
        return self._format_power(self._state.power_dbm)

    def _get_list_frequencies(self) -> str:
        return ",".join(f"{f:+.12E}" for f in self._state.list_frequencies)

    def _get_list_powers(self) -> str:
        return ",".join(self._format_power(p) for p in self._state.list_powers_dbm)


# ---------------------------------------------------------------------------
# Factory functions
# ---------------------------------------------------------------------------


def make_e8257d_emulator(serial: str = "MY00000001", model: str = "E8257D") -> E8257dEmulator:
    """Create an E8257D emulator (250 kHz to 20 GHz, -135 dBm to +25 dBm).

    Args:
        serial: Serial number for the ``*IDN?`` response.
        model: Model field for the ``*IDN?`` response, to emulate a
            different instrument answering at the address.

    Returns:
        Configured emulator instance.
    """
    config = E8257dEmulatorConfig(identity=f"Agilent Technologies,{model},{serial},C.06.10")
    return E8257dEmulator(config)
