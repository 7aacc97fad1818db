"""Agilent E8257D PSG signal generator driver.

Wraps a :class:`ScpiConnection` with the checked operations of
:mod:`rfbench_scpi.checked`, the amplitude unit transaction, and the
connect/initialise/disconnect lifecycle.

Every public method is a checked operation: when it returns, the
instrument accepted the request and its error queue is empty.

Example::

    from rfbench_agilent import connect, disconnect

    source = connect("TCPIP::192.168.1.50::INSTR", timeout_ms=3000)
    source.set_frequency(2.4e9)
    print(source.get_amplitude())
    disconnect(source)
"""

from __future__ import annotations

import functools
import logging
import threading
from contextlib import contextmanager
from enum import Enum
from typing import Any, Callable, Iterable, Iterator, TypeVar

from rfbench_core.errors import StateError
from rfbench_core.identity import InstrumentIdentity
from rfbench_scpi import checked
from rfbench_scpi.codec import parse_bool, parse_number, parse_text
from rfbench_scpi.connection import ScpiConnection, parse_idn_response
from rfbench_scpi.errors import ScpiError, ScpiResponseError, UnexpectedModelError
from rfbench_scpi.transport import ScpiTransport
from rfbench_scpi.visa import VisaResource

from rfbench_agilent.amplitude import CANONICAL_UNIT, Amplitude, parse_amplitude

logger = logging.getLogger(__name__)

T = TypeVar("T")
F = TypeVar("F", bound=Callable[..., Any])

MODEL = "E8257D"

IDENTITY_KEY = "*IDN"
POWER_UNIT_KEY = ":UNIT:POW"
LOCAL_CONTROL_KEY = ":SYST:COMM:GTL"
FREQUENCY_KEY = ":FREQ"
POWER_KEY = ":POW"
OUTPUT_KEY = ":OUTP"
LIST_FREQUENCY_KEY = ":LIST:FREQ"
LIST_POWER_KEY = ":LIST:POW"


class SessionState(Enum):
    """Lifecycle of a driver session."""

    UNCHECKED = "unchecked"
    VERIFIED = "verified"
    CLOSED = "closed"


def _session_operation(method: F) -> F:
    """Run a driver method under the session guard."""

    @functools.wraps(method)
    def wrapper(self: E8257d, *args: Any, **kwargs: Any) -> Any:
        with self._exclusive():
            return method(self, *args, **kwargs)

    return wrapper  # type: ignore[return-value]


class E8257d:
    """High-level driver for the Agilent E8257D.

    Only one operation may run on a session at a time. Nested calls from the
    thread that owns the current operation are allowed; a call from any
    other thread while an operation is in flight raises :class:`StateError`
    instead of interleaving exchanges on the wire.

    Args:
        connection: An open ``ScpiConnection`` to the instrument.
        expected_model: Model string :meth:`initialise` accepts.
    """

    def __init__(self, connection: ScpiConnection, *, expected_model: str = MODEL) -> None:
        self._conn = connection
        self._expected_model = expected_model
        self._state = SessionState.UNCHECKED
        self._lock = threading.RLock()

    @property
    def connection(self) -> ScpiConnection:
        """The underlying SCPI connection."""
        return self._conn

    @property
    def state(self) -> SessionState:
        """Current lifecycle state."""
        return self._state

    @property
    def expected_model(self) -> str:
        """Model string accepted by the identity check."""
        return self._expected_model

    @contextmanager
    def _exclusive(self) -> Iterator[None]:
        if self._state is SessionState.CLOSED:
            raise StateError("Session is closed")
        if not self._lock.acquire(blocking=False):
            raise StateError("Another operation is already in progress on this session")
        try:
            yield
        finally:
            self._lock.release()

    # -- Checked commands and queries ---------------------------------------

    @_session_operation
    def post(self, key: str) -> None:
        """Send *key* with no argument, then check the error queue."""
        checked.post(self._conn, key)

    @_session_operation
    def set(self, key: str, value: Any) -> None:
        """Set *key* to *value*, then check the error queue."""
        checked.set_value(self._conn, key, value)

    @_session_operation
    def set_sequence(self, key: str, values: Iterable[Any]) -> None:
        """Set *key* to a comma-separated sequence, then check the error queue."""
        checked.set_sequence(self._conn, key, values)

    @_session_operation
    def query(self, parser: Callable[[str], T], key: str) -> T:
        """Query *key*, parse the reply, then check the error queue."""
        return checked.query(self._conn, parser, key)

    @_session_operation
    def query_sequence(self, parser: Callable[[str], T], key: str) -> tuple[T, ...]:
        """Query *key* for a CSV reply, parse every element, then check the error queue."""
        return checked.query_sequence(self._conn, parser, key)

    # -- Amplitude unit transaction -----------------------------------------

    @contextmanager
    def power_unit(self, unit: str = CANONICAL_UNIT) -> Iterator[str]:
        """Temporarily switch the power unit, restoring the original on exit.

        The unit is shared instrument state, so it is always put back. On a
        normal exit a failed restore raises. When the body (or the switch
        itself) raised, the error queue is drained first so errors from the
        failed exchange are not mistaken for a restore failure. They are
        logged and attached to the original exception as ``device_errors``
        when it is a :class:`ScpiError`. The restore is then attempted, a
        restore failure is logged, and the original exception propagates.

        Args:
            unit: Unit to select for the duration of the block.

        Yields:
            The unit that was selected before entering.
        """
        with self._exclusive():
            original = self.query(parse_text, POWER_UNIT_KEY)
            try:
                self.set(POWER_UNIT_KEY, unit)
                logger.debug("Power unit pinned to %s (was %s)", unit, original)
                yield original
            except BaseException as exc:
                self._collect_device_errors(exc)
                self._restore_power_unit(original)
                raise
            self.set(POWER_UNIT_KEY, original)

    def _collect_device_errors(self, exc: BaseException) -> None:
        try:
            errors = self._conn.get_errors()
        except ScpiError:
            logger.warning("Could not read the error queue after a failed exchange", exc_info=True)
            return
        if not errors:
            return
        logger.error(
            "Instrument reported errors during failed exchange: %s",
            "; ".join(str(e) for e in errors),
        )
        if isinstance(exc, ScpiError):
            exc.device_errors = exc.device_errors + errors

    def _restore_power_unit(self, unit: str) -> None:
        try:
            self.set(POWER_UNIT_KEY, unit)
        except ScpiError:
            logger.warning("Failed to restore power unit to %s", unit, exc_info=True)

    def query_amplitude(self, key: str) -> Amplitude:
        """Query an amplitude in dBm, leaving the power unit as it was.

        Args:
            key: The key to query (e.g. ``:POW``).
        """
        with self.power_unit(CANONICAL_UNIT):
            return self.query(parse_amplitude, key)

    def query_amplitude_sequence(self, key: str) -> tuple[Amplitude, ...]:
        """Query a CSV sequence of amplitudes in dBm, leaving the power unit as it was.

        Args:
            key: The key to query (e.g. ``:LIST:POW``).
        """
        with self.power_unit(CANONICAL_UNIT):
            return self.query_sequence(parse_amplitude, key)

    # -- Initialisation / lifecycle -----------------------------------------

    def _check_model(self) -> None:
        # Unchecked on purpose: the error queue is audited as its own step.
        response = self._conn.ask(f"{IDENTITY_KEY}?")
        try:
            identity = parse_idn_response(response)
        except ValueError as exc:
            raise ScpiResponseError(IDENTITY_KEY, response, str(exc)) from exc
        if identity.model != self._expected_model:
            raise UnexpectedModelError(self._expected_model, identity.model)
        logger.info("Connected to %s", identity)

    @_session_operation
    def initialise(self) -> None:
        """Verify the instrument before use.

        Checks, in order and stopping at the first failure, that the model
        reported by ``*IDN?`` is the expected one and that the error queue
        is empty. On success the session becomes ``VERIFIED``; on failure it
        stays ``UNCHECKED`` and remains open.

        Raises:
            ScpiResponseError: If the identity reply is malformed.
            UnexpectedModelError: If the model does not match.
            ScpiCommandError: If the error queue is not empty.
        """
        checks = [self._check_model, self._conn.check_errors]
        for check in checks:
            check()
        self._state = SessionState.VERIFIED

    def local_control(self) -> None:
        """Return control to the instrument's front panel."""
        self.post(LOCAL_CONTROL_KEY)

    def close(self) -> None:
        """Close the underlying connection. Safe to call more than once.

        Raises:
            StateError: If another thread has an operation in progress.
        """
        if self._state is SessionState.CLOSED:
            return
        if not self._lock.acquire(blocking=False):
            raise StateError("Cannot close while an operation is in progress on this session")
        try:
            self._state = SessionState.CLOSED
            self._conn.close()
        finally:
            self._lock.release()

    # -- Identity -----------------------------------------------------------

    def get_identity(self) -> InstrumentIdentity:
        """Query and parse the instrument identification (``*IDN?``)."""
        return self.query(parse_idn_response, IDENTITY_KEY)

    # -- Frequency ----------------------------------------------------------

    def set_frequency(self, frequency: float) -> None:
        """Set the CW frequency in hertz."""
        self.set(FREQUENCY_KEY, float(frequency))

    def get_frequency(self) -> float:
        """Query the CW frequency in hertz."""
        return self.query(parse_number, FREQUENCY_KEY)

    # -- Amplitude ----------------------------------------------------------

    def set_amplitude(self, amplitude: Amplitude) -> None:
        """Set the output power level."""
        self.set(POWER_KEY, amplitude)

    def get_amplitude(self) -> Amplitude:
        """Query the output power level in dBm."""
        return self.query_amplitude(POWER_KEY)

    # -- Output -------------------------------------------------------------

    def enable_output(self) -> None:
        """Turn the RF output on."""
        self.set(OUTPUT_KEY, True)

    def disable_output(self) -> None:
        """Turn the RF output off."""
        self.set(OUTPUT_KEY, False)

    def is_output_enabled(self) -> bool:
        """Query whether the RF output is on."""
        return self.query(parse_bool, OUTPUT_KEY)

    # -- List sweep ---------------------------------------------------------

    def set_frequency_list(self, frequencies: Iterable[float]) -> None:
        """Load the list-sweep frequencies in hertz."""
        self.set_sequence(LIST_FREQUENCY_KEY, [float(f) for f in frequencies])

    def get_frequency_list(self) -> tuple[float, ...]:
        """Query the list-sweep frequencies in hertz."""
        return self.query_sequence(parse_number, LIST_FREQUENCY_KEY)

    def set_amplitude_list(self, amplitudes: Iterable[Amplitude]) -> None:
        """Load the list-sweep power levels, sent as dBm."""
        with self.power_unit(CANONICAL_UNIT):
            self.set_sequence(LIST_POWER_KEY, [a.dbm for a in amplitudes])

    def get_amplitude_list(self) -> tuple[Amplitude, ...]:
        """Query the list-sweep power levels in dBm."""
        return self.query_amplitude_sequence(LIST_POWER_KEY)


def connect_transport(transport: ScpiTransport, *, expected_model: str = MODEL) -> E8257d:
    """Wrap an already open transport and run :meth:`E8257d.initialise`.

    If initialisation fails the transport is closed before the error
    propagates.

    Args:
        transport: An open transport (VISA resource, emulator, ...).
        expected_model: Model string the identity check accepts.

    Returns:
        A ``VERIFIED`` driver session.
    """
    source = E8257d(ScpiConnection(transport), expected_model=expected_model)
    try:
        source.initialise()
    except Exception:
        source.close()
        raise
    return source


def connect(
    visa_address: str,
    timeout_ms: int = 5000,
    *,
    expected_model: str = MODEL,
    read_termination: str = "\n",
    write_termination: str = "\n",
) -> E8257d:
    """Open a VISA session to an E8257D and run the initialisation checks.

    Args:
        visa_address: VISA resource string
            (e.g. ``"TCPIP::192.168.1.50::INSTR"``).
        timeout_ms: I/O timeout in milliseconds.
        expected_model: Model string the identity check accepts.
        read_termination: Read termination characters.
        write_termination: Write termination characters.

    Returns:
        A ``VERIFIED`` driver session.

    Raises:
        ScpiConnectionError: If the resource cannot be opened.
        UnexpectedModelError: If a different instrument answered.
        ScpiCommandError: If the error queue was not empty.
    """
    logger.info("Connecting to %s", visa_address)
    resource = VisaResource(
        visa_address,
        timeout_ms=timeout_ms,
        read_termination=read_termination,
        write_termination=write_termination,
    )
    resource.open()
    return connect_transport(resource, expected_model=expected_model)


def disconnect(source: E8257d) -> None:
    """Return the instrument to local control and close the session.

    The transport is closed even when the local-control command fails; that
    failure is then re-raised.
    """
    try:
        source.local_control()
    finally:
        source.close()
        logger.info("Disconnected")
