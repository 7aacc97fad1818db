"""SCPI connection and error-queue auditing.

This module provides :class:`ScpiConnection`, the session object every
rfbench operation runs on. It wraps an open transport and owns the one
component allowed to inspect the instrument's error queue: the auditor
(:meth:`ScpiConnection.get_errors` and :meth:`ScpiConnection.check_errors`).

The connection itself does not check for errors after a write or a read.
Checked commands and queries are composed in :mod:`rfbench_scpi.checked`.

Typical usage::

    from rfbench_scpi import ScpiConnection, VisaResource, checked, parse_number

    transport = VisaResource("TCPIP::192.168.1.50::INSTR")
    transport.open()
    conn = ScpiConnection(transport)
    checked.set_value(conn, ":FREQ", 1.5e9)
    frequency = checked.query(conn, parse_number, ":FREQ")
    conn.close()
"""

from __future__ import annotations

import re
from typing import TYPE_CHECKING

from rfbench_core.identity import InstrumentIdentity

from rfbench_scpi.errors import ScpiCommandError, ScpiInstrumentError, ScpiResponseError

if TYPE_CHECKING:
    from rfbench_scpi.transport import ScpiTransport

ERROR_QUERY = "SYST:ERR?"

# Matches SCPI error responses: optional +/- code, comma, optional quoted message.
_ERROR_RE = re.compile(r"^\s*([+-]?\d+)\s*,\s*\"?([^\"]*)\"?\s*$")


def parse_idn_response(response: str) -> InstrumentIdentity:
    """Parse a SCPI ``*IDN?`` response into an :class:`InstrumentIdentity`.

    The standard ``*IDN?`` response format is four comma-separated fields::

        manufacturer,model,serial_number,firmware_version

    If the response contains more than four comma-separated fields, the
    extra fields are joined into the firmware string.

    Raises:
        ValueError: If the response has fewer than four fields.
    """
    parts = [p.strip() for p in response.split(",")]
    if len(parts) < 4:
        raise ValueError(
            f"Expected at least 4 comma-separated fields in *IDN? response, "
            f"got {len(parts)}: {response!r}"
        )
    return InstrumentIdentity(
        manufacturer=parts[0],
        model=parts[1],
        serial=parts[2],
        firmware=",".join(parts[3:]),
    )


def parse_error_response(raw: str) -> ScpiInstrumentError | None:
    """Parse a ``SYST:ERR?`` response into an error object.

    Returns:
        ``None`` when the response reports code 0 (no error), otherwise the
        queued error.

    Raises:
        ValueError: If *raw* is not a ``code,"message"`` pair.
    """
    match = _ERROR_RE.match(raw)
    if match is None:
        raise ValueError(f"Invalid SYST:ERR? response: {raw!r}")
    code = int(match.group(1))
    if code == 0:
        return None
    return ScpiInstrumentError(code=code, message=match.group(2).strip())


class ScpiConnection:
    """A session with one instrument over an open transport.

    Exactly one logical operation may be in flight on a connection at a
    time: SCPI has no request identifiers, so interleaved exchanges would
    mismatch replies.

    Args:
        transport: An open :class:`ScpiTransport` instance.
        max_errors: Upper bound on ``SYST:ERR?`` queries per audit, so an
            instrument that never reports "no error" cannot hang the caller.

    Example:
        >>> conn = ScpiConnection(transport)
        >>> conn.write("*CLS")
        >>> conn.check_errors()
    """

    def __init__(self, transport: ScpiTransport, *, max_errors: int = 100) -> None:
        if max_errors < 1:
            raise ValueError("max_errors must be >= 1")
        self._transport = transport
        self._max_errors = max_errors

    @property
    def transport(self) -> ScpiTransport:
        """The underlying transport."""
        return self._transport

    # -- Raw exchange ----------------------------------------------------------

    def write(self, message: str) -> None:
        """Send one line without checking the error queue."""
        self._transport.write(message)

    def read(self) -> str:
        """Read one line, with surrounding whitespace stripped."""
        return self._transport.read().strip()

    def ask(self, message: str) -> str:
        """Send a query line and return the stripped reply."""
        self.write(message)
        return self.read()

    # -- Error queue ---------------------------------------------------------

    def get_errors(self) -> tuple[ScpiInstrumentError, ...]:
        """Drain the instrument error queue.

        Repeatedly queries ``SYST:ERR?`` until the instrument reports code 0.
        On an already empty queue this costs exactly one query.

        Returns:
            Every queued error, oldest first. Empty if no errors.

        Raises:
            ScpiResponseError: If a reply is not a valid error entry, or the
                queue did not empty within ``max_errors`` queries.
        """
        errors: list[ScpiInstrumentError] = []
        for _ in range(self._max_errors):
            raw = self.ask(ERROR_QUERY)
            try:
                error = parse_error_response(raw)
            except ValueError as exc:
                raise ScpiResponseError(ERROR_QUERY, raw, str(exc)) from exc
            if error is None:
                return tuple(errors)
            errors.append(error)
        raise ScpiResponseError(
            ERROR_QUERY,
            str(errors[-1]),
            f"error queue not empty after {self._max_errors} reads",
        )

    def check_errors(self) -> None:
        """Drain the error queue and raise if it held anything.

        Raises:
            ScpiCommandError: Carrying every drained error, oldest first.
        """
        errors = self.get_errors()
        if errors:
            raise ScpiCommandError(errors)

    # -- Lifecycle -----------------------------------------------------------

    def close(self) -> None:
        """Close the underlying transport."""
        self._transport.close()
