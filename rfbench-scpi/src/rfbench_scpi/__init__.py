"""SCPI protocol library for rfbench instrument control.

This package provides the checked command/query core used by the rfbench
instrument drivers. It includes:

- Transport abstraction for SCPI message passing
- PyVISA-backed transport for real instruments
- A connection object owning the instrument error-queue auditor
- Checked commands and queries that audit the error queue after every exchange
- Value formatting and parsing utilities for SCPI text
- Exception types identifying which layer detected a failure

Typical usage::

    from rfbench_scpi import ScpiConnection, VisaResource, checked, parse_number

    transport = VisaResource("TCPIP::192.168.1.50::INSTR")
    transport.open()
    conn = ScpiConnection(transport)
    checked.set_value(conn, ":FREQ", 1e9)
    print(checked.query(conn, parse_number, ":FREQ"))
    conn.close()
"""

from rfbench_scpi import checked
from rfbench_scpi.codec import (
    format_bool,
    format_number,
    format_value,
    join_sequence,
    parse_bool,
    parse_int,
    parse_number,
    parse_numbers,
    parse_sequence,
    parse_text,
    split_sequence,
)
from rfbench_scpi.connection import ScpiConnection, parse_error_response, parse_idn_response
from rfbench_scpi.errors import (
    ScpiCommandError,
    ScpiConnectionError,
    ScpiError,
    ScpiInstrumentError,
    ScpiResponseError,
    ScpiTransportError,
    UnexpectedModelError,
)
from rfbench_scpi.transport import ScpiTransport
from rfbench_scpi.visa import VisaResource

__all__ = [
    # Checked command/query layer
    "checked",
    # Connection
    "ScpiConnection",
    "parse_error_response",
    "parse_idn_response",
    # Errors
    "ScpiCommandError",
    "ScpiConnectionError",
    "ScpiError",
    "ScpiInstrumentError",
    "ScpiResponseError",
    "ScpiTransportError",
    "UnexpectedModelError",
    # Value codec
    "format_bool",
    "format_number",
    "format_value",
    "join_sequence",
    "parse_bool",
    "parse_int",
    "parse_number",
    "parse_numbers",
    "parse_sequence",
    "parse_text",
    "split_sequence",
    # Transport
    "ScpiTransport",
    # VISA
    "VisaResource",
]
