"""SCPI transport protocol definition.

This module defines the :class:`ScpiTransport` protocol, the interface every
transport must provide. Transports handle the physical layer only: one line
of text out, one line of text back. They do not retry and do not parse.

Implementations include:
- :class:`rfbench_scpi.VisaResource`: PyVISA-backed transport for real hardware
- :class:`rfbench_agilent.E8257dEmulator`: in-process E8257D emulator
"""

from __future__ import annotations

from typing import Protocol


class ScpiTransport(Protocol):
    """Protocol for SCPI message transport.

    Callers are responsible for opening the transport before passing it to
    :class:`ScpiConnection`. Any class that implements ``write()``,
    ``read()`` and ``close()`` with these signatures is a valid transport.

    Example:
        >>> class LoopbackTransport:
        ...     def write(self, message: str) -> None:
        ...         self._last = message
        ...     def read(self) -> str:
        ...         return self._last
        ...     def close(self) -> None:
        ...         pass
        ...
        >>> transport: ScpiTransport = LoopbackTransport()
    """

    def write(self, message: str) -> None:
        """Send one line to the instrument.

        Args:
            message: The SCPI command or query string to send.

        Raises:
            ScpiTransportError: If the line could not be sent.
        """
        ...

    def read(self) -> str:
        """Read one line from the instrument.

        Returns:
            The response string.

        Raises:
            ScpiTransportError: If no line could be received.
        """
        ...

    def close(self) -> None:
        """Close the transport and release resources."""
        ...
