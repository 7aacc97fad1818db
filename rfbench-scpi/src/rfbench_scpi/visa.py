"""PyVISA transport for SCPI instruments.

This module provides the VISA-based transport used to reach real
instruments. ``pyvisa`` is imported lazily on :meth:`VisaResource.open` so
the rest of rfbench (including the emulator and the test suite) works
without a VISA backend.

Supported resource string formats include:
- TCPIP: ``TCPIP::192.168.1.50::INSTR`` (LAN, VXI-11)
- Socket: ``TCPIP::192.168.1.50::5025::SOCKET`` (raw SCPI socket)
- GPIB: ``GPIB0::19::INSTR``
"""

from __future__ import annotations

import logging
from typing import Any

from rfbench_scpi.errors import ScpiConnectionError, ScpiTransportError

logger = logging.getLogger(__name__)


class VisaResource:
    """SCPI transport backed by PyVISA.

    Implements the :class:`ScpiTransport` protocol. Failures to open raise
    :class:`ScpiConnectionError`; failures while writing or reading an open
    resource raise :class:`ScpiTransportError` chained from the PyVISA
    exception.

    Attributes:
        resource_string: The VISA resource address string.
        is_open: Whether the resource is currently open.

    Args:
        resource_string: VISA resource address.
        timeout_ms: I/O timeout in milliseconds (applied on open).
        read_termination: Character(s) that terminate read operations.
        write_termination: Character(s) appended to write operations.

    Example:
        >>> resource = VisaResource("TCPIP::192.168.1.50::INSTR", timeout_ms=3000)
        >>> resource.open()
        >>> resource.write("*IDN?")
        >>> print(resource.read())
        >>> resource.close()
    """

    def __init__(
        self,
        resource_string: str,
        *,
        timeout_ms: int = 5000,
        read_termination: str = "\n",
        write_termination: str = "\n",
    ) -> None:
        if timeout_ms <= 0:
            raise ValueError("timeout_ms must be positive")
        self._resource_string = resource_string
        self._timeout_ms = timeout_ms
        self._read_termination = read_termination
        self._write_termination = write_termination
        self._rm: Any = None
        self._resource: Any = None

    # -- Properties ----------------------------------------------------------

    @property
    def resource_string(self) -> str:
        """The VISA resource string."""
        return self._resource_string

    @property
    def timeout_ms(self) -> int:
        """The I/O timeout in milliseconds."""
        return self._timeout_ms

    @property
    def is_open(self) -> bool:
        """Return True if the resource is currently open."""
        return self._resource is not None

    # -- Lifecycle -----------------------------------------------------------

    def open(self) -> None:
        """Open the VISA resource.

        Lazily imports ``pyvisa`` and creates a ``ResourceManager``. Calling
        ``open()`` on an already open resource does nothing.

        Raises:
            ScpiConnectionError: If ``pyvisa`` is not installed or the
                resource cannot be opened.
        """
        if self._resource is not None:
            return

        try:
            import pyvisa  # type: ignore[import-not-found]  # pylint: disable=import-outside-toplevel
        except ImportError as exc:
            raise ScpiConnectionError(
                "pyvisa library is not installed. Install with: pip install pyvisa"
            ) from exc

        logger.debug("Opening VISA resource %s (timeout %d ms)", self._resource_string, self._timeout_ms)
        try:
            self._rm = pyvisa.ResourceManager()
            self._resource = self._rm.open_resource(
                self._resource_string,
                read_termination=self._read_termination,
                write_termination=self._write_termination,
            )
            self._resource.timeout = self._timeout_ms
        except Exception as exc:
            self._resource = None
            self._close_manager()
            raise ScpiConnectionError(
                f"Failed to open VISA resource {self._resource_string!r}: {exc}"
            ) from exc

    def close(self) -> None:
        """Close the VISA resource and resource manager.

        Safe to call multiple times.
        """
        if self._resource is not None:
            try:
                self._resource.close()
            except Exception:  # pylint: disable=broad-except
                logger.debug("Error closing VISA resource %s", self._resource_string, exc_info=True)
            self._resource = None
        self._close_manager()

    def _close_manager(self) -> None:
        if self._rm is not None:
            try:
                self._rm.close()
            except Exception:  # pylint: disable=broad-except
                logger.debug("Error closing VISA resource manager", exc_info=True)
            self._rm = None

    # -- Transport interface -------------------------------------------------

    def write(self, message: str) -> None:
        """Send a message to the instrument.

        Args:
            message: The SCPI command or query string.

        Raises:
            ScpiTransportError: If the resource is not open or the write fails.
        """
        if self._resource is None:
            raise ScpiTransportError("VISA resource is not open")
        try:
            self._resource.write(message)
        except Exception as exc:
            raise ScpiTransportError(
                f"Write to {self._resource_string!r} failed: {exc}"
            ) from exc

    def read(self) -> str:
        """Read a response from the instrument.

        Returns:
            The response string.

        Raises:
            ScpiTransportError: If the resource is not open or the read fails
                (including VISA timeouts).
        """
        if self._resource is None:
            raise ScpiTransportError("VISA resource is not open")
        try:
            result: str = self._resource.read()
        except Exception as exc:
            raise ScpiTransportError(
                f"Read from {self._resource_string!r} failed: {exc}"
            ) from exc
        return result
