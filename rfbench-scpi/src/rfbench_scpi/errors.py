"""SCPI protocol error types.

This module defines exception classes for every layer that can fail while
talking to an instrument. All exceptions inherit from
:class:`rfbench_core.errors.RfbenchError`, and the concrete class tells the
caller which layer detected the problem:

- :class:`ScpiConnectionError`: the transport could not be opened.
- :class:`ScpiTransportError`: a write or read failed mid-exchange.
- :class:`ScpiResponseError`: the reply text did not have the expected shape.
- :class:`ScpiCommandError`: the instrument queued one or more errors.
- :class:`UnexpectedModelError`: the connected instrument is not a supported model.
"""

from __future__ import annotations

from dataclasses import dataclass

from rfbench_core.errors import RfbenchError


class ScpiError(RfbenchError):
    """Base exception for SCPI protocol errors.

    All SCPI-related exceptions inherit from this class, allowing callers
    to catch all SCPI errors with a single except clause.

    Attributes:
        device_errors: Errors the instrument queued during the failed
            exchange, oldest first, when the caller drained the queue after
            the failure. Empty otherwise.
    """

    device_errors: tuple[ScpiInstrumentError, ...] = ()


class ScpiConnectionError(ScpiError):
    """Raised when a transport cannot be opened."""


class ScpiTransportError(ScpiError):
    """Raised when sending to or receiving from an open transport fails."""


class ScpiResponseError(ScpiError):
    """Raised when an instrument reply cannot be interpreted.

    This is a local problem (the reply does not match the expected grammar)
    and is distinct from :class:`ScpiCommandError`, which reports errors the
    instrument itself queued.

    Attributes:
        key: The key that was queried.
        response: The raw reply text.
    """

    def __init__(self, key: str, response: str, reason: str | None = None) -> None:
        """Initialize the response error.

        Args:
            key: The key that was queried.
            response: The raw reply text that failed to parse.
            reason: Optional description of what was expected.
        """
        self.key = key
        self.response = response
        message = f"Invalid response to {key!r}: {response!r}"
        if reason:
            message = f"{message} ({reason})"
        super().__init__(message)


@dataclass(frozen=True)
class ScpiInstrumentError:
    """Single error from an instrument's error queue.

    Attributes:
        code: SCPI error code (negative for standard errors, positive for device-specific).
        message: Human-readable error description from the instrument.
    """

    code: int
    message: str

    def __str__(self) -> str:
        """Return SCPI-format error string.

        Returns:
            Error formatted as ``code,"message"``.
        """
        return f'{self.code},"{self.message}"'


class ScpiCommandError(ScpiError):
    """Raised when an instrument reports errors after a command or query.

    Every checked operation drains the instrument's error queue once the
    exchange completes. If the queue held anything, this exception carries
    all of it, oldest first.

    Attributes:
        errors: One or more errors drained from the instrument's error queue.

    Example:
        >>> try:
        ...     checked.post(conn, "INVALID:COMMAND")
        ... except ScpiCommandError as e:
        ...     for err in e.errors:
        ...         print(f"Error {err.code}: {err.message}")
    """

    def __init__(self, errors: tuple[ScpiInstrumentError, ...]) -> None:
        """Initialize the command error with instrument errors.

        Args:
            errors: Tuple of instrument errors from the error queue.
        """
        self.errors = errors
        messages = "; ".join(str(e) for e in errors)
        super().__init__(f"SCPI instrument error(s): {messages}")


class UnexpectedModelError(ScpiError):
    """Raised when the identity check finds an unsupported model.

    Attributes:
        expected: The model the driver supports.
        actual: The model the instrument reported.
    """

    def __init__(self, expected: str, actual: str) -> None:
        self.expected = expected
        self.actual = actual
        super().__init__(f"Unexpected instrument model {actual!r} (expected {expected!r})")
