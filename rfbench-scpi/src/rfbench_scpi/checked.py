"""Checked SCPI commands and queries.

Every operation in this module is a plain function taking the connection as
its first argument, wrapped with :func:`checked` so that the instrument's
error queue is audited once the exchange has completed. A successful return
therefore means the instrument accepted the operation and its error queue is
now empty.

Failures, by the layer that detects them:

- :class:`~rfbench_scpi.errors.ScpiTransportError` from the transport,
  propagated unmodified.
- :class:`~rfbench_scpi.errors.ScpiResponseError` when a query reply does not
  parse. This is detected before the error queue is read.
- :class:`~rfbench_scpi.errors.ScpiCommandError` when the audit finds queued
  errors.

Example::

    from rfbench_scpi import checked, parse_number

    checked.set_value(conn, ":FREQ", 2.4e9)
    freq = checked.query(conn, parse_number, ":FREQ")
    checked.set_sequence(conn, ":LIST:FREQ", [1e9, 2e9, 3e9])
"""

from __future__ import annotations

import functools
import logging
from typing import Any, Callable, Concatenate, Iterable, ParamSpec, TypeVar

from rfbench_scpi.codec import format_value, join_sequence, parse_sequence
from rfbench_scpi.connection import ScpiConnection
from rfbench_scpi.errors import ScpiResponseError

logger = logging.getLogger(__name__)

P = ParamSpec("P")
T = TypeVar("T")


def checked(
    operation: Callable[Concatenate[ScpiConnection, P], T],
) -> Callable[Concatenate[ScpiConnection, P], T]:
    """Wrap an operation so the error queue is audited after it returns.

    The audit only runs when *operation* returns normally; an exception
    raised by the operation itself propagates without touching the queue.

    Raises:
        ScpiCommandError: If the instrument queued errors.
    """

    @functools.wraps(operation)
    def wrapper(connection: ScpiConnection, *args: P.args, **kwargs: P.kwargs) -> T:
        try:
            result = operation(connection, *args, **kwargs)
            connection.check_errors()
        except Exception as exc:
            logger.error("Checked %s failed: %s", operation.__name__, exc)
            raise
        logger.debug("Checked %s succeeded", operation.__name__)
        return result

    return wrapper


def query_key(key: str) -> str:
    """Return the query form of *key* (``:FREQ`` -> ``:FREQ?``)."""
    return key if key.endswith("?") else f"{key}?"


# -- Commands ------------------------------------------------------------------


@checked
def post(connection: ScpiConnection, key: str) -> None:
    """Send a key with no argument (e.g. ``*RST``)."""
    logger.debug("Post key '%s'", key)
    connection.write(key)


@checked
def set_value(connection: ScpiConnection, key: str, value: Any) -> None:
    """Set *key* to a single value formatted with :func:`format_value`."""
    text = format_value(value)
    logger.debug("Set '%s' to '%s'", key, text)
    connection.write(f"{key} {text}")


@checked
def set_sequence(connection: ScpiConnection, key: str, values: Iterable[Any]) -> None:
    """Set *key* to a comma-separated list of values.

    Raises:
        ValueError: If *values* is empty (nothing is sent).
    """
    text = join_sequence(values)
    logger.debug("Set '%s' to values '%s'", key, text)
    connection.write(f"{key} {text}")


# -- Queries -------------------------------------------------------------------


def _parse_reply(key: str, parser: Callable[[str], T], response: str) -> T:
    try:
        return parser(response)
    except ValueError as exc:
        raise ScpiResponseError(key, response, str(exc)) from exc


@checked
def query(connection: ScpiConnection, parser: Callable[[str], T], key: str) -> T:
    """Query *key* and parse the reply.

    Args:
        connection: The session to query.
        parser: Converts the reply text; raises ``ValueError`` on bad input.
        key: The key to query; ``?`` is appended if missing.

    Returns:
        The parsed reply.

    Raises:
        ScpiResponseError: If *parser* rejects the reply.
        ScpiCommandError: If the instrument queued errors.
    """
    logger.debug("Query '%s'", key)
    response = connection.ask(query_key(key))
    return _parse_reply(key, parser, response)


@checked
def query_sequence(
    connection: ScpiConnection, parser: Callable[[str], T], key: str
) -> tuple[T, ...]:
    """Query *key* for a comma-separated reply and parse every element.

    Returns:
        The parsed elements, in reply order.

    Raises:
        ScpiResponseError: If the reply is empty or any element fails to parse.
        ScpiCommandError: If the instrument queued errors.
    """
    logger.debug("Query sequence '%s'", key)
    response = connection.ask(query_key(key))
    return _parse_reply(key, parse_sequence(parser), response)
