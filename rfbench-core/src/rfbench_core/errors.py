"""Exception types for rfbench-core.

This module defines the root of the exception hierarchy used throughout
rfbench. All rfbench exceptions inherit from RfbenchError, allowing consumers
to catch every framework-specific error with a single except clause.

Exception hierarchy:
    RfbenchError (base)
    +-- StateError: Session used while closed or from two callers at once
    +-- ScpiError: SCPI protocol failures (see :mod:`rfbench_scpi.errors`)
"""


class RfbenchError(Exception):
    """Base exception for all rfbench errors.

    This is the root of the rfbench exception hierarchy. Catch this to handle
    any framework-specific error.
    """


class StateError(RfbenchError):
    """Raised for invalid session state.

    This occurs when an operation is issued on a session that has been
    closed, or when a second operation is started on a session while another
    one is still in flight.
    """
