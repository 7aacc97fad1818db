"""Core library for rfbench instrument control.

This package provides the foundational exception hierarchy and shared data
types for the rfbench packages. It has no external dependencies so that it
can serve as the base layer for every other rfbench package.

Key components:
    - Errors: :class:`RfbenchError` root exception and :class:`StateError`.
    - Types: :class:`InstrumentIdentity` parsed from ``*IDN?`` replies.
"""

from rfbench_core.errors import RfbenchError, StateError
from rfbench_core.identity import InstrumentIdentity

__all__ = [
    # Errors
    "RfbenchError",
    "StateError",
    # Types
    "InstrumentIdentity",
]
