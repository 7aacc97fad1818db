"""Root conftest.py for the rfbench monorepo.

Puts every package ``src`` directory on the import path so the suite runs
from a plain checkout, and registers the markers used across packages.
"""

from __future__ import annotations

import sys
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from _pytest.config import Config


# Add all package src directories to path for imports
PROJECT_ROOT = Path(__file__).parent
for pkg_dir in PROJECT_ROOT.glob("rfbench-*/src"):
    if str(pkg_dir) not in sys.path:
        sys.path.insert(0, str(pkg_dir))


def pytest_configure(config: Config) -> None:
    """Register custom markers.

    Args:
        config: pytest configuration object.
    """
    config.addinivalue_line(
        "markers",
        "integration: Integration test requiring a real instrument",
    )


def pytest_report_header(config: Config) -> list[str]:
    """Add a suite banner to the pytest header.

    Args:
        config: pytest configuration object.

    Returns:
        List of header lines.
    """
    return ["rfbench monorepo test suite"]
