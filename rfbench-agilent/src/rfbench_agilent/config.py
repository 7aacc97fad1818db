"""YAML configuration for E8257D sessions.

Example YAML configuration::

    source:
      visa_address: "TCPIP::192.168.1.50::INSTR"
      timeout_ms: 5000
      expected_model: "E8257D"
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

import yaml

from rfbench_agilent.e8257d import MODEL, connect

if TYPE_CHECKING:
    from rfbench_agilent.e8257d import E8257d


@dataclass(frozen=True)
class SourceConfig:
    """Connection settings for one signal generator.

    Attributes:
        visa_address: VISA resource string of the instrument.
        timeout_ms: I/O timeout in milliseconds.
        expected_model: Model string the identity check accepts.
        read_termination: Read termination characters.
        write_termination: Write termination characters.
    """

    visa_address: str
    timeout_ms: int = 5000
    expected_model: str = MODEL
    read_termination: str = "\n"
    write_termination: str = "\n"

    def __post_init__(self) -> None:
        """Validate configuration."""
        if not self.visa_address:
            raise ValueError("visa_address must be non-empty")
        if self.timeout_ms <= 0:
            raise ValueError("timeout_ms must be positive")
        if not self.expected_model:
            raise ValueError("expected_model must be non-empty")


def load_config(path: str | Path) -> SourceConfig:
    """Load source configuration from a YAML file.

    Args:
        path: Path to the YAML configuration file.

    Returns:
        Parsed source configuration.

    Raises:
        FileNotFoundError: If the config file doesn't exist.
        ValueError: If the config is invalid or missing required fields.
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    with open(path, encoding="utf-8") as f:
        data = yaml.safe_load(f)

    if not isinstance(data, dict):
        raise ValueError("Config must be a YAML mapping")

    section = data.get("source")
    if not isinstance(section, dict):
        raise ValueError("Missing required section: source")

    visa_address = section.get("visa_address")
    if not visa_address:
        raise ValueError("Missing required field: source.visa_address")

    timeout_ms = section.get("timeout_ms", 5000)
    if not isinstance(timeout_ms, int) or isinstance(timeout_ms, bool):
        raise ValueError("source.timeout_ms must be an integer")

    return SourceConfig(
        visa_address=str(visa_address),
        timeout_ms=timeout_ms,
        expected_model=str(section.get("expected_model", MODEL)),
        read_termination=section.get("read_termination", "\n"),
        write_termination=section.get("write_termination", "\n"),
    )


def connect_from_config(config: SourceConfig) -> E8257d:
    """Open and initialise a session described by *config*."""
    return connect(
        config.visa_address,
        config.timeout_ms,
        expected_model=config.expected_model,
        read_termination=config.read_termination,
        write_termination=config.write_termination,
    )
