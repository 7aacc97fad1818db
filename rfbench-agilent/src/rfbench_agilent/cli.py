"""Command-line interface for the E8257D driver.

Usage:
    # Connect, run the initialisation checks, print the identity
    rfbench-e8257d --address TCPIP::192.168.1.50::INSTR check

    # Query an amplitude (in dBm, the power unit is left as found)
    rfbench-e8257d --config bench.yaml amplitude :POW

    # Return the instrument to front-panel control
    rfbench-e8257d --config bench.yaml local

    # Try any command against the built-in emulator
    rfbench-e8257d --emulator amplitude :POW
"""

from __future__ import annotations

import argparse
import logging
import sys

from rfbench_core.errors import RfbenchError

from rfbench_agilent.config import SourceConfig, connect_from_config, load_config
from rfbench_agilent.e8257d import E8257d, connect_transport, disconnect
from rfbench_agilent.emulator import make_e8257d_emulator

logger = logging.getLogger(__name__)


def setup_logging(debug: bool = False) -> None:
    """Configure logging."""
    level = logging.DEBUG if debug else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


def _open_source(args: argparse.Namespace) -> E8257d:
    if args.emulator:
        return connect_transport(make_e8257d_emulator())
    if args.config:
        config = load_config(args.config)
    else:
        config = SourceConfig(visa_address=args.address, timeout_ms=args.timeout_ms)
    return connect_from_config(config)


def cmd_check(source: E8257d, args: argparse.Namespace) -> int:
    """Print the identity of a verified instrument."""
    print(source.get_identity())
    return 0


def cmd_amplitude(source: E8257d, args: argparse.Namespace) -> int:
    """Print an amplitude queried in dBm."""
    print(source.query_amplitude(args.key))
    return 0


def cmd_local(source: E8257d, args: argparse.Namespace) -> int:
    """Return the instrument to front-panel control."""
    source.local_control()
    print("Instrument returned to local control")
    return 0


COMMANDS = {
    "check": cmd_check,
    "amplitude": cmd_amplitude,
    "local": cmd_local,
}


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="Agilent E8257D control CLI",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    target = parser.add_mutually_exclusive_group(required=True)
    target.add_argument("--config", "-c", help="YAML config file with a 'source' section")
    target.add_argument("--address", "-a", help="VISA resource string")
    target.add_argument("--emulator", action="store_true", help="Use the in-process emulator")
    parser.add_argument(
        "--timeout-ms", type=int, default=5000,
        help="I/O timeout in milliseconds when using --address (default: 5000)"
    )

    subparsers = parser.add_subparsers(dest="command", help="Command to run")
    subparsers.add_parser("check", help="Connect, verify and print the identity")
    amp_parser = subparsers.add_parser("amplitude", help="Query an amplitude in dBm")
    amp_parser.add_argument("key", help="Key to query (e.g. :POW)")
    subparsers.add_parser("local", help="Return the instrument to front-panel control")

    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 1

    setup_logging(args.debug)

    try:
        source = _open_source(args)
    except (RfbenchError, OSError, ValueError) as exc:
        logger.error("Could not connect: %s", exc)
        return 1

    status = 1
    try:
        status = COMMANDS[args.command](source, args)
    except RfbenchError as exc:
        logger.error("%s failed: %s", args.command, exc)
    finally:
        try:
            disconnect(source)
        except RfbenchError as exc:
            logger.error("Disconnect failed: %s", exc)
            status = 1
    return status


if __name__ == "__main__":
    sys.exit(main())
