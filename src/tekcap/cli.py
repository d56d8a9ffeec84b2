"""Command-line interface for tekcap.

Captures a screenshot from a Tektronix scope behind a serial-to-GPIB adapter.

Usage:
    # Capture to screen.bmp from the scope at GPIB address 1
    tekcap -p /dev/ttyUSB0 screen

    # Other port, speed and address; write without an extension
    tekcap -p COM3 -b 115200 -a 7 capture.

    # Try the tool without hardware
    tekcap --emulate screen

Run with no parameters to see the help message.
"""

from __future__ import annotations

import argparse
import logging
import sys

from tekcap.config import DEFAULT_ADDRESS, DEFAULT_PORT, CaptureConfig, load_config
from tekcap.emulator import AdapterEmulator
from tekcap.errors import (
    AddressOutOfRangeError,
    BaudOutOfRangeError,
    ConfigFileError,
    ExitCode,
    MissingFilenameError,
    TekcapError,
)
from tekcap.serial_port import DEFAULT_BAUDRATE, SerialSettings
from tekcap.session import CaptureSession, ProgressReporter

BANNER = "GPIB-Serial Tektronix scope screenshot tool"


def setup_logging(debug: bool = False) -> None:
    """Configure logging."""
    level = logging.DEBUG if debug else logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser."""
    parser = argparse.ArgumentParser(
        prog="tekcap",
        description=BANNER,
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=(
            "If OUTPUT has no extension, .bmp is assumed "
            "(to write no extension, end the name with '.')."
        ),
    )
    parser.add_argument(
        "-p", "--port",
        help=f"Serial port of the adapter (default: {DEFAULT_PORT})"
    )
    parser.add_argument(
        "-b", "--baud",
        help=f"Baud rate (default: {DEFAULT_BAUDRATE}); uses 8,N,1 serial configuration"
    )
    parser.add_argument(
        "-a", "--address",
        help=f"Instrument GPIB address (default: {DEFAULT_ADDRESS})"
    )
    parser.add_argument(
        "-c", "--config",
        help="YAML config file (default: $TEKCAP_CONFIG or ~/.config/tekcap/tekcap.yaml)"
    )
    parser.add_argument(
        "--emulate", action="store_true",
        help="Talk to a built-in adapter emulator instead of a serial port"
    )
    parser.add_argument("-q", "--quiet", action="store_true", help="Suppress progress output")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    parser.add_argument("output", nargs="?", default="", help="Output file name")
    return parser


def _parse_int(text: str | None, error: type[TekcapError], label: str) -> int | None:
    """Convert an integer option, reporting junk as the option's range error."""
    if text is None:
        return None
    try:
        return int(text, 10)
    except ValueError:
        raise error(f"{label} {text!r} out of range.") from None


def _build_config(args: argparse.Namespace) -> CaptureConfig:
    # A missing name is reported before any other option is looked at
    if not args.output:
        raise MissingFilenameError("Filename required.")
    file_values = load_config(args.config)
    return CaptureConfig.from_sources(
        file_values,
        output=args.output,
        port=args.port,
        baudrate=_parse_int(args.baud, BaudOutOfRangeError, "Baud rate"),
        address=_parse_int(args.address, AddressOutOfRangeError, "Address"),
    )


def _open_emulator(settings: SerialSettings) -> AdapterEmulator:
    return AdapterEmulator()


def _report_failure(error: TekcapError) -> None:
    print(error)
    detail = error.os_detail
    if detail and detail not in str(error):
        print(detail)


def main(argv: list[str] | None = None) -> int:
    """Main entry point.

    Args:
        argv: Command-line arguments, without the program name. Defaults to
            ``sys.argv[1:]``.

    Returns:
        Process exit status.
    """
    if argv is None:
        argv = sys.argv[1:]

    parser = build_parser()
    print(BANNER)
    print()
    if not argv:
        parser.print_help()
        return int(ExitCode.SUCCESS)

    args = parser.parse_args(argv)
    setup_logging(args.debug)

    try:
        config = _build_config(args)
    except TekcapError as exc:
        _report_failure(exc)
        return int(exc.exit_code)
    except (TypeError, ValueError) as exc:
        error = ConfigFileError(f"Invalid configuration: {exc}")
        _report_failure(error)
        return int(error.exit_code)

    progress = ProgressReporter(quiet=args.quiet)
    if args.emulate:
        session = CaptureSession(config, transport_factory=_open_emulator, progress=progress)
    else:
        session = CaptureSession(config, progress=progress)
    result = session.run()

    if not result.succeeded:
        assert result.error is not None
        _report_failure(result.error)
        return result.exit_code

    print(f"Done. {result.bytes_written} bytes written to {result.output_path}")
    return int(ExitCode.SUCCESS)


if __name__ == "__main__":
    sys.exit(main())
