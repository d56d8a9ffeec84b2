"""Tektronix scope screenshot capture over a serial-to-GPIB adapter.

This package captures the hardcopy (screenshot) stream of a Tektronix
oscilloscope through a serial-to-GPIB adapter and writes the raw bytes to a
file. It includes:

- Byte transport abstraction and a pyserial-backed serial port
- A driver for the adapter's ``+``/``++`` line-command dialect
- A capture session that streams the hardcopy and detects its end from silence
- YAML/command-line configuration with validated ranges
- An in-process adapter emulator for running without hardware
- Custom exception types, each with a stable process exit code

Typical usage::

    from tekcap import CaptureConfig, capture

    result = capture(CaptureConfig(output="screen", port="/dev/ttyUSB0", address=1))
    print(result.exit_code)
"""

from tekcap.adapter import AdapterTiming, GpibAdapter, build_capture_commands
from tekcap.config import CaptureConfig, CaptureTiming, load_config
from tekcap.emulator import AdapterEmulator, AdapterEmulatorConfig, make_emulator
from tekcap.errors import (
    AdapterUnresponsiveError,
    AddressOutOfRangeError,
    BaudOutOfRangeError,
    CaptureError,
    CommandWriteError,
    ConfigError,
    ConfigFileError,
    ExitCode,
    KeepAliveError,
    MissingFilenameError,
    OutputError,
    OutputOpenError,
    OutputWriteError,
    PortConfigError,
    PortUnavailableError,
    StaleInputError,
    StreamReadError,
    TekcapError,
    TransportError,
    TransportIOError,
)
from tekcap.output import FileSink, OutputSink, resolve_output_path
from tekcap.serial_port import SerialPort, SerialSettings, open_serial
from tekcap.session import (
    CaptureResult,
    CaptureSession,
    CaptureState,
    ProgressReporter,
    StreamState,
    capture,
)
from tekcap.transport import ByteTransport

__version__ = "1.0.0"

__all__ = [
    # Adapter
    "AdapterTiming",
    "GpibAdapter",
    "build_capture_commands",
    # Configuration
    "CaptureConfig",
    "CaptureTiming",
    "load_config",
    # Emulator
    "AdapterEmulator",
    "AdapterEmulatorConfig",
    "make_emulator",
    # Errors
    "AdapterUnresponsiveError",
    "AddressOutOfRangeError",
    "BaudOutOfRangeError",
    "CaptureError",
    "CommandWriteError",
    "ConfigError",
    "ConfigFileError",
    "ExitCode",
    "KeepAliveError",
    "MissingFilenameError",
    "OutputError",
    "OutputOpenError",
    "OutputWriteError",
    "PortConfigError",
    "PortUnavailableError",
    "StaleInputError",
    "StreamReadError",
    "TekcapError",
    "TransportError",
    "TransportIOError",
    # Output
    "FileSink",
    "OutputSink",
    "resolve_output_path",
    # Serial
    "SerialPort",
    "SerialSettings",
    "open_serial",
    # Session
    "CaptureResult",
    "CaptureSession",
    "CaptureState",
    "ProgressReporter",
    "StreamState",
    "capture",
    # Transport
    "ByteTransport",
]
