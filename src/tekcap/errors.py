"""Exception types for tekcap.

This module defines the exception hierarchy used throughout tekcap. All
exceptions inherit from :class:`TekcapError`, so callers can catch every
capture failure with a single except clause. Every concrete error carries a
stable process exit code, which the command-line tool returns unchanged so
that scripts can tell failure kinds apart.

Exception hierarchy:
    TekcapError (base)
    +-- ConfigError: Invalid command-line or file configuration
    |   +-- MissingFilenameError
    |   +-- AddressOutOfRangeError
    |   +-- BaudOutOfRangeError
    |   +-- ConfigFileError
    +-- TransportError: Serial channel failures
    |   +-- PortUnavailableError
    |   +-- PortConfigError
    |   +-- TransportIOError: Read/write failure on an open channel
    |       +-- CaptureError: I/O failure attributed to a capture phase
    |           +-- StaleInputError
    |           +-- CommandWriteError
    |           +-- StreamReadError
    |           +-- KeepAliveError
    +-- AdapterUnresponsiveError: Liveness probe got no reply
    +-- OutputError: Output file failures
        +-- OutputOpenError
        +-- OutputWriteError
"""

from __future__ import annotations

from enum import IntEnum


class ExitCode(IntEnum):
    """Process exit status for each failure kind.

    Values are stable; scripts may rely on them.
    """

    SUCCESS = 0
    MISSING_FILENAME = 1
    ADDRESS_OUT_OF_RANGE = 2
    BAUD_OUT_OF_RANGE = 3
    PORT_OPEN_FAILED = 4
    PORT_CONFIG_FAILED = 5
    ADAPTER_UNRESPONSIVE = 6
    OUTPUT_OPEN_FAILED = 7
    COMMAND_WRITE_FAILED = 8
    READ_FAILED = 9
    OUTPUT_WRITE_FAILED = 10
    KEEPALIVE_FAILED = 11
    STALE_CLEAR_FAILED = 12
    CONFIG_FILE_INVALID = 13


class TekcapError(Exception):
    """Base exception for all tekcap errors.

    Attributes:
        exit_code: Process exit status reported for this failure kind.
    """

    exit_code: ExitCode = ExitCode.COMMAND_WRITE_FAILED

    @property
    def os_detail(self) -> str | None:
        """Return the text of the underlying OS error, if there is one."""
        cause = self.__cause__
        while cause is not None:
            if isinstance(cause, OSError):
                return cause.strerror or str(cause) or None
            cause = cause.__cause__
        return None


# -- Configuration ------------------------------------------------------------


class ConfigError(TekcapError, ValueError):
    """Raised for invalid configuration values.

    Configuration is validated before any device or file is opened.
    """


class MissingFilenameError(ConfigError):
    """Raised when no output file name was given."""

    exit_code = ExitCode.MISSING_FILENAME


class AddressOutOfRangeError(ConfigError):
    """Raised when the GPIB address is outside 0 to 30."""

    exit_code = ExitCode.ADDRESS_OUT_OF_RANGE


class BaudOutOfRangeError(ConfigError):
    """Raised when the baud rate is not in (0, 6000000]."""

    exit_code = ExitCode.BAUD_OUT_OF_RANGE


class ConfigFileError(ConfigError):
    """Raised when the YAML config file cannot be read or is invalid."""

    exit_code = ExitCode.CONFIG_FILE_INVALID


# -- Transport ----------------------------------------------------------------


class TransportError(TekcapError):
    """Base exception for serial channel failures."""


class PortUnavailableError(TransportError):
    """Raised when the serial device cannot be opened."""

    exit_code = ExitCode.PORT_OPEN_FAILED


class PortConfigError(TransportError):
    """Raised when the line settings cannot be applied to an open device."""

    exit_code = ExitCode.PORT_CONFIG_FAILED


class TransportIOError(TransportError):
    """Raised when a read or write on the serial channel fails.

    A read that times out with no data is not an error; it returns an
    empty byte string instead.
    """

    exit_code = ExitCode.READ_FAILED


class CaptureError(TransportIOError):
    """Channel I/O failure attributed to a specific capture phase."""


class StaleInputError(CaptureError):
    """Raised when draining stale adapter output fails."""

    exit_code = ExitCode.STALE_CLEAR_FAILED


class CommandWriteError(CaptureError):
    """Raised when sending the addressing or trigger commands fails."""

    exit_code = ExitCode.COMMAND_WRITE_FAILED


class StreamReadError(CaptureError):
    """Raised when a read fails while streaming the hardcopy."""

    exit_code = ExitCode.READ_FAILED


class KeepAliveError(CaptureError):
    """Raised when the keep-alive read request cannot be written."""

    exit_code = ExitCode.KEEPALIVE_FAILED


# -- Adapter ------------------------------------------------------------------


class AdapterUnresponsiveError(TekcapError):
    """Raised when the adapter does not answer the version query."""

    exit_code = ExitCode.ADAPTER_UNRESPONSIVE


# -- Output -------------------------------------------------------------------


class OutputError(TekcapError):
    """Base exception for output file failures."""


class OutputOpenError(OutputError):
    """Raised when the output file cannot be opened for writing."""

    exit_code = ExitCode.OUTPUT_OPEN_FAILED


class OutputWriteError(OutputError):
    """Raised when writing captured bytes to the output file fails."""

    exit_code = ExitCode.OUTPUT_WRITE_FAILED
