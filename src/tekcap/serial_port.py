"""pyserial transport for the serial-to-GPIB adapter.

This module provides the serial implementation of :class:`ByteTransport`.
It wraps the pyserial library, which is imported lazily on :meth:`SerialPort.open`
so the rest of tekcap (the emulator, configuration, tests) works without a
serial stack installed.

The line is always 8 data bits, no parity, 1 stop bit, with every form of
flow control disabled. Reads are bounded by an inter-byte interval timeout
and an overall per-call timeout, so a read never blocks indefinitely and
returns ``b""`` when the adapter stays quiet.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from types import TracebackType
from typing import Any

from tekcap.errors import PortConfigError, PortUnavailableError, TransportIOError

logger = logging.getLogger(__name__)

DEFAULT_BAUDRATE = 230400
MAX_BAUDRATE = 6_000_000


@dataclass(frozen=True)
class SerialSettings:
    """Line and timeout settings for the adapter's serial port.

    Attributes:
        port: Device name (e.g. ``"COM14"`` or ``"/dev/ttyUSB0"``).
        baudrate: Line speed in baud.
        read_interval_timeout: Maximum silence between two bytes before a
            read returns with what it has, in seconds.
        read_total_timeout: Maximum duration of a single read call, in seconds.
        write_timeout_constant: Fixed part of the write timeout, in seconds.
        write_timeout_per_byte: Per-byte allowance added to the write
            timeout, in seconds.
        buffer_size: I/O buffer size in bytes; also the largest read request.
    """

    port: str
    baudrate: int = DEFAULT_BAUDRATE
    read_interval_timeout: float = 1.0
    read_total_timeout: float = 1.0
    write_timeout_constant: float = 0.1
    write_timeout_per_byte: float = 0.001
    buffer_size: int = 1024

    def __post_init__(self) -> None:
        if not self.port:
            raise ValueError("port must be non-empty")
        if self.read_interval_timeout < 0 or self.read_total_timeout < 0:
            raise ValueError("read timeouts must be >= 0")
        if self.write_timeout_constant < 0 or self.write_timeout_per_byte < 0:
            raise ValueError("write timeouts must be >= 0")
        if self.buffer_size < 1:
            raise ValueError("buffer_size must be >= 1")

    @property
    def write_timeout(self) -> float:
        """Write timeout covering a full buffer, in seconds."""
        return self.write_timeout_constant + self.write_timeout_per_byte * self.buffer_size


class SerialPort:
    """Byte transport backed by pyserial.

    This class implements the :class:`~tekcap.transport.ByteTransport`
    protocol and can be passed to :class:`~tekcap.adapter.GpibAdapter`.

    Opening happens in two steps with distinct failures: acquiring the device
    (:class:`PortUnavailableError`) and applying the line settings
    (:class:`PortConfigError`). A port whose configuration fails is closed
    before the error is raised.

    Args:
        settings: Line and timeout settings.

    Example:
        >>> with SerialPort(SerialSettings("/dev/ttyUSB0")) as port:
        ...     port.write(b"+ver\\r")
        ...     print(port.read(1024))
    """

    def __init__(self, settings: SerialSettings) -> None:
        self._settings = settings
        self._port: Any = None

    # -- Properties ----------------------------------------------------------

    @property
    def settings(self) -> SerialSettings:
        """The line and timeout settings."""
        return self._settings

    @property
    def is_open(self) -> bool:
        """Return True if the port is currently open."""
        return self._port is not None

    # -- Lifecycle -----------------------------------------------------------

    def open(self) -> None:
        """Open and configure the serial device.

        Raises:
            PortUnavailableError: If pyserial is missing or the device cannot
                be opened.
            PortConfigError: If the line settings are rejected.
        """
        if self._port is not None:
            return

        try:
            import serial  # pylint: disable=import-outside-toplevel
        except ImportError as exc:
            raise PortUnavailableError(
                "pyserial library is not installed. Install with: pip install pyserial"
            ) from exc

        settings = self._settings
        port = serial.Serial()
        port.port = settings.port
        port.dtr = False
        port.rts = False
        try:
            port.open()
        except (OSError, ValueError) as exc:
            raise PortUnavailableError(f"Error opening port {settings.port}: {exc}") from exc

        try:
            port.baudrate = settings.baudrate
            port.bytesize = serial.EIGHTBITS
            port.parity = serial.PARITY_NONE
            port.stopbits = serial.STOPBITS_ONE
            port.xonxoff = False
            port.rtscts = False
            port.dsrdtr = False
            port.timeout = settings.read_total_timeout
            port.inter_byte_timeout = settings.read_interval_timeout
            port.write_timeout = settings.write_timeout
            # Only the Windows backend exposes driver queue sizes.
            if hasattr(port, "set_buffer_size"):
                port.set_buffer_size(rx_size=settings.buffer_size, tx_size=settings.buffer_size)
        except (OSError, ValueError) as exc:
            _close_quietly(port)
            raise PortConfigError(f"IO error configuring port {settings.port}: {exc}") from exc

        self._port = port
        logger.debug("Opened %s at %d baud, 8N1", settings.port, settings.baudrate)

    def close(self) -> None:
        """Close the serial device.

        Safe to call multiple times, and without a prior :meth:`open`.
        """
        if self._port is None:
            return
        _close_quietly(self._port)
        self._port = None
        logger.debug("Closed %s", self._settings.port)

    def __enter__(self) -> SerialPort:
        self.open()
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()

    # -- Transport interface -------------------------------------------------

    def write(self, data: bytes) -> int:
        """Send bytes to the adapter.

        Args:
            data: Raw bytes to send.

        Returns:
            Number of bytes written.

        Raises:
            TransportIOError: If the port is closed, the write times out, or
                the device reports an error.
        """
        if self._port is None:
            raise TransportIOError("serial port is not open")
        try:
            written = self._port.write(data)
        except OSError as exc:
            raise TransportIOError(f"write to {self._settings.port} failed: {exc}") from exc
        return len(data) if written is None else int(written)

    def read(self, max_len: int) -> bytes:
        """Read up to ``max_len`` bytes, returning early on timeout.

        Args:
            max_len: Maximum number of bytes to return.

        Returns:
            The bytes received, empty if nothing arrived in the timeout window.

        Raises:
            TransportIOError: If the port is closed or the device reports an error.
        """
        if self._port is None:
            raise TransportIOError("serial port is not open")
        try:
            data = self._port.read(max_len)
        except OSError as exc:
            raise TransportIOError(f"read from {self._settings.port} failed: {exc}") from exc
        return bytes(data)


def open_serial(settings: SerialSettings) -> SerialPort:
    """Create and open a :class:`SerialPort`.

    Args:
        settings: Line and timeout settings.

    Returns:
        The open port.
    """
    port = SerialPort(settings)
    port.open()
    return port


def _close_quietly(port: Any) -> None:
    try:
        port.close()
    except Exception:  # pylint: disable=broad-except
        logger.debug("Ignoring error while closing serial port", exc_info=True)
