"""Byte transport protocol definition.

This module defines the :class:`ByteTransport` protocol, the interface the
adapter driver uses to talk to the serial-to-GPIB adapter. Transports move
raw bytes and know nothing about adapter commands.

Implementations include:
- :class:`tekcap.serial_port.SerialPort`: pyserial-backed transport for real hardware
- :class:`tekcap.emulator.AdapterEmulator`: in-process adapter emulator
"""

from __future__ import annotations

from typing import Protocol


class ByteTransport(Protocol):
    """Protocol for a timeout-bounded duplex byte channel.

    This is a structural subtyping protocol (duck typing). Any class that
    implements ``write()``, ``read()``, and ``close()`` with the correct
    signatures is a valid transport.

    The read contract is load-bearing: a read that sees no data within the
    transport's timeout window returns ``b""``. Only a failure of the channel
    itself raises :class:`~tekcap.errors.TransportIOError`.
    """

    def write(self, data: bytes) -> int:
        """Send bytes to the adapter.

        Args:
            data: Raw bytes to send.

        Returns:
            Number of bytes written.
        """
        ...

    def read(self, max_len: int) -> bytes:
        """Read up to ``max_len`` bytes.

        Args:
            max_len: Maximum number of bytes to return.

        Returns:
            The bytes received before the timeout, possibly empty.
        """
        ...

    def close(self) -> None:
        """Close the transport and release resources. Safe to call twice."""
        ...
