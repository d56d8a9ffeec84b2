"""Command driver for the serial-to-GPIB adapter.

This module provides :class:`GpibAdapter`, which turns capture intents
(drain stale input, check the adapter is alive, address the scope, start a
hardcopy, ask for more data) into the adapter's line commands. Every command
is plain ASCII terminated by a single carriage return, with no line feed.

Adapter commands (``+`` prefix) are consumed by the adapter itself;
``++addr``/``++mode`` configure the GPIB side; anything else (``HARDC STAR``)
is forwarded to the instrument.

Typical usage::

    from tekcap import GpibAdapter, SerialSettings, open_serial

    port = open_serial(SerialSettings("/dev/ttyUSB0"))
    adapter = GpibAdapter(port)
    adapter.flush_stale_input()
    print(adapter.query_version())
    adapter.set_address_and_mode(1)
    adapter.request_continue_read()
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING, Callable

from tekcap.errors import AddressOutOfRangeError, AdapterUnresponsiveError, TransportIOError

if TYPE_CHECKING:
    from tekcap.transport import ByteTransport

logger = logging.getLogger(__name__)

TERMINATOR = "\r"

CMD_READ = "+read"
CMD_VERSION = "+ver"
CMD_ADDRESS = "++addr"
CMD_MODE = "++mode"
HARDCOPY_START = "HARDC STAR"

# Addressable (talk/listen) mode.
MODE_ADDRESSABLE = 1

MIN_ADDRESS = 0
MAX_ADDRESS = 30

# Leading carriage returns terminate any half-typed command left in the
# adapter's line buffer.
_FLUSH_PROBE = f"{TERMINATOR}{TERMINATOR}{CMD_READ}{TERMINATOR}"


@dataclass(frozen=True)
class AdapterTiming:
    """Delays used while talking to the adapter.

    Attributes:
        flush_interval: Pause before each drain read, in seconds.
        version_settle: Pause between the version query and its read, in seconds.
        max_flush_reads: Upper bound on drain reads.
        buffer_size: Read request size in bytes.
    """

    flush_interval: float = 0.01
    version_settle: float = 0.1
    max_flush_reads: int = 1000
    buffer_size: int = 1024

    def __post_init__(self) -> None:
        if self.flush_interval < 0 or self.version_settle < 0:
            raise ValueError("delays must be >= 0")
        if self.max_flush_reads < 1:
            raise ValueError("max_flush_reads must be >= 1")
        if self.buffer_size < 1:
            raise ValueError("buffer_size must be >= 1")


def validate_address(address: int) -> int:
    """Check a GPIB primary address.

    Args:
        address: Address to check.

    Returns:
        The address, unchanged.

    Raises:
        AddressOutOfRangeError: If the address is outside 0 to 30.
    """
    if not MIN_ADDRESS <= address <= MAX_ADDRESS:
        raise AddressOutOfRangeError(f"Address {address} out of range.")
    return address


def build_capture_commands(address: int, trigger: str = HARDCOPY_START) -> tuple[str, ...]:
    """Build the command sequence that addresses the scope and starts a hardcopy.

    Args:
        address: GPIB address of the scope.
        trigger: Instrument command that starts the hardcopy.

    Returns:
        The commands in send order, without terminators.

    Raises:
        AddressOutOfRangeError: If the address is outside 0 to 30.
    """
    validate_address(address)
    return (
        f"{CMD_ADDRESS} {address}",
        f"{CMD_MODE} {MODE_ADDRESSABLE}",
        trigger,
    )


def encode_commands(*commands: str) -> bytes:
    """Join commands into one carriage-return terminated ASCII payload."""
    return "".join(f"{command}{TERMINATOR}" for command in commands).encode("ascii")


class GpibAdapter:
    """Driver for the adapter's line-command dialect.

    Write and read failures of the transport propagate unchanged as
    :class:`TransportIOError`; the capture session decides which failure
    kind they represent.

    Args:
        transport: An open :class:`~tekcap.transport.ByteTransport`.
        sleep: Sleep function, replaceable in tests.
        timing: Delays and read sizes.
    """

    def __init__(
        self,
        transport: ByteTransport,
        *,
        sleep: Callable[[float], None] = time.sleep,
        timing: AdapterTiming | None = None,
    ) -> None:
        self._transport = transport
        self._sleep = sleep
        self._timing = timing or AdapterTiming()

    @property
    def timing(self) -> AdapterTiming:
        """The adapter delays and read sizes."""
        return self._timing

    # -- Probing -------------------------------------------------------------

    def flush_stale_input(self) -> int:
        """Drain anything the adapter still has queued.

        Sends a benign read request, then reads until a read comes back
        empty.

        Returns:
            Number of stale bytes discarded.

        Raises:
            TransportIOError: If a write or read fails.
        """
        self._send(_FLUSH_PROBE.encode("ascii"))
        discarded = 0
        for _ in range(self._timing.max_flush_reads):
            self._sleep(self._timing.flush_interval)
            data = self._transport.read(self._timing.buffer_size)
            if not data:
                break
            discarded += len(data)
        else:
            logger.warning(
                "Adapter still sending after %d reads; continuing", self._timing.max_flush_reads
            )
        logger.debug("Discarded %d stale bytes", discarded)
        return discarded

    def query_version(self) -> str:
        """Ask the adapter for its version string.

        Returns:
            The version reply, stripped.

        Raises:
            AdapterUnresponsiveError: If the query cannot be sent, the read
                fails, or the reply is empty.
        """
        try:
            self.send_command(CMD_VERSION)
            self._sleep(self._timing.version_settle)
            reply = self._transport.read(self._timing.buffer_size)
        except TransportIOError as exc:
            raise AdapterUnresponsiveError("IO error testing port.") from exc
        if not reply:
            raise AdapterUnresponsiveError("GPIB adapter did not answer the version query.")
        return reply.decode("ascii", errors="replace").strip()

    # -- Commands ------------------------------------------------------------

    def send_command(self, command: str) -> None:
        """Send a single terminated command."""
        self._send(encode_commands(command))

    def set_address_and_mode(self, address: int, trigger: str = HARDCOPY_START) -> None:
        """Address the scope, select addressable mode and start the hardcopy.

        The whole sequence goes out in a single write.

        Args:
            address: GPIB address of the scope.
            trigger: Instrument command that starts the hardcopy.

        Raises:
            AddressOutOfRangeError: If the address is outside 0 to 30.
            TransportIOError: If the write fails.
        """
        commands = build_capture_commands(address, trigger)
        self._send(encode_commands(*commands))
        logger.debug("Sent %s", " / ".join(commands))

    def request_continue_read(self) -> None:
        """Ask the adapter to relay more instrument output."""
        self.send_command(CMD_READ)

    def send_terminator(self) -> None:
        """Send a bare carriage return."""
        self._send(TERMINATOR.encode("ascii"))

    def read_chunk(self, max_len: int | None = None) -> bytes:
        """Read one chunk of relayed data; empty when nothing arrived."""
        return self._transport.read(max_len or self._timing.buffer_size)

    # -- Private helpers -----------------------------------------------------

    def _send(self, payload: bytes) -> None:
        self._transport.write(payload)
