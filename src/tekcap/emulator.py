"""Serial-to-GPIB adapter emulator.

Provides an in-process emulator of the adapter, with a Tektronix scope on the
bus, implementing the ``ByteTransport`` protocol. It answers the version
query, tracks addressing and mode, and relays a hardcopy after a read
request, going silent once the hardcopy is exhausted.
"""

from __future__ import annotations

import struct
from dataclasses import dataclass, field

from tekcap.adapter import CMD_ADDRESS, CMD_MODE, CMD_READ, CMD_VERSION, HARDCOPY_START, TERMINATOR
from tekcap.errors import TransportIOError

# ---------------------------------------------------------------------------
# Screen content
# ---------------------------------------------------------------------------


def make_bitmap_hardcopy(width: int = 32, height: int = 16) -> bytes:
    """Build a small 24-bit BMP with a diagonal test pattern.

    Args:
        width: Image width in pixels (> 0).
        height: Image height in pixels (> 0).

    Returns:
        The complete BMP file contents.
    """
    if width < 1 or height < 1:
        raise ValueError("width and height must be >= 1")
    row_size = (width * 3 + 3) & ~3
    pixels = bytearray()
    for y in range(height):
        row = bytearray()
        for x in range(width):
            row += b"\x00\xff\x00" if (x + y) % 8 == 0 else b"\x10\x10\x10"
        row += b"\x00" * (row_size - len(row))
        pixels += row
    header_size = 14 + 40
    file_header = struct.pack("<2sIHHI", b"BM", header_size + len(pixels), 0, 0, header_size)
    info_header = struct.pack(
        "<IiiHHIIiiII", 40, width, height, 1, 24, 0, len(pixels), 2835, 2835, 0, 0
    )
    return file_header + info_header + bytes(pixels)


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class AdapterEmulatorConfig:
    """Configuration for an adapter emulator instance.

    Args:
        version: Reply to ``+ver`` (without terminator).
        address: GPIB address the emulated scope answers on (0 to 30).
        hardcopy: Bytes the scope sends for ``HARDC STAR``.
        chunk_size: Largest number of bytes a single ``read()`` returns (> 0).
        burst_size: Bytes relayed per ``+read`` before the adapter goes
            quiet again. ``None`` relays the whole hardcopy.
        stale: Bytes already queued when the emulator is created.
    """

    version: str = "GPIB-Serial adapter emulator 1.0"
    address: int = 1
    hardcopy: bytes = field(default_factory=make_bitmap_hardcopy)
    chunk_size: int = 256
    burst_size: int | None = None
    stale: bytes = b""

    def __post_init__(self) -> None:
        if not self.version:
            raise ValueError("version must be non-empty")
        if not 0 <= self.address <= 30:
            raise ValueError("address must be between 0 and 30")
        if self.chunk_size < 1:
            raise ValueError("chunk_size must be >= 1")
        if self.burst_size is not None and self.burst_size < 1:
            raise ValueError("burst_size must be >= 1")


# ---------------------------------------------------------------------------
# Emulator
# ---------------------------------------------------------------------------


class AdapterEmulator:
    """In-process adapter emulator implementing ``ByteTransport``.

    Commands are processed as soon as their carriage return arrives. Replies
    (version string, stale bytes) are returned first; after that a ``+read``
    with a hardcopy pending lets up to ``burst_size`` hardcopy bytes through,
    ``chunk_size`` at a time. Once the hardcopy is exhausted reads return
    ``b""``, which is what the capture session sees as end of transfer.

    Args:
        config: Emulator configuration.
    """

    def __init__(self, config: AdapterEmulatorConfig | None = None) -> None:
        self._config = config or AdapterEmulatorConfig()
        self._line = bytearray()
        self._replies = bytearray(self._config.stale)
        self._pending = b""
        self._relay_budget = 0
        self._address: int | None = None
        self._mode: int | None = None
        self.commands: list[str] = []
        self.closed = False

    # -- Properties ---------------------------------------------------------

    @property
    def config(self) -> AdapterEmulatorConfig:
        """The emulator configuration."""
        return self._config

    @property
    def address(self) -> int | None:
        """Address set with ``++addr``, if any."""
        return self._address

    @property
    def mode(self) -> int | None:
        """Mode set with ``++mode``, if any."""
        return self._mode

    @property
    def hardcopy_remaining(self) -> int:
        """Hardcopy bytes not yet relayed."""
        return len(self._pending)

    # -- Transport interface ------------------------------------------------

    def write(self, data: bytes) -> int:
        """Feed bytes to the emulated adapter."""
        self._check_open()
        for byte in data:
            if byte == ord(TERMINATOR):
                self._handle_line(self._line.decode("ascii", errors="replace").strip())
                self._line.clear()
            else:
                self._line.append(byte)
        return len(data)

    def read(self, max_len: int) -> bytes:
        """Return up to ``max_len`` bytes, empty when the adapter is quiet."""
        self._check_open()
        if self._replies:
            data = bytes(self._replies[:max_len])
            del self._replies[:max_len]
            return data
        size = min(max_len, self._config.chunk_size, self._relay_budget, len(self._pending))
        if size <= 0:
            return b""
        data, self._pending = self._pending[:size], self._pending[size:]
        self._relay_budget -= size
        return data

    def close(self) -> None:
        """Mark the emulator closed. Safe to call multiple times."""
        self.closed = True

    # -- Command handling ---------------------------------------------------

    def _handle_line(self, line: str) -> None:
        if not line:
            return
        self.commands.append(line)
        command, _, argument = line.partition(" ")
        if command == CMD_VERSION:
            self._replies += f"{self._config.version}\r\n".encode("ascii")
        elif command == CMD_READ:
            self._relay_budget = self._config.burst_size or len(self._pending)
        elif command == CMD_ADDRESS:
            self._address = _parse_int(argument)
        elif command == CMD_MODE:
            self._mode = _parse_int(argument)
        elif line.upper() == HARDCOPY_START and self._scope_addressed():
            self._pending = self._config.hardcopy
            self._relay_budget = 0

    def _scope_addressed(self) -> bool:
        return self._mode == 1 and self._address == self._config.address

    def _check_open(self) -> None:
        if self.closed:
            raise TransportIOError("emulator is closed")


def _parse_int(text: str) -> int | None:
    try:
        return int(text.strip())
    except ValueError:
        return None


def make_emulator(**kwargs: object) -> AdapterEmulator:
    """Create an emulator, passing ``kwargs`` to :class:`AdapterEmulatorConfig`."""
    return AdapterEmulator(AdapterEmulatorConfig(**kwargs))  # type: ignore[arg-type]
