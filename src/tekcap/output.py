"""Output file handling for captured hardcopies.

The capture session only needs an append-only byte sink that reports write
failures; :class:`FileSink` is the file-backed implementation.
"""

from __future__ import annotations

import logging
from pathlib import Path
from types import TracebackType
from typing import BinaryIO, Protocol

from tekcap.errors import MissingFilenameError, OutputOpenError, OutputWriteError

logger = logging.getLogger(__name__)

DEFAULT_EXTENSION = ".bmp"


class OutputSink(Protocol):
    """Append-only destination for captured bytes."""

    def write(self, data: bytes) -> None:
        """Append bytes; raise :class:`OutputWriteError` on failure."""
        ...

    def close(self) -> None:
        """Release the destination. Safe to call twice."""
        ...


def resolve_output_path(name: str, default_extension: str = DEFAULT_EXTENSION) -> Path:
    """Turn a user-supplied output name into the path to write.

    A name without an extension gets ``default_extension``. A name ending in
    a single ``.`` is written without any extension.

    Args:
        name: Output file name as given by the user.
        default_extension: Extension to append when none is given.

    Returns:
        The resolved output path.

    Raises:
        MissingFilenameError: If the name is empty.
    """
    if name.endswith("."):
        name = name[:-1]
        if not name.strip():
            raise MissingFilenameError("Filename required.")
        return Path(name)
    if not name.strip():
        raise MissingFilenameError("Filename required.")
    path = Path(name)
    if path.suffix:
        return path
    return path.with_name(path.name + default_extension)


class FileSink:
    """Output sink writing to a local file.

    The file is created if absent and truncated if present. Every write is
    flushed, so a capture that fails part-way leaves the bytes received so
    far on disk.

    Args:
        path: File to write.

    Raises:
        OutputOpenError: If the file cannot be opened.
    """

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)
        self._bytes_written = 0
        try:
            self._file: BinaryIO | None = open(self._path, "wb")  # pylint: disable=consider-using-with
        except OSError as exc:
            raise OutputOpenError(f"IO error opening file {self._path}: {exc}") from exc
        logger.debug("Writing capture to %s", self._path)

    @property
    def path(self) -> Path:
        """The output file path."""
        return self._path

    @property
    def bytes_written(self) -> int:
        """Number of bytes written so far."""
        return self._bytes_written

    @property
    def closed(self) -> bool:
        """Return True once the file has been closed."""
        return self._file is None

    def write(self, data: bytes) -> None:
        """Append bytes to the file.

        Raises:
            OutputWriteError: If the file is closed or the write fails.
        """
        if self._file is None:
            raise OutputWriteError(f"output file {self._path} is closed")
        try:
            self._file.write(data)
            self._file.flush()
        except OSError as exc:
            raise OutputWriteError(f"IO error writing output: {exc}") from exc
        self._bytes_written += len(data)

    def close(self) -> None:
        """Close the file. Safe to call multiple times.

        Raises:
            OutputWriteError: If flushing the remaining data fails.
        """
        if self._file is None:
            return
        try:
            self._file.close()
        except OSError as exc:
            raise OutputWriteError(f"IO error closing output: {exc}") from exc
        finally:
            self._file = None

    def __enter__(self) -> FileSink:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()
