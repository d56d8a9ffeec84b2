"""Hardcopy capture session.

This module provides :class:`CaptureSession`, which runs one complete
screenshot capture: it opens the adapter's serial port, drains stale adapter
output, checks the adapter answers, addresses the scope, starts a hardcopy,
and streams the resulting bytes into the output file.

The hardcopy stream has neither a length header nor an end marker at this
layer. Completion is inferred from silence: when no data arrives for a stall
window the session sends a keep-alive read request, and when a further full
stall window passes without data (with the default of one retry) the
hardcopy is judged complete. Any data resets both the stall timer and the
retry count. A very slow instrument can therefore be cut short, which is why
the stall window and retry count are configurable.

Typical usage::

    from tekcap import CaptureConfig, capture

    result = capture(CaptureConfig(output="screen", port="/dev/ttyUSB0"))
    if result.succeeded:
        print(f"Wrote {result.bytes_written} bytes to {result.output_path}")
"""

from __future__ import annotations

import contextlib
import logging
import sys
import time
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING, Callable, TextIO

from tekcap.adapter import GpibAdapter
from tekcap.errors import (
    CommandWriteError,
    ExitCode,
    KeepAliveError,
    StaleInputError,
    StreamReadError,
    TekcapError,
    TransportIOError,
)
from tekcap.output import FileSink
from tekcap.serial_port import open_serial

if TYPE_CHECKING:
    from tekcap.config import CaptureConfig, CaptureTiming
    from tekcap.output import OutputSink
    from tekcap.serial_port import SerialSettings
    from tekcap.transport import ByteTransport

logger = logging.getLogger(__name__)

TransportFactory = Callable[["SerialSettings"], "ByteTransport"]
SinkFactory = Callable[[Path], "OutputSink"]


class CaptureState(Enum):
    """State of a capture session."""

    INIT = "init"
    PROBING = "probing"
    CONFIGURING = "configuring"
    TRIGGERING = "triggering"
    STREAMING = "streaming"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass
class StreamState:
    """Mutable bookkeeping of the streaming phase.

    Attributes:
        idle_since: Clock reading of the last data or keep-alive request.
        idle_retries: Consecutive stall windows without data.
        bytes_since_progress: Bytes received since the last progress dot.
        bytes_received: Total bytes received.
        chunks: Number of non-empty reads.
        nudges: Keep-alive requests sent.
    """

    idle_since: float
    idle_retries: int = 0
    bytes_since_progress: int = 0
    bytes_received: int = 0
    chunks: int = 0
    nudges: int = 0


@dataclass(frozen=True)
class CaptureResult:
    """Outcome of a capture session.

    Attributes:
        state: Final state, ``COMPLETED`` or ``FAILED``.
        output_path: File the hardcopy was written to, if resolved.
        bytes_written: Bytes written to the output.
        adapter_version: Version string reported by the adapter, if probed.
        nudges: Keep-alive requests sent while streaming.
        elapsed: Session duration in seconds.
        error: The failure, for a failed session.
    """

    state: CaptureState
    output_path: Path | None = None
    bytes_written: int = 0
    adapter_version: str | None = None
    nudges: int = 0
    elapsed: float = 0.0
    error: TekcapError | None = None

    @property
    def succeeded(self) -> bool:
        """Return True if the capture completed."""
        return self.state == CaptureState.COMPLETED

    @property
    def exit_code(self) -> int:
        """Process exit status for this outcome."""
        if self.error is not None:
            return int(self.error.exit_code)
        return int(ExitCode.SUCCESS)


class ProgressReporter:
    """Prints the cosmetic progress indicator.

    A ``.`` is printed for every ``chunk`` bytes received and a ``:`` for
    every keep-alive request.

    Args:
        stream: Text stream to write to. Defaults to ``sys.stdout``.
        quiet: Suppress all output.
    """

    def __init__(self, stream: TextIO | None = None, *, quiet: bool = False) -> None:
        self._stream = stream
        self._quiet = quiet

    def _emit(self, text: str) -> None:
        if self._quiet:
            return
        stream = self._stream or sys.stdout
        stream.write(text)
        stream.flush()

    def adapter_version(self, version: str) -> None:
        self._emit(f"GPIB adapter version: {version}\n")

    def data(self, dots: int) -> None:
        self._emit("." * dots)

    def stall(self) -> None:
        self._emit(":")

    def finish(self) -> None:
        self._emit("\n")


class CaptureSession:
    """Runs one hardcopy capture.

    The session owns the transport and the output sink for its whole
    lifetime and releases both, in reverse order of acquisition, on every
    exit path.

    Args:
        config: Capture configuration.
        transport_factory: Opens the transport for the given serial settings.
        sink_factory: Opens the output sink for the resolved output path.
        clock: Monotonic clock in seconds, replaceable in tests.
        sleep: Sleep function, replaceable in tests.
        progress: Progress indicator. Defaults to printing on stdout.
    """

    def __init__(
        self,
        config: CaptureConfig,
        *,
        transport_factory: TransportFactory = open_serial,
        sink_factory: SinkFactory = FileSink,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
        progress: ProgressReporter | None = None,
    ) -> None:
        self._config = config
        self._transport_factory = transport_factory
        self._sink_factory = sink_factory
        self._clock = clock
        self._sleep = sleep
        self._progress = progress or ProgressReporter()
        self._state = CaptureState.INIT
        self._history: list[CaptureState] = [CaptureState.INIT]
        self._adapter_version: str | None = None
        self._output_path: Path | None = None
        self._stream: StreamState | None = None

    # -- Properties ----------------------------------------------------------

    @property
    def state(self) -> CaptureState:
        """Current session state."""
        return self._state

    @property
    def history(self) -> tuple[CaptureState, ...]:
        """States visited so far, in order."""
        return tuple(self._history)

    @property
    def stream_state(self) -> StreamState | None:
        """Streaming bookkeeping, once streaming has started."""
        return self._stream

    # -- Public API ----------------------------------------------------------

    def run(self) -> CaptureResult:
        """Run the capture to completion or failure.

        Returns:
            The outcome. Failures are reported in the result, not raised.
        """
        if self._state != CaptureState.INIT:
            raise RuntimeError("a capture session can only be run once")

        started = self._clock()
        error: TekcapError | None = None
        try:
            self._config.validate()
            self._output_path = self._config.output_path
            with contextlib.ExitStack() as stack:
                self._run(stack)
        except TekcapError as exc:
            error = exc
            self._transition(CaptureState.FAILED)
            logger.debug("Capture failed: %s", exc)
        else:
            self._transition(CaptureState.COMPLETED)

        stream = self._stream
        return CaptureResult(
            state=self._state,
            output_path=self._output_path,
            bytes_written=stream.bytes_received if stream else 0,
            adapter_version=self._adapter_version,
            nudges=stream.nudges if stream else 0,
            elapsed=self._clock() - started,
            error=error,
        )

    # -- Phases --------------------------------------------------------------

    def _run(self, stack: contextlib.ExitStack) -> None:
        self._transition(CaptureState.PROBING)
        transport = self._transport_factory(self._config.serial_settings())
        stack.callback(transport.close)
        adapter = GpibAdapter(transport, sleep=self._sleep)

        try:
            adapter.flush_stale_input()
        except TransportIOError as exc:
            raise StaleInputError(f"IO error clearing input buffer: {exc}") from exc
        self._adapter_version = adapter.query_version()
        logger.debug("Adapter version %r", self._adapter_version)
        self._progress.adapter_version(self._adapter_version)

        assert self._output_path is not None
        sink = self._sink_factory(self._output_path)
        stack.push(_guarded_close(sink))

        self._transition(CaptureState.CONFIGURING)
        try:
            adapter.set_address_and_mode(self._config.address)
        except TransportIOError as exc:
            raise CommandWriteError(f"IO error writing command: {exc}") from exc

        self._transition(CaptureState.TRIGGERING)
        self._sleep(self._config.timing.trigger_settle)
        try:
            adapter.request_continue_read()
        except TransportIOError as exc:
            raise CommandWriteError(f"IO error writing command: {exc}") from exc

        self._transition(CaptureState.STREAMING)
        try:
            self._stream_hardcopy(adapter, sink)
        finally:
            self._progress.finish()

        try:
            adapter.send_terminator()
        except TransportIOError as exc:
            logger.warning("Could not send final terminator: %s", exc)

    def _stream_hardcopy(self, adapter: GpibAdapter, sink: OutputSink) -> None:
        timing: CaptureTiming = self._config.timing
        stream = StreamState(idle_since=self._clock())
        self._stream = stream

        while True:
            if self._clock() - stream.idle_since > timing.stall_timeout:
                stream.idle_retries += 1
                if stream.idle_retries > timing.max_idle_retries:
                    logger.debug(
                        "No data for %d stall windows; hardcopy complete", stream.idle_retries
                    )
                    return
                try:
                    adapter.request_continue_read()
                except TransportIOError as exc:
                    raise KeepAliveError(f"IO error during timeout retry: {exc}") from exc
                stream.nudges += 1
                stream.idle_since = self._clock()
                self._progress.stall()
                self._sleep(timing.nudge_delay)

            try:
                data = adapter.read_chunk()
            except TransportIOError as exc:
                raise StreamReadError(f"IO error reading data: {exc}") from exc

            if data:
                sink.write(data)
                stream.idle_retries = 0
                stream.idle_since = self._clock()
                stream.chunks += 1
                stream.bytes_received += len(data)
                stream.bytes_since_progress += len(data)
                dots, stream.bytes_since_progress = divmod(
                    stream.bytes_since_progress, timing.progress_chunk
                )
                if dots:
                    self._progress.data(dots)

            self._sleep(timing.poll_interval)

    # -- Private helpers -----------------------------------------------------

    def _transition(self, state: CaptureState) -> None:
        logger.debug("Capture state %s -> %s", self._state.value, state.value)
        self._state = state
        self._history.append(state)


def _guarded_close(sink: OutputSink) -> Callable[..., bool]:
    """Build an exit callback that closes ``sink`` without masking an earlier failure.

    A close error is raised when the session is otherwise succeeding, and only
    logged when another error is already propagating.
    """

    def close(exc_type: object, exc: BaseException | None, tb: object) -> bool:
        try:
            sink.close()
        except TekcapError as close_exc:
            if exc is None:
                raise
            logger.warning("Could not close output after failure: %s", close_exc)
        return False

    return close


def capture(config: CaptureConfig, **kwargs: object) -> CaptureResult:
    """Run a single capture.

    Args:
        config: Capture configuration.
        **kwargs: Passed to :class:`CaptureSession`.

    Returns:
        The capture outcome.
    """
    return CaptureSession(config, **kwargs).run()  # type: ignore[arg-type]
