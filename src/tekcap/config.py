"""Capture configuration and YAML config file loading.

Settings come from three layers, later ones winning: built-in defaults, an
optional YAML file, and command-line options.

Example YAML configuration::

    port: /dev/ttyUSB0
    baudrate: 230400
    address: 1
    timing:
      stall_timeout: 1.0
      poll_interval: 0.02
      max_idle_retries: 1

The file is looked up in, in order: ``$TEKCAP_CONFIG``,
``~/.config/tekcap/tekcap.yaml`` and ``/etc/tekcap/tekcap.yaml``.
"""

from __future__ import annotations

import dataclasses
import logging
import os
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping

import yaml

from tekcap.adapter import MAX_ADDRESS, MIN_ADDRESS
from tekcap.errors import (
    AddressOutOfRangeError,
    BaudOutOfRangeError,
    ConfigFileError,
    MissingFilenameError,
)
from tekcap.output import resolve_output_path
from tekcap.serial_port import DEFAULT_BAUDRATE, MAX_BAUDRATE, SerialSettings

logger = logging.getLogger(__name__)

DEFAULT_PORT = "COM14" if sys.platform.startswith("win") else "/dev/ttyUSB0"
DEFAULT_ADDRESS = 1

_FILE_KEYS: dict[str, type] = {"port": str, "baudrate": int, "address": int, "timing": dict}
_COUNT_TIMING_KEYS = frozenset({"max_idle_retries", "progress_chunk"})


@dataclass(frozen=True)
class CaptureTiming:
    """Tunable timing of the streaming phase.

    The defaults match a TDS-series scope behind a 230400 baud adapter. Slow
    links or large hardcopies may need a longer stall window or more retries.

    Attributes:
        stall_timeout: Silence after which a keep-alive read request is sent,
            in seconds.
        poll_interval: Pause between streaming reads, in seconds.
        nudge_delay: Pause after a keep-alive request, in seconds.
        max_idle_retries: Keep-alive requests allowed without data before the
            hardcopy is judged complete.
        trigger_settle: Pause between starting the hardcopy and the first
            read request, in seconds.
        progress_chunk: Bytes per progress dot.
    """

    stall_timeout: float = 1.0
    poll_interval: float = 0.02
    nudge_delay: float = 0.01
    max_idle_retries: int = 1
    trigger_settle: float = 0.5
    progress_chunk: int = 1024

    def __post_init__(self) -> None:
        if self.stall_timeout <= 0:
            raise ValueError("stall_timeout must be > 0")
        if self.poll_interval < 0 or self.nudge_delay < 0 or self.trigger_settle < 0:
            raise ValueError("delays must be >= 0")
        if self.max_idle_retries < 0:
            raise ValueError("max_idle_retries must be >= 0")
        if self.progress_chunk < 1:
            raise ValueError("progress_chunk must be >= 1")

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> CaptureTiming:
        """Build timing from a mapping, rejecting unknown keys."""
        known = {f.name for f in dataclasses.fields(cls)}
        unknown = set(data) - known
        if unknown:
            raise ValueError(f"Unknown timing keys: {', '.join(sorted(unknown))}")
        for key, value in data.items():
            # bool is an int subclass but never a valid delay or count
            if isinstance(value, bool):
                raise ValueError(f"timing key '{key}' must be a number, not a boolean")
            if key in _COUNT_TIMING_KEYS:
                if not isinstance(value, int):
                    raise ValueError(f"timing key '{key}' must be an integer")
            elif not isinstance(value, (int, float)):
                raise ValueError(f"timing key '{key}' must be a number")
        return cls(**data)


@dataclass(frozen=True)
class CaptureConfig:
    """Everything needed to run one capture.

    Values are range-checked by :meth:`validate`, which the capture session
    calls before opening any device or file.

    Attributes:
        output: Output file name as given by the user.
        port: Serial device of the adapter.
        baudrate: Line speed in baud.
        address: GPIB address of the scope.
        timing: Streaming phase timing.
    """

    output: str
    port: str = DEFAULT_PORT
    baudrate: int = DEFAULT_BAUDRATE
    address: int = DEFAULT_ADDRESS
    timing: CaptureTiming = field(default_factory=CaptureTiming)

    def validate(self) -> None:
        """Check the output name, address and baud rate.

        Raises:
            MissingFilenameError: If no output name was given.
            AddressOutOfRangeError: If the address is outside 0 to 30.
            BaudOutOfRangeError: If the baud rate is outside (0, 6000000].
        """
        if not self.output:
            raise MissingFilenameError("Filename required.")
        if not MIN_ADDRESS <= self.address <= MAX_ADDRESS:
            raise AddressOutOfRangeError(f"Address {self.address} out of range.")
        if not 0 < self.baudrate <= MAX_BAUDRATE:
            raise BaudOutOfRangeError(f"Baud rate {self.baudrate} out of range.")

    @property
    def output_path(self) -> Path:
        """The output path with the default extension applied."""
        return resolve_output_path(self.output)

    def serial_settings(self) -> SerialSettings:
        """Serial line settings for this configuration."""
        return SerialSettings(port=self.port, baudrate=self.baudrate)

    @classmethod
    def from_sources(
        cls,
        file_values: Mapping[str, Any] | None = None,
        **overrides: Any,
    ) -> CaptureConfig:
        """Merge config file values with command-line overrides.

        Overrides whose value is ``None`` are ignored, so unset command-line
        options fall through to the file and then to the defaults.

        Args:
            file_values: Mapping returned by :func:`load_config`.
            **overrides: Field values from the command line.

        Returns:
            The merged configuration.
        """
        values: dict[str, Any] = dict(file_values or {})
        values.update({k: v for k, v in overrides.items() if v is not None})
        timing = values.pop("timing", None)
        if isinstance(timing, Mapping):
            values["timing"] = CaptureTiming.from_dict(timing)
        elif timing is not None:
            values["timing"] = timing
        values.setdefault("output", "")
        return cls(**values)


def _get_search_paths() -> list[Path]:
    """Get candidate config file locations, in priority order."""
    paths: list[Path] = []

    env_path = os.environ.get("TEKCAP_CONFIG")
    if env_path:
        paths.append(Path(env_path))

    paths.append(Path.home() / ".config" / "tekcap" / "tekcap.yaml")
    paths.append(Path("/etc/tekcap/tekcap.yaml"))
    return paths


def find_config(search_paths: list[str | Path] | None = None) -> Path | None:
    """Return the first existing config file, or None."""
    candidates = search_paths if search_paths is not None else _get_search_paths()
    for candidate in candidates:
        path = Path(candidate).expanduser()
        if path.is_file():
            return path
    return None


def load_config(
    path: str | Path | None = None,
    search_paths: list[str | Path] | None = None,
) -> dict[str, Any]:
    """Load settings from a YAML config file.

    Args:
        path: Explicit config file. Must exist when given.
        search_paths: Candidate files to try when ``path`` is None. Defaults
            to the standard locations.

    Returns:
        The settings found, empty when no config file exists.

    Raises:
        ConfigFileError: If the file cannot be read or parsed, is not a
            mapping, has unknown keys, or a value has the wrong type.
    """
    if path is None:
        found = find_config(search_paths)
        if found is None:
            return {}
        path = found

    path = Path(path)
    try:
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except OSError as exc:
        raise ConfigFileError(f"Cannot read config file {path}: {exc}") from exc
    except UnicodeDecodeError as exc:
        raise ConfigFileError(f"Config file {path} is not valid UTF-8: {exc}") from exc
    except yaml.YAMLError as exc:
        raise ConfigFileError(f"Invalid YAML in {path}: {exc}") from exc
    logger.debug("Loaded config from %s", path)

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigFileError(f"Config file {path} must contain a mapping")
    unknown = set(data) - set(_FILE_KEYS)
    if unknown:
        raise ConfigFileError(f"Unknown keys in {path}: {', '.join(sorted(unknown))}")
    for key, expected in _FILE_KEYS.items():
        value = data.get(key)
        # bool is an int subclass but never a valid port number or rate
        if value is not None and (not isinstance(value, expected) or isinstance(value, bool)):
            raise ConfigFileError(f"'{key}' in {path} must be of type {expected.__name__}")
    if data.get("timing") is not None:
        try:
            CaptureTiming.from_dict(data["timing"])
        except ValueError as exc:
            raise ConfigFileError(f"Invalid timing in {path}: {exc}") from exc
    return data
