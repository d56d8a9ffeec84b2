"""Unit tests for capture configuration and config file loading."""

from __future__ import annotations

from pathlib import Path

import pytest

from tekcap.config import (
    DEFAULT_PORT,
    CaptureConfig,
    CaptureTiming,
    find_config,
    load_config,
)
from tekcap.errors import (
    AddressOutOfRangeError,
    BaudOutOfRangeError,
    ConfigFileError,
    MissingFilenameError,
)


class TestCaptureTiming:
    def test_defaults(self) -> None:
        timing = CaptureTiming()
        assert timing.stall_timeout == 1.0
        assert timing.poll_interval == 0.02
        assert timing.max_idle_retries == 1
        assert timing.trigger_settle == 0.5
        assert timing.progress_chunk == 1024

    def test_frozen(self) -> None:
        timing = CaptureTiming()
        with pytest.raises(AttributeError):
            timing.stall_timeout = 2.0  # type: ignore[misc]

    def test_zero_stall_timeout_raises(self) -> None:
        with pytest.raises(ValueError, match="stall_timeout"):
            CaptureTiming(stall_timeout=0)

    def test_negative_delay_raises(self) -> None:
        with pytest.raises(ValueError, match="delays"):
            CaptureTiming(poll_interval=-0.01)

    def test_negative_retries_raises(self) -> None:
        with pytest.raises(ValueError, match="max_idle_retries"):
            CaptureTiming(max_idle_retries=-1)

    def test_zero_retries_allowed(self) -> None:
        assert CaptureTiming(max_idle_retries=0).max_idle_retries == 0

    def test_from_dict(self) -> None:
        timing = CaptureTiming.from_dict({"stall_timeout": 2.5, "max_idle_retries": 3})
        assert timing.stall_timeout == 2.5
        assert timing.max_idle_retries == 3
        assert timing.poll_interval == 0.02

    def test_from_dict_unknown_key(self) -> None:
        with pytest.raises(ValueError, match="Unknown timing keys: stall"):
            CaptureTiming.from_dict({"stall": 2.5})

    @pytest.mark.parametrize("key", ["progress_chunk", "max_idle_retries"])
    def test_from_dict_count_must_be_integer(self, key: str) -> None:
        with pytest.raises(ValueError, match=f"'{key}' must be an integer"):
            CaptureTiming.from_dict({key: 1.5})

    @pytest.mark.parametrize("key", ["stall_timeout", "max_idle_retries", "progress_chunk"])
    def test_from_dict_rejects_booleans(self, key: str) -> None:
        with pytest.raises(ValueError, match="not a boolean"):
            CaptureTiming.from_dict({key: True})

    def test_from_dict_delay_must_be_number(self) -> None:
        with pytest.raises(ValueError, match="'poll_interval' must be a number"):
            CaptureTiming.from_dict({"poll_interval": "fast"})

    def test_from_dict_accepts_integer_delay(self) -> None:
        assert CaptureTiming.from_dict({"stall_timeout": 2}).stall_timeout == 2


class TestCaptureConfigValidation:
    def test_defaults_valid(self) -> None:
        config = CaptureConfig(output="screen")
        config.validate()
        assert config.port == DEFAULT_PORT
        assert config.baudrate == 230400
        assert config.address == 1

    def test_missing_output(self) -> None:
        with pytest.raises(MissingFilenameError):
            CaptureConfig(output="").validate()

    @pytest.mark.parametrize("address", [0, 30])
    def test_address_bounds_valid(self, address: int) -> None:
        CaptureConfig(output="x", address=address).validate()

    @pytest.mark.parametrize("address", [-1, 31, 255])
    def test_address_out_of_range(self, address: int) -> None:
        with pytest.raises(AddressOutOfRangeError, match=f"Address {address} out of range"):
            CaptureConfig(output="x", address=address).validate()

    @pytest.mark.parametrize("baud", [1, 9600, 6_000_000])
    def test_baud_bounds_valid(self, baud: int) -> None:
        CaptureConfig(output="x", baudrate=baud).validate()

    @pytest.mark.parametrize("baud", [0, -9600, 6_000_001])
    def test_baud_out_of_range(self, baud: int) -> None:
        with pytest.raises(BaudOutOfRangeError, match=f"Baud rate {baud} out of range"):
            CaptureConfig(output="x", baudrate=baud).validate()

    def test_filename_checked_first(self) -> None:
        with pytest.raises(MissingFilenameError):
            CaptureConfig(output="", address=99, baudrate=0).validate()

    def test_output_path(self) -> None:
        assert CaptureConfig(output="screen").output_path == Path("screen.bmp")

    def test_serial_settings(self) -> None:
        settings = CaptureConfig(output="x", port="COM3", baudrate=115200).serial_settings()
        assert settings.port == "COM3"
        assert settings.baudrate == 115200


class TestFromSources:
    def test_defaults_only(self) -> None:
        config = CaptureConfig.from_sources(None, output="shot")
        assert config.output == "shot"
        assert config.address == 1

    def test_file_values_used(self) -> None:
        config = CaptureConfig.from_sources(
            {"port": "/dev/ttyS1", "address": 4, "timing": {"stall_timeout": 3.0}},
            output="shot",
        )
        assert config.port == "/dev/ttyS1"
        assert config.address == 4
        assert config.timing.stall_timeout == 3.0

    def test_overrides_win(self) -> None:
        config = CaptureConfig.from_sources(
            {"port": "/dev/ttyS1", "address": 4}, output="shot", port="COM1", address=7
        )
        assert config.port == "COM1"
        assert config.address == 7

    def test_none_overrides_ignored(self) -> None:
        config = CaptureConfig.from_sources({"baudrate": 9600}, output="shot", baudrate=None)
        assert config.baudrate == 9600

    def test_missing_output_defaults_empty(self) -> None:
        config = CaptureConfig.from_sources({})
        with pytest.raises(MissingFilenameError):
            config.validate()

    def test_timing_instance_passed_through(self) -> None:
        timing = CaptureTiming(max_idle_retries=4)
        config = CaptureConfig.from_sources(None, output="x", timing=timing)
        assert config.timing is timing


class TestLoadConfig:
    def test_load_file(self, tmp_path: Path) -> None:
        path = tmp_path / "tekcap.yaml"
        path.write_text(
            "port: /dev/ttyUSB1\n"
            "baudrate: 115200\n"
            "address: 3\n"
            "timing:\n"
            "  stall_timeout: 2.0\n"
            "  max_idle_retries: 2\n"
        )
        data = load_config(path)
        assert data == {
            "port": "/dev/ttyUSB1",
            "baudrate": 115200,
            "address": 3,
            "timing": {"stall_timeout": 2.0, "max_idle_retries": 2},
        }

    def test_empty_file(self, tmp_path: Path) -> None:
        path = tmp_path / "tekcap.yaml"
        path.write_text("")
        assert load_config(path) == {}

    def test_no_config_found(self, tmp_path: Path) -> None:
        assert load_config(search_paths=[tmp_path / "nope.yaml"]) == {}

    def test_search_paths_first_match(self, tmp_path: Path) -> None:
        first = tmp_path / "a.yaml"
        second = tmp_path / "b.yaml"
        second.write_text("address: 9\n")
        first.write_text("address: 2\n")
        assert load_config(search_paths=[tmp_path / "missing.yaml", first, second]) == {
            "address": 2
        }

    def test_env_var_path(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        path = tmp_path / "env.yaml"
        path.write_text("port: COM5\n")
        monkeypatch.setenv("TEKCAP_CONFIG", str(path))
        assert find_config() == path

    def test_missing_explicit_file(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigFileError, match="Cannot read config file"):
            load_config(tmp_path / "missing.yaml")

    def test_invalid_yaml(self, tmp_path: Path) -> None:
        path = tmp_path / "bad.yaml"
        path.write_text("port: [unclosed\n")
        with pytest.raises(ConfigFileError, match="Invalid YAML"):
            load_config(path)

    def test_not_a_mapping(self, tmp_path: Path) -> None:
        path = tmp_path / "list.yaml"
        path.write_text("- port\n- address\n")
        with pytest.raises(ConfigFileError, match="must contain a mapping"):
            load_config(path)

    def test_unknown_key(self, tmp_path: Path) -> None:
        path = tmp_path / "extra.yaml"
        path.write_text("port: COM1\nparity: even\n")
        with pytest.raises(ConfigFileError, match="Unknown keys.*parity"):
            load_config(path)

    @pytest.mark.parametrize(
        "text", ["address: one\n", "baudrate: 1.5\n", "port: 14\n", "timing: fast\n", "address: true\n"]
    )
    def test_wrong_type(self, tmp_path: Path, text: str) -> None:
        path = tmp_path / "typed.yaml"
        path.write_text(text)
        with pytest.raises(ConfigFileError, match="must be of type"):
            load_config(path)

    def test_invalid_utf8(self, tmp_path: Path) -> None:
        path = tmp_path / "binary.yaml"
        path.write_bytes(b"port: \xff\xfe\n")
        with pytest.raises(ConfigFileError, match="not valid UTF-8"):
            load_config(path)

    @pytest.mark.parametrize(
        "text",
        [
            "timing:\n  progress_chunk: 1.5\n",
            "timing:\n  stall_timeout: true\n",
            "timing:\n  max_idle_retries: true\n",
            "timing:\n  poll_interval: soon\n",
            "timing:\n  stall_timeout: 0\n",
            "timing:\n  settle: 0.5\n",
        ],
    )
    def test_invalid_timing(self, tmp_path: Path, text: str) -> None:
        path = tmp_path / "timing.yaml"
        path.write_text(text)
        with pytest.raises(ConfigFileError, match="Invalid timing"):
            load_config(path)

    def test_config_file_error_is_value_error(self, tmp_path: Path) -> None:
        with pytest.raises(ValueError):
            load_config(tmp_path / "missing.yaml")
