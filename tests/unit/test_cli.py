"""Tests for the tekcap command-line interface."""

from __future__ import annotations

from pathlib import Path

import pytest

from tekcap import cli
from tekcap.emulator import make_bitmap_hardcopy
from tekcap.errors import ExitCode

FAST_TIMING = (
    "timing:\n"
    "  stall_timeout: 0.05\n"
    "  poll_interval: 0.0\n"
    "  nudge_delay: 0.0\n"
    "  trigger_settle: 0.0\n"
)


@pytest.fixture(autouse=True)
def no_user_config(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep config files on the test machine out of the way."""
    monkeypatch.setattr("tekcap.config._get_search_paths", lambda: [])


@pytest.fixture
def fast_config(tmp_path: Path) -> Path:
    path = tmp_path / "tekcap.yaml"
    path.write_text(FAST_TIMING)
    return path


class TestParser:
    def test_defaults(self) -> None:
        args = cli.build_parser().parse_args(["screen"])
        assert args.output == "screen"
        assert args.port is None
        assert args.baud is None
        assert args.address is None
        assert not args.emulate

    def test_short_options(self) -> None:
        args = cli.build_parser().parse_args(["-p", "COM3", "-b", "9600", "-a", "4", "out"])
        assert (args.port, args.baud, args.address, args.output) == ("COM3", "9600", "4", "out")


class TestMain:
    def test_no_arguments_prints_help(self, capsys: pytest.CaptureFixture[str]) -> None:
        assert cli.main([]) == 0
        out = capsys.readouterr().out
        assert out.startswith(cli.BANNER)
        assert "usage: tekcap" in out

    def test_missing_filename(self, capsys: pytest.CaptureFixture[str]) -> None:
        assert cli.main(["-p", "/dev/null"]) == ExitCode.MISSING_FILENAME
        assert "Filename required." in capsys.readouterr().out

    def test_missing_filename_reported_before_bad_address(
        self, capsys: pytest.CaptureFixture[str]
    ) -> None:
        assert cli.main(["-a", "abc"]) == ExitCode.MISSING_FILENAME
        assert "Filename required." in capsys.readouterr().out

    def test_address_out_of_range(self, capsys: pytest.CaptureFixture[str]) -> None:
        assert cli.main(["-a", "31", "screen"]) == ExitCode.ADDRESS_OUT_OF_RANGE
        assert "Address 31 out of range." in capsys.readouterr().out

    @pytest.mark.parametrize("baud", ["0", "6000001", "fast"])
    def test_baud_out_of_range(self, baud: str) -> None:
        assert cli.main(["-b", baud, "screen"]) == ExitCode.BAUD_OUT_OF_RANGE

    def test_non_numeric_address(self) -> None:
        assert cli.main(["-a", "one", "screen"]) == ExitCode.ADDRESS_OUT_OF_RANGE

    def test_missing_config_file(self, tmp_path: Path) -> None:
        code = cli.main(["-c", str(tmp_path / "missing.yaml"), "screen"])
        assert code == ExitCode.CONFIG_FILE_INVALID

    def test_invalid_timing_in_config(self, tmp_path: Path) -> None:
        path = tmp_path / "tekcap.yaml"
        path.write_text("timing:\n  stall_timeout: 0\n")
        assert cli.main(["-c", str(path), "screen"]) == ExitCode.CONFIG_FILE_INVALID

    @pytest.mark.parametrize(
        "timing", ["  progress_chunk: 1.5\n", "  max_idle_retries: true\n  stall_timeout: true\n"]
    )
    def test_mistyped_timing_in_config(self, tmp_path: Path, timing: str) -> None:
        path = tmp_path / "tekcap.yaml"
        path.write_text("timing:\n" + timing)
        code = cli.main(["--emulate", "-c", str(path), str(tmp_path / "screen")])
        assert code == ExitCode.CONFIG_FILE_INVALID
        assert not (tmp_path / "screen.bmp").exists()

    def test_port_open_failure(self, tmp_path: Path) -> None:
        code = cli.main(["-p", str(tmp_path / "no-such-tty"), str(tmp_path / "screen")])
        assert code == ExitCode.PORT_OPEN_FAILED
        assert not (tmp_path / "screen.bmp").exists()

    def test_emulated_capture(
        self, tmp_path: Path, fast_config: Path, capsys: pytest.CaptureFixture[str]
    ) -> None:
        output = tmp_path / "screen"
        code = cli.main(["--emulate", "-c", str(fast_config), str(output)])
        assert code == 0
        assert (tmp_path / "screen.bmp").read_bytes() == make_bitmap_hardcopy()
        out = capsys.readouterr().out
        assert "GPIB adapter version:" in out
        assert "bytes written to" in out

    def test_emulated_capture_without_extension(self, tmp_path: Path, fast_config: Path) -> None:
        code = cli.main(["--emulate", "-q", "-c", str(fast_config), str(tmp_path / "raw.")])
        assert code == 0
        assert (tmp_path / "raw").read_bytes() == make_bitmap_hardcopy()

    def test_quiet_hides_progress(
        self, tmp_path: Path, fast_config: Path, capsys: pytest.CaptureFixture[str]
    ) -> None:
        cli.main(["--emulate", "-q", "-c", str(fast_config), str(tmp_path / "screen")])
        assert "GPIB adapter version:" not in capsys.readouterr().out
