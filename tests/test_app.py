"""Tests for nixwizard/app.py and nixwizard/logging_utils.py"""

import logging

import pytest

from nixwizard import __version__, app
from nixwizard.logging_utils import configure_logging


@pytest.fixture(autouse=True)
def restore_logging():
    root = logging.getLogger()
    level, handlers = root.level, list(root.handlers)
    yield
    for handler in root.handlers:
        if handler not in handlers:
            root.removeHandler(handler)
            handler.close()
    root.setLevel(level)


class TestParser:
    def test_defaults(self):
        """Options should default to the live-ISO paths."""
        args = app.build_parser().parse_args([])
        assert args.dry_run is False
        assert args.mountpoint == "/mnt"
        assert args.install_log == "/tmp/nixwizard-install.log"

    def test_version(self, capsys):
        with pytest.raises(SystemExit):
            app.build_parser().parse_args(["--version"])
        assert __version__ in capsys.readouterr().out


class TestMain:
    """Tests for the entry point without a terminal."""

    def test_refuses_non_root(self, monkeypatch, tmp_path, capsys):
        """Without --dry-run a non-root user should be refused."""
        monkeypatch.setattr(app.os, "geteuid", lambda: 1000)
        assert app.main(["--log-file", str(tmp_path / "debug.log")]) == 1
        assert "must run as root" in capsys.readouterr().err

    def test_passes_options_to_state(self, monkeypatch, tmp_path):
        """Command line options should reach the state and the exit code be returned."""
        seen = {}

        class FakeWizard:
            def __init__(self, state, root):
                seen["state"] = state

            def run(self):
                return 7

        monkeypatch.setattr(app, "has_terminal", lambda: True)
        monkeypatch.setattr(app, "Wizard", FakeWizard)
        code = app.main(["--dry-run", "--log-file", str(tmp_path / "debug.log"),
                         "--mountpoint", "/target", "--install-log", str(tmp_path / "i.log")])
        assert code == 7
        assert seen["state"].dry_run
        assert seen["state"].mountpoint == "/target"
        assert seen["state"].install_log == str(tmp_path / "i.log")

    def test_no_terminal(self, monkeypatch, tmp_path, capsys):
        """A missing terminal should exit with 1 and a message."""
        monkeypatch.setattr(app, "has_terminal", lambda: False)
        assert app.main(["--dry-run", "--log-file", str(tmp_path / "debug.log")]) == 1
        assert "interactive terminal" in capsys.readouterr().err

    def test_crash_is_logged(self, monkeypatch, tmp_path, capsys):
        """An exception escaping the wizard should be logged and exit with 1."""
        class CrashingWizard:
            def __init__(self, state, root):
                pass

            def run(self):
                raise ZeroDivisionError("boom")

        log = tmp_path / "debug.log"
        monkeypatch.setattr(app, "has_terminal", lambda: True)
        monkeypatch.setattr(app, "Wizard", CrashingWizard)
        assert app.main(["--dry-run", "--log-file", str(log)]) == 1
        assert str(log) in capsys.readouterr().err
        assert "ZeroDivisionError" in log.read_text()


class TestLogging:
    def test_writes_to_file(self, tmp_path):
        """Records should land in the requested file."""
        path = tmp_path / "logs" / "debug.log"
        assert configure_logging(str(path)) == str(path)
        logging.getLogger("nixwizard.test").info("hello from the test")
        assert "hello from the test" in path.read_text()

    def test_replaces_previous_handler(self, tmp_path):
        """Reconfiguring should not duplicate handlers."""
        root = logging.getLogger()
        configure_logging(str(tmp_path / "a.log"))
        count = len(root.handlers)
        configure_logging(str(tmp_path / "b.log"))
        assert len(root.handlers) == count

    def test_falls_back_to_tempdir(self, tmp_path):
        """An unwritable location should fall back to the temp directory."""
        blocker = tmp_path / "file"
        blocker.write_text("")
        chosen = configure_logging(str(blocker / "debug.log"))
        assert chosen.endswith("nixwizard-debug.log")
