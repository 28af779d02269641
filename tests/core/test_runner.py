"""Test foreground process lifecycle."""

import functools
import signal
from unittest.mock import Mock, patch

import pytest

from discdup.api.server import ORCHESTRATOR_KEY
from discdup.core.models import RunState
from discdup.core.orchestrator import DriveOrchestrator
from discdup.core.runner import DiscdupRunner
from discdup.disc.sensor import MediaStatus
from discdup.naming import CounterNaming
from discdup.services.ntfy import NtfyNotifier


class TestDiscdupRunner:
    """Test DiscdupRunner functionality."""

    @pytest.fixture
    def runner(self, config):
        """Create runner instance."""
        return DiscdupRunner(config, CounterNaming("CD_ARCHIVE_"))

    @pytest.fixture
    def fake_drives(self, sensor, copier, ejector):
        """Build orchestrators around fake drive tools."""
        factory = functools.partial(
            DriveOrchestrator, sensor=sensor, copier=copier, ejector=ejector,
        )
        with patch("discdup.core.runner.DriveOrchestrator", factory):
            yield

    def test_runner_initialization(self, runner, config):
        assert runner.config == config
        assert runner.orchestrator is None
        assert runner.lock is None

    def test_build_orchestrator_without_notifications(self, runner, fake_drives):
        orchestrator = runner.build_orchestrator()

        assert runner.orchestrator is orchestrator
        assert orchestrator.notifier is None
        assert orchestrator.session_log.path == runner.config.log_file

    def test_build_orchestrator_with_notifications(self, config, fake_drives):
        config = config.model_copy(update={"ntfy_topic": "https://ntfy.sh/discs"})
        runner = DiscdupRunner(config, CounterNaming("CD_"))

        orchestrator = runner.build_orchestrator()

        assert isinstance(orchestrator.notifier, NtfyNotifier)
        runner.release()

    def test_lock_failure_exits(self, runner):
        with patch("discdup.core.runner.ProcessLock") as mock_lock_class:
            mock_lock_class.return_value.acquire.return_value = False
            with pytest.raises(SystemExit) as exc_info:
                runner.run_console()

        assert exc_info.value.code == 1

    def test_run_console_copies_until_stopped(
        self, runner, fake_drives, sensor, copier, events,
    ):
        sensor.media = {"J:": MediaStatus(present=True, label="MUSIC")}
        copier.progress_lines = ["100%"]
        copier.after_progress = lambda line: runner.stop()

        runner.run_console()

        assert events == [
            ("query", "I:"),
            ("query", "J:"),
            ("copy", "J:\\", "CD_ARCHIVE_101"),
            ("eject", "J:"),
        ]
        assert runner.orchestrator.run_state == RunState.NOT_RUNNING
        assert runner.lock is None
        assert runner.config.destination_root.is_dir()
        assert "BULK COPY SESSION STARTED" in runner.config.log_file.read_text()

    def test_run_server_uses_configured_address(self, runner, fake_drives):
        with patch("discdup.core.runner.web.run_app") as mock_run_app:
            runner.run_server()

        app = mock_run_app.call_args.args[0]
        assert app[ORCHESTRATOR_KEY] is runner.orchestrator
        assert mock_run_app.call_args.kwargs["host"] == "127.0.0.1"
        assert mock_run_app.call_args.kwargs["port"] == 3000
        assert runner.lock is None

    def test_run_server_overrides(self, runner, fake_drives):
        with patch("discdup.core.runner.web.run_app") as mock_run_app:
            runner.run_server("0.0.0.0", 8080)

        assert mock_run_app.call_args.kwargs["host"] == "0.0.0.0"
        assert mock_run_app.call_args.kwargs["port"] == 8080

    def test_signal_requests_stop(self, runner):
        loop = Mock()
        runner.orchestrator = Mock()

        runner._install_signal_handlers(loop)

        signums = [c.args[0] for c in loop.add_signal_handler.call_args_list]
        assert signums == [signal.SIGINT, signal.SIGTERM]
        handler = loop.add_signal_handler.call_args.args[1]
        handler()
        runner.orchestrator.stop.assert_called_once()

    def test_signal_fallback_without_loop_support(self, runner):
        loop = Mock()
        loop.add_signal_handler.side_effect = NotImplementedError

        with patch("discdup.core.runner.signal.signal") as mock_signal:
            runner._install_signal_handlers(loop)

        assert mock_signal.call_count == 2

    def test_stop_without_orchestrator(self, runner):
        runner.stop()

    def test_release_closes_notifier(self, runner):
        runner.orchestrator = Mock()
        runner.lock = Mock()
        lock = runner.lock

        runner.release()

        runner.orchestrator.notifier.close.assert_called_once()
        lock.release.assert_called_once()
        assert runner.lock is None
