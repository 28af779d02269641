"""Foreground process lifecycle for discdup."""

import asyncio
import logging
import signal
import sys

from aiohttp import web

from ..api.server import create_app
from ..config import DiscdupConfig
from ..logsink import SessionLog
from ..naming import NamingStrategy
from ..process_lock import ProcessLock
from ..services.ntfy import NtfyNotifier
from .orchestrator import DriveOrchestrator

logger = logging.getLogger(__name__)


class DiscdupRunner:
    """Owns the process lock and runs an orchestrator until it stops."""

    def __init__(self, config: DiscdupConfig, naming: NamingStrategy):
        self.config = config
        self.naming = naming
        self.orchestrator: DriveOrchestrator | None = None
        self.lock: ProcessLock | None = None

    def build_orchestrator(self) -> DriveOrchestrator:
        """Create the orchestrator with this platform's drive tools."""
        notifier = NtfyNotifier(self.config) if self.config.ntfy_topic else None
        self.orchestrator = DriveOrchestrator(
            self.config,
            self.naming,
            session_log=SessionLog(self.config.log_file),
            notifier=notifier,
        )
        return self.orchestrator

    def _acquire_lock(self) -> None:
        self.lock = ProcessLock(self.config)
        if not self.lock.acquire():
            logger.error("Failed to acquire process lock - another instance may be running")
            sys.exit(1)

    def run_console(self) -> None:
        """Start copying immediately and run until stopped by a signal."""
        self.config.ensure_directories()
        self._acquire_lock()
        try:
            asyncio.run(self._run_console())
        finally:
            self.release()

    async def _run_console(self) -> None:
        orchestrator = self.build_orchestrator()
        self._install_signal_handlers(asyncio.get_running_loop())
        orchestrator.start()
        await orchestrator.wait_stopped()

    def run_server(self, host: str | None = None, port: int | None = None) -> None:
        """Serve the HTTP control surface. Copying starts on request."""
        self._acquire_lock()
        try:
            app = create_app(self.build_orchestrator())
            web.run_app(
                app,
                host=host or self.config.api_host,
                port=port or self.config.api_port,
                print=lambda msg: logger.info(msg.strip()),
            )
        finally:
            self.release()

    def _install_signal_handlers(self, loop: asyncio.AbstractEventLoop) -> None:
        """Turn SIGINT/SIGTERM into a graceful stop after the current pass."""

        def request_stop() -> None:
            if self.orchestrator is None:
                return
            if self.orchestrator.stop():
                logger.info("Stop requested, finishing the current pass (a copy in progress is not interrupted)")
            else:
                logger.info("Already stopping, waiting for the current pass to finish")

        for signum in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(signum, request_stop)
            except NotImplementedError:
                # Windows event loops have no add_signal_handler
                signal.signal(
                    signum,
                    lambda _signum, _frame: loop.call_soon_threadsafe(request_stop),
                )

    def stop(self) -> None:
        """Request a graceful stop."""
        if self.orchestrator:
            self.orchestrator.stop()

    def release(self) -> None:
        if self.orchestrator and self.orchestrator.notifier:
            self.orchestrator.notifier.close()
        if self.lock:
            self.lock.release()
            self.lock = None
