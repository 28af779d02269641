"""Drive polling and copy orchestration for discdup."""

import asyncio
import dataclasses
import logging
import threading
from datetime import datetime

from discdup.config import DiscdupConfig, DriveSlot
from discdup.core.models import (
    CopyTask,
    RunState,
    StatusSnapshot,
    is_success_code,
)
from discdup.disc.copier import BulkCopier, create_copier
from discdup.disc.ejector import TrayEjector, create_ejector
from discdup.disc.sensor import NO_MEDIA, MediaSensor, MediaStatus, create_sensor
from discdup.error_handling import DiscdupError, DriveError
from discdup.logsink import SessionLog
from discdup.naming import NamingStrategy
from discdup.services.ntfy import NtfyNotifier

logger = logging.getLogger(__name__)


class DriveOrchestrator:
    """Polls the configured drives and copies each inserted disc.

    Drives are handled one at a time in configured order. For every drive that
    reports media the disc is named, copied into the destination root and
    ejected. A pass over all drives is followed by ``poll_interval`` seconds of
    idle time, until ``stop()`` is requested; the stop takes effect only once
    the current pass is over.

    ``start``, ``stop`` and ``status`` may be called while a pass is running.
    """

    def __init__(
        self,
        config: DiscdupConfig,
        naming: NamingStrategy,
        *,
        sensor: MediaSensor | None = None,
        copier: BulkCopier | None = None,
        ejector: TrayEjector | None = None,
        session_log: SessionLog | None = None,
        notifier: NtfyNotifier | None = None,
    ):
        self.config = config
        self.slots: tuple[DriveSlot, ...] = tuple(config.drives)
        self.naming = naming

        # Collaborators
        self.sensor = sensor or create_sensor(config)
        self.copier = copier or create_copier(config)
        self.ejector = ejector or create_ejector(config)
        self.session_log = session_log or SessionLog(config.log_file)
        self.notifier = notifier

        # Shared state, guarded by _lock
        self._lock = threading.Lock()
        self._state = RunState.NOT_RUNNING
        self._snapshot = StatusSnapshot(
            state=RunState.NOT_RUNNING,
            status_text="Ready. Waiting for start...",
        )
        self._last_task: CopyTask | None = None
        self._sequence = 0
        # Slots whose current disc already had its failure pushed
        self._failures_notified: set[str] = set()

        # Loop bookkeeping
        self._loop: asyncio.AbstractEventLoop | None = None
        self._wake: asyncio.Event | None = None
        self.loop_task: asyncio.Task | None = None

    @property
    def drive_names(self) -> str:
        return ", ".join(str(slot) for slot in self.slots)

    @property
    def run_state(self) -> RunState:
        with self._lock:
            return self._state

    @property
    def is_running(self) -> bool:
        return self.run_state != RunState.NOT_RUNNING

    @property
    def last_task(self) -> CopyTask | None:
        with self._lock:
            return self._last_task

    def status(self) -> StatusSnapshot:
        """Current status, safe to call from any thread."""
        with self._lock:
            if self._snapshot.state is self._state:
                return self._snapshot
            return dataclasses.replace(self._snapshot, state=self._state)

    def get_status(self) -> dict:
        """Current status as a plain dictionary."""
        return self.status().to_dict()

    def _set_status(self, text: str, task: CopyTask | None = None) -> None:
        with self._lock:
            previous = self._snapshot
            self._snapshot = StatusSnapshot(
                state=self._state,
                status_text=text,
                last_name=task.folder_name if task else previous.last_name,
                last_outcome=task.outcome if task else previous.last_outcome,
            )

    def start(self) -> bool:
        """Start polling in the background. Returns False if already running.

        Must be called from within the running event loop.
        """
        loop = asyncio.get_running_loop()

        with self._lock:
            previous = self._state
            if previous == RunState.RUNNING:
                logger.warning("Orchestrator is already running")
                return False
            self._state = RunState.RUNNING

        if previous == RunState.STOPPING:
            # The loop never exited, so keep it going
            logger.info("Stop request withdrawn, monitoring continues")
            self._set_status(f"Stop cancelled. Monitoring {self.drive_names}...")
            return True

        started_at = datetime.now()
        logger.info("Starting copy session on %s", self.drive_names)
        try:
            self.session_log.session_started(started_at)
        except OSError as e:
            logger.error(f"Could not write session header to {self.session_log.path}: {e}")
        self._notify("notify_session_started", self.drive_names)

        self._set_status(f"Copy session started. Monitoring {self.drive_names}...")
        self._loop = loop
        self._wake = asyncio.Event()
        self.loop_task = loop.create_task(self._run())
        return True

    def stop(self) -> bool:
        """Ask the loop to halt after the current pass. Returns False if not running."""
        with self._lock:
            if self._state != RunState.RUNNING:
                return False
            self._state = RunState.STOPPING

        logger.info("Stop requested, finishing the current pass")
        self._set_status("Stopping... the process will halt after the current pass.")
        if self._loop is not None and self._wake is not None:
            self._loop.call_soon_threadsafe(self._wake.set)
        return True

    async def wait_stopped(self) -> None:
        """Wait until the polling loop has exited."""
        if self.loop_task is not None:
            await asyncio.shield(self.loop_task)

    def _finish_if_stopping(self) -> bool:
        with self._lock:
            if self._state != RunState.STOPPING:
                return False
            self._state = RunState.NOT_RUNNING
        logger.info("Copy session stopped")
        self._set_status("Copy process stopped. Ready.")
        return True

    async def _run(self) -> None:
        """Run passes until a stop is requested."""
        logger.info("Started drive polling loop")
        try:
            while True:
                try:
                    await self.poll_once()
                    delay = self.config.poll_interval
                except Exception as e:
                    logger.exception(f"Error in polling loop: {e}")
                    delay = self.config.error_retry_interval

                self._wake.clear()
                if self._finish_if_stopping():
                    break

                last = self.last_task
                self._set_status(
                    f"Waiting {delay} seconds for new discs. "
                    f"Last copy: {last.summary() if last else 'none'}",
                )
                try:
                    await asyncio.wait_for(self._wake.wait(), timeout=delay)
                except asyncio.TimeoutError:
                    pass

                if self._finish_if_stopping():
                    break
        finally:
            with self._lock:
                if self.loop_task is asyncio.current_task():
                    self._state = RunState.NOT_RUNNING
        logger.info("Drive polling loop stopped")

    async def poll_once(self) -> list[CopyTask]:
        """Process every drive once, strictly in configured order."""
        self._set_status(f"Searching for discs in {self.drive_names}...")
        tasks = []
        for slot in self.slots:
            task = await self.process_slot(slot)
            if task is not None:
                tasks.append(task)
        return tasks

    async def _query(self, slot: DriveSlot) -> MediaStatus:
        loop = asyncio.get_running_loop()
        try:
            return await loop.run_in_executor(None, self.sensor.query, slot)
        except Exception as e:
            # Treated as an empty drive, the next pass tries again
            logger.debug(f"Media query failed for {slot}: {e}")
            return NO_MEDIA

    async def process_slot(self, slot: DriveSlot) -> CopyTask | None:
        """Copy and eject the disc in ``slot``, if there is one.

        Returns the finished task, or None when the drive is empty. Never
        raises: unexpected errors fail the task and the pass moves on.
        """
        media = await self._query(slot)
        if not media.present:
            with self._lock:
                self._failures_notified.discard(str(slot))
            return None

        with self._lock:
            self._sequence += 1
            sequence = self._sequence

        task: CopyTask | None = None
        try:
            name = self.naming.name_for(media)
            task = CopyTask(
                slot=slot,
                folder_name=name,
                target_path=self.config.destination_root / name,
                sequence=sequence,
            )
            with self._lock:
                self._last_task = task

            logger.info(f"Disc {media} found in {slot}, copying to {task.target_path}")
            self._set_status(
                f"📀 Disc found in {slot} ({media.label or 'no label'}). "
                f"Copying to {task.target_path}",
                task,
            )

            source = media.mount_point or slot.source_root
            if source is None:
                raise DriveError(slot, f"Disc in {slot} is not mounted, nothing to copy")

            task.target_path.mkdir(parents=True, exist_ok=True)
            self.session_log.disc_started(slot, name, task.target_path, task.started_at)

            code = await self.copier.copy(
                source,
                task.target_path,
                progress_callback=lambda line: self._set_status(
                    f"Copying {name}... {line}", task,
                ),
            )

            if is_success_code(code):
                task.succeed(code)
                logger.info(f"Copy finished on {slot} (code {code}), ejecting")
                self._set_status(f"✅ Copy of {name} finished. Ejecting {slot}...", task)
                await self._eject(task)
            else:
                task.fail(f"completion code {code}", code)
                logger.error(
                    f"SEVERE COPY ERROR (code {code}) on {slot} for {name}. "
                    "Disc left in drive.",
                )
                self._note(f"SEVERE COPY ERROR (code {code}) on {slot} for {name}. Disc not ejected.")
                self._notify_failure(task, f"completion code {code}")

        except Exception as e:
            logger.exception(f"Unexpected error processing {slot}: {e}")
            reason = e.message if isinstance(e, DiscdupError) else (str(e) or type(e).__name__)
            if task is None:
                task = CopyTask(
                    slot=slot,
                    folder_name="(unnamed)",
                    target_path=self.config.destination_root,
                    sequence=sequence,
                )
                with self._lock:
                    self._last_task = task
            task.fail(reason, task.completion_code)
            self._note(f"SEVERE ERROR on {slot} for {task.folder_name}: {reason}. Disc not ejected.")
            self._notify_failure(task, reason)

        self._set_status(task.summary(), task)
        return task

    async def _eject(self, task: CopyTask) -> None:
        """Open the tray after a successful copy. Failures only warn."""
        loop = asyncio.get_running_loop()
        reason = None
        try:
            ejected = await loop.run_in_executor(None, self.ejector.eject, task.slot)
        except DiscdupError as e:
            ejected = False
            reason = e.message
        except Exception as e:
            logger.exception(f"Unexpected error ejecting {task.slot}")
            ejected = False
            reason = str(e) or type(e).__name__

        if ejected:
            task.ejected = True
            self.naming.commit(task.folder_name)
            with self._lock:
                self._failures_notified.discard(str(task.slot))
            self._note(f"Copied {task.folder_name} from {task.slot}. Disc ejected.")
            self._notify("notify_copy_complete", task.folder_name, str(task.slot))
            return

        task.warning = f"Could not eject {task.slot}" + (f" ({reason})" if reason else "")
        logger.warning(f"Copy of {task.folder_name} succeeded but {task.warning}")
        self._note(f"Copied {task.folder_name} from {task.slot}. WARNING: {task.warning}")
        self._notify("notify_eject_failed", task.folder_name, str(task.slot))

    def _note(self, message: str) -> None:
        try:
            self.session_log.note(message)
        except OSError as e:
            logger.error(f"Could not write to {self.session_log.path}: {e}")

    def _notify_failure(self, task: CopyTask, reason: str) -> None:
        """Push a copy failure once per disc.

        A disc left in the drive fails again on every pass under the same
        name. Only the first failure is pushed, until the drive is seen empty
        or copies successfully.
        """
        key = str(task.slot)
        with self._lock:
            if key in self._failures_notified:
                return
            self._failures_notified.add(key)
        self._notify("notify_copy_failed", task.folder_name, str(task.slot), reason)

    def _notify(self, method: str, *args: str) -> None:
        if self.notifier is None:
            return
        try:
            getattr(self.notifier, method)(*args)
        except Exception as e:
            logger.warning(f"Failed to send notification: {e}")
