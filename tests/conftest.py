"""Shared test configuration and fixtures."""

import asyncio
import logging
from pathlib import Path

import pytest

from discdup.cli import cleanup_logging
from discdup.config import DiscdupConfig, DriveSlot
from discdup.disc.sensor import NO_MEDIA, MediaStatus


@pytest.fixture(scope="function", autouse=True)
def cleanup_logging_handlers():
    """Automatically cleanup logging handlers after each test to prevent ResourceWarnings."""
    yield
    cleanup_logging()


@pytest.fixture(scope="function", autouse=True)
def reset_logging():
    """Reset logging configuration after each test."""
    yield
    root_logger = logging.getLogger()
    for handler in root_logger.handlers[:]:
        handler.close()
        root_logger.removeHandler(handler)
    root_logger.setLevel(logging.WARNING)


@pytest.fixture
def config(tmp_path: Path) -> DiscdupConfig:
    """Two-drive configuration writing into a temporary directory."""
    return DiscdupConfig(
        drives=["I:", "J:"],
        destination_root=tmp_path / "copies",
        log_file=tmp_path / "copy-log.txt",
        log_dir=tmp_path / "logs",
        base_name="CD_ARCHIVE_",
        poll_interval=0,
        error_retry_interval=0,
    )


class FakeSensor:
    """Media sensor answering from a device -> MediaStatus map."""

    def __init__(self, events: list, media: dict[str, MediaStatus] | None = None):
        self.events = events
        self.media = media or {}
        self.error: Exception | None = None

    def query(self, slot: DriveSlot) -> MediaStatus:
        self.events.append(("query", slot.device))
        if self.error is not None:
            raise self.error
        return self.media.get(slot.device, NO_MEDIA)


class FakeCopier:
    """Bulk copier returning queued completion codes."""

    binary = "fakecopy"
    install_hint = "n/a"

    def __init__(self, events: list, codes: list[int] | None = None):
        self.events = events
        self.codes = list(codes or [0])
        self.error: Exception | None = None
        self.progress_lines: list[str] = []
        self.after_progress = None
        self.gate: asyncio.Event | None = None
        self.entered = asyncio.Event()

    async def copy(self, source_root, destination, progress_callback=None) -> int:
        self.events.append(("copy", source_root, destination.name))
        self.entered.set()
        if self.gate is not None:
            await self.gate.wait()
        if self.error is not None:
            raise self.error
        for line in self.progress_lines:
            if progress_callback:
                progress_callback(line)
            if self.after_progress:
                self.after_progress(line)
        return self.codes.pop(0) if len(self.codes) > 1 else self.codes[0]


class FakeEjector:
    """Tray ejector that records calls."""

    binary = "fakeeject"
    install_hint = "n/a"

    def __init__(self, events: list, result: bool = True):
        self.events = events
        self.result = result
        self.error: Exception | None = None

    def eject(self, slot: DriveSlot) -> bool:
        self.events.append(("eject", slot.device))
        if self.error is not None:
            raise self.error
        return self.result


@pytest.fixture
def events() -> list:
    return []


@pytest.fixture
def sensor(events) -> FakeSensor:
    return FakeSensor(events)


@pytest.fixture
def copier(events) -> FakeCopier:
    return FakeCopier(events)


@pytest.fixture
def ejector(events) -> FakeEjector:
    return FakeEjector(events)
