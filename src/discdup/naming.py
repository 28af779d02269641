"""Destination folder naming for copied discs.

Two policies are available. ``CounterNaming`` appends a monotonically
increasing number to an operator supplied prefix and only advances once a
disc has been copied and ejected. ``TimestampLabelNaming`` combines the
current time with the disc's volume label.
"""

from __future__ import annotations

import logging
import re
import threading
import time
from collections.abc import Callable
from datetime import datetime
from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from discdup.config import DiscdupConfig
    from discdup.disc.sensor import MediaStatus

logger = logging.getLogger(__name__)

DEFAULT_COUNTER_START = 101
ILLEGAL_CHARS = re.compile(r'[<>:"/\\|?*\x00-\x1f]')


class NamingStrategy(Protocol):
    """Produces a unique folder name for each detected disc."""

    def name_for(self, media: MediaStatus) -> str: ...

    def commit(self, name: str) -> None: ...


def sanitize_label(label: str) -> str:
    """Replace characters that are not allowed in a folder name."""
    cleaned = ILLEGAL_CHARS.sub("_", label.strip())
    # Windows silently drops trailing dots and spaces
    return cleaned.rstrip(". ")


class CounterNaming:
    """``prefix + counter`` names, e.g. ``CD_ARCHIVE_101``."""

    def __init__(self, prefix: str, start: int = DEFAULT_COUNTER_START):
        prefix = (prefix or "").strip()
        if not prefix:
            msg = "Base name cannot be empty"
            raise ValueError(msg)
        if ILLEGAL_CHARS.search(prefix):
            msg = f"Base name contains characters not allowed in folder names: {prefix}"
            raise ValueError(msg)
        self.prefix = prefix
        self._counter = start
        self._lock = threading.Lock()

    @property
    def counter(self) -> int:
        with self._lock:
            return self._counter

    def name_for(self, media: MediaStatus) -> str:
        with self._lock:
            return f"{self.prefix}{self._counter}"

    def commit(self, name: str) -> None:
        """Advance the counter after the disc named ``name`` was ejected."""
        with self._lock:
            if name != f"{self.prefix}{self._counter}":
                logger.warning(
                    "Committing %s while counter is at %s", name, self._counter,
                )
            self._counter += 1
            logger.debug("Counter advanced to %s", self._counter)


class TimestampLabelNaming:
    """``YYYYMMDD_HHMMSS_<label>`` names."""

    def __init__(self, clock: Callable[[], datetime] = datetime.now):
        self.clock = clock

    def name_for(self, media: MediaStatus) -> str:
        now = self.clock()
        timestamp = now.strftime("%Y%m%d_%H%M%S")
        label = sanitize_label(media.label or "")
        if not label:
            label = f"CD_NO_LABEL_{int(time.time() * 1000)}"
        return f"{timestamp}_{label}"

    def commit(self, name: str) -> None:
        # Names are derived from the clock, nothing to advance
        pass


def create_naming(config: DiscdupConfig, prefix: str | None = None) -> NamingStrategy:
    """Build the naming policy selected in the configuration."""
    if config.naming_scheme == "label":
        return TimestampLabelNaming()
    return CounterNaming(prefix or config.base_name or "", start=config.counter_start)
