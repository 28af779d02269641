"""Append-only copy log kept for the operator."""

import logging
import threading
from datetime import datetime
from pathlib import Path

from discdup.config import DriveSlot

logger = logging.getLogger(__name__)


class SessionLog:
    """Plain text log of sessions and discs, shared with the copy tool."""

    def __init__(self, path: Path):
        self.path = path
        self._lock = threading.Lock()

    def _append(self, text: str) -> None:
        with self._lock:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.path, "a", encoding="utf-8") as f:
                f.write(text)

    def session_started(self, when: datetime | None = None) -> None:
        """Write the header for a new copy session."""
        when = when or datetime.now()
        self._append(
            f"\n--- BULK COPY SESSION STARTED: {when:%Y-%m-%d %H:%M:%S} ---\n",
        )

    def disc_started(
        self,
        slot: DriveSlot,
        folder_name: str,
        target_path: Path,
        when: datetime | None = None,
    ) -> None:
        """Record that a disc is about to be copied."""
        when = when or datetime.now()
        self._append(
            f"--- [{when:%Y-%m-%d %H:%M:%S}] Copying disc {folder_name} "
            f"from {slot} to {target_path} ---\n",
        )

    def note(self, message: str, when: datetime | None = None) -> None:
        """Record an outcome or warning line."""
        when = when or datetime.now()
        self._append(f"[{when:%Y-%m-%d %H:%M:%S}] {message}\n")
