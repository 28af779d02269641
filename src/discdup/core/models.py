"""Run state, copy task and status snapshot models."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any

from discdup.config import DriveSlot

# Completion codes in this inclusive range are a successful copy, possibly
# with skipped or extra files. Anything else is a severe failure.
SUCCESS_CODES = range(0, 9)


class RunState(Enum):
    """Lifecycle of the polling loop."""

    NOT_RUNNING = "not_running"
    RUNNING = "running"
    STOPPING = "stopping"


class CopyOutcome(Enum):
    """Outcome of a single disc copy."""

    PENDING = "pending"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


def is_success_code(code: int) -> bool:
    """Whether a copier completion code counts as success."""
    return code in SUCCESS_CODES


@dataclass
class CopyTask:
    """One detected disc on its way through copy and eject."""

    slot: DriveSlot
    folder_name: str
    target_path: Path
    sequence: int
    outcome: CopyOutcome = CopyOutcome.PENDING
    completion_code: int | None = None
    ejected: bool = False
    warning: str | None = None
    error_message: str | None = None
    started_at: datetime = field(default_factory=datetime.now)
    finished_at: datetime | None = None

    def succeed(self, code: int) -> None:
        self.outcome = CopyOutcome.SUCCEEDED
        self.completion_code = code
        self.finished_at = datetime.now()

    def fail(self, message: str, code: int | None = None) -> None:
        self.outcome = CopyOutcome.FAILED
        self.completion_code = code
        self.error_message = message
        self.finished_at = datetime.now()

    def summary(self) -> str:
        """Short human-readable description of the outcome."""
        if self.outcome == CopyOutcome.PENDING:
            return f"Copying {self.folder_name} from {self.slot}..."
        if self.outcome == CopyOutcome.FAILED:
            return (
                f"❌ SEVERE COPY ERROR on {self.slot} ({self.folder_name}): "
                f"{self.error_message}. Disc left in drive."
            )
        if self.ejected:
            return f"✅ Copied {self.folder_name} from {self.slot}. Disc ejected."
        return (
            f"✅ Copied {self.folder_name} from {self.slot}. "
            f"⚠️ {self.warning or 'Disc was not ejected'}"
        )

    def __str__(self) -> str:
        return f"{self.folder_name} from {self.slot} ({self.outcome.value})"


@dataclass(frozen=True)
class StatusSnapshot:
    """Point-in-time view of the orchestrator for status readers."""

    state: RunState
    status_text: str
    last_name: str | None = None
    last_outcome: CopyOutcome | None = None
    updated_at: datetime = field(default_factory=datetime.now)

    @property
    def running(self) -> bool:
        # A stopping loop is still finishing its pass
        return self.state != RunState.NOT_RUNNING

    def to_dict(self) -> dict[str, Any]:
        return {
            "running": self.running,
            "state": self.state.value,
            "status": self.status_text,
            "last_name": self.last_name or "N/A",
            "last_outcome": self.last_outcome.value if self.last_outcome else None,
            "updated_at": self.updated_at.isoformat(),
        }
