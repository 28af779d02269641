"""Single instance locking so two copy sessions never share the drives."""

import logging
import os
import signal
from typing import TYPE_CHECKING

try:
    import fcntl
except ImportError:  # Windows
    fcntl = None

if TYPE_CHECKING:
    from discdup.config import DiscdupConfig

logger = logging.getLogger(__name__)


class ProcessLock:
    """Manages single instance locking and process discovery."""

    def __init__(self, config: "DiscdupConfig") -> None:
        self.lock_file = config.log_dir / "discdup.lock"
        self.lock_fd: int | None = None

    def acquire(self) -> bool:
        """Try to acquire exclusive lock. Returns True if successful."""
        if fcntl is None:
            logger.debug("File locking unavailable on this platform")
            return True
        try:
            self.lock_file.parent.mkdir(parents=True, exist_ok=True)
            self.lock_fd = os.open(str(self.lock_file), os.O_CREAT | os.O_WRONLY)
            fcntl.flock(self.lock_fd, fcntl.LOCK_EX | fcntl.LOCK_NB)
            # Write our PID to the lock file so 'discdup stop' can find us
            os.ftruncate(self.lock_fd, 0)
            os.write(self.lock_fd, str(os.getpid()).encode())
            os.fsync(self.lock_fd)
            return True
        except OSError:
            if self.lock_fd is not None:
                os.close(self.lock_fd)
                self.lock_fd = None
            return False

    def release(self) -> None:
        """Release the lock."""
        if self.lock_fd is not None:
            try:
                fcntl.flock(self.lock_fd, fcntl.LOCK_UN)
                os.close(self.lock_fd)
            except OSError:
                pass
            finally:
                self.lock_fd = None

    def read_pid(self) -> int | None:
        """PID of the running instance, if any."""
        try:
            pid = int(self.lock_file.read_text().strip())
        except (OSError, ValueError):
            return None
        return pid if self.is_process_running(pid) else None

    @staticmethod
    def is_process_running(pid: int) -> bool:
        """Check if a process with given PID is running."""
        try:
            os.kill(pid, 0)
            return True
        except (OSError, ProcessLookupError):
            return False

    @staticmethod
    def request_stop(pid: int) -> bool:
        """Ask a running instance to stop after its current pass."""
        try:
            os.kill(pid, signal.SIGTERM)
            return True
        except (OSError, ProcessLookupError):
            return False
