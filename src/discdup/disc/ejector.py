"""Physical tray ejection."""

import logging
import platform
import subprocess
from typing import Protocol

from discdup.config import DiscdupConfig, DriveSlot
from discdup.error_handling import ExternalToolError

logger = logging.getLogger(__name__)


class TrayEjector(Protocol):
    """Opens the tray of a drive slot."""

    binary: str
    install_hint: str

    def eject(self, slot: DriveSlot) -> bool: ...


class _CommandEjector:
    """Runs an external eject command and reports whether it worked."""

    binary = ""
    install_hint = ""

    def __init__(self, timeout: int = 30):
        self.timeout = timeout

    def build_command(self, slot: DriveSlot) -> list[str]:
        raise NotImplementedError

    def eject(self, slot: DriveSlot) -> bool:
        """Eject the disc from the drive."""
        cmd = self.build_command(slot)
        try:
            result = subprocess.run(
                cmd,
                check=False,
                capture_output=True,
                text=True,
                timeout=self.timeout,
            )
        except FileNotFoundError as e:
            raise ExternalToolError(
                self.binary,
                message=f"{self.binary} not found",
                solution=self.install_hint,
                original_error=e,
            ) from e
        except subprocess.TimeoutExpired:
            logger.error(f"Timed out ejecting {slot} after {self.timeout}s")
            return False

        if result.returncode == 0:
            logger.info(f"Successfully ejected disc from {slot}")
            return True
        logger.error(f"Failed to eject disc from {slot}: {result.stderr.strip()}")
        return False


class EjectCommandEjector(_CommandEjector):
    """Linux ``eject``."""

    binary = "eject"
    install_hint = "Install the 'eject' package (util-linux) with your package manager"

    def build_command(self, slot: DriveSlot) -> list[str]:
        return [self.binary, slot.device]


class NircmdEjector(_CommandEjector):
    """Windows ``nircmd.exe cdrom open``."""

    binary = "nircmd.exe"
    install_hint = "Download NirCmd from https://www.nirsoft.net/utils/nircmd.html and add it to PATH"

    def build_command(self, slot: DriveSlot) -> list[str]:
        return [self.binary, "cdrom", "open", slot.device]


def create_ejector(config: DiscdupConfig) -> TrayEjector:
    """Pick the tray ejector for this platform."""
    if platform.system() == "Windows":
        return NircmdEjector(timeout=config.eject_timeout)
    return EjectCommandEjector(timeout=config.eject_timeout)
