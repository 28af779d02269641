"""Media presence and volume label detection."""

import logging
import platform
import re
import subprocess
import time
from typing import Protocol

from discdup.config import DiscdupConfig, DriveSlot

logger = logging.getLogger(__name__)


class MediaStatus:
    """What a drive slot reported when queried."""

    def __init__(
        self,
        present: bool,
        label: str | None = None,
        mount_point: str | None = None,
    ):
        self.present = present
        self.label = label or None
        self.mount_point = mount_point or None
        self.queried_at = time.time()

    def __str__(self) -> str:
        if not self.present:
            return "no disc"
        return f"disc '{self.label or 'Unknown'}'"


NO_MEDIA = MediaStatus(present=False)


class MediaSensor(Protocol):
    """Reports whether a slot holds media and what it is called."""

    def query(self, slot: DriveSlot) -> MediaStatus: ...


class LsblkMediaSensor:
    """Detect media on Linux using lsblk."""

    def __init__(self, timeout: int = 5):
        self.timeout = timeout

    def query(self, slot: DriveSlot) -> MediaStatus:
        """Check if a disc is present and get its label."""
        try:
            # -P gives KEY="value" pairs so empty labels keep their place
            result = subprocess.run(
                ["lsblk", "-dnP", "-o", "LABEL,FSTYPE,MOUNTPOINT", slot.device],
                check=False,
                capture_output=True,
                text=True,
                timeout=self.timeout,
            )
        except subprocess.TimeoutExpired:
            logger.warning(f"Timeout checking device {slot.device}")
            return NO_MEDIA
        except (OSError, subprocess.SubprocessError) as e:
            logger.debug(f"No disc detected on {slot.device}: {e}")
            return NO_MEDIA

        if result.returncode != 0 or not result.stdout.strip():
            return NO_MEDIA

        fields = dict(re.findall(r'(\w+)="([^"]*)"', result.stdout))
        # An empty tray still lists the device, just with blank columns
        if not fields.get("FSTYPE") and not fields.get("LABEL"):
            return NO_MEDIA

        return MediaStatus(
            present=True,
            label=fields.get("LABEL"),
            mount_point=fields.get("MOUNTPOINT"),
        )


class WmicMediaSensor:
    """Detect media on Windows using WMIC."""

    def __init__(self, timeout: int = 5):
        self.timeout = timeout

    def _run(self, cmd: list[str]) -> str | None:
        try:
            result = subprocess.run(
                cmd,
                check=False,
                capture_output=True,
                text=True,
                timeout=self.timeout,
            )
        except subprocess.TimeoutExpired:
            logger.warning("Timeout running %s", cmd[0])
            return None
        except (OSError, subprocess.SubprocessError) as e:
            logger.debug("Could not run %s: %s", cmd[0], e)
            return None
        if result.returncode != 0:
            return None
        return result.stdout

    def query(self, slot: DriveSlot) -> MediaStatus:
        output = self._run(
            ["wmic", "cdrom", "where", f'Drive="{slot.device}"', "get", "MediaLoaded"],
        )
        if output is None or "TRUE" not in output.upper():
            return NO_MEDIA

        return MediaStatus(present=True, label=self.volume_label(slot))

    def volume_label(self, slot: DriveSlot) -> str | None:
        """Read the volume label, or None when the disc has none."""
        output = self._run(
            [
                "wmic",
                "logicaldisk",
                "where",
                f'DeviceID="{slot.device}"',
                "get",
                "VolumeName",
                "/value",
            ],
        )
        if not output:
            return None
        match = re.search(r"VolumeName=(.*)", output, re.IGNORECASE)
        if match and match.group(1).strip():
            return match.group(1).strip()
        return None


def create_sensor(config: DiscdupConfig) -> MediaSensor:
    """Pick the media sensor for this platform."""
    if platform.system() == "Windows":
        return WmicMediaSensor(timeout=config.sensor_timeout)
    return LsblkMediaSensor(timeout=config.sensor_timeout)
