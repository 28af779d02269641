"""Configuration management for discdup."""

import re
from pathlib import Path

import tomli
from pydantic import BaseModel, ConfigDict, Field, field_validator

DRIVE_LETTER = re.compile(r"^[A-Za-z]:$")


class DriveSlot(BaseModel):
    """One physical drive monitored by discdup."""

    model_config = ConfigDict(frozen=True)

    device: str
    mount_point: Path | None = None

    @field_validator("device", mode="after")
    @classmethod
    def device_not_blank(cls, v: str) -> str:
        """Reject empty device identifiers."""
        v = v.strip()
        if not v:
            msg = "Drive device must not be empty"
            raise ValueError(msg)
        return v

    @field_validator("mount_point", mode="before")
    @classmethod
    def expand_mount_point(cls, v: Path | str | None) -> Path | None:
        """Expand user home directory in the mount point."""
        if v is None or v == "":
            return None
        return Path(v).expanduser()

    @property
    def is_drive_letter(self) -> bool:
        """Whether the slot is a Windows drive letter such as ``I:``."""
        return bool(DRIVE_LETTER.match(self.device))

    @property
    def source_root(self) -> str | None:
        """Root directory the disc contents are copied from.

        None for a device path without a configured mount point: the block
        device itself cannot be copied file by file.
        """
        if self.mount_point is not None:
            return str(self.mount_point)
        if self.is_drive_letter:
            return f"{self.device}\\"
        return None

    def __str__(self) -> str:
        return self.device


class DiscdupConfig(BaseModel):
    """Main configuration for discdup."""

    model_config = ConfigDict(validate_default=True)

    # Drives, in polling order
    drives: tuple[DriveSlot, ...] = Field(
        default=(DriveSlot(device="/dev/sr0"),),
    )

    # Paths
    destination_root: Path = Field(default=Path("~/disc-copies"))
    log_file: Path = Field(default=Path("~/disc-copies/copy-log.txt"))
    log_dir: Path = Field(default=Path("~/.local/share/discdup/logs"))

    # Naming
    naming_scheme: str = Field(default="counter")  # "counter" or "label"
    base_name: str | None = None
    counter_start: int = Field(default=101)

    # Processing Intervals (seconds)
    poll_interval: int = Field(default=5)  # Wait between passes
    error_retry_interval: int = Field(default=10)  # Wait after an unexpected loop error

    # Timeout Settings (seconds)
    sensor_timeout: int = Field(default=5)
    eject_timeout: int = Field(default=30)

    # Copy retries, handed to the copy tool
    copy_retries: int = Field(default=3)
    copy_retry_wait: int = Field(default=5)

    # HTTP control surface
    api_host: str = Field(default="127.0.0.1")
    api_port: int = Field(default=3000)

    # Notifications
    ntfy_topic: str | None = None
    ntfy_request_timeout: int = Field(default=10)

    @field_validator("drives", mode="before")
    @classmethod
    def coerce_drives(cls, v: object) -> object:
        """Accept plain device strings as shorthand for drive tables."""
        if isinstance(v, str):
            v = [v]
        if isinstance(v, list | tuple):
            return tuple({"device": d} if isinstance(d, str) else d for d in v)
        return v

    @field_validator("drives", mode="after")
    @classmethod
    def drives_unique(cls, v: tuple[DriveSlot, ...]) -> tuple[DriveSlot, ...]:
        """Require at least one drive and no duplicates."""
        if not v:
            msg = "At least one drive must be configured"
            raise ValueError(msg)
        devices = [slot.device.lower() for slot in v]
        if len(set(devices)) != len(devices):
            msg = f"Duplicate drives configured: {', '.join(d.device for d in v)}"
            raise ValueError(msg)
        return v

    @field_validator("destination_root", "log_file", "log_dir", mode="before")
    @classmethod
    def expand_paths(cls, v: Path | str) -> Path:
        """Expand user home directory in paths."""
        if isinstance(v, str):
            v = Path(v)
        return v.expanduser().resolve()

    @field_validator("naming_scheme", mode="after")
    @classmethod
    def known_scheme(cls, v: str) -> str:
        """Validate the naming scheme."""
        v = v.strip().lower()
        if v not in ("counter", "label"):
            msg = f"Unknown naming scheme '{v}' (expected 'counter' or 'label')"
            raise ValueError(msg)
        return v

    @field_validator("poll_interval", "copy_retries", "copy_retry_wait", mode="after")
    @classmethod
    def non_negative(cls, v: int) -> int:
        """Intervals and retry counts cannot be negative."""
        if v < 0:
            msg = "Value must not be negative"
            raise ValueError(msg)
        return v

    def ensure_directories(self) -> None:
        """Create required directories if they don't exist."""
        for dir_path in [self.destination_root, self.log_file.parent, self.log_dir]:
            dir_path.mkdir(parents=True, exist_ok=True)


def load_config(config_path: Path | None = None) -> DiscdupConfig:
    """Load configuration from file or defaults."""
    if config_path is None:
        # Check common config locations (user config first)
        possible_paths = [
            Path.home() / ".config" / "discdup" / "config.toml",
            Path.cwd() / "discdup.toml",
        ]

        for path in possible_paths:
            if path.exists():
                config_path = path
                break

    if config_path and config_path.exists():
        with open(config_path, "rb") as f:
            config_data = tomli.load(f)
        return DiscdupConfig(**config_data)
    # Use defaults
    return DiscdupConfig()


def create_sample_config(path: Path) -> None:
    """Create a sample configuration file."""
    sample_config = """# discdup Configuration
# =====================

# ============================================================================
# REQUIRED SETTINGS
# ============================================================================

# Drives to monitor, polled in this order. Windows drive letters ("I:") or
# Linux device paths. On Linux, set mount_point when the disc is not mounted
# automatically where lsblk reports it.
[[drives]]
device = "/dev/sr0"
# mount_point = "/media/cdrom0"

# [[drives]]
# device = "/dev/sr1"

# ============================================================================
# COMMONLY CUSTOMIZED SETTINGS
# ============================================================================

destination_root = "~/disc-copies"                # Auto-created: one folder per disc
log_file = "~/disc-copies/copy-log.txt"           # Auto-created: append-only copy log
log_dir = "~/.local/share/discdup/logs"           # Auto-created: application logs and lock file

# Folder naming: "counter" (base_name + 101, 102, ...) or "label"
# (YYYYMMDD_HHMMSS_<volume label>)
naming_scheme = "counter"
# base_name = "CD_ARCHIVE_"                       # Prompted for at startup when unset
counter_start = 101

# HTTP control surface (discdup serve)
api_host = "127.0.0.1"
api_port = 3000

# Notifications (optional)
# ntfy_topic = "https://ntfy.sh/your_topic"

# ============================================================================
# ADVANCED SETTINGS
# ============================================================================

poll_interval = 5                                 # Seconds between passes over all drives
error_retry_interval = 10                         # Seconds to wait after an unexpected loop error
sensor_timeout = 5                                # Media query timeout
eject_timeout = 30                                # Tray eject timeout
copy_retries = 3                                  # Per-file retries inside the copy tool
copy_retry_wait = 5                               # Seconds between per-file retries
ntfy_request_timeout = 10                         # Notification request timeout
"""

    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w") as f:
        f.write(sample_config)
