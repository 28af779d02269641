"""Error types and user-facing error display for discdup."""

import logging
import shutil
import sys
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel

if TYPE_CHECKING:
    from discdup.config import DiscdupConfig, DriveSlot

logger = logging.getLogger(__name__)
console = Console()


class ErrorCategory(Enum):
    """What part of the setup an error points at."""

    CONFIGURATION = "configuration"
    DEPENDENCY = "dependency"
    DRIVE = "drive"
    FILESYSTEM = "filesystem"
    EXTERNAL_TOOL = "external_tool"
    SYSTEM = "system"

    @property
    def title(self) -> str:
        return self.value.replace("_", " ").title()


CATEGORY_STYLES = {
    ErrorCategory.CONFIGURATION: ("⚙️", "yellow"),
    ErrorCategory.DEPENDENCY: ("📦", "red"),
    ErrorCategory.DRIVE: ("💿", "red"),
    ErrorCategory.FILESYSTEM: ("📁", "red"),
    ErrorCategory.EXTERNAL_TOOL: ("🔧", "red"),
    ErrorCategory.SYSTEM: ("💻", "red"),
}


class DiscdupError(Exception):
    """Base exception carrying a category, a suggested fix and optional details."""

    def __init__(
        self,
        message: str,
        category: ErrorCategory,
        *,
        solution: str | None = None,
        details: str | None = None,
        recoverable: bool = True,
        log_level: int = logging.ERROR,
        original_error: Exception | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.category = category
        self.solution = solution
        self.details = details
        self.recoverable = recoverable
        self.log_level = log_level
        self.original_error = original_error

    def display_to_user(self) -> None:
        """Print the error as a panel and log it."""
        emoji, color = CATEGORY_STYLES.get(self.category, ("❌", "red"))

        body = [f"[{color}]{escape(self.message)}[/{color}]"]
        if self.details:
            body.append(f"[dim]Details:[/dim] {escape(self.details)}")
        if self.solution:
            body.append(f"[green]💡 {escape(self.solution)}[/green]")
        if self.recoverable:
            body.append("[dim]This may be temporary, the next attempt can succeed.[/dim]")
        else:
            body.append("[dim]Fix this before starting discdup again.[/dim]")

        console.print(
            Panel(
                "\n".join(body),
                title=f"{emoji} {self.category.title} Error",
                title_align="left",
                border_style=color,
                expand=False,
            ),
        )
        logger.log(
            self.log_level,
            "%s: %s",
            self.category.value,
            self.message,
            exc_info=self.original_error,
        )


class ConfigurationError(DiscdupError):
    """The configuration file could not be loaded or is invalid."""

    def __init__(self, message: str, *, config_path: Path | None = None, **kwargs):
        if "solution" not in kwargs and config_path:
            kwargs["solution"] = f"Check your configuration file at {config_path}"
        super().__init__(message, ErrorCategory.CONFIGURATION, **kwargs)


class DependencyError(DiscdupError):
    """A copy or eject executable is missing from PATH.

    ``required=False`` marks tools discdup can run without, such as the
    ejector: discs are still copied, trays just stay closed.
    """

    def __init__(self, binary: str, *, required: bool = True, **kwargs):
        super().__init__(
            f"Required dependency '{binary}' is not available",
            ErrorCategory.DEPENDENCY,
            recoverable=False,
            log_level=logging.ERROR if required else logging.WARNING,
            **kwargs,
        )
        self.binary = binary
        self.required = required


class DriveError(DiscdupError):
    """A drive holds a disc that cannot be read as a directory tree."""

    def __init__(self, slot: "DriveSlot", message: str, **kwargs):
        kwargs.setdefault(
            "solution",
            f"Mount the disc or set mount_point for {slot} in the configuration",
        )
        super().__init__(message, ErrorCategory.DRIVE, **kwargs)
        self.slot = slot


class ExternalToolError(DiscdupError):
    """A copy or eject tool could not be run at all."""

    def __init__(self, tool: str, message: str | None = None, **kwargs):
        kwargs.setdefault("solution", f"Check {tool} is installed and on your PATH")
        super().__init__(
            message or f"{tool} could not be run",
            ErrorCategory.EXTERNAL_TOOL,
            **kwargs,
        )
        self.tool = tool


def handle_error(error: Exception) -> None:
    """Display any exception, wrapping non-discdup ones first."""
    if not isinstance(error, DiscdupError):
        category = (
            ErrorCategory.FILESYSTEM
            if isinstance(error, FileNotFoundError | PermissionError)
            else ErrorCategory.SYSTEM
        )
        error = DiscdupError(
            str(error) or "An unexpected error occurred",
            category,
            original_error=error,
        )
    error.display_to_user()


def check_dependencies(config: "DiscdupConfig") -> list[DependencyError]:
    """Check that the copy and eject tools for this platform are installed."""
    from discdup.disc.copier import create_copier
    from discdup.disc.ejector import create_ejector

    errors = []

    copier = create_copier(config)
    if not shutil.which(copier.binary):
        errors.append(
            DependencyError(
                copier.binary,
                solution=copier.install_hint,
                details="A bulk copy tool is required to duplicate discs",
            ),
        )

    ejector = create_ejector(config)
    if not shutil.which(ejector.binary):
        errors.append(
            DependencyError(
                ejector.binary,
                required=False,
                solution=ejector.install_hint,
                details="Without it discs are copied but trays stay closed",
            ),
        )

    return errors


def graceful_exit(exit_code: int = 1) -> None:
    """Print how the session ended and exit."""
    if exit_code == 0:
        console.print("\n[green]✨ discdup stopped cleanly[/green]")
    else:
        console.print("\n[red]discdup stopped because of the error above[/red]")
        console.print(
            "[dim]Run 'discdup config validate' to check drives, paths and tools[/dim]",
        )

    sys.exit(exit_code)
