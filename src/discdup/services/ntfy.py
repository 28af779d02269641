"""ntfy.sh notification integration."""

import logging

import httpx

from discdup.config import DiscdupConfig

logger = logging.getLogger(__name__)


class NtfyNotifier:
    """Sends notifications via ntfy.sh service."""

    def __init__(self, config: DiscdupConfig):
        self.config = config
        self.topic_url = config.ntfy_topic
        self.client = httpx.Client(
            timeout=config.ntfy_request_timeout,
            headers={"User-Agent": "discdup/0.1.0"},
        )

    def send_notification(
        self,
        message: str,
        title: str | None = None,
        priority: str = "default",
        tags: str | None = None,
    ) -> bool:
        """Send a notification via ntfy."""
        if not self.topic_url:
            logger.debug("No ntfy topic configured, skipping notification")
            return False

        try:
            headers = {}

            if title:
                # HTTP headers must be latin-1; drop what does not fit
                try:
                    headers["Title"] = title.encode("latin1").decode("latin1")
                except UnicodeEncodeError:
                    headers["Title"] = title.encode("ascii", errors="ignore").decode("ascii").strip()

            if priority != "default":
                headers["Priority"] = priority

            if tags:
                headers["Tags"] = tags

            response = self.client.post(
                self.topic_url,
                content=message.encode("utf-8"),
                headers=headers,
            )

            response.raise_for_status()
            logger.debug(f"Sent notification: {title or message[:50]}")
            return True

        except httpx.RequestError as e:
            logger.warning(f"Failed to send notification: {e}")
            return False
        except httpx.HTTPStatusError as e:
            logger.warning(
                f"Notification service error {e.response.status_code}: {e.response.text}",
            )
            return False

    def notify_session_started(self, drives: str) -> bool:
        return self.send_notification(
            f"Monitoring {drives} for discs",
            title="Copy Session Started",
            tags="discdup,session",
        )

    def notify_copy_complete(self, folder_name: str, drive: str) -> bool:
        """Send notification when a disc was copied."""
        return self.send_notification(
            f"Copied {folder_name} from {drive}",
            title="✅ Disc Copied",
            tags="discdup,copy,completed",
        )

    def notify_copy_failed(self, folder_name: str, drive: str, reason: str) -> bool:
        """Send notification when a copy failed and the disc stays in the drive."""
        return self.send_notification(
            f"Copy of {folder_name} from {drive} failed: {reason}. The disc was not ejected.",
            title="❌ Copy Failed",
            priority="high",
            tags="discdup,copy,failed",
        )

    def notify_eject_failed(self, folder_name: str, drive: str) -> bool:
        return self.send_notification(
            f"{folder_name} was copied but {drive} could not be opened",
            title="⚠️ Eject Failed",
            tags="discdup,eject,warning",
        )

    def close(self) -> None:
        self.client.close()
