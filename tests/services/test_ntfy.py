"""Tests for ntfy notifications."""

from unittest.mock import Mock

import httpx
import pytest

from discdup.config import DiscdupConfig
from discdup.services.ntfy import NtfyNotifier


@pytest.fixture
def mock_config():
    """Create a mock configuration for testing."""
    config = Mock(spec=DiscdupConfig)
    config.ntfy_topic = "https://ntfy.sh/test-topic"
    config.ntfy_request_timeout = 10
    return config


@pytest.fixture
def notifier(mock_config):
    """Create a NtfyNotifier with a mocked HTTP client."""
    notifier = NtfyNotifier(mock_config)
    notifier.client = Mock()
    notifier.client.post.return_value = Mock()
    return notifier


class TestSendNotification:
    """Test the core send_notification method."""

    def test_init(self, mock_config):
        notifier = NtfyNotifier(mock_config)

        assert notifier.topic_url == "https://ntfy.sh/test-topic"
        assert isinstance(notifier.client, httpx.Client)
        notifier.close()

    def test_send_basic(self, notifier):
        assert notifier.send_notification("Test message") is True

        notifier.client.post.assert_called_once_with(
            "https://ntfy.sh/test-topic",
            content=b"Test message",
            headers={},
        )

    def test_send_with_all_params(self, notifier):
        result = notifier.send_notification(
            "Test message",
            title="Test Title",
            priority="high",
            tags="a,b",
        )

        assert result is True
        notifier.client.post.assert_called_once_with(
            "https://ntfy.sh/test-topic",
            content=b"Test message",
            headers={"Title": "Test Title", "Priority": "high", "Tags": "a,b"},
        )

    def test_emoji_dropped_from_title(self, notifier):
        notifier.send_notification("msg", title="✅ Disc Copied")

        headers = notifier.client.post.call_args.kwargs["headers"]
        assert headers["Title"] == "Disc Copied"

    def test_no_topic(self, mock_config):
        mock_config.ntfy_topic = None
        notifier = NtfyNotifier(mock_config)
        notifier.client = Mock()

        assert notifier.send_notification("Test message") is False
        notifier.client.post.assert_not_called()

    def test_request_error(self, notifier):
        notifier.client.post.side_effect = httpx.ConnectError("Connection failed")

        assert notifier.send_notification("Test message") is False

    def test_http_status_error(self, notifier):
        response = Mock(status_code=500, text="Internal Server Error")
        notifier.client.post.return_value.raise_for_status.side_effect = httpx.HTTPStatusError(
            "Server error",
            request=Mock(),
            response=response,
        )

        assert notifier.send_notification("Test message") is False


class TestCopyNotifications:
    """Notification helpers used during a session."""

    def test_copy_complete(self, notifier):
        notifier.notify_copy_complete("CD_ARCHIVE_101", "I:")

        kwargs = notifier.client.post.call_args.kwargs
        assert kwargs["content"] == b"Copied CD_ARCHIVE_101 from I:"
        assert "completed" in kwargs["headers"]["Tags"]

    def test_copy_failed_is_high_priority(self, notifier):
        notifier.notify_copy_failed("CD_ARCHIVE_102", "J:", "completion code 16")

        kwargs = notifier.client.post.call_args.kwargs
        assert b"completion code 16" in kwargs["content"]
        assert b"not ejected" in kwargs["content"]
        assert kwargs["headers"]["Priority"] == "high"

    def test_eject_failed(self, notifier):
        notifier.notify_eject_failed("CD_ARCHIVE_103", "I:")

        kwargs = notifier.client.post.call_args.kwargs
        assert kwargs["content"] == b"CD_ARCHIVE_103 was copied but I: could not be opened"

    def test_session_started(self, notifier):
        notifier.notify_session_started("I:, J:")

        kwargs = notifier.client.post.call_args.kwargs
        assert kwargs["content"] == b"Monitoring I:, J: for discs"
        assert kwargs["headers"]["Title"] == "Copy Session Started"
