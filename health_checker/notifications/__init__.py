"""Chat notifications for status changes and recovery results."""

from .messages import StatusMessage, build_recovery_message, build_status_change_message, presence_text

__all__ = ["StatusMessage", "build_recovery_message", "build_status_change_message", "presence_text"]
