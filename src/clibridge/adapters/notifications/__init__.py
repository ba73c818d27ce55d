"""Notification adapters."""

from clibridge.adapters.notifications.email import EmailConfig, EmailNotifier

__all__ = ["EmailConfig", "EmailNotifier"]
