"""Notification delivery: summary/hint shaping, transport interface, fallback.

A NotificationTransport delivers system notifications (the freedesktop
D-Bus service in the original program). When it is unavailable the dialog
host shows a fallback surface instead: always on top, semi transparent,
dismissed by a click.
"""
from __future__ import annotations
from typing import Optional, Dict, List

from qarma_core import _invoke
from qarma_live import SetHints, SetNotificationText, SetVisible

APP_NAME = 'Qarma'
NOTIFICATION_ICON = 'dialog-information'
SUMMARY_LIMIT = 32
SUMMARY_KEEP = 25
FALLBACK_OPACITY = 0.8


def summarize(message: str) -> str:
    """Notification summary: the message itself or its first 25 chars + '...'."""
    if len(message) <= SUMMARY_LIMIT:
        return message
    return message[:SUMMARY_KEEP] + '...'


def parse_hints(text: str) -> Dict[str, str]:
    """``a:b:c:d`` -> {'a': 'b', 'c': 'd'}; an unpaired trailing key is dropped."""
    if not text:
        return {}
    parts = text.split(':')
    return {parts[i]: parts[i + 1] for i in range(0, len(parts) - 1, 2)}


class NotificationTransport:
    """Interface for a system notification service."""
    def available(self) -> bool:
        return False

    def notify(self, app_name: str, replaces_id: int, icon: str, summary: str, body: str,
               actions: List[str], hints: Dict[str, str], timeout_ms: int) -> int:
        """Deliver and return the service's notification id (0 if none)."""
        ...


class NullTransport(NotificationTransport):
    """No system service: every notification uses the host's fallback surface."""


class Notifier:
    """Routes notification text either to the transport or to the host fallback.

    The id returned by the transport is passed back on the next call so the
    service updates the notification in place.
    """
    def __init__(self, host, transport: Optional[NotificationTransport] = None, hints: str = '',
                 timeout_ms: int = 0, listening: bool = False, callbacks=None):
        self.host = host
        self.transport = transport or NullTransport()
        self.hints = hints
        self.timeout_ms = timeout_ms
        self.listening = listening
        self.callbacks = callbacks
        self.notification_id = 0
        self.fallback_shown = False

    @property
    def uses_system_service(self) -> bool:
        return self.transport.available()

    def send(self, message: str):
        if self.transport.available():
            nid = self.transport.notify(APP_NAME, self.notification_id, NOTIFICATION_ICON, summarize(message),
                                        message, [], parse_hints(self.hints), self.timeout_ms)
            if nid:
                self.notification_id = int(nid)
            _invoke(self.callbacks, 'debug', f"notification {self.notification_id} sent")
            return
        self.fallback_shown = True
        self.host.show_notification(message, self.listening)

    def set_visible(self, visible: bool):
        if not self.fallback_shown:
            _invoke(self.callbacks, 'debug', 'no fallback notification to show or hide')
            return
        self.host.set_visible(visible)

    def apply(self, event) -> bool:
        if isinstance(event, SetNotificationText):
            self.send(event.text)
        elif isinstance(event, SetHints):
            self.hints = event.hints
        elif isinstance(event, SetVisible):
            self.set_visible(event.visible)
        else:
            return False
        return True
