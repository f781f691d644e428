"""Outbound notification events.

Delivery belongs to an external service. The engine only hands events to a
Notifier after the triggering change has been committed and never waits on,
or reacts to, the outcome.
"""

import logging
from typing import Protocol

from .models import NotificationEvent

logger = logging.getLogger('pffl.notifications')


class Notifier(Protocol):
    def notify(self, event: NotificationEvent) -> None: ...


class LoggingNotifier:
    """Default notifier: records events in the log."""

    def notify(self, event: NotificationEvent) -> None:
        logger.info(f'[{event.kind}] -> {event.target_participant_id}: {event.message}')


def dispatch(notifier: Notifier, event: NotificationEvent) -> None:
    """Hand an event to the notifier. Delivery failures are logged, never raised."""
    try:
        notifier.notify(event)
    except Exception as e:
        logger.warning(f'Notification {event.kind} to {event.target_participant_id} failed: {e}')
