"""
Run event sinks.

The coordinator reports its progress as SignatureEvents. A sink only
observes them: it never raises into the run and never changes what the
run does next.
"""

from __future__ import annotations

import logging
from typing import Protocol

from signatory.app.events.models import SignatureEvent, SignatureEventType

logger = logging.getLogger("signatory.events")


class SignatureEventEmitter(Protocol):

    async def emit(self, event: SignatureEvent) -> None:
        ...


class NullEventEmitter:
    """Discards every event."""

    async def emit(self, event: SignatureEvent) -> None:
        return


class LoggingEventEmitter:
    """
    Writes each event to the ``signatory.events`` logger.

    Events are logged at ``level`` (DEBUG unless overridden) so a normal
    workflow log stays readable; ``run_failed`` is always a warning.
    """

    def __init__(self, *, level: int = logging.DEBUG) -> None:
        self._level = level

    async def emit(self, event: SignatureEvent) -> None:
        level = (
            logging.WARNING
            if event.event_type is SignatureEventType.RUN_FAILED
            else self._level
        )
        logger.log(
            level,
            event.event_type.value,
            extra={
                "run_id": event.run_id,
                "event_id": str(event.event_id),
                "details": event.details,
            },
        )
