from signatory.app.events.emitter import (
    LoggingEventEmitter,
    NullEventEmitter,
    SignatureEventEmitter,
)
from signatory.app.events.models import SignatureEvent, SignatureEventType

__all__ = [
    "LoggingEventEmitter",
    "NullEventEmitter",
    "SignatureEvent",
    "SignatureEventEmitter",
    "SignatureEventType",
]
