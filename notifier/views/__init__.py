from .health import health
from .events import firestore_event
from .calls import call_test_notify
from .payments import create_payment_intent

__all__ = [
    "health",
    "firestore_event",
    "call_test_notify",
    "create_payment_intent",
]
