"""
Identity resolution for loosely-typed reference fields.

Documents point at each other either with a plain id string or with an
embedded reference (a Firestore DocumentReference, or {"id": ...} in JSON
change events). Everything goes through resolve_id; absence is None.
"""
import logging
from dataclasses import dataclass
from typing import Any, Optional

from .constants import FCM_TOKEN_FIELD

logger = logging.getLogger("notifier")

KIND_ID = "id"
KIND_EMBEDDED = "embedded"


@dataclass(frozen=True)
class Reference:
    """A normalised reference field: a raw id or an embedded pointer."""
    kind: str
    id: str

    @classmethod
    def parse(cls, value: Any) -> Optional["Reference"]:
        if isinstance(value, str):
            return cls(KIND_ID, value) if value else None

        if isinstance(value, dict):
            embedded_id = value.get("id")
        else:
            embedded_id = getattr(value, "id", None)

        if isinstance(embedded_id, str) and embedded_id:
            return cls(KIND_EMBEDDED, embedded_id)
        return None


def resolve_id(value: Any) -> Optional[str]:
    """Return the plain id behind a reference-or-id field, or None."""
    ref = Reference.parse(value)
    return ref.id if ref else None


def resolve_token(store, user_id: Optional[str]) -> Optional[str]:
    """Look up the push token of a user. Missing user or empty token -> None."""
    if not user_id:
        return None

    user = store.get_user(user_id)
    if user is None:
        logger.info(f"[IDENTITY] User {user_id} not found")
        return None

    token = user.get(FCM_TOKEN_FIELD)
    if not isinstance(token, str) or not token:
        logger.info(f"[IDENTITY] No fcmToken for user {user_id}")
        return None
    return token
