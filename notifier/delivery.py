"""
Per-recipient delivery with token hygiene.

A send either delivers, is skipped (no token to send to), or fails. When FCM
reports the token dead, the token is removed from users/{uid} so later
events do not retry it.
"""
import asyncio
import logging
from dataclasses import dataclass
from typing import Optional

from .composer import Notification
from .identity import resolve_token

logger = logging.getLogger("notifier")

DELIVERED = "delivered"
SKIPPED = "skipped"
FAILED = "failed"

REASON_NO_TOKEN = "no_token"
REASON_INVALID_TOKEN = "invalid_token"
REASON_OTHER = "other"


@dataclass
class DeliveryResult:
    status: str
    user_id: str
    reason: Optional[str] = None
    message_id: Optional[str] = None
    error: Optional[str] = None

    def as_dict(self):
        result = {"userId": self.user_id, "status": self.status}
        if self.reason:
            result["reason"] = self.reason
        if self.message_id:
            result["messageId"] = self.message_id
        return result


def deliver(store, push, notification: Notification) -> DeliveryResult:
    """Resolve the recipient's token, send, and clear the token if it is dead."""
    user_id = notification.recipient_user_id

    token = resolve_token(store, user_id)
    if token is None:
        logger.info(f"[DELIVERY] {notification.kind} to {user_id}: skipped, no token")
        return DeliveryResult(status=SKIPPED, user_id=user_id, reason=REASON_NO_TOKEN)

    result = push.send(token, notification)

    if result.success:
        return DeliveryResult(status=DELIVERED, user_id=user_id, message_id=result.message_id)

    if result.token_invalid:
        logger.info(f"[DELIVERY] Removing invalid token for user {user_id}")
        store.clear_user_token(user_id)
        return DeliveryResult(status=FAILED, user_id=user_id, reason=REASON_INVALID_TOKEN, error=result.error)

    logger.error(
        f"[DELIVERY] {notification.kind} to {user_id} failed: "
        f"code={result.error_code}, error={result.error}, data={notification.data}"
    )
    return DeliveryResult(status=FAILED, user_id=user_id, reason=REASON_OTHER, error=result.error)


async def deliver_async(store, push, notification: Notification) -> DeliveryResult:
    return await asyncio.to_thread(deliver, store, push, notification)
