"""
Push notification transport: FCM via Firebase Admin SDK (Android and iOS through APNs config).
"""
import logging
import time
from dataclasses import dataclass
from typing import Optional, Dict

from .composer import Notification
from .constants import (
    CALL_ANDROID_CHANNEL_ID,
    CALL_NOTIFICATION_TTL_SECONDS,
    KIND_INCOMING_AUDIO_CALL,
    NOTIFICATION_SOUND,
)
from .utils import mask_token

logger = logging.getLogger("notifier")

ERROR_NOT_CONFIGURED = "not_configured"
ERROR_UNREGISTERED = "UNREGISTERED"
ERROR_INVALID_TOKEN = "INVALID_TOKEN"
ERROR_SENDER_ID_MISMATCH = "SENDER_ID_MISMATCH"
ERROR_EXCEPTION = "exception"

DEAD_TOKEN_ERRORS = {ERROR_UNREGISTERED, ERROR_INVALID_TOKEN}


@dataclass
class PushResult:
    """Result of a push notification attempt"""
    success: bool
    message_id: Optional[str] = None
    error: Optional[str] = None
    error_code: Optional[str] = None

    @property
    def token_invalid(self) -> bool:
        return not self.success and self.error_code in DEAD_TOKEN_ERRORS


class FCMService:
    """
    Firebase Cloud Messaging sender.
    Uses Firebase Admin SDK for sending messages.
    """

    def __init__(self):
        self._messaging = None

    def _get_messaging(self):
        """Get Firebase messaging module (lazy initialization)"""
        if self._messaging is not None:
            return self._messaging

        try:
            from firebase_admin import messaging
            from .firebase_service import get_firebase_app

            if get_firebase_app() is not None:
                self._messaging = messaging
                logger.info("[FCM] Firebase messaging initialized")
            else:
                logger.warning("[FCM] Firebase app not initialized")
        except ImportError as e:
            logger.error(f"[FCM] Firebase Admin SDK not installed: {e}")

        return self._messaging

    def is_configured(self) -> bool:
        return self._get_messaging() is not None

    def build_message(self, messaging, token: str, notification: Notification):
        """
        Build the FCM message. Incoming call notifications are high priority
        with a short TTL; other kinds keep the transport defaults.
        """
        data: Dict[str, str] = {k: str(v) for k, v in notification.data.items()}

        if notification.kind == KIND_INCOMING_AUDIO_CALL:
            expiration = int(time.time()) + CALL_NOTIFICATION_TTL_SECONDS
            android = messaging.AndroidConfig(
                priority="high",
                ttl=CALL_NOTIFICATION_TTL_SECONDS,
                notification=messaging.AndroidNotification(
                    sound=NOTIFICATION_SOUND,
                    priority="high",
                    channel_id=CALL_ANDROID_CHANNEL_ID,
                ),
            )
            apns = messaging.APNSConfig(
                headers={
                    "apns-priority": "10",
                    "apns-expiration": str(expiration),
                },
                payload=messaging.APNSPayload(
                    aps=messaging.Aps(
                        alert=messaging.ApsAlert(title=notification.title, body=notification.body),
                        sound=NOTIFICATION_SOUND,
                        badge=1,
                    ),
                ),
            )
        else:
            android = messaging.AndroidConfig(
                notification=messaging.AndroidNotification(sound=NOTIFICATION_SOUND),
            )
            apns = messaging.APNSConfig(
                payload=messaging.APNSPayload(aps=messaging.Aps(sound=NOTIFICATION_SOUND)),
            )

        return messaging.Message(
            token=token,
            notification=messaging.Notification(title=notification.title, body=notification.body),
            data=data,
            android=android,
            apns=apns,
        )

    def send(self, token: str, notification: Notification) -> PushResult:
        """
        Send one notification to one device token.

        Returns:
            PushResult; dead tokens are reported with UNREGISTERED / INVALID_TOKEN
        """
        messaging = self._get_messaging()
        if messaging is None:
            return PushResult(success=False, error="FCM not configured", error_code=ERROR_NOT_CONFIGURED)

        from firebase_admin import exceptions as firebase_exceptions

        try:
            message = self.build_message(messaging, token, notification)
            response = messaging.send(message)
            logger.info(f"[FCM] {notification.kind} sent: {response}")
            return PushResult(success=True, message_id=response)

        except messaging.UnregisteredError:
            logger.warning(f"[FCM] Token unregistered: {mask_token(token)}")
            return PushResult(success=False, error="Token unregistered", error_code=ERROR_UNREGISTERED)
        except messaging.SenderIdMismatchError:
            logger.error("[FCM] Sender ID mismatch")
            return PushResult(success=False, error="Sender ID mismatch", error_code=ERROR_SENDER_ID_MISMATCH)
        except firebase_exceptions.InvalidArgumentError as e:
            if "registration token" in str(e).lower():
                logger.warning(f"[FCM] Invalid registration token: {mask_token(token)}")
                return PushResult(success=False, error=str(e), error_code=ERROR_INVALID_TOKEN)
            logger.error(f"[FCM] Invalid message: {e}")
            return PushResult(success=False, error=str(e), error_code=ERROR_EXCEPTION)
        except Exception as e:
            logger.error(f"[FCM] Send error: {e}")
            return PushResult(success=False, error=str(e), error_code=ERROR_EXCEPTION)


# Singleton instance
push_service = FCMService()
