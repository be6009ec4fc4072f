"""
Notification payloads per event kind.
"""
from dataclasses import dataclass, field
from typing import Any, Dict, List

from .constants import (
    DEFAULT_CALLER_NAME,
    DEFAULT_EMPLOYEE_NAME,
    DEFAULT_REQUEST_TITLE,
    DESCRIPTION_PREVIEW_LENGTH,
    KIND_EMPLOYEE_ACCEPTED,
    KIND_INCOMING_AUDIO_CALL,
    KIND_NEW_REQUEST,
)


@dataclass
class Notification:
    """One push message for one recipient. Not persisted."""
    kind: str
    title: str
    body: str
    data: Dict[str, str] = field(default_factory=dict)
    recipient_user_id: str = ""

    def for_recipient(self, user_id: str) -> "Notification":
        return Notification(
            kind=self.kind,
            title=self.title,
            body=self.body,
            data=dict(self.data),
            recipient_user_id=user_id,
        )


def truncate(text: str, limit: int = DESCRIPTION_PREVIEW_LENGTH) -> str:
    if len(text) <= limit:
        return text
    return text[:limit] + "..."


def _string_data(data: Dict[str, Any]) -> Dict[str, str]:
    # FCM data payload values must be strings
    return {k: "" if v is None else str(v) for k, v in data.items()}


def compose_incoming_audio_call(call_id: str, caller_id: str, caller_name: str = "") -> Notification:
    caller_name = caller_name or DEFAULT_CALLER_NAME
    return Notification(
        kind=KIND_INCOMING_AUDIO_CALL,
        title="Incoming Call",
        body=f"Audio call from {caller_name}",
        data=_string_data({
            "type": KIND_INCOMING_AUDIO_CALL,
            "callId": call_id,
            "callerId": caller_id,
            "callerName": caller_name,
            "audio": "true",
        }),
    )


def compose_new_request(request_id: str, description: str = "", address: str = "") -> Notification:
    preview = truncate(description or DEFAULT_REQUEST_TITLE)
    return Notification(
        kind=KIND_NEW_REQUEST,
        title="Nouvelle demande",
        body=f"{preview}\nLocation: {address or ''}",
        data=_string_data({
            "type": KIND_NEW_REQUEST,
            "requestId": request_id,
        }),
    )


def compose_employee_accepted(request_id: str, employee_names: List[str]) -> Notification:
    """
    employee_names has one entry per newly accepted employee; an entry is
    empty when the employee record could not be read.
    """
    if len(employee_names) == 1:
        body = f"{employee_names[0] or DEFAULT_EMPLOYEE_NAME} a accepté votre demande"
    else:
        body = f"{len(employee_names)} employés ont accepté votre demande"

    return Notification(
        kind=KIND_EMPLOYEE_ACCEPTED,
        title="Demande acceptée",
        body=body,
        data=_string_data({
            "type": KIND_EMPLOYEE_ACCEPTED,
            "requestId": request_id,
        }),
    )


_COMPOSERS = {
    KIND_INCOMING_AUDIO_CALL: compose_incoming_audio_call,
    KIND_NEW_REQUEST: compose_new_request,
    KIND_EMPLOYEE_ACCEPTED: compose_employee_accepted,
}


def compose(kind: str, **context) -> Notification:
    try:
        composer = _COMPOSERS[kind]
    except KeyError:
        raise ValueError(f"Unknown notification kind: {kind}")
    return composer(**context)
