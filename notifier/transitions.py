"""
Edge-triggered transition detection over before/after document snapshots.

Each rule fires only when its condition newly becomes true, so unrelated
updates to a document that already satisfies it do not notify again.
"""
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from .constants import ACCEPTED_EMPLOYEES_FIELD, CATEGORY_FIELD
from .identity import resolve_id

logger = logging.getLogger("notifier")

RULE_AUDIO_CALL_RINGING = "audio_call_ringing"
RULE_NEW_PENDING_REQUEST = "new_pending_request"
RULE_EMPLOYEE_ACCEPTED = "employee_accepted"


class _ClosedEnum(str, Enum):
    """Unknown raw values map to OTHER instead of raising."""

    @classmethod
    def _missing_(cls, value):
        return cls.OTHER

    @classmethod
    def of(cls, document: Optional[Dict[str, Any]], field_name: str):
        if not document:
            return cls.OTHER
        return cls(document.get(field_name))


class CallStatus(_ClosedEnum):
    RINGING = "ringing"
    OTHER = "other"


class CallType(_ClosedEnum):
    AUDIO = "audio"
    OTHER = "other"


class RequestStatus(_ClosedEnum):
    PENDING = "Pending"
    OTHER = "other"


@dataclass
class Detection:
    rule: str
    triggered: bool
    reason: str = ""
    # employee_accepted only: ids present in after but not in before
    new_employee_ids: List[str] = field(default_factory=list)

    @classmethod
    def skip(cls, rule: str, reason: str) -> "Detection":
        logger.info(f"[DETECT] {rule}: not triggered ({reason})")
        return cls(rule=rule, triggered=False, reason=reason)


def _is_ringing_audio(document: Optional[Dict[str, Any]]) -> bool:
    return (
        CallStatus.of(document, "status") is CallStatus.RINGING
        and CallType.of(document, "type") is CallType.AUDIO
    )


def _is_pending(document: Optional[Dict[str, Any]]) -> bool:
    return RequestStatus.of(document, "statut") is RequestStatus.PENDING


def _id_list(document: Optional[Dict[str, Any]], field_name: str) -> List[str]:
    if not document:
        return []
    values = document.get(field_name) or []
    if not isinstance(values, (list, tuple, set)):
        return []
    resolved = (resolve_id(v) for v in values)
    return [employee_id for employee_id in resolved if employee_id]


def detect_audio_call_ringing(before, after) -> Detection:
    rule = RULE_AUDIO_CALL_RINGING
    if after is None:
        return Detection.skip(rule, "deleted")
    if not _is_ringing_audio(after):
        return Detection.skip(rule, f"status={after.get('status')}, type={after.get('type')}")
    if _is_ringing_audio(before):
        return Detection.skip(rule, "already ringing")
    if not after.get("calleeId") or not after.get("callerId"):
        return Detection.skip(rule, "missing calleeId or callerId")
    return Detection(rule=rule, triggered=True)


def detect_new_pending_request(before, after) -> Detection:
    rule = RULE_NEW_PENDING_REQUEST
    if after is None:
        return Detection.skip(rule, "deleted")
    if before is not None:
        return Detection.skip(rule, "not a creation")
    if not _is_pending(after):
        return Detection.skip(rule, f"statut={after.get('statut')}")
    if not after.get(CATEGORY_FIELD):
        return Detection.skip(rule, "missing categorieId")
    return Detection(rule=rule, triggered=True)


def detect_employee_accepted(before, after) -> Detection:
    rule = RULE_EMPLOYEE_ACCEPTED
    if after is None:
        return Detection.skip(rule, "deleted")
    if not _is_pending(after):
        return Detection.skip(rule, f"statut={after.get('statut')}")

    previous = set(_id_list(before, ACCEPTED_EMPLOYEES_FIELD))
    new_ids = []
    for employee_id in _id_list(after, ACCEPTED_EMPLOYEES_FIELD):
        if employee_id not in previous and employee_id not in new_ids:
            new_ids.append(employee_id)

    if not new_ids:
        return Detection.skip(rule, "no newly accepted employees")
    return Detection(rule=rule, triggered=True, new_employee_ids=new_ids)


_DETECTORS = {
    RULE_AUDIO_CALL_RINGING: detect_audio_call_ringing,
    RULE_NEW_PENDING_REQUEST: detect_new_pending_request,
    RULE_EMPLOYEE_ACCEPTED: detect_employee_accepted,
}


def detect(rule: str, before: Optional[Dict[str, Any]], after: Optional[Dict[str, Any]]) -> Detection:
    """Evaluate one rule against a before/after pair."""
    try:
        detector = _DETECTORS[rule]
    except KeyError:
        raise ValueError(f"Unknown rule: {rule}")
    return detector(before, after)
