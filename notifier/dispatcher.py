"""
Event Notifier - turns document change events into push notifications.

Rules:
- calls/{id}:    audio_call_ringing  -> callee
- requests/{id}: new_pending_request -> every employee of the category (fan-out)
                 employee_accepted   -> the requesting client

Rule failures never propagate: the trigger relay treats errors as
retry-worthy, and none of these conditions are.
"""
import asyncio
import logging
from dataclasses import dataclass, field
from typing import List, Optional

from .composer import (
    Notification,
    compose_employee_accepted,
    compose_incoming_audio_call,
    compose_new_request,
)
from .constants import (
    ACCEPTED_EMPLOYEES_FIELD,
    CALLS_COLLECTION,
    CATEGORY_FIELD,
    REQUESTS_COLLECTION,
    USER_FIELD,
)
from .delivery import FAILED, REASON_OTHER, DeliveryResult, deliver_async
from .events import ChangeEvent
from .identity import resolve_id
from .transitions import (
    RULE_AUDIO_CALL_RINGING,
    RULE_EMPLOYEE_ACCEPTED,
    RULE_NEW_PENDING_REQUEST,
    detect,
)

logger = logging.getLogger("notifier")


@dataclass
class RuleOutcome:
    rule: str
    triggered: bool
    reason: str = ""
    deliveries: List[DeliveryResult] = field(default_factory=list)
    error: Optional[str] = None

    def as_dict(self):
        result = {
            "rule": self.rule,
            "triggered": self.triggered,
            "deliveries": [d.as_dict() for d in self.deliveries],
        }
        if self.reason:
            result["reason"] = self.reason
        if self.error:
            result["error"] = self.error
        return result


def expand_recipients(store, category_id: str, requester_user_id: Optional[str]) -> List[str]:
    """
    User ids of the employees in a category, in query order, without
    duplicates and without the requester themself.
    """
    recipients = []
    for employee_id, employee in store.list_employees_in_category(category_id):
        user_id = resolve_id(employee.get(USER_FIELD))
        if user_id is None:
            logger.info(f"[FANOUT] Employee {employee_id} has no userId, skipping")
            continue
        if requester_user_id and user_id == requester_user_id:
            logger.info(f"[FANOUT] Employee {employee_id} is the requester, skipping")
            continue
        if user_id not in recipients:
            recipients.append(user_id)
    return recipients


def employee_display_name(employee) -> str:
    if not employee:
        return ""
    return employee.get("name") or employee.get("nom") or ""


class EventNotifier:
    """Evaluates the rules of a collection and delivers what they produce."""

    def __init__(self, store=None, push=None):
        if store is None:
            from .firebase_service import firestore_service as store
        if push is None:
            from .push_service import push_service as push
        self.store = store
        self.push = push

    async def handle(self, event: ChangeEvent) -> List[RuleOutcome]:
        rules = {
            CALLS_COLLECTION: [
                (RULE_AUDIO_CALL_RINGING, self._on_audio_call_ringing),
            ],
            REQUESTS_COLLECTION: [
                (RULE_NEW_PENDING_REQUEST, self._on_new_pending_request),
                (RULE_EMPLOYEE_ACCEPTED, self._on_employee_accepted),
            ],
        }.get(event.collection)

        if rules is None:
            logger.info(f"[EVENTS] Ignoring change from collection: {event.collection}")
            return []

        outcomes = []
        for rule, handler in rules:
            detection = detect(rule, event.before, event.after)
            if not detection.triggered:
                outcomes.append(RuleOutcome(rule=rule, triggered=False, reason=detection.reason))
                continue
            try:
                outcomes.append(await handler(event, detection))
            except Exception as e:
                logger.exception(f"[EVENTS] {rule} failed for {event.collection}/{event.document_id}")
                outcomes.append(RuleOutcome(rule=rule, triggered=True, error=str(e)))
        return outcomes

    async def fan_out(self, notification: Notification, user_ids: List[str]) -> List[DeliveryResult]:
        """Deliver to every recipient concurrently; wait for all of them to settle."""
        targets = [notification.for_recipient(user_id) for user_id in user_ids]
        settled = await asyncio.gather(
            *(deliver_async(self.store, self.push, target) for target in targets),
            return_exceptions=True,
        )

        results = []
        for target, result in zip(targets, settled):
            if isinstance(result, Exception):
                logger.error(f"[FANOUT] Delivery to {target.recipient_user_id} raised: {result}")
                result = DeliveryResult(
                    status=FAILED,
                    user_id=target.recipient_user_id,
                    reason=REASON_OTHER,
                    error=str(result),
                )
            results.append(result)
        return results

    def _client_user_id(self, request) -> Optional[str]:
        client_id = resolve_id(request.get("clientId"))
        if client_id is None:
            return None
        client = self.store.get_client(client_id)
        if client is None:
            return None
        return resolve_id(client.get(USER_FIELD))

    async def _on_audio_call_ringing(self, event: ChangeEvent, detection) -> RuleOutcome:
        call = event.after
        callee_id = resolve_id(call.get("calleeId"))
        caller_id = resolve_id(call.get("callerId"))
        if callee_id is None or caller_id is None:
            return RuleOutcome(rule=detection.rule, triggered=False, reason="unresolvable callee or caller")

        logger.info(f"[EVENTS] Call {event.document_id} from {caller_id} to {callee_id}")
        notification = compose_incoming_audio_call(
            call_id=event.document_id,
            caller_id=caller_id,
            caller_name=call.get("callerName") or "",
        )
        deliveries = await self.fan_out(notification, [callee_id])
        return RuleOutcome(rule=detection.rule, triggered=True, deliveries=deliveries)

    async def _on_new_pending_request(self, event: ChangeEvent, detection) -> RuleOutcome:
        request = event.after
        category_id = resolve_id(request.get(CATEGORY_FIELD))
        if category_id is None:
            return RuleOutcome(rule=detection.rule, triggered=False, reason="unresolvable categorieId")

        requester_user_id = await asyncio.to_thread(self._client_user_id, request)
        recipients = await asyncio.to_thread(expand_recipients, self.store, category_id, requester_user_id)
        logger.info(
            f"[EVENTS] Request {event.document_id} in category {category_id}: "
            f"{len(recipients)} recipient(s)"
        )
        if not recipients:
            return RuleOutcome(rule=detection.rule, triggered=True, reason="no employees in category")

        notification = compose_new_request(
            request_id=event.document_id,
            description=request.get("description") or "",
            address=request.get("address") or "",
        )
        deliveries = await self.fan_out(notification, recipients)
        return RuleOutcome(rule=detection.rule, triggered=True, deliveries=deliveries)

    async def _on_employee_accepted(self, event: ChangeEvent, detection) -> RuleOutcome:
        # Resolved once; reused for delivery and token cleanup alike
        client_user_id = await asyncio.to_thread(self._client_user_id, event.after)
        if client_user_id is None:
            return RuleOutcome(rule=detection.rule, triggered=False, reason="unresolvable client user")

        employees = await asyncio.gather(*(
            asyncio.to_thread(self.store.get_employee, employee_id)
            for employee_id in detection.new_employee_ids
        ))
        names = [employee_display_name(employee) for employee in employees]
        logger.info(
            f"[EVENTS] Request {event.document_id}: {len(names)} new {ACCEPTED_EMPLOYEES_FIELD}"
        )
        notification = compose_employee_accepted(request_id=event.document_id, employee_names=names)
        deliveries = await self.fan_out(notification, [client_user_id])
        return RuleOutcome(rule=detection.rule, triggered=True, deliveries=deliveries)
