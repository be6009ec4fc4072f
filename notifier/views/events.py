import logging

from django.http import JsonResponse, HttpResponseNotAllowed
from django.views.decorators.csrf import csrf_exempt

from ..dispatcher import EventNotifier
from ..events import ChangeEvent
from ..http import json_body, require_shared_secret
from ..utils import run_async

logger = logging.getLogger("notifier")

EVENT_SECRET_ENV = "NOTIFIER_EVENT_SECRET"
EVENT_SECRET_HEADER = "X-Notifier-Secret"


def get_notifier() -> EventNotifier:
    return EventNotifier()


@csrf_exempt
def firestore_event(request):
    """
    Receive one document change event from the Firestore trigger relay.

    Always answers 200 once the envelope is valid: skipped rules and failed
    deliveries are not retry-worthy for the relay.
    """
    if request.method != "POST":
        return HttpResponseNotAllowed(["POST"])

    unauthorized = require_shared_secret(request, EVENT_SECRET_ENV, EVENT_SECRET_HEADER)
    if unauthorized:
        logger.warning(f"[EVENTS] Rejected event from {request.META.get('REMOTE_ADDR')}")
        return unauthorized

    data, error = json_body(request)
    if error:
        return error

    try:
        event = ChangeEvent.from_payload(data)
    except ValueError as e:
        logger.error(f"[EVENTS] Malformed event: {e}")
        return JsonResponse({"error": "invalid_event", "message": str(e)}, status=400)

    logger.info(
        f"[EVENTS] {event.collection}/{event.document_id} "
        f"(before={event.before is not None}, after={event.after is not None})"
    )

    outcomes = run_async(get_notifier().handle(event))

    return JsonResponse({
        "handled": any(o.triggered for o in outcomes),
        "collection": event.collection,
        "id": event.document_id,
        "outcomes": [o.as_dict() for o in outcomes],
    })
