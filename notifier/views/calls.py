import logging

from django.http import JsonResponse, HttpResponseNotAllowed
from django.views.decorators.csrf import csrf_exempt

from ..composer import compose_incoming_audio_call
from ..constants import DEFAULT_TEST_CALLER_NAME, FCM_TOKEN_FIELD
from ..firebase_service import firestore_service
from ..http import json_body, require_fields
from ..push_service import push_service

logger = logging.getLogger("notifier")


@csrf_exempt
def call_test_notify(request):
    """
    Manually send an incoming audio call notification, bypassing the
    calls/{id} trigger. For testing devices end to end.
    """
    logger.info(f"[CALL/TEST_NOTIFY] {request.method} from {request.META.get('REMOTE_ADDR')}")

    if request.method != "POST":
        return HttpResponseNotAllowed(["POST"])

    data, error = json_body(request)
    if error:
        return error

    missing = require_fields(data, "calleeId", "callerId", "callId")
    if missing:
        return missing

    callee_id = data["calleeId"]
    callee = firestore_service.get_user(callee_id)
    if callee is None:
        return JsonResponse({"error": "callee_not_found", "message": f"Callee {callee_id} not found"}, status=404)

    token = callee.get(FCM_TOKEN_FIELD)
    if not token:
        return JsonResponse({"error": "no_token", "message": f"No FCM token for callee {callee_id}"}, status=404)

    notification = compose_incoming_audio_call(
        call_id=data["callId"],
        caller_id=data["callerId"],
        caller_name=data.get("callerName") or DEFAULT_TEST_CALLER_NAME,
    )
    result = push_service.send(token, notification)

    if not result.success:
        logger.error(f"[CALL/TEST_NOTIFY] Push failed: {result.error_code} {result.error}")
        return JsonResponse({
            "error": "push_failed",
            "message": "Failed to send test notification",
            "details": result.error,
        }, status=500)

    return JsonResponse({
        "success": True,
        "messageId": result.message_id,
        "message": f"Test notification sent to {callee_id}",
    })
