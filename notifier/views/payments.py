import logging

from django.http import JsonResponse, HttpResponseNotAllowed
from django.views.decorators.csrf import csrf_exempt

from ..constants import DEFAULT_CURRENCY
from ..http import json_body, require_env
from ..payment_service import InvalidAmount, payment_service, to_minor_units

logger = logging.getLogger("notifier")


@csrf_exempt
def create_payment_intent(request):
    logger.info(f"[PAYMENT] {request.method} from {request.META.get('REMOTE_ADDR')}")

    if request.method != "POST":
        return HttpResponseNotAllowed(["POST"])

    data, error = json_body(request)
    if error:
        return error

    try:
        amount_minor = to_minor_units(data.get("amount"))
    except InvalidAmount as e:
        return JsonResponse({"error": "invalid_amount", "message": str(e)}, status=400)

    currency = data.get("currency") or DEFAULT_CURRENCY
    metadata = data.get("metadata") or {}
    if not isinstance(currency, str) or not isinstance(metadata, dict):
        return JsonResponse({"error": "invalid_fields", "message": "currency must be a string, metadata an object"}, status=400)

    missing_env = require_env("STRIPE_SECRET_KEY")
    if missing_env:
        logger.error("[PAYMENT] STRIPE_SECRET_KEY is not configured")
        return missing_env

    result = payment_service.create_payment_intent(amount_minor, currency, metadata)
    if not result.success:
        return JsonResponse({
            "error": "payment_intent_failed",
            "message": result.error or "An unexpected error occurred",
        }, status=500)

    return JsonResponse({
        "clientSecret": result.client_secret,
        "paymentIntentId": result.payment_intent_id,
    })
