from django.http import JsonResponse, HttpResponseNotAllowed
from django.views.decorators.csrf import csrf_exempt

from ..firebase_service import firestore_service
from ..payment_service import payment_service
from ..push_service import push_service


@csrf_exempt
def health(request):
    if request.method != "GET":
        return HttpResponseNotAllowed(["GET"])

    return JsonResponse({
        "status": "ok",
        "firestore": "connected" if firestore_service.is_available() else "not_configured",
        "messaging": "configured" if push_service.is_configured() else "not_configured",
        "stripe": "configured" if payment_service.is_configured() else "not_configured",
    })
