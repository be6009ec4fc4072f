import hmac
import json
import os
from typing import Optional, Tuple

from django.http import JsonResponse


def json_body(request) -> Tuple[Optional[dict], Optional[JsonResponse]]:
    try:
        body = request.body.decode("utf-8") if request.body else "{}"
        data = json.loads(body)
        if not isinstance(data, dict):
            raise ValueError("JSON body must be an object")
        return data, None
    except (UnicodeDecodeError, json.JSONDecodeError, ValueError) as exc:
        return None, JsonResponse({"error": f"invalid_json: {exc}"}, status=400)


def require_env(*keys):
    missing = [key for key in keys if not os.environ.get(key)]
    if missing:
        return JsonResponse({"error": "missing_env", "missing": missing}, status=500)
    return None


def require_fields(data: dict, *keys):
    missing = [key for key in keys if not data.get(key)]
    if missing:
        return JsonResponse({
            "error": "missing_fields",
            "required": list(keys),
            "missing": missing,
        }, status=400)
    return None


def require_shared_secret(request, env_key: str, header: str):
    """401 unless the header matches the secret; open when the env var is unset."""
    expected = os.environ.get(env_key)
    if not expected:
        return None
    provided = request.headers.get(header, "")
    if not hmac.compare_digest(provided.encode(), expected.encode()):
        return JsonResponse({"error": "unauthorized"}, status=401)
    return None
