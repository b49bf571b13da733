"""Bearer-token authentication for product management endpoints."""

import functools
import logging
from datetime import datetime, timedelta, timezone

import jwt
from django.conf import settings
from django.core.exceptions import ImproperlyConfigured
from django.http import JsonResponse

logger = logging.getLogger(__name__)

ALGORITHM = "HS256"


def _secret() -> str:
    secret = getattr(settings, "ADMIN_JWT_SECRET", "")
    if not secret:
        logger.error("ADMIN_JWT_SECRET missing in settings")
        raise ImproperlyConfigured("ADMIN_JWT_SECRET setting is required for admin tokens")
    return secret


def issue_admin_token(subject: str, minutes=None) -> str:
    """Return a signed admin token for ``subject`` valid for ``minutes``.

    Defaults to ``settings.ADMIN_JWT_TTL_MINUTES``.
    """
    ttl = minutes if minutes is not None else getattr(settings, "ADMIN_JWT_TTL_MINUTES", 60)
    now = datetime.now(timezone.utc)
    payload = {
        "sub": subject,
        "role": "admin",
        "iat": int(now.timestamp()),
        "exp": int((now + timedelta(minutes=ttl)).timestamp()),
    }
    return jwt.encode(payload, _secret(), algorithm=ALGORITHM)


def verify_admin_token(token: str):
    """Decode ``token`` and return its claims, or ``None`` if it is not a valid admin token."""
    try:
        claims = jwt.decode(token, _secret(), algorithms=[ALGORITHM], options={"require": ["exp", "sub"]})
    except jwt.PyJWTError:
        return None
    if claims.get("role") != "admin":
        return None
    return claims


def _bearer(request) -> str:
    auth = request.headers.get("Authorization", "")
    if not auth.startswith("Bearer "):
        return ""
    return auth.split(" ", 1)[1].strip()


def admin_required(view):
    @functools.wraps(view)
    def wrapper(request, *args, **kwargs):
        claims = verify_admin_token(_bearer(request)) if _bearer(request) else None
        if claims is None:
            logger.warning("Rejected admin request to %s", request.path)
            return JsonResponse({"error": "Unauthorized"}, status=401)
        request.admin_claims = claims
        return view(request, *args, **kwargs)
    return wrapper
