"""Twilio webhook signature validation."""
import base64
import hashlib
import hmac
import logging
from typing import Mapping

from fastapi import HTTPException, Request

from app.core.config import settings

logger = logging.getLogger(__name__)


def compute_twilio_signature(url: str, params: Mapping[str, str], auth_token: str) -> str:
    """
    Twilio's X-Twilio-Signature: base64 HMAC-SHA1 of the full URL followed by
    every POST parameter name and value, sorted by name.
    """
    payload = url + "".join(f"{key}{params[key]}" for key in sorted(params))
    digest = hmac.new(auth_token.encode(), payload.encode(), hashlib.sha1).digest()
    return base64.b64encode(digest).decode()


def verify_twilio_signature(
    url: str, params: Mapping[str, str], signature: str, auth_token: str
) -> bool:
    expected = compute_twilio_signature(url, params, auth_token)
    return hmac.compare_digest(expected, signature or "")


def public_url(request: Request) -> str:
    """The URL Twilio actually requested (honours BASE_URL behind a proxy)."""
    if settings.base_url:
        url = settings.base_url.rstrip("/") + request.url.path
        if request.url.query:
            url += "?" + request.url.query
        return url
    return str(request.url)


async def require_twilio_signature(request: Request) -> None:
    """Router dependency; a no-op unless VALIDATE_TWILIO_SIGNATURE is on."""
    if not settings.validate_twilio_signature:
        return
    form = await request.form()
    params = {key: str(value) for key, value in form.items()}
    signature = request.headers.get("X-Twilio-Signature", "")
    if not verify_twilio_signature(public_url(request), params, signature, settings.twilio_auth_token):
        logger.warning(f"[SECURITY] Invalid Twilio signature for {request.url.path}")
        raise HTTPException(status_code=403, detail="Invalid Twilio signature")
