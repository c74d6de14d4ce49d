import logging
from typing import Optional

import httpx

from admission_portal.core.config import settings

logger = logging.getLogger(__name__)


async def verify_recaptcha(token: str, remote_ip: Optional[str] = None) -> Optional[bool]:
    """
    Check a reCAPTCHA token with the verification endpoint. v3 scores below the threshold fail.

    Returns None when the endpoint is unreachable or its answer is unreadable.
    """
    data = {"secret": settings.recaptcha_secret_key, "response": token}
    if remote_ip:
        data["remoteip"] = remote_ip
    try:
        async with httpx.AsyncClient(timeout=10.0) as client:
            response = await client.post(settings.recaptcha_verify_url, data=data)
            response.raise_for_status()
            result = response.json()
    except (httpx.HTTPError, ValueError) as e:
        logger.warning(f"reCAPTCHA verification unavailable: {e}")
        return None

    if not result.get("success"):
        logger.info(f"reCAPTCHA rejected token: {result.get('error-codes')}")
        return False
    score = result.get("score")
    if score is not None and score < settings.recaptcha_min_score:
        logger.info(f"reCAPTCHA score {score} below {settings.recaptcha_min_score}")
        return False
    return True
