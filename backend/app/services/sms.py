"""
SMS / OTP service (stub).

No real SMS provider is wired in: the gateway only logs the message. OTP
codes are kept in Redis until they expire or are verified.
"""

import hmac
import logging
import secrets

from backend.app.core.config import settings
from backend.app.core.reliability import CircuitBreaker, CircuitOpenError

logger = logging.getLogger(__name__)

OTP_KEY_PREFIX = "otp:"


class SmsGateway:
    """Stand-in for an SMS provider."""

    async def send(self, phone_number: str, text: str) -> None:
        logger.info("Mock SMS to %s: %s", phone_number, text)


sms_gateway = SmsGateway()
sms_circuit_breaker = CircuitBreaker(
    "sms",
    failure_threshold=settings.sms_failure_threshold,
    reset_timeout=settings.sms_reset_timeout,
)


def generate_otp(length: int = None) -> str:
    length = length or settings.otp_length
    return "".join(secrets.choice("0123456789") for _ in range(length))


async def send_otp(redis, phone_number: str) -> bool:
    """
    Issue a fresh OTP for `phone_number`.

    Fire-and-forget: returns whether the gateway accepted the message, with no
    delivery guarantee.
    """
    code = generate_otp()
    await redis.setex(f"{OTP_KEY_PREFIX}{phone_number}", settings.otp_ttl_seconds, code)
    try:
        await sms_circuit_breaker.call(
            sms_gateway.send, phone_number, f"Your verification code is {code}"
        )
    except CircuitOpenError:
        logger.warning("SMS circuit open, OTP for %s not sent", phone_number)
        return False
    except Exception:
        logger.exception("SMS gateway failed for %s", phone_number)
        return False
    return True


async def verify_otp(redis, phone_number: str, code: str) -> bool:
    """Check a code; a matching code is consumed."""
    key = f"{OTP_KEY_PREFIX}{phone_number}"
    stored = await redis.get(key)
    if stored is None or not hmac.compare_digest(str(stored), code):
        return False
    await redis.delete(key)
    return True
