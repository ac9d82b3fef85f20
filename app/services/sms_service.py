# app/services/sms_service.py
"""
Outbound SMS for OTP delivery.

SMS_PROVIDER=log    → message is only written to the log (default, dev)
SMS_PROVIDER=twilio → POST to the Twilio Messages API

send() never raises on delivery problems; it returns False and logs.
"""

import httpx
from app.config import settings
from app.utils.logger import get_logger

logger = get_logger(__name__)

TWILIO_MESSAGES_URL = "https://api.twilio.com/2010-04-01/Accounts/{sid}/Messages.json"


class SmsSender:
    async def send(self, phone: str, message: str) -> bool:
        raise NotImplementedError


class LogSmsSender(SmsSender):
    async def send(self, phone: str, message: str) -> bool:
        logger.info(f"[SMS] (log only) to={_mask(phone)} body={len(message)} chars")
        return True


class TwilioSmsSender(SmsSender):
    def __init__(self, account_sid: str, auth_token: str, from_number: str):
        self.account_sid = account_sid
        self.auth_token = auth_token
        self.from_number = from_number

    async def send(self, phone: str, message: str) -> bool:
        url = TWILIO_MESSAGES_URL.format(sid=self.account_sid)
        data = {"To": phone, "From": self.from_number, "Body": message}
        try:
            async with httpx.AsyncClient(auth=(self.account_sid, self.auth_token), timeout=10) as client:
                response = await client.post(url, data=data)
        except httpx.HTTPError as e:
            logger.error(f"[SMS] Twilio unreachable for {_mask(phone)}: {e}")
            return False

        if response.status_code >= 300:
            logger.error(f"[SMS] Twilio returned HTTP {response.status_code} for {_mask(phone)}: {response.text}")
            return False
        logger.info(f"[SMS] Sent to {_mask(phone)}")
        return True


def _mask(phone: str) -> str:
    if not phone or len(phone) <= 4:
        return "****"
    return "*" * (len(phone) - 4) + phone[-4:]


def get_sms_sender() -> SmsSender:
    if settings.SMS_PROVIDER == "twilio":
        if not (settings.TWILIO_ACCOUNT_SID and settings.TWILIO_AUTH_TOKEN and settings.TWILIO_FROM_NUMBER):
            logger.warning("[SMS] SMS_PROVIDER=twilio but Twilio is not configured: falling back to log")
            return LogSmsSender()
        return TwilioSmsSender(settings.TWILIO_ACCOUNT_SID, settings.TWILIO_AUTH_TOKEN, settings.TWILIO_FROM_NUMBER)
    return LogSmsSender()
