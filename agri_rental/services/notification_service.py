"""SMS notifications to farmers when their rental request changes state.

Delivery is fire-and-forget: callers schedule ``notify_transition`` as a
background task after the transition has committed, and a failed send is
logged, never raised.
"""
import asyncio
import logging
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional

from twilio.rest import Client
from twilio.base.exceptions import TwilioRestException

from agri_rental.config import settings

logger = logging.getLogger(__name__)


class NotificationError(Exception):
    """SMS provider failure."""


@dataclass(frozen=True)
class TransitionNotice:
    """Everything needed to text the farmer, copied out of the ORM row."""

    request_id: int
    status: str
    recipient: str
    equipment_name: str
    rejection_reason: Optional[str] = None
    verification_url: Optional[str] = None


class TwilioService:
    """Service for sending SMS through Twilio."""

    def __init__(self):
        self.account_sid = settings.TWILIO_ACCOUNT_SID
        self.auth_token = settings.TWILIO_AUTH_TOKEN
        self.phone_number = settings.TWILIO_PHONE_NUMBER

        if self.account_sid and self.auth_token:
            self.client = Client(self.account_sid, self.auth_token)
        else:
            self.client = None
            logger.warning("Twilio credentials not configured")

    async def send_sms(self, to: str, body: str) -> str:
        """Send an SMS and return the message SID."""
        if not self.client:
            raise NotificationError("Twilio client not configured")

        try:
            # The Twilio client is synchronous; keep it off the event loop
            message = await asyncio.to_thread(
                self.client.messages.create,
                to=to,
                from_=self.phone_number,
                body=body,
            )
        except TwilioRestException as e:
            logger.error(f"Twilio error: {e.msg}")
            raise NotificationError(f"Twilio error: {e.msg}") from e

        logger.info(f"SMS sent: {message.sid}")
        return message.sid


class MockTwilioService(TwilioService):
    """Records messages instead of sending them (development and tests)."""

    def __init__(self):
        self.phone_number = "+15555555555"
        self.client = None
        self.sent_messages: list[dict] = []

    async def send_sms(self, to: str, body: str) -> str:
        sid = f"SM{len(self.sent_messages):032d}"
        self.sent_messages.append({"to": to, "body": body, "sid": sid})
        logger.info(f"Mock SMS queued: {sid}")
        return sid


@lru_cache()
def get_sms_service() -> TwilioService:
    if settings.TWILIO_ACCOUNT_SID and settings.TWILIO_AUTH_TOKEN:
        return TwilioService()
    return MockTwilioService()


def render_message(notice: TransitionNotice) -> Optional[str]:
    """SMS body for a transition, or None when the farmer is not told."""
    if notice.status == "approved":
        return (
            f"Your equipment rental request for {notice.equipment_name} has been approved! "
            f"Pickup verification: {notice.verification_url}"
        )
    if notice.status == "rejected":
        return (
            f"Your equipment rental request for {notice.equipment_name} has been rejected. "
            f"Reason: {notice.rejection_reason}"
        )
    if notice.status == "active":
        return f"Equipment pickup confirmed! Return verification: {notice.verification_url}"
    if notice.status == "returned":
        return "Equipment return confirmed! Thank you for using our service."
    return None


async def notify_transition(notice: TransitionNotice, sms: Optional[TwilioService] = None) -> bool:
    """Text the farmer about a transition. Returns whether a message went out."""
    body = render_message(notice)
    if body is None:
        return False

    sms = sms or get_sms_service()
    try:
        await sms.send_sms(notice.recipient, body)
    except NotificationError as e:
        logger.error(
            "Failed to send %s notification for rental request %s: %s",
            notice.status,
            notice.request_id,
            e,
        )
        return False
    return True
