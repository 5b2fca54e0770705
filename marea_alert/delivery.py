"""
Alert Delivery
==============

SMS delivery through the Twilio Messages REST API.

A delivery callable takes (contact, message) and either returns or raises
AlertDeliveryError. Any failure means the fisher was NOT warned, so it is
never swallowed here.
"""

from typing import Callable, Optional

import requests

from marea_alert.contacts import Contact
from marea_mqtt.logging import LogEvent, StructuredLogger, create_logger

TWILIO_MESSAGES_URL = "https://api.twilio.com/2010-04-01/Accounts/{account_sid}/Messages.json"

DeliverFn = Callable[[Contact, str], object]


class AlertDeliveryError(RuntimeError):
    """The notification channel rejected, failed or timed out."""


class TwilioSmsDelivery:
    """
    Send one SMS per call via Twilio.

    Attributes:
        account_sid: Twilio account SID
        auth_token: Twilio auth token
        from_number: Sending phone number (E.164)
        timeout: Seconds for connect + read; a stuck request raises

    Example:
        >>> deliver = TwilioSmsDelivery(sid, token, "+15005550006")
        >>> deliver(contact, "Hello ...")
    """

    def __init__(
        self,
        account_sid: Optional[str],
        auth_token: Optional[str],
        from_number: Optional[str],
        timeout: float = 10.0,
        session: Optional[requests.Session] = None,
        logger: Optional[StructuredLogger] = None
    ):
        self.account_sid = account_sid
        self.auth_token = auth_token
        self.from_number = from_number
        self.timeout = timeout
        self.session = session or requests.Session()
        self.logger = logger or create_logger("delivery")

    @property
    def is_configured(self) -> bool:
        return bool(self.account_sid and self.auth_token and self.from_number)

    def __call__(self, contact: Contact, message: str) -> Optional[str]:
        """
        Deliver message to the contact's phone.

        Returns:
            Twilio message SID, if the response carried one

        Raises:
            AlertDeliveryError: Missing credentials, transport error,
                timeout or non-2xx response
        """
        if not self.is_configured:
            raise AlertDeliveryError("Twilio configuration is incomplete")
        if not contact.phone:
            raise AlertDeliveryError(f"Contact '{contact.owner_id}' has no phone")

        url = TWILIO_MESSAGES_URL.format(account_sid=self.account_sid)
        try:
            response = self.session.post(
                url,
                data={'From': self.from_number, 'To': contact.phone, 'Body': message},
                auth=(self.account_sid, self.auth_token),
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise AlertDeliveryError(f"Twilio request failed: {e}") from e

        if not response.ok:
            self.logger.error(
                event=LogEvent.ALERT_DELIVERY_FAILED,
                message="Twilio rejected SMS",
                metadata={
                    'owner_id': contact.owner_id,
                    'status_code': response.status_code,
                    'response': response.text[:500],
                }
            )
            raise AlertDeliveryError(
                f"Twilio SMS failed: {response.status_code} {response.reason}"
            )

        try:
            return response.json().get('sid')
        except ValueError:
            return None
