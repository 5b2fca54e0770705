"""
Marea Alert
===========

Bounded Context: Warning fishers whose vessel entered a restricted zone.

Architecture:

    marea_alert/
    ├── contacts.py    # Contact, ContactDirectory (vessel -> fisher)
    ├── delivery.py    # TwilioSmsDelivery, AlertDeliveryError
    ├── records.py     # AlertRecord, AlertType, InMemoryAlertLog
    └── dispatcher.py  # AlertDispatcher (resolve -> deliver -> record)
"""

from marea_alert.contacts import Contact, ContactDirectory
from marea_alert.delivery import AlertDeliveryError, DeliverFn, TwilioSmsDelivery
from marea_alert.records import AlertRecord, AlertType, InMemoryAlertLog
from marea_alert.dispatcher import (
    DEFAULT_SIGNATURE,
    ENTRY_TEMPLATE,
    EXIT_TEMPLATE,
    AlertDispatcher,
    DispatchResult,
    format_alert_message,
)

__all__ = [
    "Contact",
    "ContactDirectory",
    "AlertDeliveryError",
    "DeliverFn",
    "TwilioSmsDelivery",
    "AlertRecord",
    "AlertType",
    "InMemoryAlertLog",
    "DEFAULT_SIGNATURE",
    "ENTRY_TEMPLATE",
    "EXIT_TEMPLATE",
    "AlertDispatcher",
    "DispatchResult",
    "format_alert_message",
]
