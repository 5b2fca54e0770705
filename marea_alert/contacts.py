"""
Contact Directory
=================

Maps vessels (MMSI) to the fisher who must be warned.

A fisher profile carries the phone number and an alerts switch; a fisher
may own several vessels. Only reachable contacts are ever returned by
resolve(): a registered phone and alerts enabled.
"""

import threading
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional

from marea_mqtt.logging import LogEvent, StructuredLogger, create_logger


@dataclass(frozen=True)
class Contact:
    """Fisher profile as needed for alerting."""

    owner_id: str
    name: str
    phone: Optional[str] = None
    alerts_enabled: bool = True

    def __post_init__(self):
        if not self.owner_id:
            raise ValueError("owner_id cannot be empty")

    @property
    def is_reachable(self) -> bool:
        return bool(self.phone) and self.alerts_enabled


class ContactDirectory:
    """
    Thread-safe in-memory directory of fisher profiles and vessel ownership.

    Usage:
        directory = ContactDirectory()
        directory.register(Contact("f-1", "Karim", "+213555000111"), vessels=["123456789"])
        contact = directory.resolve("123456789")
    """

    def __init__(self, logger: Optional[StructuredLogger] = None):
        self.logger = logger or create_logger("contacts")
        self._contacts: Dict[str, Contact] = {}
        self._vessel_owner: Dict[str, str] = {}
        self._lock = threading.Lock()

    def register(self, contact: Contact, vessels: Iterable[str] = ()) -> None:
        """
        Add or replace a fisher profile and register its vessels.

        Raises:
            ValueError: If a vessel is already registered to another owner
        """
        vessel_ids = [str(v) for v in vessels]
        with self._lock:
            for vessel_id in vessel_ids:
                owner = self._vessel_owner.get(vessel_id)
                if owner is not None and owner != contact.owner_id:
                    raise ValueError(
                        f"Vessel {vessel_id} already registered to '{owner}'"
                    )
            self._contacts[contact.owner_id] = contact
            for vessel_id in vessel_ids:
                self._vessel_owner[vessel_id] = contact.owner_id

    def unregister_vessel(self, vessel_id: str) -> None:
        with self._lock:
            self._vessel_owner.pop(vessel_id, None)

    def get(self, owner_id: str) -> Optional[Contact]:
        with self._lock:
            return self._contacts.get(owner_id)

    def resolve(self, vessel_id: str) -> Optional[Contact]:
        """
        Reachable contact for a vessel, or None.

        None when the vessel is not registered, the owner profile is
        missing, has no phone, or has alerts disabled.
        """
        with self._lock:
            owner_id = self._vessel_owner.get(vessel_id)
            contact = self._contacts.get(owner_id) if owner_id else None

        if contact is None or not contact.is_reachable:
            self.logger.debug(
                event=LogEvent.ALERT_SKIPPED_NO_TARGET,
                message="No reachable contact for vessel",
                metadata={
                    'vessel_id': vessel_id,
                    'owner_id': owner_id,
                    'registered': contact is not None,
                }
            )
            return None
        return contact

    def registered_vessels(self) -> List[str]:
        """MMSIs in registration order."""
        with self._lock:
            return list(self._vessel_owner)

    def __len__(self) -> int:
        with self._lock:
            return len(self._contacts)
