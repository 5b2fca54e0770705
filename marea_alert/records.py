"""
Alert Records
=============

Append-only log of alerts that reached a fisher.

Records are immutable once written and never updated or deleted here.
zone_entry records are written by the dispatcher; the other types exist
for records created outside the geofencing flow.
"""

import threading
import uuid
from dataclasses import dataclass, asdict
from enum import Enum
from typing import Any, Dict, List, Optional


class AlertType(str, Enum):
    ZONE_ENTRY = "zone_entry"
    COMMUNICATION_TEST = "communication_test"
    SOS = "sos"


@dataclass(frozen=True)
class AlertRecord:
    """
    One delivered alert.

    Attributes:
        record_id: Unique id (uuid4 hex)
        owner_id: Fisher profile that was alerted
        vessel_id: MMSI that triggered the alert
        lat, lon: Position that triggered the alert
        timestamp: Time the record was written, epoch milliseconds
        alert_type: AlertType
        details: Free text, e.g. "Entered restricted zone: Coastal Buffer"
    """

    record_id: str
    owner_id: str
    vessel_id: str
    lat: float
    lon: float
    timestamp: int
    alert_type: AlertType
    details: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data['alert_type'] = self.alert_type.value
        return data


class InMemoryAlertLog:
    """
    Thread-safe append-only alert log.

    Usage:
        log = InMemoryAlertLog()
        record = log.record(owner_id="f-1", vessel_id="123456789",
                            lat=36.8, lon=3.2, timestamp=now_ms,
                            alert_type=AlertType.ZONE_ENTRY)
    """

    def __init__(self):
        self._records: List[AlertRecord] = []
        self._lock = threading.Lock()

    def record(
        self,
        owner_id: str,
        vessel_id: str,
        lat: float,
        lon: float,
        timestamp: int,
        alert_type: AlertType | str,
        details: Optional[str] = None
    ) -> AlertRecord:
        """
        Append one record and return it.

        Raises:
            ValueError: If alert_type is not a known AlertType
        """
        record = AlertRecord(
            record_id=uuid.uuid4().hex,
            owner_id=owner_id,
            vessel_id=vessel_id,
            lat=lat,
            lon=lon,
            timestamp=timestamp,
            alert_type=AlertType(alert_type),
            details=details,
        )
        with self._lock:
            self._records.append(record)
        return record

    def list(self) -> List[AlertRecord]:
        """All records, oldest first."""
        with self._lock:
            return list(self._records)

    def for_owner(self, owner_id: str) -> List[AlertRecord]:
        with self._lock:
            return [r for r in self._records if r.owner_id == owner_id]

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)
