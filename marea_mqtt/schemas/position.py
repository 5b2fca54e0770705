"""
Position Batch Schema
=====================

Inbound position batches received on the position topic.

Accepted payload shapes:
    {"positions": [report, ...]}
    [report, ...]
    report

Reports stay raw dicts here; typed parsing (and skipping of malformed
reports) happens in the geofence service so one bad report never rejects
the batch.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List


@dataclass(frozen=True)
class PositionBatchMessage:
    """
    Batch of raw position reports.

    Attributes:
        positions: Raw report mappings, in arrival order
        source: Free-form origin tag (e.g. "aisstream", "mqtt")
    """
    positions: List[Dict[str, Any]] = field(default_factory=list)
    source: str = "mqtt"

    @classmethod
    def from_payload(cls, data: Any, source: str = "mqtt") -> 'PositionBatchMessage':
        """Normalise any accepted payload shape.

        Raises:
            ValueError: If the payload is none of the accepted shapes
        """
        if isinstance(data, dict) and 'positions' in data:
            reports = data['positions']
            source = str(data.get('source', source))
        elif isinstance(data, dict):
            reports = [data]
        elif isinstance(data, list):
            reports = data
        else:
            raise ValueError(
                f"Position payload must be an object or a list, got {type(data).__name__}"
            )

        if not isinstance(reports, list):
            raise ValueError("'positions' must be a list")

        return cls(positions=list(reports), source=source)

    def to_dict(self) -> Dict[str, Any]:
        return {'source': self.source, 'positions': list(self.positions)}

    @property
    def position_count(self) -> int:
        return len(self.positions)
