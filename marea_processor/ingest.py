"""
AIS Stream Ingestion - time-boxed aisstream.io collection.

One collection cycle:
1. Open wss://stream.aisstream.io/v0/stream
2. Subscribe to PositionReport messages for at most 50 MMSIs
3. Collect for a fixed window (120 s by default)
4. Close and return whatever was collected

The window bounds each cycle. A stream that closes early, or drops
mid-window, yields a partial batch rather than an error. Only a failure to
open the stream at all raises AisStreamError.
"""

import asyncio
import json
import time
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence

import websockets
from websockets.exceptions import ConnectionClosed, WebSocketException

from marea_mqtt.logging import LogEvent, StructuredLogger, create_logger
from marea_zone import PositionParseError, parse_timestamp_ms

AISSTREAM_ENDPOINT = "wss://stream.aisstream.io/v0/stream"
WORLD_BOUNDING_BOX = [[[-90, -180], [90, 180]]]
MAX_SUBSCRIBED_MMSIS = 50


class AisStreamError(RuntimeError):
    """The AIS stream could not be opened or rejected the subscription."""


def parse_aisstream_time(value: str) -> int:
    """
    Parse aisstream's time_utc to epoch milliseconds.

    aisstream sends e.g. "2024-05-01 10:15:30.123456789 +0000 UTC";
    ISO 8601 strings are accepted as well.

    Raises:
        PositionParseError: If the value matches neither form
    """
    text = value.strip()
    if text.endswith(" UTC"):
        text = text[:-4]
    parts = text.rsplit(" ", 1)
    if len(parts) == 2 and parts[1][:1] in "+-" and parts[1][1:].isdigit():
        stamp, offset = parts
        if "." in stamp:
            seconds, fraction = stamp.split(".", 1)
            stamp = f"{seconds}.{fraction[:6]}"
            fmt = "%Y-%m-%d %H:%M:%S.%f %z"
        else:
            fmt = "%Y-%m-%d %H:%M:%S %z"
        try:
            return int(datetime.strptime(f"{stamp} {offset}", fmt).timestamp() * 1000)
        except ValueError as e:
            raise PositionParseError(f"Invalid time_utc: {value!r}") from e
    return parse_timestamp_ms(text)


def parse_aisstream_message(
    message: Dict[str, Any],
    now_ms: Optional[int] = None
) -> Optional[Dict[str, Any]]:
    """
    Convert one aisstream message into a raw position report.

    Returns:
        {"mmsi", "lat", "lon", "timestamp"} or None for messages that are
        not position reports or lack MMSI / coordinates. A missing
        time_utc falls back to now_ms (or the current time).
    """
    if not isinstance(message, dict) or message.get("MessageType") != "PositionReport":
        return None

    meta = message.get("MetaData")
    if not isinstance(meta, dict):
        return None

    mmsi = meta.get("MMSI")
    lat = meta.get("Latitude", meta.get("latitude"))
    lon = meta.get("Longitude", meta.get("longitude"))
    if not mmsi or lat is None or lon is None:
        return None

    time_utc = meta.get("time_utc")
    if time_utc:
        try:
            timestamp = parse_aisstream_time(str(time_utc))
        except PositionParseError:
            return None
    else:
        timestamp = now_ms if now_ms is not None else int(time.time() * 1000)

    return {
        "mmsi": str(mmsi),
        "lat": lat,
        "lon": lon,
        "timestamp": timestamp,
    }


class AisStreamCollector:
    """
    Collect position reports from aisstream.io for a fixed window.

    Usage:
        collector = AisStreamCollector(api_key)
        reports = asyncio.run(collector.collect(["605000001", "605000002"]))
    """

    def __init__(
        self,
        api_key: str,
        endpoint: str = AISSTREAM_ENDPOINT,
        time_window_seconds: float = 120.0,
        max_vessels: int = MAX_SUBSCRIBED_MMSIS,
        logger: Optional[StructuredLogger] = None
    ):
        if not api_key:
            raise ValueError("api_key cannot be empty")
        self.api_key = api_key
        self.endpoint = endpoint
        self.time_window_seconds = time_window_seconds
        self.max_vessels = min(max_vessels, MAX_SUBSCRIBED_MMSIS)
        self.logger = logger or create_logger("ingest")

    def subscription(self, mmsis: Sequence[str]) -> Dict[str, Any]:
        return {
            "APIKey": self.api_key,
            "BoundingBoxes": WORLD_BOUNDING_BOX,
            "FiltersShipMMSI": [str(m) for m in mmsis[:self.max_vessels]],
            "FilterMessageTypes": ["PositionReport"],
        }

    async def collect(self, mmsis: Sequence[str]) -> List[Dict[str, Any]]:
        """
        Collect reports for up to max_vessels MMSIs.

        Returns:
            Raw reports in arrival order (possibly empty or partial)

        Raises:
            AisStreamError: If the stream cannot be opened
        """
        mmsis = list(mmsis)
        if not mmsis:
            return []
        if len(mmsis) > self.max_vessels:
            self.logger.warning(
                event=LogEvent.INGEST_STARTED,
                message="Too many vessels for one subscription, list truncated",
                metadata={'requested': len(mmsis), 'subscribed': self.max_vessels}
            )

        collected: List[Dict[str, Any]] = []
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.time_window_seconds

        self.logger.info(
            event=LogEvent.INGEST_STARTED,
            message="Opening AIS stream collection window",
            metadata={'vessels': min(len(mmsis), self.max_vessels),
                      'window_seconds': self.time_window_seconds}
        )

        try:
            websocket = await websockets.connect(self.endpoint)
        except (OSError, WebSocketException) as e:
            self.logger.error(
                event=LogEvent.INGEST_ERROR,
                message="Failed to open AIS stream",
                exc_info=e,
                metadata={'endpoint': self.endpoint}
            )
            raise AisStreamError(f"Failed to open AIS stream: {e}") from e

        try:
            await websocket.send(json.dumps(self.subscription(mmsis)))

            while True:
                remaining = deadline - loop.time()
                if remaining <= 0:
                    break
                try:
                    raw = await asyncio.wait_for(websocket.recv(), timeout=remaining)
                except asyncio.TimeoutError:
                    break

                report = self._parse(raw)
                if report is not None:
                    collected.append(report)

        except ConnectionClosed as e:
            self.logger.warning(
                event=LogEvent.INGEST_ERROR,
                message="AIS stream closed before the window ended",
                exc_info=e,
                metadata={'collected': len(collected)}
            )
        finally:
            await websocket.close()

        self.logger.info(
            event=LogEvent.INGEST_COMPLETED,
            message="AIS stream collection window closed",
            metadata={'collected': len(collected)}
        )
        return collected

    def _parse(self, raw: Any) -> Optional[Dict[str, Any]]:
        try:
            message = json.loads(raw)
        except (TypeError, ValueError):
            return None
        return parse_aisstream_message(message)
