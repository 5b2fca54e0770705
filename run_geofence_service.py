#!/usr/bin/env python3
"""
Geofence Service - Entry Point
==============================

This script starts the Marea geofence service, which:
- Collects AIS position reports from aisstream.io every few minutes
- Optionally consumes position batches from MQTT
- Tracks restricted-zone membership per vessel
- Sends an SMS to the fisher when their vessel enters a restricted zone
- Publishes zone transitions and alert records to MQTT

Usage:
    python run_geofence_service.py --config config/geofence_config.yaml

    # Process a JSON file of reports once and exit
    python run_geofence_service.py --config config/geofence_config.yaml --positions reports.json

Lifecycle:
    1. Load configuration from YAML
    2. Setup logging (console + file)
    3. Create publishers / subscriber (if MQTT enabled)
    4. Create GeofenceService
    5. Run ingestion cycles until stopped (Ctrl+C or SIGTERM)
    6. Graceful shutdown

Zones are reloaded from the config file between cycles when it changes.

Logs:
    - Console: INFO level
    - File: logs/geofence.log (INFO level)
"""

import argparse
import json
import signal
import sys
import logging
import threading
from pathlib import Path
from typing import Optional

import yaml

from marea_processor import AisStreamCollector, AisStreamError, GeofenceService
from marea_processor.config import ProcessorConfig
from marea_mqtt import (
    AlertPublisher,
    PositionBatchMessage,
    PositionSubscriber,
    ZoneTransitionPublisher,
    create_logger,
)


# ─────────────────────────────────────────────────────────────────────────────
# Logging Setup
# ─────────────────────────────────────────────────────────────────────────────

def setup_logging(log_file: Optional[Path] = None, verbose: bool = False) -> logging.Logger:
    """
    Setup logging for the geofence service.

    Args:
        log_file: Optional path to log file
        verbose: DEBUG level instead of INFO
    """
    if log_file:
        log_file.parent.mkdir(parents=True, exist_ok=True)

    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[
            logging.StreamHandler(sys.stdout),
            *(
                [logging.FileHandler(log_file)]
                if log_file
                else []
            )
        ]
    )

    return logging.getLogger(__name__)


# ─────────────────────────────────────────────────────────────────────────────
# Main Service
# ─────────────────────────────────────────────────────────────────────────────

class GeofenceApp:
    """
    Main application wrapper for GeofenceService.

    Handles:
    - Configuration loading and zone hot-reload
    - Component initialization (publishers, subscriber, collector)
    - Periodic ingestion cycle
    - Signal handling (SIGTERM, SIGINT)
    """

    def __init__(self, config_path: Path, log_file: Optional[Path] = None, verbose: bool = False):
        self.config_path = config_path
        self.logger = setup_logging(log_file, verbose)

        # Components (initialized in setup())
        self.config: Optional[ProcessorConfig] = None
        self.service: Optional[GeofenceService] = None
        self.collector: Optional[AisStreamCollector] = None
        self.transition_publisher: Optional[ZoneTransitionPublisher] = None
        self.alert_publisher: Optional[AlertPublisher] = None
        self.subscriber: Optional[PositionSubscriber] = None

        self._config_mtime: Optional[float] = None
        self._stop_event = threading.Event()
        self._shutdown_requested = False

    def setup(self):
        """
        Setup all components.

        Steps:
        1. Load configuration from YAML
        2. Create MQTT publishers (if enabled)
        3. Create GeofenceService (zones, fishers, SMS delivery)
        4. Create AIS collector (if ingestion enabled)
        5. Create position subscriber (if MQTT enabled)
        """
        self.logger.info("=" * 80)
        self.logger.info("Marea Geofence Service - Starting")
        self.logger.info("=" * 80)

        self.logger.info(f"Loading configuration: {self.config_path}")
        self.config = ProcessorConfig.from_yaml(self.config_path)
        self._config_mtime = self.config_path.stat().st_mtime
        self.logger.info(f"Configuration loaded (service_id={self.config.service_id})")

        mqtt = self.config.mqtt_config
        topics = self.config.topics

        if mqtt.enabled:
            mqtt_logger = create_logger(component="mqtt_publisher")
            self.transition_publisher = ZoneTransitionPublisher(
                broker_host=mqtt.broker,
                broker_port=mqtt.port,
                topic=topics["zone_event"],
                logger=mqtt_logger,
                client_id=f"publisher_transitions_{self.config.service_id}",
                username=mqtt.username,
                password=mqtt.password,
                qos=mqtt.qos,
            )
            self.alert_publisher = AlertPublisher(
                broker_host=mqtt.broker,
                broker_port=mqtt.port,
                topic=topics["alert"],
                logger=mqtt_logger,
                client_id=f"publisher_alerts_{self.config.service_id}",
                username=mqtt.username,
                password=mqtt.password,
                qos=mqtt.qos,
            )
            for publisher in (self.transition_publisher, self.alert_publisher):
                if not publisher.connect():
                    self.logger.warning(f"Publisher not connected: {publisher.topic}")
            self.logger.info(f"  - Transition topic: {topics['zone_event']}")
            self.logger.info(f"  - Alert topic: {topics['alert']}")

        if not self.config.sms_config.is_configured:
            self.logger.warning("Twilio credentials missing: entry alerts will fail delivery")

        self.service = GeofenceService.from_config(
            self.config,
            transition_publisher=self.transition_publisher,
            alert_publisher=self.alert_publisher,
        )
        self.logger.info(f"Service created ({self.service.registry.count()} zones)")

        ingest = self.config.ingest_config
        if ingest.enabled:
            self.collector = AisStreamCollector(
                api_key=ingest.api_key,
                endpoint=ingest.endpoint,
                time_window_seconds=ingest.time_window_seconds,
                max_vessels=ingest.max_vessels,
            )
            self.logger.info(
                f"AIS ingestion every {ingest.interval_minutes} min "
                f"({ingest.time_window_seconds}s window)"
            )

        if mqtt.enabled:
            self.subscriber = PositionSubscriber(
                broker_host=mqtt.broker,
                broker_port=mqtt.port,
                position_topic=topics["position"],
                on_positions=self._on_positions,
                logger=create_logger(component="mqtt_subscriber"),
                client_id=f"subscriber_positions_{self.config.service_id}",
                username=mqtt.username,
                password=mqtt.password,
                qos=mqtt.qos,
            )
            if self.subscriber.connect():
                self.subscriber.start()
                self.logger.info(f"  - Position topic: {topics['position']}")

        self.logger.info("=" * 80)

    def _on_positions(self, batch: PositionBatchMessage) -> None:
        result = self.service.process_batch(batch.positions)
        self._report(result)

    def _report(self, result) -> None:
        self.logger.info(f"Batch processed: {result.summary()}")
        for failure in result.failed_dispatches:
            self.logger.error(
                f"Alert NOT delivered: vessel={failure.transition.vessel_id} "
                f"zone={failure.transition.zone_id} error={failure.error}"
            )

    def reload_zones_if_changed(self) -> bool:
        """Refresh zones from the config file if it was modified."""
        try:
            mtime = self.config_path.stat().st_mtime
        except OSError as e:
            self.logger.warning(f"Cannot stat config file: {e}")
            return False

        if mtime == self._config_mtime:
            return False

        try:
            config = ProcessorConfig.from_yaml(self.config_path)
        except (OSError, ValueError, KeyError, TypeError, yaml.YAMLError) as e:
            self.logger.error(f"Config reload failed, keeping current zones: {e}")
            return False

        self._config_mtime = mtime
        count = self.service.refresh_zones(config.zone_records(include_disabled=True))
        self.logger.info(f"Zones reloaded from config ({count} zones)")
        return True

    def run_cycle(self) -> None:
        """One ingestion cycle."""
        self.reload_zones_if_changed()
        if self.collector is None:
            return
        try:
            result = self.service.collect_and_process(self.collector)
        except AisStreamError as e:
            self.logger.error(f"Ingestion cycle failed: {e}")
            return
        self._report(result)

    def process_file(self, path: Path) -> int:
        """Process a JSON file of reports once. Returns a process exit code."""
        with open(path) as f:
            batch = PositionBatchMessage.from_payload(json.load(f), source=str(path))
        result = self.service.process_batch(batch.positions)
        self._report(result)
        return 0 if result.ok else 2

    def run(self):
        """
        Run ingestion cycles until shutdown is requested.
        """
        if not self.service:
            raise RuntimeError("Service not initialized. Call setup() first.")

        signal.signal(signal.SIGTERM, self._signal_handler)
        signal.signal(signal.SIGINT, self._signal_handler)

        interval = self.config.ingest_config.interval_minutes * 60
        self.logger.info("Service started. Press Ctrl+C to stop")

        try:
            while not self._stop_event.is_set():
                self.run_cycle()
                self._stop_event.wait(interval)
        except KeyboardInterrupt:
            self.logger.info("KeyboardInterrupt received")
        finally:
            self.shutdown()

    def shutdown(self):
        """Stop subscriber, disconnect publishers, close the store."""
        if self._shutdown_requested:
            return
        self._shutdown_requested = True
        self._stop_event.set()

        self.logger.info("=" * 80)
        self.logger.info("Shutting down geofence service")

        if self.subscriber and self.subscriber.is_running():
            self.subscriber.stop()

        for publisher in (self.transition_publisher, self.alert_publisher):
            if publisher and publisher.is_connected():
                publisher.disconnect()

        if self.service:
            self.service.store.close()
            self.logger.info(f"Alerts recorded this run: {len(self.service.alert_log)}")

        self.logger.info("Shutdown complete")
        self.logger.info("=" * 80)

    def _signal_handler(self, signum, frame):
        """Handle shutdown signals (SIGTERM, SIGINT)."""
        signal_name = signal.Signals(signum).name
        self.logger.info(f"Received signal {signal_name} ({signum})")
        self._stop_event.set()


# ─────────────────────────────────────────────────────────────────────────────
# CLI
# ─────────────────────────────────────────────────────────────────────────────

def parse_args():
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        description="Marea Geofence Service - AIS + restricted zones + SMS alerts",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Start with default config
  python run_geofence_service.py --config config/geofence_config.yaml

  # Process a file of reports once
  python run_geofence_service.py --config config/geofence_config.yaml --positions reports.json

  # Console logging only
  python run_geofence_service.py --config config/geofence_config.yaml --no-log-file
        """
    )

    parser.add_argument(
        '--config',
        type=Path,
        required=True,
        help='Path to geofence configuration YAML file'
    )

    parser.add_argument(
        '--positions',
        type=Path,
        default=None,
        help='Process this JSON file of position reports once and exit'
    )

    parser.add_argument(
        '--log-file',
        type=Path,
        default=Path('logs/geofence.log'),
        help='Path to log file (default: logs/geofence.log)'
    )

    parser.add_argument(
        '--no-log-file',
        action='store_true',
        help='Disable file logging (console only)'
    )

    parser.add_argument(
        '-v', '--verbose',
        action='store_true',
        help='DEBUG logging'
    )

    return parser.parse_args()


def main():
    """Main entry point."""
    args = parse_args()

    log_file = None if args.no_log_file else args.log_file

    if not args.config.exists():
        print(f"Error: Configuration file not found: {args.config}", file=sys.stderr)
        sys.exit(1)

    app = GeofenceApp(config_path=args.config, log_file=log_file, verbose=args.verbose)

    try:
        app.setup()
        if args.positions:
            code = app.process_file(args.positions)
            app.shutdown()
            sys.exit(code)
        app.run()
    except (OSError, ValueError, KeyError) as e:
        print(f"Fatal error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == '__main__':
    main()
