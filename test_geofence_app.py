"""
Test Geofence App
=================

Runner wiring: one-shot file processing and zone hot-reload, with MQTT and
ingestion disabled and no Twilio credentials.

Usage:
    pytest test_geofence_app.py
"""

import json
import os
import shutil
from pathlib import Path

import pytest

from run_geofence_service import GeofenceApp

EXAMPLE_CONFIG = Path(__file__).parent / "config" / "geofence_config.yaml"


@pytest.fixture
def app(tmp_path, monkeypatch):
    for name in ("TWILIO_ACCOUNT_SID", "TWILIO_AUTH_TOKEN", "TWILIO_PHONE_NUMBER"):
        monkeypatch.delenv(name, raising=False)
    config_path = tmp_path / "geofence_config.yaml"
    shutil.copy(EXAMPLE_CONFIG, config_path)

    app = GeofenceApp(config_path=config_path)
    app.setup()
    yield app
    app.shutdown()


def write_reports(path, reports):
    path.write_text(json.dumps({"positions": reports}))
    return path


def rewrite_config(app, text):
    stat = app.config_path.stat()
    app.config_path.write_text(text)
    os.utime(app.config_path, (stat.st_atime, stat.st_mtime + 10))


def test_file_outside_zones_exits_cleanly(app, tmp_path):
    reports = write_reports(tmp_path / "reports.json", [
        {"mmsi": "123456789", "lat": 36.60, "lon": 3.2, "timestamp": 100},
    ])

    assert app.process_file(reports) == 0
    assert app.collector is None
    assert app.subscriber is None


def test_undelivered_entry_alert_fails_the_run(app, tmp_path):
    reports = write_reports(tmp_path / "reports.json", [
        {"mmsi": "123456789", "lat": 36.85, "lon": 3.2, "timestamp": 100},
    ])

    # Twilio is not configured, so the fisher cannot be warned
    assert app.process_file(reports) == 2
    assert len(app.service.alert_log) == 0
    assert app.service.membership("123456789").currently_inside == "coastal-buffer"


def test_zone_reload_on_config_change(app):
    assert not app.reload_zones_if_changed()

    text = app.config_path.read_text().replace(
        'zone_id: "marine-reserve"', 'zone_id: "marine-reserve-2025"'
    )
    rewrite_config(app, text)

    assert app.reload_zones_if_changed()
    assert set(app.service.registry.list_zones()) == {"coastal-buffer", "marine-reserve-2025"}


def test_zone_reload_applies_enabled_flags(app):
    original = app.config_path.read_text()

    # The first zone in the file is coastal-buffer
    rewrite_config(app, original.replace("enabled: true", "enabled: false", 1))
    assert app.reload_zones_if_changed()
    assert app.service.registry.list_zones() == {
        "coastal-buffer": False, "marine-reserve": True
    }

    rewrite_config(app, original)
    assert app.reload_zones_if_changed()
    assert app.service.registry.list_zones() == {
        "coastal-buffer": True, "marine-reserve": True
    }


@pytest.mark.parametrize("text", ["zones: [unclosed", "- just\n- a list\n"])
def test_broken_config_keeps_current_zones(app, text):
    rewrite_config(app, text)

    assert not app.reload_zones_if_changed()
    assert app.service.registry.list_zones() == {
        "coastal-buffer": True, "marine-reserve": True
    }
