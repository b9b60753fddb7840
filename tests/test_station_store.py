"""
EAS Station - Emergency Alert System
Copyright (c) 2025 Timothy Kramer (KR8MER)

This file is part of EAS Station.

EAS Station is dual-licensed software:
- GNU Affero General Public License v3 (AGPL-3.0) for open-source use
- Commercial License for proprietary use

You should have received a copy of both licenses with this software.
For more information, see LICENSE and LICENSE-COMMERCIAL files.

IMPORTANT: This software cannot be rebranded or have attribution removed.
See NOTICE file for complete terms.

Repository: https://github.com/KR8MER/eas-station
"""

"""Tests for the SQLAlchemy-backed station store and alert log."""

import sys
from datetime import datetime, timedelta
from pathlib import Path

import pytz

sys.path.insert(0, str(Path(__file__).parent.parent))

from stream_core.database import StationRecord
from stream_core.models import (
    AlertSettings,
    AutoDJConfig,
    EventKind,
    RelayConfig,
    RelayMode,
    RelayStatus,
    SourceStateSnapshot,
    StationEvent,
)


def test_save_and_list_stations_round_trip(store, make_station):
    store.save_station(make_station("zeta", relay_url="http://up/z", recipients=("dj@example.com",)))
    store.save_station(make_station("alpha", playlist_id=4))

    stations = store.list_stations()

    assert [station.id for station in stations] == ["alpha", "zeta"]
    zeta = store.get_station("zeta")
    assert zeta.relay == RelayConfig(enabled=True, url="http://up/z", mode=RelayMode.FALLBACK)
    assert zeta.alert_recipients == ("dj@example.com",)
    assert store.get_station("alpha").autodj.playlist_id == 4
    assert store.get_station("missing") is None


def test_save_source_config_only_touches_relay_and_autodj(store, make_station):
    store.save_station(make_station("one", name="Original", recipients=("a@example.com",)))
    edited = make_station("one", name="Ignored", relay_url="http://up/one", relay_mode=RelayMode.PRIMARY)

    assert store.save_source_config(edited) is True

    saved = store.get_station("one")
    assert saved.name == "Original"
    assert saved.alert_recipients == ("a@example.com",)
    assert saved.relay.mode == RelayMode.PRIMARY
    assert saved.autodj == AutoDJConfig()


def test_save_source_config_for_missing_station(store, make_station):
    assert store.save_source_config(make_station("ghost")) is False


def test_delete_station(store, make_station):
    store.save_station(make_station("gone"))

    assert store.delete_station("gone") is True
    assert store.delete_station("gone") is False
    assert store.list_stations() == []


def test_relay_status_and_listener_counts(store, session_factory, make_station):
    store.save_station(make_station("one"))

    assert store.get_relay_status("one") == RelayStatus.IDLE
    store.update_relay_status("one", RelayStatus.ACTIVE)
    store.update_relay_status("unknown", RelayStatus.ERROR)
    store.record_listener_counts({"one": 42, "unknown": 7})

    assert store.get_relay_status("one") == RelayStatus.ACTIVE
    with session_factory() as session:
        assert session.get(StationRecord, "one").listeners == 42


def test_alert_settings_default_until_saved(store):
    assert store.get_alert_settings() == store.default_alerts

    saved = AlertSettings(
        global_recipients=("ops@example.com",),
        monitor_all_streams=True,
        cooldown_minutes=15,
        alert_on_recovery=False,
    )
    store.save_alert_settings(saved)

    assert store.get_alert_settings() == saved


def test_alert_log_records_and_filters(alert_log):
    base = datetime(2025, 1, 1, 12, 0, tzinfo=pytz.UTC)
    for offset, station_id in enumerate(["a", "b", "a"]):
        alert_log.record(
            StationEvent(
                kind=EventKind.STATION_WENT_LIVE,
                station_id=station_id,
                mount_point=f"/{station_id}",
                snapshot=SourceStateSnapshot(live=True, listeners=offset),
                previous=SourceStateSnapshot(),
                occurred_at=base + timedelta(minutes=offset),
            ),
            f"{station_id} is live",
        )

    recent = alert_log.recent(limit=10)
    assert [entry["listeners"] for entry in recent] == [2, 1, 0]
    assert recent[0]["kind"] == "station_went_live"
    assert recent[0]["created_at"].startswith("2025-01-01T12:02:00")

    only_a = alert_log.recent(station_id="a")
    assert {entry["station_id"] for entry in only_a} == {"a"}
    assert len(alert_log.recent(limit=1)) == 1
