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

import logging
from pathlib import Path
import sys
from unittest import mock

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))

from stream_core.errors import ConfigRenderConflict, EngineReloadFailure
from stream_core.models import ActiveSource, EventKind, SourceStateSnapshot, StationEvent
from stream_core.relay_orchestrator import RelayOrchestrator
from stream_core.settings import EdgeServerLimits, load_settings
from stream_core.streaming.config_renderer import RenderOptions
from webapp import MonitorServices, create_app


@pytest.fixture
def services(store, alert_log, mock_publisher):
    monitor = mock.Mock()
    monitor.get_snapshots.return_value = {
        "one": SourceStateSnapshot(live=True, listeners=8, active_source=ActiveSource.LIVE)
    }
    monitor.get_status.return_value = {"running": True, "interval_seconds": 10.0}
    return MonitorServices(
        store=store,
        alert_log=alert_log,
        relay_orchestrator=RelayOrchestrator(store, mock_publisher),
        monitor=monitor,
        settings=load_settings({}),
    )


@pytest.fixture
def client(services):
    app = create_app(services, logging.getLogger("test-monitoring-routes"))
    app.config["TESTING"] = True
    return app.test_client()


def test_health_reports_station_count(client, store, make_station):
    store.save_station(make_station("one"))

    response = client.get("/health")

    assert response.status_code == 200
    payload = response.get_json()
    assert payload["status"] == "healthy"
    assert payload["stations"] == 1


def test_station_status_combines_snapshot_and_relay(client, store, make_station):
    store.save_station(make_station("one", playlist_id=2))
    store.save_station(make_station("two"))

    payload = client.get("/api/stations/status").get_json()

    by_id = {station["id"]: station for station in payload["stations"]}
    assert by_id["one"]["state"] == {"live": True, "listeners": 8, "active_source": "live"}
    assert by_id["one"]["autodj_active"] is True
    assert by_id["two"]["state"] is None
    assert by_id["two"]["relay_status"]["status"] == "idle"
    assert payload["config"]["icecast"] == "127.0.0.1:8100"


def test_alert_log_endpoint(client, alert_log):
    alert_log.record(
        StationEvent(
            kind=EventKind.STATION_WENT_OFFLINE,
            station_id="one",
            mount_point="/one",
            snapshot=SourceStateSnapshot(),
            previous=SourceStateSnapshot(live=True),
        ),
        "one went offline",
    )

    payload = client.get("/api/alerts?limit=5&station_id=one").get_json()

    assert payload["count"] == 1
    assert payload["alerts"][0]["message"] == "one went offline"
    assert client.get("/api/alerts?limit=abc").status_code == 400


def test_alert_settings_round_trip(client, store):
    response = client.put(
        "/api/alerts/settings",
        json={"global_recipients": "ops@example.com; noc@example.com", "cooldown_minutes": 10},
    )

    assert response.status_code == 200
    assert store.get_alert_settings().global_recipients == ("ops@example.com", "noc@example.com")
    assert client.get("/api/alerts/settings").get_json()["cooldown_minutes"] == 10
    assert client.put("/api/alerts/settings", json={"cooldown_minutes": -1}).status_code == 400


def test_alert_settings_accept_string_flags(client, store):
    response = client.put(
        "/api/alerts/settings",
        json={"alert_on_recovery": "false", "monitor_all_streams": "false"},
    )

    assert response.status_code == 200
    payload = response.get_json()
    assert payload["alert_on_recovery"] is False
    assert payload["monitor_all_streams"] is False
    saved = store.get_alert_settings()
    assert saved.alert_on_recovery is False
    assert saved.monitor_all_streams is False

    client.put("/api/alerts/settings", json={"monitor_all_streams": "yes"})
    assert store.get_alert_settings().monitor_all_streams is True
    assert client.put("/api/alerts/settings", json={"alert_on_recovery": "maybe"}).status_code == 400


def test_source_config_string_flag_disables_relay(client, store, mock_publisher, make_station):
    store.save_station(make_station("one"))

    response = client.put(
        "/api/stations/one/source-config",
        json={"relay": {"enabled": "false", "url": "http://up/one", "mode": "primary"}},
    )

    assert response.status_code == 200
    assert response.get_json()["station"]["relay"]["enabled"] is False
    assert store.get_station("one").relay.enabled is False
    assert client.get("/api/relays").get_json()["relays"] == []


def test_source_config_update_publishes(client, store, mock_publisher, make_station):
    store.save_station(make_station("one"))

    response = client.put(
        "/api/stations/one/source-config",
        json={"relay": {"enabled": True, "url": "http://up/one", "mode": "primary"}},
    )

    assert response.status_code == 200
    payload = response.get_json()
    assert payload["station"]["relay"]["mode"] == "primary"
    assert payload["relay_status"]["active"] is True
    assert payload["publish"]["engine_reloaded"] is True
    mock_publisher.publish.assert_called_once()

    relays = client.get("/api/relays").get_json()["relays"]
    assert [relay["station_id"] for relay in relays] == ["one"]


def test_source_config_errors_map_to_status_codes(client, store, mock_publisher, make_station):
    store.save_station(make_station("one"))
    body = {"relay": {"enabled": True, "url": "http://up/one"}}

    assert client.put("/api/stations/missing/source-config", json=body).status_code == 404
    assert client.put("/api/stations/one/source-config", data="nope").status_code == 400

    mock_publisher.publish.side_effect = EngineReloadFailure("exit 1")
    assert client.put("/api/stations/one/source-config", json=body).status_code == 502

    mock_publisher.publish.side_effect = ConfigRenderConflict("a_b", ["a-b", "a_b"])
    response = client.put("/api/stations/one/source-config", json=body)
    assert response.status_code == 409
    assert response.get_json()["stations"] == ["a-b", "a_b"]


def test_regenerate_passes_force_flag(client, mock_publisher):
    response = client.post("/api/config/regenerate", json={"force": True})

    assert response.status_code == 200
    assert mock_publisher.publish.call_args.kwargs["force"] is True


def test_regenerate_refuses_invalid_limits(client, services, mock_publisher):
    services.relay_orchestrator.render_options = RenderOptions(limits=EdgeServerLimits(clients=0))

    response = client.post("/api/config/regenerate")

    assert response.status_code == 422
    assert response.get_json()["errors"][0]["field"] == "clients"
    assert client.get("/api/config/validate").get_json()["valid"] is False
    mock_publisher.publish.assert_not_called()
