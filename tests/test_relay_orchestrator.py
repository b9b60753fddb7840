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

"""Tests for relay bookkeeping and configuration republishing."""

import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))

from stream_core.errors import ConfigRenderConflict, EngineReloadFailure
from stream_core.models import RelayMode, RelayStatus
from stream_core.relay_orchestrator import RelayOrchestrator


@pytest.fixture
def orchestrator(store, mock_publisher):
    return RelayOrchestrator(store, mock_publisher)


def test_bootstrap_registers_primary_relays_only(orchestrator, store, make_station):
    store.save_station(make_station("primary", relay_url="http://up/p", relay_mode=RelayMode.PRIMARY))
    store.save_station(make_station("fallback", relay_url="http://up/f"))
    store.save_station(make_station("blank", relay_url="", relay_enabled=True, relay_mode=RelayMode.PRIMARY))

    assert orchestrator.bootstrap() == 1

    relays = orchestrator.list_active_relays()
    assert [relay["station_id"] for relay in relays] == ["primary"]
    assert relays[0]["status"] == "active"
    assert store.get_relay_status("primary") == RelayStatus.ACTIVE
    assert store.get_relay_status("fallback") == RelayStatus.IDLE


def test_bootstrap_resets_stale_relay_status(orchestrator, store, make_station):
    store.save_station(make_station("fallback", relay_url="http://up/f"))
    store.save_station(make_station("gone", relay_url=""))
    store.update_relay_status("fallback", RelayStatus.ACTIVE)
    store.update_relay_status("gone", RelayStatus.ERROR)

    assert orchestrator.bootstrap() == 0

    assert orchestrator.list_active_relays() == []
    assert store.get_relay_status("fallback") == RelayStatus.IDLE
    assert store.get_relay_status("gone") == RelayStatus.IDLE


def test_regenerate_renders_all_stations(orchestrator, store, mock_publisher, make_station):
    store.save_station(make_station("one", relay_url="http://up/one"))

    orchestrator.regenerate_config(force=True)

    engine, edge = mock_publisher.publish.call_args[0]
    assert "input.http(\"http://up/one\")" in engine
    assert "/one-fallback" in edge
    assert mock_publisher.publish.call_args.kwargs["force"] is True


def test_config_change_persists_publishes_and_tracks_relay(orchestrator, store, mock_publisher, make_station):
    store.save_station(make_station("one"))

    orchestrator.on_station_config_changed(make_station("one", relay_url="http://up/one"))

    assert store.get_station("one").relay.url == "http://up/one"
    mock_publisher.publish.assert_called_once()
    status = orchestrator.get_relay_status("one")
    assert status["active"] is True
    assert status["url"] == "http://up/one"
    assert store.get_relay_status("one") == RelayStatus.ACTIVE

    orchestrator.on_station_config_changed(make_station("one"))

    assert orchestrator.get_relay_status("one") == {"station_id": "one", "active": False, "status": "idle"}
    assert store.get_relay_status("one") == RelayStatus.IDLE


def test_config_change_for_unknown_station(orchestrator, mock_publisher, make_station):
    with pytest.raises(KeyError):
        orchestrator.on_station_config_changed(make_station("ghost", relay_url="http://up/g"))

    mock_publisher.publish.assert_not_called()


def test_publish_failure_marks_relay_error_and_propagates(orchestrator, store, mock_publisher, make_station):
    store.save_station(make_station("one"))
    mock_publisher.publish.side_effect = EngineReloadFailure("exit 1")

    with pytest.raises(EngineReloadFailure):
        orchestrator.on_station_config_changed(make_station("one", relay_url="http://up/one"))

    assert orchestrator.get_relay_status("one")["status"] == "error"
    assert store.get_relay_status("one") == RelayStatus.ERROR


def test_conflicting_ids_propagate_without_publishing(orchestrator, store, mock_publisher, make_station):
    store.save_station(make_station("a-b", mount_point="/one"))
    store.save_station(make_station("a_b", mount_point="/two"))

    with pytest.raises(ConfigRenderConflict):
        orchestrator.on_station_config_changed(make_station("a-b", mount_point="/one", relay_url="http://up/x"))

    mock_publisher.publish.assert_not_called()


def test_station_removal_clears_relay_and_republishes(orchestrator, store, mock_publisher, make_station):
    store.save_station(make_station("one", relay_url="http://up/one", relay_mode=RelayMode.PRIMARY))
    orchestrator.bootstrap()

    orchestrator.on_station_removed("one")

    assert orchestrator.list_active_relays() == []
    assert store.get_station("one") is None
    engine, _ = mock_publisher.publish.call_args[0]
    assert "http://up/one" not in engine
