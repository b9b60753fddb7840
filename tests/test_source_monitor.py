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

"""Tests for the source monitor tick pipeline."""

import sys
import threading
import time
from pathlib import Path
from unittest import mock

import pytest
from sqlalchemy.exc import SQLAlchemyError

sys.path.insert(0, str(Path(__file__).parent.parent))

from stream_core.database import StationRecord
from stream_core.errors import StatusPollFailure
from stream_core.models import ActiveSource, AlertSettings, EventKind, MountStatus
from stream_core.monitoring.alert_router import AlertRouter
from stream_core.monitoring.source_monitor import SourceMonitor
from stream_core.monitoring.state_diff import StateDiffEngine


@pytest.fixture
def poller():
    poller = mock.Mock()
    poller.fetch.return_value = []
    return poller


@pytest.fixture
def prober():
    prober = mock.Mock()
    prober.probe_all.return_value = {}
    return prober


@pytest.fixture
def monitor(store, alert_log, poller, prober, mailer):
    router = AlertRouter(mailer, alert_log=alert_log)
    return SourceMonitor(store, poller, prober, StateDiffEngine(milestones=(10,)), router, interval=0.05)


def test_tick_emits_events_and_notifies(monitor, store, poller, mailer, alert_log, make_station, session_factory):
    store.save_station(make_station("one", recipients=("dj@example.com",)))
    poller.fetch.return_value = [MountStatus("/one", True, 12)]

    result = monitor.run_tick()

    assert result.ran is True
    assert [event.kind for event in result.events] == [EventKind.STATION_WENT_LIVE]
    assert [n.recipient for n in result.notifications] == ["dj@example.com"]
    assert len(mailer.sent) == 1
    assert alert_log.recent()[0]["station_id"] == "one"
    assert monitor.get_snapshots()["one"].listeners == 12
    with session_factory() as session:
        assert session.get(StationRecord, "one").listeners == 12


def test_probe_results_reach_snapshots(monitor, store, poller, prober, make_station):
    store.save_station(make_station("relay", relay_url="http://up/r"))
    poller.fetch.return_value = [MountStatus("/relay", True, 1)]
    prober.probe_all.return_value = {"relay": ActiveSource.FALLBACK}

    monitor.run_tick()

    prober.probe_all.assert_called_once()
    assert monitor.get_snapshots()["relay"].active_source == ActiveSource.FALLBACK


def test_poll_failure_keeps_previous_snapshots(monitor, store, poller, make_station):
    store.save_station(make_station("one"))
    poller.fetch.return_value = [MountStatus("/one", True, 5)]
    monitor.run_tick()

    poller.fetch.side_effect = StatusPollFailure("connection refused")
    result = monitor.run_tick()

    assert result.poll_failed is True
    assert result.events == []
    assert monitor.get_snapshots()["one"].live is True
    assert monitor.get_status()["last_error"] == "connection refused"

    # Recovery of the poll must not fabricate a went-live event.
    poller.fetch.side_effect = None
    assert monitor.run_tick().events == []


def test_overlapping_tick_is_skipped(monitor, poller):
    entered = threading.Event()
    release = threading.Event()

    def slow_fetch():
        entered.set()
        release.wait(5)
        return []

    poller.fetch.side_effect = slow_fetch
    worker = threading.Thread(target=monitor.run_tick)
    worker.start()
    try:
        assert entered.wait(5)
        skipped = monitor.run_tick()
    finally:
        release.set()
        worker.join(5)

    assert skipped.ran is False
    assert poller.fetch.call_count == 1
    assert monitor.get_status()["skipped_ticks"] == 1


def test_alert_settings_failure_uses_defaults(monitor, store, poller, mailer, make_station):
    store.save_station(make_station("one"))
    poller.fetch.return_value = [MountStatus("/one", True, 1)]
    defaults = AlertSettings(global_recipients=("ops@example.com",))

    with mock.patch.object(type(store), "get_alert_settings", side_effect=SQLAlchemyError("db down")), \
            mock.patch.object(type(store), "default_alerts", new_callable=mock.PropertyMock, return_value=defaults):
        result = monitor.run_tick()

    assert [n.recipient for n in result.notifications] == ["ops@example.com"]


def test_removed_station_is_forgotten(monitor, store, poller, make_station):
    store.save_station(make_station("one"))
    poller.fetch.return_value = [MountStatus("/one", True, 1)]
    monitor.run_tick()

    store.delete_station("one")
    with mock.patch.object(monitor.router, "forget_station") as forget:
        result = monitor.run_tick()

    forget.assert_called_once_with("one")
    assert result.events == []
    assert monitor.get_snapshots() == {}


def test_start_and_stop_run_ticks_on_a_thread(monitor, poller):
    assert monitor.start() is True
    assert monitor.start() is False
    deadline = time.time() + 2
    while poller.fetch.call_count < 2 and time.time() < deadline:
        time.sleep(0.01)
    monitor.stop()

    assert poller.fetch.call_count >= 2
    assert monitor.is_running() is False
