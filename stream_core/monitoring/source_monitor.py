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

from __future__ import annotations

"""
Source Monitor Tick Pipeline

One tick = poll Icecast, probe Liquidsoap, diff against the previous
snapshots, route the resulting events. Ticks never overlap: a tick that
starts while another is still running is skipped rather than queued, so a
hung control connection cannot build a backlog.
"""

import logging
import threading
import time
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError

from ..errors import StatusPollFailure
from ..models import DispatchedNotification, SourceStateSnapshot, StationEvent
from ..store import StationStore
from ..streaming.icecast_status import IcecastStatusPoller
from ..streaming.liquidsoap_client import LiquidsoapClient
from .alert_router import AlertRouter
from .state_diff import StateDiffEngine

logger = logging.getLogger(__name__)


@dataclass
class TickResult:
    """Summary of one pipeline run."""
    ran: bool = True
    poll_failed: bool = False
    stations: int = 0
    events: List[StationEvent] = field(default_factory=list)
    notifications: List[DispatchedNotification] = field(default_factory=list)
    duration_ms: int = 0


class SourceMonitor:
    """Owns the snapshot/cooldown state and drives ticks on a timer."""

    def __init__(
        self,
        store: StationStore,
        poller: IcecastStatusPoller,
        prober: LiquidsoapClient,
        diff_engine: StateDiffEngine,
        router: AlertRouter,
        interval: float = 10.0,
    ):
        self.store = store
        self.poller = poller
        self.prober = prober
        self.diff_engine = diff_engine
        self.router = router
        self.interval = interval

        self._tick_lock = threading.Lock()
        self._state_lock = threading.Lock()
        self._stop_event = threading.Event()
        self._stop_event.set()
        self._thread: Optional[threading.Thread] = None

        self._snapshots: Dict[str, SourceStateSnapshot] = {}
        self._last_tick_at: Optional[float] = None
        self._last_error: Optional[str] = None
        self._skipped_ticks = 0

    def run_tick(self) -> TickResult:
        """Run one tick unless another is already in progress."""
        if not self._tick_lock.acquire(blocking=False):
            self._skipped_ticks += 1
            logger.warning("Previous source monitor tick still running; skipping this one")
            return TickResult(ran=False)
        try:
            return self._tick()
        finally:
            self._tick_lock.release()

    def _tick(self) -> TickResult:
        start_time = time.time()
        result = TickResult()

        stations = self.store.list_stations()
        result.stations = len(stations)

        try:
            statuses = self.poller.fetch()
        except StatusPollFailure as exc:
            logger.error("Icecast status poll failed; keeping previous state: %s", exc)
            result.poll_failed = True
            self._last_error = str(exc)
            result.duration_ms = int((time.time() - start_time) * 1000)
            return result

        active_sources = self.prober.probe_all(stations)
        diff = self.diff_engine.apply(stations, statuses, active_sources)
        snapshots = self.diff_engine.snapshots()

        with self._state_lock:
            self._snapshots = snapshots
            self._last_tick_at = time.time()
            self._last_error = None

        try:
            self.store.record_listener_counts(
                {station_id: snapshot.listeners for station_id, snapshot in snapshots.items()}
            )
        except SQLAlchemyError as exc:
            logger.warning("Failed to record listener counts: %s", exc)

        stations_by_id = {station.id: station for station in stations}
        if diff.events:
            try:
                settings = self.store.get_alert_settings()
            except SQLAlchemyError as exc:
                logger.error("Failed to load alert settings; using defaults: %s", exc)
                settings = self.store.default_alerts
            for event in diff.events:
                logger.info("Station %s: %s", event.station_id, event.kind.value)
                result.notifications.extend(
                    self.router.route(event, stations_by_id.get(event.station_id), settings)
                )

        for station_id in diff.removed_station_ids:
            self.router.forget_station(station_id)

        result.events = diff.events
        result.duration_ms = int((time.time() - start_time) * 1000)
        logger.debug(
            "Source monitor tick: %d station(s), %d event(s), %d notification(s) in %dms",
            result.stations,
            len(result.events),
            len(result.notifications),
            result.duration_ms,
        )
        return result

    def get_snapshots(self) -> Dict[str, SourceStateSnapshot]:
        with self._state_lock:
            return dict(self._snapshots)

    def get_status(self) -> dict:
        with self._state_lock:
            return {
                "running": self.is_running(),
                "interval_seconds": self.interval,
                "last_tick_at": self._last_tick_at,
                "last_error": self._last_error,
                "skipped_ticks": self._skipped_ticks,
            }

    def is_running(self) -> bool:
        return not self._stop_event.is_set()

    def start(self) -> bool:
        if self.is_running():
            logger.warning("Source monitor already running")
            return False
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._run_loop, name="source-monitor", daemon=True)
        self._thread.start()
        logger.info(f"Source monitor started (interval: {self.interval}s)")
        return True

    def stop(self, timeout: float = 5.0) -> None:
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout=timeout)
            self._thread = None
        logger.info("Source monitor stopped")

    def _run_loop(self) -> None:
        next_run = time.monotonic()
        while not self._stop_event.is_set():
            try:
                self.run_tick()
            except Exception as exc:
                logger.error(f"Source monitor tick failed: {exc}", exc_info=True)

            next_run += self.interval
            now = time.monotonic()
            if next_run < now:
                missed = int((now - next_run) // self.interval) + 1
                self._skipped_ticks += missed
                logger.warning("Source monitor tick overran; skipping %d slot(s)", missed)
                next_run += missed * self.interval
            self._stop_event.wait(max(next_run - time.monotonic(), 0.0))


__all__ = ["SourceMonitor", "TickResult"]
