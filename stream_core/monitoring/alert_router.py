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
Station Alert Routing

Turns transition events into notifications:

- every event is written to the in-app alert log, unconditionally;
- recipients are the station's own list (or the global list when the station
  has none), plus the global list when "monitor all streams" is on;
- recoveries can be silenced with ``alert_on_recovery``;
- email is gated by a per-(station, event kind) cooldown.

A mailer failure for one recipient is logged and does not stop the others.
"""

import logging
from datetime import datetime, timedelta
from typing import Dict, List, Optional, Protocol, Sequence, Set, Tuple

from stream_utils import utc_now

from ..models import (
    ActiveSource,
    AlertSettings,
    DispatchedNotification,
    EventKind,
    Station,
    StationEvent,
)

logger = logging.getLogger(__name__)

SUBJECT_PREFIX = "[StreamDock]"


class Mailer(Protocol):
    def send(self, to: str, subject: str, body: str) -> None: ...


class AlertLogWriter(Protocol):
    def record(self, event: StationEvent, message: str) -> None: ...


def resolve_recipients(station: Optional[Station], settings: AlertSettings) -> List[str]:
    """
    Apply the recipient policy for one station.

    Station recipients win; the global list stands in when the station has
    none, and is added on top when ``monitor_all_streams`` is set.
    """
    station_recipients: Sequence[str] = station.alert_recipients if station else ()
    selected: List[str] = list(station_recipients) if station_recipients else list(settings.global_recipients)
    if settings.monitor_all_streams:
        selected.extend(settings.global_recipients)

    seen: Set[str] = set()
    unique: List[str] = []
    for address in selected:
        address = address.strip()
        key = address.lower()
        if address and key not in seen:
            seen.add(key)
            unique.append(address)
    return unique


def describe_event(event: StationEvent, station: Optional[Station], recovery: bool = False) -> Tuple[str, str]:
    """Return ``(subject, body)`` for an event."""
    name = station.display_name if station else event.mount_point
    snapshot = event.snapshot

    if event.kind == EventKind.STATION_WENT_LIVE:
        headline = f"{name} is back online" if recovery else f"{name} is live"
    elif event.kind == EventKind.STATION_WENT_OFFLINE:
        headline = f"{name} went offline"
    elif event.kind == EventKind.LISTENER_MILESTONE:
        headline = f"{name} reached {event.milestone} listeners"
    elif snapshot.active_source == ActiveSource.FALLBACK:
        headline = f"{name} switched to its fallback source"
    else:
        headline = f"{name} switched back to its live source"

    timestamp = (event.occurred_at or utc_now()).isoformat()
    body = "\n".join(
        [
            headline,
            "",
            f"Mount point:   {event.mount_point}",
            f"Live:          {'yes' if snapshot.live else 'no'}",
            f"Listeners:     {snapshot.listeners}",
            f"Active source: {snapshot.active_source.value}",
            "",
            f"Generated at {timestamp}",
        ]
    )
    return f"{SUBJECT_PREFIX} {headline}", body


class AlertRouter:
    """Decides who hears about each station event, and when."""

    def __init__(self, mailer: Mailer, alert_log: Optional[AlertLogWriter] = None, clock=utc_now):
        self._mailer = mailer
        self._alert_log = alert_log
        self._clock = clock
        self._last_fired: Dict[Tuple[str, EventKind], datetime] = {}
        self._offline_seen: Set[str] = set()

    def route(
        self,
        event: StationEvent,
        station: Optional[Station],
        settings: AlertSettings,
    ) -> List[DispatchedNotification]:
        """Log ``event`` and email its recipients unless suppressed."""

        recovery = self._track_recovery(event)
        subject, body = describe_event(event, station, recovery=recovery)
        self._write_log(event, subject)

        recipients = resolve_recipients(station, settings)
        if not recipients:
            logger.debug("No recipients for %s on %s", event.kind.value, event.station_id)
            return []

        if recovery and not settings.alert_on_recovery:
            logger.info("Recovery alert for %s suppressed (alert_on_recovery disabled)", event.station_id)
            return []

        now = self._clock()
        key = (event.station_id, event.kind)
        last = self._last_fired.get(key)
        window = timedelta(minutes=settings.cooldown_minutes)
        if last is not None and now - last < window:
            logger.info(
                "Alert %s for %s suppressed by cooldown (%s remaining)",
                event.kind.value,
                event.station_id,
                window - (now - last),
            )
            return []

        self._last_fired[key] = now
        return self._dispatch(recipients, subject, body)

    def forget_station(self, station_id: str) -> None:
        """Drop cooldown and recovery state for a removed station."""
        self._offline_seen.discard(station_id)
        for key in [key for key in self._last_fired if key[0] == station_id]:
            del self._last_fired[key]

    def _track_recovery(self, event: StationEvent) -> bool:
        if event.kind == EventKind.STATION_WENT_OFFLINE:
            self._offline_seen.add(event.station_id)
            return False
        if event.kind == EventKind.STATION_WENT_LIVE:
            recovered = event.station_id in self._offline_seen
            self._offline_seen.discard(event.station_id)
            return recovered
        return False

    def _write_log(self, event: StationEvent, message: str) -> None:
        if self._alert_log is None:
            return
        try:
            self._alert_log.record(event, message)
        except Exception as exc:
            logger.error("Failed to record alert for %s in alert log: %s", event.station_id, exc)

    def _dispatch(self, recipients: List[str], subject: str, body: str) -> List[DispatchedNotification]:
        dispatched: List[DispatchedNotification] = []
        for recipient in recipients:
            try:
                self._mailer.send(recipient, subject, body)
                delivered = True
            except Exception as exc:
                logger.error("Alert email to %s failed: %s", recipient, exc)
                delivered = False
            dispatched.append(
                DispatchedNotification(recipient=recipient, subject=subject, body=body, delivered=delivered)
            )
        logger.info(
            "Alert '%s' dispatched to %d/%d recipient(s)",
            subject,
            sum(1 for item in dispatched if item.delivered),
            len(dispatched),
        )
        return dispatched


__all__ = ["AlertRouter", "describe_event", "resolve_recipients"]
