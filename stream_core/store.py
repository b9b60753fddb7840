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
Station Store and Alert Log

SQLAlchemy-backed access to the parts of the station table the source
monitor reads and writes, plus the in-app alert log. Station CRUD itself
belongs to the dashboard; this module only projects records into
:class:`~stream_core.models.Station` and updates the failover columns.
"""

import logging
from typing import Any, Dict, List, Mapping, Optional

from sqlalchemy import select
from sqlalchemy.orm import sessionmaker

from stream_utils import isoformat_or_none, utc_now

from .database import AlertSettingsRecord, StationAlertRecord, StationRecord
from .models import (
    AlertSettings,
    AutoDJConfig,
    AutoDJMode,
    RelayConfig,
    RelayMode,
    RelayStatus,
    Station,
    StationEvent,
)

logger = logging.getLogger(__name__)

ALERT_SETTINGS_ROW_ID = 1


def _enum_value(enum_cls, raw, default):
    try:
        return enum_cls(raw)
    except ValueError:
        return default


def station_from_record(record: StationRecord) -> Station:
    """Project an ORM row into an immutable :class:`Station`."""
    recipients = record.alert_recipients or []
    return Station(
        id=record.id,
        mount_point=record.mount_point,
        name=record.name or "",
        description=record.description or "",
        relay=RelayConfig(
            enabled=bool(record.relay_enabled),
            url=record.relay_url or None,
            mode=_enum_value(RelayMode, record.relay_mode, RelayMode.FALLBACK),
        ),
        autodj=AutoDJConfig(
            enabled=bool(record.autodj_enabled),
            playlist_id=record.autodj_playlist_id,
            mode=_enum_value(AutoDJMode, record.autodj_mode, AutoDJMode.SHUFFLE),
            crossfade_seconds=record.autodj_crossfade_seconds or 0,
        ),
        alert_recipients=tuple(str(addr).strip() for addr in recipients if str(addr).strip()),
    )


def _apply_source_config(record: StationRecord, station: Station) -> None:
    record.relay_enabled = station.relay.enabled
    record.relay_url = station.relay.url
    record.relay_mode = station.relay.mode.value
    record.autodj_enabled = station.autodj.enabled
    record.autodj_playlist_id = station.autodj.playlist_id
    record.autodj_mode = station.autodj.mode.value
    record.autodj_crossfade_seconds = station.autodj.crossfade_seconds


class StationStore:
    """Reads station projections and writes relay bookkeeping."""

    def __init__(self, session_factory: sessionmaker, default_alerts: Optional[AlertSettings] = None):
        self._session_factory = session_factory
        self._default_alerts = default_alerts or AlertSettings()

    @property
    def default_alerts(self) -> AlertSettings:
        return self._default_alerts

    def list_stations(self) -> List[Station]:
        with self._session_factory() as session:
            records = session.scalars(select(StationRecord).order_by(StationRecord.id)).all()
            return [station_from_record(record) for record in records]

    def get_station(self, station_id: str) -> Optional[Station]:
        with self._session_factory() as session:
            record = session.get(StationRecord, station_id)
            return station_from_record(record) if record else None

    def save_station(self, station: Station) -> None:
        """Insert or fully replace a station row."""
        with self._session_factory.begin() as session:
            record = session.get(StationRecord, station.id)
            if record is None:
                record = StationRecord(id=station.id)
                session.add(record)
            record.mount_point = station.mount_point
            record.name = station.name
            record.description = station.description
            record.alert_recipients = list(station.alert_recipients)
            _apply_source_config(record, station)

    def save_source_config(self, station: Station) -> bool:
        """
        Persist only the relay and AutoDJ blocks of ``station``.

        Returns:
            False if the station no longer exists
        """
        with self._session_factory.begin() as session:
            record = session.get(StationRecord, station.id)
            if record is None:
                return False
            _apply_source_config(record, station)
            return True

    def delete_station(self, station_id: str) -> bool:
        with self._session_factory.begin() as session:
            record = session.get(StationRecord, station_id)
            if record is None:
                return False
            session.delete(record)
            return True

    def update_relay_status(self, station_id: str, status: RelayStatus) -> None:
        with self._session_factory.begin() as session:
            record = session.get(StationRecord, station_id)
            if record is None:
                logger.debug("Relay status update for unknown station %s ignored", station_id)
                return
            record.relay_status = status.value

    def get_relay_status(self, station_id: str) -> RelayStatus:
        with self._session_factory() as session:
            record = session.get(StationRecord, station_id)
            if record is None:
                return RelayStatus.IDLE
            return _enum_value(RelayStatus, record.relay_status, RelayStatus.IDLE)

    def record_listener_counts(self, counts: Mapping[str, int]) -> None:
        """Store the latest listener count per station id."""
        if not counts:
            return
        with self._session_factory.begin() as session:
            for station_id, listeners in counts.items():
                record = session.get(StationRecord, station_id)
                if record is not None and record.listeners != listeners:
                    record.listeners = listeners

    def get_alert_settings(self) -> AlertSettings:
        """Global alert settings; environment defaults until a row exists."""
        with self._session_factory() as session:
            record = session.get(AlertSettingsRecord, ALERT_SETTINGS_ROW_ID)
            if record is None:
                return self._default_alerts
            return AlertSettings(
                global_recipients=tuple(
                    str(addr).strip() for addr in (record.global_recipients or []) if str(addr).strip()
                ),
                monitor_all_streams=bool(record.monitor_all_streams),
                cooldown_minutes=max(int(record.cooldown_minutes or 0), 0),
                alert_on_recovery=bool(record.alert_on_recovery),
            )

    def save_alert_settings(self, settings: AlertSettings) -> None:
        with self._session_factory.begin() as session:
            record = session.get(AlertSettingsRecord, ALERT_SETTINGS_ROW_ID)
            if record is None:
                record = AlertSettingsRecord(id=ALERT_SETTINGS_ROW_ID)
                session.add(record)
            record.global_recipients = list(settings.global_recipients)
            record.monitor_all_streams = settings.monitor_all_streams
            record.cooldown_minutes = settings.cooldown_minutes
            record.alert_on_recovery = settings.alert_on_recovery


class AlertLog:
    """Append-only history of every station transition event."""

    def __init__(self, session_factory: sessionmaker):
        self._session_factory = session_factory

    def record(self, event: StationEvent, message: str) -> None:
        with self._session_factory.begin() as session:
            session.add(
                StationAlertRecord(
                    station_id=event.station_id,
                    mount_point=event.mount_point,
                    kind=event.kind.value,
                    message=message,
                    listeners=event.snapshot.listeners,
                    milestone=event.milestone,
                    active_source=event.snapshot.active_source.value,
                    created_at=event.occurred_at or utc_now(),
                )
            )

    def recent(self, limit: int = 50, station_id: Optional[str] = None) -> List[Dict[str, Any]]:
        query = select(StationAlertRecord).order_by(
            StationAlertRecord.created_at.desc(), StationAlertRecord.id.desc()
        )
        if station_id:
            query = query.where(StationAlertRecord.station_id == station_id)
        query = query.limit(max(int(limit), 1))

        with self._session_factory() as session:
            return [
                {
                    "id": record.id,
                    "station_id": record.station_id,
                    "mount_point": record.mount_point,
                    "kind": record.kind,
                    "message": record.message,
                    "listeners": record.listeners,
                    "milestone": record.milestone,
                    "active_source": record.active_source,
                    "created_at": isoformat_or_none(record.created_at),
                }
                for record in session.scalars(query).all()
            ]


__all__ = ["AlertLog", "StationStore", "station_from_record"]
