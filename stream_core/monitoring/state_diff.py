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
Station State Diffing

Compares each station's freshly polled state against the snapshot from the
previous tick and emits transition events. Every station is reduced
independently; snapshots are replaced wholesale after the events are
computed.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from stream_utils import utc_now

from ..models import (
    ActiveSource,
    EventKind,
    MountStatus,
    SourceStateSnapshot,
    Station,
    StationEvent,
)
from ..settings import DEFAULT_LISTENER_MILESTONES
from ..streaming.icecast_status import index_statuses, resolve_mount_status

logger = logging.getLogger(__name__)

DEFAULT_SNAPSHOT = SourceStateSnapshot()


@dataclass
class DiffResult:
    """Events from one tick plus the stations whose snapshots were dropped."""
    events: List[StationEvent] = field(default_factory=list)
    removed_station_ids: List[str] = field(default_factory=list)


def crossed_milestone(previous: int, current: int, milestones: Sequence[int]) -> Optional[int]:
    """
    Highest threshold crossed upward between two listener counts.

    Example:
        >>> crossed_milestone(45, 55, (50, 100))
        50
        >>> crossed_milestone(55, 45, (50, 100))
    """
    crossed = [value for value in milestones if previous < value <= current]
    return max(crossed) if crossed else None


def build_snapshot(status: MountStatus, active_source: Optional[ActiveSource]) -> SourceStateSnapshot:
    """Combine a mount status with a probe result (if the station was probed)."""
    if active_source is None:
        active_source = ActiveSource.LIVE if status.live else ActiveSource.UNKNOWN
    return SourceStateSnapshot(
        live=status.live,
        listeners=max(status.listeners, 0),
        active_source=active_source,
    )


def diff_station(
    station: Station,
    previous: SourceStateSnapshot,
    current: SourceStateSnapshot,
    milestones: Sequence[int] = DEFAULT_LISTENER_MILESTONES,
    occurred_at: Optional[datetime] = None,
) -> List[StationEvent]:
    """Pure (prev, curr) -> events reduction for one station."""

    def _event(kind: EventKind, milestone: Optional[int] = None) -> StationEvent:
        return StationEvent(
            kind=kind,
            station_id=station.id,
            mount_point=station.mount_point,
            snapshot=current,
            previous=previous,
            milestone=milestone,
            occurred_at=occurred_at,
        )

    events: List[StationEvent] = []

    if current.live and not previous.live:
        events.append(_event(EventKind.STATION_WENT_LIVE))
    elif not current.live and previous.live:
        events.append(_event(EventKind.STATION_WENT_OFFLINE))
    elif current.live and previous.live:
        milestone = crossed_milestone(previous.listeners, current.listeners, milestones)
        if milestone is not None:
            events.append(_event(EventKind.LISTENER_MILESTONE, milestone))

        known = (ActiveSource.LIVE, ActiveSource.FALLBACK)
        if (
            previous.active_source in known
            and current.active_source in known
            and previous.active_source != current.active_source
        ):
            events.append(_event(EventKind.ACTIVE_SOURCE_CHANGED))

    return events


class StateDiffEngine:
    """Owns the per-station snapshots carried between ticks."""

    def __init__(self, milestones: Iterable[int] = DEFAULT_LISTENER_MILESTONES, clock=utc_now):
        self.milestones: Tuple[int, ...] = tuple(sorted(set(int(value) for value in milestones)))
        self._clock = clock
        self._snapshots: Dict[str, SourceStateSnapshot] = {}

    def snapshot(self, station_id: str) -> SourceStateSnapshot:
        return self._snapshots.get(station_id, DEFAULT_SNAPSHOT)

    def snapshots(self) -> Dict[str, SourceStateSnapshot]:
        return dict(self._snapshots)

    def apply(
        self,
        stations: Iterable[Station],
        statuses: Iterable[MountStatus],
        active_sources: Optional[Mapping[str, ActiveSource]] = None,
    ) -> DiffResult:
        """
        Run one tick of diffing over every known station.

        Stations missing from ``stations`` lose their snapshot silently; new
        stations start from the default (offline) snapshot.
        """
        active_sources = active_sources or {}
        by_mount = index_statuses(list(statuses))
        now = self._clock()
        result = DiffResult()

        current_snapshots: Dict[str, SourceStateSnapshot] = {}
        for station in stations:
            status = resolve_mount_status(station.mount_point, by_mount)
            current = build_snapshot(status, active_sources.get(station.id))
            previous = self._snapshots.get(station.id, DEFAULT_SNAPSHOT)
            result.events.extend(
                diff_station(station, previous, current, self.milestones, occurred_at=now)
            )
            current_snapshots[station.id] = current

        result.removed_station_ids = sorted(set(self._snapshots) - set(current_snapshots))
        if result.removed_station_ids:
            logger.info("Dropping state for removed station(s): %s", ", ".join(result.removed_station_ids))

        self._snapshots = current_snapshots
        return result


__all__ = [
    "DiffResult",
    "StateDiffEngine",
    "build_snapshot",
    "crossed_milestone",
    "diff_station",
]
