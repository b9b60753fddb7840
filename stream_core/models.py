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
Station and Source-State Data Model

Plain value objects shared by the renderer, the prober, the diff engine and
the alert router. Station records are a read-only projection of what the
station store holds; everything else here is produced in memory per tick.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional, Tuple


class RelayMode(Enum):
    """How an external relay URL feeds a station."""
    PRIMARY = "primary"
    FALLBACK = "fallback"


class AutoDJMode(Enum):
    """Playlist ordering for the AutoDJ source."""
    SHUFFLE = "shuffle"
    SEQUENTIAL = "sequential"


class ActiveSource(Enum):
    """Which feed is currently audible on a station's mount."""
    LIVE = "live"
    FALLBACK = "fallback"
    UNKNOWN = "unknown"


class RelayStatus(Enum):
    """Runtime bookkeeping state of a station relay."""
    IDLE = "idle"
    ACTIVE = "active"
    ERROR = "error"


class EventKind(Enum):
    """Transition events emitted by the state diff engine."""
    STATION_WENT_LIVE = "station_went_live"
    STATION_WENT_OFFLINE = "station_went_offline"
    LISTENER_MILESTONE = "listener_milestone"
    ACTIVE_SOURCE_CHANGED = "active_source_changed"


def _coerce_enum(enum_cls, value, default):
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(str(value).strip().lower())
    except (ValueError, AttributeError):
        return default


_TRUE_STRINGS = ("1", "true", "yes", "on", "enabled")
_FALSE_STRINGS = ("0", "false", "no", "off", "disabled")


def coerce_bool(value: Any, default: bool = False) -> bool:
    """
    Interpret a JSON or environment flag.

    Strings are matched by spelling, so ``"false"`` is False. Unrecognised
    strings raise ``ValueError``.
    """
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return bool(value)
    text = str(value).strip().lower()
    if not text:
        return default
    if text in _TRUE_STRINGS:
        return True
    if text in _FALSE_STRINGS:
        return False
    raise ValueError(f"Not a boolean: {value!r}")


@dataclass(frozen=True)
class RelayConfig:
    """Relay block of a station record."""
    enabled: bool = False
    url: Optional[str] = None
    mode: RelayMode = RelayMode.FALLBACK

    @property
    def effective(self) -> bool:
        """A relay with a blank URL is treated as disabled."""
        return bool(self.enabled and self.url and self.url.strip())

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "RelayConfig":
        data = data or {}
        url = data.get("url")
        return cls(
            enabled=coerce_bool(data.get("enabled"), False),
            url=str(url).strip() if url else None,
            mode=_coerce_enum(RelayMode, data.get("mode"), RelayMode.FALLBACK),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {"enabled": self.enabled, "url": self.url, "mode": self.mode.value}


@dataclass(frozen=True)
class AutoDJConfig:
    """AutoDJ block of a station record."""
    enabled: bool = False
    playlist_id: Optional[int] = None
    mode: AutoDJMode = AutoDJMode.SHUFFLE
    crossfade_seconds: int = 0

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "AutoDJConfig":
        data = data or {}
        playlist_id = data.get("playlist_id", data.get("playlistId"))
        try:
            playlist_id = int(playlist_id) if playlist_id is not None else None
        except (TypeError, ValueError):
            playlist_id = None
        try:
            crossfade = int(data.get("crossfade_seconds", data.get("crossfadeSeconds", 0)) or 0)
        except (TypeError, ValueError):
            crossfade = 0
        return cls(
            enabled=coerce_bool(data.get("enabled"), False),
            playlist_id=playlist_id,
            mode=_coerce_enum(AutoDJMode, data.get("mode"), AutoDJMode.SHUFFLE),
            crossfade_seconds=max(crossfade, 0),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "enabled": self.enabled,
            "playlist_id": self.playlist_id,
            "mode": self.mode.value,
            "crossfade_seconds": self.crossfade_seconds,
        }


@dataclass(frozen=True)
class Station:
    """Read-only projection of a station record."""
    id: str
    mount_point: str
    name: str = ""
    description: str = ""
    relay: RelayConfig = field(default_factory=RelayConfig)
    autodj: AutoDJConfig = field(default_factory=AutoDJConfig)
    alert_recipients: Tuple[str, ...] = ()

    @property
    def display_name(self) -> str:
        return self.name or self.mount_point

    @property
    def uses_fallback_relay(self) -> bool:
        """True when the engine can report live vs. fallback for this station."""
        return self.relay.effective and self.relay.mode == RelayMode.FALLBACK


@dataclass(frozen=True)
class MountStatus:
    """One mount as reported by the edge server status endpoint."""
    mount: str
    live: bool = False
    listeners: int = 0


@dataclass(frozen=True)
class SourceStateSnapshot:
    """Per-station state carried between poll ticks."""
    live: bool = False
    listeners: int = 0
    active_source: ActiveSource = ActiveSource.UNKNOWN

    def to_dict(self) -> Dict[str, Any]:
        return {
            "live": self.live,
            "listeners": self.listeners,
            "active_source": self.active_source.value,
        }


@dataclass(frozen=True)
class StationEvent:
    """A transition detected for a single station."""
    kind: EventKind
    station_id: str
    mount_point: str
    snapshot: SourceStateSnapshot
    previous: SourceStateSnapshot
    milestone: Optional[int] = None
    occurred_at: Optional[datetime] = None


@dataclass(frozen=True)
class AlertSettings:
    """Global alerting preferences."""
    global_recipients: Tuple[str, ...] = ()
    monitor_all_streams: bool = False
    cooldown_minutes: int = 5
    alert_on_recovery: bool = True


@dataclass(frozen=True)
class DispatchedNotification:
    """Outcome of handing one notification to the mailer."""
    recipient: str
    subject: str
    body: str
    delivered: bool = True


@dataclass
class RelayRuntime:
    """In-memory bookkeeping for a station relay."""
    station_id: str
    mount_point: str
    url: str
    mode: RelayMode
    status: RelayStatus = RelayStatus.IDLE
    started_at: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "station_id": self.station_id,
            "mount_point": self.mount_point,
            "url": self.url,
            "mode": self.mode.value,
            "status": self.status.value,
            "started_at": self.started_at.isoformat() if self.started_at else None,
        }


__all__ = [
    "ActiveSource",
    "AlertSettings",
    "AutoDJConfig",
    "AutoDJMode",
    "DispatchedNotification",
    "EventKind",
    "MountStatus",
    "RelayConfig",
    "RelayMode",
    "RelayRuntime",
    "RelayStatus",
    "SourceStateSnapshot",
    "Station",
    "StationEvent",
    "coerce_bool",
]
