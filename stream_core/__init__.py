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

"""Core of the StreamDock source monitor: models, storage, streaming adapters and monitoring."""

from .errors import (
    ConfigRenderConflict,
    EdgeReloadFailure,
    EngineReloadFailure,
    MailDispatchFailure,
    ProbeError,
    PublishError,
    StatusPollFailure,
    StreamCoreError,
)
from .models import (
    ActiveSource,
    AlertSettings,
    AutoDJConfig,
    AutoDJMode,
    EventKind,
    RelayConfig,
    RelayMode,
    RelayStatus,
    SourceStateSnapshot,
    Station,
    StationEvent,
)
from .settings import CoreSettings, load_settings

__all__ = [
    "ActiveSource",
    "AlertSettings",
    "AutoDJConfig",
    "AutoDJMode",
    "ConfigRenderConflict",
    "CoreSettings",
    "EdgeReloadFailure",
    "EngineReloadFailure",
    "EventKind",
    "MailDispatchFailure",
    "ProbeError",
    "PublishError",
    "RelayConfig",
    "RelayMode",
    "RelayStatus",
    "SourceStateSnapshot",
    "Station",
    "StationEvent",
    "StatusPollFailure",
    "StreamCoreError",
    "load_settings",
]
