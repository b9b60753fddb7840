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

"""State diffing, alert routing and the periodic tick pipeline."""

from .alert_router import AlertRouter, describe_event, resolve_recipients
from .mailer import SMTPMailer
from .source_monitor import SourceMonitor, TickResult
from .state_diff import DiffResult, StateDiffEngine, crossed_milestone, diff_station

__all__ = [
    "AlertRouter",
    "DiffResult",
    "SMTPMailer",
    "SourceMonitor",
    "StateDiffEngine",
    "TickResult",
    "crossed_milestone",
    "describe_event",
    "diff_station",
    "resolve_recipients",
]
