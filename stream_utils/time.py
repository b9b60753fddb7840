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

"""Timezone and datetime helpers for the source monitor."""

from datetime import datetime
from typing import Optional

import pytz

UTC_TZ = pytz.UTC


def utc_now() -> datetime:
    """Return the current timezone-aware UTC timestamp."""

    return datetime.now(UTC_TZ)


def ensure_aware(value: Optional[datetime]) -> Optional[datetime]:
    """Attach UTC to naive datetimes (SQLite drops tzinfo on round trips)."""

    if value is None:
        return None
    if value.tzinfo is None:
        return UTC_TZ.localize(value)
    return value.astimezone(UTC_TZ)


def isoformat_or_none(value: Optional[datetime]) -> Optional[str]:
    aware = ensure_aware(value)
    return aware.isoformat() if aware else None
