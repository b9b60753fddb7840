from __future__ import annotations

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

"""
Centralized Mount Point and Identifier Handling

Single source of truth for how station mounts are normalized, how the hidden
fallback mount is named, and how station ids become Liquidsoap identifiers.
The renderer, the prober and the status poller all go through here so the
three artifacts never disagree.
"""

import re
from typing import List

FALLBACK_MOUNT_SUFFIX = "-fallback"

_IDENTIFIER_INVALID = re.compile(r"[^A-Za-z0-9_]")


def sanitize_identifier(station_id: str) -> str:
    """
    Convert a station id into a token usable inside Liquidsoap variable names.

    Every character outside ``[A-Za-z0-9_]`` (dashes in UUIDs, mostly) becomes
    an underscore. The mapping is not injective; callers that render several
    stations must check for collisions.

    Example:
        >>> sanitize_identifier('a1b2-c3d4')
        'a1b2_c3d4'
    """
    return _IDENTIFIER_INVALID.sub("_", str(station_id).strip())


def station_command(station_id: str) -> str:
    """Telnet command registered by the engine for a station's source query."""
    return f"source_{sanitize_identifier(station_id)}"


def normalize_mount(mount_point: str) -> str:
    """
    Return the mount with exactly one leading slash and no trailing slash.

    Example:
        >>> normalize_mount('radio/')
        '/radio'
    """
    mount = (mount_point or "").strip().strip("/")
    return f"/{mount}"


def harbor_mount_name(mount_point: str) -> str:
    """Harbor inputs take the mount without its leading slash."""
    return normalize_mount(mount_point).lstrip("/")


def fallback_mount(mount_point: str) -> str:
    """
    Hidden mount that carries the relay stream for a fallback-mode station.

    Example:
        >>> fallback_mount('/radio')
        '/radio-fallback'
    """
    return f"{normalize_mount(mount_point)}{FALLBACK_MOUNT_SUFFIX}"


def mount_variants(mount_point: str) -> List[str]:
    """
    Candidate spellings of a mount as different producers report it.

    Icecast and the encoders disagree about the leading slash, so lookups try
    the configured string first, then the slash-prefixed and bare forms.
    """
    raw = (mount_point or "").strip()
    candidates = [raw, normalize_mount(raw), normalize_mount(raw).lstrip("/")]
    seen: List[str] = []
    for candidate in candidates:
        if candidate and candidate not in seen:
            seen.append(candidate)
    return seen


__all__ = [
    "FALLBACK_MOUNT_SUFFIX",
    "fallback_mount",
    "harbor_mount_name",
    "mount_variants",
    "normalize_mount",
    "sanitize_identifier",
    "station_command",
]
