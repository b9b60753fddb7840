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

"""Streaming stack adapters: config rendering/publishing, telnet probe, status poll."""

from .config_publisher import ConfigPublisher, PublishResult
from .config_renderer import RenderOptions, RenderedConfig, render, validate_edge_limits
from .icecast_status import IcecastStatusPoller, parse_status_payload, resolve_mount_status
from .liquidsoap_client import LiquidsoapClient, classify_response
from .mount_points import fallback_mount, mount_variants, normalize_mount, sanitize_identifier

__all__ = [
    "ConfigPublisher",
    "IcecastStatusPoller",
    "LiquidsoapClient",
    "PublishResult",
    "RenderOptions",
    "RenderedConfig",
    "classify_response",
    "fallback_mount",
    "mount_variants",
    "normalize_mount",
    "parse_status_payload",
    "render",
    "resolve_mount_status",
    "sanitize_identifier",
    "validate_edge_limits",
]
