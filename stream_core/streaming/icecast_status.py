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

"""Icecast mount status polling via ``status-json.xsl``."""

import logging
from typing import Any, Dict, List, Mapping, Optional
from urllib.parse import urlparse

import requests
from requests import exceptions as requests_exceptions

from ..errors import StatusPollFailure
from ..models import MountStatus
from ..settings import CoreSettings
from .mount_points import mount_variants

logger = logging.getLogger(__name__)


def _mount_from_source(source: Mapping[str, Any]) -> Optional[str]:
    mount = source.get("mount")
    if mount:
        return str(mount)
    listenurl = source.get("listenurl")
    if listenurl:
        path = urlparse(str(listenurl)).path
        return path or None
    return None


def _listener_count(value: Any) -> int:
    try:
        return max(int(value), 0)
    except (TypeError, ValueError):
        return 0


def parse_status_payload(payload: Any) -> List[MountStatus]:
    """
    Extract connected mounts from an Icecast ``status-json.xsl`` document.

    Icecast reports a single source as an object and several as a list; with
    nothing connected the ``source`` key is absent altogether.
    """
    if not isinstance(payload, Mapping):
        raise StatusPollFailure("Icecast status payload is not a JSON object")

    icestats = payload.get("icestats")
    if not isinstance(icestats, Mapping):
        raise StatusPollFailure("Icecast status payload has no 'icestats' section")

    sources = icestats.get("source")
    if sources is None:
        return []
    if isinstance(sources, Mapping):
        sources = [sources]
    if not isinstance(sources, list):
        raise StatusPollFailure("Icecast 'source' entry has an unexpected shape")

    statuses: List[MountStatus] = []
    for source in sources:
        if not isinstance(source, Mapping):
            continue
        mount = _mount_from_source(source)
        if not mount:
            continue
        statuses.append(
            MountStatus(mount=mount, live=True, listeners=_listener_count(source.get("listeners")))
        )
    return statuses


def index_statuses(statuses: List[MountStatus]) -> Dict[str, MountStatus]:
    return {status.mount: status for status in statuses}


def resolve_mount_status(mount_point: str, statuses_by_mount: Mapping[str, MountStatus]) -> MountStatus:
    """
    Find a station's mount in a poll, trying slash-normalized variants.

    A mount absent from the poll resolves to ``live=False, listeners=0``.
    """
    for candidate in mount_variants(mount_point):
        status = statuses_by_mount.get(candidate)
        if status is not None:
            return status
    return MountStatus(mount=mount_point, live=False, listeners=0)


class IcecastStatusPoller:
    """Fetches aggregate mount status from the Icecast admin interface."""

    def __init__(
        self,
        status_url: str,
        admin_user: Optional[str] = None,
        admin_password: Optional[str] = None,
        timeout: float = 5.0,
    ):
        self.status_url = status_url
        self.admin_user = admin_user
        self.admin_password = admin_password
        self.timeout = timeout

    @classmethod
    def from_settings(cls, settings: CoreSettings) -> "IcecastStatusPoller":
        return cls(
            status_url=settings.icecast_status_url,
            admin_user=settings.icecast_admin_user,
            admin_password=settings.icecast_admin_password,
            timeout=settings.http_timeout_seconds,
        )

    def fetch(self) -> List[MountStatus]:
        """
        Return the mounts that currently have a source connected.

        Raises:
            StatusPollFailure: network error, non-2xx response or bad JSON
        """
        auth = None
        if self.admin_user and self.admin_password:
            auth = (self.admin_user, self.admin_password)

        try:
            response = requests.get(self.status_url, auth=auth, timeout=self.timeout)
        except requests_exceptions.RequestException as exc:
            raise StatusPollFailure(f"Icecast status request failed: {exc}") from exc

        if not 200 <= response.status_code < 300:
            raise StatusPollFailure(f"Icecast status returned HTTP {response.status_code}")

        try:
            payload = response.json()
        except ValueError as exc:
            raise StatusPollFailure(f"Icecast status is not valid JSON: {exc}") from exc

        statuses = parse_status_payload(payload)
        logger.debug("Icecast reports %d connected mount(s)", len(statuses))
        return statuses


__all__ = [
    "IcecastStatusPoller",
    "index_statuses",
    "parse_status_payload",
    "resolve_mount_status",
]
