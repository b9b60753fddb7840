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

"""Exception types raised across the source monitor."""

from typing import Iterable


class StreamCoreError(Exception):
    """Base class for source monitor errors."""


class ProbeError(StreamCoreError):
    """The Liquidsoap control port could not answer a query."""


class ProbeTimeout(ProbeError):
    """Connect or read on the control port exceeded its deadline."""


class ProbeUnreachable(ProbeError):
    """The control port refused or dropped the connection."""


class StatusPollFailure(StreamCoreError):
    """The Icecast status endpoint could not be read or parsed."""


class ConfigRenderConflict(StreamCoreError):
    """Two stations map onto the same script identifier or mount."""

    def __init__(self, token: str, station_ids: Iterable[str], kind: str = "identifier"):
        self.token = token
        self.station_ids = tuple(sorted(station_ids))
        self.kind = kind
        super().__init__(
            f"Stations {', '.join(self.station_ids)} share the {kind} '{token}'; "
            "refusing to render a configuration"
        )


class PublishError(StreamCoreError):
    """Rendered configuration could not be written or activated."""


class EngineReloadFailure(PublishError):
    """Liquidsoap did not reload; the publish call failed."""


class EdgeReloadFailure(PublishError):
    """Icecast did not acknowledge a reload (downgraded to a warning)."""


class MailDispatchFailure(StreamCoreError):
    """A single notification email could not be handed to the SMTP server."""


__all__ = [
    "ConfigRenderConflict",
    "EdgeReloadFailure",
    "EngineReloadFailure",
    "MailDispatchFailure",
    "ProbeError",
    "ProbeTimeout",
    "ProbeUnreachable",
    "PublishError",
    "StatusPollFailure",
    "StreamCoreError",
]
