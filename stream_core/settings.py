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
Source Monitor Configuration from Environment Variables

Reads Icecast, Liquidsoap, alerting and mail settings from the process
environment (populated from ``.env`` / ``CONFIG_PATH`` by python-dotenv in the
service entry point) with working defaults for a single-host deployment.
"""

import logging
import os
from dataclasses import dataclass, field
from typing import Mapping, Optional, Tuple

from .models import AlertSettings

logger = logging.getLogger(__name__)

DEFAULT_LISTENER_MILESTONES: Tuple[int, ...] = (50, 100, 250, 500)
DEFAULT_COOLDOWN_MINUTES = 5


def _env_bool(value: Optional[str], default: bool) -> bool:
    if value is None or value.strip() == "":
        return default
    return value.strip().lower() in ("1", "true", "yes", "on", "enabled")


def _env_int(env: Mapping[str, str], key: str, default: int) -> int:
    raw = env.get(key)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning("Invalid integer for %s=%r; using default %s", key, raw, default)
        return default


def _env_float(env: Mapping[str, str], key: str, default: float) -> float:
    raw = env.get(key)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning("Invalid number for %s=%r; using default %s", key, raw, default)
        return default


def parse_address_list(raw: Optional[str]) -> Tuple[str, ...]:
    """Split a comma/semicolon separated list of email addresses."""
    if not raw:
        return ()
    parts = raw.replace(";", ",").split(",")
    return tuple(part.strip() for part in parts if part.strip())


def parse_milestones(raw: Optional[str]) -> Tuple[int, ...]:
    """Parse ``LISTENER_MILESTONES`` into a sorted tuple of positive ints."""
    if not raw:
        return DEFAULT_LISTENER_MILESTONES
    values = set()
    for part in raw.split(","):
        part = part.strip()
        if not part:
            continue
        try:
            value = int(part)
        except ValueError:
            logger.warning("Ignoring invalid listener milestone %r", part)
            continue
        if value > 0:
            values.add(value)
    return tuple(sorted(values)) or DEFAULT_LISTENER_MILESTONES


@dataclass
class EdgeServerLimits:
    """Icecast ``<limits>`` block and log level."""
    clients: int = 100
    sources: int = 20
    queue_size: int = 524288
    burst_size: int = 65535
    client_timeout: int = 30
    header_timeout: int = 15
    source_timeout: int = 10
    log_level: str = "INFO"


@dataclass
class CoreSettings:
    """Everything the source monitor needs to talk to Icecast and Liquidsoap."""

    # Icecast (edge server)
    icecast_host: str = "127.0.0.1"
    icecast_port: int = 8100
    icecast_source_password: str = "streamdock_source"
    icecast_admin_user: str = "admin"
    icecast_admin_password: str = "streamdock_admin"
    icecast_status_path: str = "/status-json.xsl"
    icecast_reload_path: str = "/admin/reloadconfig"
    edge_limits: EdgeServerLimits = field(default_factory=EdgeServerLimits)

    # Liquidsoap (streaming engine)
    liquidsoap_telnet_host: str = "127.0.0.1"
    liquidsoap_telnet_port: int = 1234
    liquidsoap_harbor_port: int = 8001
    liquidsoap_reload_command: str = "supervisorctl restart liquidsoap"

    # Generated artifacts
    engine_config_path: str = "/app/radio.liq"
    edge_config_path: str = "/etc/icecast2/icecast.xml"
    playlists_path: str = "/app/data/playlists"

    # Timing
    poll_interval_seconds: float = 10.0
    probe_timeout_seconds: float = 2.0
    http_timeout_seconds: float = 5.0
    reload_timeout_seconds: float = 30.0

    # Alerting
    listener_milestones: Tuple[int, ...] = DEFAULT_LISTENER_MILESTONES
    default_alerts: AlertSettings = field(default_factory=AlertSettings)

    # Mail
    mail_server: Optional[str] = None
    mail_port: int = 587
    mail_use_tls: bool = True
    mail_username: Optional[str] = None
    mail_password: Optional[str] = None
    mail_sender: Optional[str] = None

    # Service
    database_url: str = "sqlite:///streamdock.db"
    api_port: int = 5050

    @property
    def icecast_base_url(self) -> str:
        return f"http://{self.icecast_host}:{self.icecast_port}"

    @property
    def icecast_status_url(self) -> str:
        return f"{self.icecast_base_url}{self.icecast_status_path}"

    @property
    def icecast_reload_url(self) -> str:
        return f"{self.icecast_base_url}{self.icecast_reload_path}"

    @property
    def mail_enabled(self) -> bool:
        return bool(self.mail_server)

    def get_config_dict(self) -> dict:
        """Configuration summary safe to expose over the status API."""
        return {
            "icecast": f"{self.icecast_host}:{self.icecast_port}",
            "liquidsoap_telnet": f"{self.liquidsoap_telnet_host}:{self.liquidsoap_telnet_port}",
            "engine_config_path": self.engine_config_path,
            "edge_config_path": self.edge_config_path,
            "poll_interval_seconds": self.poll_interval_seconds,
            "listener_milestones": list(self.listener_milestones),
            "mail_enabled": self.mail_enabled,
            "has_admin_credentials": bool(self.icecast_admin_user and self.icecast_admin_password),
        }


def load_settings(environ: Optional[Mapping[str, str]] = None) -> CoreSettings:
    """Build :class:`CoreSettings` from environment variables."""

    env = os.environ if environ is None else environ
    defaults = CoreSettings()

    admin_user = env.get("ICECAST_ADMIN_USER", defaults.icecast_admin_user)
    admin_password = env.get("ICECAST_ADMIN_PASSWORD", defaults.icecast_admin_password)
    if bool(admin_user) ^ bool(admin_password):
        logger.warning(
            "Icecast admin username/password mismatch; status polling and reloads "
            "will be unauthenticated until both ICECAST_ADMIN_USER and "
            "ICECAST_ADMIN_PASSWORD are provided."
        )

    cooldown = _env_int(env, "ALERT_COOLDOWN_MINUTES", DEFAULT_COOLDOWN_MINUTES)
    if cooldown < 0:
        logger.warning("ALERT_COOLDOWN_MINUTES cannot be negative; using 0")
        cooldown = 0

    limits = EdgeServerLimits(
        clients=_env_int(env, "ICECAST_MAX_CLIENTS", defaults.edge_limits.clients),
        sources=_env_int(env, "ICECAST_MAX_SOURCES", defaults.edge_limits.sources),
        queue_size=_env_int(env, "ICECAST_QUEUE_SIZE", defaults.edge_limits.queue_size),
        burst_size=_env_int(env, "ICECAST_BURST_SIZE", defaults.edge_limits.burst_size),
        log_level=env.get("ICECAST_LOG_LEVEL", defaults.edge_limits.log_level).upper(),
    )

    settings = CoreSettings(
        icecast_host=env.get("ICECAST_HOST", defaults.icecast_host),
        icecast_port=_env_int(env, "ICECAST_PORT", defaults.icecast_port),
        icecast_source_password=env.get("ICECAST_SOURCE_PASSWORD", defaults.icecast_source_password),
        icecast_admin_user=admin_user,
        icecast_admin_password=admin_password,
        icecast_status_path=env.get("ICECAST_STATUS_PATH", defaults.icecast_status_path),
        icecast_reload_path=env.get("ICECAST_RELOAD_PATH", defaults.icecast_reload_path),
        edge_limits=limits,
        liquidsoap_telnet_host=env.get("LIQUIDSOAP_TELNET_HOST", defaults.liquidsoap_telnet_host),
        liquidsoap_telnet_port=_env_int(env, "LIQUIDSOAP_TELNET_PORT", defaults.liquidsoap_telnet_port),
        liquidsoap_harbor_port=_env_int(env, "LIQUIDSOAP_HARBOR_PORT", defaults.liquidsoap_harbor_port),
        liquidsoap_reload_command=env.get("LIQUIDSOAP_RELOAD_COMMAND", defaults.liquidsoap_reload_command),
        engine_config_path=env.get("LIQUIDSOAP_CONFIG_PATH", defaults.engine_config_path),
        edge_config_path=env.get("ICECAST_XML_PATH", defaults.edge_config_path),
        playlists_path=env.get("PLAYLISTS_PATH", defaults.playlists_path),
        poll_interval_seconds=max(_env_float(env, "POLL_INTERVAL_SEC", defaults.poll_interval_seconds), 1.0),
        probe_timeout_seconds=_env_float(env, "LIQUIDSOAP_TELNET_TIMEOUT", defaults.probe_timeout_seconds),
        http_timeout_seconds=_env_float(env, "ICECAST_HTTP_TIMEOUT", defaults.http_timeout_seconds),
        reload_timeout_seconds=_env_float(env, "RELOAD_TIMEOUT_SEC", defaults.reload_timeout_seconds),
        listener_milestones=parse_milestones(env.get("LISTENER_MILESTONES")),
        default_alerts=AlertSettings(
            global_recipients=parse_address_list(env.get("ALERT_GLOBAL_RECIPIENTS")),
            monitor_all_streams=_env_bool(env.get("ALERT_MONITOR_ALL"), False),
            cooldown_minutes=cooldown,
            alert_on_recovery=_env_bool(env.get("ALERT_ON_RECOVERY"), True),
        ),
        mail_server=env.get("MAIL_SERVER") or None,
        mail_port=_env_int(env, "MAIL_PORT", defaults.mail_port),
        mail_use_tls=_env_bool(env.get("MAIL_USE_TLS"), True),
        mail_username=env.get("MAIL_USERNAME") or None,
        mail_password=env.get("MAIL_PASSWORD") or None,
        mail_sender=env.get("MAIL_SENDER") or None,
        database_url=env.get("DATABASE_URL", defaults.database_url),
        api_port=_env_int(env, "MONITOR_API_PORT", defaults.api_port),
    )

    logger.info(
        f"Source monitor configured: icecast={settings.icecast_host}:{settings.icecast_port}, "
        f"telnet={settings.liquidsoap_telnet_host}:{settings.liquidsoap_telnet_port}, "
        f"poll_interval={settings.poll_interval_seconds}s"
    )
    return settings


__all__ = [
    "CoreSettings",
    "DEFAULT_COOLDOWN_MINUTES",
    "DEFAULT_LISTENER_MILESTONES",
    "EdgeServerLimits",
    "load_settings",
    "parse_address_list",
    "parse_milestones",
]
