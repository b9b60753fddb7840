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
Liquidsoap Script and Icecast XML Rendering

Turns the full set of station records into the two configuration artifacts the
streaming stack runs from:

- ``radio.liq``: one harbor input per station, relay/AutoDJ fallback wiring,
  and a telnet command per fallback relay so the prober can ask which source
  is audible.
- ``icecast.xml``: global limits plus one ``<mount>`` per station, with a
  hidden ``-fallback`` mount wired in for relay stations.

Rendering is pure. Identical station state always yields identical bytes, so
the publisher can compare output and skip needless reloads.
"""

import logging
import posixpath
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Sequence, Tuple
from xml.sax.saxutils import escape as xml_escape, quoteattr

from ..errors import ConfigRenderConflict
from ..models import AutoDJMode, RelayMode, Station
from ..settings import CoreSettings, EdgeServerLimits
from .mount_points import (
    fallback_mount,
    harbor_mount_name,
    normalize_mount,
    sanitize_identifier,
)

logger = logging.getLogger(__name__)

LOG_LEVELS = {"ERROR": 1, "WARN": 2, "INFO": 3, "DEBUG": 4}


@dataclass
class RenderOptions:
    """Deployment values interpolated into both artifacts."""
    icecast_host: str = "127.0.0.1"
    icecast_port: int = 8100
    source_password: str = "streamdock_source"
    admin_user: str = "admin"
    admin_password: str = "streamdock_admin"
    harbor_port: int = 8001
    telnet_port: int = 1234
    telnet_bind_addr: str = "127.0.0.1"
    playlists_path: str = "/app/data/playlists"
    bitrate: int = 128
    cors_origins: Tuple[str, ...] = ("*",)
    limits: EdgeServerLimits = field(default_factory=EdgeServerLimits)

    @classmethod
    def from_settings(cls, settings: CoreSettings) -> "RenderOptions":
        return cls(
            icecast_host=settings.icecast_host,
            icecast_port=settings.icecast_port,
            source_password=settings.icecast_source_password,
            admin_user=settings.icecast_admin_user,
            admin_password=settings.icecast_admin_password,
            harbor_port=settings.liquidsoap_harbor_port,
            telnet_port=settings.liquidsoap_telnet_port,
            telnet_bind_addr=settings.liquidsoap_telnet_host,
            playlists_path=settings.playlists_path,
            limits=settings.edge_limits,
        )


@dataclass(frozen=True)
class RenderedConfig:
    """The two artifacts produced from one station snapshot."""
    engine_config: str
    edge_config: str


def playlist_path(playlists_path: str, playlist_id: int) -> str:
    """M3U file the playlist library writes for ``playlist_id``."""
    return posixpath.join(playlists_path, f"playlist-{playlist_id}.m3u")


def relay_effective(station: Station) -> bool:
    return station.relay.effective


def autodj_effective(station: Station) -> bool:
    """AutoDJ needs a playlist and yields to an effective relay."""
    return bool(
        station.autodj.enabled
        and station.autodj.playlist_id is not None
        and not relay_effective(station)
    )


def _liq_string(value: Optional[str]) -> str:
    text = "" if value is None else str(value)
    text = text.replace("\\", "\\\\").replace('"', '\\"')
    text = text.replace("\n", " ").replace("\r", " ")
    return f'"{text}"'


def _check_conflicts(stations: Sequence[Station]) -> None:
    identifiers: Dict[str, List[str]] = {}
    mounts: Dict[str, List[str]] = {}
    for station in stations:
        identifiers.setdefault(sanitize_identifier(station.id), []).append(station.id)
        mounts.setdefault(normalize_mount(station.mount_point), []).append(station.id)

    for token in sorted(identifiers):
        if len(identifiers[token]) > 1:
            raise ConfigRenderConflict(token, identifiers[token], kind="identifier")
    for mount in sorted(mounts):
        if len(mounts[mount]) > 1:
            raise ConfigRenderConflict(mount, mounts[mount], kind="mount")


def _output_block(station: Station, source_var: str, options: RenderOptions, fallible: bool) -> str:
    lines = [
        "output.icecast(",
        f"    %mp3(bitrate={options.bitrate}),",
        f"    host={_liq_string(options.icecast_host)},",
        f"    port={options.icecast_port},",
        f"    password={_liq_string(options.source_password)},",
        f"    mount={_liq_string(normalize_mount(station.mount_point))},",
        f"    name={_liq_string(station.display_name)},",
        f"    description={_liq_string(station.description or 'StreamDock station')},",
    ]
    if fallible:
        lines.append("    fallible=true,")
    lines.append(f"    {source_var}")
    lines.append(")")
    return "\n".join(lines) + "\n"


def _harbor_block(station: Station, ident: str, options: RenderOptions) -> str:
    return (
        f"live_{ident} = input.harbor(\n"
        f"    {_liq_string(harbor_mount_name(station.mount_point))},\n"
        f"    port={options.harbor_port},\n"
        f"    password={_liq_string(options.source_password)}\n"
        ")\n"
    )


def _telnet_block(ident: str) -> str:
    return (
        "server.register(\n"
        f"    \"source_{ident}\",\n"
        f"    fun (_) -> if live_{ident}.is_ready() then \"live\" else \"fallback\" end\n"
        ")\n"
    )


def render_station_engine(station: Station, options: RenderOptions) -> str:
    """Liquidsoap fragment for a single station."""

    ident = sanitize_identifier(station.id)
    relay = station.relay

    if relay.enabled and relay_effective(station) is False:
        logger.debug("Station %s has relay enabled without a URL; rendering without relay", station.id)
    if relay_effective(station) and station.autodj.enabled:
        logger.warning(
            "Station %s has both relay and AutoDJ enabled; relay takes precedence", station.id
        )

    if relay_effective(station):
        mode_label = relay.mode.value
    elif autodj_effective(station):
        mode_label = "autodj"
    else:
        mode_label = "live"

    parts = [
        "# ==========================================\n"
        f"# Station: {station.display_name}\n"
        f"# Mount: {normalize_mount(station.mount_point)}\n"
        f"# Mode: {mode_label}\n"
        "# ==========================================\n"
    ]

    if relay_effective(station) and relay.mode == RelayMode.PRIMARY:
        parts.append(
            f"source_{ident} = mksafe(input.http({_liq_string(relay.url)}))\n"
        )
        parts.append(_output_block(station, f"source_{ident}", options, fallible=False))
    elif relay_effective(station):
        parts.append(_harbor_block(station, ident, options))
        parts.append(f"http_{ident} = input.http({_liq_string(relay.url)})\n")
        parts.append(
            f"source_{ident} = fallback(\n"
            "    track_sensitive=false,\n"
            f"    [live_{ident}, http_{ident}]\n"
            ")\n"
        )
        parts.append(_output_block(station, f"source_{ident}", options, fallible=True))
        parts.append(_telnet_block(ident))
    elif autodj_effective(station):
        autodj = station.autodj
        mode = "randomize" if autodj.mode == AutoDJMode.SHUFFLE else "normal"
        path = playlist_path(options.playlists_path, autodj.playlist_id)
        parts.append(_harbor_block(station, ident, options))
        parts.append(
            f"autodj_{ident} = playlist(mode={_liq_string(mode)}, "
            f"reload_mode=\"watch\", {_liq_string(path)})\n"
        )
        if autodj.crossfade_seconds > 0:
            parts.append(
                f"autodj_{ident} = crossfade(duration={float(autodj.crossfade_seconds)}, autodj_{ident})\n"
            )
        parts.append(
            f"source_{ident} = fallback(\n"
            "    track_sensitive=false,\n"
            f"    [live_{ident}, mksafe(autodj_{ident})]\n"
            ")\n"
        )
        parts.append(_output_block(station, f"source_{ident}", options, fallible=False))
    else:
        parts.append(_harbor_block(station, ident, options))
        parts.append(_output_block(station, f"live_{ident}", options, fallible=True))

    return "\n".join(parts) + "\n"


def render_engine_config(stations: Sequence[Station], options: RenderOptions) -> str:
    header = (
        "#!/usr/bin/liquidsoap\n"
        "# StreamDock Liquidsoap configuration\n"
        "# Auto-generated - DO NOT EDIT MANUALLY\n"
        f"# Stations: {len(stations)}\n"
        "\n"
        "settings.log.level.set(3)\n"
        "settings.log.stdout.set(true)\n"
        "settings.init.allow_root.set(true)\n"
        "settings.harbor.bind_addrs.set([\"0.0.0.0\"])\n"
        "\n"
        "settings.server.telnet.set(true)\n"
        f"settings.server.telnet.port.set({options.telnet_port})\n"
        f"settings.server.telnet.bind_addr.set({_liq_string(options.telnet_bind_addr)})\n"
        "\n"
    )
    body = [header]
    if not stations:
        body.append("# No stations configured yet\n\n")
    for station in stations:
        body.append(render_station_engine(station, options))
    body.append(f"print(\"Liquidsoap started - {len(stations)} station(s) configured\")\n")
    return "".join(body)


def render_station_mounts(station: Station) -> str:
    """Icecast ``<mount>`` entries for a single station."""

    mount = normalize_mount(station.mount_point)
    lines = ["    <mount>", f"        <mount-name>{xml_escape(mount)}</mount-name>"]
    if relay_effective(station):
        lines.append(f"        <fallback-mount>{xml_escape(fallback_mount(mount))}</fallback-mount>")
        lines.append("        <fallback-override>1</fallback-override>")
    lines.append("    </mount>")

    if relay_effective(station):
        lines.extend([
            "    <mount>",
            f"        <mount-name>{xml_escape(fallback_mount(mount))}</mount-name>",
            "        <hidden>1</hidden>",
            "    </mount>",
        ])
    return "\n".join(lines) + "\n"


def render_edge_config(stations: Sequence[Station], options: RenderOptions) -> str:
    limits = options.limits
    cors = "\n".join(
        f"        <header name=\"Access-Control-Allow-Origin\" value={quoteattr(origin)} />"
        for origin in options.cors_origins
    )
    mounts = "\n".join(render_station_mounts(station) for station in stations)
    return (
        "<icecast>\n"
        "    <location>StreamDock</location>\n"
        "    <admin>admin@localhost</admin>\n"
        "\n"
        "    <limits>\n"
        f"        <clients>{limits.clients}</clients>\n"
        f"        <sources>{limits.sources}</sources>\n"
        f"        <queue-size>{limits.queue_size}</queue-size>\n"
        f"        <client-timeout>{limits.client_timeout}</client-timeout>\n"
        f"        <header-timeout>{limits.header_timeout}</header-timeout>\n"
        f"        <source-timeout>{limits.source_timeout}</source-timeout>\n"
        "        <burst-on-connect>1</burst-on-connect>\n"
        f"        <burst-size>{limits.burst_size}</burst-size>\n"
        "    </limits>\n"
        "\n"
        "    <authentication>\n"
        f"        <source-password>{xml_escape(options.source_password)}</source-password>\n"
        f"        <admin-user>{xml_escape(options.admin_user)}</admin-user>\n"
        f"        <admin-password>{xml_escape(options.admin_password)}</admin-password>\n"
        "    </authentication>\n"
        "\n"
        "    <hostname>0.0.0.0</hostname>\n"
        "\n"
        "    <listen-socket>\n"
        f"        <port>{options.icecast_port}</port>\n"
        "        <bind-address>0.0.0.0</bind-address>\n"
        "    </listen-socket>\n"
        "\n"
        "    <http-headers>\n"
        f"{cors}\n"
        "    </http-headers>\n"
        "\n"
        "    <logging>\n"
        "        <accesslog>-</accesslog>\n"
        "        <errorlog>-</errorlog>\n"
        f"        <loglevel>{LOG_LEVELS.get(limits.log_level.upper(), 3)}</loglevel>\n"
        "    </logging>\n"
        "\n"
        "    <!-- Station mounts (auto-generated) -->\n"
        f"{mounts}"
        "</icecast>\n"
    )


def render(stations: Iterable[Station], options: Optional[RenderOptions] = None) -> RenderedConfig:
    """
    Render the Liquidsoap script and Icecast XML for ``stations``.

    Stations are ordered by id so the caller's ordering never changes the
    output.

    Raises:
        ConfigRenderConflict: two stations sanitize to the same identifier or
            normalize to the same mount.
    """
    options = options or RenderOptions()
    ordered = sorted(stations, key=lambda station: station.id)
    _check_conflicts(ordered)
    return RenderedConfig(
        engine_config=render_engine_config(ordered, options),
        edge_config=render_edge_config(ordered, options),
    )


def validate_edge_limits(limits: EdgeServerLimits, cors_origins: Sequence[str] = ()) -> Tuple[List[Dict[str, str]], List[Dict[str, str]]]:
    """
    Check edge server limits before they are rendered.

    Returns:
        Tuple of (errors, warnings); each entry has ``field`` and ``message``.
    """
    errors: List[Dict[str, str]] = []
    warnings: List[Dict[str, str]] = []

    if not 1 <= limits.clients <= 10000:
        errors.append({"field": "clients", "message": "Max clients must be between 1 and 10,000"})
    if not 1 <= limits.sources <= 100:
        errors.append({"field": "sources", "message": "Max sources must be between 1 and 100"})
    if not 0 <= limits.burst_size <= 1048576:
        errors.append({
            "field": "burst_size",
            "message": "Burst size must be between 0 and 1,048,576 bytes (1MB)",
        })
    if not 65536 <= limits.queue_size <= 10485760:
        errors.append({
            "field": "queue_size",
            "message": "Queue size must be between 65,536 (64KB) and 10,485,760 bytes (10MB)",
        })
    if limits.log_level.upper() not in LOG_LEVELS:
        errors.append({"field": "log_level", "message": "Log level must be one of: ERROR, WARN, INFO, DEBUG"})

    for idx, origin in enumerate(cors_origins):
        if origin == "*":
            continue
        if not origin.startswith(("http://", "https://")):
            errors.append({
                "field": f"cors_origins[{idx}]",
                "message": f'Origin "{origin}" must start with http:// or https://',
            })
        if origin.endswith("/"):
            errors.append({
                "field": f"cors_origins[{idx}]",
                "message": f'Origin "{origin}" should not end with a slash',
            })

    if limits.burst_size < 32768:
        warnings.append({
            "field": "burst_size",
            "message": "Burst size below 32KB may cause stuttering on slow connections",
        })
    if limits.log_level.upper() == "DEBUG":
        warnings.append({
            "field": "log_level",
            "message": "DEBUG logging increases disk usage. Use INFO for production.",
        })

    return errors, warnings


__all__ = [
    "RenderOptions",
    "RenderedConfig",
    "autodj_effective",
    "playlist_path",
    "relay_effective",
    "render",
    "render_edge_config",
    "render_engine_config",
    "validate_edge_limits",
]
