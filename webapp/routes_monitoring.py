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

"""Source monitor status, alert log and relay endpoints for the Flask app."""

from dataclasses import asdict, replace
from typing import Any, Dict

from flask import Flask, jsonify, request

from stream_core.errors import ConfigRenderConflict, EngineReloadFailure, PublishError
from stream_core.models import AlertSettings, AutoDJConfig, RelayConfig, Station, coerce_bool
from stream_core.settings import parse_address_list
from stream_core.streaming.config_renderer import autodj_effective, validate_edge_limits
from stream_utils import utc_now

MAX_ALERT_LIMIT = 500


def _station_payload(station: Station) -> Dict[str, Any]:
    return {
        "id": station.id,
        "name": station.display_name,
        "mount_point": station.mount_point,
        "relay": station.relay.to_dict(),
        "autodj": station.autodj.to_dict(),
        "alert_recipients": list(station.alert_recipients),
    }


def _alert_settings_payload(settings: AlertSettings) -> Dict[str, Any]:
    return {
        "global_recipients": list(settings.global_recipients),
        "monitor_all_streams": settings.monitor_all_streams,
        "cooldown_minutes": settings.cooldown_minutes,
        "alert_on_recovery": settings.alert_on_recovery,
    }


def register(app: Flask, logger) -> None:
    """Attach source monitor routes to the Flask app."""

    route_logger = logger.getChild("routes_monitoring")

    def _services():
        return app.extensions["stream_monitor"]

    @app.route("/health")
    def health_check():
        """Simple health check endpoint."""

        services = _services()
        try:
            station_total = len(services.store.list_stations())
        except Exception as exc:
            route_logger.error("Health check failed: %s", exc)
            return (
                jsonify(
                    {
                        "status": "unhealthy",
                        "error": str(exc),
                        "timestamp": utc_now().isoformat(),
                    }
                ),
                500,
            )

        monitor_status = services.monitor.get_status() if services.monitor else None
        return jsonify(
            {
                "status": "healthy",
                "timestamp": utc_now().isoformat(),
                "database": "connected",
                "stations": station_total,
                "monitor": monitor_status,
            }
        )

    @app.route("/api/stations/status")
    def api_station_status():
        """Latest live / listener / active source snapshot for every station."""

        services = _services()
        snapshots = services.monitor.get_snapshots() if services.monitor else {}
        stations = []
        for station in services.store.list_stations():
            payload = _station_payload(station)
            snapshot = snapshots.get(station.id)
            payload["state"] = snapshot.to_dict() if snapshot else None
            payload["relay_status"] = services.relay_orchestrator.get_relay_status(station.id)
            payload["autodj_active"] = autodj_effective(station)
            stations.append(payload)

        return jsonify(
            {
                "stations": stations,
                "monitor": services.monitor.get_status() if services.monitor else None,
                "config": services.settings.get_config_dict() if services.settings else None,
                "timestamp": utc_now().isoformat(),
            }
        )

    @app.route("/api/alerts")
    def api_alert_log():
        """Recent entries of the in-app alert log."""

        try:
            limit = int(request.args.get("limit", 50))
        except ValueError:
            return jsonify({"error": "limit must be an integer"}), 400
        limit = min(max(limit, 1), MAX_ALERT_LIMIT)
        station_id = request.args.get("station_id") or None

        alerts = _services().alert_log.recent(limit=limit, station_id=station_id)
        return jsonify({"alerts": alerts, "count": len(alerts)})

    @app.route("/api/alerts/settings", methods=["GET"])
    def api_get_alert_settings():
        return jsonify(_alert_settings_payload(_services().store.get_alert_settings()))

    @app.route("/api/alerts/settings", methods=["PUT"])
    def api_update_alert_settings():
        """Replace the global alert settings."""

        data = request.get_json(silent=True)
        if not isinstance(data, dict):
            return jsonify({"error": "Expected a JSON object"}), 400

        store = _services().store
        current = store.get_alert_settings()
        recipients = data.get("global_recipients", list(current.global_recipients))
        if isinstance(recipients, str):
            recipients = parse_address_list(recipients)
        elif not isinstance(recipients, list):
            return jsonify({"error": "global_recipients must be a list or string"}), 400

        try:
            cooldown = int(data.get("cooldown_minutes", current.cooldown_minutes))
        except (TypeError, ValueError):
            return jsonify({"error": "cooldown_minutes must be an integer"}), 400
        if cooldown < 0:
            return jsonify({"error": "cooldown_minutes cannot be negative"}), 400

        try:
            monitor_all = coerce_bool(data.get("monitor_all_streams"), current.monitor_all_streams)
            on_recovery = coerce_bool(data.get("alert_on_recovery"), current.alert_on_recovery)
        except ValueError as exc:
            return jsonify({"error": str(exc)}), 400

        updated = AlertSettings(
            global_recipients=tuple(str(addr).strip() for addr in recipients if str(addr).strip()),
            monitor_all_streams=monitor_all,
            cooldown_minutes=cooldown,
            alert_on_recovery=on_recovery,
        )
        store.save_alert_settings(updated)
        route_logger.info("Alert settings updated (%d global recipient(s))", len(updated.global_recipients))
        return jsonify(_alert_settings_payload(updated))

    @app.route("/api/relays")
    def api_relays():
        return jsonify({"relays": _services().relay_orchestrator.list_active_relays()})

    @app.route("/api/relays/<station_id>")
    def api_relay_status(station_id: str):
        return jsonify(_services().relay_orchestrator.get_relay_status(station_id))

    @app.route("/api/stations/<station_id>/source-config", methods=["PUT"])
    def api_update_source_config(station_id: str):
        """Change a station's relay/AutoDJ blocks and republish the configuration."""

        data = request.get_json(silent=True)
        if not isinstance(data, dict):
            return jsonify({"error": "Expected a JSON object"}), 400

        services = _services()
        station = services.store.get_station(station_id)
        if station is None:
            return jsonify({"error": f"Station {station_id} not found"}), 404

        updated = station
        try:
            if "relay" in data:
                updated = replace(updated, relay=RelayConfig.from_dict(data.get("relay")))
            if "autodj" in data:
                updated = replace(updated, autodj=AutoDJConfig.from_dict(data.get("autodj")))
        except ValueError as exc:
            return jsonify({"error": str(exc)}), 400

        try:
            result = services.relay_orchestrator.on_station_config_changed(updated)
        except KeyError:
            return jsonify({"error": f"Station {station_id} not found"}), 404
        except ConfigRenderConflict as exc:
            return jsonify({"error": str(exc), "stations": list(exc.station_ids)}), 409
        except EngineReloadFailure as exc:
            return jsonify({"error": f"Liquidsoap reload failed: {exc}"}), 502
        except PublishError as exc:
            return jsonify({"error": str(exc)}), 502

        return jsonify(
            {
                "station": _station_payload(updated),
                "publish": asdict(result),
                "relay_status": services.relay_orchestrator.get_relay_status(station_id),
            }
        )

    @app.route("/api/config/validate")
    def api_validate_config():
        """Check the configured Icecast limits without publishing."""

        options = _services().relay_orchestrator.render_options
        errors, warnings = validate_edge_limits(options.limits, options.cors_origins)
        return jsonify({"valid": not errors, "errors": errors, "warnings": warnings})

    @app.route("/api/config/regenerate", methods=["POST"])
    def api_regenerate_config():
        """Re-render both configuration files and reload the services."""

        services = _services()
        options = services.relay_orchestrator.render_options
        errors, warnings = validate_edge_limits(options.limits, options.cors_origins)
        if errors:
            return jsonify({"error": "Invalid Icecast limits", "errors": errors, "warnings": warnings}), 422

        data = request.get_json(silent=True) or {}
        try:
            force = coerce_bool(data.get("force"), False) if isinstance(data, dict) else False
        except ValueError as exc:
            return jsonify({"error": str(exc)}), 400
        try:
            result = services.relay_orchestrator.regenerate_config(force=force)
        except ConfigRenderConflict as exc:
            return jsonify({"error": str(exc), "stations": list(exc.station_ids)}), 409
        except PublishError as exc:
            route_logger.error("Configuration regeneration failed: %s", exc)
            return jsonify({"error": str(exc)}), 502

        payload = asdict(result)
        payload["warnings"] = list(result.warnings) + [item["message"] for item in warnings]
        return jsonify(payload)


__all__ = ["register"]
