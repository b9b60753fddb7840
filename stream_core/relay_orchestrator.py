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
Relay and AutoDJ Orchestration

Reacts to station edits that touch the relay or AutoDJ blocks. The renderer
has no incremental mode, so any such change persists the record, re-renders
the whole configuration, publishes it and then updates the in-memory relay
bookkeeping. Relays themselves run inside Liquidsoap; nothing here spawns
processes.
"""

import logging
import threading
from typing import Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError

from stream_utils import utc_now

from .errors import PublishError, StreamCoreError
from .models import RelayMode, RelayRuntime, RelayStatus, Station
from .store import StationStore
from .streaming.config_publisher import ConfigPublisher, PublishResult
from .streaming.config_renderer import RenderOptions, render

logger = logging.getLogger(__name__)


class RelayOrchestrator:
    """Keeps rendered configuration and relay bookkeeping in step with the store."""

    def __init__(
        self,
        store: StationStore,
        publisher: ConfigPublisher,
        render_options: Optional[RenderOptions] = None,
    ):
        self.store = store
        self.publisher = publisher
        self.render_options = render_options or RenderOptions()
        self._relays: Dict[str, RelayRuntime] = {}
        self._lock = threading.Lock()
        self._publish_lock = threading.Lock()

    def bootstrap(self) -> int:
        """
        Register primary-mode relays that already exist at process start.

        They start streaming as soon as Liquidsoap loads the published
        script, so only bookkeeping is needed here. Every other station has
        no runtime entry yet, so a status persisted before the restart is
        reset to idle.

        Returns:
            Number of relays registered
        """
        logger.info("Checking for primary-mode relays to register...")
        registered = 0
        for station in self.store.list_stations():
            if station.relay.effective and station.relay.mode == RelayMode.PRIMARY:
                self._set_runtime(station, RelayStatus.ACTIVE)
                registered += 1
                logger.info(f"Registered primary relay for {station.display_name} ({station.id})")
            elif self.store.get_relay_status(station.id) != RelayStatus.IDLE:
                logger.info(f"Resetting stale relay status for {station.id}")
                self._update_store_status(station.id, RelayStatus.IDLE)
        logger.info(f"Registered {registered} primary relay(s)")
        return registered

    def regenerate_config(self, force: bool = False) -> PublishResult:
        """
        Render every stored station and publish the result.

        Raises:
            ConfigRenderConflict: stations collide after sanitization
            PublishError: write or engine reload failed
        """
        with self._publish_lock:
            stations = self.store.list_stations()
            rendered = render(stations, self.render_options)
            result = self.publisher.publish(rendered.engine_config, rendered.edge_config, force=force)
            logger.info(f"Published configuration for {len(stations)} station(s)")
            return result

    def on_station_config_changed(self, station: Station) -> PublishResult:
        """
        Apply a change to ``station``'s relay or AutoDJ block.

        Raises:
            KeyError: the station does not exist in the store
            ConfigRenderConflict / PublishError: propagated after the relay
                status is marked as errored
        """
        if not self.store.save_source_config(station):
            raise KeyError(station.id)

        try:
            result = self.regenerate_config()
        except (StreamCoreError, OSError) as exc:
            logger.error("Configuration publish failed after editing %s: %s", station.id, exc)
            if station.relay.effective:
                self._set_runtime(station, RelayStatus.ERROR)
            raise

        if station.relay.effective:
            self._set_runtime(station, RelayStatus.ACTIVE)
        else:
            self._clear_runtime(station.id)
        return result

    def on_station_removed(self, station_id: str) -> Optional[PublishResult]:
        """Forget a removed station's relay and republish without it."""
        if self.store.delete_station(station_id):
            logger.info("Removed station %s from the store", station_id)
        with self._lock:
            self._relays.pop(station_id, None)
        try:
            return self.regenerate_config()
        except PublishError as exc:
            logger.error("Configuration publish failed after removing %s: %s", station_id, exc)
            raise

    def get_relay_status(self, station_id: str) -> dict:
        with self._lock:
            relay = self._relays.get(station_id)
            if relay is None:
                return {"station_id": station_id, "active": False, "status": RelayStatus.IDLE.value}
            payload = relay.to_dict()
        payload["active"] = relay.status == RelayStatus.ACTIVE
        return payload

    def list_active_relays(self) -> List[dict]:
        with self._lock:
            return [
                relay.to_dict()
                for relay in sorted(self._relays.values(), key=lambda item: item.station_id)
            ]

    def _set_runtime(self, station: Station, status: RelayStatus) -> None:
        with self._lock:
            existing = self._relays.get(station.id)
            started_at = existing.started_at if existing and existing.url == station.relay.url else None
            self._relays[station.id] = RelayRuntime(
                station_id=station.id,
                mount_point=station.mount_point,
                url=station.relay.url or "",
                mode=station.relay.mode,
                status=status,
                started_at=started_at or (utc_now() if status == RelayStatus.ACTIVE else None),
            )
        self._update_store_status(station.id, status)

    def _clear_runtime(self, station_id: str) -> None:
        with self._lock:
            self._relays.pop(station_id, None)
        self._update_store_status(station_id, RelayStatus.IDLE)

    def _update_store_status(self, station_id: str, status: RelayStatus) -> None:
        try:
            self.store.update_relay_status(station_id, status)
        except SQLAlchemyError as exc:
            logger.error("Failed to update relay status for %s: %s", station_id, exc)


__all__ = ["RelayOrchestrator"]
