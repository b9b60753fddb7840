#!/usr/bin/env python3
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
StreamDock Source Monitor Service

Runs alongside Icecast and Liquidsoap:
- publishes radio.liq and icecast.xml from the station table at start
- polls Icecast and probes Liquidsoap on a fixed interval
- emails station transitions to the configured recipients
- serves a small HTTP API for status, the alert log and relay changes
"""

import os
import sys
import time
import signal
import logging
import threading
from typing import Optional
from dotenv import load_dotenv

# Configure logging early
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s [%(levelname)s] [%(name)s] %(message)s',
    handlers=[
        logging.StreamHandler(sys.stdout)
    ]
)

logger = logging.getLogger(__name__)

# Load environment variables from persistent config volume
_config_path = os.environ.get('CONFIG_PATH')
if _config_path:
    if os.path.exists(_config_path):
        load_dotenv(_config_path, override=True)
        logger.info(f"Loaded environment from: {_config_path}")
    else:
        logger.warning(f"CONFIG_PATH set but file not found: {_config_path}")
        load_dotenv(override=True)
else:
    load_dotenv(override=True)

_log_level = os.environ.get('LOG_LEVEL', '').upper()
if _log_level:
    logging.getLogger().setLevel(getattr(logging, _log_level, logging.INFO))

from stream_core.database import create_session_factory
from stream_core.errors import StreamCoreError
from stream_core.monitoring import AlertRouter, SMTPMailer, SourceMonitor, StateDiffEngine
from stream_core.relay_orchestrator import RelayOrchestrator
from stream_core.settings import CoreSettings, load_settings
from stream_core.store import AlertLog, StationStore
from stream_core.streaming import ConfigPublisher, IcecastStatusPoller, LiquidsoapClient, RenderOptions
from webapp import MonitorServices, create_app

# Global state
_running = True
_monitor: Optional[SourceMonitor] = None


def signal_handler(signum, frame):
    """Handle shutdown signals gracefully."""
    global _running
    logger.info(f"Received signal {signum}, initiating graceful shutdown...")
    _running = False


def build_services(settings: CoreSettings) -> MonitorServices:
    """Wire every collaborator from settings."""

    session_factory = create_session_factory(settings.database_url)
    store = StationStore(session_factory, default_alerts=settings.default_alerts)
    alert_log = AlertLog(session_factory)

    if not settings.mail_enabled:
        logger.warning("MAIL_SERVER not set; alert emails will fail and only the alert log is kept")

    router = AlertRouter(SMTPMailer.from_settings(settings), alert_log=alert_log)
    monitor = SourceMonitor(
        store=store,
        poller=IcecastStatusPoller.from_settings(settings),
        prober=LiquidsoapClient(
            host=settings.liquidsoap_telnet_host,
            port=settings.liquidsoap_telnet_port,
            timeout=settings.probe_timeout_seconds,
        ),
        diff_engine=StateDiffEngine(settings.listener_milestones),
        router=router,
        interval=settings.poll_interval_seconds,
    )
    orchestrator = RelayOrchestrator(
        store=store,
        publisher=ConfigPublisher.from_settings(settings),
        render_options=RenderOptions.from_settings(settings),
    )
    return MonitorServices(
        store=store,
        alert_log=alert_log,
        relay_orchestrator=orchestrator,
        monitor=monitor,
        settings=settings,
    )


def run_api_server(services: MonitorServices, port: int):
    """Run the status API (blocking, meant for a daemon thread)."""
    api_app = create_app(services, logger)
    try:
        api_app.run(host='0.0.0.0', port=port, debug=False, use_reloader=False)
    except Exception as e:
        logger.error(f"Status API server stopped: {e}", exc_info=True)


def main():
    """Main entry point for the source monitor service."""
    global _running, _monitor

    logger.info("=" * 60)
    logger.info("StreamDock - Source Monitor Service")
    logger.info("=" * 60)

    signal.signal(signal.SIGTERM, signal_handler)
    signal.signal(signal.SIGINT, signal_handler)

    try:
        settings = load_settings()
        services = build_services(settings)
        _monitor = services.monitor

        services.relay_orchestrator.bootstrap()
        try:
            result = services.relay_orchestrator.regenerate_config()
            for warning in result.warnings:
                logger.warning(warning)
        except StreamCoreError as e:
            logger.error(f"Initial configuration publish failed: {e}")

        logger.info(f"Starting status API server on port {settings.api_port}...")
        api_thread = threading.Thread(
            target=run_api_server, args=(services, settings.api_port), daemon=True
        )
        api_thread.start()

        _monitor.start()
        while _running:
            time.sleep(1)

    except KeyboardInterrupt:
        logger.info("Received interrupt signal")
    except Exception as e:
        logger.error(f"Fatal error in source monitor service: {e}", exc_info=True)
        sys.exit(1)
    finally:
        logger.info("Shutting down source monitor service...")
        if _monitor:
            _monitor.stop()


if __name__ == '__main__':
    main()
