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

"""Pytest configuration and shared fixtures for the source monitor tests.

This module provides common fixtures, test utilities, and configuration
that can be used across all test modules.
"""
import sys
import tempfile
from pathlib import Path
from typing import Generator, List, Tuple
from unittest.mock import Mock

import pytest

# Add project root to Python path for imports
PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from stream_core.database import create_session_factory
from stream_core.models import AlertSettings, AutoDJConfig, RelayConfig, RelayMode, Station
from stream_core.store import AlertLog, StationStore


# ============================================================================
# Function-level fixtures
# ============================================================================

@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for test use.

    The directory is automatically cleaned up after the test.
    """
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def session_factory():
    """Fresh in-memory SQLite database with all tables created."""
    return create_session_factory("sqlite://")


@pytest.fixture
def store(session_factory) -> StationStore:
    return StationStore(session_factory, default_alerts=AlertSettings(cooldown_minutes=5))


@pytest.fixture
def alert_log(session_factory) -> AlertLog:
    return AlertLog(session_factory)


@pytest.fixture
def make_station():
    """Factory for :class:`Station` values with sensible defaults."""

    def _make(
        station_id: str = "station-1",
        mount_point: str = None,
        relay_url: str = None,
        relay_mode: RelayMode = RelayMode.FALLBACK,
        relay_enabled: bool = None,
        playlist_id: int = None,
        autodj_enabled: bool = None,
        recipients: Tuple[str, ...] = (),
        name: str = "",
    ) -> Station:
        return Station(
            id=station_id,
            mount_point=mount_point or f"/{station_id}",
            name=name,
            relay=RelayConfig(
                enabled=bool(relay_url) if relay_enabled is None else relay_enabled,
                url=relay_url,
                mode=relay_mode,
            ),
            autodj=AutoDJConfig(
                enabled=playlist_id is not None if autodj_enabled is None else autodj_enabled,
                playlist_id=playlist_id,
            ),
            alert_recipients=tuple(recipients),
        )

    return _make


class RecordingMailer:
    """Mailer double that records every send and can fail selected recipients."""

    def __init__(self, failing: Tuple[str, ...] = ()):
        self.failing = set(failing)
        self.sent: List[Tuple[str, str, str]] = []

    def send(self, to: str, subject: str, body: str) -> None:
        if to in self.failing:
            raise RuntimeError(f"SMTP refused {to}")
        self.sent.append((to, subject, body))


@pytest.fixture
def mailer() -> RecordingMailer:
    return RecordingMailer()


@pytest.fixture
def mock_publisher():
    """Publisher double whose publish() succeeds without touching disk."""
    from stream_core.streaming.config_publisher import PublishResult

    publisher = Mock()
    publisher.publish = Mock(return_value=PublishResult(engine_changed=True, edge_changed=True,
                                                        engine_reloaded=True, edge_reloaded=True))
    return publisher


@pytest.fixture
def sample_env_config(temp_dir: Path) -> Path:
    """Create a sample .env configuration file for testing.

    Returns the path to the created .env file.
    """
    env_file = temp_dir / ".env"
    env_content = """
# Test Configuration
ICECAST_HOST=icecast
ICECAST_PORT=8000
ICECAST_ADMIN_USER=admin
ICECAST_ADMIN_PASSWORD=secret
LIQUIDSOAP_TELNET_PORT=1235
POLL_INTERVAL_SEC=15
LISTENER_MILESTONES=10,100
ALERT_GLOBAL_RECIPIENTS=ops@example.com; noc@example.com
ALERT_MONITOR_ALL=true
"""
    env_file.write_text(env_content.strip())
    return env_file


# ============================================================================
# Test markers and utilities
# ============================================================================

def pytest_configure(config):
    """Configure pytest with custom settings."""
    # Register custom markers
    config.addinivalue_line(
        "markers", "unit: Unit tests (fast, no external dependencies)"
    )
    config.addinivalue_line(
        "markers", "integration: Integration tests (may use mocks)"
    )


def pytest_collection_modifyitems(config, items):
    """Modify test collection to add markers automatically."""
    for item in items:
        # Add 'unit' marker to tests without any marker
        if not any(item.iter_markers()):
            item.add_marker(pytest.mark.unit)

        # Mark tests in integration modules
        if "integration" in item.nodeid:
            item.add_marker(pytest.mark.integration)
