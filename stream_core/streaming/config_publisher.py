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
Configuration Publisher

Writes rendered configuration atomically and asks the running services to
pick it up:

1. Liquidsoap reload (configured command). Failure is fatal to the publish.
2. Icecast reload (authenticated admin GET). Failure is only a warning; the
   edge server is routinely not up yet during a cold start.

Neither phase retries. The next station edit triggers a fresh publish.
"""

import logging
import os
import shlex
import stat
import subprocess
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

import requests
from requests import exceptions as requests_exceptions

from ..errors import EdgeReloadFailure, EngineReloadFailure, PublishError
from ..settings import CoreSettings

logger = logging.getLogger(__name__)


@dataclass
class PublishResult:
    """Outcome of a successful publish call."""
    engine_changed: bool = False
    edge_changed: bool = False
    engine_reloaded: bool = False
    edge_reloaded: bool = False
    warnings: List[str] = field(default_factory=list)


def _target_mode(path: Path) -> int:
    """Permission bits for a replacement of ``path``: its current mode, else 0644 under the umask."""
    try:
        return stat.S_IMODE(path.stat().st_mode)
    except FileNotFoundError:
        umask = os.umask(0)
        os.umask(umask)
        return 0o644 & ~umask


def atomic_write(path: Path, content: str) -> bool:
    """
    Replace ``path`` with ``content`` via write-temp-then-rename.

    Returns:
        True if the bytes on disk changed
    """
    path = Path(path)
    encoded = content.encode("utf-8")
    try:
        if path.exists() and path.read_bytes() == encoded:
            changed = False
        else:
            changed = True
    except OSError:
        changed = True

    path.parent.mkdir(parents=True, exist_ok=True)
    mode = _target_mode(path)
    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=str(path.parent))
    try:
        with os.fdopen(fd, "wb") as handle:
            handle.write(encoded)
            handle.flush()
            os.fsync(handle.fileno())
        os.chmod(tmp_name, mode)
        os.replace(tmp_name, path)
    except BaseException:
        try:
            os.unlink(tmp_name)
        except OSError:
            pass
        raise
    return changed


class ConfigPublisher:
    """Writes ``radio.liq`` / ``icecast.xml`` and reloads both services."""

    def __init__(
        self,
        engine_config_path: str,
        edge_config_path: str,
        engine_reload_command: Optional[str] = "supervisorctl restart liquidsoap",
        edge_reload_url: Optional[str] = None,
        admin_user: Optional[str] = None,
        admin_password: Optional[str] = None,
        reload_timeout: float = 30.0,
        http_timeout: float = 5.0,
    ):
        self.engine_config_path = Path(engine_config_path)
        self.edge_config_path = Path(edge_config_path)
        self.engine_reload_command = engine_reload_command
        self.edge_reload_url = edge_reload_url
        self.admin_user = admin_user
        self.admin_password = admin_password
        self.reload_timeout = reload_timeout
        self.http_timeout = http_timeout
        self._reload_pending = False

    @classmethod
    def from_settings(cls, settings: CoreSettings) -> "ConfigPublisher":
        return cls(
            engine_config_path=settings.engine_config_path,
            edge_config_path=settings.edge_config_path,
            engine_reload_command=settings.liquidsoap_reload_command,
            edge_reload_url=settings.icecast_reload_url,
            admin_user=settings.icecast_admin_user,
            admin_password=settings.icecast_admin_password,
            reload_timeout=settings.reload_timeout_seconds,
            http_timeout=settings.http_timeout_seconds,
        )

    def publish(self, engine_config: str, edge_config: str, force: bool = False) -> PublishResult:
        """
        Write both artifacts and reload the services.

        Args:
            engine_config: Rendered Liquidsoap script
            edge_config: Rendered Icecast XML
            force: Reload even when neither file changed

        Raises:
            PublishError: a file could not be written
            EngineReloadFailure: Liquidsoap did not reload
        """
        result = PublishResult()
        try:
            result.engine_changed = atomic_write(self.engine_config_path, engine_config)
            result.edge_changed = atomic_write(self.edge_config_path, edge_config)
        except OSError as exc:
            raise PublishError(f"Failed to write configuration: {exc}") from exc

        logger.info(
            "Configuration written to %s (changed=%s) and %s (changed=%s)",
            self.engine_config_path,
            result.engine_changed,
            self.edge_config_path,
            result.edge_changed,
        )

        if not (force or result.engine_changed or result.edge_changed or self._reload_pending):
            logger.info("Configuration unchanged; skipping service reloads")
            return result

        # Stays set until Liquidsoap has loaded what is on disk.
        self._reload_pending = True
        self.reload_engine()
        self._reload_pending = False
        result.engine_reloaded = True

        try:
            self.reload_edge()
            result.edge_reloaded = True
        except EdgeReloadFailure as exc:
            logger.warning("Icecast reload failed (non-fatal): %s", exc)
            result.warnings.append(str(exc))

        return result

    def reload_engine(self) -> None:
        """Run the Liquidsoap reload command; raise on any failure."""
        if not self.engine_reload_command:
            logger.debug("No Liquidsoap reload command configured; skipping engine reload")
            return

        cmd = shlex.split(self.engine_reload_command)
        try:
            completed = subprocess.run(
                cmd,
                capture_output=True,
                text=True,
                timeout=self.reload_timeout,
                check=False,
            )
        except subprocess.TimeoutExpired as exc:
            raise EngineReloadFailure(
                f"Liquidsoap reload timed out after {self.reload_timeout:.0f}s"
            ) from exc
        except OSError as exc:
            raise EngineReloadFailure(f"Liquidsoap reload could not run: {exc}") from exc

        if completed.returncode != 0:
            detail = (completed.stderr or completed.stdout or "").strip()
            raise EngineReloadFailure(
                f"Liquidsoap reload exited with code {completed.returncode}: {detail}"
            )
        logger.info("Liquidsoap reloaded")

    def reload_edge(self) -> None:
        """Ask Icecast to re-read its configuration."""
        if not self.edge_reload_url:
            logger.debug("No Icecast reload URL configured; skipping edge reload")
            return

        auth = None
        if self.admin_user and self.admin_password:
            auth = (self.admin_user, self.admin_password)

        try:
            response = requests.get(self.edge_reload_url, auth=auth, timeout=self.http_timeout)
        except requests_exceptions.RequestException as exc:
            raise EdgeReloadFailure(f"Icecast reload request failed: {exc}") from exc

        if not 200 <= response.status_code < 300:
            raise EdgeReloadFailure(
                f"Icecast reload returned HTTP {response.status_code}"
            )
        logger.info("Icecast reloaded")


__all__ = ["ConfigPublisher", "PublishResult", "atomic_write"]
