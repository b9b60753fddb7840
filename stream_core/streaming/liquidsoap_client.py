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
Liquidsoap Telnet Client

Asks the streaming engine which source is audible on a fallback-relay
station. The rendered script registers ``source_<id>`` on the telnet server;
it answers ``live`` while the encoder is connected and ``fallback`` otherwise.

Every query opens its own short-lived connection and is bounded by a single
deadline covering connect and read. Nothing here raises to the tick: any
failure becomes ``ActiveSource.UNKNOWN``.
"""

import logging
import socket
import time
from typing import Dict, Iterable

from ..errors import ProbeError, ProbeTimeout, ProbeUnreachable
from ..models import ActiveSource, Station
from .mount_points import station_command

logger = logging.getLogger(__name__)

TELNET_HOST = "127.0.0.1"
TELNET_PORT = 1234
TIMEOUT_SECONDS = 2.0
RESPONSE_TERMINATOR = "END"
MAX_RESPONSE_BYTES = 4096


def classify_response(text: str) -> ActiveSource:
    """
    Map a telnet answer onto an active source.

    Example:
        >>> classify_response('source_myid=live')
        <ActiveSource.LIVE: 'live'>
        >>> classify_response('fallback\\nEND')
        <ActiveSource.FALLBACK: 'fallback'>
    """
    lines = [
        line.strip()
        for line in (text or "").replace("\r", "\n").split("\n")
        if line.strip() and line.strip() != RESPONSE_TERMINATOR
    ]
    if not lines:
        return ActiveSource.UNKNOWN

    answer = lines[0]
    if "=" in answer:
        answer = answer.rsplit("=", 1)[1]
    answer = answer.strip().lower()

    if "live" in answer:
        return ActiveSource.LIVE
    if "fallback" in answer:
        return ActiveSource.FALLBACK
    return ActiveSource.UNKNOWN


class LiquidsoapClient:
    """Line-oriented client for the Liquidsoap telnet server."""

    def __init__(self, host: str = TELNET_HOST, port: int = TELNET_PORT, timeout: float = TIMEOUT_SECONDS):
        self.host = host
        self.port = port
        self.timeout = timeout

    def query(self, command: str) -> str:
        """
        Send ``command`` and return the raw response text.

        Raises:
            ProbeTimeout: connect or read exceeded the deadline
            ProbeUnreachable: connection refused, reset or closed early
        """
        deadline = time.monotonic() + self.timeout
        try:
            sock = socket.create_connection((self.host, self.port), timeout=self.timeout)
        except socket.timeout as exc:
            raise ProbeTimeout(f"connect to {self.host}:{self.port} timed out") from exc
        except OSError as exc:
            raise ProbeUnreachable(f"connect to {self.host}:{self.port} failed: {exc}") from exc

        buffer = b""
        try:
            sock.sendall(f"{command}\n".encode("utf-8"))
            while True:
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    raise ProbeTimeout(f"no complete answer to {command!r} within {self.timeout}s")
                sock.settimeout(remaining)
                chunk = sock.recv(1024)
                if not chunk:
                    break
                buffer += chunk
                decoded = buffer.decode("utf-8", errors="replace")
                if RESPONSE_TERMINATOR in decoded or "\n" in decoded:
                    break
                if len(buffer) >= MAX_RESPONSE_BYTES:
                    break
        except socket.timeout as exc:
            raise ProbeTimeout(f"no complete answer to {command!r} within {self.timeout}s") from exc
        except OSError as exc:
            raise ProbeUnreachable(f"telnet exchange failed: {exc}") from exc
        finally:
            try:
                sock.close()
            except OSError:
                pass

        return buffer.decode("utf-8", errors="replace")

    def probe_active_source(self, station_id: str) -> ActiveSource:
        """Return the active source for ``station_id``; never raises."""
        try:
            response = self.query(station_command(station_id))
        except ProbeTimeout as exc:
            logger.warning("Liquidsoap telnet timeout for %s: %s", station_id, exc)
            return ActiveSource.UNKNOWN
        except ProbeError as exc:
            logger.warning("Liquidsoap telnet error for %s: %s", station_id, exc)
            return ActiveSource.UNKNOWN

        result = classify_response(response)
        logger.debug("Liquidsoap reports %s for %s (raw=%r)", result.value, station_id, response)
        return result

    def probe_all(self, stations: Iterable[Station]) -> Dict[str, ActiveSource]:
        """
        Probe every fallback-relay station, one at a time.

        The telnet server handles connections serially, so these are never
        issued concurrently. One failing station does not stop the batch.
        """
        results: Dict[str, ActiveSource] = {}
        for station in stations:
            if not station.uses_fallback_relay:
                continue
            try:
                results[station.id] = self.probe_active_source(station.id)
            except Exception as exc:  # pragma: no cover
                logger.error("Unexpected probe failure for %s: %s", station.id, exc)
                results[station.id] = ActiveSource.UNKNOWN
        return results


__all__ = ["LiquidsoapClient", "classify_response"]
