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

"""Tests for the Liquidsoap telnet probe."""

import socket
import sys
from pathlib import Path
from unittest import mock

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))

from stream_core.errors import ProbeTimeout, ProbeUnreachable
from stream_core.models import ActiveSource, RelayMode
from stream_core.streaming.liquidsoap_client import LiquidsoapClient, classify_response


def _fake_socket(*chunks):
    sock = mock.MagicMock()
    sock.recv.side_effect = list(chunks) + [b""]
    return sock


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("live\nEND\n", ActiveSource.LIVE),
        ("fallback\r\nEND\r\n", ActiveSource.FALLBACK),
        ("source_abc=live", ActiveSource.LIVE),
        ("source_abc = fallback", ActiveSource.FALLBACK),
        ("ERROR: unknown command\nEND", ActiveSource.UNKNOWN),
        ("END", ActiveSource.UNKNOWN),
        ("", ActiveSource.UNKNOWN),
    ],
)
def test_classify_response(raw, expected):
    assert classify_response(raw) == expected


def test_query_sends_command_and_stops_at_terminator():
    sock = _fake_socket(b"fall", b"back\nEND\n", b"ignored")
    client = LiquidsoapClient("127.0.0.1", 1234, timeout=2.0)

    with mock.patch("socket.create_connection", return_value=sock) as connect:
        response = client.query("source_a_b")

    connect.assert_called_once_with(("127.0.0.1", 1234), timeout=2.0)
    sock.sendall.assert_called_once_with(b"source_a_b\n")
    sock.close.assert_called_once()
    assert response == "fallback\nEND\n"


def test_query_timeout_raises_probe_timeout():
    sock = mock.MagicMock()
    sock.recv.side_effect = socket.timeout("timed out")
    client = LiquidsoapClient(timeout=0.5)

    with mock.patch("socket.create_connection", return_value=sock):
        with pytest.raises(ProbeTimeout):
            client.query("source_x")
    sock.close.assert_called_once()


def test_query_refused_raises_probe_unreachable():
    client = LiquidsoapClient()

    with mock.patch("socket.create_connection", side_effect=ConnectionRefusedError("refused")):
        with pytest.raises(ProbeUnreachable):
            client.query("source_x")


def test_probe_active_source_never_raises():
    client = LiquidsoapClient()

    with mock.patch("socket.create_connection", side_effect=socket.timeout("slow")):
        assert client.probe_active_source("abc") == ActiveSource.UNKNOWN


def test_probe_all_only_queries_fallback_relays_and_continues_after_failure(make_station):
    stations = [
        make_station("aa-1", relay_url="http://up/a"),
        make_station("bb-2", relay_url="http://up/b"),
        make_station("primary", relay_url="http://up/p", relay_mode=RelayMode.PRIMARY),
        make_station("plain"),
    ]
    connections = [socket.timeout("hung"), _fake_socket(b"live\nEND\n")]

    client = LiquidsoapClient()
    with mock.patch("socket.create_connection", side_effect=connections):
        results = client.probe_all(stations)

    assert results == {"aa-1": ActiveSource.UNKNOWN, "bb-2": ActiveSource.LIVE}
