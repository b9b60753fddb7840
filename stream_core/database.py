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

"""Database engine setup and ORM tables used by the source monitor."""

import logging

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    Integer,
    String,
    Text,
    create_engine,
)
from sqlalchemy.engine import Engine
from sqlalchemy.engine.url import make_url
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from stream_utils import utc_now

logger = logging.getLogger(__name__)

Base = declarative_base()


class StationRecord(Base):
    """Station row; only the failover and alerting columns are managed here."""

    __tablename__ = "stations"

    id = Column(String(64), primary_key=True)
    name = Column(String(255), nullable=False, default="")
    description = Column(Text)
    mount_point = Column(String(255), nullable=False, unique=True)

    relay_enabled = Column(Boolean, nullable=False, default=False)
    relay_url = Column(Text)
    relay_mode = Column(String(16), nullable=False, default="fallback")
    relay_status = Column(String(16), nullable=False, default="idle")

    autodj_enabled = Column(Boolean, nullable=False, default=False)
    autodj_playlist_id = Column(Integer)
    autodj_mode = Column(String(16), nullable=False, default="shuffle")
    autodj_crossfade_seconds = Column(Integer, nullable=False, default=0)

    alert_recipients = Column(JSON, nullable=False, default=list)
    listeners = Column(Integer, nullable=False, default=0)

    created_at = Column(DateTime(timezone=True), default=utc_now)
    updated_at = Column(DateTime(timezone=True), default=utc_now, onupdate=utc_now)

    def __repr__(self) -> str:  # pragma: no cover - debugging helper
        return f"<StationRecord {self.id} {self.mount_point}>"


class AlertSettingsRecord(Base):
    """Single-row table holding the global alert preferences."""

    __tablename__ = "alert_settings"

    id = Column(Integer, primary_key=True)
    global_recipients = Column(JSON, nullable=False, default=list)
    monitor_all_streams = Column(Boolean, nullable=False, default=False)
    cooldown_minutes = Column(Integer, nullable=False, default=5)
    alert_on_recovery = Column(Boolean, nullable=False, default=True)
    updated_at = Column(DateTime(timezone=True), default=utc_now, onupdate=utc_now)


class StationAlertRecord(Base):
    """In-app alert log; every transition event lands here."""

    __tablename__ = "station_alerts"

    id = Column(Integer, primary_key=True, autoincrement=True)
    station_id = Column(String(64), nullable=False, index=True)
    mount_point = Column(String(255))
    kind = Column(String(32), nullable=False, index=True)
    message = Column(Text, nullable=False)
    listeners = Column(Integer, nullable=False, default=0)
    milestone = Column(Integer)
    active_source = Column(String(16))
    created_at = Column(DateTime(timezone=True), default=utc_now, index=True)


def create_db_engine(database_url: str) -> Engine:
    """Create an engine; in-memory SQLite is shared across threads."""
    url = make_url(database_url)
    if url.get_backend_name() == "sqlite" and url.database in (None, "", ":memory:"):
        return create_engine(
            database_url,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    if url.get_backend_name() == "sqlite":
        return create_engine(database_url, connect_args={"check_same_thread": False})
    return create_engine(database_url, pool_pre_ping=True)


def create_session_factory(database_url: str, create_tables: bool = True) -> sessionmaker:
    """Return a session factory bound to ``database_url``."""
    engine = create_db_engine(database_url)
    if create_tables:
        Base.metadata.create_all(engine)
    logger.info("Database ready: %s", make_url(database_url).render_as_string(hide_password=True))
    return sessionmaker(bind=engine, expire_on_commit=False)


__all__ = [
    "AlertSettingsRecord",
    "Base",
    "StationAlertRecord",
    "StationRecord",
    "create_db_engine",
    "create_session_factory",
]
