"""Scenarios — Persisted user preferences.

Key/value rows in the same SQLite file as the scenarios.  Step construction
reads the default pixel threshold from here; the recorder reads and writes
the last overlay position so the overlay reopens where the user left it.
"""

from __future__ import annotations

import json
from pathlib import Path

import aiosqlite
from pydantic import BaseModel, Field

from sequencer_bridge.logging import get_logger
from sequencer_bridge.protocol.constants import DEFAULT_THRESHOLD, MAX_COLOR_DISTANCE
from sequencer_bridge.protocol.models import Point

log = get_logger(__name__)

_SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS user_settings (
    key    TEXT PRIMARY KEY,
    value  TEXT NOT NULL
);
"""


class UserSettings(BaseModel):
    default_threshold: float = Field(default=DEFAULT_THRESHOLD, ge=0, le=MAX_COLOR_DISTANCE)
    last_overlay_position: Point | None = None


class SettingsStore:
    """Async SQLite store for :class:`UserSettings`, cached after ``init``."""

    def __init__(self, db_path: Path | str) -> None:
        self._db_path = Path(db_path).expanduser()
        self._conn: aiosqlite.Connection | None = None
        self._settings = UserSettings()

    async def init(self) -> None:
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._conn = await aiosqlite.connect(str(self._db_path))
        await self._conn.executescript(_SCHEMA_SQL)
        await self._conn.commit()
        self._settings = await self._load()
        log.debug("settings_store_init", path=str(self._db_path))

    async def close(self) -> None:
        if self._conn:
            await self._conn.close()
            self._conn = None

    @property
    def current(self) -> UserSettings:
        return self._settings

    @property
    def default_threshold(self) -> float:
        return self._settings.default_threshold

    @property
    def last_overlay_position(self) -> Point | None:
        return self._settings.last_overlay_position

    async def set_default_threshold(self, threshold: float) -> None:
        await self.update(default_threshold=threshold)

    async def set_last_overlay_position(self, position: Point) -> None:
        await self.update(last_overlay_position=position)

    async def update(self, **changes: object) -> UserSettings:
        """Validate and persist a partial update."""
        assert self._conn is not None
        merged = UserSettings.model_validate({**self._settings.model_dump(), **changes})
        dumped = merged.model_dump(mode="json")
        for key in changes:
            await self._conn.execute(
                "INSERT OR REPLACE INTO user_settings (key, value) VALUES (?, ?)",
                (key, json.dumps(dumped[key])),
            )
        await self._conn.commit()
        self._settings = merged
        return merged

    async def _load(self) -> UserSettings:
        assert self._conn is not None
        async with self._conn.execute("SELECT key, value FROM user_settings") as cursor:
            rows = await cursor.fetchall()
        stored = {key: json.loads(value) for key, value in rows if key in UserSettings.model_fields}
        return UserSettings.model_validate(stored)
