"""Scenarios — SQLite persistence for scenarios and their steps.

A scenario's steps are stored as one JSON array: the order of that array is
the playback order, and it only ever changes through the explicit insert,
update, remove and swap operations below.  Mutations are serialised by an
``asyncio.Lock`` so read-modify-write cycles never interleave.
"""

from __future__ import annotations

import asyncio
import json
from pathlib import Path

import aiosqlite

from sequencer_bridge.exceptions import ScenarioNotFoundError, StepIndexError
from sequencer_bridge.logging import get_logger
from sequencer_bridge.protocol.models import STEP_LIST_ADAPTER, Scenario, Step, now_ms

log = get_logger(__name__)

DEFAULT_SCENARIO_NAME = "Untitled Scenario"

_SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS scenarios (
    scenario_id   TEXT PRIMARY KEY,
    name          TEXT NOT NULL,
    steps         TEXT NOT NULL DEFAULT '[]',
    created_at    INTEGER NOT NULL,
    last_used_at  INTEGER NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_scenarios_last_used ON scenarios (last_used_at DESC);
"""


class ScenarioStore:
    """Async SQLite store for scenarios."""

    def __init__(self, db_path: Path | str) -> None:
        self._db_path = Path(db_path).expanduser()
        self._conn: aiosqlite.Connection | None = None
        self._lock = asyncio.Lock()

    async def init(self) -> None:
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._conn = await aiosqlite.connect(str(self._db_path))
        await self._conn.executescript(_SCHEMA_SQL)
        await self._conn.commit()
        log.debug("scenario_store_init", path=str(self._db_path))

    async def close(self) -> None:
        if self._conn:
            await self._conn.close()
            self._conn = None

    # ------------------------------------------------------------------
    # Scenario operations
    # ------------------------------------------------------------------

    async def create(self, name: str = "") -> Scenario:
        scenario = Scenario.create(name or DEFAULT_SCENARIO_NAME)
        async with self._lock:
            await self._save(scenario)
        log.info("scenario_created", scenario_id=scenario.id, name=scenario.name)
        return scenario

    async def save(self, scenario: Scenario) -> None:
        """Insert or replace a whole scenario (import, duplicate)."""
        async with self._lock:
            await self._save(scenario)

    async def rename(self, scenario_id: str, name: str) -> Scenario:
        async with self._lock:
            scenario = await self.require(scenario_id)
            scenario.name = name or DEFAULT_SCENARIO_NAME
            await self._save(scenario)
        return scenario

    async def delete(self, scenario_id: str) -> bool:
        """Delete a scenario. Returns True if found."""
        assert self._conn is not None
        async with self._lock:
            cursor = await self._conn.execute(
                "DELETE FROM scenarios WHERE scenario_id=?", (scenario_id,)
            )
            await self._conn.commit()
        deleted = cursor.rowcount > 0
        if deleted:
            log.info("scenario_deleted", scenario_id=scenario_id)
        return deleted

    async def touch(self, scenario_id: str) -> None:
        """Mark a scenario as just used."""
        assert self._conn is not None
        async with self._lock:
            await self._conn.execute(
                "UPDATE scenarios SET last_used_at=? WHERE scenario_id=?",
                (now_ms(), scenario_id),
            )
            await self._conn.commit()

    # ------------------------------------------------------------------
    # Step operations
    # ------------------------------------------------------------------

    async def insert_step(self, scenario_id: str, index: int, step: Step) -> Scenario:
        """Insert *step* so that it ends up at *index*; later steps shift by one."""
        async with self._lock:
            scenario = await self.require(scenario_id)
            if not 0 <= index <= len(scenario.steps):
                raise StepIndexError(scenario_id, index)
            scenario.steps.insert(index, step)
            await self._save(scenario)
        return scenario

    async def add_step(self, scenario_id: str, step: Step, after_index: int | None = None) -> int:
        """Insert *step* right after *after_index* (append when ``None``).

        Returns the index the step was stored at.
        """
        async with self._lock:
            scenario = await self.require(scenario_id)
            if after_index is None:
                index = len(scenario.steps)
            else:
                if not -1 <= after_index < len(scenario.steps):
                    raise StepIndexError(scenario_id, after_index)
                index = after_index + 1
            scenario.steps.insert(index, step)
            await self._save(scenario)
        log.debug("step_added", scenario_id=scenario_id, index=index, step_type=step.type)
        return index

    async def update_step(self, scenario_id: str, index: int, step: Step) -> Scenario:
        async with self._lock:
            scenario = await self.require(scenario_id)
            self._check_index(scenario, index)
            scenario.steps[index] = step
            await self._save(scenario)
        return scenario

    async def remove_step(self, scenario_id: str, index: int) -> Step:
        """Remove and return the step at *index*."""
        async with self._lock:
            scenario = await self.require(scenario_id)
            self._check_index(scenario, index)
            step = scenario.steps.pop(index)
            await self._save(scenario)
        return step

    async def swap_steps(self, scenario_id: str, first: int, second: int) -> Scenario:
        async with self._lock:
            scenario = await self.require(scenario_id)
            self._check_index(scenario, first)
            self._check_index(scenario, second)
            steps = scenario.steps
            steps[first], steps[second] = steps[second], steps[first]
            await self._save(scenario)
        return scenario

    # ------------------------------------------------------------------
    # Read operations
    # ------------------------------------------------------------------

    async def get(self, scenario_id: str) -> Scenario | None:
        assert self._conn is not None
        async with self._conn.execute(
            "SELECT scenario_id, name, steps, created_at, last_used_at "
            "FROM scenarios WHERE scenario_id=?",
            (scenario_id,),
        ) as cursor:
            row = await cursor.fetchone()
        return _row_to_scenario(row) if row else None

    async def require(self, scenario_id: str) -> Scenario:
        scenario = await self.get(scenario_id)
        if scenario is None:
            raise ScenarioNotFoundError(scenario_id)
        return scenario

    async def list_all(self) -> list[Scenario]:
        """All scenarios, most recently used first."""
        assert self._conn is not None
        async with self._conn.execute(
            "SELECT scenario_id, name, steps, created_at, last_used_at "
            "FROM scenarios ORDER BY last_used_at DESC, created_at DESC"
        ) as cursor:
            rows = await cursor.fetchall()
        return [_row_to_scenario(row) for row in rows]

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _save(self, scenario: Scenario) -> None:
        assert self._conn is not None
        steps = json.dumps(STEP_LIST_ADAPTER.dump_python(scenario.steps, mode="json", by_alias=True))
        await self._conn.execute(
            """INSERT OR REPLACE INTO scenarios
               (scenario_id, name, steps, created_at, last_used_at)
               VALUES (?,?,?,?,?)""",
            (scenario.id, scenario.name, steps, scenario.created_at, scenario.last_used_at),
        )
        await self._conn.commit()

    @staticmethod
    def _check_index(scenario: Scenario, index: int) -> None:
        if not 0 <= index < len(scenario.steps):
            raise StepIndexError(scenario.id, index)


def _row_to_scenario(row: tuple) -> Scenario:
    return Scenario(
        id=row[0],
        name=row[1],
        steps=STEP_LIST_ADAPTER.validate_python(json.loads(row[2])),
        created_at=row[3],
        last_used_at=row[4],
    )
