"""CLI — Shared async setup for commands that talk to the helper or the store."""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator

from sequencer_bridge.config import Settings
from sequencer_bridge.ipc.bridge import HelperBridge
from sequencer_bridge.ipc.client import HelperClient
from sequencer_bridge.scenarios.settings_store import SettingsStore
from sequencer_bridge.scenarios.store import ScenarioStore


@asynccontextmanager
async def open_scenarios(settings: Settings) -> AsyncIterator[ScenarioStore]:
    store = ScenarioStore(settings.storage.db_path)
    await store.init()
    try:
        yield store
    finally:
        await store.close()


@asynccontextmanager
async def open_helper(settings: Settings) -> AsyncIterator[HelperClient]:
    """Spawn the helper, yield a client, and shut the helper down on exit."""
    bridge = HelperBridge(
        settings.bridge.helper_command,
        request_timeout_ms=settings.bridge.request_timeout_ms,
    )
    await bridge.start()
    try:
        yield HelperClient(
            bridge,
            default_wait_timeout_ms=settings.helper.default_wait_timeout_ms,
            wait_timeout_buffer_ms=settings.bridge.wait_timeout_buffer_ms,
        )
    finally:
        await bridge.stop()


@asynccontextmanager
async def open_settings(settings: Settings) -> AsyncIterator[SettingsStore]:
    store = SettingsStore(settings.storage.db_path)
    await store.init()
    try:
        yield store
    finally:
        await store.close()
