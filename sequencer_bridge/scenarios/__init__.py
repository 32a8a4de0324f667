"""Scenarios — persistence for scenarios, user settings and undo history."""

from sequencer_bridge.scenarios.describe import describe_step
from sequencer_bridge.scenarios.history import HistoryStore
from sequencer_bridge.scenarios.settings_store import SettingsStore, UserSettings
from sequencer_bridge.scenarios.store import ScenarioStore

__all__ = ["describe_step", "HistoryStore", "SettingsStore", "UserSettings", "ScenarioStore"]
