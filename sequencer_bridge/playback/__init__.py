"""Playback — run recorded scenarios through the helper."""

from sequencer_bridge.playback.player import ExecutionProgress, PlaybackStatus, ScenarioPlayer

__all__ = ["ExecutionProgress", "PlaybackStatus", "ScenarioPlayer"]
