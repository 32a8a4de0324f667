"""Recorder — recording session state and event-to-step interpretation."""

from sequencer_bridge.recorder.controller import RecordingController
from sequencer_bridge.recorder.session import RecorderSession, SessionState, SessionStatus

__all__ = ["RecordingController", "RecorderSession", "SessionState", "SessionStatus"]
