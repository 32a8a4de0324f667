"""IPC — line transport, helper-side router, orchestrator-side bridge and client."""

from sequencer_bridge.ipc.bridge import HelperBridge
from sequencer_bridge.ipc.client import HelperClient
from sequencer_bridge.ipc.router import RequestRouter
from sequencer_bridge.ipc.transport import LineReader, LineWriter

__all__ = ["HelperBridge", "HelperClient", "RequestRouter", "LineReader", "LineWriter"]
