"""Sequencer Bridge — record and replay desktop GUI sequences.

Two processes cooperate over newline-delimited JSON: the orchestrator owns
scenarios and recording intent, the helper owns input synthesis and screen
sampling.
"""

__version__ = "0.1.0"
