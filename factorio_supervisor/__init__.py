"""
Supervisor for headless Factorio servers.

Launches the server, follows its output, decodes the IPC side channel that
scripts use to talk back, and derives the launch parameters it needs.
"""

__version__ = "0.1.0"
