"""
Logging handlers for the supervisor.
"""

from .loki import LokiHandler

__all__ = ["LokiHandler"]
