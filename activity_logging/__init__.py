"""
Operator action trail for the night audit.
"""
from .actions import ActivityLogger

__all__ = ["ActivityLogger"]
