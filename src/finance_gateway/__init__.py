"""Capability-aware multi-provider financial gateway."""

__version__ = "0.1.0"
