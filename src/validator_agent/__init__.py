"""Standalone runner for the cluster validator."""

from .config import AgentConfig, load_config  # noqa: F401
from .snapshot import Snapshot, load_snapshot  # noqa: F401

__all__ = [
    "AgentConfig",
    "Snapshot",
    "load_config",
    "load_snapshot",
]
