"""Execution orchestrator: containerized or native run of one invocation."""

from .orchestrator import Orchestrator, State
from .relay import StreamRelay

__all__ = [
    "Orchestrator",
    "State",
    "StreamRelay",
]
