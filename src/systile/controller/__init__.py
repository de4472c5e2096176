"""
Controller that sequences jobs on the systolic grid.

This module contains:
- Orchestrator: IDLE / LOAD_WEIGHTS / COMPUTE / ADVANCE_TILE / DONE state machine
"""

from .orchestrator import (
    ControlListener,
    FsmState,
    JobContext,
    JobStats,
    Orchestrator,
    OrchestratorStatus,
)

__all__ = [
    "ControlListener",
    "FsmState",
    "JobContext",
    "JobStats",
    "Orchestrator",
    "OrchestratorStatus",
]
