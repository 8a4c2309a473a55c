"""RobotForge data models - pure Pydantic, no I/O."""

from robotforge.models.enums import AnimationAction, EventKind, JobKind, JobState
from robotforge.models.events import ProgressEvent
from robotforge.models.jobs import TERMINAL_STATES, JobStatus
from robotforge.models.robot import RobotRecord, RobotStats

__all__ = [
    "TERMINAL_STATES",
    "AnimationAction",
    "EventKind",
    "JobKind",
    "JobState",
    "JobStatus",
    "ProgressEvent",
    "RobotRecord",
    "RobotStats",
]
