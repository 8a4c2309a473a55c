"""Enumerations used throughout RobotForge."""

from enum import IntEnum, StrEnum


class JobState(StrEnum):
    PENDING = "PENDING"
    IN_PROGRESS = "IN_PROGRESS"
    SUCCEEDED = "SUCCEEDED"
    FAILED = "FAILED"
    CANCELED = "CANCELED"


class JobKind(StrEnum):
    IMAGE_TO_3D = "image_to_3d"
    RIGGING = "rigging"
    ANIMATION = "animation"


class AnimationAction(IntEnum):
    """Action selectors from the 3D service's animation library."""

    IDLE = 0
    ATTACK = 92


class EventKind(StrEnum):
    PROGRESS = "progress"
    STATS = "stats"
    IMAGES = "images"
