"""Remote job engine: stage adapters, the generic client and the poll loop."""

from robotforge.jobs.client import RemoteJobClient
from robotforge.jobs.poll import poll_until_terminal
from robotforge.jobs.stages import (
    AnimationAdapter,
    MeshAdapter,
    RigAdapter,
    StageAdapter,
    StageAdapters,
    image_data_uri,
)

__all__ = [
    "AnimationAdapter",
    "MeshAdapter",
    "RemoteJobClient",
    "RigAdapter",
    "StageAdapter",
    "StageAdapters",
    "image_data_uri",
    "poll_until_terminal",
]
