"""Per-job-kind mappings between pipeline inputs and the 3D service's JSON.

Each adapter knows three things about its job kind: how to build the create
request, how to read the service's status payload into a :class:`JobStatus`,
and where the terminal result lives. Cadence and attempt budget come from
:class:`~robotforge.config.PollSettings`.
"""

from __future__ import annotations

import base64
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any, ClassVar

from pydantic import ValidationError

from robotforge.errors import DecodeError
from robotforge.models import JobKind, JobState, JobStatus

if TYPE_CHECKING:
    from robotforge.config import PollSettings


def image_data_uri(data: bytes, mime_type: str = "image/png") -> str:
    """Inline *data* as a ``data:`` URI accepted by the image-to-3D endpoint."""
    return f"data:{mime_type};base64,{base64.b64encode(data).decode('ascii')}"


class StageAdapter(ABC):
    """Shape of one remote job kind."""

    kind: ClassVar[JobKind]
    label: ClassVar[str]
    create_path: ClassVar[str]

    def __init__(self, *, interval: float, max_attempts: int = 120) -> None:
        self.interval = interval
        self.max_attempts = max_attempts

    def status_path(self, handle: str) -> str:
        return f"{self.create_path}/{handle}"

    @abstractmethod
    def build_request(self, **inputs: Any) -> dict[str, Any]:
        """Build the create-job body from upstream stage outputs."""

    @abstractmethod
    def extract_result(self, handle: str, payload: dict[str, Any]) -> str:
        """Pull the stage result out of a ``SUCCEEDED`` payload."""

    def interpret(self, handle: str, payload: dict[str, Any]) -> JobStatus:
        """Translate a raw status payload into the common :class:`JobStatus`."""
        raw_state = payload.get("status")
        try:
            state = JobState(str(raw_state).upper())
        except ValueError:
            msg = f"Unknown status for {self.label} task {handle}: {raw_state!r}"
            raise DecodeError(msg) from None

        if state is JobState.SUCCEEDED:
            return JobStatus.succeeded(self.extract_result(handle, payload))
        if state is JobState.FAILED:
            return JobStatus.failed(_error_message(payload))
        if state is JobState.CANCELED:
            return JobStatus.canceled(_error_message(payload))
        raw_progress = payload.get("progress")
        try:
            return JobStatus(state=state, progress=raw_progress or 0)
        except ValidationError:
            msg = f"Invalid progress for {self.label} task {handle}: {raw_progress!r}"
            raise DecodeError(msg) from None


class MeshAdapter(StageAdapter):
    """Image to 3D: concept image in, base mesh GLB URL out."""

    kind = JobKind.IMAGE_TO_3D
    label = "Image to 3D"
    create_path = "/image-to-3d"

    def build_request(self, *, image_url: str, enable_pbr: bool = True) -> dict[str, Any]:  # type: ignore[override]
        return {"image_url": image_url, "enable_pbr": enable_pbr}

    def extract_result(self, handle: str, payload: dict[str, Any]) -> str:
        glb = (payload.get("model_urls") or {}).get("glb")
        if not glb:
            msg = f"{self.label} task {handle} succeeded but no GLB URL found in response"
            raise DecodeError(msg)
        return str(glb)


class RigAdapter(StageAdapter):
    """Rigging: mesh job id in; the rig job id itself is the result."""

    kind = JobKind.RIGGING
    label = "Rigging"
    create_path = "/rigging"

    def build_request(self, *, input_task_id: str) -> dict[str, Any]:  # type: ignore[override]
        return {"input_task_id": input_task_id}

    def extract_result(self, handle: str, payload: dict[str, Any]) -> str:
        return handle


class AnimationAdapter(StageAdapter):
    """Animation: rig job id plus action selector in, animated GLB URL out."""

    kind = JobKind.ANIMATION
    label = "Animation"
    create_path = "/animations"

    def build_request(self, *, rig_task_id: str, action_id: int) -> dict[str, Any]:  # type: ignore[override]
        return {"rig_task_id": rig_task_id, "action_id": int(action_id)}

    def extract_result(self, handle: str, payload: dict[str, Any]) -> str:
        result = payload.get("result")
        if not isinstance(result, dict):
            msg = f"{self.label} task {handle} succeeded but result object is missing"
            raise DecodeError(msg)
        url = result.get("animation_glb_url")
        if not url:
            msg = f"{self.label} task {handle} succeeded but animation_glb_url is missing"
            raise DecodeError(msg)
        return str(url)


class StageAdapters:
    """The three adapters configured from one set of poll settings."""

    def __init__(self, poll: PollSettings) -> None:
        self.mesh = MeshAdapter(interval=poll.mesh_interval, max_attempts=poll.max_attempts)
        self.rigging = RigAdapter(interval=poll.rigging_interval, max_attempts=poll.max_attempts)
        self.animation = AnimationAdapter(
            interval=poll.animation_interval, max_attempts=poll.max_attempts,
        )


def _error_message(payload: dict[str, Any]) -> str | None:
    error = payload.get("task_error")
    if isinstance(error, dict):
        message = error.get("message")
        if message:
            return str(message)
    return None
