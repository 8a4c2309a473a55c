"""Remote job status model."""

from __future__ import annotations

from pydantic import BaseModel, Field, field_validator

from robotforge.models.enums import JobState

TERMINAL_STATES = frozenset({JobState.SUCCEEDED, JobState.FAILED, JobState.CANCELED})


class JobStatus(BaseModel):
    """One observation of a remote job.

    ``result`` is only meaningful for ``SUCCEEDED`` and ``message`` only for
    ``FAILED``/``CANCELED``.
    """

    state: JobState
    progress: int = Field(default=0, ge=0, le=100)
    result: str | None = None
    message: str | None = None

    @field_validator("progress", mode="before")
    @classmethod
    def _clamp_progress(cls, value: object) -> object:
        if value is None:
            return 0
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return max(0, min(100, int(value)))
        return value

    @property
    def is_terminal(self) -> bool:
        return self.state in TERMINAL_STATES

    @classmethod
    def pending(cls) -> JobStatus:
        return cls(state=JobState.PENDING)

    @classmethod
    def in_progress(cls, progress: int) -> JobStatus:
        return cls(state=JobState.IN_PROGRESS, progress=progress)

    @classmethod
    def succeeded(cls, result: str) -> JobStatus:
        return cls(state=JobState.SUCCEEDED, progress=100, result=result)

    @classmethod
    def failed(cls, message: str | None = None) -> JobStatus:
        return cls(state=JobState.FAILED, message=message)

    @classmethod
    def canceled(cls, message: str | None = None) -> JobStatus:
        return cls(state=JobState.CANCELED, message=message)
