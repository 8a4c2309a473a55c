"""Progress events pushed to a ProgressSink."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field

from robotforge.models.enums import EventKind


class ProgressEvent(BaseModel):
    kind: EventKind = EventKind.PROGRESS
    message: str = ""
    source: str | None = None  # logical job name, e.g. "Idle"
    percent: int | None = None
    payload: dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def text(
        cls, message: str, *, source: str | None = None, percent: int | None = None,
    ) -> ProgressEvent:
        return cls(message=message, source=source, percent=percent)
