"""Error taxonomy for the generation pipeline.

Every failure surfaced by :class:`~robotforge.pipeline.orchestrator.PipelineOrchestrator`
is a :class:`PipelineError`; ``str(error)`` is the human-readable message shown
to the user.
"""

from __future__ import annotations

from enum import StrEnum


class PipelineError(Exception):
    """Base class for all pipeline failures."""


class ConfigError(PipelineError):
    """A required setting (usually an API key) is missing or invalid."""


class SubmitReason(StrEnum):
    AUTH_MISSING = "auth_missing"
    TRANSPORT = "transport"
    SERVICE = "service"


class SubmitError(PipelineError):
    """Creating a remote job failed. Never retried."""

    def __init__(
        self,
        message: str,
        *,
        reason: SubmitReason,
        status_code: int | None = None,
        body: str = "",
    ) -> None:
        super().__init__(message)
        self.reason = reason
        self.status_code = status_code
        self.body = body


class FetchError(PipelineError):
    """A status check failed in a way that retrying will not fix."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class TransientFetchError(FetchError):
    """Transport failure or 5xx/429 while polling; retried within the attempt budget."""


class DecodeError(FetchError):
    """A response finished but its payload is unusable."""


class TerminalFailure(PipelineError):
    """The remote job reported FAILED or CANCELED.

    ``remote_message`` is the service's own error text, unmodified, or ``None``
    when the service gave none.
    """

    def __init__(
        self,
        label: str,
        handle: str,
        remote_message: str | None = None,
        *,
        canceled: bool = False,
    ) -> None:
        outcome = "was canceled" if canceled else "failed"
        detail = remote_message or f"{label} task {handle} {outcome}"
        super().__init__(f"{label} task {outcome}: {detail}")
        self.label = label
        self.handle = handle
        self.remote_message = remote_message
        self.canceled = canceled


class JobTimeout(PipelineError):
    """The poll attempt budget ran out before the job reached a terminal state."""

    def __init__(self, label: str, handle: str, attempts: int) -> None:
        super().__init__(
            f"Timeout waiting for {label} task {handle} after {attempts} attempts"
        )
        self.label = label
        self.handle = handle
        self.attempts = attempts


class ServiceError(PipelineError):
    """The text/image generation service call failed."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class AssetError(PipelineError):
    """Downloading or writing a binary asset failed."""


class StorageError(PipelineError):
    """The result repository rejected an operation."""


class PipelineCancelled(PipelineError):
    """The caller asked the run to stop."""
