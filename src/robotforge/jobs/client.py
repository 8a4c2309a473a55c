"""Submit / status / wait for one job kind against the 3D service."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from robotforge.jobs.poll import poll_until_terminal

if TYPE_CHECKING:
    import asyncio

    from robotforge.backend.base import MeshService, ProgressCallback
    from robotforge.jobs.stages import StageAdapter
    from robotforge.models import JobKind, JobStatus

logger = logging.getLogger(__name__)


class RemoteJobClient:
    """Generic lifecycle of a remote job, specialised by a :class:`StageAdapter`.

    ``submit`` never retries; ``wait`` polls with the adapter's cadence and
    attempt budget.
    """

    def __init__(self, service: MeshService, adapter: StageAdapter) -> None:
        self.service = service
        self.adapter = adapter

    @property
    def label(self) -> str:
        return self.adapter.label

    @property
    def kind(self) -> JobKind:
        return self.adapter.kind

    async def submit(self, **inputs: Any) -> str:
        """Create the job and return its handle."""
        body = self.adapter.build_request(**inputs)
        handle = await self.service.create_task(self.adapter.create_path, body)
        logger.info("Submitted %s task %s", self.label, handle)
        return handle

    async def fetch_status(self, handle: str) -> JobStatus:
        """Single status check."""
        payload = await self.service.get_task(self.adapter.status_path(handle))
        return self.adapter.interpret(handle, payload)

    async def wait(
        self,
        handle: str,
        *,
        on_progress: ProgressCallback | None = None,
        cancel: asyncio.Event | None = None,
        label: str | None = None,
    ) -> str:
        """Poll *handle* until terminal and return the stage result.

        *label* replaces the adapter label in log lines and errors, for callers
        running several jobs of one kind side by side.
        """
        return await poll_until_terminal(
            self.fetch_status,
            handle,
            label=label or self.label,
            interval=self.adapter.interval,
            max_attempts=self.adapter.max_attempts,
            on_progress=on_progress,
            cancel=cancel,
        )

    async def run(
        self,
        *,
        on_progress: ProgressCallback | None = None,
        cancel: asyncio.Event | None = None,
        **inputs: Any,
    ) -> tuple[str, str]:
        """Submit then wait. Returns ``(handle, result)``."""
        handle = await self.submit(**inputs)
        result = await self.wait(handle, on_progress=on_progress, cancel=cancel)
        return handle, result
