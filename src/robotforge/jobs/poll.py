"""Generic poll loop: fetch a job's status on a fixed cadence until it is terminal."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING

from robotforge.errors import (
    DecodeError,
    JobTimeout,
    PipelineCancelled,
    TerminalFailure,
    TransientFetchError,
)
from robotforge.models import JobState

if TYPE_CHECKING:
    from robotforge.backend.base import ProgressCallback
    from robotforge.models import JobStatus

logger = logging.getLogger(__name__)

StatusFetcher = Callable[[str], Awaitable["JobStatus"]]


async def poll_until_terminal(
    fetch: StatusFetcher,
    handle: str,
    *,
    label: str,
    interval: float,
    max_attempts: int,
    on_progress: ProgressCallback | None = None,
    cancel: asyncio.Event | None = None,
) -> str:
    """Poll *handle* until it succeeds, fails, or the attempt budget runs out.

    Every fetch counts as one attempt, including fetches that raise
    :class:`TransientFetchError`; those are logged and retried. Any other
    error from *fetch* propagates immediately.

    Parameters
    ----------
    fetch:
        Single status check for a handle.
    handle:
        The job to poll.
    label:
        Human-readable job kind, used in log lines and errors.
    interval:
        Seconds to wait between fetches.
    max_attempts:
        Maximum number of fetches.
    on_progress:
        Called with the 0-100 progress of every non-terminal observation.
    cancel:
        When set, the loop stops at its next sleep with ``PipelineCancelled``.

    Returns
    -------
    str
        The stage result carried by the ``SUCCEEDED`` status.
    """
    for attempt in range(1, max_attempts + 1):
        _raise_if_cancelled(cancel, label, handle)
        try:
            status = await fetch(handle)
        except TransientFetchError as exc:
            logger.warning(
                "Transient error polling %s task %s (attempt %d/%d): %s",
                label, handle, attempt, max_attempts, exc,
            )
        else:
            if status.state is JobState.SUCCEEDED:
                if status.result is None:
                    msg = f"{label} task {handle} succeeded but returned no result"
                    raise DecodeError(msg)
                logger.info("%s task %s succeeded after %d attempts", label, handle, attempt)
                return status.result
            if status.state is JobState.FAILED:
                raise TerminalFailure(label, handle, status.message)
            if status.state is JobState.CANCELED:
                raise TerminalFailure(label, handle, status.message, canceled=True)
            _notify(on_progress, status.progress)

        if attempt < max_attempts:
            await _sleep(interval, cancel, label, handle)

    raise JobTimeout(label, handle, max_attempts)


def _notify(on_progress: ProgressCallback | None, progress: int) -> None:
    if on_progress is None:
        return
    try:
        on_progress(progress)
    except Exception:  # noqa: BLE001
        logger.debug("Progress callback failed", exc_info=True)


def _raise_if_cancelled(cancel: asyncio.Event | None, label: str, handle: str) -> None:
    if cancel is not None and cancel.is_set():
        msg = f"Cancelled while waiting for {label} task {handle}"
        raise PipelineCancelled(msg)


async def _sleep(interval: float, cancel: asyncio.Event | None, label: str, handle: str) -> None:
    if cancel is None:
        await asyncio.sleep(interval)
        return
    _raise_if_cancelled(cancel, label, handle)
    try:
        await asyncio.wait_for(cancel.wait(), timeout=interval)
    except TimeoutError:
        return
    _raise_if_cancelled(cancel, label, handle)
