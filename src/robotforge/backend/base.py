"""Backend protocols and shared types for the two external services."""

from __future__ import annotations

from collections.abc import Callable
from typing import TYPE_CHECKING, Any, Protocol, TypeAlias, runtime_checkable

if TYPE_CHECKING:
    from robotforge.models import RobotStats


@runtime_checkable
class TextImageService(Protocol):
    """Multimodal generation service: photo to stats, prompt to image."""

    async def connect(self) -> None:
        """Prepare clients and resolve credentials."""
        ...

    async def disconnect(self) -> None:
        """Release any open connections."""
        ...

    async def generate_stats(self, image_b64: str) -> RobotStats:
        """Derive robot stats and a visual prompt from a base64 photo."""
        ...

    async def generate_image(self, prompt: str) -> bytes:
        """Synthesize a concept image and return its raw bytes."""
        ...


@runtime_checkable
class MeshService(Protocol):
    """3D asset service: long-running jobs plus plain downloads.

    ``create_task`` raises :class:`~robotforge.errors.SubmitError`;
    ``get_task`` raises :class:`~robotforge.errors.FetchError` subclasses.
    """

    async def connect(self) -> None:
        ...

    async def disconnect(self) -> None:
        ...

    async def is_available(self) -> bool:
        """Check if the service is reachable and credentials are set."""
        ...

    async def create_task(self, path: str, body: dict[str, Any]) -> str:
        """Create a job and return its handle."""
        ...

    async def get_task(self, path: str) -> dict[str, Any]:
        """Return the raw status payload for a job."""
        ...

    async def download(self, url: str) -> bytes:
        """Fetch a finished asset."""
        ...


# Callback type for poll progress updates
ProgressCallback: TypeAlias = Callable[[int], None]  # (percent)
