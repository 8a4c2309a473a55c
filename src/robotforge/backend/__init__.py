"""External service backends."""

from robotforge.backend.base import MeshService, ProgressCallback, TextImageService
from robotforge.backend.gemini import GeminiBackend
from robotforge.backend.meshy import MeshyBackend
from robotforge.backend.mock import MockMeshBackend, MockTextBackend

__all__ = [
    "GeminiBackend",
    "MeshService",
    "MeshyBackend",
    "MockMeshBackend",
    "MockTextBackend",
    "ProgressCallback",
    "TextImageService",
]
