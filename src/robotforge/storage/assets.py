"""Write binary payloads to addressable files."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Protocol, runtime_checkable

from robotforge.errors import AssetError

logger = logging.getLogger(__name__)


@runtime_checkable
class AssetMaterializer(Protocol):
    """Persists bytes under a logical name and returns a stable path."""

    def save(self, data: bytes, name: str) -> Path:
        ...


class FileAssetStore:
    """Stores assets as plain files in one directory.

    Callers make names unique per run (the pipeline prefixes them with the
    mesh job id); an existing file with the same name is overwritten.
    """

    def __init__(self, root: Path) -> None:
        self.root = root

    def save(self, data: bytes, name: str) -> Path:
        if not name or name in {".", ".."} or "/" in name or "\\" in name:
            msg = f"Invalid asset name: {name!r}"
            raise AssetError(msg)
        try:
            self.root.mkdir(parents=True, exist_ok=True)
            path = self.root / name
            path.write_bytes(data)
        except OSError as exc:
            msg = f"Failed to write asset {name}: {exc}"
            raise AssetError(msg) from exc
        logger.info("Saved asset: %s (%d bytes)", path, len(data))
        return path.resolve()
