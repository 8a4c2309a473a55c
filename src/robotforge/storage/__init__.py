"""Asset files and the finished-robot store."""

from robotforge.storage.assets import AssetMaterializer, FileAssetStore
from robotforge.storage.repository import (
    ResultRepository,
    RobotRepository,
    get_repository,
    reset_repository,
)

__all__ = [
    "AssetMaterializer",
    "FileAssetStore",
    "ResultRepository",
    "RobotRepository",
    "get_repository",
    "reset_repository",
]
