"""RobotForge - turn a single photo into a rigged, animated 3D robot."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("robotforge")
except PackageNotFoundError:
    __version__ = "unknown"
