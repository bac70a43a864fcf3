"""Source-control diff and commit orchestration for git and svn."""

from importlib.metadata import version, PackageNotFoundError

try:
    __version__ = version("scmdiff")
except PackageNotFoundError:
    # Fallback for development mode
    __version__ = "0.0.0-dev"
