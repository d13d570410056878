"""Metadata for the project."""

from importlib.metadata import PackageNotFoundError, metadata, version

__all__ = ("__project__", "__version__")

try:
    __version__ = version("data-api-client")
    """Version of the project."""
    __project__ = metadata("data-api-client")["Name"]
    """Name of the project."""
except PackageNotFoundError:  # pragma: no cover
    __version__ = "0.0.0"
    __project__ = "data-api-client"
finally:
    del version, PackageNotFoundError, metadata
