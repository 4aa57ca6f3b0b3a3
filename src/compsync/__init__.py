"""Bidirectional sync between component manifests and bundle field schemas."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("component-sync")
except PackageNotFoundError:
    __version__ = "0.0.0"
