"""
Version information for the specforge package.

Import VERSION_INFO for programmatic access to version components.
"""

from __future__ import annotations

VERSION_MAJOR = 0
VERSION_MINOR = 3
VERSION_PATCH = 0
VERSION_SUFFIX = ""  # e.g., "a1", "b2", "rc1", or "" for final

VERSION_INFO = (VERSION_MAJOR, VERSION_MINOR, VERSION_PATCH)
__version__ = f"{VERSION_MAJOR}.{VERSION_MINOR}.{VERSION_PATCH}"
if VERSION_SUFFIX:
    __version__ += VERSION_SUFFIX

PACKAGE_NAME = "specforge"

# Bumped whenever the artifact JSON layout changes
ARTIFACT_SCHEMA_VERSION = "1.0"


def get_version() -> str:
    """Return the current version string."""
    return __version__


__all__ = [
    "__version__",
    "VERSION_INFO",
    "PACKAGE_NAME",
    "ARTIFACT_SCHEMA_VERSION",
    "get_version",
]
