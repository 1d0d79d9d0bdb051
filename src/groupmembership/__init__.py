"""Resolve group membership from RFC 2307 LDAP directories."""

from importlib.metadata import PackageNotFoundError, version

__all__ = ["__version__"]

__version__: str
"""The version string of groupmembership."""

try:
    __version__ = version("groupmembership")
except PackageNotFoundError:
    # package is not installed
    __version__ = "0.0.0"
