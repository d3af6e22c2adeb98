"""Build information of the gateway."""

from __future__ import annotations

import platform
import sys
from importlib import metadata

PROGRAM = "pqgateway"

VERSION = "unknown"
REVISION = "unknown"
BRANCH = "unknown"
BUILD_USER = "unknown"
BUILD_DATE = "unknown"


def get_version() -> str:
    """Return the version, falling back to the installed distribution's version."""
    if VERSION != "unknown":
        return VERSION
    try:
        return metadata.version(PROGRAM)
    except metadata.PackageNotFoundError:
        return "unknown"


def get_revision() -> str:
    return REVISION


def get_branch() -> str:
    return BRANCH


def get_build_user() -> str:
    return BUILD_USER


def get_build_date() -> str:
    return BUILD_DATE


def user_agent() -> str:
    """Return a user agent string for outgoing HTTP requests."""
    return f"{PROGRAM}/{get_version()}"


def _platform() -> str:
    return f"{sys.platform}/{platform.machine() or 'unknown'}"


def info() -> str:
    """Return version, branch and revision information."""
    return f"(version={get_version()}, branch={get_branch()}, revision={get_revision()})"


def build_context() -> str:
    """Return build context information."""
    return (
        f"(python={platform.python_version()}, platform={_platform()}, "
        f"user={get_build_user()}, date={get_build_date()})"
    )


def print_version() -> str:
    """Return a multi-line description of the build."""
    return (
        f"{PROGRAM}, version {get_version()} "
        f"(branch: {get_branch()}, revision: {get_revision()})\n"
        f"  build user:       {get_build_user()}\n"
        f"  build date:       {get_build_date()}\n"
        f"  python version:   {platform.python_version()}\n"
        f"  platform:         {_platform()}"
    )