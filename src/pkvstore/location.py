"""Resolve the directory an on-disk backend stores its file in.

A location is either the platform's per-user data directory for an
(qualifier, organization, application) triple, or an explicit path. The
per-OS conventions are:

- Linux and other Unix: ``$XDG_DATA_HOME/<application>`` with the
  application name lowercased and stripped of whitespace
- macOS: ``~/Library/Application Support/<qualifier>.<organization>.<application>``
- Windows: ``%APPDATA%\\<organization>\\<application>``
"""

import sys
from pathlib import Path
from typing import Optional, Union

from platformdirs import PlatformDirs
from pydantic import BaseModel, ConfigDict

from pkvstore.errors import StoreOpenError
from pkvstore.observability.logging import get_logger

logger = get_logger(__name__)


class PlatformDefault(BaseModel):
    """Platform convention location derived from application identity.

    Attributes:
        qualifier: Reverse-DNS prefix such as "com" or "org" (optional)
        organization: Vendor or organization name
        application: Application name
    """

    model_config = ConfigDict(frozen=True)

    qualifier: Optional[str] = None
    organization: str
    application: str


class CustomPath(BaseModel):
    """Explicit directory chosen by the caller."""

    model_config = ConfigDict(frozen=True)

    path: Path


Location = Union[PlatformDefault, CustomPath]


def _bundle_part(part: Optional[str]) -> str:
    return "-".join((part or "").split())


def platform_data_dir(
    qualifier: Optional[str],
    organization: str,
    application: str,
    platform: Optional[str] = None,
) -> Optional[Path]:
    """Compute the per-user data directory for an application.

    Args:
        qualifier: Reverse-DNS prefix (used on macOS only)
        organization: Vendor name (used on macOS and Windows)
        application: Application name
        platform: Override for ``sys.platform`` (mainly for tests)

    Returns:
        Data directory, or None when the convention yields no usable name
    """
    platform = platform or sys.platform

    if platform == "darwin":
        parts = [_bundle_part(p) for p in (qualifier, organization, application)]
        if not parts[2]:
            return None
        dirs = PlatformDirs(appname=".".join(p for p in parts if p), appauthor=False)
    elif platform.startswith("win"):
        app_name = application.strip()
        if not app_name:
            return None
        dirs = PlatformDirs(
            appname=app_name, appauthor=organization.strip() or False, roaming=True
        )
    else:
        app_name = "".join(application.split()).lower()
        if not app_name:
            return None
        dirs = PlatformDirs(appname=app_name, appauthor=False)

    return Path(dirs.user_data_dir)


def resolve_location(location: Location, create: bool = True) -> Path:
    """Resolve a location to a directory, creating it when asked.

    A platform default that cannot be computed falls back to the current
    working directory without raising; callers that need isolated storage
    should pass a ``CustomPath``.

    Args:
        location: Platform default or explicit path
        create: Create the directory (and parents) if missing

    Returns:
        Directory path

    Raises:
        StoreOpenError: If the directory cannot be created
    """
    if isinstance(location, CustomPath):
        directory = location.path.expanduser()
    else:
        try:
            directory = platform_data_dir(
                location.qualifier, location.organization, location.application
            )
        except (OSError, ValueError, KeyError) as exc:
            logger.warning("platform_dir_resolution_failed", error=str(exc))
            directory = None

        if directory is None:
            directory = Path.cwd()
            logger.info(
                "location_fallback_to_cwd",
                organization=location.organization,
                application=location.application,
                directory=str(directory),
            )

    if create:
        try:
            directory.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise StoreOpenError(
                f"Failed to create store directory: {exc}", directory=str(directory)
            ) from exc

    return directory
