"""Self-update check against the Python package index.

The installed distribution is compared with the newest release listed by
the index's JSON API; updating reinstalls the distribution with pip.
"""

from __future__ import annotations

import logging
import sys
from dataclasses import dataclass
from typing import Any

import httpx
from packaging.version import InvalidVersion, Version

from scope import __version__
from scope.utils.shell import run_interactive

logger = logging.getLogger(__name__)

DISTRIBUTION_NAME = "scope-tui"
INDEX_URL = f"https://pypi.org/pypi/{DISTRIBUTION_NAME}/json"


class UpdateCheckError(Exception):
    """Raised when the latest release cannot be determined or installed."""


@dataclass(frozen=True, slots=True)
class ReleaseInfo:
    """Comparison of the running version with the latest release.

    Attributes:
        current: Version of the running installation.
        latest: Newest non-prerelease version on the index.
        url: Project page of the latest release.
    """

    current: Version
    latest: Version
    url: str

    @property
    def update_available(self) -> bool:
        return self.latest > self.current


def check_latest_version(
    *,
    timeout: float = 10.0,
    current: str = __version__,
    client: httpx.Client | None = None,
) -> ReleaseInfo:
    """Look up the newest release of scope on the package index.

    Args:
        timeout: Request timeout in seconds.
        current: Version to compare against (the running version).
        client: HTTP client to use; a short-lived one is created if None.

    Returns:
        ReleaseInfo for the running and the latest version.

    Raises:
        UpdateCheckError: If the index cannot be reached or its answer
            cannot be understood.
    """
    try:
        if client is None:
            with httpx.Client(timeout=timeout, follow_redirects=True) as own_client:
                response = own_client.get(INDEX_URL)
        else:
            response = client.get(INDEX_URL, timeout=timeout)
        response.raise_for_status()
        payload = response.json()
    except httpx.HTTPStatusError as e:
        msg = f"Package index returned HTTP {e.response.status_code}"
        raise UpdateCheckError(msg) from e
    except httpx.HTTPError as e:
        msg = f"Could not reach the package index: {e}"
        raise UpdateCheckError(msg) from e
    except ValueError as e:
        msg = "Package index returned invalid JSON"
        raise UpdateCheckError(msg) from e

    latest = _latest_release(payload)
    try:
        current_version = Version(current)
    except InvalidVersion as e:
        msg = f"Invalid installed version: {current}"
        raise UpdateCheckError(msg) from e

    info = payload.get("info") or {}
    url = info.get("release_url") or info.get("project_url") or INDEX_URL
    logger.debug("Installed %s, latest %s", current_version, latest)
    return ReleaseInfo(current=current_version, latest=latest, url=url)


def _latest_release(payload: dict[str, Any]) -> Version:
    """Pick the newest final release, skipping yanked and pre-releases."""
    releases = payload.get("releases")
    if not isinstance(releases, dict):
        version = (payload.get("info") or {}).get("version")
        if not version:
            msg = "Package index response has no release information"
            raise UpdateCheckError(msg)
        releases = {version: []}

    candidates: list[Version] = []
    for raw, files in releases.items():
        try:
            version = Version(raw)
        except InvalidVersion:
            logger.debug("Ignoring unparseable release %r", raw)
            continue
        if version.is_prerelease or version.is_devrelease:
            continue
        if files and all(f.get("yanked", False) for f in files):
            continue
        candidates.append(version)

    if not candidates:
        msg = "No releases found on the package index"
        raise UpdateCheckError(msg)
    return max(candidates)


def perform_update(release: ReleaseInfo) -> None:
    """Install the latest release with pip into the running interpreter.

    Raises:
        UpdateCheckError: If pip cannot be run or fails.
    """
    args = [
        sys.executable,
        "-m",
        "pip",
        "install",
        "--upgrade",
        f"{DISTRIBUTION_NAME}=={release.latest}",
    ]
    logger.info("Running %s", " ".join(args))
    try:
        returncode = run_interactive(args)
    except OSError as e:
        msg = f"Could not run pip: {e}"
        raise UpdateCheckError(msg) from e

    if returncode != 0:
        msg = f"pip exited with status {returncode}"
        raise UpdateCheckError(msg)
