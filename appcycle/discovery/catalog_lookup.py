"""
Evergreen catalog lookup source for AppCycle.

Queries the Evergreen API, which tracks the latest releases of several
hundred Windows applications, and picks the single release that matches
the app list entry's filter.

App List Configuration:

    {
      "IntuneAppName": "7-Zip",
      "AppPublisher": "Igor Pavlov",
      "AppSource": "CatalogLookup",
      "AppID": "7zip",
      "FilterOptions": {"Architecture": "x64", "Type": "msi"},
      "AppFolderName": "7-Zip"
    }

Filter Semantics:
    - Every key present in FilterOptions is an equality predicate
    - Predicates are AND-combined
    - Keys absent from FilterOptions are not checked at all (no "any"
      wildcard needed)
    - Comparison is case-insensitive on the string value
    - Supported keys: Architecture, Platform, Channel, Type, InstallerType,
      Language, Edition, Ring, Release, ImageType

Result Selection:
    - No release matches -> VersionNotFoundError
    - Exactly one release matches -> used
    - More than one release matches -> the first one in API order is used
      and a warning is logged so the filter can be tightened

Error Handling:
    - HTTP 404 from the API -> VersionNotFoundError (unknown AppID)
    - Other HTTP errors, timeouts, invalid JSON -> ResolutionError
"""

from __future__ import annotations

from typing import Any

import requests

from appcycle.exceptions import ResolutionError, VersionNotFoundError
from appcycle.logging import get_global_logger
from appcycle.models import FILTER_FIELDS, AppDescriptor, ResolvedVersion

from .base import DEFAULT_TIMEOUT, build_resolved, register_source

EVERGREEN_API_URL = "https://evergreen-api.stealthpuppy.com/app/{app_id}"


def _matches(release: dict[str, Any], filter_options: dict[str, str]) -> bool:
    """Return True when every filter predicate holds for the release."""
    for key, expected in filter_options.items():
        actual = release.get(key)
        if actual is None:
            return False
        if str(actual).strip().lower() != str(expected).strip().lower():
            return False
    return True


def select_release(
    releases: list[dict[str, Any]], filter_options: dict[str, str], app_name: str
) -> dict[str, Any]:
    """Pick the release matching the filter (first match wins).

    Args:
        releases: Release objects as returned by the Evergreen API.
        filter_options: Equality predicates (absent keys are not checked).
        app_name: Application name for log and error messages.

    Returns:
        The selected release object.

    Raises:
        VersionNotFoundError: If no release matches.
    """
    logger = get_global_logger()
    matches = [r for r in releases if _matches(r, filter_options)]
    if not matches:
        shown = ", ".join(f"{k}={v}" for k, v in filter_options.items()) or "(none)"
        raise VersionNotFoundError(
            f"No Evergreen release of {app_name!r} matches filter: {shown}"
        )
    if len(matches) > 1:
        logger.warning(
            app_name,
            f"Filter matched {len(matches)} releases, using the first one "
            f"(version {matches[0].get('Version')}); consider a narrower filter",
        )
    return matches[0]


class CatalogLookupSource:
    """Version source backed by the Evergreen API."""

    def resolve(
        self, descriptor: AppDescriptor, *, timeout: int = DEFAULT_TIMEOUT
    ) -> ResolvedVersion:
        """Query Evergreen and return the filtered release.

        Raises:
            VersionNotFoundError: If the app id is unknown or nothing matches.
            ResolutionError: On HTTP, timeout or JSON errors.
        """
        logger = get_global_logger()
        api_url = EVERGREEN_API_URL.format(app_id=descriptor.app_id)
        logger.verbose("RESOLVE", f"Strategy: CatalogLookup ({descriptor.app_id})")
        logger.debug("HTTP", f"GET {api_url}")

        try:
            response = requests.get(api_url, timeout=timeout)
            response.raise_for_status()
        except requests.exceptions.HTTPError as err:
            if response.status_code == 404:
                raise VersionNotFoundError(
                    f"Evergreen has no application {descriptor.app_id!r}"
                ) from err
            raise ResolutionError(
                f"Evergreen API request failed: {response.status_code} "
                f"{response.reason}"
            ) from err
        except requests.exceptions.RequestException as err:
            raise ResolutionError(f"Failed to query Evergreen API: {err}") from err

        try:
            payload = response.json()
        except ValueError as err:
            raise ResolutionError(
                f"Evergreen API returned invalid JSON for {descriptor.app_id!r}"
            ) from err

        releases = payload if isinstance(payload, list) else [payload]
        releases = [r for r in releases if isinstance(r, dict)]
        logger.debug("RESOLVE", f"Evergreen returned {len(releases)} release(s)")

        release = select_release(
            releases, descriptor.filter_options, descriptor.app_name
        )
        version = str(release.get("Version") or "").strip()
        uri = str(release.get("URI") or "").strip()
        if not version or not uri:
            raise ResolutionError(
                f"Evergreen release for {descriptor.app_id!r} lacks Version or URI"
            )

        reported_type = descriptor.installer_type or str(
            release.get("InstallerType") or release.get("Type") or ""
        )
        if reported_type.lower() not in ("msi", "exe"):
            reported_type = ""

        logger.verbose("RESOLVE", f"Version: {version}")
        logger.verbose("RESOLVE", f"URI: {uri}")
        return build_resolved(version, uri, "CatalogLookup", reported_type)

    def validate_descriptor(self, descriptor: AppDescriptor) -> list[str]:
        errors = []
        if not descriptor.app_id.strip():
            errors.append("CatalogLookup source requires 'AppID'")
        unknown = sorted(set(descriptor.filter_options) - set(FILTER_FIELDS))
        if unknown:
            errors.append(
                f"Unsupported FilterOptions key(s): {', '.join(unknown)}. "
                f"Supported: {', '.join(FILTER_FIELDS)}"
            )
        return errors


register_source("CatalogLookup", CatalogLookupSource)
