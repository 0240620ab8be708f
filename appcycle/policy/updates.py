# Copyright 2025 Roger Cibrian
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.


"""Update decision policy for AppCycle.

Decides whether a freshly resolved version must be published by comparing
it with the Win32 apps already present in the Intune catalog.

Matching is by display-name PREFIX, not equality, so catalog entries named
with a version suffix ("Igor Pavlov 7-Zip 22.01") still count as the same
application. Among the matching entries the highest version wins. An entry's
version is its `displayVersion`; when that is empty, the text after the
prefix in `displayName` is used instead. Entries whose version cannot be
normalized are skipped and logged.

Example:
    Check if a new version should be published:

        from appcycle.policy import needs_update

        if needs_update(resolved, "Igor Pavlov 7-Zip", client):
            print("Publishing", resolved.version)

"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any

from appcycle.catalog.base import CatalogClient
from appcycle.exceptions import ComparisonError
from appcycle.logging import get_global_logger
from appcycle.models import ResolvedVersion
from appcycle.versioning import comparable_version, compare_versions, is_newer


def _entry_version(entry: dict[str, Any], display_name: str) -> str:
    version = str(entry.get("displayVersion") or "").strip()
    if version:
        return version
    return str(entry.get("displayName") or "")[len(display_name) :].strip()


def latest_published_version(
    entries: Iterable[dict[str, Any]], display_name: str
) -> str | None:
    """Return the highest version among catalog entries matching the prefix.

    Args:
        entries: win32LobApp objects as returned by the catalog.
        display_name: Version-less display name used as prefix.

    Returns:
        The highest comparable version, or None when nothing matches (or
        no matching entry carries a usable version).

    """
    logger = get_global_logger()
    latest: str | None = None
    for entry in entries:
        name = str(entry.get("displayName") or "")
        if not name.startswith(display_name):
            continue
        raw = _entry_version(entry, display_name)
        try:
            version = comparable_version(raw)
        except ComparisonError:
            logger.verbose(
                "UPDATE", f"Skipping catalog entry {name!r}: version {raw!r} is not numeric"
            )
            continue
        if latest is None or compare_versions(version, latest) > 0:
            latest = version
    return latest


def needs_update(
    resolved: ResolvedVersion, display_name: str, client: CatalogClient
) -> bool:
    """Decide whether the resolved version is newer than anything published.

    Args:
        resolved: Version produced by the version resolver.
        display_name: Version-less display name of the application.
        client: Catalog client used to list Win32 apps.

    Returns:
        True if no matching catalog entry exists or the resolved version is
        strictly newer than the highest published one.

    Raises:
        CatalogQueryError: If the catalog cannot be queried (not the same as
            "no match"; the caller aborts this application only).
        ComparisonError: If the resolved version cannot be normalized.

    """
    logger = get_global_logger()
    remote = comparable_version(resolved.version)
    current = latest_published_version(client.list_win32_apps(), display_name)

    if current is None:
        logger.verbose("UPDATE", f"{display_name}: not in catalog yet")
        return True

    newer = is_newer(remote, current)
    logger.verbose(
        "UPDATE",
        f"{display_name}: resolved {remote}, published {current} -> "
        f"{'update' if newer else 'up to date'}",
    )
    return newer
