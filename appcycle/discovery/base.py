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


"""Version source protocol and registry for AppCycle.

This module defines the foundational components for version resolution:

- VersionSource protocol: Interface that all sources must implement
- Source registry: Global dict mapping source kinds to implementations
- Registration and lookup functions: register_source() and get_source()
- resolve_version(): the single entry point the pipeline calls

Every app list entry names exactly one source kind:

- CatalogLookup: Evergreen API lookup with an optional equality filter
- PackageManager: winget package metadata
- ReleaseAsset: deterministic GitHub release download URL
- DirectUrl: version and URL taken verbatim from the app list

Design Philosophy:
    - Sources are Protocol classes (structural subtyping, not inheritance)
    - Registration happens at module import time (sources self-register)
    - Registry is a simple dict keyed by the source kind string
    - Each source is stateless and instantiated on demand

Example:
    Implementing a custom source:
        ```python
        from appcycle.discovery.base import register_source

        class StaticSource:
            def resolve(self, descriptor, *, timeout=60):
                return ResolvedVersion(...)

            def validate_descriptor(self, descriptor):
                return []

        register_source("Static", StaticSource)
        ```
"""

from __future__ import annotations

from pathlib import PurePosixPath
from typing import Protocol
from urllib.parse import unquote, urlparse

from appcycle.exceptions import ConfigError, ResolutionError
from appcycle.models import AppDescriptor, ResolvedVersion
from appcycle.versioning import comparable_version

# Conservative default for every external call made while resolving.
DEFAULT_TIMEOUT = 60


class VersionSource(Protocol):
    """Protocol for version sources."""

    def resolve(
        self, descriptor: AppDescriptor, *, timeout: int = DEFAULT_TIMEOUT
    ) -> ResolvedVersion:
        """Determine the latest version and download location.

        Args:
            descriptor: App list entry to resolve.
            timeout: Timeout in seconds for each external call.

        Returns:
            The resolved version.

        Raises:
            VersionNotFoundError: If the source reports no matching release.
            ResolutionError: On network, process or parse failures.
        """
        ...

    def validate_descriptor(self, descriptor: AppDescriptor) -> list[str]:
        """Check that the descriptor carries the fields this source needs.

        Must not make network calls.

        Returns:
            List of error messages. Empty list if the descriptor is valid.
        """
        ...


# -------------------------------
# Source Registry
# -------------------------------

_SOURCE_REGISTRY: dict[str, type[VersionSource]] = {}


def register_source(kind: str, source_class: type[VersionSource]) -> None:
    """Register a version source under its source kind.

    Registering the same kind twice overwrites the previous registration
    (allows monkey-patching for tests).
    """
    _SOURCE_REGISTRY[kind] = source_class


def get_source(kind: str) -> VersionSource:
    """Get a version source instance by kind from the global registry.

    Raises:
        ConfigError: If the kind is not registered. The error message lists
            the available kinds.
    """
    if kind not in _SOURCE_REGISTRY:
        available = ", ".join(_SOURCE_REGISTRY.keys())
        raise ConfigError(
            f"Unknown version source: {kind!r}. Available: {available or '(none)'}"
        )
    return _SOURCE_REGISTRY[kind]()


def registered_sources() -> list[str]:
    """Return the registered source kinds."""
    return list(_SOURCE_REGISTRY)


# -------------------------------
# Shared helpers
# -------------------------------


def installer_details(url: str, reported_type: str = "") -> tuple[str, str]:
    """Derive installer type and file extension from a download URL.

    Args:
        url: Installer download URL.
        reported_type: Installer type reported by the source, if any.

    Returns:
        A tuple (installer_type, file_extension), e.g. ("msi", ".msi").
    """
    suffix = PurePosixPath(unquote(urlparse(url).path)).suffix.lower()
    installer_type = (reported_type or "").strip().lower()
    if not installer_type:
        installer_type = "msi" if suffix == ".msi" else "exe"
    if not suffix:
        suffix = f".{installer_type}"
    return installer_type, suffix


def build_resolved(
    version: str, url: str, source: str, reported_type: str = ""
) -> ResolvedVersion:
    """Assemble a ResolvedVersion, normalizing the version for comparison.

    Raises:
        ComparisonError: If the version has no numeric form.
    """
    installer_type, extension = installer_details(url, reported_type)
    return ResolvedVersion(
        version=version,
        normalized_version=comparable_version(version),
        download_uri=url,
        installer_type=installer_type,
        file_extension=extension,
        source=source,
    )


def resolve_version(
    descriptor: AppDescriptor, *, timeout: int = DEFAULT_TIMEOUT
) -> ResolvedVersion:
    """Resolve the latest version of one tracked application.

    Args:
        descriptor: App list entry.
        timeout: Timeout in seconds for each external call.

    Returns:
        The resolved version.

    Raises:
        ConfigError: If the source kind is unknown.
        ResolutionError: If the source cannot produce a version.
    """
    source = get_source(descriptor.source)
    errors = source.validate_descriptor(descriptor)
    if errors:
        raise ResolutionError(f"{descriptor.app_name}: " + "; ".join(errors))
    return source.resolve(descriptor, timeout=timeout)
