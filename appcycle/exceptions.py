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


"""Exception hierarchy for AppCycle.

This module defines a custom exception hierarchy that lets callers tell a
batch-halting problem (bad configuration, failed authentication) apart from
a failure that only affects one application in the current run.

All exceptions inherit from AppCycleError, allowing users to catch all
AppCycle errors with a single except clause if needed.

Per-application errors (the pipeline logs them and continues the batch):

- ResolutionError / VersionNotFoundError: a version source could not
    produce a version or download location.
- CatalogQueryError: the remote catalog could not be read or parsed.
- ComparisonError: a version string cannot be put into numeric form.
- TranslationError: a manifest rule has no Graph representation.
- AssignmentError: one assignment declaration cannot be resolved.
- PackagingError: IntuneWinAppUtil failed or produced no single package.

Batch-halting errors:

- ConfigError: settings, app list, or manifest problems found at load time.
- NetworkError: transport failures such as token acquisition.

Example:
    Catching specific error types:
        ```python
        from appcycle.discovery import resolve_version
        from appcycle.exceptions import ResolutionError, VersionNotFoundError

        try:
            resolved = resolve_version(descriptor)
        except VersionNotFoundError as e:
            print(f"No release found: {e}")
        except ResolutionError as e:
            print(f"Lookup failed: {e}")
        ```
"""

from __future__ import annotations

__all__ = [
    "AppCycleError",
    "ConfigError",
    "NetworkError",
    "CatalogQueryError",
    "ResolutionError",
    "VersionNotFoundError",
    "ComparisonError",
    "TranslationError",
    "AssignmentError",
    "PackagingError",
]


class AppCycleError(Exception):
    """Base exception for all AppCycle errors."""

    pass


class ConfigError(AppCycleError):
    """Raised for configuration-related errors.

    This exception is raised when there are problems with:

    - YAML settings parse errors or invalid setting values
    - App list entries missing the fields their source kind requires
    - Manifests with unknown rule kinds or detection methods
    - Missing app folders or manifest files

    Example:
        Catching configuration errors:
            ```python
            from appcycle.exceptions import ConfigError

            try:
                descriptors = load_app_list(Path("appList.json"))
            except ConfigError as e:
                print(f"Config error: {e}")
            ```
    """

    pass


class NetworkError(AppCycleError):
    """Raised for network-related errors.

    This exception is raised when there are problems with:

    - Installer download failures (HTTP errors, connection timeouts)
    - Token acquisition against Entra ID
    - Catalog write calls (creating apps, content versions, assignments)
    """

    pass


class CatalogQueryError(NetworkError):
    """Raised when the remote catalog cannot be queried.

    Distinct from "no matching entry": an empty result is a normal answer,
    while this error means the answer is unknown. The affected application
    is aborted; the rest of the batch continues.
    """

    pass


class ResolutionError(AppCycleError):
    """Raised when a version source cannot determine version or download URL."""

    pass


class VersionNotFoundError(ResolutionError):
    """Raised when a version source reports that nothing matched.

    Examples are an Evergreen filter that matches no release or winget
    answering "No package found matching input criteria."
    """

    pass


class ComparisonError(AppCycleError):
    """Raised when a version string cannot be normalized to dotted numbers."""

    pass


class TranslationError(AppCycleError):
    """Raised when a manifest cannot be translated into Graph objects.

    The publish step for the application is abandoned before any request is
    sent, so a malformed app object never reaches the catalog.
    """

    pass


class AssignmentError(AppCycleError):
    """Raised when a single assignment declaration cannot be resolved."""

    pass


class PackagingError(AppCycleError):
    """Raised for packaging/build-related errors.

    This exception is raised when there are problems with:

    - IntuneWinAppUtil.exe exiting with a nonzero status or timing out
    - No .intunewin file, or more than one, in the output folder
    - Missing setup file or source folder for an application

    Example:
        Catching packaging errors:
            ```python
            from appcycle.exceptions import PackagingError

            try:
                create_intunewin(source_dir, "setup.exe", output_dir)
            except PackagingError as e:
                print(f"Packaging error: {e}")
            ```
    """

    pass
