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


"""Version sources for AppCycle.

This package provides a pluggable strategy pattern for resolving the latest
version of a tracked application. Each app list entry names one source
kind, and exactly one source handles it.

Available Sources:
    CatalogLookup : CatalogLookupSource
        Evergreen API lookup with an AND-combined equality filter.
    PackageManager : PackageManagerSource
        `winget show` output parsed for version and installer URL.
    ReleaseAsset : ReleaseAssetSource
        GitHub release download URL built from repository, tag and file
        name. No API call; the tag is the version.
    DirectUrl : DirectUrlSource
        Version and URL taken verbatim from the app list.

Example:
    Resolve one descriptor:

        from appcycle.discovery import resolve_version

        resolved = resolve_version(descriptor, timeout=60)
        print(resolved.version, resolved.download_uri)
"""

# Import source modules to trigger self-registration
from . import (
    catalog_lookup,  # noqa: F401
    direct_url,  # noqa: F401
    package_manager,  # noqa: F401
    release_asset,  # noqa: F401
)
from .base import (
    DEFAULT_TIMEOUT,
    VersionSource,
    get_source,
    register_source,
    registered_sources,
    resolve_version,
)

__all__ = [
    "DEFAULT_TIMEOUT",
    "VersionSource",
    "get_source",
    "register_source",
    "registered_sources",
    "resolve_version",
]
