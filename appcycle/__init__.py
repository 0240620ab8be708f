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


"""
AppCycle - Win32 application lifecycle automation for Microsoft Intune.

AppCycle keeps third-party Win32 applications in Intune current. For every
application on the app list it resolves the latest vendor version, compares
it with what the Intune catalog already holds, and for newer versions
downloads the installer, packages it with IntuneWinAppUtil.exe, publishes
it through Microsoft Graph and creates the declared assignments.

Quick Start
-----------
Validate the app list and manifests:

    $ appcycle validate --config appcycle.yaml

See which applications have a new version:

    $ appcycle check --config appcycle.yaml

Run the whole pipeline:

    $ appcycle run --config appcycle.yaml

Package Structure
-----------------
cli : module
    Command-line interface with argparse.
core : module
    Pipeline orchestration.
pipeline : module
    The five stage functions.
config : package
    Settings, app list and App.json loading.
discovery : package
    Version sources (CatalogLookup, PackageManager, ReleaseAsset, DirectUrl).
versioning : package
    Version normalization and comparison.
policy : package
    Catalog-based change detection.
rules, assignments, publish : modules
    Translation of App.json into Microsoft Graph objects.
catalog : package
    Microsoft Graph catalog client.
build : package
    .intunewin packaging.
io : package
    Installer download.

Public API
----------
    from appcycle.config import load_app_list, load_settings
    from appcycle.core import run_pipeline
    from appcycle.discovery import resolve_version
    from appcycle.validation import validate_app_list
    from appcycle.versioning import compare_versions, normalize_version
"""

__version__ = "0.1.0"
__author__ = "Roger Cibrian"
__description__ = "Win32 application lifecycle automation for Intune"

# Re-export commonly used functions for convenience
from appcycle.config import load_app_list, load_settings
from appcycle.core import run_pipeline
from appcycle.discovery import resolve_version
from appcycle.validation import validate_app_list
from appcycle.versioning import compare_versions, normalize_version

__all__ = [
    "__version__",
    "__author__",
    "__description__",
    "compare_versions",
    "load_app_list",
    "load_settings",
    "normalize_version",
    "resolve_version",
    "run_pipeline",
    "validate_app_list",
]
