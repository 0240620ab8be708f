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


"""Configuration loading for AppCycle.

This module loads the three inputs of a run:

  - Settings (appcycle.yaml), deep-merged over built-in defaults and
    APPCYCLE_* environment variables
  - The master application list (appList.json)
  - Per-application manifests (<apps_root>/<AppFolderName>/App.json)

Public API:

- load_settings: Load the effective Settings
- load_app_list: Load and validate the application list
- load_manifest: Load and validate one App.json
- Settings: Frozen settings dataclass

Example:
    Basic usage:

        from pathlib import Path
        from appcycle.config import load_app_list, load_manifest, load_settings

        settings = load_settings(Path("appcycle.yaml"))
        for descriptor in load_app_list(settings.app_list):
            manifest = load_manifest(settings.apps_root, descriptor.app_folder)

"""

from .loader import (
    Settings,
    load_app_list,
    load_manifest,
    load_settings,
    parse_descriptor,
)

__all__ = [
    "Settings",
    "load_app_list",
    "load_manifest",
    "load_settings",
    "parse_descriptor",
]
