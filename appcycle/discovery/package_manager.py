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


"""winget package manager source for AppCycle.

Runs `winget show` for the package id and reads version and installer
location from its key: value text output.

App List Configuration:

    {
      "IntuneAppName": "Notepad++",
      "AppPublisher": "Notepad++ Team",
      "AppSource": "PackageManager",
      "AppID": "Notepad++.Notepad++",
      "FilterOptions": {"Architecture": "x64"},
      "AppFolderName": "NotepadPlusPlus"
    }

FilterOptions keys passed through to winget:

- Architecture -> --architecture
- InstallerType -> --installer-type
- Language -> --locale

Sample output parsed:

    Found Notepad++ [Notepad++.Notepad++]
    Version: 8.6.2
    Publisher: Notepad++ Team
    Installer:
      Installer Type: nullsoft
      Installer Url: https://github.com/.../npp.8.6.2.Installer.x64.exe

"No package found matching input criteria." is treated as not found.
"""

from __future__ import annotations

import re
import shutil
import subprocess

from appcycle.exceptions import ResolutionError, VersionNotFoundError
from appcycle.logging import get_global_logger
from appcycle.models import AppDescriptor, ResolvedVersion

from .base import DEFAULT_TIMEOUT, build_resolved, register_source

NOT_FOUND_SENTINEL = "No package found matching input criteria"

_KEY_VALUE = re.compile(r"^\s*([A-Za-z][A-Za-z0-9 ]*?)\s*:\s*(.*?)\s*$")

_FILTER_ARGS = {
    "Architecture": "--architecture",
    "InstallerType": "--installer-type",
    "Language": "--locale",
}


def parse_winget_show(text: str) -> dict[str, str]:
    """Parse `winget show` output into a flat dict.

    Keys are lowercased; the first occurrence of a key wins, which keeps the
    package-level "Version" ahead of any nested field of the same name.

    Raises:
        VersionNotFoundError: If the output carries the not-found sentinel.
    """
    if NOT_FOUND_SENTINEL.lower() in text.lower():
        raise VersionNotFoundError(NOT_FOUND_SENTINEL)
    fields: dict[str, str] = {}
    for line in text.replace("\r\n", "\n").splitlines():
        match = _KEY_VALUE.match(line)
        if not match or not match.group(2):
            continue
        fields.setdefault(match.group(1).lower(), match.group(2))
    return fields


def build_show_command(executable: str, descriptor: AppDescriptor) -> list[str]:
    """Build the argv for `winget show` for this descriptor."""
    cmd = [
        executable,
        "show",
        "--id",
        descriptor.app_id,
        "--exact",
        "--accept-source-agreements",
        "--disable-interactivity",
    ]
    for key, flag in _FILTER_ARGS.items():
        value = descriptor.filter_options.get(key)
        if value:
            cmd.extend([flag, value])
    return cmd


class PackageManagerSource:
    """Version source backed by the winget CLI."""

    def __init__(self, executable: str | None = None) -> None:
        self._executable = executable or shutil.which("winget")

    def resolve(
        self, descriptor: AppDescriptor, *, timeout: int = DEFAULT_TIMEOUT
    ) -> ResolvedVersion:
        logger = get_global_logger()
        if not self._executable:
            raise ResolutionError("winget executable not found in PATH")

        cmd = build_show_command(self._executable, descriptor)
        logger.verbose("RESOLVE", f"Strategy: PackageManager ({descriptor.app_id})")
        logger.debug("RESOLVE", f"Running: {' '.join(cmd)}")

        try:
            result = subprocess.run(
                cmd,
                capture_output=True,
                text=True,
                check=False,
                timeout=timeout,
            )
        except subprocess.TimeoutExpired as err:
            raise ResolutionError(
                f"winget show timed out after {err.timeout}s"
            ) from err
        except OSError as err:
            raise ResolutionError(f"Failed to run winget: {err}") from err

        output = (result.stdout or "") + (result.stderr or "")
        # winget exits nonzero on "not found" too, so check the sentinel first.
        fields = parse_winget_show(output)
        if result.returncode != 0:
            raise ResolutionError(
                f"winget show failed (exit code {result.returncode}) "
                f"for {descriptor.app_id!r}"
            )

        version = fields.get("version", "")
        url = fields.get("installer url", "")
        if not version or not url:
            raise ResolutionError(
                f"winget output for {descriptor.app_id!r} lacks Version or "
                f"Installer Url"
            )

        reported_type = descriptor.installer_type
        if not reported_type:
            winget_type = fields.get("installer type", "").lower()
            reported_type = "msi" if winget_type in ("msi", "wix") else ""

        logger.verbose("RESOLVE", f"Version: {version}")
        logger.verbose("RESOLVE", f"Installer Url: {url}")
        return build_resolved(version, url, "PackageManager", reported_type)

    def validate_descriptor(self, descriptor: AppDescriptor) -> list[str]:
        if not descriptor.app_id.strip():
            return ["PackageManager source requires 'AppID'"]
        return []


register_source("PackageManager", PackageManagerSource)
