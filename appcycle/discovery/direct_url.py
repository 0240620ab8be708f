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


"""Direct URL source for AppCycle.

The simplest source: the app list entry carries both the version and the
download URL, and both are used verbatim. Useful for vendors that publish a
stable versioned URL but no machine-readable release feed.

App List Configuration:

    {
      "IntuneAppName": "Line of Business Tool",
      "AppPublisher": "Contoso",
      "AppSource": "DirectUrl",
      "URI": "https://downloads.contoso.com/lob/4.2.0/LobTool.msi",
      "Version": "4.2.0",
      "AppFolderName": "LobTool"
    }
"""

from __future__ import annotations

from urllib.parse import urlparse

from appcycle.logging import get_global_logger
from appcycle.models import AppDescriptor, ResolvedVersion

from .base import DEFAULT_TIMEOUT, build_resolved, register_source


class DirectUrlSource:
    """Version source that performs no resolution at all."""

    def resolve(
        self, descriptor: AppDescriptor, *, timeout: int = DEFAULT_TIMEOUT
    ) -> ResolvedVersion:
        logger = get_global_logger()
        logger.verbose("RESOLVE", "Strategy: DirectUrl")
        logger.verbose("RESOLVE", f"Version: {descriptor.version}")
        return build_resolved(
            descriptor.version, descriptor.url, "DirectUrl", descriptor.installer_type
        )

    def validate_descriptor(self, descriptor: AppDescriptor) -> list[str]:
        errors = []
        if not descriptor.url.strip():
            errors.append("DirectUrl source requires 'URI'")
        elif urlparse(descriptor.url).scheme not in ("http", "https"):
            errors.append(f"URI must be an http(s) URL: {descriptor.url!r}")
        if not descriptor.version.strip():
            errors.append("DirectUrl source requires 'Version'")
        return errors


register_source("DirectUrl", DirectUrlSource)
