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


"""Catalog client protocol for AppCycle.

The pipeline talks to the remote application catalog only through this
protocol. GraphCatalogClient implements it over Microsoft Graph; tests use
in-memory fakes.

Error contract:

- Read calls (list_win32_apps, find_assignment_filter_id) raise
  CatalogQueryError when the answer is unknown.
- Write calls (create_win32_app, commit_content, delete_app,
  create_assignment) raise NetworkError.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Protocol


class CatalogClient(Protocol):
    """Protocol for remote catalog implementations."""

    def list_win32_apps(self) -> list[dict[str, Any]]:
        """Return every win32LobApp entry in the catalog.

        Raises:
            CatalogQueryError: On transport or parse failure.
        """
        ...

    def create_win32_app(self, body: dict[str, Any]) -> dict[str, Any]:
        """Create a win32LobApp and return the created object (with "id")."""
        ...

    def commit_content(
        self,
        app_id: str,
        content_file: dict[str, Any],
        encryption_info: dict[str, Any],
        package_path: Path,
    ) -> None:
        """Upload the package for app_id and commit it as the app content."""
        ...

    def delete_app(self, app_id: str) -> None:
        """Remove app_id from the catalog."""
        ...

    def create_assignment(self, app_id: str, body: dict[str, Any]) -> dict[str, Any]:
        """Create one assignment for app_id."""
        ...

    def find_assignment_filter_id(self, name: str) -> str | None:
        """Return the id of the assignment filter named name, or None."""
        ...
