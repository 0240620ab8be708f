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
Microsoft Graph catalog client for AppCycle.

Implements the CatalogClient protocol against the Intune endpoints of
Microsoft Graph (beta):

- ``GET  deviceAppManagement/mobileApps?$filter=isof('microsoft.graph.win32LobApp')``
- ``POST deviceAppManagement/mobileApps``
- ``POST .../mobileApps/{id}/microsoft.graph.win32LobApp/contentVersions``
- ``POST .../contentVersions/{v}/files`` and ``.../files/{f}/commit``
- ``POST .../mobileApps/{id}/assignments``
- ``GET  deviceManagement/assignmentFilters``

Paged responses are followed through ``@odata.nextLink``. Every request
carries a timeout. There is no retry: a failed read raises
CatalogQueryError and aborts only the affected application, a failed write
raises NetworkError.

Content upload:
    The .intunewin package is uploaded to the Azure Storage URI Intune
    hands out for the content file as a single block blob, then committed
    with the file encryption info. The encryption info is placeholder
    metadata built by appcycle.publish.

Example:
    ```python
    from appcycle.auth import CredentialManager
    from appcycle.catalog import GraphCatalogClient

    client = GraphCatalogClient(CredentialManager(), timeout=60)
    for app in client.list_win32_apps():
        print(app["displayName"], app.get("displayVersion"))
    ```
"""

from __future__ import annotations

from pathlib import Path
import time
from typing import Any

import requests

from appcycle.auth.credentials import CredentialManager
from appcycle.exceptions import CatalogQueryError, NetworkError
from appcycle.logging import get_global_logger

GRAPH_BASE_URL = "https://graph.microsoft.com/beta"
WIN32_APP_FILTER = "isof('microsoft.graph.win32LobApp')"

# Intune needs a moment to provision the storage URI for a new content file.
UPLOAD_STATE_POLL_INTERVAL = 5
UPLOAD_STATE_POLL_ATTEMPTS = 60


class GraphCatalogClient:
    """Intune catalog over Microsoft Graph.

    Args:
        credentials: Token provider; anything with get_token().
        base_url: Graph root including the API version.
        timeout: Per-request timeout in seconds.
        session: Optional requests.Session (tests pass one with adapters).
    """

    def __init__(
        self,
        credentials: CredentialManager,
        *,
        base_url: str = GRAPH_BASE_URL,
        timeout: int = 60,
        session: requests.Session | None = None,
    ) -> None:
        self.credentials = credentials
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()

    # ------------------------------------------------------------------
    # Transport helpers
    # ------------------------------------------------------------------

    def _url(self, path: str) -> str:
        return f"{self.base_url}/{path.lstrip('/')}"

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self.credentials.get_token()}",
            "Content-Type": "application/json",
        }

    def _get_all(self, path: str, params: dict[str, str] | None = None) -> list[dict]:
        """GET a collection and follow @odata.nextLink until exhausted."""
        logger = get_global_logger()
        items: list[dict] = []
        url: str | None = self._url(path)
        try:
            while url:
                logger.debug("GRAPH", f"GET {url}")
                response = self.session.get(
                    url, headers=self._headers(), params=params, timeout=self.timeout
                )
                response.raise_for_status()
                payload = response.json()
                items.extend(payload.get("value", []))
                url = payload.get("@odata.nextLink")
                # nextLink already embeds the query
                params = None
        except requests.exceptions.RequestException as err:
            raise CatalogQueryError(f"Catalog query failed: {path}: {err}") from err
        except (ValueError, AttributeError) as err:
            raise CatalogQueryError(f"Catalog returned invalid JSON: {path}") from err
        return items

    def _send(
        self, method: str, path: str, body: dict[str, Any] | None = None
    ) -> dict[str, Any]:
        logger = get_global_logger()
        url = self._url(path)
        logger.debug("GRAPH", f"{method} {url}")
        try:
            response = self.session.request(
                method, url, headers=self._headers(), json=body, timeout=self.timeout
            )
            response.raise_for_status()
        except requests.exceptions.RequestException as err:
            raise NetworkError(f"Catalog request failed: {method} {path}: {err}") from err
        if not response.content:
            return {}
        try:
            return response.json()
        except ValueError as err:
            raise NetworkError(f"Catalog returned invalid JSON: {method} {path}") from err

    def _get_one(self, path: str) -> dict[str, Any]:
        url = self._url(path)
        try:
            response = self.session.get(url, headers=self._headers(), timeout=self.timeout)
            response.raise_for_status()
            return response.json()
        except requests.exceptions.RequestException as err:
            raise NetworkError(f"Catalog request failed: GET {path}: {err}") from err
        except ValueError as err:
            raise NetworkError(f"Catalog returned invalid JSON: GET {path}") from err

    # ------------------------------------------------------------------
    # CatalogClient
    # ------------------------------------------------------------------

    def list_win32_apps(self) -> list[dict[str, Any]]:
        apps = self._get_all(
            "deviceAppManagement/mobileApps", {"$filter": WIN32_APP_FILTER}
        )
        get_global_logger().verbose("GRAPH", f"Found {len(apps)} Win32 app(s)")
        return apps

    def create_win32_app(self, body: dict[str, Any]) -> dict[str, Any]:
        created = self._send("POST", "deviceAppManagement/mobileApps", body)
        if not created.get("id"):
            raise NetworkError("Catalog did not return an id for the created app")
        return created

    def _wait_for_upload_state(self, file_path: str, expected: str) -> dict[str, Any]:
        """Poll a content file until uploadState reaches expected."""
        for _ in range(UPLOAD_STATE_POLL_ATTEMPTS):
            content_file = self._get_one(file_path)
            state = str(content_file.get("uploadState", ""))
            if state == expected:
                return content_file
            if state.endswith("Failed"):
                raise NetworkError(f"Content file entered state {state}")
            time.sleep(UPLOAD_STATE_POLL_INTERVAL)
        raise NetworkError(f"Timed out waiting for content file state {expected}")

    def _upload_blob(self, storage_uri: str, package_path: Path) -> None:
        try:
            with package_path.open("rb") as f:
                response = self.session.put(
                    storage_uri,
                    data=f,
                    headers={"x-ms-blob-type": "BlockBlob"},
                    timeout=self.timeout,
                )
            response.raise_for_status()
        except requests.exceptions.RequestException as err:
            raise NetworkError(f"Package upload failed: {err}") from err
        except OSError as err:
            raise NetworkError(f"Cannot read package {package_path}: {err}") from err

    def commit_content(
        self,
        app_id: str,
        content_file: dict[str, Any],
        encryption_info: dict[str, Any],
        package_path: Path,
    ) -> None:
        logger = get_global_logger()
        app_path = f"deviceAppManagement/mobileApps/{app_id}"
        versions_path = f"{app_path}/microsoft.graph.win32LobApp/contentVersions"

        version = self._send("POST", versions_path, {})
        version_id = version.get("id")
        if not version_id:
            raise NetworkError(f"No content version id returned for app {app_id}")

        files_path = f"{versions_path}/{version_id}/files"
        created_file = self._send("POST", files_path, content_file)
        file_path = f"{files_path}/{created_file.get('id')}"

        ready = self._wait_for_upload_state(file_path, "azureStorageUriRequestSuccess")
        logger.verbose("GRAPH", f"Uploading {package_path.name}")
        self._upload_blob(str(ready.get("azureStorageUri")), package_path)

        self._send("POST", f"{file_path}/commit", {"fileEncryptionInfo": encryption_info})
        self._wait_for_upload_state(file_path, "commitFileSuccess")

        self._send(
            "PATCH",
            app_path,
            {
                "@odata.type": "#microsoft.graph.win32LobApp",
                "committedContentVersion": str(version_id),
            },
        )

    def delete_app(self, app_id: str) -> None:
        self._send("DELETE", f"deviceAppManagement/mobileApps/{app_id}")
        get_global_logger().verbose("GRAPH", f"Deleted app {app_id}")

    def create_assignment(self, app_id: str, body: dict[str, Any]) -> dict[str, Any]:
        return self._send(
            "POST", f"deviceAppManagement/mobileApps/{app_id}/assignments", body
        )

    def find_assignment_filter_id(self, name: str) -> str | None:
        filters = self._get_all("deviceManagement/assignmentFilters")
        wanted = name.strip().lower()
        for item in filters:
            if str(item.get("displayName", "")).strip().lower() == wanted:
                return item.get("id")
        return None
