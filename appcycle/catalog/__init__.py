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


"""Remote catalog adapters for AppCycle.

Public API:

- CatalogClient: Protocol the pipeline depends on
- GraphCatalogClient: Microsoft Graph (Intune) implementation

Example:
    from appcycle.auth import CredentialManager
    from appcycle.catalog import GraphCatalogClient

    client = GraphCatalogClient(CredentialManager())
    apps = client.list_win32_apps()

"""

from .base import CatalogClient
from .graph import GRAPH_BASE_URL, GraphCatalogClient

__all__ = ["CatalogClient", "GRAPH_BASE_URL", "GraphCatalogClient"]
