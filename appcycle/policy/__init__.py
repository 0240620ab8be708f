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


"""Update policy for AppCycle.

This module decides when a resolved application version must be published
by comparing it with what the Intune catalog already holds.

Modules:

updates : module
    Catalog-based change detection.

Public API:

latest_published_version : function
    Highest published version among catalog entries matching a name prefix.
needs_update : function
    Determine if a resolved version is newer than the published one.

Example:
    from appcycle.policy import needs_update

    publish_it = needs_update(resolved, "Igor Pavlov 7-Zip", client)
    print(f"Should publish: {publish_it}")

"""

from .updates import latest_published_version, needs_update

__all__ = ["latest_published_version", "needs_update"]
