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


"""Catalog display name derivation for AppCycle.

The same function names an application when it is published and searches
for it when checking whether an update is needed. Keeping both call sites
on display_name() guarantees that a freshly published entry is found by
the next run's prefix search.

Naming conventions:

- PublisherAppName: "Igor Pavlov 7-Zip"
- PublisherAppNameAppVersion: "Igor Pavlov 7-Zip 23.01"
- AppName: "7-Zip"
- AppNameAppVersion: "7-Zip 23.01"

Example:
    ```python
    from appcycle.naming import display_name

    display_name("PublisherAppName", "Igor Pavlov", "7-Zip", "23.01")
    # "Igor Pavlov 7-Zip"
    ```
"""

from __future__ import annotations

from appcycle.exceptions import ConfigError
from appcycle.models import AppDescriptor


def _join(*parts: str) -> str:
    return " ".join(p.strip() for p in parts if p and p.strip())


_CONVENTIONS = {
    "PublisherAppName": lambda publisher, app, version: _join(publisher, app),
    "PublisherAppNameAppVersion": lambda publisher, app, version: _join(
        publisher, app, version
    ),
    "AppName": lambda publisher, app, version: _join(app),
    "AppNameAppVersion": lambda publisher, app, version: _join(app, version),
}


def display_name(
    convention: str, publisher: str, app_name: str, version: str = ""
) -> str:
    """Derive the catalog display name for an application.

    Args:
        convention: One of the naming convention names.
        publisher: Application publisher.
        app_name: Application name.
        version: Application version (ignored by version-less conventions).

    Returns:
        The display name.

    Raises:
        ConfigError: If the convention is unknown.
    """
    try:
        build = _CONVENTIONS[convention]
    except KeyError:
        available = ", ".join(_CONVENTIONS)
        raise ConfigError(
            f"Unknown naming convention: {convention!r}. Available: {available}"
        ) from None
    return build(publisher, app_name, version)


def search_name(descriptor: AppDescriptor) -> str:
    """Return the version-less name used to find existing catalog entries.

    For the *AppVersion conventions the version is left off so that entries
    published under an older version still match the prefix.
    """
    return display_name(
        descriptor.naming_convention, descriptor.publisher, descriptor.app_name
    )


def find_name_collisions(descriptors: list[AppDescriptor]) -> list[str]:
    """Report tracked applications whose search prefixes overlap.

    Prefix matching treats "Contoso Tool" and "Contoso Tool Pro" as the same
    application. Such pairs are reported so they can be renamed before the
    change detector confuses them.

    Returns:
        Human-readable warning messages (empty if all names are distinct).
    """
    warnings = []
    names = [(d.app_name, search_name(d)) for d in descriptors]
    for i, (app_a, name_a) in enumerate(names):
        for app_b, name_b in names[i + 1 :]:
            if name_a.startswith(name_b) or name_b.startswith(name_a):
                warnings.append(
                    f"Display names of {app_a!r} ({name_a!r}) and {app_b!r} "
                    f"({name_b!r}) overlap; catalog prefix matching cannot "
                    f"tell them apart"
                )
    return warnings
