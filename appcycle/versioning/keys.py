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


"""Core version normalization and comparison for AppCycle.

This module is format-agnostic: it does NOT download or read files.
It only parses and compares version strings consistently across the
different sources (Evergreen, winget, release tags, catalog entries).

Comparison policy:

- A version is comparable when it is a dotted run of integers ("23.01",
  "1.5.0.12").
- Anything else is normalized first: digit runs are pulled out and joined
  with dots. A digit run glued to letters in front of it ("x64", "beta4")
  is not a version component and is dropped; a bare "v" prefix is allowed.
- Components compare numerically after zero padding, so "1.5" == "1.5.0"
  and "23.01" < "23.10" < "23.10.1".
- Prerelease tags are not ranked; "1.0.0-rc1" compares equal to "1.0.0".
- A string that yields no digits raises ComparisonError instead of being
  sorted somewhere arbitrary.
"""

from __future__ import annotations

import re

from appcycle.exceptions import ComparisonError

_DOTTED_NUMERIC = re.compile(r"^\d+(?:\.\d+)*$")

# A digit run and the letters immediately in front of it.
_DIGIT_RUN = re.compile(r"([A-Za-z]*)(\d+)")


def is_comparable(version: str) -> bool:
    """Return True when the string already parses as a dotted numeric version."""
    return bool(_DOTTED_NUMERIC.match(version.strip()))


def normalize_version(raw: str) -> str:
    """Reduce a raw version string to dotted numeric form.

    Args:
        raw: Version string as reported by a source (e.g., "23.01-x64",
            "finance-tool-v1.5.0", "2024_05_01").

    Returns:
        Dotted numeric string (e.g., "23.01", "1.5.0", "2024.05.01").

    Raises:
        ComparisonError: If no usable digit run is present.

    Example:
        Normalize vendor strings:
            ```python
            normalize_version("23.01-x64")            # "23.01"
            normalize_version("finance-tool-v1.5.0")  # "1.5.0"
            normalize_version(normalize_version("v2_1"))  # "2.1"
            ```
    """
    parts: list[str] = []
    for match in _DIGIT_RUN.finditer(raw):
        letters, digits = match.group(1), match.group(2)
        if not letters:
            parts.append(digits)
            continue
        # "v1.2" keeps its digits only when the "v" starts a token.
        start = match.start()
        starts_token = start == 0 or not raw[start - 1].isalnum()
        if letters.lower() == "v" and starts_token:
            parts.append(digits)
    if not parts:
        raise ComparisonError(f"version {raw!r} has no numeric components")
    return ".".join(parts)


def comparable_version(raw: str) -> str:
    """Return raw unchanged when comparable, otherwise its normalized form."""
    stripped = raw.strip()
    if is_comparable(stripped):
        return stripped
    return normalize_version(stripped)


def version_key(version: str) -> tuple[int, ...]:
    """Compute the numeric key used to order versions.

    Raises:
        ComparisonError: If the version cannot be normalized.
    """
    return tuple(int(p) for p in comparable_version(version).split("."))


def _pad_equal(
    a: tuple[int, ...], b: tuple[int, ...]
) -> tuple[tuple[int, ...], tuple[int, ...]]:
    """Pad tuples with zeros so they align for element-wise comparison."""
    n = max(len(a), len(b))
    return a + (0,) * (n - len(a)), b + (0,) * (n - len(b))


def compare_versions(a: str, b: str) -> int:
    """Compare two versions.

    Returns -1 if a < b, 0 if equal, 1 if a > b.

    Raises:
        ComparisonError: If either version cannot be normalized.
    """
    aa, bb = _pad_equal(version_key(a), version_key(b))
    return (aa > bb) - (aa < bb)


def is_newer(remote: str, current: str | None) -> bool:
    """Decide if 'remote' should be considered newer than 'current'.

    Returns True iff remote > current, or when there is no current version.
    """
    if current is None:
        return True
    return compare_versions(remote, current) > 0
