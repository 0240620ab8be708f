"""
Version normalization and comparison utilities for AppCycle.

Vendors publish versions in every shape imaginable: "23.01", "v1.5.0",
"finance-tool-v1.5.0", "2024_05_01", "124.0.2478.80-x64". Before the change
detector can decide whether a release is new, both sides of the comparison
must be reduced to the same dotted numeric form.

Modules
-------
keys : module
    Normalization, comparison keys and ordering helpers.

Public API
----------
normalize_version : function
    Reduce any digit-bearing string to dotted numeric form.
is_comparable : function
    Check whether a string already is dotted numeric.
comparable_version : function
    Normalize only when the raw string is not already comparable.
compare_versions : function
    Compare two version strings, returning -1, 0, or 1.
is_newer : function
    Check if a remote version is newer than the current version.
version_key : function
    Sortable tuple key for a version string.

Examples
--------
    >>> from appcycle.versioning import compare_versions, normalize_version
    >>> normalize_version("23.01-x64")
    '23.01'
    >>> compare_versions("23.10.1", "23.10")
    1
"""

from .keys import (
    comparable_version,
    compare_versions,
    is_comparable,
    is_newer,
    normalize_version,
    version_key,
)

__all__ = [
    "comparable_version",
    "compare_versions",
    "is_comparable",
    "is_newer",
    "normalize_version",
    "version_key",
]
