"""
Tests for appcycle.versioning module.

Tests version normalization and comparison including:
- Normalization of vendor version strings
- Idempotence of normalization
- Numeric ordering with zero padding
- Errors for strings without numeric components
"""

from __future__ import annotations

import pytest

from appcycle.exceptions import ComparisonError
from appcycle.versioning import (
    comparable_version,
    compare_versions,
    is_comparable,
    is_newer,
    normalize_version,
    version_key,
)


class TestNormalizeVersion:
    """Tests for normalize_version."""

    @pytest.mark.parametrize(
        ("raw", "expected"),
        [
            ("23.01-x64", "23.01"),
            ("finance-tool-v1.5.0", "1.5.0"),
            ("v2.4.1", "2.4.1"),
            ("2024_05_01", "2024.05.01"),
            ("1.0.0-beta4", "1.0.0"),
            ("12.0.1", "12.0.1"),
        ],
    )
    def test_normalizes_vendor_strings(self, raw, expected):
        """Test digit runs are kept and architecture/prerelease tags dropped."""
        assert normalize_version(raw) == expected

    @pytest.mark.parametrize(
        "raw", ["23.01-x64", "finance-tool-v1.5.0", "2024_05_01", "v10", "7.0"]
    )
    def test_idempotent(self, raw):
        """Test normalizing twice gives the same result as normalizing once."""
        once = normalize_version(raw)
        assert normalize_version(once) == once

    def test_no_digits_raises(self):
        """Test a version without digits raises ComparisonError."""
        with pytest.raises(ComparisonError, match="no numeric components"):
            normalize_version("latest")

    def test_only_glued_digits_raises(self):
        """Test a version whose only digits belong to a tag raises."""
        with pytest.raises(ComparisonError):
            normalize_version("x64")


class TestComparableVersion:
    """Tests for is_comparable and comparable_version."""

    def test_is_comparable(self):
        """Test dotted numeric strings are comparable, others are not."""
        assert is_comparable("23.01")
        assert is_comparable("1")
        assert not is_comparable("v1.2")
        assert not is_comparable("1.2-beta")
        assert not is_comparable("")

    def test_comparable_returned_unchanged(self):
        """Test an already comparable version is not rewritten."""
        assert comparable_version("23.01") == "23.01"

    def test_normalizes_only_when_needed(self):
        """Test a non-comparable version is normalized."""
        assert comparable_version("v1.5.0") == "1.5.0"


class TestCompareVersions:
    """Tests for version ordering."""

    def test_basic_ordering(self):
        """Test numeric component-wise comparison."""
        assert compare_versions("1.10.0", "1.9.0") == 1
        assert compare_versions("1.9.0", "1.10.0") == -1
        assert compare_versions("23.01", "23.01") == 0

    def test_zero_padding(self):
        """Test missing trailing components count as zero."""
        assert compare_versions("1.5", "1.5.0") == 0
        assert compare_versions("1.5.0.1", "1.5") == 1

    def test_leading_zeros_are_numeric(self):
        """Test "23.01" and "23.1" are the same version."""
        assert compare_versions("23.01", "23.1") == 0

    def test_normalizes_before_comparing(self):
        """Test raw vendor strings are normalized before ordering."""
        assert compare_versions("finance-tool-v1.5.0", "1.5.0") == 0
        assert compare_versions("24.07-x64", "23.01") == 1

    def test_version_key(self):
        """Test the ordering key is an int tuple."""
        assert version_key("8.6.2") == (8, 6, 2)

    def test_non_numeric_raises(self):
        """Test comparing a non-numeric version raises ComparisonError."""
        with pytest.raises(ComparisonError):
            compare_versions("latest", "1.0")


class TestIsNewer:
    """Tests for is_newer."""

    def test_newer(self):
        """Test strictly newer versions return True."""
        assert is_newer("1.2.0", "1.1.9")

    def test_equal_is_not_newer(self):
        """Test equal versions return False."""
        assert not is_newer("1.2.0", "1.2")

    def test_older_is_not_newer(self):
        """Test older versions return False."""
        assert not is_newer("1.0", "1.2")

    def test_no_current_version(self):
        """Test anything is newer than nothing."""
        assert is_newer("0.1", None)
