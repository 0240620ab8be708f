"""
Tests for appcycle.policy.updates module.

Tests the publish decision including:
- Prefix matching against catalog display names
- displayVersion and display name suffix versions
- Skipping entries whose version is not numeric
- Catalog failures
"""

from __future__ import annotations

import pytest

from appcycle.exceptions import CatalogQueryError, ComparisonError
from appcycle.models import ResolvedVersion
from appcycle.policy import latest_published_version, needs_update


def _resolved(version: str) -> ResolvedVersion:
    return ResolvedVersion(
        version=version,
        normalized_version=version,
        download_uri="https://example.com/setup.msi",
        installer_type="msi",
        file_extension=".msi",
        source="DirectUrl",
    )


class TestLatestPublishedVersion:
    """Tests for latest_published_version."""

    def test_no_entries(self):
        """Test an empty catalog yields None."""
        assert latest_published_version([], "Igor Pavlov 7-Zip") is None

    def test_highest_of_matches(self):
        """Test the maximum version among matching entries is returned."""
        entries = [
            {"displayName": "Igor Pavlov 7-Zip", "displayVersion": "22.01"},
            {"displayName": "Igor Pavlov 7-Zip", "displayVersion": "23.01"},
            {"displayName": "Igor Pavlov 7-Zip", "displayVersion": "19.00"},
            {"displayName": "Mozilla Firefox", "displayVersion": "120.0"},
        ]
        assert latest_published_version(entries, "Igor Pavlov 7-Zip") == "23.01"

    def test_version_from_display_name_suffix(self):
        """Test the name suffix is used when displayVersion is empty."""
        entries = [{"displayName": "7-Zip 22.01", "displayVersion": ""}]
        assert latest_published_version(entries, "7-Zip") == "22.01"

    def test_non_numeric_entry_skipped(self):
        """Test an entry without a usable version does not break the search."""
        entries = [
            {"displayName": "Contoso Finance Tool", "displayVersion": "latest"},
            {"displayName": "Contoso Finance Tool", "displayVersion": "1.4.0"},
        ]
        assert latest_published_version(entries, "Contoso Finance Tool") == "1.4.0"

    def test_prefix_not_equality(self):
        """Test the match is by prefix, so longer names match too."""
        entries = [{"displayName": "Contoso Finance Tool Pro", "displayVersion": "9.0"}]
        assert latest_published_version(entries, "Contoso Finance Tool") == "9.0"


class TestNeedsUpdate:
    """Tests for needs_update."""

    def test_not_in_catalog(self, fake_catalog):
        """Test an application absent from the catalog needs publishing."""
        assert needs_update(_resolved("23.01"), "Igor Pavlov 7-Zip", fake_catalog)
        assert fake_catalog.list_calls == 1

    def test_same_version_up_to_date(self, make_catalog):
        """Test a release tag equal to the published version is not newer."""
        catalog = make_catalog(
            apps=[{"displayName": "Contoso Finance Tool", "displayVersion": "1.5.0"}]
        )
        resolved = _resolved("finance-tool-v1.5.0")
        assert needs_update(resolved, "Contoso Finance Tool", catalog) is False

    def test_newer_version(self, make_catalog):
        """Test a strictly newer version needs publishing."""
        catalog = make_catalog(
            apps=[{"displayName": "Igor Pavlov 7-Zip", "displayVersion": "22.01"}]
        )
        assert needs_update(_resolved("23.01"), "Igor Pavlov 7-Zip", catalog) is True

    def test_older_version(self, make_catalog):
        """Test an older resolved version is not published."""
        catalog = make_catalog(
            apps=[{"displayName": "Igor Pavlov 7-Zip", "displayVersion": "24.0"}]
        )
        assert needs_update(_resolved("23.01"), "Igor Pavlov 7-Zip", catalog) is False

    def test_padding_equal(self, make_catalog):
        """Test "1.5" and "1.5.0" compare equal."""
        catalog = make_catalog(
            apps=[{"displayName": "Contoso Finance Tool", "displayVersion": "1.5"}]
        )
        assert needs_update(_resolved("1.5.0"), "Contoso Finance Tool", catalog) is False

    def test_catalog_failure_propagates(self, make_catalog):
        """Test a catalog query failure is not treated as "no match"."""
        catalog = make_catalog(fail_reads=True)
        with pytest.raises(CatalogQueryError):
            needs_update(_resolved("23.01"), "Igor Pavlov 7-Zip", catalog)

    def test_non_numeric_resolved_version(self, fake_catalog):
        """Test a resolved version with no digits raises ComparisonError."""
        with pytest.raises(ComparisonError):
            needs_update(_resolved("latest"), "Igor Pavlov 7-Zip", fake_catalog)
