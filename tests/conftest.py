"""
Pytest configuration and shared fixtures for AppCycle tests.

This module provides reusable fixtures and test utilities used across
the test suite.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import pytest

from appcycle.config import Settings
from appcycle.exceptions import CatalogQueryError, NetworkError
from appcycle.logging import SilentLogger, set_global_logger
from appcycle.models import AppDescriptor


class FakeCatalog:
    """In-memory CatalogClient recording every write."""

    def __init__(
        self,
        apps: list[dict[str, Any]] | None = None,
        filters: dict[str, str] | None = None,
        fail_reads: bool = False,
        fail_commit: bool = False,
    ) -> None:
        self.apps = list(apps or [])
        self.filters = dict(filters or {})
        self.fail_reads = fail_reads
        self.fail_commit = fail_commit
        self.list_calls = 0
        self.created_apps: list[dict[str, Any]] = []
        self.commits: list[tuple[str, dict, dict, Path]] = []
        self.assignments: list[tuple[str, dict[str, Any]]] = []
        self.deleted: list[str] = []

    def list_win32_apps(self) -> list[dict[str, Any]]:
        self.list_calls += 1
        if self.fail_reads:
            raise CatalogQueryError("catalog unavailable")
        return list(self.apps)

    def create_win32_app(self, body: dict[str, Any]) -> dict[str, Any]:
        self.created_apps.append(body)
        created = {**body, "id": f"app-{len(self.created_apps)}"}
        self.apps.append(created)
        return created

    def commit_content(
        self,
        app_id: str,
        content_file: dict[str, Any],
        encryption_info: dict[str, Any],
        package_path: Path,
    ) -> None:
        if self.fail_commit:
            raise NetworkError("upload rejected")
        self.commits.append((app_id, content_file, encryption_info, package_path))

    def delete_app(self, app_id: str) -> None:
        self.deleted.append(app_id)
        self.apps = [app for app in self.apps if app.get("id") != app_id]

    def create_assignment(self, app_id: str, body: dict[str, Any]) -> dict[str, Any]:
        self.assignments.append((app_id, body))
        return {"id": f"assignment-{len(self.assignments)}"}

    def find_assignment_filter_id(self, name: str) -> str | None:
        if self.fail_reads:
            raise CatalogQueryError("catalog unavailable")
        return self.filters.get(name)


@pytest.fixture(autouse=True)
def silent_logger():
    """Reset the global logger around every test."""
    set_global_logger(SilentLogger())
    yield
    set_global_logger(SilentLogger())


@pytest.fixture
def fake_catalog() -> FakeCatalog:
    """Provide an empty in-memory catalog."""
    return FakeCatalog()


@pytest.fixture
def make_catalog() -> type[FakeCatalog]:
    """Provide the in-memory catalog class for tests that seed it."""
    return FakeCatalog


@pytest.fixture
def seven_zip() -> AppDescriptor:
    """7-Zip resolved through the Evergreen catalog lookup."""
    return AppDescriptor(
        app_name="7-Zip",
        publisher="Igor Pavlov",
        source="CatalogLookup",
        app_folder="7-Zip",
        app_id="7zip",
        filter_options={"Architecture": "x64", "Type": "msi"},
    )


@pytest.fixture
def finance_tool() -> AppDescriptor:
    """In-house tool published as a GitHub release asset."""
    return AppDescriptor(
        app_name="Finance Tool",
        publisher="Contoso",
        source="ReleaseAsset",
        app_folder="FinanceTool",
        repository="contoso/finance-tool",
        tag="finance-tool-v1.5.0",
        file_name="FinanceTool.msi",
    )


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    """Provide settings rooted in a temporary directory."""
    return Settings(
        app_list=tmp_path / "appList.json",
        apps_root=tmp_path / "Apps",
        workspace_dir=tmp_path / "work",
        handoff_dir=None,
        tool_cache_dir=tmp_path / "tools",
        packaging_tool_path=None,
    )


@pytest.fixture
def sample_manifest_data() -> dict[str, Any]:
    """
    Provide a complete App.json structure.

    One MSI detection rule, one file requirement, one assignment to all
    devices.
    """
    return {
        "Information": {
            "Description": "File archiver",
            "Publisher": "Igor Pavlov",
            "InformationURL": "https://www.7-zip.org",
        },
        "Program": {
            "InstallExperience": "system",
            "DeviceRestartBehavior": "suppress",
        },
        "RequirementRule": {
            "Architecture": "x64",
            "MinimumSupportedWindowsRelease": "W10_1809",
        },
        "CustomRequirementRule": [
            {
                "Type": "File",
                "DetectionMethod": "Existence",
                "Path": "C:\\Windows",
                "FileOrFolder": "explorer.exe",
            }
        ],
        "DetectionRule": [
            {
                "Type": "MSI",
                "ProductCode": "{23170F69-40C1-2702-2301-000001000000}",
            }
        ],
        "Assignment": [
            {
                "Type": "VirtualGroup",
                "GroupName": "AllDevices",
                "Intent": "required",
            }
        ],
        "PackageInformation": {
            "SourceFolder": "Source",
        },
    }


@pytest.fixture
def write_manifest(settings: Settings):
    """Return a helper writing <apps_root>/<folder>/App.json."""

    def _write(folder: str, data: dict[str, Any]) -> Path:
        app_dir = settings.apps_root / folder
        app_dir.mkdir(parents=True, exist_ok=True)
        path = app_dir / "App.json"
        path.write_text(json.dumps(data), encoding="utf-8")
        return path

    return _write
