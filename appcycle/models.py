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


"""Domain types for AppCycle.

This module holds the records that flow through the lifecycle pipeline:
the app list descriptor, the per-application manifest, the resolved
version, and the stage records handed from one pipeline stage to the next.

Stage records are accretive. Each one subclasses the record of the previous
stage and adds only the fields that stage computed:

    ProcessRecord -> DownloadRecord -> PrepareRecord -> PublishRecord
        -> AssignRecord

All records are frozen; a stage builds its output record with
extend_record() instead of mutating its input.

Paths inside records are stored as strings so the records serialize to the
JSON hand-off files without custom encoders.
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Literal, TypeVar

SourceKind = Literal["CatalogLookup", "PackageManager", "ReleaseAsset", "DirectUrl"]
NamingConvention = Literal[
    "PublisherAppName",
    "PublisherAppNameAppVersion",
    "AppName",
    "AppNameAppVersion",
]
RuleKind = Literal["MSI", "File", "Registry", "Script"]
AssignmentTargetKind = Literal["VirtualGroup", "Group"]

SOURCE_KINDS: tuple[str, ...] = (
    "CatalogLookup",
    "PackageManager",
    "ReleaseAsset",
    "DirectUrl",
)
NAMING_CONVENTIONS: tuple[str, ...] = (
    "PublisherAppName",
    "PublisherAppNameAppVersion",
    "AppName",
    "AppNameAppVersion",
)

# Evergreen filter fields, in the order they are logged.
FILTER_FIELDS: tuple[str, ...] = (
    "Architecture",
    "Platform",
    "Channel",
    "Type",
    "InstallerType",
    "Language",
    "Edition",
    "Ring",
    "Release",
    "ImageType",
)


@dataclass(frozen=True)
class AppDescriptor:
    """One entry of the master application list.

    Attributes:
        app_name: Application name (e.g., "7-Zip").
        publisher: Publisher name (e.g., "Igor Pavlov").
        source: Version source kind (CatalogLookup, PackageManager,
            ReleaseAsset, DirectUrl).
        app_folder: Folder name holding the application's App.json and
            Source files.
        naming_convention: Convention used to derive the catalog display name.
        app_id: Lookup identifier for CatalogLookup (Evergreen app name) and
            PackageManager (winget package id).
        filter_options: Equality filter applied to CatalogLookup results.
        repository: "owner/name" for ReleaseAsset.
        tag: Release tag for ReleaseAsset; also used verbatim as the version.
        file_name: Asset file name for ReleaseAsset.
        url: Download URL for DirectUrl.
        version: Version string for DirectUrl.
        installer_type: Optional installer type override ("msi" or "exe").
    """

    app_name: str
    publisher: str
    source: str
    app_folder: str
    naming_convention: str = "PublisherAppName"
    app_id: str = ""
    filter_options: dict[str, str] = field(default_factory=dict)
    repository: str = ""
    tag: str = ""
    file_name: str = ""
    url: str = ""
    version: str = ""
    installer_type: str = ""


@dataclass(frozen=True)
class ResolvedVersion:
    """Latest version information produced by a version source.

    Attributes:
        version: Raw version string as reported by the source.
        normalized_version: Dotted numeric form used for comparison.
        download_uri: Where the installer can be downloaded.
        installer_type: "msi" or "exe".
        file_extension: Installer file extension including the dot.
        source: Source kind that produced this version.
    """

    version: str
    normalized_version: str
    download_uri: str
    installer_type: str
    file_extension: str
    source: str


@dataclass(frozen=True)
class RuleDeclaration:
    """A detection or requirement rule as declared in App.json.

    Attributes:
        kind: Rule kind ("MSI", "File", "Registry", "Script").
        method: Detection method for File/Registry rules, output data type
            for Script requirement rules, None where the kind has a single
            form (MSI, Script detection).
        fields: Remaining keys of the declaration, untouched.
    """

    kind: str
    method: str | None
    fields: dict[str, Any]


@dataclass(frozen=True)
class AssignmentDeclaration:
    """An assignment as declared in App.json.

    Attributes:
        target_kind: "VirtualGroup" or "Group".
        intent: "available", "required" or "uninstall".
        virtual_group: "AllDevices" or "AllUsers" for VirtualGroup targets.
        group_id: Entra ID group object id for Group targets.
        group_mode: "include" or "exclude" for Group targets.
        notification: Notification setting; None means the default.
        delivery_optimization_priority: None means the default.
        restart_grace_period: Whether restart grace settings are attached.
        grace_period_minutes: Grace period override.
        countdown_minutes: Countdown display override.
        snooze_minutes: Snooze duration override.
        use_local_time: Interpret install window times as device local time.
        available_time: Start of availability (ISO 8601) or None.
        deadline_time: Installation deadline (ISO 8601) or None.
        filter_name: Assignment filter display name or None.
        filter_mode: "include" or "exclude" for the filter.
    """

    target_kind: str
    intent: str
    virtual_group: str = ""
    group_id: str = ""
    group_mode: str = "include"
    notification: str | None = None
    delivery_optimization_priority: str | None = None
    restart_grace_period: bool = False
    grace_period_minutes: int | None = None
    countdown_minutes: int | None = None
    snooze_minutes: int | None = None
    use_local_time: bool = False
    available_time: str | None = None
    deadline_time: str | None = None
    filter_name: str | None = None
    filter_mode: str | None = None


@dataclass(frozen=True)
class AppManifest:
    """Parsed App.json for one application.

    The free-form sections are kept as dicts keyed exactly as in the file;
    rule and assignment lists are parsed into typed declarations.
    """

    app_folder: Path
    information: dict[str, Any]
    program: dict[str, Any]
    requirement_rule: dict[str, Any]
    package_information: dict[str, Any]
    detection_rules: tuple[RuleDeclaration, ...] = ()
    custom_requirement_rules: tuple[RuleDeclaration, ...] = ()
    assignments: tuple[AssignmentDeclaration, ...] = ()


# ----------------------------
# Pipeline stage records
# ----------------------------


@dataclass(frozen=True)
class ProcessRecord:
    """Input to the check stage: one tracked application."""

    descriptor: AppDescriptor


@dataclass(frozen=True)
class DownloadRecord(ProcessRecord):
    """An application whose resolved version is newer than the catalog's."""

    display_name: str
    version: str
    normalized_version: str
    download_uri: str
    installer_type: str
    file_extension: str


@dataclass(frozen=True)
class PrepareRecord(DownloadRecord):
    """An application whose installer has been downloaded."""

    installer_path: str
    sha256: str


@dataclass(frozen=True)
class PublishRecord(PrepareRecord):
    """An application packaged into a .intunewin file."""

    package_path: str


@dataclass(frozen=True)
class AssignRecord(PublishRecord):
    """An application created in the catalog and waiting for assignments."""

    catalog_app_id: str


R = TypeVar("R", bound=ProcessRecord)


def extend_record(record: ProcessRecord, record_type: type[R], **new_fields: Any) -> R:
    """Build the next stage's record from the current one.

    Args:
        record: Record produced by the previous stage.
        record_type: Record class of the next stage (a subclass of
            type(record)).
        **new_fields: Values for the fields the next stage adds.

    Returns:
        A new record carrying every field of record plus new_fields.

    Example:
        ```python
        prepared = extend_record(
            download_record, PrepareRecord,
            installer_path="C:/work/7z2301-x64.msi", sha256="ab12...",
        )
        ```
    """
    carried = {f.name: getattr(record, f.name) for f in fields(record)}
    return record_type(**carried, **new_fields)
