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


"""Stage functions of the AppCycle lifecycle pipeline.

Five stages run in a fixed order, each consuming the records of the
previous one:

1. check_stage    ProcessRecord  -> DownloadRecord
   Resolve the latest version, derive the display name, and keep the app
   only when the catalog has nothing as new.
2. download_stage DownloadRecord -> PrepareRecord
   Download the installer and hash it.
3. prepare_stage  PrepareRecord  -> PublishRecord
   Stage the app's Source folder with the installer and build the
   .intunewin.
4. publish_stage  PublishRecord  -> AssignRecord
   Translate App.json into a win32LobApp, create it, upload and commit the
   package.
5. assign_stage   AssignRecord   -> AssignmentOutcome
   Create one assignment per resolvable Assignment declaration.

Every stage processes its input sequentially in list order. A failure
raised for one application (any AppCycleError or OSError) is logged with the
application name, recorded in StageResult.failures, and the stage moves on
to the next application. Setting the cancel event stops the stage before
the next application; records already produced are returned unchanged.

Example:
    ```python
    from appcycle.pipeline import check_stage
    from appcycle.models import ProcessRecord

    result = check_stage([ProcessRecord(d) for d in descriptors], settings, client)
    for record in result.records:
        print(record.display_name, record.version)
    ```
"""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path
import threading
from typing import TypeVar

from appcycle.assignments import translate_assignments
from appcycle.build import create_intunewin, stage_package_source
from appcycle.build.packager import DEFAULT_SOURCE_FOLDER
from appcycle.catalog.base import CatalogClient
from appcycle.config import Settings, load_manifest
from appcycle.discovery import resolve_version
from appcycle.exceptions import AppCycleError, NetworkError
from appcycle.io import download_file
from appcycle.logging import get_global_logger
from appcycle.models import (
    AssignRecord,
    DownloadRecord,
    PrepareRecord,
    ProcessRecord,
    PublishRecord,
    extend_record,
)
from appcycle.naming import display_name, search_name
from appcycle.policy import needs_update
from appcycle.publish import (
    build_content_file_body,
    build_win32_app_body,
    placeholder_encryption_info,
)
from appcycle.results import AppFailure, AssignmentOutcome, StageResult

In = TypeVar("In", bound=ProcessRecord)
Out = TypeVar("Out")


def _run_stage(
    stage: str,
    records: list[In],
    handler: Callable[[In], Out | None],
    cancel: threading.Event | None,
) -> StageResult[Out]:
    """Apply handler to each record, isolating per-application failures.

    A handler returning None drops the record without counting a failure.
    """
    logger = get_global_logger()
    produced: list[Out] = []
    failures: list[AppFailure] = []

    for index, record in enumerate(records):
        if cancel is not None and cancel.is_set():
            remaining = len(records) - index
            logger.warning(
                stage.upper(), f"Cancelled; {remaining} application(s) not processed"
            )
            return StageResult(produced, failures, cancelled=True)

        app_name = record.descriptor.app_name
        try:
            result = handler(record)
        except (AppCycleError, OSError) as err:
            logger.error(app_name, f"{stage} failed: {err}")
            failures.append(AppFailure(app_name, stage, type(err).__name__, str(err)))
            continue
        if result is not None:
            produced.append(result)

    return StageResult(produced, failures)


def _work_dir(settings: Settings, record: DownloadRecord, leaf: str) -> Path:
    return (
        settings.workspace_dir
        / record.descriptor.app_folder
        / record.normalized_version
        / leaf
    )


def check_stage(
    records: list[ProcessRecord],
    settings: Settings,
    client: CatalogClient,
    *,
    cancel: threading.Event | None = None,
) -> StageResult[DownloadRecord]:
    """Keep the applications whose resolved version is not yet published."""
    logger = get_global_logger()

    def check(record: ProcessRecord) -> DownloadRecord | None:
        descriptor = record.descriptor
        resolved = resolve_version(descriptor, timeout=settings.request_timeout)
        logger.verbose(
            "CHECK",
            f"{descriptor.app_name}: {resolved.version} from {resolved.source}",
        )
        if not needs_update(resolved, search_name(descriptor), client):
            logger.verbose("CHECK", f"{descriptor.app_name} is up to date")
            return None
        return extend_record(
            record,
            DownloadRecord,
            display_name=display_name(
                descriptor.naming_convention,
                descriptor.publisher,
                descriptor.app_name,
                resolved.normalized_version,
            ),
            version=resolved.version,
            normalized_version=resolved.normalized_version,
            download_uri=resolved.download_uri,
            installer_type=resolved.installer_type,
            file_extension=resolved.file_extension,
        )

    return _run_stage("check", records, check, cancel)


def download_stage(
    records: list[DownloadRecord],
    settings: Settings,
    *,
    cancel: threading.Event | None = None,
) -> StageResult[PrepareRecord]:
    """Download each installer into the workspace."""

    def download(record: DownloadRecord) -> PrepareRecord:
        file_name = record.descriptor.file_name or None
        path, sha256 = download_file(
            record.download_uri,
            _work_dir(settings, record, "download"),
            file_name=file_name,
            timeout=settings.request_timeout,
        )
        return extend_record(
            record, PrepareRecord, installer_path=str(path), sha256=sha256
        )

    return _run_stage("download", records, download, cancel)


def prepare_stage(
    records: list[PrepareRecord],
    settings: Settings,
    *,
    cancel: threading.Event | None = None,
) -> StageResult[PublishRecord]:
    """Stage each app's source folder and package it as .intunewin."""

    def prepare(record: PrepareRecord) -> PublishRecord:
        manifest = load_manifest(settings.apps_root, record.descriptor.app_folder)
        package_info = manifest.package_information
        installer = Path(record.installer_path)

        source = stage_package_source(
            manifest.app_folder,
            installer,
            _work_dir(settings, record, "staging"),
            str(package_info.get("SourceFolder") or DEFAULT_SOURCE_FOLDER),
        )
        package = create_intunewin(
            source,
            str(package_info.get("SetupFile") or installer.name),
            _work_dir(settings, record, "package"),
            tool_path=settings.packaging_tool_path,
            tool_cache_dir=settings.tool_cache_dir,
            timeout=settings.packaging_timeout,
        )
        return extend_record(record, PublishRecord, package_path=str(package))

    return _run_stage("prepare", records, prepare, cancel)


def _discard_app(client: CatalogClient, app_id: str, app_name: str) -> None:
    try:
        client.delete_app(app_id)
    except AppCycleError as err:
        get_global_logger().error(
            app_name, f"Could not remove incomplete app {app_id}: {err}"
        )


def publish_stage(
    records: list[PublishRecord],
    settings: Settings,
    client: CatalogClient,
    *,
    cancel: threading.Event | None = None,
) -> StageResult[AssignRecord]:
    """Create each app in the catalog and commit its package."""
    logger = get_global_logger()

    def publish(record: PublishRecord) -> AssignRecord:
        manifest = load_manifest(settings.apps_root, record.descriptor.app_folder)
        # Raises TranslationError before anything is sent.
        body = build_win32_app_body(record, manifest)
        package = Path(record.package_path)
        content_file = build_content_file_body(package)

        created = client.create_win32_app(body)
        app_id = str(created["id"])
        logger.verbose("PUBLISH", f"Created {record.display_name} as {app_id}")
        try:
            client.commit_content(
                app_id, content_file, placeholder_encryption_info(), package
            )
        except AppCycleError:
            # An entry without content would count as published on the next check.
            _discard_app(client, app_id, record.descriptor.app_name)
            raise
        return extend_record(record, AssignRecord, catalog_app_id=app_id)

    return _run_stage("publish", records, publish, cancel)


def assign_stage(
    records: list[AssignRecord],
    settings: Settings,
    client: CatalogClient,
    *,
    cancel: threading.Event | None = None,
) -> StageResult[AssignmentOutcome]:
    """Create the declared assignments for each published app."""
    logger = get_global_logger()

    def assign(record: AssignRecord) -> AssignmentOutcome:
        app_name = record.descriptor.app_name
        manifest = load_manifest(settings.apps_root, record.descriptor.app_folder)
        bodies, skipped = translate_assignments(
            manifest.assignments,
            record.catalog_app_id,
            client.find_assignment_filter_id,
            app_label=app_name,
        )
        created = 0
        for body in bodies:
            try:
                client.create_assignment(record.catalog_app_id, body)
            except NetworkError as err:
                message = f"Assignment ({body['intent']}) not created: {err}"
                logger.error(app_name, message)
                skipped.append(message)
                continue
            created += 1
        logger.verbose("ASSIGN", f"{app_name}: {created} assignment(s) created")
        return AssignmentOutcome(app_name, record.catalog_app_id, created, skipped)

    return _run_stage("assign", records, assign, cancel)
