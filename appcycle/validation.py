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


"""App list validation module.

This module checks the app list and every referenced App.json without
making network calls, resolving versions, or downloading files. This is
useful for quick feedback while editing manifests and in CI/CD pipelines.

Validation Checks:

- App list JSON is valid and is an array
- Each entry has the keys its AppSource requires
- Naming convention and source kind are known
- Display-name prefixes do not overlap (warning)
- App.json exists and parses, with known rule and assignment kinds
- At least one DetectionRule is declared
- Detection, requirement and base requirement rules translate
- Group assignments carry a GroupID

Example:
    Validate an app list and handle results:
        ```python
        from pathlib import Path
        from appcycle.validation import validate_app_list

        result = validate_app_list(Path("appList.json"), Path("Apps"))
        if result.status == "valid":
            print(f"App list is valid with {result.app_count} app(s)")
        else:
            for error in result.errors:
                print(f"Error: {error}")
        ```

"""

from __future__ import annotations

import json
from pathlib import Path

from appcycle.config import load_manifest, parse_descriptor
from appcycle.exceptions import ConfigError, TranslationError
from appcycle.logging import get_global_logger
from appcycle.models import AppDescriptor, AppManifest
from appcycle.naming import find_name_collisions
from appcycle.results import ValidationResult
from appcycle.rules import (
    translate_base_requirements,
    translate_detection_rules,
    translate_requirement_rules,
)

__all__ = ["validate_app_list", "validate_manifest"]


def validate_manifest(manifest: AppManifest, label: str) -> tuple[list[str], list[str]]:
    """Check a loaded manifest for problems that would fail publishing.

    Returns:
        A tuple (errors, warnings).
    """
    errors: list[str] = []
    warnings: list[str] = []

    if not manifest.detection_rules:
        errors.append(f"{label}: DetectionRule must contain at least one rule")
    else:
        try:
            translate_detection_rules(manifest.detection_rules)
        except TranslationError as err:
            errors.append(f"{label}: {err}")

    try:
        translate_requirement_rules(manifest.custom_requirement_rules)
    except TranslationError as err:
        errors.append(f"{label}: {err}")

    try:
        translate_base_requirements(manifest.requirement_rule)
    except TranslationError as err:
        errors.append(f"{label}: {err}")

    if not manifest.assignments:
        warnings.append(f"{label}: no Assignment declared; app will be unassigned")
    for index, assignment in enumerate(manifest.assignments, start=1):
        if assignment.target_kind == "Group" and not assignment.group_id:
            errors.append(f"{label}: Assignment #{index} is a Group without GroupID")
        if assignment.filter_name:
            warnings.append(
                f"{label}: Assignment #{index} filter "
                f"{assignment.filter_name!r} is resolved at assignment time"
            )

    return errors, warnings


def validate_app_list(app_list_path: Path, apps_root: Path) -> ValidationResult:
    """Validate an app list and its manifests without touching the network.

    Unlike load_app_list(), which stops at the first bad entry, this
    collects every problem it finds.

    Args:
        app_list_path: Path to appList.json.
        apps_root: Folder holding one subfolder per AppFolderName.

    Returns:
        ValidationResult with status "valid" when no errors were found.

    """
    logger = get_global_logger()
    errors: list[str] = []
    warnings: list[str] = []

    def result(app_count: int) -> ValidationResult:
        return ValidationResult(
            status="invalid" if errors else "valid",
            errors=errors,
            warnings=warnings,
            app_count=app_count,
            app_list_path=str(app_list_path),
        )

    logger.verbose("VALIDATION", f"Validating app list: {app_list_path}")
    if not app_list_path.exists():
        errors.append(f"App list not found: {app_list_path}")
        return result(0)

    try:
        with app_list_path.open("r", encoding="utf-8-sig") as f:
            entries = json.load(f)
    except json.JSONDecodeError as err:
        errors.append(f"Invalid JSON in {app_list_path}: {err}")
        return result(0)

    if not isinstance(entries, list):
        errors.append("App list must be a JSON array")
        return result(0)

    descriptors: list[AppDescriptor] = []
    for index, entry in enumerate(entries):
        try:
            descriptors.append(parse_descriptor(entry, index))
        except ConfigError as err:
            errors.append(str(err))

    warnings.extend(find_name_collisions(descriptors))

    for descriptor in descriptors:
        logger.verbose("VALIDATION", f"Checking {descriptor.app_folder}")
        try:
            manifest = load_manifest(apps_root, descriptor.app_folder)
        except ConfigError as err:
            errors.append(str(err))
            continue
        manifest_errors, manifest_warnings = validate_manifest(
            manifest, descriptor.app_folder
        )
        errors.extend(manifest_errors)
        warnings.extend(manifest_warnings)

    return result(len(entries))
