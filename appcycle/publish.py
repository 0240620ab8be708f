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


"""Construction of the Graph objects sent when publishing an application.

build_win32_app_body() combines the pipeline record (display name, version,
installer) with the application manifest (Information, Program,
RequirementRule, rules) into a `#microsoft.graph.win32LobApp` body. Rule
translation happens here, before any request is sent, so a manifest that
cannot be translated never creates a half-configured app in the catalog.

build_content_file_body() and placeholder_encryption_info() describe the
uploaded .intunewin. The encryption info is placeholder metadata only; the
payload encryption itself is not managed by AppCycle.
"""

from __future__ import annotations

import base64
from pathlib import Path
from typing import Any

from appcycle.exceptions import PackagingError, TranslationError
from appcycle.models import AppManifest, PublishRecord
from appcycle.rules import (
    as_bool,
    translate_base_requirements,
    translate_detection_rules,
    translate_requirement_rules,
)

DEFAULT_RETURN_CODES: list[dict[str, Any]] = [
    {"returnCode": 0, "type": "success"},
    {"returnCode": 1707, "type": "success"},
    {"returnCode": 3010, "type": "softReboot"},
    {"returnCode": 1641, "type": "hardReboot"},
    {"returnCode": 1618, "type": "retry"},
]


def _text(section: dict[str, Any], key: str, default: str = "") -> str:
    value = section.get(key)
    return str(value).strip() if value not in (None, "") else default


def _url_or_none(section: dict[str, Any], key: str) -> str | None:
    value = _text(section, key)
    return value or None


def _product_code(manifest: AppManifest) -> str | None:
    for rule in manifest.detection_rules:
        if rule.kind == "MSI" and rule.fields.get("ProductCode"):
            return str(rule.fields["ProductCode"])
    return None


def _command_lines(
    record: PublishRecord, manifest: AppManifest, setup_file: str
) -> tuple[str, str]:
    install = _text(manifest.program, "InstallCommand")
    uninstall = _text(manifest.program, "UninstallCommand")
    if record.installer_type == "msi":
        product_code = _product_code(manifest)
        if not install:
            install = f'msiexec.exe /i "{setup_file}" /qn /norestart'
        if not uninstall and product_code:
            uninstall = f"msiexec.exe /x {product_code} /qn /norestart"
    if not install or not uninstall:
        raise TranslationError(
            f"{record.display_name}: Program needs InstallCommand and UninstallCommand"
        )
    return install, uninstall


def build_win32_app_body(
    record: PublishRecord, manifest: AppManifest
) -> dict[str, Any]:
    """Build the win32LobApp create request for a packaged application.

    Args:
        record: Record produced by the prepare stage.
        manifest: The application's App.json.

    Returns:
        The request body for POST deviceAppManagement/mobileApps.

    Raises:
        TranslationError: If the manifest has no detection rules, a rule is
            not translatable, requirements are incomplete, or the install
            and uninstall command lines cannot be determined.
    """
    info = manifest.information
    program = manifest.program
    descriptor = record.descriptor
    setup_file = _text(
        manifest.package_information, "SetupFile", Path(record.installer_path).name
    )

    rules = translate_detection_rules(manifest.detection_rules)
    rules += translate_requirement_rules(manifest.custom_requirement_rules)
    install, uninstall = _command_lines(record, manifest, setup_file)

    body: dict[str, Any] = {
        "@odata.type": "#microsoft.graph.win32LobApp",
        "displayName": record.display_name,
        "displayVersion": record.version,
        "description": _text(info, "Description", record.display_name),
        "publisher": _text(info, "Publisher", descriptor.publisher),
        "developer": _text(info, "Developer"),
        "owner": _text(info, "Owner"),
        "notes": _text(info, "Notes"),
        "informationUrl": _url_or_none(info, "InformationURL"),
        "privacyInformationUrl": _url_or_none(info, "PrivacyURL"),
        "isFeatured": as_bool(info.get("Featured")),
        "fileName": Path(record.package_path).name,
        "setupFilePath": setup_file,
        "installCommandLine": install,
        "uninstallCommandLine": uninstall,
        "allowAvailableUninstall": as_bool(program.get("AllowAvailableUninstall")),
        "installExperience": {
            "@odata.type": "microsoft.graph.win32LobAppInstallExperience",
            "runAsAccount": _text(program, "InstallExperience", "system"),
            "deviceRestartBehavior": _text(
                program, "DeviceRestartBehavior", "suppress"
            ),
        },
        "returnCodes": DEFAULT_RETURN_CODES,
        "rules": rules,
        "msiInformation": None,
    }
    body.update(translate_base_requirements(manifest.requirement_rule))

    product_code = _product_code(manifest)
    if record.installer_type == "msi" and product_code:
        body["msiInformation"] = {
            "productCode": product_code,
            "productVersion": record.version,
            "upgradeCode": None,
            "requiresReboot": False,
            "packageType": "perMachine",
            "productName": record.display_name,
            "publisher": body["publisher"],
        }
    return body


def build_content_file_body(package_path: Path) -> dict[str, Any]:
    """Describe the .intunewin file for the content version's files entry.

    Raises:
        PackagingError: If the package file cannot be read.
    """
    try:
        size = package_path.stat().st_size
    except OSError as err:
        raise PackagingError(f"Package not readable: {package_path}: {err}") from err
    return {
        "@odata.type": "#microsoft.graph.mobileAppContentFile",
        "name": package_path.name,
        "size": size,
        "sizeEncrypted": size,
        "manifest": None,
        "isDependency": False,
    }


def placeholder_encryption_info() -> dict[str, Any]:
    """Return fileEncryptionInfo with well-formed but empty key material."""

    def zeros(n: int) -> str:
        return base64.b64encode(bytes(n)).decode("ascii")

    return {
        "@odata.type": "#microsoft.graph.fileEncryptionInfo",
        "encryptionKey": zeros(32),
        "macKey": zeros(32),
        "initializationVector": zeros(16),
        "mac": zeros(32),
        "profileIdentifier": "ProfileVersion1",
        "fileDigest": zeros(32),
        "fileDigestAlgorithm": "SHA256",
    }
