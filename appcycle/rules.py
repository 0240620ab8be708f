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


"""Translation of App.json rules into Microsoft Graph win32LobApp rules.

Detection and requirement rules declared in an application manifest are
translated into the tagged rule objects Microsoft Graph expects in the
`rules` collection of a `#microsoft.graph.win32LobApp`:

- `win32LobAppProductCodeRule` (MSI)
- `win32LobAppFileSystemRule` (File)
- `win32LobAppRegistryRule` (Registry)
- `win32LobAppPowerShellScriptRule` (Script)

Translation is driven by two dispatch tables keyed by `(kind, method)`, one
for detection and one for requirement rules. For File and Registry rules
the method is the manifest's `DetectionMethod`; for Script requirement
rules it is the `OutputDataType`; MSI rules and Script detection rules have
a single form and use `None`. A combination that is not in the table raises
TranslationError before any Graph object is built.

Supported combinations:

| Kind     | Detection                                 | Requirement |
|----------|-------------------------------------------|-------------|
| MSI      | None                                      | -           |
| File     | Existence, DoesNotExist, Version, Size,   | same        |
|          | DateModified, DateCreated                 |             |
| Registry | Existence, DoesNotExist, StringComparison,| same        |
|          | IntegerComparison, VersionComparison      |             |
| Script   | None                                      | String, Integer, |
|          |                                           | Boolean, DateTime, |
|          |                                           | Float, Version |

Example:
    ```python
    from appcycle.models import RuleDeclaration
    from appcycle.rules import translate_detection_rules

    rule = RuleDeclaration(
        kind="File",
        method="Size",
        fields={"Path": "C:/Tools", "FileOrFolder": "tool.exe", "SizeInMBValue": 10},
    )
    translate_detection_rules([rule])[0]["comparisonValue"]  # "10485760"
    ```
"""

from __future__ import annotations

import base64
from collections.abc import Callable, Iterable
from typing import Any, Literal

from appcycle.exceptions import TranslationError
from appcycle.models import RuleDeclaration

RulePurpose = Literal["detection", "requirement"]
RuleBuilder = Callable[[RuleDeclaration, str], dict[str, Any]]

GRAPH_TYPE_PREFIX = "#microsoft.graph."
BYTES_PER_MB = 1024 * 1024

_ARCHITECTURES = {
    "x64": "x64",
    "x86": "x86",
    "arm": "arm",
    "neutral": "neutral",
    "all": "x86,x64",
}


def as_bool(value: Any) -> bool:
    """Read a manifest flag; true, 1 and yes (any case) count as True."""
    if isinstance(value, bool):
        return value
    if value is None:
        return False
    return str(value).strip().lower() in ("true", "1", "yes")


def _require(rule: RuleDeclaration, key: str) -> Any:
    value = rule.fields.get(key)
    if value is None or value == "":
        raise TranslationError(
            f"{rule.kind} rule ({rule.method or 'default'}) is missing {key!r}"
        )
    return value


def _operator(rule: RuleDeclaration, default: str) -> str:
    return str(rule.fields.get("Operator") or default)


# ----------------------------------------------------------------------
# Value coercion
# ----------------------------------------------------------------------


def _string_value(value: Any) -> str:
    return str(value)


def _integer_value(value: Any) -> str:
    try:
        return str(int(str(value).strip()))
    except ValueError as err:
        raise TranslationError(f"Not an integer comparison value: {value!r}") from err


def _float_value(value: Any) -> str:
    try:
        return str(float(str(value).strip()))
    except ValueError as err:
        raise TranslationError(f"Not a float comparison value: {value!r}") from err


def _boolean_value(value: Any) -> str:
    text = str(value).strip().lower()
    if text not in ("true", "false"):
        raise TranslationError(f"Not a boolean comparison value: {value!r}")
    return text


def _size_in_bytes(value: Any) -> str:
    try:
        megabytes = float(str(value).strip())
        size = int(megabytes * BYTES_PER_MB)
    except (ValueError, OverflowError) as err:
        raise TranslationError(f"Not a size in MB: {value!r}") from err
    if size < 0:
        raise TranslationError(f"Size in MB must not be negative: {value!r}")
    return str(size)


# ----------------------------------------------------------------------
# Rule builders
# ----------------------------------------------------------------------


def _msi_rule(rule: RuleDeclaration, purpose: str) -> dict[str, Any]:
    version_operator = str(rule.fields.get("ProductVersionOperator") or "notConfigured")
    product_version = rule.fields.get("ProductVersion") or None
    if version_operator != "notConfigured" and product_version is None:
        raise TranslationError(
            f"MSI rule uses operator {version_operator!r} without ProductVersion"
        )
    return {
        "@odata.type": f"{GRAPH_TYPE_PREFIX}win32LobAppProductCodeRule",
        "ruleType": purpose,
        "productCode": _require(rule, "ProductCode"),
        "productVersionOperator": version_operator,
        "productVersion": (
            str(product_version) if version_operator != "notConfigured" else None
        ),
    }


def _file_rule(
    operation_type: str,
    value_key: str | None = None,
    coerce: Callable[[Any], str] = _string_value,
    default_operator: str = "greaterThanOrEqual",
) -> RuleBuilder:
    def build(rule: RuleDeclaration, purpose: str) -> dict[str, Any]:
        body: dict[str, Any] = {
            "@odata.type": f"{GRAPH_TYPE_PREFIX}win32LobAppFileSystemRule",
            "ruleType": purpose,
            "path": _require(rule, "Path"),
            "fileOrFolderName": _require(rule, "FileOrFolder"),
            "check32BitOn64System": as_bool(rule.fields.get("Check32BitOn64System")),
            "operationType": operation_type,
        }
        if value_key is None:
            body["operator"] = "notConfigured"
        else:
            body["operator"] = _operator(rule, default_operator)
            body["comparisonValue"] = coerce(_require(rule, value_key))
        return body

    return build


def _registry_rule(
    operation_type: str,
    coerce: Callable[[Any], str] | None = None,
    default_operator: str = "equal",
) -> RuleBuilder:
    def build(rule: RuleDeclaration, purpose: str) -> dict[str, Any]:
        body: dict[str, Any] = {
            "@odata.type": f"{GRAPH_TYPE_PREFIX}win32LobAppRegistryRule",
            "ruleType": purpose,
            "keyPath": _require(rule, "KeyPath"),
            "valueName": rule.fields.get("ValueName") or None,
            "check32BitOn64System": as_bool(rule.fields.get("Check32BitOn64System")),
            "operationType": operation_type,
        }
        if coerce is None:
            body["operator"] = "notConfigured"
        else:
            body["valueName"] = _require(rule, "ValueName")
            body["operator"] = _operator(rule, default_operator)
            body["comparisonValue"] = coerce(_require(rule, "Value"))
        return body

    return build


def _encoded_script(rule: RuleDeclaration) -> str:
    content = _require(rule, "ScriptContent")
    return base64.b64encode(str(content).encode("utf-8")).decode("ascii")


def _script_detection_rule(rule: RuleDeclaration, purpose: str) -> dict[str, Any]:
    return {
        "@odata.type": f"{GRAPH_TYPE_PREFIX}win32LobAppPowerShellScriptRule",
        "ruleType": purpose,
        "enforceSignatureCheck": as_bool(rule.fields.get("EnforceSignatureCheck")),
        "runAs32Bit": as_bool(rule.fields.get("RunAs32Bit")),
        "scriptContent": _encoded_script(rule),
        "operationType": "notConfigured",
        "operator": "notConfigured",
    }


def _script_requirement_rule(
    operation_type: str,
    coerce: Callable[[Any], str],
    default_operator: str,
) -> RuleBuilder:
    def build(rule: RuleDeclaration, purpose: str) -> dict[str, Any]:
        return {
            "@odata.type": f"{GRAPH_TYPE_PREFIX}win32LobAppPowerShellScriptRule",
            "ruleType": purpose,
            "displayName": str(rule.fields.get("ScriptFile") or "requirement.ps1"),
            "enforceSignatureCheck": as_bool(rule.fields.get("EnforceSignatureCheck")),
            "runAs32Bit": as_bool(rule.fields.get("RunAs32Bit")),
            "runAsAccount": str(rule.fields.get("RunAsAccount") or "system"),
            "scriptContent": _encoded_script(rule),
            "operationType": operation_type,
            "operator": _operator(rule, default_operator),
            "comparisonValue": coerce(_require(rule, "Value")),
        }

    return build


_FILE_RULES: dict[tuple[str, str | None], RuleBuilder] = {
    ("File", "Existence"): _file_rule("exists"),
    ("File", "DoesNotExist"): _file_rule("doesNotExist"),
    ("File", "Version"): _file_rule("version", "VersionValue"),
    ("File", "Size"): _file_rule("sizeInBytes", "SizeInMBValue", _size_in_bytes),
    ("File", "DateModified"): _file_rule("modifiedDate", "DateTimeValue"),
    ("File", "DateCreated"): _file_rule("createdDate", "DateTimeValue"),
}

_REGISTRY_RULES: dict[tuple[str, str | None], RuleBuilder] = {
    ("Registry", "Existence"): _registry_rule("exists"),
    ("Registry", "DoesNotExist"): _registry_rule("doesNotExist"),
    ("Registry", "StringComparison"): _registry_rule("string", _string_value),
    ("Registry", "IntegerComparison"): _registry_rule("integer", _integer_value),
    ("Registry", "VersionComparison"): _registry_rule(
        "version", _string_value, "greaterThanOrEqual"
    ),
}

DETECTION_RULES: dict[tuple[str, str | None], RuleBuilder] = {
    ("MSI", None): _msi_rule,
    **_FILE_RULES,
    **_REGISTRY_RULES,
    ("Script", None): _script_detection_rule,
}

REQUIREMENT_RULES: dict[tuple[str, str | None], RuleBuilder] = {
    **_FILE_RULES,
    **_REGISTRY_RULES,
    ("Script", "String"): _script_requirement_rule("string", _string_value, "equal"),
    ("Script", "Integer"): _script_requirement_rule("integer", _integer_value, "equal"),
    ("Script", "Boolean"): _script_requirement_rule("boolean", _boolean_value, "equal"),
    ("Script", "DateTime"): _script_requirement_rule(
        "dateTime", _string_value, "greaterThanOrEqual"
    ),
    ("Script", "Float"): _script_requirement_rule("float", _float_value, "equal"),
    ("Script", "Version"): _script_requirement_rule(
        "version", _string_value, "greaterThanOrEqual"
    ),
}

_TABLES: dict[str, dict[tuple[str, str | None], RuleBuilder]] = {
    "detection": DETECTION_RULES,
    "requirement": REQUIREMENT_RULES,
}


def is_supported_rule(kind: str, method: str | None, purpose: RulePurpose) -> bool:
    """Return True if (kind, method) has a translation for the given purpose."""
    return (kind, method) in _TABLES[purpose]


def translate_rule(rule: RuleDeclaration, purpose: RulePurpose) -> dict[str, Any]:
    """Translate a single rule declaration.

    Args:
        rule: Declaration parsed from App.json.
        purpose: "detection" or "requirement"; becomes the Graph ruleType.

    Returns:
        The Graph rule object.

    Raises:
        TranslationError: If (kind, method) is not supported for purpose, a
            required field is missing, or a comparison value cannot be
            coerced to its type.
    """
    builder = _TABLES[purpose].get((rule.kind, rule.method))
    if builder is None:
        raise TranslationError(
            f"Unsupported {purpose} rule: kind={rule.kind!r} method={rule.method!r}"
        )
    return builder(rule, purpose)


def translate_detection_rules(rules: Iterable[RuleDeclaration]) -> list[dict[str, Any]]:
    """Translate DetectionRule entries into Graph detection rules.

    Raises:
        TranslationError: If rules is empty or any entry cannot be translated.
    """
    translated = [translate_rule(rule, "detection") for rule in rules]
    if not translated:
        raise TranslationError("At least one detection rule is required")
    return translated


def translate_requirement_rules(
    rules: Iterable[RuleDeclaration],
) -> list[dict[str, Any]]:
    """Translate CustomRequirementRule entries into Graph requirement rules."""
    return [translate_rule(rule, "requirement") for rule in rules]


def translate_base_requirements(requirement_rule: dict[str, Any]) -> dict[str, Any]:
    """Translate the RequirementRule section (architecture, minimum OS).

    Args:
        requirement_rule: The RequirementRule section of App.json, with
            `Architecture` (x64, x86, arm, neutral, All) and
            `MinimumSupportedWindowsRelease` (e.g., "W10_1809").

    Returns:
        Properties to merge into the win32LobApp body.

    Raises:
        TranslationError: If a key is missing or the architecture is unknown.
    """
    architecture = str(requirement_rule.get("Architecture") or "").strip()
    minimum_release = requirement_rule.get("MinimumSupportedWindowsRelease")
    if not architecture or not minimum_release:
        raise TranslationError(
            "RequirementRule needs Architecture and MinimumSupportedWindowsRelease"
        )
    applicable = _ARCHITECTURES.get(architecture.lower())
    if applicable is None:
        raise TranslationError(f"Unknown architecture: {architecture!r}")
    return {
        "applicableArchitectures": applicable,
        "minimumSupportedWindowsRelease": str(minimum_release),
    }
