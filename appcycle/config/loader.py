"""
Configuration loading for AppCycle.

Three inputs drive a run:

1. **Settings** (appcycle.yaml, optional)
   - Paths (app list, apps root, workspace, hand-off folder, tool cache)
   - Timeouts for external calls and packaging
   - Graph endpoint
   Built-in defaults are deep-merged with the YAML file, then APPCYCLE_*
   environment variables, then explicit overrides (last wins).

2. **App list** (appList.json)
   - JSON array of application descriptors with PascalCase keys
   - Each descriptor is validated by the version source it names

3. **App manifest** (<apps_root>/<AppFolderName>/App.json)
   - Information, Program, RequirementRule, CustomRequirementRule,
     DetectionRule, Assignment, PackageInformation
   - Rule declarations are checked against the rule translation tables
   - Script rules may reference a ScriptFile that is inlined at load time

Merge Behavior
--------------
  - **Dicts**: Recursively merged (keys from overlay override base)
  - **Lists**: Completely replaced (NOT appended/extended)
  - **Scalars**: Overwritten (strings, numbers, booleans)

Path Resolution
---------------
Relative paths in the settings file are resolved against the SETTINGS FILE
location; without a settings file they are resolved against the current
working directory.

Error Handling
--------------
Every problem found while loading raises ConfigError, chained with
"from err" when it wraps a parser or OS error. Loading problems halt the
batch before any application is processed.

Examples
--------
    >>> from pathlib import Path
    >>> from appcycle.config import load_app_list, load_settings
    >>> settings = load_settings(Path("appcycle.yaml"))
    >>> descriptors = load_app_list(settings.app_list)
    >>> descriptors[0].app_name
    '7-Zip'
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
import json
import os
from pathlib import Path
from typing import Any

import yaml

from appcycle.discovery import get_source
from appcycle.exceptions import ConfigError
from appcycle.logging import get_global_logger
from appcycle.models import (
    NAMING_CONVENTIONS,
    SOURCE_KINDS,
    AppDescriptor,
    AppManifest,
    AssignmentDeclaration,
    RuleDeclaration,
)
from appcycle.rules import as_bool, is_supported_rule

MANIFEST_FILE_NAME = "App.json"

DEFAULT_SETTINGS: dict[str, Any] = {
    "paths": {
        "app_list": "appList.json",
        "apps_root": "Apps",
        "workspace": ".appcycle/work",
        "handoff": None,
        "tool_cache": ".appcycle/tools",
    },
    "packaging": {
        "tool_path": None,
        "timeout": 300,
    },
    "network": {
        "request_timeout": 60,
    },
    "graph": {
        "base_url": "https://graph.microsoft.com/beta",
    },
}

# env var -> (section, key)
_ENV_OVERRIDES: dict[str, tuple[str, str]] = {
    "APPCYCLE_APP_LIST": ("paths", "app_list"),
    "APPCYCLE_APPS_ROOT": ("paths", "apps_root"),
    "APPCYCLE_WORKSPACE": ("paths", "workspace"),
    "APPCYCLE_HANDOFF_DIR": ("paths", "handoff"),
    "APPCYCLE_TOOL_CACHE": ("paths", "tool_cache"),
    "APPCYCLE_TOOL_PATH": ("packaging", "tool_path"),
    "APPCYCLE_PACKAGING_TIMEOUT": ("packaging", "timeout"),
    "APPCYCLE_REQUEST_TIMEOUT": ("network", "request_timeout"),
    "APPCYCLE_GRAPH_URL": ("graph", "base_url"),
}

# App list key -> AppDescriptor field
_DESCRIPTOR_KEYS: dict[str, str] = {
    "IntuneAppName": "app_name",
    "AppNamingConvention": "naming_convention",
    "AppPublisher": "publisher",
    "AppSource": "source",
    "AppID": "app_id",
    "FilterOptions": "filter_options",
    "Repository": "repository",
    "Tag": "tag",
    "FileName": "file_name",
    "URI": "url",
    "Version": "version",
    "InstallerType": "installer_type",
    "AppFolderName": "app_folder",
}
_REQUIRED_DESCRIPTOR_KEYS = ("IntuneAppName", "AppPublisher", "AppSource", "AppFolderName")

_INTENTS = ("available", "required", "uninstall")
_VIRTUAL_GROUPS = ("AllDevices", "AllUsers")
_MODES = ("include", "exclude")


# -------------------------------
# Data types
# -------------------------------


@dataclass(frozen=True)
class Settings:
    """
    Effective settings for one run.

    Every path is absolute. handoff_dir is None when stage lists are not
    written to disk; packaging_tool_path is None when IntuneWinAppUtil.exe
    is downloaded into tool_cache_dir on first use.
    """

    app_list: Path
    apps_root: Path
    workspace_dir: Path
    handoff_dir: Path | None
    tool_cache_dir: Path
    packaging_tool_path: Path | None
    request_timeout: int = 60
    packaging_timeout: int = 300
    graph_base_url: str = "https://graph.microsoft.com/beta"


# -------------------------------
# File helpers
# -------------------------------


def _load_yaml_file(p: Path) -> Any:
    """
    Load a YAML file and return the parsed Python object.

    Raises:
      ConfigError - when the file does not exist, is empty or is invalid YAML
    """
    if not p.exists():
        raise ConfigError(f"Settings file not found: {p}")
    try:
        with p.open("r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as err:
        raise ConfigError(f"Error parsing YAML: {p}: {err}") from err
    if data is None:
        raise ConfigError(f"YAML file is empty: {p}")
    return data


def _load_json_file(p: Path, what: str) -> Any:
    if not p.exists():
        raise ConfigError(f"{what} not found: {p}")
    try:
        with p.open("r", encoding="utf-8-sig") as f:
            return json.load(f)
    except json.JSONDecodeError as err:
        raise ConfigError(f"Error parsing JSON: {p}: {err}") from err
    except OSError as err:
        raise ConfigError(f"Cannot read {what}: {p}: {err}") from err


# -------------------------------
# Merge logic
# -------------------------------


def _deep_merge_dicts(base: dict[str, Any], overlay: dict[str, Any]) -> dict[str, Any]:
    """
    Deep-merge two dicts with "overlay wins".

    Rules:
      - dict + dict -> deep merge
      - list + list -> overlay REPLACES base (not concatenated)
      - everything else -> overlay overwrites base

    This function does not mutate inputs; returns a new dict.
    """
    result: dict[str, Any] = dict(base)
    for k, v in overlay.items():
        if k in result and isinstance(result[k], dict) and isinstance(v, dict):
            result[k] = _deep_merge_dicts(result[k], v)
        else:
            # Replace lists and scalars entirely
            result[k] = v
    return result


def _env_overlay(environ: Mapping[str, str]) -> dict[str, Any]:
    overlay: dict[str, Any] = {}
    for name, (section, key) in _ENV_OVERRIDES.items():
        value = environ.get(name)
        if value:
            overlay.setdefault(section, {})[key] = value
    return overlay


# -------------------------------
# Value helpers
# -------------------------------


def _resolve_path(raw: Any, base_dir: Path) -> Path:
    p = Path(str(raw)).expanduser()
    if not p.is_absolute():
        p = base_dir / p
    return p.resolve()


def _positive_int(raw: Any, name: str) -> int:
    try:
        value = int(raw)
    except (TypeError, ValueError) as err:
        raise ConfigError(f"{name} must be an integer, got {raw!r}") from err
    if value <= 0:
        raise ConfigError(f"{name} must be positive, got {value}")
    return value


def _optional_minutes(value: Any, name: str) -> int | None:
    if value is None or value == "":
        return None
    try:
        minutes = int(value)
    except (TypeError, ValueError) as err:
        raise ConfigError(f"{name} must be an integer, got {value!r}") from err
    if minutes < 0:
        raise ConfigError(f"{name} must not be negative, got {minutes}")
    return minutes


def _optional_str(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


# -------------------------------
# Settings
# -------------------------------


def load_settings(
    path: Path | None = None,
    *,
    overrides: dict[str, Any] | None = None,
    environ: Mapping[str, str] | None = None,
) -> Settings:
    """
    Load the effective settings for a run.

    Steps
      1) Start from DEFAULT_SETTINGS.
      2) Merge the YAML settings file when given.
      3) Merge APPCYCLE_* environment variables.
      4) Merge explicit overrides (e.g., from the command line).
      5) Resolve relative paths against the settings file directory.

    Args:
        path: Settings YAML file, or None to use defaults only.
        overrides: Nested dict merged last, same shape as the YAML file.
        environ: Environment mapping; defaults to os.environ.

    Returns:
        The frozen Settings.

    Raises:
        ConfigError: On a missing/invalid settings file or invalid values.
    """
    logger = get_global_logger()
    merged = dict(DEFAULT_SETTINGS)
    base_dir = Path.cwd()

    if path is not None:
        path = path.resolve()
        logger.verbose("CONFIG", f"Loading settings: {path}")
        file_obj = _load_yaml_file(path)
        if not isinstance(file_obj, dict):
            raise ConfigError(f"Top-level YAML must be a mapping (dict): {path}")
        merged = _deep_merge_dicts(merged, file_obj)
        base_dir = path.parent

    env = _env_overlay(os.environ if environ is None else environ)
    if env:
        logger.verbose("CONFIG", f"Applying environment overrides: {sorted(env)}")
        merged = _deep_merge_dicts(merged, env)
    if overrides:
        merged = _deep_merge_dicts(merged, overrides)

    paths = merged.get("paths") or {}
    packaging = merged.get("packaging") or {}
    network = merged.get("network") or {}
    graph = merged.get("graph") or {}

    handoff = paths.get("handoff")
    tool_path = packaging.get("tool_path")
    settings = Settings(
        app_list=_resolve_path(paths.get("app_list") or "appList.json", base_dir),
        apps_root=_resolve_path(paths.get("apps_root") or "Apps", base_dir),
        workspace_dir=_resolve_path(paths.get("workspace") or ".appcycle/work", base_dir),
        handoff_dir=_resolve_path(handoff, base_dir) if handoff else None,
        tool_cache_dir=_resolve_path(
            paths.get("tool_cache") or ".appcycle/tools", base_dir
        ),
        packaging_tool_path=_resolve_path(tool_path, base_dir) if tool_path else None,
        request_timeout=_positive_int(
            network.get("request_timeout", 60), "network.request_timeout"
        ),
        packaging_timeout=_positive_int(
            packaging.get("timeout", 300), "packaging.timeout"
        ),
        graph_base_url=str(graph.get("base_url") or DEFAULT_SETTINGS["graph"]["base_url"]),
    )
    logger.debug("CONFIG", f"Effective settings: {settings}")
    return settings


# -------------------------------
# App list
# -------------------------------


def parse_descriptor(entry: Any, index: int = 0) -> AppDescriptor:
    """
    Build an AppDescriptor from one app list entry.

    Raises:
        ConfigError: If a common key is missing, the source kind or naming
            convention is unknown, or the source rejects the descriptor.
    """
    if not isinstance(entry, dict):
        raise ConfigError(f"App list entry #{index} must be an object")

    label = entry.get("IntuneAppName") or f"entry #{index}"
    missing = [k for k in _REQUIRED_DESCRIPTOR_KEYS if not entry.get(k)]
    if missing:
        raise ConfigError(f"{label}: missing required key(s): {', '.join(missing)}")

    values: dict[str, Any] = {}
    for key, attr in _DESCRIPTOR_KEYS.items():
        value = entry.get(key)
        if value is None:
            continue
        if attr == "filter_options":
            if not isinstance(value, dict):
                raise ConfigError(f"{label}: FilterOptions must be an object")
            values[attr] = {str(k): str(v) for k, v in value.items() if v not in (None, "")}
        else:
            values[attr] = str(value).strip()

    descriptor = AppDescriptor(**values)

    if descriptor.source not in SOURCE_KINDS:
        raise ConfigError(
            f"{label}: unknown AppSource {descriptor.source!r} "
            f"(expected one of {', '.join(SOURCE_KINDS)})"
        )
    if descriptor.naming_convention not in NAMING_CONVENTIONS:
        raise ConfigError(
            f"{label}: unknown AppNamingConvention {descriptor.naming_convention!r}"
        )

    errors = get_source(descriptor.source).validate_descriptor(descriptor)
    if errors:
        raise ConfigError(f"{label}: " + "; ".join(errors))
    return descriptor


def load_app_list(path: Path) -> list[AppDescriptor]:
    """
    Load and validate the master application list.

    Args:
        path: Path to the JSON app list.

    Returns:
        Descriptors in file order.

    Raises:
        ConfigError: If the file is missing or malformed, or any entry is
            invalid. The whole list is rejected on the first bad entry.
    """
    logger = get_global_logger()
    data = _load_json_file(path, "App list")
    if not isinstance(data, list):
        raise ConfigError(f"App list must be a JSON array: {path}")

    descriptors = [parse_descriptor(entry, i) for i, entry in enumerate(data)]
    logger.verbose("CONFIG", f"Loaded {len(descriptors)} application(s) from {path}")
    return descriptors


# -------------------------------
# Manifest
# -------------------------------


def _inline_script(fields: dict[str, Any], app_dir: Path, label: str) -> None:
    """Replace ScriptFile with its content under ScriptContent. Mutates fields."""
    if fields.get("ScriptContent"):
        return
    script_file = fields.get("ScriptFile")
    if not script_file:
        raise ConfigError(f"{label}: Script rule needs ScriptFile or ScriptContent")
    script_path = app_dir / str(script_file)
    try:
        fields["ScriptContent"] = script_path.read_text(encoding="utf-8-sig")
    except OSError as err:
        raise ConfigError(f"{label}: cannot read script {script_path}: {err}") from err


def _parse_rule(entry: Any, purpose: str, app_dir: Path, label: str) -> RuleDeclaration:
    if not isinstance(entry, dict):
        raise ConfigError(f"{label}: {purpose} rule entries must be objects")

    kind = str(entry.get("Type") or "")
    if kind in ("File", "Registry"):
        method = _optional_str(entry.get("DetectionMethod"))
    elif kind == "Script" and purpose == "requirement":
        method = _optional_str(entry.get("OutputDataType"))
    else:
        method = None

    if not is_supported_rule(kind, method, purpose):  # type: ignore[arg-type]
        raise ConfigError(
            f"{label}: unsupported {purpose} rule Type={kind!r} "
            f"method={method!r}"
        )

    fields = {k: v for k, v in entry.items() if k not in ("Type", "DetectionMethod")}
    if kind == "Script":
        _inline_script(fields, app_dir, label)
    return RuleDeclaration(kind=kind, method=method, fields=fields)


def _parse_assignment(entry: Any, label: str) -> AssignmentDeclaration:
    if not isinstance(entry, dict):
        raise ConfigError(f"{label}: Assignment entries must be objects")

    target_kind = str(entry.get("Type") or "")
    intent = str(entry.get("Intent") or "").lower()
    if intent not in _INTENTS:
        raise ConfigError(f"{label}: unknown assignment Intent {entry.get('Intent')!r}")

    virtual_group = ""
    group_mode = "include"
    if target_kind == "VirtualGroup":
        virtual_group = str(entry.get("GroupName") or "")
        if virtual_group not in _VIRTUAL_GROUPS:
            raise ConfigError(f"{label}: unknown virtual group {virtual_group!r}")
    elif target_kind == "Group":
        group_mode = str(entry.get("GroupMode") or "include").lower()
        if group_mode not in _MODES:
            raise ConfigError(f"{label}: unknown GroupMode {entry.get('GroupMode')!r}")
    else:
        raise ConfigError(f"{label}: unknown assignment Type {target_kind!r}")

    filter_mode = _optional_str(entry.get("FilterMode"))
    if filter_mode is not None:
        filter_mode = filter_mode.lower()
        if filter_mode not in _MODES:
            raise ConfigError(f"{label}: unknown FilterMode {entry.get('FilterMode')!r}")

    return AssignmentDeclaration(
        target_kind=target_kind,
        intent=intent,
        virtual_group=virtual_group,
        group_id=str(entry.get("GroupID") or "").strip(),
        group_mode=group_mode,
        notification=_optional_str(entry.get("Notification")),
        delivery_optimization_priority=_optional_str(
            entry.get("DeliveryOptimizationPriority")
        ),
        restart_grace_period=as_bool(entry.get("EnableRestartGracePeriod")),
        grace_period_minutes=_optional_minutes(
            entry.get("RestartGracePeriod"), "RestartGracePeriod"
        ),
        countdown_minutes=_optional_minutes(
            entry.get("RestartCountDownDisplay"), "RestartCountDownDisplay"
        ),
        snooze_minutes=_optional_minutes(
            entry.get("RestartNotificationSnooze"), "RestartNotificationSnooze"
        ),
        use_local_time=as_bool(entry.get("UseLocalTime")),
        available_time=_optional_str(entry.get("AvailableTime")),
        deadline_time=_optional_str(entry.get("DeadlineTime")),
        filter_name=_optional_str(entry.get("FilterName")),
        filter_mode=filter_mode,
    )


def _section(data: dict[str, Any], key: str, label: str, required: bool) -> dict[str, Any]:
    value = data.get(key)
    if value is None:
        if required:
            raise ConfigError(f"{label}: missing {key} section")
        return {}
    if not isinstance(value, dict):
        raise ConfigError(f"{label}: {key} must be an object")
    return value


def _list_section(data: dict[str, Any], key: str, label: str) -> list[Any]:
    value = data.get(key)
    if value is None:
        return []
    if isinstance(value, dict):
        return [value]
    if not isinstance(value, list):
        raise ConfigError(f"{label}: {key} must be a list")
    return value


def load_manifest(apps_root: Path, app_folder: str) -> AppManifest:
    """
    Load and validate <apps_root>/<app_folder>/App.json.

    An empty DetectionRule list is accepted here; offline validation
    reports it and publishing refuses it.

    Raises:
        ConfigError: If the file is missing or malformed, a section has the
            wrong shape, or a rule/assignment declaration is unknown.
    """
    app_dir = (apps_root / app_folder).resolve()
    manifest_path = app_dir / MANIFEST_FILE_NAME
    label = f"{app_folder}/{MANIFEST_FILE_NAME}"

    data = _load_json_file(manifest_path, "App manifest")
    if not isinstance(data, dict):
        raise ConfigError(f"{label}: top-level JSON must be an object")

    detection = tuple(
        _parse_rule(e, "detection", app_dir, label)
        for e in _list_section(data, "DetectionRule", label)
    )
    requirements = tuple(
        _parse_rule(e, "requirement", app_dir, label)
        for e in _list_section(data, "CustomRequirementRule", label)
    )
    assignments = tuple(
        _parse_assignment(e, label) for e in _list_section(data, "Assignment", label)
    )

    return AppManifest(
        app_folder=app_dir,
        information=_section(data, "Information", label, required=True),
        program=_section(data, "Program", label, required=True),
        requirement_rule=_section(data, "RequirementRule", label, required=False),
        package_information=_section(data, "PackageInformation", label, required=False),
        detection_rules=detection,
        custom_requirement_rules=requirements,
        assignments=assignments,
    )
