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


"""Translation of App.json assignments into Graph mobileAppAssignment bodies.

Each AssignmentDeclaration becomes one `#microsoft.graph.mobileAppAssignment`
request body. The target variant is selected from the declaration:

| Declaration                  | Graph target                         |
|------------------------------|--------------------------------------|
| VirtualGroup AllDevices      | allDevicesAssignmentTarget           |
| VirtualGroup AllUsers        | allLicensedUsersAssignmentTarget     |
| Group, GroupMode include     | groupAssignmentTarget                |
| Group, GroupMode exclude     | exclusionGroupAssignmentTarget       |

Settings defaults:

- notifications: "showAll"
- deliveryOptimizationPriority: "notConfigured"
- restartSettings: only when EnableRestartGracePeriod is set; omitted
  minutes default to 1440 (grace), 15 (countdown) and 240 (snooze)
- installTimeSettings: only when AvailableTime or DeadlineTime is present

Assignment filters are referenced by display name in App.json and resolved
to an id through a filter resolver (normally
GraphCatalogClient.find_assignment_filter_id).

Declarations are independent: translate_assignments() logs a declaration
that cannot be resolved and continues with the rest.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from typing import Any

from appcycle.exceptions import AppCycleError, AssignmentError
from appcycle.logging import get_global_logger
from appcycle.models import AssignmentDeclaration

FilterResolver = Callable[[str], "str | None"]

DEFAULT_NOTIFICATION = "showAll"
DEFAULT_DELIVERY_PRIORITY = "notConfigured"
DEFAULT_GRACE_PERIOD_MINUTES = 1440
DEFAULT_COUNTDOWN_MINUTES = 15
DEFAULT_SNOOZE_MINUTES = 240

_VIRTUAL_TARGETS = {
    "AllDevices": "allDevicesAssignmentTarget",
    "AllUsers": "allLicensedUsersAssignmentTarget",
}
_GROUP_TARGETS = {
    "include": "groupAssignmentTarget",
    "exclude": "exclusionGroupAssignmentTarget",
}


def _target(
    declaration: AssignmentDeclaration, filter_resolver: FilterResolver | None
) -> dict[str, Any]:
    if declaration.target_kind == "VirtualGroup":
        target_type = _VIRTUAL_TARGETS.get(declaration.virtual_group)
        if target_type is None:
            raise AssignmentError(
                f"Unknown virtual group: {declaration.virtual_group!r}"
            )
        target: dict[str, Any] = {"@odata.type": f"#microsoft.graph.{target_type}"}
    elif declaration.target_kind == "Group":
        if not declaration.group_id:
            raise AssignmentError("Group assignment requires a non-empty GroupID")
        target_type = _GROUP_TARGETS.get(declaration.group_mode)
        if target_type is None:
            raise AssignmentError(f"Unknown group mode: {declaration.group_mode!r}")
        target = {
            "@odata.type": f"#microsoft.graph.{target_type}",
            "groupId": declaration.group_id,
        }
    else:
        raise AssignmentError(f"Unknown assignment target: {declaration.target_kind!r}")

    filter_id, filter_type = _filter(declaration, filter_resolver)
    target["deviceAndAppManagementAssignmentFilterId"] = filter_id
    target["deviceAndAppManagementAssignmentFilterType"] = filter_type
    return target


def _filter(
    declaration: AssignmentDeclaration, filter_resolver: FilterResolver | None
) -> tuple[str | None, str]:
    name = declaration.filter_name
    if not name:
        return None, "none"
    if filter_resolver is None:
        raise AssignmentError(f"Filter {name!r} declared but no filter lookup available")
    try:
        filter_id = filter_resolver(name)
    except AppCycleError as err:
        raise AssignmentError(f"Filter lookup failed for {name!r}: {err}") from err
    if not filter_id:
        raise AssignmentError(f"Assignment filter not found: {name!r}")
    return filter_id, declaration.filter_mode or "include"


def _or_default(minutes: int | None, default: int) -> int:
    return default if minutes is None else minutes


def _settings(declaration: AssignmentDeclaration) -> dict[str, Any]:
    settings: dict[str, Any] = {
        "@odata.type": "#microsoft.graph.win32LobAppAssignmentSettings",
        "notifications": declaration.notification or DEFAULT_NOTIFICATION,
        "deliveryOptimizationPriority": (
            declaration.delivery_optimization_priority or DEFAULT_DELIVERY_PRIORITY
        ),
        "restartSettings": None,
        "installTimeSettings": None,
    }
    if declaration.restart_grace_period:
        settings["restartSettings"] = {
            "gracePeriodInMinutes": _or_default(
                declaration.grace_period_minutes, DEFAULT_GRACE_PERIOD_MINUTES
            ),
            "countdownDisplayBeforeRestartInMinutes": _or_default(
                declaration.countdown_minutes, DEFAULT_COUNTDOWN_MINUTES
            ),
            "restartNotificationSnoozeDurationInMinutes": _or_default(
                declaration.snooze_minutes, DEFAULT_SNOOZE_MINUTES
            ),
        }
    if declaration.available_time or declaration.deadline_time:
        settings["installTimeSettings"] = {
            "useLocalTime": declaration.use_local_time,
            "startDateTime": declaration.available_time,
            "deadlineDateTime": declaration.deadline_time,
        }
    return settings


def translate_assignment(
    declaration: AssignmentDeclaration,
    app_id: str,
    filter_resolver: FilterResolver | None = None,
) -> dict[str, Any]:
    """Build the mobileAppAssignment body for one declaration.

    Args:
        declaration: Parsed Assignment entry.
        app_id: Catalog id of the application (used in messages).
        filter_resolver: Maps an assignment filter name to its id.

    Returns:
        The request body for POST mobileApps/{app_id}/assignments.

    Raises:
        AssignmentError: If the target is incomplete (e.g., empty GroupID)
            or a declared filter cannot be resolved.

    Example:
        ```python
        body = translate_assignment(
            AssignmentDeclaration(target_kind="Group", intent="required",
                                  group_id="g1", group_mode="exclude"),
            app_id,
        )
        body["target"]["@odata.type"]
        # "#microsoft.graph.exclusionGroupAssignmentTarget"
        ```
    """
    try:
        target = _target(declaration, filter_resolver)
    except AssignmentError as err:
        raise AssignmentError(f"App {app_id}: {err}") from err
    return {
        "@odata.type": "#microsoft.graph.mobileAppAssignment",
        "intent": declaration.intent,
        "target": target,
        "settings": _settings(declaration),
    }


def translate_assignments(
    declarations: Iterable[AssignmentDeclaration],
    app_id: str,
    filter_resolver: FilterResolver | None = None,
    *,
    app_label: str = "",
) -> tuple[list[dict[str, Any]], list[str]]:
    """Translate every declaration, skipping the ones that fail.

    Returns:
        A tuple (bodies, errors): bodies for the declarations that could be
            resolved, and one message per skipped declaration.
    """
    logger = get_global_logger()
    bodies: list[dict[str, Any]] = []
    errors: list[str] = []
    for index, declaration in enumerate(declarations):
        try:
            bodies.append(translate_assignment(declaration, app_id, filter_resolver))
        except AssignmentError as err:
            message = f"Assignment #{index + 1} skipped: {err}"
            logger.error(app_label or app_id, message)
            errors.append(message)
    return bodies, errors
