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


"""Public API return types for AppCycle.

This module defines dataclasses for return values from the pipeline stage
functions, the orchestrator and offline validation.

All dataclasses are frozen (immutable) to prevent accidental mutation of
return values.

Example:
    Using result types:
        ```python
        from appcycle.core import run_pipeline
        from appcycle.results import PipelineResult

        result: PipelineResult = run_pipeline(descriptors, settings, client)
        if result.status == "nothing_to_do":
            print("No applications to process")
        for failure in result.failures:
            print(failure.app_name, failure.message)
        ```

Note:
    Only public API return types belong in this module. Domain types
    (like ResolvedVersion and the stage records) live in appcycle.models.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Generic, Literal, TypeVar

T = TypeVar("T")

PipelineStatus = Literal["nothing_to_do", "failed", "completed", "cancelled"]


@dataclass(frozen=True)
class AppFailure:
    """A per-application failure recorded by a stage.

    Attributes:
        app_name: Application name from the app list.
        stage: Stage that failed ("check", "download", ...).
        error_type: Exception class name (e.g., "VersionNotFoundError").
        message: Error message.
    """

    app_name: str
    stage: str
    error_type: str
    message: str


@dataclass(frozen=True)
class StageResult(Generic[T]):
    """Output of one stage function.

    Attributes:
        records: Records produced for the next stage, in input order.
        failures: Applications that failed in this stage.
        cancelled: True when the cancel token stopped the stage early.
    """

    records: list[T] = field(default_factory=list)
    failures: list[AppFailure] = field(default_factory=list)
    cancelled: bool = False


@dataclass(frozen=True)
class AssignmentOutcome:
    """Assignments created for one published application.

    Attributes:
        app_name: Application name from the app list.
        catalog_app_id: Catalog object id of the published app.
        created: Number of assignments created.
        skipped: One message per declaration that was not created.
    """

    app_name: str
    catalog_app_id: str
    created: int
    skipped: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class PipelineResult:
    """Result of a full pipeline run.

    Attributes:
        status: "completed", "nothing_to_do" (a stage produced no records
            and recorded no failures, later stages did not run), "failed"
            (a stage produced no records and at least one application failed
            in it) or "cancelled".
        stage_counts: Records produced per executed stage, in order.
        failures: Per-application failures from every executed stage.
        outcomes: Assignment outcomes of the final stage.
        halted_after: Stage after which the run stopped early, if any.
    """

    status: PipelineStatus
    stage_counts: dict[str, int] = field(default_factory=dict)
    failures: list[AppFailure] = field(default_factory=list)
    outcomes: list[AssignmentOutcome] = field(default_factory=list)
    halted_after: str | None = None


@dataclass(frozen=True)
class ValidationResult:
    """Result from validating an app list offline.

    Attributes:
        status: Validation status ("valid" or "invalid").
        errors: List of error messages (empty if valid).
        warnings: List of warning messages.
        app_count: Number of applications in the list.
        app_list_path: String path to the validated app list.
    """

    status: str
    errors: list[str]
    warnings: list[str]
    app_count: int
    app_list_path: str
