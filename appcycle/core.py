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


"""Core orchestration for AppCycle.

This module runs the five pipeline stages in their fixed order and decides
when a run stops:

- **Nothing to do** - A stage that produces zero records without any
    failure ends the run with status "nothing_to_do". The empty hand-off
    list is written as the terminal signal and no later list exists
    afterwards.
- **Failed** - A stage that produces zero records because applications
    failed in it ends the run the same way, with status "failed".
- **Cancelled** - When the cancel event is set, the current stage stops
    before its next application; records produced so far are written to the
    hand-off list and the run ends with status "cancelled".
- **Completed** - All five stages ran.

Per-application failures never stop a run; they are collected in
PipelineResult.failures.

Design Principles:

- Stage functions are pure with respect to the records they receive
- Hand-off lists are optional; without a hand-off folder a run keeps
    everything in memory
- A run can start at any stage by loading the previous stage's list

Example:
    Programmatic usage:
        ```python
        from pathlib import Path
        from appcycle.auth import CredentialManager
        from appcycle.catalog import GraphCatalogClient
        from appcycle.config import load_app_list, load_settings
        from appcycle.core import run_pipeline

        settings = load_settings(Path("appcycle.yaml"))
        client = GraphCatalogClient(CredentialManager(), timeout=settings.request_timeout)
        result = run_pipeline(load_app_list(settings.app_list), settings, client)
        print(result.status, result.stage_counts)
        ```

"""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path
import threading
from typing import Any

from appcycle.catalog.base import CatalogClient
from appcycle.config import Settings
from appcycle.exceptions import ConfigError
from appcycle.handoff import load_records, save_records
from appcycle.logging import get_global_logger
from appcycle.models import (
    AppDescriptor,
    AssignRecord,
    DownloadRecord,
    PrepareRecord,
    ProcessRecord,
    PublishRecord,
)
from appcycle.pipeline import (
    assign_stage,
    check_stage,
    download_stage,
    prepare_stage,
    publish_stage,
)
from appcycle.results import AppFailure, PipelineResult, StageResult

STAGES: tuple[str, ...] = ("check", "download", "prepare", "publish", "assign")

# stage -> (input record type, output record type or None for the last stage)
_STAGE_TYPES: dict[str, tuple[type[ProcessRecord], type[ProcessRecord] | None]] = {
    "check": (ProcessRecord, DownloadRecord),
    "download": (DownloadRecord, PrepareRecord),
    "prepare": (PrepareRecord, PublishRecord),
    "publish": (PublishRecord, AssignRecord),
    "assign": (AssignRecord, None),
}

_STEP_MESSAGES = {
    "check": "Checking for new versions...",
    "download": "Downloading installers...",
    "prepare": "Packaging applications...",
    "publish": "Publishing to the catalog...",
    "assign": "Creating assignments...",
}


def _stage_runners(
    settings: Settings,
    client: CatalogClient,
    cancel: threading.Event | None,
) -> dict[str, Callable[[list[Any]], StageResult[Any]]]:
    return {
        "check": lambda rs: check_stage(rs, settings, client, cancel=cancel),
        "download": lambda rs: download_stage(rs, settings, cancel=cancel),
        "prepare": lambda rs: prepare_stage(rs, settings, cancel=cancel),
        "publish": lambda rs: publish_stage(rs, settings, client, cancel=cancel),
        "assign": lambda rs: assign_stage(rs, settings, client, cancel=cancel),
    }


def run_pipeline(
    descriptors: list[AppDescriptor] | None,
    settings: Settings,
    client: CatalogClient,
    *,
    cancel: threading.Event | None = None,
    handoff_dir: Path | None = None,
    start_at: str = "check",
    stop_after: str = "assign",
) -> PipelineResult:
    """Run the lifecycle pipeline.

    Args:
        descriptors: Applications to process. Ignored when start_at is not
            "check"; the input then comes from the previous stage's list.
        settings: Effective settings.
        client: Catalog client.
        cancel: Event that stops the run before the next application.
        handoff_dir: Folder for hand-off lists; defaults to
            settings.handoff_dir. None keeps lists in memory only.
        start_at: First stage to run.
        stop_after: Last stage to run.

    Returns:
        PipelineResult with status, per-stage counts, failures and the
            assignment outcomes.

    Raises:
        ConfigError: If the stage names are unknown, start_at is later than
            stop_after, or a resumed run has no hand-off list to read.
    """
    logger = get_global_logger()
    if start_at not in STAGES or stop_after not in STAGES:
        raise ConfigError(f"Unknown stage; expected one of {', '.join(STAGES)}")
    first, last = STAGES.index(start_at), STAGES.index(stop_after)
    if first > last:
        raise ConfigError(f"Stage {start_at!r} comes after {stop_after!r}")

    handoff_dir = handoff_dir or settings.handoff_dir
    input_type = _STAGE_TYPES[start_at][0]

    if start_at == "check":
        records: list[Any] = [ProcessRecord(d) for d in descriptors or []]
        if handoff_dir:
            save_records(records, ProcessRecord, handoff_dir)
    else:
        if handoff_dir is None:
            raise ConfigError(f"Starting at {start_at!r} needs a hand-off folder")
        records = load_records(input_type, handoff_dir)
        logger.verbose("CORE", f"Loaded {len(records)} record(s) for {start_at}")

    if not records:
        logger.verbose("CORE", "No applications to process")
        return PipelineResult(status="nothing_to_do", halted_after=None)

    runners = _stage_runners(settings, client, cancel)
    counts: dict[str, int] = {}
    failures: list[AppFailure] = []
    selected = STAGES[first : last + 1]

    for step, stage in enumerate(selected, start=1):
        logger.step(step, len(selected), _STEP_MESSAGES[stage])
        result = runners[stage](records)
        counts[stage] = len(result.records)
        failures.extend(result.failures)

        output_type = _STAGE_TYPES[stage][1]
        if output_type is None:
            return PipelineResult(
                status="cancelled" if result.cancelled else "completed",
                stage_counts=counts,
                failures=failures,
                outcomes=list(result.records),
                halted_after="assign" if result.cancelled else None,
            )

        if handoff_dir:
            save_records(result.records, output_type, handoff_dir)

        if result.cancelled:
            return PipelineResult(
                status="cancelled",
                stage_counts=counts,
                failures=failures,
                halted_after=stage,
            )
        if not result.records:
            logger.verbose("CORE", f"No records after {stage}; stopping")
            return PipelineResult(
                status="failed" if result.failures else "nothing_to_do",
                stage_counts=counts,
                failures=failures,
                halted_after=stage,
            )
        records = result.records

    return PipelineResult(status="completed", stage_counts=counts, failures=failures)
