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


"""Stage hand-off lists for AppCycle.

Each pipeline stage can persist the records it produced as a JSON list so a
later invocation (or another machine) can resume from that point:

| Record type    | File              |
|----------------|-------------------|
| ProcessRecord  | ProcessList.json  |
| DownloadRecord | DownloadList.json |
| PrepareRecord  | PrepareList.json  |
| PublishRecord  | PublishList.json  |
| AssignRecord   | AssignList.json   |

An empty list is the terminal signal of a run: the stage that produced no
records writes its (empty) list, and every list after it is removed so no
stale records from an earlier run are picked up.

File layout: a JSON array of records, one object per application. The
record type follows from the file name:

    [
      {"descriptor": {...}, "display_name": "Igor Pavlov 7-Zip", ...}
    ]

Example:
    ```python
    from pathlib import Path
    from appcycle.handoff import load_records, save_records
    from appcycle.models import DownloadRecord

    save_records(records, DownloadRecord, Path("handoff"))
    records = load_records(DownloadRecord, Path("handoff"))
    ```
"""

from __future__ import annotations

from dataclasses import asdict, fields
import json
from pathlib import Path
from typing import Any, TypeVar

from appcycle.exceptions import ConfigError
from appcycle.models import (
    AppDescriptor,
    AssignRecord,
    DownloadRecord,
    PrepareRecord,
    ProcessRecord,
    PublishRecord,
)

R = TypeVar("R", bound=ProcessRecord)

# In pipeline order
LIST_FILES: dict[type[ProcessRecord], str] = {
    ProcessRecord: "ProcessList.json",
    DownloadRecord: "DownloadList.json",
    PrepareRecord: "PrepareList.json",
    PublishRecord: "PublishList.json",
    AssignRecord: "AssignList.json",
}


def list_path(record_type: type[ProcessRecord], handoff_dir: Path) -> Path:
    """Return the hand-off file for record_type inside handoff_dir."""
    return handoff_dir / LIST_FILES[record_type]


def record_to_dict(record: ProcessRecord) -> dict[str, Any]:
    return asdict(record)


def record_from_dict(data: dict[str, Any], record_type: type[R]) -> R:
    """Rebuild a record from its JSON form.

    Raises:
        ConfigError: If keys are missing or unexpected.
    """
    try:
        values = {f.name: data[f.name] for f in fields(record_type)}
        values["descriptor"] = AppDescriptor(**values["descriptor"])
        return record_type(**values)
    except (KeyError, TypeError) as err:
        raise ConfigError(f"Malformed {record_type.__name__} entry: {err}") from err


def clear_downstream(record_type: type[ProcessRecord], handoff_dir: Path) -> None:
    """Remove the lists that come after record_type in the pipeline."""
    order = list(LIST_FILES)
    for later in order[order.index(record_type) + 1 :]:
        list_path(later, handoff_dir).unlink(missing_ok=True)


def save_records(
    records: list[R], record_type: type[R], handoff_dir: Path
) -> Path:
    """Write the hand-off list for record_type.

    Downstream lists are removed first. Uses 2-space indentation and sorted
    keys for consistent diffs.

    Returns:
        Path of the written file.
    """
    clear_downstream(record_type, handoff_dir)
    target = list_path(record_type, handoff_dir)
    target.parent.mkdir(parents=True, exist_ok=True)

    payload = [record_to_dict(r) for r in records]
    tmp = target.with_suffix(".json.part")
    with open(tmp, "w", encoding="utf-8") as f:
        json.dump(payload, f, indent=2, sort_keys=True)
        f.write("\n")
    tmp.replace(target)
    return target


def load_records(record_type: type[R], handoff_dir: Path) -> list[R]:
    """Read the hand-off list for record_type.

    Raises:
        ConfigError: If the list is missing, corrupted, not a JSON array, or
            holds entries that are not record_type records.
    """
    source = list_path(record_type, handoff_dir)
    try:
        with open(source, encoding="utf-8") as f:
            payload = json.load(f)
    except FileNotFoundError as err:
        raise ConfigError(f"Hand-off list not found: {source}") from err
    except json.JSONDecodeError as err:
        raise ConfigError(f"Corrupted hand-off list {source}: {err}") from err

    if not isinstance(payload, list):
        raise ConfigError(f"Hand-off list {source} must be a JSON array")
    for item in payload:
        if not isinstance(item, dict):
            raise ConfigError(
                f"Malformed {record_type.__name__} entry in {source}: {item!r}"
            )
    return [record_from_dict(item, record_type) for item in payload]
