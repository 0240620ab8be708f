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


"""Command-line interface for AppCycle.

This module provides the main CLI entry point for the appcycle tool,
offering commands to validate the app list, check for new versions, and run
the full lifecycle pipeline.

Commands:

    validate: Validate the app list and App.json manifests (offline)
    check: Resolve versions and compare them with the Intune catalog
    run: Check, download, package, publish and assign

Example:
    Validate the app list:
        ```bash
        $ appcycle validate --config appcycle.yaml
        ```

    See which applications have new versions:
        ```bash
        $ appcycle check --config appcycle.yaml
        ```

    Run the whole pipeline, keeping hand-off lists:
        ```bash
        $ appcycle run --config appcycle.yaml --handoff-dir ./handoff
        ```

    Resume a run at the publish stage:
        ```bash
        $ appcycle run --handoff-dir ./handoff --from publish
        ```

Exit Codes:

- 0: Completed, or nothing to do (per-application failures are reported
  but do not change the exit code)
- 1: Batch-halting error (configuration, app list, authentication)
- 130: Cancelled (Ctrl+C)

Note:
    Commands are registered with argparse subparsers, one handler function
    per command (cmd_<command>). Verbose mode shows full tracebacks on
    errors. Debug mode implies verbose mode.

"""

from __future__ import annotations

import argparse
from importlib.metadata import version
from pathlib import Path
import signal
import sys
import threading
import traceback
from typing import Any

from appcycle.auth import CredentialManager
from appcycle.catalog import GraphCatalogClient
from appcycle.config import Settings, load_app_list, load_settings
from appcycle.core import STAGES, run_pipeline
from appcycle.exceptions import AppCycleError
from appcycle.logging import get_logger, set_global_logger
from appcycle.results import PipelineResult
from appcycle.validation import validate_app_list

DEFAULT_SETTINGS_FILE = Path("appcycle.yaml")

EXIT_OK = 0
EXIT_ERROR = 1
EXIT_CANCELLED = 130


def _settings_from_args(args: argparse.Namespace) -> Settings:
    """Load settings, letting command-line paths override the file."""
    config = Path(args.config) if args.config else None
    if config is None and DEFAULT_SETTINGS_FILE.exists():
        config = DEFAULT_SETTINGS_FILE

    paths: dict[str, Any] = {}
    if getattr(args, "app_list", None):
        paths["app_list"] = str(Path(args.app_list).resolve())
    if getattr(args, "apps_root", None):
        paths["apps_root"] = str(Path(args.apps_root).resolve())
    if getattr(args, "handoff_dir", None):
        paths["handoff"] = str(Path(args.handoff_dir).resolve())
    return load_settings(config, overrides={"paths": paths} if paths else None)


def _report_error(args: argparse.Namespace, err: Exception) -> int:
    print(f"Error: {err}")
    if args.verbose or getattr(args, "debug", False):
        traceback.print_exc()
    return EXIT_ERROR


def _make_client(settings: Settings) -> GraphCatalogClient:
    """Authenticate up front so a bad credential halts the batch."""
    credentials = CredentialManager(timeout=settings.request_timeout)
    credentials.get_token()
    return GraphCatalogClient(
        credentials,
        base_url=settings.graph_base_url,
        timeout=settings.request_timeout,
    )


def _install_cancel_handler() -> threading.Event:
    cancel = threading.Event()

    def _handle(signum: int, frame: Any) -> None:
        print("\nCancelling after the current application...")
        cancel.set()

    signal.signal(signal.SIGINT, _handle)
    return cancel


def _print_failures(result: PipelineResult) -> None:
    if not result.failures:
        return
    print(f"Failures ({len(result.failures)}):")
    for failure in result.failures:
        print(
            f"  [X] {failure.app_name} ({failure.stage}): "
            f"{failure.error_type}: {failure.message}"
        )
    print()


def cmd_validate(args: argparse.Namespace) -> int:
    """Handler for 'appcycle validate' command.

    Validates the app list and every referenced App.json without making
    network calls.

    Returns:
        Exit code (0 for valid, 1 for invalid).

    """
    logger = get_logger(verbose=args.verbose, debug=False)
    set_global_logger(logger)

    try:
        settings = _settings_from_args(args)
    except AppCycleError as err:
        return _report_error(args, err)

    print(f"Validating app list: {settings.app_list}")
    print()

    result = validate_app_list(settings.app_list, settings.apps_root)

    print("=" * 70)
    print("VALIDATION RESULTS")
    print("=" * 70)
    print(f"App List:    {result.app_list_path}")
    print(f"Status:      {result.status.upper()}")
    print(f"App Count:   {result.app_count}")
    print()

    if result.warnings:
        print(f"Warnings ({len(result.warnings)}):")
        for warning in result.warnings:
            print(f"  [WARNING] {warning}")
        print()

    if result.errors:
        print(f"Errors ({len(result.errors)}):")
        for error in result.errors:
            print(f"  [X] {error}")
        print()

    print("=" * 70)

    if result.status == "valid":
        print()
        print("[SUCCESS] App list is valid!")
        return EXIT_OK
    print()
    print(f"[FAILED] Validation failed with {len(result.errors)} error(s).")
    return EXIT_ERROR


def _run(args: argparse.Namespace, start_at: str, stop_after: str, title: str) -> int:
    logger = get_logger(verbose=args.verbose, debug=args.debug)
    set_global_logger(logger)

    try:
        settings = _settings_from_args(args)
        descriptors = load_app_list(settings.app_list) if start_at == "check" else None
        client = _make_client(settings)
    except AppCycleError as err:
        return _report_error(args, err)

    cancel = _install_cancel_handler()
    try:
        result = run_pipeline(
            descriptors,
            settings,
            client,
            cancel=cancel,
            start_at=start_at,
            stop_after=stop_after,
        )
    except AppCycleError as err:
        return _report_error(args, err)

    print()
    print("=" * 70)
    print(title)
    print("=" * 70)
    print(f"Status:          {result.status}")
    for stage, count in result.stage_counts.items():
        print(f"{stage.capitalize() + ':':<17}{count} record(s)")
    for outcome in result.outcomes:
        print(
            f"  {outcome.app_name}: {outcome.created} assignment(s) "
            f"on {outcome.catalog_app_id}"
        )
    print("=" * 70)
    print()
    _print_failures(result)

    if result.status == "cancelled":
        print(f"[CANCELLED] Stopped after {result.halted_after}.")
        return EXIT_CANCELLED
    if result.status == "failed":
        print(f"[FAILED] No application got past {result.halted_after}.")
        return EXIT_ERROR
    if result.status == "nothing_to_do":
        print("No applications to process")
        return EXIT_OK
    print("[SUCCESS] Pipeline completed.")
    return EXIT_OK


def cmd_check(args: argparse.Namespace) -> int:
    """Handler for 'appcycle check' command.

    Resolves the latest version of every application and writes the
    applications that need publishing to the download list.

    Returns:
        Exit code (0 success or nothing to do, 1 error or a run halted by
        application failures, 130 cancelled).

    """
    return _run(args, "check", "check", "CHECK RESULTS")


def cmd_run(args: argparse.Namespace) -> int:
    """Handler for 'appcycle run' command.

    Runs the stages from --from to --to (default: all five).

    Returns:
        Exit code (0 success or nothing to do, 1 error or a run halted by
        application failures, 130 cancelled).

    """
    return _run(args, args.start_at, args.stop_after, "PIPELINE RESULTS")


def _add_common(parser: argparse.ArgumentParser, debug: bool = True) -> None:
    parser.add_argument(
        "-c",
        "--config",
        default=None,
        help="Settings YAML file (default: ./appcycle.yaml if present)",
    )
    parser.add_argument(
        "--app-list",
        default=None,
        help="App list JSON (overrides paths.app_list)",
    )
    parser.add_argument(
        "--apps-root",
        default=None,
        help="Folder holding one folder per application (overrides paths.apps_root)",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Show progress and high-level status updates",
    )
    if debug:
        parser.add_argument(
            "-d",
            "--debug",
            action="store_true",
            help="Show detailed debugging output (implies --verbose)",
        )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="appcycle",
        description="AppCycle - Win32 application lifecycle automation for Intune",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"appcycle {version('appcycle')}",
    )

    subparsers = parser.add_subparsers(
        dest="command",
        help="Available commands",
        required=True,
    )

    # 'validate' command
    parser_validate = subparsers.add_parser(
        "validate",
        help="Validate the app list and manifests (no network)",
        description="Check appList.json and every App.json without network calls.",
    )
    _add_common(parser_validate, debug=False)
    parser_validate.set_defaults(func=cmd_validate)

    # 'check' command
    parser_check = subparsers.add_parser(
        "check",
        help="Find applications with a newer version than the catalog",
        description="Resolve versions and compare them with the Intune catalog.",
    )
    _add_common(parser_check)
    parser_check.add_argument(
        "--handoff-dir",
        default=None,
        help="Folder for ProcessList.json/DownloadList.json",
    )
    parser_check.set_defaults(func=cmd_check)

    # 'run' command
    parser_run = subparsers.add_parser(
        "run",
        help="Run the lifecycle pipeline",
        description="Check, download, package, publish and assign applications.",
    )
    _add_common(parser_run)
    parser_run.add_argument(
        "--handoff-dir",
        default=None,
        help="Folder for the stage hand-off lists",
    )
    parser_run.add_argument(
        "--from",
        dest="start_at",
        choices=STAGES,
        default="check",
        help="First stage to run (later stages read the previous hand-off list)",
    )
    parser_run.add_argument(
        "--to",
        dest="stop_after",
        choices=STAGES,
        default="assign",
        help="Last stage to run",
    )
    parser_run.set_defaults(func=cmd_run)

    return parser


def main(argv: list[str] | None = None) -> None:
    """Main entry point for the appcycle CLI.

    This function is registered as the 'appcycle' console script in
    pyproject.toml.
    """
    parser = build_parser()
    args = parser.parse_args(argv)
    exit_code = args.func(args)
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
