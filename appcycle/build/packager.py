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


""".intunewin package generation for AppCycle.

This module stages an application's source folder together with the
downloaded installer and packages it with Microsoft's IntuneWinAppUtil.exe.

Design Principles:
    - IntuneWinAppUtil.exe is cached globally (not per-app), unless an
      explicit tool path is configured
    - Every packaging run must leave exactly one .intunewin in its output
      folder; zero or several is a PackagingError
    - Stale .intunewin files are removed from the output folder first
    - Tool is downloaded from Microsoft's official GitHub repository

Example:
    Basic usage:
        ```python
        from pathlib import Path
        from appcycle.build.packager import create_intunewin, stage_package_source

        source = stage_package_source(
            Path("Apps/7-Zip"), Path("work/7-Zip/7z2301-x64.msi"),
            Path("work/7-Zip/staging"),
        )
        package = create_intunewin(source, "7z2301-x64.msi", Path("work/7-Zip/out"))
        print(f"Package: {package}")
        ```
"""

from __future__ import annotations

from pathlib import Path
import shutil
import subprocess

import requests

from appcycle.exceptions import NetworkError, PackagingError
from appcycle.logging import get_global_logger

INTUNEWIN_TOOL_URL = (
    "https://github.com/microsoft/Microsoft-Win32-Content-Prep-Tool"
    "/raw/master/IntuneWinAppUtil.exe"
)
INTUNEWIN_TOOL_NAME = "IntuneWinAppUtil.exe"
DEFAULT_SOURCE_FOLDER = "Source"


def get_intunewin_tool(cache_dir: Path, timeout: int = 60) -> Path:
    """Download and cache IntuneWinAppUtil.exe.

    Args:
        cache_dir: Directory to cache the tool.
        timeout: Download timeout in seconds.

    Returns:
        Path to the IntuneWinAppUtil.exe tool.

    Raises:
        NetworkError: If download fails.
    """
    logger = get_global_logger()
    tool_path = cache_dir / INTUNEWIN_TOOL_NAME

    if tool_path.exists():
        logger.verbose("PACKAGE", f"Using cached IntuneWinAppUtil: {tool_path}")
        return tool_path

    logger.verbose("PACKAGE", "Downloading IntuneWinAppUtil.exe...")
    try:
        response = requests.get(INTUNEWIN_TOOL_URL, timeout=timeout)
        response.raise_for_status()
    except requests.RequestException as err:
        raise NetworkError(f"Failed to download IntuneWinAppUtil.exe: {err}") from err

    cache_dir.mkdir(parents=True, exist_ok=True)
    tool_path.write_bytes(response.content)
    logger.verbose("PACKAGE", f"[OK] IntuneWinAppUtil.exe cached: {tool_path}")
    return tool_path


def stage_package_source(
    app_dir: Path,
    installer_path: Path,
    staging_dir: Path,
    source_folder: str = DEFAULT_SOURCE_FOLDER,
) -> Path:
    """Assemble the folder IntuneWinAppUtil.exe packages.

    Copies <app_dir>/<source_folder> (when present) and the downloaded
    installer into a fresh <staging_dir>/<source_folder>.

    Returns:
        The staged source folder.

    Raises:
        PackagingError: If the installer is missing or copying fails.
    """
    if not installer_path.is_file():
        raise PackagingError(f"Installer not found: {installer_path}")

    target = staging_dir / source_folder
    try:
        if target.exists():
            shutil.rmtree(target)
        app_source = app_dir / source_folder
        if app_source.is_dir():
            shutil.copytree(app_source, target)
        else:
            target.mkdir(parents=True)
        shutil.copy2(installer_path, target / installer_path.name)
    except OSError as err:
        raise PackagingError(f"Cannot stage package source in {target}: {err}") from err

    get_global_logger().verbose("PACKAGE", f"Staged source: {target}")
    return target


def _execute_packaging(
    tool_path: Path,
    source_dir: Path,
    setup_file: str,
    output_dir: Path,
    timeout: int,
) -> None:
    logger = get_global_logger()

    # IntuneWinAppUtil.exe -c <source> -s <setup file> -o <output> -q
    cmd = [
        str(tool_path),
        "-c",
        str(source_dir),
        "-s",
        setup_file,
        "-o",
        str(output_dir),
        "-q",  # Quiet mode
    ]
    logger.verbose("PACKAGE", f"Running: {' '.join(cmd)}")

    try:
        result = subprocess.run(
            cmd,
            capture_output=True,
            text=True,
            check=True,
            timeout=timeout,
        )
    except subprocess.CalledProcessError as err:
        error_msg = f"IntuneWinAppUtil.exe failed (exit code {err.returncode})"
        if err.stderr:
            error_msg += f"\n{err.stderr}"
        raise PackagingError(error_msg) from err
    except subprocess.TimeoutExpired as err:
        raise PackagingError(
            f"IntuneWinAppUtil.exe timed out after {err.timeout}s"
        ) from err
    except OSError as err:
        raise PackagingError(f"Cannot run {tool_path}: {err}") from err

    for line in (result.stdout or "").splitlines():
        logger.debug("PACKAGE", f"  {line}")


def create_intunewin(
    source_dir: Path,
    setup_file: str,
    output_dir: Path,
    *,
    tool_path: Path | None = None,
    tool_cache_dir: Path = Path(".appcycle/tools"),
    timeout: int = 300,
) -> Path:
    """Create a .intunewin package from a staged source folder.

    Args:
        source_dir: Folder to package.
        setup_file: Setup file name relative to source_dir.
        output_dir: Folder that receives the .intunewin.
        tool_path: Explicit IntuneWinAppUtil.exe; downloaded into
            tool_cache_dir when None.
        tool_cache_dir: Cache folder for the downloaded tool.
        timeout: Packaging timeout in seconds.

    Returns:
        Path to the single .intunewin produced.

    Raises:
        PackagingError: If the setup file is missing, the tool fails or
            times out, or the output folder does not hold exactly one
            .intunewin afterwards.
        NetworkError: If IntuneWinAppUtil.exe download fails.
    """
    logger = get_global_logger()
    source_dir = source_dir.resolve()
    output_dir = output_dir.resolve()

    if not (source_dir / setup_file).is_file():
        raise PackagingError(f"Setup file not found: {source_dir / setup_file}")

    if tool_path is None:
        tool_path = get_intunewin_tool(tool_cache_dir)
    elif not tool_path.is_file():
        raise PackagingError(f"IntuneWinAppUtil.exe not found: {tool_path}")

    output_dir.mkdir(parents=True, exist_ok=True)
    for stale in output_dir.glob("*.intunewin"):
        logger.verbose("PACKAGE", f"Removing stale package: {stale.name}")
        stale.unlink()

    _execute_packaging(tool_path, source_dir, setup_file, output_dir, timeout)

    packages = sorted(output_dir.glob("*.intunewin"))
    if len(packages) != 1:
        raise PackagingError(
            f"Expected exactly one .intunewin in {output_dir}, found {len(packages)}"
        )

    logger.verbose("PACKAGE", f"[OK] Created: {packages[0].name}")
    return packages[0]
