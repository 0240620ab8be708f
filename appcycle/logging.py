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


"""Console output for AppCycle.

Library modules write through get_global_logger() and never print directly.
The global logger is silent until the CLI installs a DefaultLogger built
from --verbose/--debug, so programmatic callers and tests see no output.

Levels: step lines and warnings/errors always print; verbose lines need
--verbose; debug lines need --debug (which implies --verbose). Prefixes are
a component tag ("GRAPH", "HTTP") or, for per-application problems, the
application name:

    [2/5] Downloading installers...
    [GRAPH] Found 12 Win32 app(s)
    [ERROR] [7-Zip] check failed: Evergreen API returned 500
"""

from __future__ import annotations

import sys
from typing import Protocol


class Logger(Protocol):
    """What library code may call on a logger."""

    def step(self, step: int, total: int, message: str) -> None: ...

    def verbose(self, prefix: str, message: str) -> None: ...

    def debug(self, prefix: str, message: str) -> None: ...

    def warning(self, prefix: str, message: str) -> None: ...

    def error(self, prefix: str, message: str) -> None: ...


class DefaultLogger:
    """Print to stdout; warnings and errors go to stderr.

    stderr keeps per-application failures visible when a scheduled job
    redirects stdout to a log file.
    """

    def __init__(self, verbose: bool = False, debug: bool = False) -> None:
        self._verbose = verbose or debug
        self._debug = debug

    def step(self, step: int, total: int, message: str) -> None:
        print(f"[{step}/{total}] {message}")

    def verbose(self, prefix: str, message: str) -> None:
        if self._verbose:
            print(f"[{prefix}] {message}")

    def debug(self, prefix: str, message: str) -> None:
        if self._debug:
            print(f"[{prefix}] {message}")

    def warning(self, prefix: str, message: str) -> None:
        print(f"[WARNING] [{prefix}] {message}", file=sys.stderr)

    def error(self, prefix: str, message: str) -> None:
        print(f"[ERROR] [{prefix}] {message}", file=sys.stderr)


class SilentLogger:
    """Logger that discards everything; the process-wide default."""

    def step(self, step: int, total: int, message: str) -> None:
        pass

    def verbose(self, prefix: str, message: str) -> None:
        pass

    def debug(self, prefix: str, message: str) -> None:
        pass

    def warning(self, prefix: str, message: str) -> None:
        pass

    def error(self, prefix: str, message: str) -> None:
        pass


_global_logger: Logger = SilentLogger()


def get_logger(verbose: bool = False, debug: bool = False) -> Logger:
    """Build the console logger used by the CLI commands."""
    return DefaultLogger(verbose=verbose, debug=debug)


def get_global_logger() -> Logger:
    return _global_logger


def set_global_logger(logger: Logger) -> None:
    """Replace the logger every get_global_logger() caller writes to."""
    global _global_logger
    _global_logger = logger
