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


"""Packaging for AppCycle.

This module stages an application's source files with its installer and
wraps them into a .intunewin package with IntuneWinAppUtil.exe.

Example:
    from pathlib import Path
    from appcycle.build import create_intunewin, stage_package_source

    source = stage_package_source(app_dir, installer, Path("work/staging"))
    package = create_intunewin(source, installer.name, Path("work/out"))
    print(f"Package: {package}")
"""

from .packager import create_intunewin, get_intunewin_tool, stage_package_source

__all__ = ["create_intunewin", "get_intunewin_tool", "stage_package_source"]
