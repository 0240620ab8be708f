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


"""Input/output helpers for AppCycle.

Public API:

- download_file: Atomic, hashed, retrying installer download
- make_session: requests.Session with retry defaults for downloads

Example:
    from pathlib import Path
    from appcycle.io import download_file

    path, sha256 = download_file(url, Path("./work"))

"""

from .download import download_file, make_session

__all__ = ["download_file", "make_session"]
