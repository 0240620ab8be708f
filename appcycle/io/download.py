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


"""Installer download for AppCycle.

Downloads resolved installers from vendor CDNs with the properties the
pipeline relies on:

- **Atomic writes** - Content is streamed to <name>.part and renamed only
  after the transfer completed, so a partial installer never appears under
  its final name.
- **Streaming hash** - SHA-256 is computed while writing; the digest is
  carried into the PrepareRecord.
- **Retries** - Transient HTTP status codes are retried with exponential
  backoff on GET/HEAD. This only applies to installer downloads, never to
  the catalog API.
- **Stable bytes** - Accept-Encoding: identity requests the raw installer.

Constants:

- DEFAULT_CHUNK (int): Stream chunk size (1 MiB).

Example:
Basic download:

    >>> from pathlib import Path
    >>> from appcycle.io import download_file
    >>> path, sha256 = download_file(
    ...     "https://www.7-zip.org/a/7z2301-x64.msi",
    ...     Path("./work/7-Zip"),
    ... )
    >>> print(f"Downloaded to {path} ({sha256})")

Notes:
- Timeouts are per-request, not total download time
- All HTTP errors are chained as NetworkError for the pipeline
"""

from __future__ import annotations

import hashlib
from pathlib import Path
import time
from urllib.parse import unquote, urlparse

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from appcycle.exceptions import NetworkError
from appcycle.logging import get_global_logger

# Stream size per chunk (1 MiB).
DEFAULT_CHUNK = 1024 * 1024

USER_AGENT = "appcycle/0.1"


def _filename_from_cd(content_disposition: str) -> str | None:
    """
    Extract a filename from a Content-Disposition header if present.

    Example header:
      'attachment; filename="setup.msi"'
    """
    if not content_disposition:
        return None
    for part in (s.strip() for s in content_disposition.split(";")):
        if part.lower().startswith("filename="):
            value = part.split("=", 1)[1].strip().strip('"')
            return Path(value).name or None
    return None


def _filename_from_url(url: str) -> str:
    """
    Derive a filename from the URL path. Fallback to a generic name if empty.
    """
    name = Path(unquote(urlparse(url).path)).name
    return name or "download.bin"


def make_session() -> requests.Session:
    """
    Create a requests.Session with retry/backoff defaults for downloads.

    - Retries on common transient status codes (GET and HEAD only).
    - Applies exponential backoff.
    - Requests the identity encoding so installers arrive byte for byte.
    """
    s = requests.Session()
    retries = Retry(
        total=5,
        backoff_factor=0.5,
        status_forcelist=(429, 500, 502, 503, 504),
        allowed_methods=("GET", "HEAD"),
        raise_on_status=False,
    )
    s.headers.update({"User-Agent": USER_AGENT, "Accept-Encoding": "identity"})
    s.mount("http://", HTTPAdapter(max_retries=retries))
    s.mount("https://", HTTPAdapter(max_retries=retries))
    return s


def download_file(
    url: str,
    destination_folder: Path,
    *,
    file_name: str | None = None,
    expected_sha256: str | None = None,
    validate_content_type: bool = True,
    timeout: int = 60,
) -> tuple[Path, str]:
    """Download a URL into destination_folder.

    Follows redirects and retries transient failures. Writes to
    <filename>.part then renames to <filename> on success.

    Args:
        url: Source URL.
        destination_folder: Folder to save into (created if missing).
        file_name: Target file name. Defaults to Content-Disposition, then
            the last URL path segment.
        expected_sha256: Optional known SHA-256 (hex).
        validate_content_type: Reject text/html responses, which usually
            are an error or landing page instead of an installer.
        timeout: Per-request timeout (seconds).

    Returns:
        A tuple (file_path, sha256_hex).

    Raises:
        NetworkError: For transport failures, non-2xx responses (after
            retries), an HTML response, or a checksum mismatch.
    """
    logger = get_global_logger()
    destination_folder = Path(destination_folder)

    logger.verbose("HTTP", f"GET {url}")
    started_at = time.time()

    try:
        destination_folder.mkdir(parents=True, exist_ok=True)
        with make_session() as session:
            # Stream response so we can hash while writing.
            resp = session.get(url, stream=True, allow_redirects=True, timeout=timeout)
            try:
                for hist in resp.history:
                    logger.debug(
                        "HTTP",
                        f"Redirect {hist.status_code} -> "
                        f"{hist.headers.get('Location', 'unknown')}",
                    )
                resp.raise_for_status()
                logger.verbose("HTTP", f"Response: {resp.status_code} {resp.reason}")

                if validate_content_type:
                    ctype = resp.headers.get("Content-Type", "")
                    if "text/html" in ctype.lower():
                        raise NetworkError(
                            f"Expected an installer from {url}, got content-type={ctype}"
                        )

                filename = (
                    file_name
                    or _filename_from_cd(resp.headers.get("Content-Disposition", ""))
                    or _filename_from_url(resp.url or url)
                )
                target = destination_folder / filename
                tmp = target.with_suffix(target.suffix + ".part")
                logger.verbose("FILE", f"Downloading to: {tmp}")

                sha = hashlib.sha256()
                with tmp.open("wb") as f:
                    for chunk in resp.iter_content(chunk_size=DEFAULT_CHUNK):
                        if not chunk:
                            continue
                        f.write(chunk)
                        sha.update(chunk)
            finally:
                resp.close()

        # Atomically "commit" the file.
        tmp.replace(target)
    except requests.RequestException as err:
        raise NetworkError(f"Download failed for {url}: {err}") from err
    except OSError as err:
        raise NetworkError(f"Cannot write download for {url}: {err}") from err

    digest = sha.hexdigest()
    logger.debug("FILE", f"SHA-256: {digest} (computed during download)")

    if expected_sha256 and digest.lower() != expected_sha256.lower():
        target.unlink(missing_ok=True)
        raise NetworkError(
            f"sha256 mismatch for {filename}: got {digest}, expected {expected_sha256}"
        )

    elapsed = time.time() - started_at
    logger.verbose("FILE", f"Download complete: {target} in {elapsed:.1f}s")
    return target, digest
