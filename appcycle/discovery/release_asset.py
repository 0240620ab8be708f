"""
GitHub release asset source for AppCycle.

This source does not call any API. The download URL of a release asset is
fully determined by repository, tag and file name, so the URL is built
directly and the tag is taken as the version, verbatim.

Key Properties:
    - Zero network calls during resolution
    - Works for private mirrors that only expose release downloads
    - Version is the raw tag (e.g., "finance-tool-v1.5.0"); the normalized
      form used for comparison is derived from it ("1.5.0")

App List Configuration:

    {
      "IntuneAppName": "Finance Tool",
      "AppPublisher": "Contoso",
      "AppSource": "ReleaseAsset",
      "Repository": "contoso/finance-tool",
      "Tag": "finance-tool-v1.5.0",
      "FileName": "FinanceTool-x64.msi",
      "AppFolderName": "FinanceTool"
    }

Configuration Fields:
    - **Repository** (str, required): "owner/name".
    - **Tag** (str, required): Release tag; becomes the version.
    - **FileName** (str, required): Asset file name inside the release.

Resulting URL:
    https://github.com/{Repository}/releases/download/{Tag}/{FileName}

Error Handling:
    - Missing fields are reported by validate_descriptor()
    - A tag with no digits at all raises ComparisonError, because no
      catalog comparison is possible for it
"""

from __future__ import annotations

from urllib.parse import quote

from appcycle.logging import get_global_logger
from appcycle.models import AppDescriptor, ResolvedVersion

from .base import DEFAULT_TIMEOUT, build_resolved, register_source

RELEASE_DOWNLOAD_URL = (
    "https://github.com/{repository}/releases/download/{tag}/{file_name}"
)


def release_asset_url(repository: str, tag: str, file_name: str) -> str:
    """Build the download URL of a GitHub release asset."""
    return RELEASE_DOWNLOAD_URL.format(
        repository=repository.strip().strip("/"),
        tag=quote(tag.strip(), safe=""),
        file_name=quote(file_name.strip(), safe=""),
    )


class ReleaseAssetSource:
    """Version source for assets attached to a tagged GitHub release.

    Configuration example:
        "AppSource": "ReleaseAsset",
        "Repository": "owner/repository",
        "Tag": "v1.2.3",
        "FileName": "setup.msi"
    """

    def resolve(
        self, descriptor: AppDescriptor, *, timeout: int = DEFAULT_TIMEOUT
    ) -> ResolvedVersion:
        logger = get_global_logger()
        url = release_asset_url(
            descriptor.repository, descriptor.tag, descriptor.file_name
        )
        logger.verbose("RESOLVE", f"Strategy: ReleaseAsset ({descriptor.repository})")
        logger.verbose("RESOLVE", f"Release tag: {descriptor.tag}")
        logger.verbose("RESOLVE", f"Download URL: {url}")
        return build_resolved(
            descriptor.tag, url, "ReleaseAsset", descriptor.installer_type
        )

    def validate_descriptor(self, descriptor: AppDescriptor) -> list[str]:
        """Validate ReleaseAsset fields without making network calls."""
        errors = []
        repository = descriptor.repository.strip()
        if not repository:
            errors.append("ReleaseAsset source requires 'Repository'")
        elif repository.count("/") != 1:
            errors.append(
                f"Invalid Repository format: {repository!r}. "
                f"Expected 'owner/repository'"
            )
        if not descriptor.tag.strip():
            errors.append("ReleaseAsset source requires 'Tag'")
        if not descriptor.file_name.strip():
            errors.append("ReleaseAsset source requires 'FileName'")
        return errors


register_source("ReleaseAsset", ReleaseAssetSource)
