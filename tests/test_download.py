"""
Tests for appcycle.io.download module.

Tests installer downloads including:
- File naming from argument, Content-Disposition and URL
- SHA-256 computed while streaming
- Atomic .part handling
- HTTP and content-type errors
"""

from __future__ import annotations

import hashlib
from pathlib import Path
from unittest.mock import patch

import pytest
import requests
import requests_mock

from appcycle.exceptions import NetworkError
from appcycle.io import download_file, make_session

PAYLOAD = b"MSI installer bytes" * 100
PAYLOAD_SHA = hashlib.sha256(PAYLOAD).hexdigest()
URL = "https://www.7-zip.org/a/7z2301-x64.msi"


class TestDownloadFile:
    """Tests for download_file."""

    def test_success(self, tmp_path):
        """Test a download lands under its URL name with the right digest."""
        with requests_mock.Mocker() as m:
            m.get(URL, content=PAYLOAD, headers={"Content-Type": "application/x-msi"})
            path, digest = download_file(URL, tmp_path / "dl")

        assert path == tmp_path / "dl" / "7z2301-x64.msi"
        assert path.read_bytes() == PAYLOAD
        assert digest == PAYLOAD_SHA
        assert not list((tmp_path / "dl").glob("*.part"))

    def test_explicit_file_name(self, tmp_path):
        """Test an explicit name wins over the URL."""
        with requests_mock.Mocker() as m:
            m.get(URL, content=PAYLOAD)
            path, _ = download_file(URL, tmp_path, file_name="setup.msi")
        assert path.name == "setup.msi"

    def test_content_disposition(self, tmp_path):
        """Test the Content-Disposition file name is used."""
        url = "https://downloads.contoso.com/get?id=42"
        with requests_mock.Mocker() as m:
            m.get(
                url,
                content=PAYLOAD,
                headers={"Content-Disposition": 'attachment; filename="Agent.exe"'},
            )
            path, _ = download_file(url, tmp_path)
        assert path.name == "Agent.exe"

    def test_expected_sha(self, tmp_path):
        """Test a matching expected digest is accepted."""
        with requests_mock.Mocker() as m:
            m.get(URL, content=PAYLOAD)
            _, digest = download_file(URL, tmp_path, expected_sha256=PAYLOAD_SHA.upper())
        assert digest == PAYLOAD_SHA

    def test_sha_mismatch(self, tmp_path):
        """Test a digest mismatch removes the file and raises."""
        with requests_mock.Mocker() as m:
            m.get(URL, content=PAYLOAD)
            with pytest.raises(NetworkError, match="sha256 mismatch"):
                download_file(URL, tmp_path, expected_sha256="0" * 64)
        assert not (tmp_path / "7z2301-x64.msi").exists()

    def test_http_error(self, tmp_path):
        """Test a 404 raises NetworkError without leaving files."""
        with requests_mock.Mocker() as m:
            m.get(URL, status_code=404)
            with pytest.raises(NetworkError, match="Download failed"):
                download_file(URL, tmp_path)
        assert list(tmp_path.iterdir()) == []

    def test_connection_error(self, tmp_path):
        """Test transport errors are chained as NetworkError."""
        with requests_mock.Mocker() as m:
            m.get(URL, exc=requests.exceptions.ConnectionError("refused"))
            with pytest.raises(NetworkError) as exc_info:
                download_file(URL, tmp_path)
        assert isinstance(exc_info.value.__cause__, requests.exceptions.ConnectionError)

    def test_html_rejected(self, tmp_path):
        """Test an HTML landing page is not accepted as an installer."""
        with requests_mock.Mocker() as m:
            m.get(URL, text="<html></html>", headers={"Content-Type": "text/html"})
            with pytest.raises(NetworkError, match="content-type"):
                download_file(URL, tmp_path)

    def test_html_allowed_when_not_validating(self, tmp_path):
        """Test content-type validation can be switched off."""
        with requests_mock.Mocker() as m:
            m.get(URL, text="<html></html>", headers={"Content-Type": "text/html"})
            path, _ = download_file(URL, tmp_path, validate_content_type=False)
        assert path.exists()

    def test_rename_failure_wrapped(self, tmp_path):
        """Test a failing .part rename raises NetworkError, not OSError."""
        with requests_mock.Mocker() as m, patch.object(
            Path, "replace", side_effect=PermissionError("file in use")
        ):
            m.get(URL, content=PAYLOAD)
            with pytest.raises(NetworkError, match="file in use"):
                download_file(URL, tmp_path)


class TestMakeSession:
    """Tests for make_session."""

    def test_headers_and_retries(self):
        """Test identity encoding and the retry policy are configured."""
        session = make_session()
        assert session.headers["Accept-Encoding"] == "identity"
        retries = session.get_adapter("https://example.com").max_retries
        assert retries.total == 5
        assert 503 in retries.status_forcelist
