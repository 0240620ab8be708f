"""
Tests for appcycle.catalog.graph and appcycle.auth modules.

Tests the Microsoft Graph client including:
- Client credentials token flow and caching
- Paged Win32 app listing
- App creation, content commit and assignments
- Assignment filter lookup by name
- Read and write failures
"""

from __future__ import annotations

from unittest.mock import MagicMock, patch

import pytest
import requests
import requests_mock

from appcycle.auth import CredentialManager
from appcycle.auth.credentials import TOKEN_URL
from appcycle.catalog import GraphCatalogClient
from appcycle.exceptions import CatalogQueryError, ConfigError, NetworkError

BASE = "https://graph.microsoft.com/beta"
APPS_URL = f"{BASE}/deviceAppManagement/mobileApps"
VERSIONS_URL = f"{APPS_URL}/app-1/microsoft.graph.win32LobApp/contentVersions"
FILE_URL = f"{VERSIONS_URL}/1/files/f1"
BLOB_URL = "https://blob.example.net/content/f1?sig=abc"


class StaticToken:
    def get_token(self) -> str:
        return "token-123"


@pytest.fixture
def client() -> GraphCatalogClient:
    return GraphCatalogClient(StaticToken(), timeout=5)


@pytest.fixture
def intune_env(monkeypatch):
    monkeypatch.setenv("INTUNE_TENANT_ID", "tenant-1")
    monkeypatch.setenv("INTUNE_CLIENT_ID", "client-1")
    monkeypatch.setenv("INTUNE_CLIENT_SECRET", "secret-1")
    with patch("appcycle.auth.credentials.load_dotenv"):
        yield


class TestCredentialManager:
    """Tests for CredentialManager."""

    def test_token_fetched_and_cached(self, intune_env):
        """Test one token request serves repeated calls."""
        with requests_mock.Mocker() as m:
            m.post(
                TOKEN_URL.format(tenant="tenant-1"),
                json={"access_token": "abc", "expires_in": 3600},
            )
            credentials = CredentialManager()
            assert credentials.get_token() == "abc"
            assert credentials.get_token() == "abc"
            assert m.call_count == 1
            body = m.request_history[0].text
        assert "grant_type=client_credentials" in body
        assert "client_id=client-1" in body

    def test_expired_token_refreshed(self, intune_env):
        """Test a token inside the refresh margin is fetched again."""
        with requests_mock.Mocker() as m:
            m.post(
                TOKEN_URL.format(tenant="tenant-1"),
                json={"access_token": "short", "expires_in": 30},
            )
            credentials = CredentialManager(refresh_margin=60)
            credentials.get_token()
            credentials.get_token()
            assert m.call_count == 2

    def test_rejected_credentials(self, intune_env):
        """Test an HTTP 401 becomes NetworkError."""
        with requests_mock.Mocker() as m:
            m.post(TOKEN_URL.format(tenant="tenant-1"), status_code=401)
            with pytest.raises(NetworkError, match="Authentication failed"):
                CredentialManager().get_token()

    def test_no_access_token(self, intune_env):
        """Test a response without access_token becomes NetworkError."""
        with requests_mock.Mocker() as m:
            m.post(TOKEN_URL.format(tenant="tenant-1"), json={"error": "x"})
            with pytest.raises(NetworkError, match="no access_token"):
                CredentialManager().get_token()

    def test_missing_tenant(self, intune_env, monkeypatch):
        """Test a missing variable is a ConfigError naming it."""
        monkeypatch.delenv("INTUNE_TENANT_ID")
        with pytest.raises(ConfigError, match="INTUNE_TENANT_ID"):
            CredentialManager().get_token()

    def test_missing_secret_without_terminal(self, intune_env, monkeypatch):
        """Test the secret is not prompted for when stdin is not a TTY."""
        monkeypatch.delenv("INTUNE_CLIENT_SECRET")
        stdin = MagicMock()
        stdin.isatty.return_value = False
        monkeypatch.setattr("sys.stdin", stdin)
        with pytest.raises(ConfigError, match="INTUNE_CLIENT_SECRET"):
            CredentialManager().get_client_secret()


class TestListWin32Apps:
    """Tests for list_win32_apps."""

    def test_follows_next_link(self, client):
        """Test paged results are concatenated."""
        with requests_mock.Mocker() as m:
            m.get(
                APPS_URL,
                [
                    {
                        "json": {
                            "value": [{"id": "a", "displayName": "7-Zip"}],
                            "@odata.nextLink": f"{APPS_URL}?$skiptoken=2",
                        }
                    },
                    {"json": {"value": [{"id": "b", "displayName": "Firefox"}]}},
                ],
            )
            apps = client.list_win32_apps()
            first = m.request_history[0]

        assert [a["id"] for a in apps] == ["a", "b"]
        assert first.headers["Authorization"] == "Bearer token-123"
        assert first.qs["$filter"] == ["isof('microsoft.graph.win32lobapp')"]

    def test_read_failure(self, client):
        """Test a failed read raises CatalogQueryError."""
        with requests_mock.Mocker() as m:
            m.get(APPS_URL, status_code=503)
            with pytest.raises(CatalogQueryError):
                client.list_win32_apps()

    def test_timeout(self, client):
        """Test a timeout raises CatalogQueryError."""
        with requests_mock.Mocker() as m:
            m.get(APPS_URL, exc=requests.exceptions.ReadTimeout)
            with pytest.raises(CatalogQueryError):
                client.list_win32_apps()


class TestWrites:
    """Tests for app creation, content commit and assignments."""

    def test_create_win32_app(self, client):
        """Test the created object is returned."""
        with requests_mock.Mocker() as m:
            m.post(APPS_URL, json={"id": "app-1", "displayName": "7-Zip"}, status_code=201)
            created = client.create_win32_app({"displayName": "7-Zip"})
            assert m.last_request.json() == {"displayName": "7-Zip"}
        assert created["id"] == "app-1"

    def test_create_without_id(self, client):
        """Test a response without id is an error."""
        with requests_mock.Mocker() as m:
            m.post(APPS_URL, json={}, status_code=201)
            with pytest.raises(NetworkError, match="did not return an id"):
                client.create_win32_app({"displayName": "7-Zip"})

    def test_create_rejected(self, client):
        """Test a 400 raises NetworkError."""
        with requests_mock.Mocker() as m:
            m.post(APPS_URL, status_code=400)
            with pytest.raises(NetworkError, match="POST"):
                client.create_win32_app({"displayName": "7-Zip"})

    def test_commit_content(self, client, tmp_path):
        """Test the version, file, upload, commit and patch sequence."""
        package = tmp_path / "7z2301-x64.intunewin"
        package.write_bytes(b"package")
        with requests_mock.Mocker() as m, patch("time.sleep") as sleep:
            m.post(VERSIONS_URL, json={"id": "1"})
            m.post(f"{VERSIONS_URL}/1/files", json={"id": "f1"})
            m.get(
                FILE_URL,
                [
                    {"json": {"uploadState": "azureStorageUriRequestPending"}},
                    {
                        "json": {
                            "uploadState": "azureStorageUriRequestSuccess",
                            "azureStorageUri": BLOB_URL,
                        }
                    },
                    {"json": {"uploadState": "commitFileSuccess"}},
                ],
            )
            m.put(BLOB_URL, status_code=201)
            m.post(f"{FILE_URL}/commit", status_code=200)
            m.patch(f"{APPS_URL}/app-1", status_code=204)

            client.commit_content(
                "app-1", {"name": package.name}, {"mac": "AA=="}, package
            )
            methods = [(r.method, r.path.lower()) for r in m.request_history]

        assert sleep.call_count == 1
        assert methods[-4][0] == "PUT"
        assert methods[-3] == ("POST", f"{FILE_URL}/commit".replace(BASE, "/beta").lower())
        assert methods[-1] == ("PATCH", "/beta/deviceappmanagement/mobileapps/app-1")

    def test_commit_failed_state(self, client, tmp_path):
        """Test a failed upload state stops the commit."""
        package = tmp_path / "p.intunewin"
        package.write_bytes(b"p")
        with requests_mock.Mocker() as m:
            m.post(VERSIONS_URL, json={"id": "1"})
            m.post(f"{VERSIONS_URL}/1/files", json={"id": "f1"})
            m.get(FILE_URL, json={"uploadState": "azureStorageUriRequestFailed"})
            with pytest.raises(NetworkError, match="azureStorageUriRequestFailed"):
                client.commit_content("app-1", {}, {}, package)

    def test_create_assignment(self, client):
        """Test assignments are posted to the app."""
        with requests_mock.Mocker() as m:
            m.post(f"{APPS_URL}/app-1/assignments", json={"id": "as-1"}, status_code=201)
            assert client.create_assignment("app-1", {"intent": "required"})["id"] == "as-1"

    def test_delete_app(self, client):
        """Test an app is removed with DELETE and an empty 204 body."""
        with requests_mock.Mocker() as m:
            m.delete(f"{APPS_URL}/app-1", status_code=204)
            client.delete_app("app-1")
            assert m.last_request.method == "DELETE"

    def test_delete_rejected(self, client):
        """Test a failed delete raises NetworkError."""
        with requests_mock.Mocker() as m:
            m.delete(f"{APPS_URL}/app-1", status_code=404)
            with pytest.raises(NetworkError, match="DELETE"):
                client.delete_app("app-1")


class TestAssignmentFilters:
    """Tests for find_assignment_filter_id."""

    def test_case_insensitive_match(self, client):
        """Test filters are matched by display name ignoring case."""
        with requests_mock.Mocker() as m:
            m.get(
                f"{BASE}/deviceManagement/assignmentFilters",
                json={"value": [{"id": "f-1", "displayName": "Corporate Laptops"}]},
            )
            assert client.find_assignment_filter_id("corporate laptops") == "f-1"
            assert client.find_assignment_filter_id("Kiosks") is None
