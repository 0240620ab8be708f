"""Microsoft Graph credential handling for AppCycle.

Loads INTUNE_* environment variables (optionally from a .env file) and
manages a cached Microsoft Graph access token that is refreshed
automatically when it is about to expire.

Environment variables:

- INTUNE_TENANT_ID
- INTUNE_CLIENT_ID
- INTUNE_CLIENT_SECRET (prompted for on an interactive terminal if unset)
"""

from __future__ import annotations

import getpass
import os
import sys
import time

from dotenv import load_dotenv
import requests

from appcycle.exceptions import ConfigError, NetworkError

TOKEN_URL = "https://login.microsoftonline.com/{tenant}/oauth2/v2.0/token"
GRAPH_SCOPE = "https://graph.microsoft.com/.default"


class CredentialManager:
    """App-only (client credentials) token provider for Microsoft Graph."""

    def __init__(
        self,
        env_prefix: str = "INTUNE_",
        refresh_margin: int = 60,
        timeout: int = 60,
    ) -> None:
        """
        Args:
            env_prefix: Prefix used for environment variables.
            refresh_margin: Seconds before real expiry when we proactively
                refresh.
            timeout: Timeout in seconds for the token request.
        """
        load_dotenv()
        self.env_prefix = env_prefix
        self.refresh_margin = refresh_margin
        self.timeout = timeout
        self._token: str | None = None
        self._token_expires_at: int | None = None  # UNIX epoch

    # --------------------------------------------------------------------- #
    # Helper: read required env var
    # --------------------------------------------------------------------- #
    def _env(self, key: str) -> str:
        full_key = f"{self.env_prefix}{key}"
        value = os.getenv(full_key)
        if not value:
            raise ConfigError(f"Missing required environment variable: {full_key}")
        return value

    # --------------------------------------------------------------------- #
    # Public getters for ID / secret
    # --------------------------------------------------------------------- #
    def get_client_id(self) -> str:
        return self._env("CLIENT_ID")

    def get_tenant_id(self) -> str:
        return self._env("TENANT_ID")

    def get_client_secret(self) -> str:
        try:
            return self._env("CLIENT_SECRET")
        except ConfigError:
            if not sys.stdin.isatty():
                raise
            return getpass.getpass("Enter your client secret: ")

    # --------------------------------------------------------------------- #
    # Token handling
    # --------------------------------------------------------------------- #
    def _token_expired(self) -> bool:
        if self._token is None or self._token_expires_at is None:
            return True
        return time.time() >= (self._token_expires_at - self.refresh_margin)

    def _fetch_token(self) -> None:
        """
        Performs the client-credentials flow and stores
        self._token and self._token_expires_at.
        """
        url = TOKEN_URL.format(tenant=self.get_tenant_id())
        data = {
            "client_id": self.get_client_id(),
            "client_secret": self.get_client_secret(),
            "grant_type": "client_credentials",
            "scope": GRAPH_SCOPE,
        }

        try:
            response = requests.post(url, data=data, timeout=self.timeout)
            response.raise_for_status()
            token_data = response.json()
            self._token = token_data["access_token"]
        except requests.exceptions.RequestException as err:
            raise NetworkError(f"Authentication failed: {err}") from err
        except (ValueError, KeyError) as err:
            raise NetworkError("Token endpoint returned no access_token") from err

        # expires_in is seconds until expiry
        expires_in = int(token_data.get("expires_in", 0))
        self._token_expires_at = int(time.time()) + expires_in

    def get_token(self) -> str:
        """
        Returns a valid access token, refreshing it when necessary.
        """
        if self._token_expired():
            self._fetch_token()
        # At this point self._token is guaranteed to be str and valid
        return self._token  # type: ignore[return-value]
