"""Authentication helpers for the Microsoft Graph catalog client."""

from .credentials import CredentialManager

__all__ = ["CredentialManager"]
