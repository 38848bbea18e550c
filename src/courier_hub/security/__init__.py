"""Credential protection for stored courier integrations."""

from courier_hub.security.vault import CredentialVault, derive_key

__all__ = ["CredentialVault", "derive_key"]
