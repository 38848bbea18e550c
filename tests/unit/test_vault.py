"""Unit tests for the credential vault."""

import pytest

from courier_hub.exceptions import CredentialDecryptionError
from courier_hub.security.vault import IV_LENGTH, TAG_LENGTH, CredentialVault


class TestCredentialVault:
    """Tests for envelope encryption."""

    def test_round_trip(self, vault):
        """Test that decrypt(encrypt(x)) returns x."""
        envelope = vault.encrypt("yal-token-123")
        assert vault.decrypt(envelope) == "yal-token-123"

    def test_round_trip_unicode(self, vault):
        """Test non-ASCII plaintext survives."""
        assert vault.decrypt(vault.encrypt("clé-secrète-ج")) == "clé-secrète-ج"

    def test_envelope_format(self, vault):
        """Test envelope is hex(iv):hex(tag):hex(ciphertext)."""
        iv, tag, ciphertext = vault.encrypt("secret").split(":")
        assert len(bytes.fromhex(iv)) == IV_LENGTH
        assert len(bytes.fromhex(tag)) == TAG_LENGTH
        assert len(bytes.fromhex(ciphertext)) == len("secret")

    def test_envelopes_are_randomized(self, vault):
        """Test the same plaintext encrypts to different envelopes."""
        assert vault.encrypt("same") != vault.encrypt("same")

    def test_plaintext_not_in_envelope(self, vault):
        """Test the envelope does not leak the plaintext."""
        assert "my-api-key" not in vault.encrypt("my-api-key")

    def test_tampered_ciphertext_rejected(self, vault):
        """Test a modified ciphertext fails authentication."""
        iv, tag, ciphertext = vault.encrypt("secret").split(":")
        flipped = format(int(ciphertext[:2], 16) ^ 0x01, "02x") + ciphertext[2:]
        with pytest.raises(CredentialDecryptionError):
            vault.decrypt(f"{iv}:{tag}:{flipped}")

    def test_tampered_tag_rejected(self, vault):
        """Test a modified auth tag fails authentication."""
        iv, tag, ciphertext = vault.encrypt("secret").split(":")
        bad_tag = ("0" if tag[0] != "0" else "1") + tag[1:]
        with pytest.raises(CredentialDecryptionError):
            vault.decrypt(f"{iv}:{bad_tag}:{ciphertext}")

    @pytest.mark.parametrize(
        "envelope",
        ["", "not-an-envelope", "abc:def", "zz:zz:zz", "00:00:00", "a:b:c:d"],
    )
    def test_malformed_envelope_rejected(self, vault, envelope):
        """Test malformed envelopes raise instead of returning garbage."""
        with pytest.raises(CredentialDecryptionError):
            vault.decrypt(envelope)

    def test_other_secret_cannot_decrypt(self, vault):
        """Test envelopes are bound to the process secret."""
        other = CredentialVault("a-completely-different-secret-value")
        with pytest.raises(CredentialDecryptionError):
            other.decrypt(vault.encrypt("secret"))

    def test_empty_secret_rejected(self):
        """Test the vault refuses to run without a secret."""
        with pytest.raises(ValueError):
            CredentialVault("")

    def test_optional_helpers(self, vault):
        """Test None passes through the optional helpers."""
        assert vault.encrypt_optional(None) is None
        assert vault.decrypt_optional(None) is None
        assert vault.decrypt_optional(vault.encrypt_optional("guid")) == "guid"

    def test_looks_like_envelope(self, vault):
        """Test envelope shape detection."""
        assert CredentialVault.looks_like_envelope(vault.encrypt("x"))
        assert not CredentialVault.looks_like_envelope("plain-api-key")
        assert not CredentialVault.looks_like_envelope(None)
