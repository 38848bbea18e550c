"""Envelope encryption for stored courier credentials.

Envelopes have the form ``hex(iv):hex(auth_tag):hex(ciphertext)`` and are
produced with AES-256-GCM. The 256-bit key is derived once from the
process-wide secret with scrypt and a fixed salt, so every process sharing
the secret can read every envelope.
"""

import logging
import os

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.scrypt import Scrypt

from courier_hub.exceptions import CredentialDecryptionError

logger = logging.getLogger(__name__)

IV_LENGTH = 12
TAG_LENGTH = 16
KEY_LENGTH = 32

# scrypt cost parameters (N=2^14, r=8, p=1)
SCRYPT_N = 2**14
SCRYPT_R = 8
SCRYPT_P = 1


def derive_key(secret: str, salt: bytes) -> bytes:
    """Derive the 256-bit vault key from the process-wide secret."""
    kdf = Scrypt(salt=salt, length=KEY_LENGTH, n=SCRYPT_N, r=SCRYPT_R, p=SCRYPT_P)
    return kdf.derive(secret.encode("utf-8"))


class CredentialVault:
    """
    Turns plaintext credentials into storable envelopes and back.

    The vault never logs plaintext or key material. Decryption fails loudly
    when the authentication tag does not verify, so tampered or corrupted
    envelopes are never mistaken for valid credentials.
    """

    def __init__(self, secret: str, salt: str | bytes = b"courier-hub-credential-vault") -> None:
        """
        Initialize the vault.

        Args:
            secret: Process-wide secret (from Settings.resolve_encryption_key()).
            salt: Fixed KDF salt.
        """
        if not secret:
            raise ValueError("CredentialVault requires a non-empty secret")
        salt_bytes = salt.encode("utf-8") if isinstance(salt, str) else salt
        self._aead = AESGCM(derive_key(secret, salt_bytes))

    def encrypt(self, plaintext: str) -> str:
        """Encrypt a credential into an ``iv:authTag:ciphertext`` envelope."""
        iv = os.urandom(IV_LENGTH)
        sealed = self._aead.encrypt(iv, plaintext.encode("utf-8"), None)
        ciphertext, tag = sealed[:-TAG_LENGTH], sealed[-TAG_LENGTH:]
        return f"{iv.hex()}:{tag.hex()}:{ciphertext.hex()}"

    def decrypt(self, envelope: str) -> str:
        """
        Decrypt an envelope produced by encrypt().

        Raises:
            CredentialDecryptionError: If the envelope is malformed or fails authentication.
        """
        parts = envelope.split(":") if envelope else []
        if len(parts) != 3:
            raise CredentialDecryptionError("Malformed credential envelope")

        try:
            iv, tag, ciphertext = (bytes.fromhex(part) for part in parts)
        except ValueError as e:
            raise CredentialDecryptionError("Credential envelope is not valid hex") from e

        if len(iv) != IV_LENGTH or len(tag) != TAG_LENGTH:
            raise CredentialDecryptionError("Credential envelope has invalid iv or tag length")

        try:
            plaintext = self._aead.decrypt(iv, ciphertext + tag, None)
        except InvalidTag as e:
            logger.warning("Credential envelope failed authentication")
            raise CredentialDecryptionError("Credential envelope failed authentication") from e

        return plaintext.decode("utf-8")

    def encrypt_optional(self, plaintext: str | None) -> str | None:
        """Encrypt a value that may be absent."""
        return self.encrypt(plaintext) if plaintext else None

    def decrypt_optional(self, envelope: str | None) -> str | None:
        """Decrypt an envelope that may be absent."""
        return self.decrypt(envelope) if envelope else None

    @staticmethod
    def looks_like_envelope(value: object) -> bool:
        """True when a value has the shape of a vault envelope."""
        if not isinstance(value, str):
            return False
        parts = value.split(":")
        if len(parts) != 3:
            return False
        try:
            iv, tag = bytes.fromhex(parts[0]), bytes.fromhex(parts[1])
            bytes.fromhex(parts[2])
        except ValueError:
            return False
        return len(iv) == IV_LENGTH and len(tag) == TAG_LENGTH
