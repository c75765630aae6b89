"""
Encryption of 2FA secrets at rest.

Each envelope carries its own salt and IV. The AES key is derived from the
process master key *and* the owning user id, so a stored envelope can only be
decrypted with the same user id it was encrypted for.
"""

import base64
import binascii
import json
import logging
import os

from cryptography.hazmat.primitives import hashes, padding
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from app.config import settings
from app.core.errors import ConfigurationError, DecryptionError

logger = logging.getLogger(__name__)

PBKDF2_ITERATIONS = 100_000
KEY_SIZE_BYTES = 32
SALT_SIZE_BYTES = 16
IV_SIZE_BYTES = 16


class SecureEncryption:
    def __init__(self, master_key: str, iterations: int = PBKDF2_ITERATIONS):
        if not master_key:
            raise ConfigurationError(
                "Encryption key not configured. Please set ENCRYPTION_KEY environment variable."
            )
        self._master_key = master_key
        self.iterations = iterations

    def _derive_key(self, user_id: str, salt: bytes) -> bytes:
        kdf = PBKDF2HMAC(
            algorithm=hashes.SHA256(),
            length=KEY_SIZE_BYTES,
            salt=salt,
            iterations=self.iterations,
        )
        return kdf.derive((self._master_key + user_id).encode("utf-8"))

    def encrypt(self, plaintext: str, user_id: str) -> str:
        """Encrypt plaintext for user_id; returns a JSON envelope {salt, iv, data}."""
        salt = os.urandom(SALT_SIZE_BYTES)
        iv = os.urandom(IV_SIZE_BYTES)
        key = self._derive_key(user_id, salt)

        padder = padding.PKCS7(algorithms.AES.block_size).padder()
        padded = padder.update(plaintext.encode("utf-8")) + padder.finalize()
        encryptor = Cipher(algorithms.AES(key), modes.CBC(iv)).encryptor()
        ciphertext = encryptor.update(padded) + encryptor.finalize()

        return json.dumps({
            "salt": salt.hex(),
            "iv": iv.hex(),
            "data": base64.b64encode(ciphertext).decode("ascii"),
        })

    def decrypt(self, envelope: str, user_id: str) -> str:
        """Decrypt an envelope produced by encrypt() with the same user_id."""
        try:
            payload = json.loads(envelope)
            salt = bytes.fromhex(payload["salt"])
            iv = bytes.fromhex(payload["iv"])
            ciphertext = base64.b64decode(payload["data"], validate=True)
        except (TypeError, ValueError, KeyError, binascii.Error) as e:
            raise DecryptionError("Malformed encrypted envelope") from e

        if len(iv) != IV_SIZE_BYTES or not ciphertext or len(ciphertext) % IV_SIZE_BYTES:
            raise DecryptionError("Malformed encrypted envelope")

        key = self._derive_key(user_id, salt)
        decryptor = Cipher(algorithms.AES(key), modes.CBC(iv)).decryptor()
        padded = decryptor.update(ciphertext) + decryptor.finalize()
        try:
            unpadder = padding.PKCS7(algorithms.AES.block_size).unpadder()
            plaintext = unpadder.update(padded) + unpadder.finalize()
            return plaintext.decode("utf-8")
        except (ValueError, UnicodeDecodeError) as e:
            logger.warning("Envelope decryption failed for user %s", user_id)
            raise DecryptionError("Envelope could not be decrypted") from e


def get_encryption() -> SecureEncryption:
    return SecureEncryption(settings.encryption_key)
