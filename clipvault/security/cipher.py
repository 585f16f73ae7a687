"""Password based authenticated encryption backed by AES-GCM."""

from __future__ import annotations

import base64
import binascii
import json
import os
import secrets
from dataclasses import dataclass
from typing import Any, Dict

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from ..config import DEFAULT_KDF_ITERATIONS
from ..errors import WrongPasswordOrCorruptError

ENVELOPE_VERSION = 1
KDF_NAME = "pbkdf2-hmac-sha256"
MAX_ITERATIONS = 10_000_000


@dataclass
class PasswordCipher:
    """Seal secret values with a key derived from a password.

    The key is derived with PBKDF2-HMAC-SHA256 over a fresh salt and the
    payload is sealed with AES-256-GCM. The result is an ASCII JSON envelope
    carrying everything except the password, so the iteration count of old
    secrets keeps working when the default is raised.
    """

    iterations: int = DEFAULT_KDF_ITERATIONS
    kdf_salt_bytes: int = 16
    nonce_bytes: int = 12

    # -- public API -----------------------------------------------------
    def encrypt(self, plaintext: bytes, password: bytes) -> bytes:
        """Return the armoured envelope sealing *plaintext*."""

        salt = os.urandom(self.kdf_salt_bytes)
        nonce = secrets.token_bytes(self.nonce_bytes)
        key = self._derive_key(password, salt, self.iterations)
        ciphertext = AESGCM(key).encrypt(nonce, bytes(plaintext), None)
        envelope = {
            "version": ENVELOPE_VERSION,
            "kdf": KDF_NAME,
            "iterations": self.iterations,
            "salt": base64.b64encode(salt).decode("ascii"),
            "nonce": base64.b64encode(nonce).decode("ascii"),
            "ciphertext": base64.b64encode(ciphertext).decode("ascii"),
        }
        return json.dumps(envelope, indent=2).encode("ascii")

    def decrypt(self, ciphertext: bytes, password: bytes) -> bytes:
        """Open an envelope produced by :meth:`encrypt`.

        Raises :class:`WrongPasswordOrCorruptError` for a wrong password and
        for any damage to the envelope alike.
        """

        try:
            payload = json.loads(ciphertext.decode("ascii"))
        except (UnicodeDecodeError, json.JSONDecodeError) as exc:
            raise WrongPasswordOrCorruptError() from exc
        if not isinstance(payload, dict):
            raise WrongPasswordOrCorruptError()
        if payload.get("version") != ENVELOPE_VERSION or payload.get("kdf") != KDF_NAME:
            raise WrongPasswordOrCorruptError()
        iterations = payload.get("iterations")
        if not isinstance(iterations, int) or isinstance(iterations, bool):
            raise WrongPasswordOrCorruptError()
        if not 1 <= iterations <= MAX_ITERATIONS:
            raise WrongPasswordOrCorruptError()
        salt = _b64decode_field(payload, "salt")
        nonce = _b64decode_field(payload, "nonce")
        sealed = _b64decode_field(payload, "ciphertext")
        key = self._derive_key(password, salt, iterations)
        try:
            return AESGCM(key).decrypt(nonce, sealed, None)
        except (InvalidTag, ValueError) as exc:
            raise WrongPasswordOrCorruptError() from exc

    # -- helpers --------------------------------------------------------
    @staticmethod
    def _derive_key(password: bytes, salt: bytes, iterations: int) -> bytes:
        kdf = PBKDF2HMAC(
            algorithm=hashes.SHA256(),
            length=32,
            salt=salt,
            iterations=iterations,
        )
        return kdf.derive(bytes(password))


def _b64decode_field(payload: Dict[str, Any], field: str) -> bytes:
    value = payload.get(field)
    if not isinstance(value, str) or not value:
        raise WrongPasswordOrCorruptError()
    try:
        return base64.b64decode(value, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise WrongPasswordOrCorruptError() from exc


__all__ = ["ENVELOPE_VERSION", "KDF_NAME", "PasswordCipher"]
