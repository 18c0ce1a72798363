"""Security helpers for token encryption and password hashing."""

from __future__ import annotations

import os
from pathlib import Path

from cryptography.fernet import Fernet
from werkzeug.security import check_password_hash, generate_password_hash


class CryptoManager:
    """Encrypts and decrypts strings using a base64-encoded Fernet key."""

    def __init__(self, base64_key: str) -> None:
        self._fernet = Fernet(base64_key.encode("utf-8"))

    def encrypt_str(self, text: str) -> str:
        """Encrypt a string and return the cipher text as a string."""
        return self._fernet.encrypt(text.encode("utf-8")).decode("utf-8")

    def decrypt_str(self, cipher: str) -> str:
        """Decrypt a cipher text string and return the original string."""
        return self._fernet.decrypt(cipher.encode("utf-8")).decode("utf-8")


def load_or_create_key(key_path: str | Path) -> str:
    """Return the Fernet key stored at ``key_path``, creating it on first use.

    ``DDNS_MASTER_KEY`` in the environment takes precedence over the file.
    """
    key = os.environ.get("DDNS_MASTER_KEY")
    if key:
        return key

    path = Path(key_path)
    if path.is_file():
        return path.read_text(encoding="utf-8").strip()

    key = Fernet.generate_key().decode("utf-8")
    path.parent.mkdir(parents=True, exist_ok=True)
    fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_EXCL, 0o600)
    with os.fdopen(fd, "w", encoding="utf-8") as handle:
        handle.write(key)
    return key


def hash_password(password: str) -> str:
    return generate_password_hash(password)


def verify_password(password_hash: str, password: str) -> bool:
    if not password_hash:
        return False
    return check_password_hash(password_hash, password)
