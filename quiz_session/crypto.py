"""
Key derivation and Fernet helpers shared by the bank loader, the encrypted
autosave store and the tools.
"""

import base64
import os
from typing import Tuple

from cryptography.fernet import Fernet
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

SALT_PREFIX = b'SALT'
SALT_LENGTH = 16


def derive_key_from_password(password: str, salt: bytes) -> bytes:
    """Derive a Fernet key from a password using PBKDF2."""
    kdf = PBKDF2HMAC(
        algorithm=hashes.SHA256(),
        length=32,
        salt=salt,
        iterations=480000,  # OWASP recommendation for 2024
    )
    key_material = kdf.derive(password.encode('utf-8'))
    return base64.urlsafe_b64encode(key_material)


def encrypt_with_password(plaintext: bytes, password: str) -> bytes:
    """Encrypt and prepend ``SALT`` + a random 16-byte salt."""
    salt = os.urandom(SALT_LENGTH)
    fernet = Fernet(derive_key_from_password(password, salt))
    return SALT_PREFIX + salt + fernet.encrypt(plaintext)


def split_salted(data: bytes) -> Tuple[bytes, bytes]:
    """Return ``(salt, token)`` for password-encrypted data."""
    start = len(SALT_PREFIX)
    return data[start:start + SALT_LENGTH], data[start + SALT_LENGTH:]


def decrypt(data: bytes, secret: str) -> bytes:
    """
    Decrypt data produced either with a password (salted) or a raw Fernet key.

    Raises:
        cryptography.fernet.InvalidToken: If the secret is wrong or data is corrupt
    """
    if data.startswith(SALT_PREFIX):
        salt, token = split_salted(data)
        key = derive_key_from_password(secret, salt)
    else:
        token = data
        key = secret.encode('utf-8')
    return Fernet(key).decrypt(token)
