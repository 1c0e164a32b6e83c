"""Vault engine — cipher, optimistic mutation coordinator and key rotation.

Security Note (Threat Model):
    Secrets are protected by a single symmetric key held by the client
    process. Decrypted values exist in process memory while a caller uses
    them. Without a configured key, secrets are stored unencrypted; this is
    logged as a warning and never assumed safe.
"""

from .config import (
    VaultConfig,
    KeyProvider,
    StaticKeyProvider,
    EnvKeyProvider,
    load_cipher_key,
    generate_cipher_key,
)
from .crypto import Cipher, PassphraseCipher
from .commands import Command
from .coordinator import MutationCoordinator
from .key_rotation import rotate_cipher_key

__all__ = [
    "VaultConfig",
    "KeyProvider",
    "StaticKeyProvider",
    "EnvKeyProvider",
    "load_cipher_key",
    "generate_cipher_key",
    "Cipher",
    "PassphraseCipher",
    "Command",
    "MutationCoordinator",
    "rotate_cipher_key",
]
