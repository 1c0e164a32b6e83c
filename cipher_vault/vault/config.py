"""
Vault Configuration — Cipher key providers and validated settings.

Reads configuration from environment variables:
    CIPHER_VAULT_KEY = <symmetric key string>
    CIPHER_VAULT_BACKEND = aesgcm | chacha20
    CIPHER_VAULT_EXPORT_ITERATIONS = <int>
    CIPHER_VAULT_DEFAULT_VAULT = <vault name>

A missing key is allowed: secrets are then stored unencrypted and a
warning is logged when the Cipher is built.

Security Note:
    Never log key material. Only log whether a key is present.
"""
import os
import base64
import secrets
import logging
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from ..conf import (
    VAULT_KEY_ENV,
    VAULT_BACKEND_ENV,
    EXPORT_ITERATIONS_ENV,
    DEFAULT_VAULT_ENV,
    DEFAULT_VAULT_NAME,
    DEFAULT_CIPHER_BACKEND,
    EXPORT_KDF_ITERATIONS,
)

logger = logging.getLogger("cipher_vault.config")


class KeyProvider:
    """Source of the symmetric key used by the Cipher.

    Subclasses return the key string, or None when no key is configured.
    """

    def get_key(self) -> Optional[str]:
        raise NotImplementedError


class StaticKeyProvider(KeyProvider):
    """Key supplied directly, e.g. by tests or an embedding application."""

    def __init__(self, key: Optional[str]):
        self._key = key or None

    def get_key(self) -> Optional[str]:
        return self._key


class EnvKeyProvider(KeyProvider):
    """Key read from an environment variable on every call."""

    def __init__(self, env_var: str = VAULT_KEY_ENV):
        self.env_var = env_var

    def get_key(self) -> Optional[str]:
        return os.environ.get(self.env_var) or None


def load_cipher_key() -> Optional[str]:
    """Read the cipher key from CIPHER_VAULT_KEY.

    Returns:
        The key string, or None if the variable is unset or empty.
    """
    key = EnvKeyProvider().get_key()
    if key is None:
        logger.warning(
            "%s is not set; secrets will NOT be encrypted", VAULT_KEY_ENV
        )
    return key


def generate_cipher_key() -> str:
    """Generate a random 32-byte key and return it as a base64 string.

    This is a utility for operators to generate new keys.
    """
    return base64.b64encode(secrets.token_bytes(32)).decode("ascii")


class VaultConfig(BaseModel):
    """Validated engine configuration."""

    cipher_key: Optional[str] = None
    cipher_backend: str = Field(default=DEFAULT_CIPHER_BACKEND)
    export_kdf_iterations: int = Field(default=EXPORT_KDF_ITERATIONS, ge=1000)
    default_vault_name: str = Field(default=DEFAULT_VAULT_NAME, min_length=1)

    @field_validator("cipher_backend")
    @classmethod
    def validate_cipher(cls, v: str) -> str:
        """Validate cipher backend is supported."""
        v = v.lower()
        if v not in ("aesgcm", "chacha20"):
            raise ValueError(f"Unsupported cipher backend: {v}")
        return v

    @property
    def has_key(self) -> bool:
        return bool(self.cipher_key)

    def key_provider(self) -> KeyProvider:
        return StaticKeyProvider(self.cipher_key)

    @classmethod
    def from_env(cls) -> "VaultConfig":
        """Create VaultConfig by loading values from environment."""
        return cls(
            cipher_key=load_cipher_key(),
            cipher_backend=os.environ.get(VAULT_BACKEND_ENV, DEFAULT_CIPHER_BACKEND),
            export_kdf_iterations=int(
                os.environ.get(EXPORT_ITERATIONS_ENV, EXPORT_KDF_ITERATIONS)
            ),
            default_vault_name=os.environ.get(DEFAULT_VAULT_ENV, DEFAULT_VAULT_NAME),
        )
