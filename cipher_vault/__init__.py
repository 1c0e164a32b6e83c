"""Cipher Vault.

Vault synchronization and cryptographic cache engine for a personal
secrets manager.
"""
from .version import __version__
from .exceptions import (
    VaultError,
    ValidationError,
    RepositoryError,
    CryptoError,
    NotFoundError,
    ExportError,
    SessionError,
)
from .models import CredentialEntry, Vault, VaultSession, TokenEntry, EntryInput
from .vault import (
    Cipher,
    MutationCoordinator,
    VaultConfig,
    StaticKeyProvider,
    EnvKeyProvider,
    rotate_cipher_key,
)
from .repository import Repository, MemoryRepository
from .rest import RestRepository
from .analytics import classify_strength, detect_duplicates, aggregate_tags
from .export import export_scope, decrypt_export, ExportScope, ExportFormat
from .tokens import TokenStore
from .generator import generate_secret

__all__ = [
    "__version__",
    "VaultError",
    "ValidationError",
    "RepositoryError",
    "CryptoError",
    "NotFoundError",
    "ExportError",
    "SessionError",
    "CredentialEntry",
    "Vault",
    "VaultSession",
    "TokenEntry",
    "EntryInput",
    "Cipher",
    "MutationCoordinator",
    "VaultConfig",
    "StaticKeyProvider",
    "EnvKeyProvider",
    "rotate_cipher_key",
    "Repository",
    "MemoryRepository",
    "RestRepository",
    "classify_strength",
    "detect_duplicates",
    "aggregate_tags",
    "export_scope",
    "decrypt_export",
    "ExportScope",
    "ExportFormat",
    "TokenStore",
    "generate_secret",
]
