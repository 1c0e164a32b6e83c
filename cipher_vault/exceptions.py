"""
Cipher Vault error taxonomy.

- ``ValidationError``: caller data rejected before any cache change.
- ``RepositoryError``: the remote store call failed; the cache was rolled back.
- ``CryptoError``: strict decryption failed; absorbed by ``Cipher.decrypt``.
- ``NotFoundError``: the mutation targets an id absent from the cache.
- ``ExportError``: export produced nothing to write.
- ``SessionError``: the engine was used without a bound session.
"""
from typing import Optional


class VaultError(Exception):
    """Base class for every Cipher Vault error."""


class ValidationError(VaultError):
    """Caller-supplied data fails structural requirements."""

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.field = field


class RepositoryError(VaultError):
    """A remote store operation failed."""

    def __init__(
        self,
        message: str,
        operation: Optional[str] = None,
        status: Optional[int] = None,
    ):
        super().__init__(message)
        self.operation = operation
        self.status = status


class CryptoError(VaultError):
    """Ciphertext could not be decrypted."""


class NotFoundError(VaultError):
    """Mutation target is not in the cache."""

    def __init__(self, message: str, entry_id: Optional[str] = None):
        super().__init__(message)
        self.entry_id = entry_id


class ExportError(VaultError):
    """Export could not produce a bundle."""


class SessionError(VaultError):
    """No session is bound to the engine."""
