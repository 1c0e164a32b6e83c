"""
Vault Crypto Core — Key derivation and secret encryption/decryption.

Two independent layers:
- Vault layer: HKDF(cipher key, "cipher-vault-secret") → AEAD → base64(nonce|payload)
- Export layer: PBKDF2(passphrase, salt) → AES-GCM → base64(salt|nonce|payload)

Decryption on the vault layer is migration safe: input that does not decrypt
(data stored before encryption was enabled) is returned unchanged.

Security Note:
    Never log plaintext or ciphertext values.
    Nonces are random 96-bit; collision probability negligible under normal usage.
"""
import os
import base64
import logging
from typing import Optional

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.hkdf import HKDF
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC
from cryptography.hazmat.primitives.ciphers.aead import AESGCM, ChaCha20Poly1305

from ..conf import DEFAULT_CIPHER_BACKEND, EXPORT_KDF_ITERATIONS
from ..exceptions import CryptoError
from ..models import CredentialEntry
from .config import KeyProvider, VaultConfig

logger = logging.getLogger("cipher_vault.crypto")

NONCE_SIZE = 12  # 96-bit nonce
TAG_SIZE = 16
KEY_LENGTH = 32  # AES-256
SECRET_CONTEXT = "cipher-vault-secret"


def _get_cipher_cls(backend: str) -> type:
    """Return the AEAD cipher class for a backend name."""
    if backend.lower() == "chacha20":
        return ChaCha20Poly1305
    return AESGCM


def derive_key(seed: bytes, context: str) -> bytes:
    """Derive a 32-byte encryption key using HKDF-SHA256.

    Args:
        seed: Input key material (the configured key string, encoded).
        context: Context string for domain separation.

    Returns:
        32-byte derived key.
    """
    hkdf = HKDF(
        algorithm=hashes.SHA256(),
        length=KEY_LENGTH,
        salt=None,  # deterministic: the same key must decrypt across processes
        info=context.encode("utf-8"),
    )
    return hkdf.derive(seed)


class Cipher:
    """Symmetric encrypt/decrypt of secret strings.

    The key comes from an injected ``KeyProvider``. Without a key, both
    operations are the identity and a warning is logged on construction.
    """

    def __init__(
        self,
        key_provider: KeyProvider,
        backend: str = DEFAULT_CIPHER_BACKEND,
    ):
        self._provider = key_provider
        self._backend = backend
        self._aead = None
        self.rekey()

    @classmethod
    def from_config(cls, config: VaultConfig) -> "Cipher":
        return cls(config.key_provider(), backend=config.cipher_backend)

    def rekey(self, key_provider: Optional[KeyProvider] = None) -> None:
        """(Re)load the key from the provider."""
        if key_provider is not None:
            self._provider = key_provider
        key = self._provider.get_key()
        if not key:
            self._aead = None
            logger.warning(
                "No cipher key configured: secrets will be stored UNENCRYPTED"
            )
            return
        derived = derive_key(key.encode("utf-8"), SECRET_CONTEXT)
        self._aead = _get_cipher_cls(self._backend)(derived)
        logger.debug("Cipher key loaded (backend=%s)", self._backend)

    @property
    def is_secure(self) -> bool:
        return self._aead is not None

    def encrypt(self, plaintext: str) -> str:
        """Encrypt a secret string.

        Format: base64([nonce 12B][encrypted_payload + tag 16B])
        """
        if self._aead is None or not plaintext:
            return plaintext
        nonce = os.urandom(NONCE_SIZE)
        ct = self._aead.encrypt(nonce, plaintext.encode("utf-8"), None)
        return base64.b64encode(nonce + ct).decode("ascii")

    def decrypt_strict(self, ciphertext: str) -> str:
        """Decrypt, raising on anything that is not valid ciphertext.

        Raises:
            CryptoError: Input is not base64, too short, fails
                authentication or is not UTF-8.
        """
        if self._aead is None:
            raise CryptoError("No cipher key configured")
        try:
            raw = base64.b64decode(ciphertext, validate=True)
        except ValueError as err:
            raise CryptoError("Ciphertext is not valid base64") from err
        _min = NONCE_SIZE + TAG_SIZE
        if len(raw) < _min:
            raise CryptoError(
                f"Ciphertext too short: {len(raw)} bytes (minimum {_min})"
            )
        try:
            plaintext = self._aead.decrypt(raw[:NONCE_SIZE], raw[NONCE_SIZE:], None)
            return plaintext.decode("utf-8")
        except (InvalidTag, UnicodeDecodeError) as err:
            raise CryptoError("Ciphertext failed to decrypt") from err

    def decrypt(self, ciphertext: str) -> str:
        """Decrypt a secret, falling back to the input unchanged.

        Values written before encryption was enabled are returned as they
        are. A value encrypted under a different key is indistinguishable
        from such plaintext and is also returned unchanged.
        """
        if self._aead is None or not ciphertext:
            return ciphertext
        try:
            plaintext = self.decrypt_strict(ciphertext)
        except CryptoError:
            logger.debug("Secret did not decrypt; treating as plaintext")
            return ciphertext
        return plaintext or ciphertext

    def reveal(self, entry: CredentialEntry) -> CredentialEntry:
        """Return a transient copy of ``entry`` with plaintext secrets."""
        history = tuple(
            item.model_copy(update={"secret": self.decrypt(item.secret)})
            for item in entry.secret_history
        )
        return entry.model_copy(
            update={"secret": self.decrypt(entry.secret), "secret_history": history}
        )


class PassphraseCipher:
    """Encrypt text under a user passphrase (export bundles).

    Container: base64(salt(32) + nonce(12) + ciphertext_with_tag)
    """

    KEY_LENGTH = 32              # 256 bits for AES-256
    SALT_LENGTH = 32             # 256-bit salt
    NONCE_LENGTH = 12            # 96-bit nonce for GCM

    _HEADER_SIZE = SALT_LENGTH + NONCE_LENGTH

    def __init__(self, iterations: int = EXPORT_KDF_ITERATIONS):
        self.iterations = iterations

    def derive_key(self, passphrase: str, salt: bytes) -> bytes:
        """Derive a 256-bit key from passphrase + salt via PBKDF2-SHA256."""
        kdf = PBKDF2HMAC(
            algorithm=hashes.SHA256(),
            length=self.KEY_LENGTH,
            salt=salt,
            iterations=self.iterations,
        )
        return kdf.derive(passphrase.encode("utf-8"))

    def encrypt_text(self, text: str, passphrase: str) -> str:
        salt = os.urandom(self.SALT_LENGTH)
        key = self.derive_key(passphrase, salt)
        nonce = os.urandom(self.NONCE_LENGTH)
        ciphertext = AESGCM(key).encrypt(nonce, text.encode("utf-8"), None)
        return base64.b64encode(salt + nonce + ciphertext).decode("ascii")

    def decrypt_text(self, blob: str, passphrase: str) -> str:
        """Decrypt a container produced by ``encrypt_text``.

        Raises:
            CryptoError: Wrong passphrase, corrupt or truncated data.
        """
        try:
            raw = base64.b64decode(blob, validate=True)
        except ValueError as err:
            raise CryptoError("Export data is not valid base64") from err
        if len(raw) < self._HEADER_SIZE + TAG_SIZE:
            raise CryptoError("Encrypted data too short to be a valid export.")
        salt = raw[: self.SALT_LENGTH]
        nonce = raw[self.SALT_LENGTH : self._HEADER_SIZE]
        key = self.derive_key(passphrase, salt)
        try:
            data = AESGCM(key).decrypt(nonce, raw[self._HEADER_SIZE :], None)
        except InvalidTag as err:
            raise CryptoError("Wrong passphrase or corrupt export") from err
        return data.decode("utf-8")
