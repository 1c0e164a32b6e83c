"""
Vault Key Rotation — re-encrypt a user's stored secrets under a new key.

Walks every vault of the user in batches, decrypts each entry secret and its
history with the old cipher and writes them back encrypted with the new one.
API token values are rotated as well. Values that were never encrypted are
picked up by the plaintext fallback of ``Cipher.decrypt`` and end up
encrypted, so the same call migrates legacy plaintext data. Values that
already decrypt under the new key are left alone, so a partially failed
rotation can simply be run again.

Security Note:
    Plaintext exists in memory only during re-encryption of each record.
    Never log plaintext or ciphertext values.
"""
import logging
from typing import Any, Optional

from .crypto import Cipher
from ..exceptions import CryptoError
from ..repository import Repository

logger = logging.getLogger("cipher_vault.crypto")


def _rotate(value: str, old_cipher: Cipher, new_cipher: Cipher) -> Optional[str]:
    """Re-encrypt ``value``; None when it already decrypts under the new key."""
    if not value:
        return None
    try:
        new_cipher.decrypt_strict(value)
    except CryptoError:
        return new_cipher.encrypt(old_cipher.decrypt(value))
    return None


async def rotate_cipher_key(
    repository: Repository,
    user_id: str,
    old_cipher: Cipher,
    new_cipher: Cipher,
    batch_size: int = 100,
) -> dict:
    """Re-encrypt every secret of ``user_id`` from old_cipher to new_cipher.

    Args:
        repository: Remote store holding the user's vaults.
        user_id: Owner of the vaults to rotate.
        old_cipher: Cipher configured with the current key.
        new_cipher: Cipher configured with the replacement key.
        batch_size: Number of records processed per logged batch.

    Returns:
        Stats dict with keys: total, rotated, errors, skipped.
    """
    stats = {"total": 0, "rotated": 0, "errors": 0, "skipped": 0}

    logger.info(
        "Starting key rotation for user=%s (batch_size=%d)", user_id, batch_size,
    )

    vaults = await repository.list_vaults(user_id)
    for vault in vaults:
        records = await repository.list_entries(user_id, vault.id)
        for offset in range(0, len(records), batch_size):
            batch = records[offset:offset + batch_size]
            logger.info(
                "Processing vault=%s batch %d (%d rows)",
                vault.id, (offset // batch_size) + 1, len(batch),
            )
            for record in batch:
                stats["total"] += 1
                entry_id = record.get("id")
                secret = record.get("secret") or ""
                if not secret:
                    stats["skipped"] += 1
                    continue
                try:
                    history = record.get("secretHistory") or []
                    new_secret = _rotate(secret, old_cipher, new_cipher)
                    new_history = [
                        _rotate(item.get("secret", ""), old_cipher, new_cipher)
                        for item in history
                    ]
                    if new_secret is None and all(h is None for h in new_history):
                        stats["skipped"] += 1
                        continue
                    partial: dict[str, Any] = {}
                    if new_secret is not None:
                        partial["secret"] = new_secret
                    if any(h is not None for h in new_history):
                        partial["secretHistory"] = [
                            item if h is None else {**item, "secret": h}
                            for item, h in zip(history, new_history)
                        ]
                    await repository.update_entry(user_id, vault.id, entry_id, partial)
                    stats["rotated"] += 1
                except Exception as err:
                    logger.error(
                        "Error rotating secret id=%s vault=%s: %s",
                        entry_id, vault.id, err,
                    )
                    stats["errors"] += 1

    for record in await repository.list_tokens(user_id):
        stats["total"] += 1
        token_id = record.get("id")
        value = record.get("value") or ""
        if not value:
            stats["skipped"] += 1
            continue
        try:
            new_value = _rotate(value, old_cipher, new_cipher)
            if new_value is None:
                stats["skipped"] += 1
                continue
            await repository.save_token(user_id, token_id, {"value": new_value})
            stats["rotated"] += 1
        except Exception as err:
            logger.error("Error rotating token id=%s: %s", token_id, err)
            stats["errors"] += 1

    logger.info("Key rotation complete: %s", stats)
    return stats
