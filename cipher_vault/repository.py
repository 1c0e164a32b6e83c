"""
Repository contract — the narrow async interface the engine needs from the
remote per-user document store.

Records are camelCase dicts (see ``RecordModel.to_record``). Entry secrets
inside records are always ciphertext.
"""
import copy
import logging
from abc import ABC, abstractmethod
from typing import Any, Optional

from .exceptions import RepositoryError
from .models import Vault, new_id

logger = logging.getLogger("cipher_vault.repository")


class Repository(ABC):
    """Remote document store consumed by the engine.

    Any failure (network, permission, missing document) is reported by
    raising; the engine handles every failure the same way.
    """

    @abstractmethod
    async def list_vaults(self, user_id: str) -> list[Vault]:
        ...

    @abstractmethod
    async def create_vault(self, user_id: str, name: str) -> Vault:
        ...

    @abstractmethod
    async def list_entries(self, user_id: str, vault_id: str) -> list[dict]:
        ...

    @abstractmethod
    async def create_entry(self, user_id: str, vault_id: str, record: dict) -> str:
        """Store a new entry and return its id.

        ``record`` carries a client generated ``id``; stores should keep it.
        """

    @abstractmethod
    async def update_entry(
        self, user_id: str, vault_id: str, entry_id: str, partial: dict,
    ) -> None:
        ...

    @abstractmethod
    async def delete_entry(self, user_id: str, vault_id: str, entry_id: str) -> None:
        ...

    @abstractmethod
    async def list_tokens(self, user_id: str) -> list[dict]:
        ...

    @abstractmethod
    async def save_token(self, user_id: str, token_id: str, record: dict) -> None:
        """Create or merge a token document."""

    @abstractmethod
    async def delete_token(self, user_id: str, token_id: str) -> None:
        ...


class MemoryRepository(Repository):
    """In-process document store.

    Records are deep-copied on the way in and out, so callers never share
    state with the store, the same as with a remote backend.
    """

    def __init__(self):
        self._vaults: dict[str, dict[str, Vault]] = {}
        self._entries: dict[tuple[str, str], dict[str, dict]] = {}
        self._tokens: dict[str, dict[str, dict]] = {}

    def _vault_entries(self, user_id: str, vault_id: str) -> dict[str, dict]:
        if vault_id not in self._vaults.get(user_id, {}):
            raise RepositoryError(
                f"Vault {vault_id} not found", operation="lookup", status=404,
            )
        return self._entries.setdefault((user_id, vault_id), {})

    async def list_vaults(self, user_id: str) -> list[Vault]:
        return list(self._vaults.get(user_id, {}).values())

    async def create_vault(self, user_id: str, name: str) -> Vault:
        vault = Vault(id=new_id(), name=name)
        self._vaults.setdefault(user_id, {})[vault.id] = vault
        logger.debug("Created vault id=%s for user=%s", vault.id, user_id)
        return vault

    async def list_entries(self, user_id: str, vault_id: str) -> list[dict]:
        entries = self._vault_entries(user_id, vault_id)
        return [copy.deepcopy(r) for r in entries.values()]

    async def create_entry(self, user_id: str, vault_id: str, record: dict) -> str:
        entries = self._vault_entries(user_id, vault_id)
        entry_id = record.get("id") or new_id()
        stored = copy.deepcopy(record)
        stored["id"] = entry_id
        entries[entry_id] = stored
        return entry_id

    async def update_entry(
        self, user_id: str, vault_id: str, entry_id: str, partial: dict,
    ) -> None:
        entries = self._vault_entries(user_id, vault_id)
        if entry_id not in entries:
            raise RepositoryError(
                f"Entry {entry_id} not found", operation="update", status=404,
            )
        entries[entry_id].update(copy.deepcopy(partial))

    async def delete_entry(self, user_id: str, vault_id: str, entry_id: str) -> None:
        entries = self._vault_entries(user_id, vault_id)
        if entries.pop(entry_id, None) is None:
            raise RepositoryError(
                f"Entry {entry_id} not found", operation="delete", status=404,
            )

    async def list_tokens(self, user_id: str) -> list[dict]:
        return [copy.deepcopy(r) for r in self._tokens.get(user_id, {}).values()]

    async def save_token(self, user_id: str, token_id: str, record: dict) -> None:
        tokens = self._tokens.setdefault(user_id, {})
        merged: dict[str, Any] = tokens.get(token_id, {})
        merged.update(copy.deepcopy(record))
        merged["id"] = token_id
        tokens[token_id] = merged

    async def delete_token(self, user_id: str, token_id: str) -> None:
        self._tokens.get(user_id, {}).pop(token_id, None)

    def raw_entry(self, user_id: str, vault_id: str, entry_id: str) -> Optional[dict]:
        """Stored record as-is (inspection helper)."""
        record = self._entries.get((user_id, vault_id), {}).get(entry_id)
        return copy.deepcopy(record) if record is not None else None
