"""
Vault Commands — optimistic mutations as apply / commit / rollback units.

``apply`` is a pure function of a cache state and runs synchronously before
the remote write; ``commit`` performs the remote write; ``rollback`` restores
the snapshot taken before ``apply``. ``reconcile`` may adjust the cache once
the store has answered (e.g. to adopt a store-assigned id).
"""
import logging
from abc import ABC, abstractmethod
from typing import Any, Optional

from ..cache import CacheState, VaultCache
from ..models import CredentialEntry, Vault
from ..repository import Repository

logger = logging.getLogger("cipher_vault.engine")


class Command(ABC):
    """Base class for a cache mutation mirrored to the Repository."""

    operation: str = "mutation"

    @abstractmethod
    def apply(self, state: CacheState) -> CacheState:
        ...

    @abstractmethod
    async def commit(self, repository: Repository, user_id: str) -> Any:
        ...

    def rollback(self, cache: VaultCache, snapshot: CacheState) -> None:
        cache.restore(snapshot)

    def reconcile(self, state: CacheState, result: Any) -> Optional[CacheState]:
        return None

    def __repr__(self) -> str:
        return f"<{type(self).__name__} operation={self.operation}>"


class CreateEntry(Command):
    operation = "create"

    def __init__(self, entry: CredentialEntry):
        self.entry = entry

    def apply(self, state: CacheState) -> CacheState:
        return state._replace(entries=(*state.entries, self.entry))

    async def commit(self, repository: Repository, user_id: str) -> str:
        return await repository.create_entry(
            user_id, self.entry.vault_id, self.entry.to_record(),
        )

    def reconcile(self, state: CacheState, result: Any) -> Optional[CacheState]:
        if not result or result == self.entry.id:
            return None
        logger.debug("Store assigned id=%s to entry=%s", result, self.entry.id)
        entries = tuple(
            e.model_copy(update={"id": result}) if e.id == self.entry.id else e
            for e in state.entries
        )
        return state._replace(entries=entries)


class UpdateEntries(Command):
    """Replace entries in place and send only the changed fields."""

    operation = "update"

    def __init__(self, changes: list[tuple[CredentialEntry, set[str]]]):
        self.changes = changes
        self._updated = {entry.id: entry for entry, _ in changes}

    def apply(self, state: CacheState) -> CacheState:
        entries = tuple(self._updated.get(e.id, e) for e in state.entries)
        return state._replace(entries=entries)

    async def commit(self, repository: Repository, user_id: str) -> None:
        for entry, fields in self.changes:
            await repository.update_entry(
                user_id, entry.vault_id, entry.id, entry.to_record(include=fields),
            )


class DeleteEntries(Command):
    operation = "delete"

    def __init__(self, entries: list[CredentialEntry]):
        self.entries = entries
        self._ids = {e.id for e in entries}

    def apply(self, state: CacheState) -> CacheState:
        return state._replace(
            entries=tuple(e for e in state.entries if e.id not in self._ids)
        )

    async def commit(self, repository: Repository, user_id: str) -> None:
        for entry in self.entries:
            await repository.delete_entry(user_id, entry.vault_id, entry.id)


class AddVault(Command):
    """Show a provisional vault until the store returns the real one."""

    operation = "add_vault"

    def __init__(self, vault: Vault):
        self.vault = vault

    def apply(self, state: CacheState) -> CacheState:
        return state._replace(vaults=(*state.vaults, self.vault))

    async def commit(self, repository: Repository, user_id: str) -> Vault:
        return await repository.create_vault(user_id, self.vault.name)

    def reconcile(self, state: CacheState, result: Any) -> Optional[CacheState]:
        vaults = tuple(
            result if v.id == self.vault.id else v for v in state.vaults
        )
        return state._replace(vaults=vaults)
