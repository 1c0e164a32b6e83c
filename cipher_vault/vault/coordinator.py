"""
MutationCoordinator — optimistic vault cache bound to a user session.

Provides the public API of the engine:
- ``init(session)`` / ``dispose()``: bind to and release a login session
- ``refresh()``: re-fetch every vault's entries and replace the cache
- ``create_or_update(data, entry_id)``: add or edit an entry
- ``trash(entry_id, permanent)`` / ``restore(entry_id)``: soft and hard delete
- ``toggle_favorite(entry_id)`` / ``add_vault(name)``

Every mutation is applied to the cache before the remote write and rolled
back to its own pre-mutation snapshot if the write fails.

Known gaps:
    Two in-flight mutations on the same entry are not reconciled: the last
    write to reach the store wins, and a failing mutation restores a snapshot
    that may discard a later optimistic change. Entries are batch-fetched,
    not live-synced, so edits from another session only show after a
    ``refresh()``.

Security Note:
    Never log plaintext or ciphertext values. Only log ids, operations and
    user ids.
"""
import asyncio
import logging
from datetime import datetime
from typing import Any, Callable, Optional
from collections.abc import Iterable

from pydantic import ValidationError as PydanticValidationError

from ..analytics import (
    DuplicateReport,
    SecurityReport,
    aggregate_tags,
    detect_duplicates,
    security_report,
)
from ..cache import CacheState, Listener, VaultCache
from ..exceptions import (
    NotFoundError,
    RepositoryError,
    SessionError,
    ValidationError,
)
from ..export import ExportBundle, ExportScope, export_scope
from ..models import (
    CredentialEntry,
    EntryInput,
    Vault,
    VaultSession,
    add_to_history,
    is_secret_in_history,
    new_id,
    utcnow,
)
from ..repository import Repository
from ..views import filter_entries
from .commands import AddVault, Command, CreateEntry, DeleteEntries, UpdateEntries
from .config import VaultConfig
from .crypto import Cipher, PassphraseCipher

logger = logging.getLogger("cipher_vault.engine")


class MutationCoordinator:
    """Vault cache and mutation engine for one user session.

    The cache holds ciphertext secrets only; ``reveal_secret()`` and
    ``revealed_entries()`` produce transient plaintext copies.
    """

    def __init__(
        self,
        repository: Repository,
        cipher: Cipher,
        config: Optional[VaultConfig] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self._repository = repository
        self._cipher = cipher
        self._config = config or VaultConfig()
        self._clock = clock or utcnow
        self._cache = VaultCache()
        self._session: Optional[VaultSession] = None
        self._selected_vault_id: Optional[str] = None
        # bumped on init/dispose; late results from an old session are dropped
        self._generation = 0

    def __repr__(self) -> str:
        user = self._session.user_id if self._session else None
        return f"<MutationCoordinator user={user} cache={self._cache!r}>"

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def init(self, session: VaultSession) -> CacheState:
        """Bind to ``session`` and load every vault of its user."""
        if self._session is not None:
            self.dispose()
        self._generation += 1
        self._session = session
        logger.info(
            "Vault engine bound: user=%s session=%s",
            session.user_id, session.session_id,
        )
        return await self.refresh()

    def dispose(self) -> None:
        """Release the session and drop all cached data and subscribers."""
        user = self._session.user_id if self._session else None
        self._generation += 1
        self._session = None
        self._selected_vault_id = None
        self._cache.invalidate()
        self._cache.clear_listeners()
        logger.info("Vault engine disposed: user=%s", user)

    def _require_session(self) -> VaultSession:
        if self._session is None:
            raise SessionError("No session bound; call init(session) first")
        return self._session

    # ------------------------------------------------------------------
    # Read side
    # ------------------------------------------------------------------

    @property
    def session(self) -> Optional[VaultSession]:
        return self._session

    @property
    def cache(self) -> VaultCache:
        return self._cache

    @property
    def cipher(self) -> Cipher:
        return self._cipher

    @property
    def vaults(self) -> tuple[Vault, ...]:
        return self._cache.vaults

    @property
    def entries(self) -> tuple[CredentialEntry, ...]:
        return self._cache.entries

    @property
    def selected_vault_id(self) -> Optional[str]:
        return self._selected_vault_id

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        return self._cache.subscribe(listener)

    def select_vault(self, vault_id: Optional[str]) -> None:
        if vault_id is not None and self._cache.state.vault(vault_id) is None:
            raise NotFoundError(f"Vault {vault_id} not found", entry_id=vault_id)
        self._selected_vault_id = vault_id

    def active_entries(self) -> list[CredentialEntry]:
        return [e for e in self._cache.entries if e.is_active]

    def trashed_entries(self) -> list[CredentialEntry]:
        return [e for e in self._cache.entries if e.is_trashed]

    def view(self, **filters: Any) -> list[CredentialEntry]:
        """Entries of a list view; see ``views.filter_entries``."""
        return filter_entries(self._cache.entries, **filters)

    def all_tags(self) -> list[str]:
        return aggregate_tags(self._cache.entries)

    def reveal_secret(self, entry_id: str) -> str:
        return self._cipher.decrypt(self._get_entry(entry_id).secret)

    def revealed_entries(
        self, entries: Optional[Iterable[CredentialEntry]] = None,
    ) -> list[CredentialEntry]:
        """Plaintext copies of ``entries`` (default: the whole cache)."""
        source = self._cache.entries if entries is None else entries
        return [self._cipher.reveal(e) for e in source]

    def find_duplicates(
        self, candidate: str, exclude_id: Optional[str] = None,
    ) -> DuplicateReport:
        return detect_duplicates(
            self._cache.entries, candidate, exclude_id=exclude_id, cipher=self._cipher,
        )

    def is_secret_reused_in_history(self, entry_id: str, candidate: str) -> bool:
        entry = self._get_entry(entry_id)
        return is_secret_in_history(
            entry.secret_history, candidate, decrypt=self._cipher.decrypt,
        )

    def security_report(self) -> SecurityReport:
        return security_report(self._cache.entries, cipher=self._cipher)

    def export(
        self,
        scope: Any,
        fmt: Any,
        passphrase: str,
        *,
        selected_ids: Optional[Iterable[str]] = None,
        current_view: Optional[Iterable[CredentialEntry]] = None,
        now: Optional[datetime] = None,
    ) -> ExportBundle:
        """Export cached entries; secrets are decrypted for the bundle only.

        Raises:
            ValidationError: ``current_view`` scope without ``current_view``.
        """
        try:
            is_view = ExportScope(scope) is ExportScope.CURRENT_VIEW
        except ValueError:
            is_view = False  # export_scope reports the bad scope
        if is_view and current_view is None:
            raise ValidationError(
                "current_view is required for this scope", field="current_view",
            )
        source = current_view if is_view else self._cache.entries
        return export_scope(
            self.revealed_entries(source),
            scope,
            fmt,
            passphrase,
            selected_ids=selected_ids,
            vaults=self._cache.vaults,
            now=now,
            cipher=PassphraseCipher(self._config.export_kdf_iterations),
        )

    async def refresh(self) -> CacheState:
        """Fetch every vault's entries and replace the whole cache.

        Raises:
            RepositoryError: Any remote call failed; the cache is unchanged.
        """
        user_id = self._require_session().user_id
        generation = self._generation
        try:
            vaults = list(await self._repository.list_vaults(user_id))
            if not vaults:
                logger.info("No vaults for user=%s; creating default vault", user_id)
                vaults.append(await self._repository.create_vault(
                    user_id, self._config.default_vault_name,
                ))
            batches = await asyncio.gather(*(
                self._repository.list_entries(user_id, vault.id) for vault in vaults
            ))
        except RepositoryError:
            raise
        except Exception as err:
            raise RepositoryError(
                f"Vault refresh failed: {err}", operation="refresh",
            ) from err

        if generation != self._generation:
            raise SessionError("Session changed while refreshing")

        entries = []
        for vault, records in zip(vaults, batches):
            for record in records:
                try:
                    entries.append(CredentialEntry.from_record(record, vaultId=vault.id))
                except PydanticValidationError as err:
                    logger.error(
                        "Skipping invalid entry id=%s vault=%s for user=%s: %s",
                        record.get("id"), vault.id, user_id, err,
                    )
        state = CacheState(vaults=tuple(vaults), entries=tuple(entries))
        self._cache.replace(state)
        if self._selected_vault_id and state.vault(self._selected_vault_id) is None:
            self._selected_vault_id = None
        logger.info(
            "Vault cache refreshed for user=%s: %d vault(s), %d entr(ies)",
            user_id, len(state.vaults), len(state.entries),
        )
        return state

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def _now(self) -> datetime:
        return self._clock()

    def _get_entry(self, entry_id: str) -> CredentialEntry:
        entry = self._cache.get(entry_id)
        if entry is None:
            raise NotFoundError(f"Entry {entry_id} not found", entry_id=entry_id)
        if self._cache.state.vault(entry.vault_id) is None:
            raise NotFoundError(
                f"Vault {entry.vault_id} of entry {entry_id} not found",
                entry_id=entry_id,
            )
        return entry

    def _resolve_vault_id(self, requested: Optional[str]) -> str:
        state = self._cache.state
        if requested:
            if state.vault(requested) is None:
                raise ValidationError(f"Unknown vault {requested}", field="vault_id")
            return requested
        if self._selected_vault_id and state.vault(self._selected_vault_id):
            return self._selected_vault_id
        if state.vaults:
            return state.vaults[0].id
        raise ValidationError("No vault available for the new entry", field="vault_id")

    async def _execute(self, command: Command) -> Any:
        """Apply ``command`` optimistically, commit it, roll back on failure."""
        user_id = self._require_session().user_id
        generation = self._generation
        snapshot = self._cache.snapshot()
        self._cache.replace(command.apply(snapshot))
        try:
            result = await command.commit(self._repository, user_id)
        except Exception as err:
            if generation == self._generation:
                command.rollback(self._cache, snapshot)
            logger.error(
                "Vault %s failed for user=%s, cache rolled back: %s",
                command.operation, user_id, err,
            )
            if isinstance(err, RepositoryError):
                raise
            raise RepositoryError(
                f"{command.operation} failed: {err}", operation=command.operation,
            ) from err
        if generation != self._generation:
            logger.warning(
                "Vault %s confirmed after session change; ignoring", command.operation,
            )
            return result
        reconciled = command.reconcile(self._cache.state, result)
        if reconciled is not None:
            self._cache.replace(reconciled)
        logger.debug("Vault %s committed for user=%s", command.operation, user_id)
        return result

    async def create_or_update(
        self, data: Any, entry_id: Optional[str] = None,
    ) -> CredentialEntry:
        """Create an entry, or edit ``entry_id`` with the fields in ``data``.

        Args:
            data: Mapping (snake_case or camelCase keys) or ``EntryInput``.
            entry_id: Entry to edit; None creates a new entry.

        Returns:
            The entry as cached after the mutation (secret encrypted).

        Raises:
            ValidationError: Invalid payload or no vault for a new entry.
            NotFoundError: ``entry_id`` is not cached.
            RepositoryError: The store rejected the write (cache rolled back).
        """
        self._require_session()
        payload = EntryInput.parse(data)
        now = self._now()

        if entry_id is None:
            payload.require_for_create()
            entry = CredentialEntry(
                id=new_id(),
                vault_id=self._resolve_vault_id(payload.vault_id),
                service_name=payload.service_name,
                url=payload.url,
                username=payload.username,
                secret=self._cipher.encrypt(payload.secret),
                notes=payload.notes,
                tags=payload.tags or (),
                is_favorite=bool(payload.is_favorite),
                created_at=now,
                updated_at=now,
            )
            command = CreateEntry(entry)
            stored_id = await self._execute(command)
            return self._cache.get(stored_id or entry.id, entry)

        current = self._get_entry(entry_id)
        if payload.vault_id is not None and payload.vault_id != current.vault_id:
            raise ValidationError("Entries cannot move between vaults", field="vault_id")
        changes = payload.changes()
        if "secret" in changes:
            plaintext = changes.pop("secret")
            if plaintext != self._cipher.decrypt(current.secret):
                changes["secret"] = self._cipher.encrypt(plaintext)
                if current.secret:
                    changes["secret_history"] = add_to_history(
                        current.secret_history, current.secret, now,
                    )
        if "tags" in changes:
            changes["tags"] = changes["tags"] or ()
        if "is_favorite" in changes:
            changes["is_favorite"] = bool(changes["is_favorite"])
        changes["updated_at"] = now
        updated = current.model_copy(update=changes)
        await self._execute(UpdateEntries([(updated, set(changes))]))
        return updated

    def _mark(self, ids: list[str], trashed: bool) -> UpdateEntries:
        now = self._now()
        entries = [self._get_entry(i) for i in ids]
        deleted_at = now if trashed else None
        return UpdateEntries([
            (
                e.model_copy(update={"deleted_at": deleted_at, "updated_at": now}),
                {"deleted_at", "updated_at"},
            )
            for e in entries
        ])

    async def trash(self, entry_id: str, permanent: bool = False) -> None:
        """Move an entry to the trash, or purge it when ``permanent``."""
        await self.trash_many([entry_id], permanent=permanent)

    async def trash_many(self, ids: Iterable[str], permanent: bool = False) -> int:
        """Trash or purge several entries as one mutation.

        Returns:
            Number of entries affected.
        """
        self._require_session()
        ids = list(dict.fromkeys(ids))
        if not ids:
            return 0
        if permanent:
            entries = [self._get_entry(i) for i in ids]
            await self._execute(DeleteEntries(entries))
            logger.info("Purged %d entr(ies)", len(entries))
        else:
            await self._execute(self._mark(ids, trashed=True))
        return len(ids)

    async def restore(self, entry_id: str) -> None:
        await self.restore_many([entry_id])

    async def restore_many(self, ids: Iterable[str]) -> int:
        self._require_session()
        ids = list(dict.fromkeys(ids))
        if not ids:
            return 0
        await self._execute(self._mark(ids, trashed=False))
        return len(ids)

    async def empty_trash(self) -> int:
        """Permanently delete every trashed entry."""
        return await self.trash_many(
            [e.id for e in self.trashed_entries()], permanent=True,
        )

    async def toggle_favorite(self, entry_id: str) -> CredentialEntry:
        self._require_session()
        entry = self._get_entry(entry_id)
        updated = entry.model_copy(
            update={"is_favorite": not entry.is_favorite, "updated_at": self._now()}
        )
        await self._execute(UpdateEntries([(updated, {"is_favorite", "updated_at"})]))
        return updated

    async def add_vault(self, name: str) -> Vault:
        """Create a vault, then re-fetch every vault's entries.

        Raises:
            ValidationError: Empty name.
            RepositoryError: The store rejected the vault (cache rolled back).
        """
        self._require_session()
        try:
            provisional = Vault(id=new_id(), name=name)
        except PydanticValidationError as err:
            raise ValidationError("Vault name cannot be empty", field="name") from err
        created = await self._execute(AddVault(provisional))
        logger.info("Vault created: id=%s", created.id)
        await self.refresh()
        return created
