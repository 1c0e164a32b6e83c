"""
Vault Cache — reactive in-memory store of vaults and credential entries.

The cache is swapped as a whole: every mutation installs a new immutable
``CacheState``, and the previous state doubles as the rollback snapshot.
Secrets held here are always ciphertext.
"""
import logging
from typing import Any, Callable, NamedTuple, Optional
from collections.abc import Iterator, Mapping

from .models import CredentialEntry, Vault

logger = logging.getLogger("cipher_vault.cache")


class CacheState(NamedTuple):
    """Immutable view of the cache; also used as a rollback snapshot."""
    vaults: tuple[Vault, ...] = ()
    entries: tuple[CredentialEntry, ...] = ()

    def entry_map(self) -> dict[str, CredentialEntry]:
        return {e.id: e for e in self.entries}

    def find(self, entry_id: str) -> Optional[CredentialEntry]:
        for entry in self.entries:
            if entry.id == entry_id:
                return entry
        return None

    def vault(self, vault_id: str) -> Optional[Vault]:
        for vault in self.vaults:
            if vault.id == vault_id:
                return vault
        return None


Listener = Callable[[CacheState], Any]


class VaultCache(Mapping[str, CredentialEntry]):
    """Reactive dict-like cache of credential entries.

    Read access works like a read-only mapping of entry id to entry.
    The whole state is swapped at once through ``replace()`` or
    ``restore()``; subscribers are called after every swap.

    Only the coordinator writes to the cache.
    """

    def __init__(self, state: Optional[CacheState] = None) -> None:
        self._state = state or CacheState()
        self._index = self._state.entry_map()
        self._listeners: list[Listener] = []
        self._changed = False

    def __repr__(self) -> str:
        return (
            f'<VaultCache vaults={len(self._state.vaults)} '
            f'entries={len(self._index)} changed={self._changed}>'
        )

    # --- State ---

    @property
    def state(self) -> CacheState:
        return self._state

    @property
    def vaults(self) -> tuple[Vault, ...]:
        return self._state.vaults

    @property
    def entries(self) -> tuple[CredentialEntry, ...]:
        return self._state.entries

    @property
    def empty(self) -> bool:
        return not self._state.vaults and not self._state.entries

    @property
    def is_changed(self) -> bool:
        return self._changed

    @is_changed.setter
    def is_changed(self, value: bool) -> None:
        self._changed = value

    def snapshot(self) -> CacheState:
        """Capture the current state for a later ``restore()``."""
        return self._state

    def replace(self, state: CacheState) -> None:
        self._state = state
        self._index = state.entry_map()
        self._changed = True
        self._notify()

    def restore(self, snapshot: CacheState) -> None:
        """Reinstate a previously captured snapshot."""
        self.replace(snapshot)

    def invalidate(self) -> None:
        """Drop every vault and entry."""
        self.replace(CacheState())

    # --- Subscribers ---

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a listener; returns a callable that unsubscribes it."""
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)
        return _unsubscribe

    def clear_listeners(self) -> None:
        self._listeners.clear()

    def _notify(self) -> None:
        for listener in list(self._listeners):
            try:
                listener(self._state)
            except Exception as err:
                logger.error("Cache listener %r failed: %s", listener, err)

    # --- Magic Methods ---

    def __len__(self) -> int:
        return len(self._index)

    def __iter__(self) -> Iterator[str]:
        return iter(self._index)

    def __contains__(self, key: object) -> bool:
        return key in self._index

    def __getitem__(self, key: str) -> CredentialEntry:
        return self._index[key]
