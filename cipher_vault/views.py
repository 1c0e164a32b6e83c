"""Filtering and sorting of cached entries for list views."""
from enum import Enum
from typing import Optional
from collections.abc import Iterable

from .models import CredentialEntry


class SortOption(str, Enum):
    SERVICE_ASC = "serviceName_asc"
    SERVICE_DESC = "serviceName_desc"
    CREATED_ASC = "createdAt_asc"
    CREATED_DESC = "createdAt_desc"
    UPDATED_ASC = "updatedAt_asc"
    UPDATED_DESC = "updatedAt_desc"


_SORT_KEYS = {
    SortOption.SERVICE_ASC: (lambda e: e.service_name.casefold(), False),
    SortOption.SERVICE_DESC: (lambda e: e.service_name.casefold(), True),
    SortOption.CREATED_ASC: (lambda e: e.created_at, False),
    SortOption.CREATED_DESC: (lambda e: e.created_at, True),
    SortOption.UPDATED_ASC: (lambda e: e.updated_at, False),
    SortOption.UPDATED_DESC: (lambda e: e.updated_at, True),
}


def matches_query(entry: CredentialEntry, query: str) -> bool:
    """Case-insensitive search over the visible text fields."""
    q = query.casefold()
    fields = (entry.service_name, entry.username, entry.url or "", entry.notes or "")
    return (
        any(q in f.casefold() for f in fields)
        or any(q in t.casefold() for t in entry.tags)
    )


def filter_entries(
    entries: Iterable[CredentialEntry],
    *,
    trashed: bool = False,
    vault_id: Optional[str] = None,
    favorites: bool = False,
    tag: Optional[str] = None,
    query: Optional[str] = None,
    sort: SortOption = SortOption.UPDATED_DESC,
) -> list[CredentialEntry]:
    """Select the entries of one list view.

    Args:
        trashed: Show the trash instead of active entries.
        vault_id: Only entries of this vault.
        favorites: Only favorite entries.
        tag: Only entries carrying this tag.
        query: Free-text search.
        sort: Ordering of the result.
    """
    result = [e for e in entries if e.is_trashed == trashed]
    if favorites:
        result = [e for e in result if e.is_favorite]
    if vault_id:
        result = [e for e in result if e.vault_id == vault_id]
    if tag:
        result = [e for e in result if tag in e.tags]
    if query:
        result = [e for e in result if matches_query(e, query)]
    key, reverse = _SORT_KEYS[SortOption(sort)]
    return sorted(result, key=key, reverse=reverse)
