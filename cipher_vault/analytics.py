"""
Vault Analytics — strength classification, duplicate detection, tag
aggregation and the dashboard security report.

All functions are pure and only look at active (non-trashed) entries unless
stated otherwise. They expect plaintext secrets; pass ``cipher`` where
accepted to decrypt on the fly.
"""
import string
from collections import Counter
from typing import Any, NamedTuple, Optional
from collections.abc import Iterable

from .models import CredentialEntry

WEAK = "Weak"
MEDIUM = "Medium"
STRONG = "Strong"
VERY_STRONG = "Very Strong"
NO_DATA = "No Data"

STRENGTH_LABELS = (WEAK, MEDIUM, STRONG, VERY_STRONG)

_LABELS = {0: WEAK, 1: WEAK, 2: MEDIUM, 3: STRONG, 4: VERY_STRONG}


class Strength(NamedTuple):
    score: int
    label: str
    known: bool = True


class DuplicateReport(NamedTuple):
    count: int
    matching_entries: tuple[CredentialEntry, ...]


class Recommendation(NamedTuple):
    title: str
    description: str
    severity: str


class SecurityReport(NamedTuple):
    total: int
    strength_counts: dict[str, int]
    reused: int
    recommendations: tuple[Recommendation, ...]
    recently_added: tuple[CredentialEntry, ...]


def active(entries: Iterable[CredentialEntry]) -> list[CredentialEntry]:
    return [e for e in entries if e.deleted_at is None]


def _plain(entry: CredentialEntry, cipher: Any) -> str:
    return cipher.decrypt(entry.secret) if cipher is not None else entry.secret


def classify_strength(secret: str) -> Strength:
    """Score a secret 0..4 by length and character-class diversity.

    Any secret shorter than 8 characters scores 1 ("Weak"). An empty
    secret has no rating at all.
    """
    if not secret:
        return Strength(0, NO_DATA, known=False)
    checks = (
        len(secret) >= 12,
        any(c in string.ascii_uppercase for c in secret),
        any(c in string.ascii_lowercase for c in secret),
        any(c in string.digits for c in secret),
        any(not (c.isascii() and c.isalnum()) for c in secret),
    )
    score = sum(checks)
    if len(secret) < 8:
        score = 1
    score = min(score, 4)
    return Strength(score, _LABELS[score])


def detect_duplicates(
    entries: Iterable[CredentialEntry],
    candidate: str,
    exclude_id: Optional[str] = None,
    cipher: Any = None,
) -> DuplicateReport:
    """Find other active entries whose secret equals ``candidate``.

    ``exclude_id`` keeps an entry being edited from matching itself.
    """
    if not candidate:
        return DuplicateReport(0, ())
    matches = tuple(
        e for e in active(entries)
        if e.id != exclude_id and _plain(e, cipher) == candidate
    )
    return DuplicateReport(len(matches), matches)


def aggregate_tags(entries: Iterable[CredentialEntry]) -> list[str]:
    """Sorted union of the tags of active entries."""
    tags: set[str] = set()
    for entry in active(entries):
        tags.update(entry.tags)
    return sorted(tags)


def strength_counts(
    entries: Iterable[CredentialEntry], cipher: Any = None,
) -> dict[str, int]:
    counts = dict.fromkeys(STRENGTH_LABELS, 0)
    for entry in active(entries):
        result = classify_strength(_plain(entry, cipher))
        if result.known:
            counts[result.label] += 1
    return counts


def reused_secret_count(
    entries: Iterable[CredentialEntry], cipher: Any = None,
) -> int:
    """Number of distinct secrets shared by more than one active entry."""
    counter = Counter(
        _plain(e, cipher) for e in active(entries) if e.secret
    )
    return sum(1 for n in counter.values() if n > 1)


def recently_added(
    entries: Iterable[CredentialEntry], limit: int = 5,
) -> list[CredentialEntry]:
    return sorted(active(entries), key=lambda e: e.created_at, reverse=True)[:limit]


def security_report(
    entries: Iterable[CredentialEntry], cipher: Any = None,
) -> SecurityReport:
    entries = active(entries)
    counts = strength_counts(entries, cipher)
    reused = reused_secret_count(entries, cipher)
    recs = []
    if counts[WEAK]:
        recs.append(Recommendation(
            "Update Weak Passwords",
            f"You have {counts[WEAK]} weak password(s).",
            "critical",
        ))
    if reused:
        recs.append(Recommendation(
            "Change Reused Passwords",
            f"You have {reused} reused password(s). Using the same password "
            "for multiple sites is a security risk.",
            "critical",
        ))
    if counts[MEDIUM]:
        recs.append(Recommendation(
            "Improve Medium Passwords",
            f"You have {counts[MEDIUM]} medium strength password(s). "
            "Consider making them stronger.",
            "warning",
        ))
    if not recs:
        recs.append(Recommendation(
            "Great Security!",
            "All your passwords are rated strong or very strong and you have "
            "no reused passwords.",
            "ok",
        ))
    return SecurityReport(
        total=len(entries),
        strength_counts=counts,
        reused=reused,
        recommendations=tuple(recs),
        recently_added=tuple(recently_added(entries)),
    )
