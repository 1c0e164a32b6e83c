"""
Tests for vault analytics.

Tests cover:
- Strength classification (forcing, computation, boundaries, no data)
- Duplicate detection with exclusion and on-the-fly decryption
- Tag aggregation ignoring trashed entries
- Security report and recommendations
"""
from datetime import datetime, timedelta, timezone

from cipher_vault.analytics import (
    MEDIUM,
    NO_DATA,
    STRONG,
    VERY_STRONG,
    WEAK,
    aggregate_tags,
    classify_strength,
    detect_duplicates,
    recently_added,
    reused_secret_count,
    security_report,
    strength_counts,
)
from cipher_vault.models import CredentialEntry

BASE = datetime(2024, 1, 1, tzinfo=timezone.utc)


def make_entry(entry_id, secret="pw", tags=(), trashed=False, created=0):
    created_at = BASE + timedelta(days=created)
    return CredentialEntry(
        id=entry_id,
        vault_id="v1",
        service_name=f"svc-{entry_id}",
        username="user",
        secret=secret,
        tags=tags,
        created_at=created_at,
        updated_at=created_at,
        deleted_at=BASE if trashed else None,
    )


class TestClassifyStrength:
    """Tests for classify_strength."""

    def test_short_secret_forced_weak(self):
        """Length 3 scores 1 regardless of classes."""
        assert classify_strength("abc") == (1, WEAK, True)

    def test_short_all_classes_still_weak(self):
        """Under 8 characters is forced to 1 even with every class."""
        assert classify_strength("Ab1!xyz").score == 1

    def test_nine_chars_all_classes_very_strong(self):
        """'Abcdef12!' has upper/lower/digit/symbol, not length 12."""
        result = classify_strength("Abcdef12!")
        assert result.score == 4
        assert result.label == VERY_STRONG

    def test_medium_boundary(self):
        """Exactly 2 predicates and length >= 8 is Medium."""
        result = classify_strength("abcdefgh1")
        assert result.score == 2
        assert result.label == MEDIUM

    def test_strong(self):
        """Three predicates: lower, digit, length >= 12."""
        result = classify_strength("abcdefghijk1")
        assert result.score == 3
        assert result.label == STRONG

    def test_five_predicates_clamped(self):
        """All five predicates clamp to score 4."""
        result = classify_strength("Abcdefghijk1!")
        assert result.score == 4
        assert result.label == VERY_STRONG

    def test_one_predicate_long(self):
        """A long single-class secret: lowercase only, 8..11 chars."""
        assert classify_strength("abcdefgh") == (1, WEAK, True)

    def test_empty_is_no_data(self):
        """Empty input is unknown, not Weak."""
        result = classify_strength("")
        assert result.known is False
        assert result.label == NO_DATA

    def test_non_ascii_counts_as_symbol(self):
        result = classify_strength("abcdefgé")
        assert result.score == 2


class TestDetectDuplicates:
    """Tests for detect_duplicates."""

    def test_excludes_self(self):
        """Two entries sharing a secret: the other one is counted."""
        a = make_entry("a", "password123")
        b = make_entry("b", "password123")
        report = detect_duplicates([a, b], "password123", exclude_id="a")
        assert report.count == 1
        assert report.matching_entries == (b,)

    def test_without_exclusion(self):
        a = make_entry("a", "password123")
        b = make_entry("b", "password123")
        assert detect_duplicates([a, b], "password123").count == 2

    def test_trashed_not_counted(self):
        a = make_entry("a", "password123")
        b = make_entry("b", "password123", trashed=True)
        assert detect_duplicates([a, b], "password123", exclude_id="a").count == 0

    def test_empty_candidate(self):
        assert detect_duplicates([make_entry("a", "")], "").count == 0

    def test_decrypts_with_cipher(self, cipher):
        """Encrypted secrets are compared after decryption."""
        a = make_entry("a", cipher.encrypt("password123"))
        b = make_entry("b", cipher.encrypt("password123"))
        c = make_entry("c", cipher.encrypt("other"))
        report = detect_duplicates([a, b, c], "password123", exclude_id="a", cipher=cipher)
        assert report.count == 1
        assert report.matching_entries[0].id == "b"


class TestAggregateTags:
    """Tests for aggregate_tags."""

    def test_sorted_union(self):
        entries = [make_entry("a", tags=["work", "dev"]), make_entry("b", tags=["banking", "dev"])]
        assert aggregate_tags(entries) == ["banking", "dev", "work"]

    def test_trashed_excluded(self):
        """A trashed entry's tag never appears."""
        entries = [make_entry("a", tags=["keep"]), make_entry("b", tags=["x"], trashed=True)]
        assert aggregate_tags(entries) == ["keep"]

    def test_empty(self):
        assert aggregate_tags([]) == []


class TestSecurityReport:
    """Tests for the dashboard report."""

    def test_strength_counts(self):
        entries = [
            make_entry("a", "abc"),
            make_entry("b", "abcdefgh1"),
            make_entry("c", "Abcdef12!"),
            make_entry("d", "abc", trashed=True),
        ]
        counts = strength_counts(entries)
        assert counts == {WEAK: 1, MEDIUM: 1, STRONG: 0, VERY_STRONG: 1}

    def test_reused_count(self):
        """Counts distinct secrets used more than once."""
        entries = [
            make_entry("a", "x"), make_entry("b", "x"),
            make_entry("c", "y"), make_entry("d", "y"), make_entry("e", "y"),
            make_entry("f", "z"),
        ]
        assert reused_secret_count(entries) == 2

    def test_recently_added(self):
        entries = [make_entry(str(i), created=i) for i in range(7)]
        recent = recently_added(entries)
        assert [e.id for e in recent] == ["6", "5", "4", "3", "2"]

    def test_recommendations(self):
        entries = [make_entry("a", "abc"), make_entry("b", "abc")]
        report = security_report(entries)
        titles = [r.title for r in report.recommendations]
        assert "Update Weak Passwords" in titles
        assert "Change Reused Passwords" in titles
        assert report.total == 2
        assert report.reused == 1

    def test_all_clear(self):
        report = security_report([make_entry("a", "Abcdefghijk1!")])
        assert [r.title for r in report.recommendations] == ["Great Security!"]

    def test_report_with_cipher(self, cipher):
        entries = [make_entry("a", cipher.encrypt("abc"))]
        report = security_report(entries, cipher=cipher)
        assert report.strength_counts[WEAK] == 1
