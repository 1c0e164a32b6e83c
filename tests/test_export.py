"""
Tests for vault export.

Tests cover:
- Scope selection (all, current view, selected ids)
- CSV and JSON serialization
- Passphrase and scope validation
- File naming and bundle decryption
"""
import csv
import io
from datetime import datetime, timezone

import orjson
import pytest

from cipher_vault.conf import EXPORT_CSV_HEADER
from cipher_vault.exceptions import ExportError, ValidationError
from cipher_vault.export import (
    ExportFormat,
    ExportScope,
    decrypt_export,
    export_filename,
    export_scope,
    select_scope,
    to_csv,
    to_json,
)
from cipher_vault.models import CredentialEntry, Vault
from cipher_vault.vault import PassphraseCipher

NOW = datetime(2024, 3, 5, 10, 30, tzinfo=timezone.utc)
PASSPHRASE = "correct horse"


def make_entry(entry_id, trashed=False, **fields):
    data = {
        "id": entry_id,
        "vault_id": "v1",
        "service_name": f"svc-{entry_id}",
        "username": "user",
        "secret": "pw",
        "created_at": NOW,
        "updated_at": NOW,
        "deleted_at": NOW if trashed else None,
    }
    data.update(fields)
    return CredentialEntry(**data)


@pytest.fixture
def codec():
    return PassphraseCipher(iterations=1000)


@pytest.fixture
def entries():
    return [make_entry(str(i)) for i in range(5)] + [make_entry("t", trashed=True)]


class TestScope:
    """Tests for select_scope and ExportScope parsing."""

    def test_all_excludes_trash(self, entries):
        assert len(select_scope(entries, ExportScope.ALL)) == 5

    def test_current_view_as_given(self, entries):
        assert len(select_scope(entries, ExportScope.CURRENT_VIEW)) == 6

    def test_selected_ids(self, entries):
        """Three selected ids export exactly three records."""
        selected = select_scope(entries, ExportScope.SELECTED_IDS, ["0", "2", "t"])
        assert [e.id for e in selected] == ["0", "2", "t"]

    def test_selected_ids_required(self, entries):
        with pytest.raises(ValidationError):
            select_scope(entries, ExportScope.SELECTED_IDS)

    @pytest.mark.parametrize("alias,expected", [
        ("all", ExportScope.ALL),
        ("currentView", ExportScope.CURRENT_VIEW),
        ("selectedIds", ExportScope.SELECTED_IDS),
        ("selected", ExportScope.SELECTED_IDS),
    ])
    def test_scope_aliases(self, alias, expected):
        assert ExportScope(alias) is expected


class TestSerialization:
    """Tests for CSV and JSON output."""

    def test_csv_header_and_quoting(self):
        vaults = [Vault(id="v1", name="Personal")]
        entry = make_entry(
            "a", service_name='Say "hi", ok', notes="line1\nline2",
            tags=["b", "a"], is_favorite=True,
        )
        text = to_csv([entry], vaults)
        header, _, body = text.partition("\n")
        assert header == EXPORT_CSV_HEADER
        assert body.startswith('"Say ""hi"", ok",')
        row = next(csv.reader(io.StringIO(body)))
        assert row[0] == 'Say "hi", ok'
        assert row[4] == "line1\nline2"
        assert row[5] == "Personal"
        assert row[6] == "a|b"
        assert row[7] == "true"

    def test_csv_empty(self):
        assert to_csv([]) == EXPORT_CSV_HEADER

    def test_json_records(self, entries):
        records = orjson.loads(to_json(entries[:2]))
        assert [r["id"] for r in records] == ["0", "1"]
        assert records[0]["serviceName"] == "svc-0"


class TestExportScope:
    """Tests for the export_scope entry point."""

    def test_json_bundle(self, entries, codec):
        bundle = export_scope(
            entries, "selected_ids", "json", PASSPHRASE,
            selected_ids=["0", "1", "2"], now=NOW, cipher=codec,
        )
        assert bundle.count == 3
        assert bundle.format is ExportFormat.JSON
        assert bundle.filename == "cipher-vault-export-2024-03-05.json.enc"
        records = orjson.loads(decrypt_export(bundle.content, PASSPHRASE, codec))
        assert len(records) == 3

    def test_csv_bundle(self, entries, codec):
        bundle = export_scope(entries, ExportScope.ALL, ExportFormat.CSV, PASSPHRASE, cipher=codec)
        text = decrypt_export(bundle.content, PASSPHRASE, codec)
        assert len(text.splitlines()) == 6

    def test_content_is_encrypted(self, entries, codec):
        bundle = export_scope(entries, "all", "json", PASSPHRASE, cipher=codec)
        assert "svc-0" not in bundle.content

    def test_empty_scope(self, entries, codec):
        with pytest.raises(ExportError):
            export_scope(entries, "selected_ids", "json", PASSPHRASE, selected_ids=[], cipher=codec)

    def test_short_passphrase(self, entries, codec):
        with pytest.raises(ValidationError) as exc:
            export_scope(entries, "all", "json", "short", cipher=codec)
        assert exc.value.field == "passphrase"

    def test_unknown_format(self, entries, codec):
        with pytest.raises(ValidationError):
            export_scope(entries, "all", "xml", PASSPHRASE, cipher=codec)

    def test_unknown_scope(self, entries, codec):
        with pytest.raises(ValidationError):
            export_scope(entries, "everything", "json", PASSPHRASE, cipher=codec)

    def test_save(self, entries, codec, tmp_path):
        bundle = export_scope(entries, "all", "csv", PASSPHRASE, now=NOW, cipher=codec)
        path = bundle.save(tmp_path)
        assert path.name == "cipher-vault-export-2024-03-05.csv.enc"
        assert path.read_text(encoding="utf-8") == bundle.content

    def test_filename(self):
        assert export_filename(ExportFormat.CSV, NOW) == "cipher-vault-export-2024-03-05.csv.enc"
