"""
Vault Export — serialize a scope of entries and encrypt it under a passphrase.

The passphrase is supplied by the user at export time and is independent of
the vault cipher key; it is never stored. Entries handed to this module must
already carry plaintext secrets (see ``Cipher.reveal``).

Security Note:
    Export content is plaintext until encrypted. Never log it.
"""
import io
import csv
import logging
from enum import Enum
from pathlib import Path
from datetime import datetime
from typing import NamedTuple, Optional, Union
from collections.abc import Iterable

import orjson

from .conf import EXPORT_CSV_HEADER, EXPORT_FILENAME, MIN_EXPORT_PASSPHRASE
from .exceptions import ExportError, ValidationError
from .models import CredentialEntry, Vault, utcnow
from .vault.crypto import PassphraseCipher

logger = logging.getLogger("cipher_vault.export")


class ExportScope(str, Enum):
    ALL = "all"
    CURRENT_VIEW = "current_view"
    SELECTED_IDS = "selected_ids"

    @classmethod
    def _missing_(cls, value):
        aliases = {
            "currentview": cls.CURRENT_VIEW,
            "current": cls.CURRENT_VIEW,
            "selectedids": cls.SELECTED_IDS,
            "selected": cls.SELECTED_IDS,
        }
        if isinstance(value, str):
            return aliases.get(value.replace("_", "").lower())
        return None


class ExportFormat(str, Enum):
    JSON = "json"
    CSV = "csv"


class ExportBundle(NamedTuple):
    filename: str
    content: str
    count: int
    format: ExportFormat

    def save(self, directory: Union[str, Path]) -> Path:
        """Write the encrypted bundle into ``directory``."""
        path = Path(directory) / self.filename
        path.write_text(self.content, encoding="utf-8")
        return path


def _parse(enum_cls, value, what: str):
    try:
        return enum_cls(value)
    except ValueError as err:
        raise ValidationError(f"Unknown export {what}: {value!r}", field=what) from err


def export_filename(fmt: ExportFormat, now: Optional[datetime] = None) -> str:
    date = (now or utcnow()).date().isoformat()
    return EXPORT_FILENAME.format(date=date, fmt=ExportFormat(fmt).value)


def select_scope(
    entries: Iterable[CredentialEntry],
    scope: ExportScope,
    selected_ids: Optional[Iterable[str]] = None,
) -> list[CredentialEntry]:
    """Pick the entries an export covers.

    ``ALL`` is every active entry, ``CURRENT_VIEW`` is ``entries`` as given
    and ``SELECTED_IDS`` is every entry (active or trashed) whose id is in
    ``selected_ids``.
    """
    if scope is ExportScope.ALL:
        return [e for e in entries if e.deleted_at is None]
    if scope is ExportScope.CURRENT_VIEW:
        return list(entries)
    if selected_ids is None:
        raise ValidationError("selected_ids is required for this scope", field="selected_ids")
    wanted = set(selected_ids)
    return [e for e in entries if e.id in wanted]


def to_csv(
    entries: Iterable[CredentialEntry], vaults: Iterable[Vault] = (),
) -> str:
    folders = {v.id: v.name for v in vaults}
    buffer = io.StringIO()
    writer = csv.writer(buffer, quoting=csv.QUOTE_ALL, lineterminator="\n")
    for e in entries:
        writer.writerow([
            e.service_name,
            e.url or "",
            e.username,
            e.secret,
            e.notes or "",
            folders.get(e.vault_id, ""),
            "|".join(e.tags),
            "true" if e.is_favorite else "false",
            e.created_at.isoformat(),
            e.updated_at.isoformat(),
        ])
    rows = buffer.getvalue().rstrip("\n")
    return f"{EXPORT_CSV_HEADER}\n{rows}" if rows else EXPORT_CSV_HEADER


def to_json(entries: Iterable[CredentialEntry]) -> str:
    records = [e.to_record() for e in entries]
    return orjson.dumps(records, option=orjson.OPT_INDENT_2).decode("utf-8")


def export_scope(
    entries: Iterable[CredentialEntry],
    scope: Union[ExportScope, str],
    fmt: Union[ExportFormat, str],
    passphrase: str,
    *,
    selected_ids: Optional[Iterable[str]] = None,
    vaults: Iterable[Vault] = (),
    now: Optional[datetime] = None,
    cipher: Optional[PassphraseCipher] = None,
) -> ExportBundle:
    """Serialize and encrypt a scope of entries.

    Args:
        entries: Candidate entries with plaintext secrets.
        scope: all | current_view | selected_ids.
        fmt: json | csv.
        passphrase: Export passphrase (at least 8 characters).
        selected_ids: Ids for the ``selected_ids`` scope.
        vaults: Vaults used to fill the CSV ``folder`` column.
        now: Date used in the file name.
        cipher: Passphrase cipher (defaults to the standard KDF settings).

    Returns:
        ExportBundle with file name and encrypted text.

    Raises:
        ValidationError: Bad scope, format or passphrase.
        ExportError: The scope holds no entries.
    """
    scope = _parse(ExportScope, scope, "scope")
    fmt = _parse(ExportFormat, fmt, "format")
    if not passphrase or len(passphrase) < MIN_EXPORT_PASSPHRASE:
        raise ValidationError(
            f"Encryption passphrase must be at least {MIN_EXPORT_PASSPHRASE} "
            "characters long.",
            field="passphrase",
        )
    selected = select_scope(entries, scope, selected_ids)
    if not selected:
        raise ExportError("The selected scope contains no entries.")
    if fmt is ExportFormat.CSV:
        content = to_csv(selected, vaults)
    else:
        content = to_json(selected)
    blob = (cipher or PassphraseCipher()).encrypt_text(content, passphrase)
    logger.info(
        "Exported %d entr(ies) scope=%s format=%s",
        len(selected), scope.value, fmt.value,
    )
    return ExportBundle(export_filename(fmt, now), blob, len(selected), fmt)


def decrypt_export(
    blob: str, passphrase: str, cipher: Optional[PassphraseCipher] = None,
) -> str:
    """Decrypt an export bundle's content (verification tooling)."""
    return (cipher or PassphraseCipher()).decrypt_text(blob, passphrase)
