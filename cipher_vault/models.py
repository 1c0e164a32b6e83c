"""
Cipher Vault data model.

Records travel to the remote store as camelCase dicts produced by
``to_record()``; every model is frozen so cache snapshots can share
instances safely.

Security Note:
    ``CredentialEntry.secret`` and every ``SecretHistoryEntry.secret`` hold
    ciphertext while the entry lives in the cache. Plaintext copies are only
    produced on demand by ``Cipher.reveal()``.
"""
import uuid
from datetime import datetime, timezone
from typing import Any, Optional, Callable
from collections.abc import Iterable, Mapping
from urllib.parse import urlparse

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic import ValidationError as PydanticValidationError
from pydantic.alias_generators import to_camel

from .conf import MAX_HISTORY_ENTRIES
from .exceptions import ValidationError

REQUIRED_ENTRY_FIELDS = ("service_name", "username", "secret")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_id() -> str:
    return uuid.uuid4().hex


def normalize_tags(tags: Optional[Iterable[str]]) -> tuple[str, ...]:
    """Strip, de-duplicate and sort a tag collection."""
    if not tags:
        return ()
    if isinstance(tags, str):
        tags = [tags]
    return tuple(sorted({t.strip() for t in tags if t and t.strip()}))


class RecordModel(BaseModel):
    """Frozen model serialized as a camelCase record."""

    model_config = ConfigDict(
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )

    def to_record(self, include: Optional[set[str]] = None) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, include=include)

    @classmethod
    def from_record(cls, record: Mapping[str, Any], **overrides):
        data = dict(record)
        data.update(overrides)
        return cls.model_validate(data)


class Vault(RecordModel):
    """A named grouping of credential entries."""

    id: str
    name: str

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Vault name cannot be empty")
        return v


class SecretHistoryEntry(RecordModel):
    secret: str
    timestamp: datetime


class CredentialEntry(RecordModel):
    """One stored service login."""

    id: str
    vault_id: str
    service_name: str
    url: Optional[str] = None
    username: str = ""
    secret: str = ""
    notes: Optional[str] = None
    tags: tuple[str, ...] = ()
    is_favorite: bool = False
    created_at: datetime
    updated_at: datetime
    deleted_at: Optional[datetime] = None
    secret_history: tuple[SecretHistoryEntry, ...] = ()

    @field_validator("tags", mode="before")
    @classmethod
    def validate_tags(cls, v: Any) -> tuple[str, ...]:
        return normalize_tags(v)

    @field_validator("secret_history", mode="before")
    @classmethod
    def cap_history(cls, v: Any) -> Any:
        if v is None:
            return ()
        return tuple(v)[:MAX_HISTORY_ENTRIES]

    @property
    def is_active(self) -> bool:
        return self.deleted_at is None

    @property
    def is_trashed(self) -> bool:
        return self.deleted_at is not None


class TokenEntry(RecordModel):
    """A stored API token; ``value`` is ciphertext."""

    id: str
    name: str
    value: str
    created_at: datetime
    updated_at: datetime
    user_id: Optional[str] = None


class VaultSession(BaseModel):
    """Login context the engine is bound to."""

    model_config = ConfigDict(frozen=True)

    user_id: str
    session_id: str = Field(default_factory=new_id)
    started_at: datetime = Field(default_factory=utcnow)

    @field_validator("user_id")
    @classmethod
    def validate_user(cls, v: str) -> str:
        if not v:
            raise ValueError("user_id cannot be empty")
        return v


# ---------------------------------------------------------------------------
# Caller input
# ---------------------------------------------------------------------------

class EntryInput(BaseModel):
    """Fields a caller may send to create or edit an entry.

    Every field is optional here; ``require_for_create()`` enforces the
    fields a new entry needs. Only fields the caller actually set are
    applied on update.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="forbid",
    )

    vault_id: Optional[str] = None
    service_name: Optional[str] = None
    url: Optional[str] = None
    username: Optional[str] = None
    secret: Optional[str] = None
    notes: Optional[str] = None
    tags: Optional[tuple[str, ...]] = None
    is_favorite: Optional[bool] = None

    @field_validator("service_name", "username")
    @classmethod
    def validate_required_text(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and not v.strip():
            raise ValueError("must not be empty")
        return v

    @field_validator("secret")
    @classmethod
    def validate_secret(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and v == "":
            raise ValueError("must not be empty")
        return v

    @field_validator("url")
    @classmethod
    def validate_url(cls, v: Optional[str]) -> Optional[str]:
        if v is None or v.strip() == "":
            return None
        parsed = urlparse(v.strip())
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise ValueError("Please enter a valid URL")
        return v.strip()

    @field_validator("tags", mode="before")
    @classmethod
    def validate_tags(cls, v: Any) -> Optional[tuple[str, ...]]:
        if v is None:
            return None
        return normalize_tags(v)

    @classmethod
    def parse(cls, data: Any) -> "EntryInput":
        """Build from a mapping or pass an ``EntryInput`` through.

        Raises:
            ValidationError: payload fails validation.
        """
        if isinstance(data, cls):
            return data
        try:
            return cls.model_validate(dict(data))
        except PydanticValidationError as err:
            first = err.errors()[0]
            field = ".".join(str(p) for p in first.get("loc", ()))
            raise ValidationError(
                f"Invalid entry data: {field}: {first.get('msg')}",
                field=field or None,
            ) from err

    def changes(self) -> dict[str, Any]:
        """Field values the caller set, keyed by model field name.

        Raises:
            ValidationError: A required field was explicitly set to None.
        """
        data = self.model_dump(exclude_unset=True, exclude={"vault_id"})
        for name in REQUIRED_ENTRY_FIELDS:
            if name in data and data[name] is None:
                raise ValidationError(f"{name} cannot be empty", field=name)
        return data

    def require_for_create(self) -> None:
        for name in REQUIRED_ENTRY_FIELDS:
            if getattr(self, name) is None:
                raise ValidationError(f"{name} is required", field=name)


# ---------------------------------------------------------------------------
# Secret history
# ---------------------------------------------------------------------------

def add_to_history(
    history: Optional[Iterable[SecretHistoryEntry]],
    secret: str,
    timestamp: Optional[datetime] = None,
) -> tuple[SecretHistoryEntry, ...]:
    """Prepend ``secret`` and keep the newest MAX_HISTORY_ENTRIES."""
    entry = SecretHistoryEntry(secret=secret, timestamp=timestamp or utcnow())
    return (entry, *(history or ()))[:MAX_HISTORY_ENTRIES]


def is_secret_in_history(
    history: Optional[Iterable[SecretHistoryEntry]],
    secret: str,
    decrypt: Optional[Callable[[str], str]] = None,
) -> bool:
    if not history:
        return False
    for item in history:
        value = decrypt(item.secret) if decrypt else item.secret
        if value == secret:
            return True
    return False
