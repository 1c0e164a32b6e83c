"""
API token store — encrypted API tokens kept beside the credential vaults.

Unlike credential entries, token writes are not optimistic: the local list
only changes once the store has confirmed the write.
"""
import logging
from datetime import datetime
from typing import Any, Callable, Optional

from pydantic import BaseModel, ConfigDict, field_validator
from pydantic import ValidationError as PydanticValidationError

from .exceptions import NotFoundError, RepositoryError, SessionError, ValidationError
from .models import TokenEntry, VaultSession, new_id, utcnow
from .repository import Repository
from .vault.crypto import Cipher

logger = logging.getLogger("cipher_vault.tokens")


class TokenInput(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: Optional[str] = None
    value: Optional[str] = None

    @field_validator("name", "value")
    @classmethod
    def validate_not_empty(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and not v.strip():
            raise ValueError("must not be empty")
        return v


class TokenStore:
    """API tokens of one user session."""

    def __init__(
        self,
        repository: Repository,
        cipher: Cipher,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self._repository = repository
        self._cipher = cipher
        self._clock = clock or utcnow
        self._session: Optional[VaultSession] = None
        self._tokens: dict[str, TokenEntry] = {}

    @property
    def tokens(self) -> list[TokenEntry]:
        return list(self._tokens.values())

    def _user_id(self) -> str:
        if self._session is None:
            raise SessionError("No session bound; call load(session) first")
        return self._session.user_id

    async def _call(self, operation: str, coro) -> Any:
        try:
            return await coro
        except RepositoryError:
            raise
        except Exception as err:
            raise RepositoryError(
                f"Token {operation} failed: {err}", operation=operation,
            ) from err

    async def load(self, session: VaultSession) -> list[TokenEntry]:
        self._session = session
        records = await self._call("list", self._repository.list_tokens(session.user_id))
        tokens = {}
        for record in records:
            try:
                token = TokenEntry.from_record(record)
            except PydanticValidationError as err:
                logger.error("Skipping invalid token id=%s: %s", record.get("id"), err)
                continue
            tokens[token.id] = token
        self._tokens = tokens
        logger.info("Loaded %d token(s) for user=%s", len(tokens), session.user_id)
        return self.tokens

    def dispose(self) -> None:
        self._session = None
        self._tokens = {}

    async def add_or_update(
        self, data: Any, token_id: Optional[str] = None,
    ) -> TokenEntry:
        """Create a token, or edit ``token_id``.

        Raises:
            ValidationError: Missing or empty name/value.
            NotFoundError: ``token_id`` is unknown.
            RepositoryError: The store rejected the write.
        """
        user_id = self._user_id()
        try:
            payload = TokenInput.model_validate(dict(data))
        except PydanticValidationError as err:
            raise ValidationError(f"Invalid token data: {err.errors()[0]['msg']}") from err
        now = self._clock()
        changes = payload.model_dump(exclude_unset=True)
        if "value" in changes:
            changes["value"] = self._cipher.encrypt(changes["value"])

        if token_id is None:
            if payload.name is None or payload.value is None:
                raise ValidationError("Token name and value are required.")
            token = TokenEntry(
                id=new_id(),
                name=payload.name,
                value=changes["value"],
                created_at=now,
                updated_at=now,
                user_id=user_id,
            )
            await self._call("create", self._repository.save_token(
                user_id, token.id, token.to_record(),
            ))
        else:
            current = self._tokens.get(token_id)
            if current is None:
                raise NotFoundError(f"Token {token_id} not found", entry_id=token_id)
            changes["updated_at"] = now
            token = current.model_copy(update=changes)
            await self._call("update", self._repository.save_token(
                user_id, token_id, token.to_record(include=set(changes)),
            ))
        self._tokens[token.id] = token
        logger.debug("Token saved: id=%s user=%s", token.id, user_id)
        return token

    async def delete(self, token_id: str) -> None:
        user_id = self._user_id()
        if token_id not in self._tokens:
            raise NotFoundError(f"Token {token_id} not found", entry_id=token_id)
        await self._call("delete", self._repository.delete_token(user_id, token_id))
        self._tokens.pop(token_id, None)

    def reveal(self, token: TokenEntry) -> str:
        return self._cipher.decrypt(token.value)
