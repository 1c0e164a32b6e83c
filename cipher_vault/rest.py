"""
REST Repository — aiohttp client for a remote per-user document store.

Resource layout:
    GET    /users/{uid}/vaults
    POST   /users/{uid}/vaults                         {"name": ...}
    GET    /users/{uid}/vaults/{vid}/entries
    POST   /users/{uid}/vaults/{vid}/entries           record -> {"id": ...}
    PATCH  /users/{uid}/vaults/{vid}/entries/{id}      partial record
    DELETE /users/{uid}/vaults/{vid}/entries/{id}
    GET    /users/{uid}/tokens
    PUT    /users/{uid}/tokens/{id}                    merged record
    DELETE /users/{uid}/tokens/{id}
"""
import logging
from typing import Any, Optional
from urllib.parse import quote

import aiohttp
import orjson

from .exceptions import RepositoryError
from .models import Vault
from .repository import Repository

logger = logging.getLogger("cipher_vault.repository")


def _json_dumps(obj: Any) -> str:
    return orjson.dumps(obj).decode("utf-8")


def _seg(value: str) -> str:
    return quote(str(value), safe="")


class RestRepository(Repository):
    """Repository backed by an HTTP document store.

    Transport failures and HTTP statuses >= 400 are raised as
    ``RepositoryError`` carrying the operation name and status.
    """

    def __init__(
        self,
        base_url: str,
        session: Optional[aiohttp.ClientSession] = None,
        headers: Optional[dict[str, str]] = None,
    ):
        self._base_url = base_url.rstrip("/")
        self._session = session
        self._owns_session = session is None
        self._headers = headers or {}

    async def __aenter__(self) -> "RestRepository":
        return self

    async def __aexit__(self, *exc) -> None:
        await self.close()

    async def close(self) -> None:
        if self._session is not None and self._owns_session:
            await self._session.close()
            self._session = None

    def _client(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                headers=self._headers, json_serialize=_json_dumps,
            )
            self._owns_session = True
        return self._session

    async def _request(
        self, method: str, path: str, operation: str, payload: Any = None,
    ) -> Any:
        url = f"{self._base_url}{path}"
        try:
            async with self._client().request(method, url, json=payload) as resp:
                body = await resp.read()
                if resp.status >= 400:
                    logger.error("%s %s -> HTTP %s", method, path, resp.status)
                    raise RepositoryError(
                        f"{operation} failed with HTTP {resp.status}: "
                        f"{body[:200].decode('utf-8', 'replace')}",
                        operation=operation,
                        status=resp.status,
                    )
                return orjson.loads(body) if body else None
        except aiohttp.ClientError as err:
            raise RepositoryError(f"{operation} failed: {err}", operation=operation) from err
        except orjson.JSONDecodeError as err:
            raise RepositoryError(
                f"{operation} returned invalid JSON", operation=operation,
            ) from err

    def _vaults_path(self, user_id: str) -> str:
        return f"/users/{_seg(user_id)}/vaults"

    def _entries_path(self, user_id: str, vault_id: str) -> str:
        return f"{self._vaults_path(user_id)}/{_seg(vault_id)}/entries"

    def _tokens_path(self, user_id: str) -> str:
        return f"/users/{_seg(user_id)}/tokens"

    async def list_vaults(self, user_id: str) -> list[Vault]:
        data = await self._request("GET", self._vaults_path(user_id), "list_vaults")
        return [Vault.from_record(r) for r in data or []]

    async def create_vault(self, user_id: str, name: str) -> Vault:
        data = await self._request(
            "POST", self._vaults_path(user_id), "create_vault", {"name": name},
        )
        return Vault.from_record(data)

    async def list_entries(self, user_id: str, vault_id: str) -> list[dict]:
        data = await self._request(
            "GET", self._entries_path(user_id, vault_id), "list_entries",
        )
        return list(data or [])

    async def create_entry(self, user_id: str, vault_id: str, record: dict) -> str:
        data = await self._request(
            "POST", self._entries_path(user_id, vault_id), "create_entry", record,
        )
        return (data or {}).get("id") or record.get("id")

    async def update_entry(
        self, user_id: str, vault_id: str, entry_id: str, partial: dict,
    ) -> None:
        await self._request(
            "PATCH",
            f"{self._entries_path(user_id, vault_id)}/{_seg(entry_id)}",
            "update_entry",
            partial,
        )

    async def delete_entry(self, user_id: str, vault_id: str, entry_id: str) -> None:
        await self._request(
            "DELETE",
            f"{self._entries_path(user_id, vault_id)}/{_seg(entry_id)}",
            "delete_entry",
        )

    async def list_tokens(self, user_id: str) -> list[dict]:
        data = await self._request("GET", self._tokens_path(user_id), "list_tokens")
        return list(data or [])

    async def save_token(self, user_id: str, token_id: str, record: dict) -> None:
        await self._request(
            "PUT",
            f"{self._tokens_path(user_id)}/{_seg(token_id)}",
            "save_token",
            record,
        )

    async def delete_token(self, user_id: str, token_id: str) -> None:
        await self._request(
            "DELETE", f"{self._tokens_path(user_id)}/{_seg(token_id)}", "delete_token",
        )
