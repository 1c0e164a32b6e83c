"""Shared fixtures for Cipher Vault tests."""
import asyncio
from datetime import datetime, timedelta, timezone

import pytest
import pytest_asyncio

from cipher_vault.models import VaultSession
from cipher_vault.repository import MemoryRepository
from cipher_vault.vault import (
    Cipher,
    MutationCoordinator,
    StaticKeyProvider,
    VaultConfig,
)

TEST_KEY = "unit-test-cipher-key"
FAST_ITERATIONS = 1000


class TickingClock:
    """Clock that advances one second on every call."""

    def __init__(self, start: datetime = datetime(2024, 1, 1, tzinfo=timezone.utc)):
        self.now = start

    def __call__(self) -> datetime:
        self.now += timedelta(seconds=1)
        return self.now


class GatedRepository(MemoryRepository):
    """MemoryRepository whose entry writes wait for ``gate`` to open."""

    def __init__(self):
        super().__init__()
        self.gate = asyncio.Event()

    async def create_entry(self, user_id, vault_id, record):
        await self.gate.wait()
        return await super().create_entry(user_id, vault_id, record)

    async def update_entry(self, user_id, vault_id, entry_id, partial):
        await self.gate.wait()
        return await super().update_entry(user_id, vault_id, entry_id, partial)


@pytest.fixture
def cipher():
    return Cipher(StaticKeyProvider(TEST_KEY))


@pytest.fixture
def plain_cipher():
    """Cipher without a key (identity)."""
    return Cipher(StaticKeyProvider(None))


@pytest.fixture
def config():
    return VaultConfig(cipher_key=TEST_KEY, export_kdf_iterations=FAST_ITERATIONS)


@pytest.fixture
def repo():
    return MemoryRepository()


@pytest.fixture
def clock():
    return TickingClock()


@pytest.fixture
def session():
    return VaultSession(user_id="user-1")


@pytest_asyncio.fixture
async def coordinator(repo, cipher, config, clock, session):
    """Coordinator bound to a session with the default vault created."""
    coord = MutationCoordinator(repo, cipher, config=config, clock=clock)
    await coord.init(session)
    yield coord
    coord.dispose()


def entry_data(**overrides):
    data = {
        "service_name": "GitHub",
        "url": "https://github.com",
        "username": "git-user",
        "secret": "my-repo-password-123",
        "notes": "Used for work projects.",
        "tags": ["work", "dev"],
    }
    data.update(overrides)
    return data
