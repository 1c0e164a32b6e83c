"""
Tests for RestRepository against an in-process aiohttp document store.

Tests cover:
- Vault, entry and token resources
- HTTP error and transport failure mapping to RepositoryError
- The coordinator running over HTTP
"""
import pytest
import pytest_asyncio
from aiohttp import web
from aiohttp.test_utils import TestServer as AppServer

from cipher_vault.exceptions import RepositoryError
from cipher_vault.repository import MemoryRepository
from cipher_vault.rest import RestRepository
from cipher_vault.vault import MutationCoordinator
from conftest import entry_data

USER = "user-1"


def build_app(store: MemoryRepository) -> web.Application:
    routes = web.RouteTableDef()

    @routes.get("/users/{uid}/vaults")
    async def list_vaults(request):
        vaults = await store.list_vaults(request.match_info["uid"])
        return web.json_response([v.to_record() for v in vaults])

    @routes.post("/users/{uid}/vaults")
    async def create_vault(request):
        body = await request.json()
        vault = await store.create_vault(request.match_info["uid"], body["name"])
        return web.json_response(vault.to_record(), status=201)

    @routes.get("/users/{uid}/vaults/{vid}/entries")
    async def list_entries(request):
        m = request.match_info
        return web.json_response(await store.list_entries(m["uid"], m["vid"]))

    @routes.post("/users/{uid}/vaults/{vid}/entries")
    async def create_entry(request):
        m = request.match_info
        entry_id = await store.create_entry(m["uid"], m["vid"], await request.json())
        return web.json_response({"id": entry_id}, status=201)

    @routes.patch("/users/{uid}/vaults/{vid}/entries/{eid}")
    async def update_entry(request):
        m = request.match_info
        await store.update_entry(m["uid"], m["vid"], m["eid"], await request.json())
        return web.Response(status=204)

    @routes.delete("/users/{uid}/vaults/{vid}/entries/{eid}")
    async def delete_entry(request):
        m = request.match_info
        await store.delete_entry(m["uid"], m["vid"], m["eid"])
        return web.Response(status=204)

    @routes.get("/users/{uid}/tokens")
    async def list_tokens(request):
        return web.json_response(await store.list_tokens(request.match_info["uid"]))

    @routes.put("/users/{uid}/tokens/{tid}")
    async def save_token(request):
        m = request.match_info
        await store.save_token(m["uid"], m["tid"], await request.json())
        return web.Response(status=204)

    @routes.delete("/users/{uid}/tokens/{tid}")
    async def delete_token(request):
        m = request.match_info
        await store.delete_token(m["uid"], m["tid"])
        return web.Response(status=204)

    @web.middleware
    async def errors(request, handler):
        try:
            return await handler(request)
        except RepositoryError as err:
            return web.json_response({"error": str(err)}, status=err.status or 500)

    app = web.Application(middlewares=[errors])
    app.add_routes(routes)
    return app


@pytest.fixture
def backend():
    return MemoryRepository()


@pytest_asyncio.fixture
async def rest(backend):
    server = AppServer(build_app(backend))
    await server.start_server()
    repository = RestRepository(str(server.make_url("/")))
    yield repository
    await repository.close()
    await server.close()


class TestResources:
    """Tests for the REST resource mapping."""

    @pytest.mark.asyncio
    async def test_vaults(self, rest, backend):
        vault = await rest.create_vault(USER, "Personal")
        assert vault.name == "Personal"
        assert [v.id for v in await rest.list_vaults(USER)] == [vault.id]
        assert [v.id for v in await backend.list_vaults(USER)] == [vault.id]

    @pytest.mark.asyncio
    async def test_entries(self, rest, backend):
        vault = await rest.create_vault(USER, "Personal")
        entry_id = await rest.create_entry(USER, vault.id, {"id": "e1", "serviceName": "GitHub"})
        assert entry_id == "e1"
        await rest.update_entry(USER, vault.id, "e1", {"notes": "hello"})
        [record] = await rest.list_entries(USER, vault.id)
        assert record == {"id": "e1", "serviceName": "GitHub", "notes": "hello"}
        await rest.delete_entry(USER, vault.id, "e1")
        assert await backend.list_entries(USER, vault.id) == []

    @pytest.mark.asyncio
    async def test_tokens(self, rest):
        await rest.save_token(USER, "t1", {"name": "ci", "value": "x"})
        await rest.save_token(USER, "t1", {"name": "deploy"})
        assert await rest.list_tokens(USER) == [{"id": "t1", "name": "deploy", "value": "x"}]
        await rest.delete_token(USER, "t1")
        assert await rest.list_tokens(USER) == []


class TestErrors:
    """Tests for failure mapping."""

    @pytest.mark.asyncio
    async def test_http_error_status(self, rest):
        vault = await rest.create_vault(USER, "Personal")
        with pytest.raises(RepositoryError) as exc:
            await rest.update_entry(USER, vault.id, "missing", {"notes": "x"})
        assert exc.value.status == 404
        assert exc.value.operation == "update_entry"

    @pytest.mark.asyncio
    async def test_unknown_vault(self, rest):
        with pytest.raises(RepositoryError) as exc:
            await rest.list_entries(USER, "nope")
        assert exc.value.status == 404

    @pytest.mark.asyncio
    async def test_transport_failure(self):
        async with RestRepository("http://127.0.0.1:1") as repository:
            with pytest.raises(RepositoryError) as exc:
                await repository.list_vaults(USER)
        assert exc.value.status is None
        assert exc.value.operation == "list_vaults"


class TestCoordinatorOverHttp:

    @pytest.mark.asyncio
    async def test_round_trip(self, rest, cipher, config, session):
        coord = MutationCoordinator(rest, cipher, config=config)
        await coord.init(session)
        entry = await coord.create_or_update(entry_data())
        await coord.toggle_favorite(entry.id)
        await coord.refresh()
        assert coord.cache[entry.id].is_favorite is True
        assert coord.reveal_secret(entry.id) == "my-repo-password-123"
        coord.dispose()
