"""
Tests for the Steam Store client against a local fake of the store API.
"""
import asyncio
from contextlib import asynccontextmanager

import pytest
from aiohttp import web
from aiohttp.test_utils import TestServer

from game_gallery.errors import TransportError, UpstreamError
from game_gallery.models import SteamApp
from game_gallery.steam import SteamStoreClient, parse_search_items

SEARCH_PAYLOAD = {
    'total': 3,
    'items': [
        {'type': 'app', 'name': 'Hades', 'id': 1145360, 'tiny_image': 'https://example/hades.jpg'},
        {'type': 'dlc', 'name': 'Hades Soundtrack', 'id': 1200000},
        {'type': 'app', 'name': 'Hades II', 'id': 1145350},
    ],
}


@asynccontextmanager
async def steam_client(search_handler=None, players_handler=None, timeout=5):
    seen = []

    async def default_search(request):
        return web.json_response(SEARCH_PAYLOAD)

    async def default_players(request):
        return web.json_response({'response': {'player_count': 4242, 'result': 1}})

    async def recorded_search(request):
        seen.append(dict(request.query))
        return await (search_handler or default_search)(request)

    app = web.Application()
    app.router.add_get('/api/storesearch/', recorded_search)
    app.router.add_get('/players/', players_handler or default_players)
    server = TestServer(app)
    await server.start_server()
    client = SteamStoreClient(
        timeout=timeout,
        search_url=str(server.make_url('/api/storesearch/')),
        players_url=str(server.make_url('/players/')),
    )
    client.seen = seen
    try:
        yield client
    finally:
        await client.close()
        await server.close()


def test_parse_search_items_keeps_apps_up_to_limit():
    apps = parse_search_items(SEARCH_PAYLOAD, limit=1)
    assert apps == [SteamApp(app_id=1145360, name="Hades")]


def test_parse_search_items_filters_non_apps():
    apps = parse_search_items(SEARCH_PAYLOAD, limit=10)
    assert [a.app_id for a in apps] == [1145360, 1145350]


def test_parse_search_items_without_items_is_empty():
    assert parse_search_items({'total': 0}, limit=10) == []


@pytest.mark.parametrize("payload", [
    [],
    {'items': 'nope'},
    {'items': [{'type': 'app', 'name': 'Hades'}]},
    {'items': [{'type': 'app', 'name': 'Hades', 'id': '1145360'}]},
    {'items': [{'type': 'app', 'name': 'Ok', 'id': 1}, None]},
])
def test_parse_search_items_rejects_malformed_payload_wholesale(payload):
    with pytest.raises(UpstreamError):
        parse_search_items(payload, limit=10)


@pytest.mark.asyncio
async def test_search_sends_term_language_and_country():
    async with steam_client() as client:
        apps = await client.search("hades", 10)

    assert len(apps) == 2
    assert client.seen == [{'term': 'hades', 'l': 'schinese', 'cc': 'CN'}]


@pytest.mark.asyncio
async def test_search_non_200_is_upstream_error():
    async def failing(request):
        return web.json_response({'error': 'busy'}, status=503)

    async with steam_client(search_handler=failing) as client:
        with pytest.raises(UpstreamError) as exc_info:
            await client.search("hades", 10)

    assert exc_info.value.status == 503


@pytest.mark.asyncio
async def test_search_garbled_body_is_upstream_error():
    async def garbled(request):
        return web.Response(text='{"items": [', content_type='application/json')

    async with steam_client(search_handler=garbled) as client:
        with pytest.raises(UpstreamError):
            await client.search("hades", 10)


@pytest.mark.asyncio
async def test_search_timeout_is_transport_error():
    async def slow(request):
        await asyncio.sleep(1)
        return web.json_response(SEARCH_PAYLOAD)

    async with steam_client(search_handler=slow, timeout=0.1) as client:
        with pytest.raises(TransportError):
            await client.search("hades", 10)


@pytest.mark.asyncio
async def test_get_current_players():
    async with steam_client() as client:
        assert await client.get_current_players(1145360) == 4242


@pytest.mark.asyncio
async def test_get_current_players_bad_result_code():
    async def no_data(request):
        return web.json_response({'response': {'result': 42}})

    async with steam_client(players_handler=no_data) as client:
        with pytest.raises(UpstreamError):
            await client.get_current_players(1)
