"""HTTP service exposing Steam search and the shared game list.

Routes:
    GET    /api/health
    GET    /api/games/search?q=&limit=&include_players=
    GET    /api/games/cache-stats
    GET    /api/games
    POST   /api/games
    PATCH  /api/games/{game_id}
    DELETE /api/games/{game_id}

The game list routes are only registered when a content store is available.
"""
import asyncio
import logging
import time
from typing import Any, Dict, Optional

import aiohttp.web as web

from .cache import SearchCache
from .config import Settings
from .controllers import CacheCleanupService
from .errors import ErrorKind, NotFoundError
from .models import GameSearchResult
from .net import Transport
from .services import EDITABLE_FIELDS, GameListService
from .steam import SteamStoreClient
from .storage import ContentStore, DocumentStore, GitHubContentStore, UpdateResult

logger = logging.getLogger(__name__)

DEFAULT_SEARCH_LIMIT = 10
MAX_SEARCH_LIMIT = 50

SETTINGS_KEY = web.AppKey("settings", Settings)
SEARCH_CACHE_KEY = web.AppKey("search_cache", SearchCache)
STEAM_CLIENT_KEY = web.AppKey("steam_client", SteamStoreClient)
CLEANUP_KEY = web.AppKey("cache_cleanup", CacheCleanupService)
CONTENT_STORE_KEY = web.AppKey("content_store", ContentStore)
GAME_LIST_KEY = web.AppKey("game_list", GameListService)

# JSON key -> Game attribute for PATCH bodies
_PATCH_FIELDS = {
    'name': 'name',
    'status': 'status',
    'steamUrl': 'steam_url',
    'coverImage': 'cover_image',
    'positivePercentage': 'positive_percentage',
    'totalReviews': 'total_reviews',
    'releaseDate': 'release_date',
    'comingSoon': 'coming_soon',
    'isEarlyAccess': 'is_early_access',
    'genres': 'genres',
    'isPinned': 'is_pinned',
}


def parse_limit(value: Optional[str]) -> int:
    """Search limit from the query string; out-of-range values fall back to the default."""
    if not value:
        return DEFAULT_SEARCH_LIMIT
    try:
        limit = int(value)
    except ValueError:
        return DEFAULT_SEARCH_LIMIT
    if 0 < limit <= MAX_SEARCH_LIMIT:
        return limit
    return DEFAULT_SEARCH_LIMIT


def _update_response(result: UpdateResult, status: int = 200) -> web.Response:
    if result.success:
        return web.json_response({'games': [g.to_dict() for g in result.games]}, status=status)
    http_status = 409 if result.error == ErrorKind.CONFLICT else 502
    return web.json_response(
        {'error': result.error.value if result.error else 'unknown', 'message': result.message},
        status=http_status,
    )


async def _json_body(request: web.Request) -> Dict[str, Any]:
    try:
        body = await request.json()
    except ValueError:
        raise web.HTTPBadRequest(text="Request body must be JSON")
    if not isinstance(body, dict):
        raise web.HTTPBadRequest(text="Request body must be a JSON object")
    return body


# ============================================================================
# Middlewares
# ============================================================================

@web.middleware
async def error_middleware(request: web.Request, handler):
    try:
        return await handler(request)
    except web.HTTPException:
        raise
    except Exception as e:
        logger.exception(f"Unhandled error on {request.method} {request.path}: {e}")
        return web.json_response({'error': 'Internal Server Error'}, status=500)


@web.middleware
async def logging_middleware(request: web.Request, handler):
    start = time.monotonic()
    try:
        return await handler(request)
    finally:
        elapsed_ms = (time.monotonic() - start) * 1000
        logger.info(f"{request.method} {request.path_qs} from {request.remote} - {elapsed_ms:.1f}ms")


def _add_cors_headers(request: web.Request, response: web.StreamResponse) -> None:
    frontend_url = request.app[SETTINGS_KEY].frontend_url
    if request.headers.get('Origin') == frontend_url:
        response.headers['Access-Control-Allow-Origin'] = frontend_url
        response.headers['Access-Control-Allow-Credentials'] = 'true'
    response.headers['Access-Control-Allow-Methods'] = 'GET, POST, PATCH, PUT, DELETE, OPTIONS'
    response.headers['Access-Control-Allow-Headers'] = 'Content-Type, Authorization'


@web.middleware
async def cors_middleware(request: web.Request, handler):
    if request.method == 'OPTIONS':
        response = web.Response()
    else:
        try:
            response = await handler(request)
        except web.HTTPException as e:
            # Error responses must be readable by the frontend too
            _add_cors_headers(request, e)
            raise
    _add_cors_headers(request, response)
    return response


# ============================================================================
# Handlers
# ============================================================================

async def health_handler(request: web.Request) -> web.Response:
    return web.json_response({'status': 'ok'})


async def search_handler(request: web.Request) -> web.Response:
    query = request.query.get('q', '')
    limit = parse_limit(request.query.get('limit'))
    include_players = request.query.get('include_players') == 'true'

    result = await request.app[SEARCH_CACHE_KEY].search(query, limit)
    if not result.success:
        return web.json_response(
            {'error': f"Search failed: {result.message}", 'kind': result.error.value},
            status=502,
        )

    player_counts: Dict[int, int] = {}
    if include_players and result.results:
        client = request.app[STEAM_CLIENT_KEY]
        counts = await asyncio.gather(
            *[client.get_current_players(app.app_id) for app in result.results],
            return_exceptions=True,
        )
        for app, count in zip(result.results, counts):
            if isinstance(count, BaseException):
                logger.debug(f"Player count unavailable for app {app.app_id}: {count}")
                continue
            player_counts[app.app_id] = count

    return web.json_response([
        GameSearchResult.from_app(app, player_counts.get(app.app_id)).to_dict()
        for app in result.results
    ])


async def cache_stats_handler(request: web.Request) -> web.Response:
    return web.json_response(await request.app[SEARCH_CACHE_KEY].stats())


async def list_games_handler(request: web.Request) -> web.Response:
    result = await request.app[GAME_LIST_KEY].load()
    if not result.success:
        return web.json_response({'error': result.error.value, 'message': result.message}, status=502)
    return web.json_response({'games': [g.to_dict() for g in result.games]})


async def add_game_handler(request: web.Request) -> web.Response:
    body = await _json_body(request)
    name = body.get('name')
    if not isinstance(name, str) or not name.strip():
        raise web.HTTPBadRequest(text="'name' is required")

    try:
        added = await request.app[GAME_LIST_KEY].add_game(
            name,
            steam_url=body.get('steamUrl'),
            cover_image=body.get('coverImage'),
            positive_percentage=body.get('positivePercentage'),
            total_reviews=body.get('totalReviews'),
            release_date=body.get('releaseDate'),
            coming_soon=body.get('comingSoon'),
            is_early_access=body.get('isEarlyAccess'),
        )
    except ValueError as e:
        raise web.HTTPBadRequest(text=str(e))
    if not added.success:
        return _update_response(added.result)

    return web.json_response({
        'added': added.added,
        'duplicate': added.duplicate,
        'game': added.game.to_dict() if added.game else None,
        'games': [g.to_dict() for g in added.result.games],
    }, status=201 if added.added else 200)


async def update_game_handler(request: web.Request) -> web.Response:
    body = await _json_body(request)
    unknown = set(body) - set(_PATCH_FIELDS)
    if unknown:
        raise web.HTTPBadRequest(text=f"Unknown fields: {', '.join(sorted(unknown))}")
    changes = {_PATCH_FIELDS[key]: value for key, value in body.items()}
    if not changes or not set(changes) <= EDITABLE_FIELDS:
        raise web.HTTPBadRequest(text="No changes given")

    game_id = request.match_info['game_id']
    try:
        result = await request.app[GAME_LIST_KEY].update_game(game_id, changes)
    except ValueError as e:
        raise web.HTTPBadRequest(text=str(e))
    except NotFoundError as e:
        raise web.HTTPNotFound(text=str(e))
    return _update_response(result)


async def delete_game_handler(request: web.Request) -> web.Response:
    result = await request.app[GAME_LIST_KEY].remove_game(request.match_info['game_id'])
    return _update_response(result)


# ============================================================================
# Application
# ============================================================================

async def _on_startup(app: web.Application) -> None:
    await app[CLEANUP_KEY].start()


async def _on_cleanup(app: web.Application) -> None:
    await app[CLEANUP_KEY].stop()
    await app[STEAM_CLIENT_KEY].close()
    if CONTENT_STORE_KEY in app:
        await app[CONTENT_STORE_KEY].close()


def create_app(
    settings: Settings,
    steam_client: Optional[SteamStoreClient] = None,
    content_store: Optional[ContentStore] = None,
) -> web.Application:
    """Build the application; collaborators can be injected for testing."""
    app = web.Application(middlewares=[cors_middleware, logging_middleware, error_middleware])
    app[SETTINGS_KEY] = settings

    if steam_client is None:
        steam_client = SteamStoreClient(
            transport=Transport.from_settings(settings),
            timeout=settings.http_timeout,
            country=settings.steam_country,
            language=settings.steam_language,
        )
    search_cache = SearchCache(steam_client.search, ttl=settings.search_cache_ttl)
    app[STEAM_CLIENT_KEY] = steam_client
    app[SEARCH_CACHE_KEY] = search_cache
    app[CLEANUP_KEY] = CacheCleanupService(search_cache, interval=settings.search_cache_cleanup_interval)

    app.router.add_get('/api/health', health_handler)
    app.router.add_get('/api/games/search', search_handler)
    app.router.add_get('/api/games/cache-stats', cache_stats_handler)

    if content_store is None and settings.github_configured:
        content_store = GitHubContentStore.from_settings(settings)
    if content_store is not None:
        app[CONTENT_STORE_KEY] = content_store
        app[GAME_LIST_KEY] = GameListService(DocumentStore(content_store, settings.games_file_path))
        app.router.add_get('/api/games', list_games_handler)
        app.router.add_post('/api/games', add_game_handler)
        app.router.add_patch('/api/games/{game_id}', update_game_handler)
        app.router.add_delete('/api/games/{game_id}', delete_game_handler)
    else:
        logger.warning("GitHub storage not configured, game list routes disabled")

    app.on_startup.append(_on_startup)
    app.on_cleanup.append(_on_cleanup)
    return app
