"""
HTTP API handlers for the party relay
WebSocket viewers + cached reads + playback commands
"""
import asyncio
import logging
import time
from collections import defaultdict
from typing import Callable, Dict, List

from aiohttp import web

from .bus import TRACK, NotificationBus
from .cache import ResultCache
from .config import PartyConfig
from .errors import ALREADY_QUEUED, GENERAL, UNAUTHENTICATED
from .interact import Interact
from .scheduler import INFO_KEY, PollLoop
from .state import Audience, SessionSlot
from .utils import generate_client_id, parse_spotify_url

logger = logging.getLogger("party_relay")

CONFIG = web.AppKey("config", PartyConfig)
CACHE = web.AppKey("cache", ResultCache)
AUDIENCE = web.AppKey("audience", Audience)
SESSION = web.AppKey("session", SessionSlot)
BUS = web.AppKey("bus", NotificationBus)
INTERACT = web.AppKey("interact", Interact)
POLL_LOOP = web.AppKey("poll_loop", PollLoop)
CLIENT_FACTORY = web.AppKey("client_factory", Callable)
RATE_LIMIT_STORE = web.AppKey("rate_limit_store", Dict[str, List[float]])

CLIENT = web.RequestKey("client", object)

PUBLIC_API_PATHS = {"/api/health"}


def _failure(message: str, status: int = 200) -> web.Response:
    return web.json_response({"error": True, "message": message}, status=status)


# ============================================================
# MIDDLEWARES
# ============================================================

@web.middleware
async def rate_limit_middleware(request: web.Request, handler):
    """Sliding one-minute window of requests per IP"""
    if request.path.startswith("/static") or request.path == "/ws":
        return await handler(request)

    limit = request.app[CONFIG].rate_limit_per_minute
    store = request.app[RATE_LIMIT_STORE]
    ip = request.remote or "unknown"
    now = time.time()

    store[ip] = [t for t in store[ip] if now - t < 60]
    if len(store[ip]) >= limit:
        logger.warning(f"Rate limit exceeded for {ip}")
        return web.json_response(
            {"error": True, "message": "Rate limit exceeded"},
            status=429
        )

    store[ip].append(now)
    return await handler(request)


@web.middleware
async def error_middleware(request: web.Request, handler):
    try:
        return await handler(request)
    except web.HTTPException:
        raise
    except Exception as e:
        logger.error(f"API error on {request.path}: {e!r}")
        request.app[BUS].system("error", {"path": request.path, "detail": str(e)})
        return _failure(GENERAL)


@web.middleware
async def session_middleware(request: web.Request, handler):
    """Reject /api calls until a provider session exists"""
    if request.path.startswith("/api/") and request.path not in PUBLIC_API_PATHS:
        client = request.app[SESSION].current
        if client is None:
            return _failure(UNAUTHENTICATED)
        request[CLIENT] = client
    return await handler(request)


def make_rate_limit_store() -> Dict[str, List[float]]:
    return defaultdict(list)


# ============================================================
# WEBSOCKET VIEWERS
# ============================================================

async def ws_viewer(request: web.Request) -> web.WebSocketResponse:
    """Real-time channel: info snapshots, notices and reload requests"""
    ws = web.WebSocketResponse(heartbeat=30)
    await ws.prepare(request)

    audience = request.app[AUDIENCE]
    client_id = generate_client_id()
    queue = audience.subscribe(client_id)
    logger.info(f"📡 Viewer connected: {client_id} (total: {audience.client_count})")

    async def _writer():
        while True:
            event, data = await queue.get()
            await ws.send_json({"type": event, "data": data})

    writer_task = None
    try:
        snapshot = request.app[CACHE].peek(INFO_KEY)
        if snapshot is not None:
            await ws.send_json({"type": "info", "data": snapshot})

        writer_task = asyncio.create_task(_writer())

        async for msg in ws:
            # Handle ping/pong for keepalive
            if msg.type == web.WSMsgType.TEXT and msg.data == "ping":
                await ws.send_str("pong")
    except Exception as e:
        logger.debug(f"WebSocket error: {e}")
    finally:
        audience.unsubscribe(client_id)
        if writer_task is not None:
            writer_task.cancel()
            await asyncio.gather(writer_task, return_exceptions=True)
        logger.info(f"📡 Viewer disconnected: {client_id} (remaining: {audience.client_count})")

    return ws


# ============================================================
# PROVIDER SESSION
# ============================================================

async def api_session_set(request: web.Request) -> web.Response:
    """Install a provider access token obtained by the external auth flow"""
    try:
        data = await request.json()
    except ValueError:
        data = {}
    token = data.get("access_token") if isinstance(data, dict) else None
    if not token:
        return web.json_response({"ok": False, "error": "access_token required"}, status=400)

    client = request.app[CLIENT_FACTORY](token)
    previous = request.app[SESSION].replace(client)
    if previous is not None:
        await previous.close()

    logger.info("🔑 Provider session replaced" if previous is not None else "🔑 Provider session established")
    request.app[BUS].system("authenticated")
    return web.json_response({"ok": True})


async def api_session_clear(request: web.Request) -> web.Response:
    previous = request.app[SESSION].replace(None)
    if previous is not None:
        await previous.close()
        logger.info("🔒 Provider session cleared")
    return web.json_response({"ok": True})


# ============================================================
# READS
# ============================================================

async def api_health(request: web.Request) -> web.Response:
    return web.json_response({
        "success": True,
        "authenticated": request.app[SESSION].authenticated,
    })


async def api_info(request: web.Request) -> web.Response:
    return web.json_response(await request.app[INTERACT].info(request[CLIENT]))


async def api_queue(request: web.Request) -> web.Response:
    return web.json_response(await request.app[INTERACT].queue(request[CLIENT]))


async def api_artist(request: web.Request) -> web.Response:
    interact = request.app[INTERACT]
    response = await interact.artist_top_tracks(request[CLIENT], request.match_info["id"])
    return web.json_response(response)


async def api_album(request: web.Request) -> web.Response:
    interact = request.app[INTERACT]
    response = await interact.album(request[CLIENT], request.match_info["id"])
    return web.json_response(response)


async def api_search(request: web.Request) -> web.Response:
    q = request.query.get("q", "").strip()
    if not q:
        return _failure("q required", status=400)

    interact = request.app[INTERACT]
    client = request[CLIENT]

    # Someone pasted a Spotify link into the search box
    link = parse_spotify_url(q)
    if link:
        kind, item_id = link
        if kind == "track":
            return web.json_response(await interact.track(client, item_id))
        if kind == "artist":
            return web.json_response(await interact.artist_top_tracks(client, item_id))
        if kind == "album":
            return web.json_response(await interact.album(client, item_id))

    return web.json_response(await interact.search(client, q))


# ============================================================
# COMMANDS
# ============================================================

async def api_add(request: web.Request) -> web.Response:
    uri = request.query.get("uri")
    if not uri:
        return _failure("uri required", status=400)

    bus = request.app[BUS]
    success = await request.app[INTERACT].add(request[CLIENT], uri)
    if success:
        bus.message(f"Added {request.query.get('name') or 'a track'}", TRACK)
    else:
        bus.error(ALREADY_QUEUED)
    bus.system("add", {"uri": uri, "success": success})

    return web.json_response({"success": success})


def _command(operation: str, notice: str, signal: str):
    async def handler(request: web.Request) -> web.Response:
        interact = request.app[INTERACT]
        response = await getattr(interact, operation)(request[CLIENT])

        bus = request.app[BUS]
        bus.message(notice)
        bus.system(signal)
        return web.json_response(response)

    handler.__name__ = f"api_{operation}"
    return handler


api_play = _command("play", "Pressed play", "play")
api_pause = _command("pause", "Pressed pause", "pause")
api_skip_forward = _command("forward", "Skipped forward", "skippedForward")
api_skip_backward = _command("back", "Skipped back", "skippedBackward")
