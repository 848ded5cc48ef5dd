#!/usr/bin/env python3
"""
Party relay - Entry Point
Shared playback session + centralised polling + WebSocket fan-out
"""
import logging
import socket
from typing import Callable, Optional

from aiohttp import web

from party.api import (
    AUDIENCE, BUS, CACHE, CLIENT_FACTORY, CONFIG, INTERACT, POLL_LOOP,
    RATE_LIMIT_STORE, SESSION,
    api_add, api_album, api_artist, api_health, api_info, api_pause, api_play,
    api_queue, api_search, api_session_clear, api_session_set, api_skip_backward,
    api_skip_forward, error_middleware, make_rate_limit_store,
    rate_limit_middleware, session_middleware, ws_viewer,
)
from party.bus import NotificationBus, Notice, Signal, log_signal
from party.cache import ResultCache
from party.config import PartyConfig
from party.interact import Interact
from party.provider import SpotifyClient
from party.scheduler import PlaybackPoller, PollLoop
from party.state import Audience, SessionSlot

logger = logging.getLogger("party_relay")


def wire_bus(bus: NotificationBus, audience: Audience):
    """Connect the bus channels to the viewers and to diagnostics"""

    def push_notice(notice: Notice):
        audience.broadcast("message", notice.to_dict())

    def on_signal(signal: Signal):
        # Viewers refetch everything once a new provider session exists
        if signal.name == "authenticated":
            audience.broadcast("reload")

    bus.notices.subscribe(push_notice)
    bus.signals.subscribe(log_signal)
    bus.signals.subscribe(on_signal)


async def start_background_tasks(app: web.Application):
    config = app[CONFIG]
    if config.spotify_access_token and not app[SESSION].authenticated:
        app[SESSION].replace(app[CLIENT_FACTORY](config.spotify_access_token))
        logger.info("🔑 Provider session loaded from SPOTIFY_ACCESS_TOKEN")

    if config.centralised_polling:
        app[POLL_LOOP].start()
        logger.info(f"🔁 Centralised polling every {config.poll_interval_ms}ms")

    app[BUS].system("start")


async def cleanup_background_tasks(app: web.Application):
    await app[POLL_LOOP].stop()
    client = app[SESSION].replace(None)
    if client is not None:
        await client.close()


def create_app(config: Optional[PartyConfig] = None,
               client_factory: Optional[Callable] = None) -> web.Application:
    """Create and configure the aiohttp application"""
    config = config or PartyConfig.from_env()
    if client_factory is None:
        def client_factory(token):
            return SpotifyClient(token, config.spotify_api_base, config.upstream_timeout)

    app = web.Application(middlewares=[rate_limit_middleware, error_middleware, session_middleware])

    cache = ResultCache(ttl=config.cache_ttl)
    audience = Audience()
    session = SessionSlot()
    bus = NotificationBus()
    interact = Interact(cache, market=config.market, search_query_limit=config.search_query_limit)
    poller = PlaybackPoller(session, audience, cache, interact.fetch_info)

    app[CONFIG] = config
    app[CACHE] = cache
    app[AUDIENCE] = audience
    app[SESSION] = session
    app[BUS] = bus
    app[INTERACT] = interact
    app[POLL_LOOP] = PollLoop(poller.tick, config.poll_interval)
    app[CLIENT_FACTORY] = client_factory
    app[RATE_LIMIT_STORE] = make_rate_limit_store()

    wire_bus(bus, audience)

    # Provider session
    app.router.add_post("/session", api_session_set)
    app.router.add_delete("/session", api_session_clear)

    # API routes
    app.router.add_get("/api/health", api_health)
    app.router.add_get("/api/info", api_info)
    app.router.add_get("/api/queue", api_queue)
    app.router.add_get("/api/search", api_search)
    app.router.add_get("/api/add", api_add)
    app.router.add_get("/api/artist/{id}", api_artist)
    app.router.add_get("/api/album/{id}", api_album)
    app.router.add_get("/api/play", api_play)
    app.router.add_get("/api/pause", api_pause)
    app.router.add_get("/api/skipForward", api_skip_forward)
    app.router.add_get("/api/skipBackward", api_skip_backward)

    # WebSocket for real-time playback updates
    app.router.add_get("/ws", ws_viewer)

    app.on_startup.append(start_background_tasks)
    app.on_cleanup.append(cleanup_background_tasks)

    logger.info("🎶 Party relay ready • Centralised polling • WebSocket enabled")
    return app


def get_local_ip():
    """Get local network IP address"""
    try:
        s = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
        s.connect(("8.8.8.8", 80))
        ip = s.getsockname()[0]
        s.close()
        return ip
    except Exception:
        return "localhost"


def main():
    config = PartyConfig.from_env()
    logging.basicConfig(
        level=logging.DEBUG if config.verbose else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )

    app = create_app(config)
    local_ip = get_local_ip()

    logger.info(f"🚀 Starting server on {config.host}:{config.port}")
    logger.info(f"💡 Access at: http://{local_ip}:{config.port}")

    web.run_app(app, host=config.host, port=config.port)


if __name__ == "__main__":
    main()
