"""Pass-through relay that forwards chat completion requests and streams the reply back."""

import asyncio
import logging
from typing import Optional

import aiohttp
from aiohttp import web

from ..translation.client import RELAY_REFERER, RELAY_TITLE

logger = logging.getLogger(__name__)

TARGET_URL_HEADER = "x-target-url"
CLIENT_SESSION_KEY = web.AppKey("client_session", aiohttp.ClientSession)


async def relay_handler(request: web.Request) -> web.StreamResponse:
    """Forward the JSON body to {x-target-url}/chat/completions and relay the event stream."""
    target_url = request.headers.get(TARGET_URL_HEADER)
    if not target_url:
        return web.json_response({"error": "Missing x-target-url header"}, status=400)

    try:
        body = await request.json()
        session = request.app[CLIENT_SESSION_KEY]
        headers = {
            "Content-Type": "application/json",
            "Authorization": request.headers.get("Authorization", ""),
            "HTTP-Referer": RELAY_REFERER,
            "X-Title": RELAY_TITLE,
        }
        upstream_url = f"{target_url.rstrip('/')}/chat/completions"
        logger.debug(f"Relaying request to {upstream_url}")

        async with session.post(upstream_url, headers=headers, json=body) as upstream:
            if not upstream.ok:
                error_text = await upstream.text()
                logger.warning(f"Upstream returned {upstream.status}: {error_text[:200]}")
                return web.Response(text=error_text, status=upstream.status, reason=upstream.reason)

            response = web.StreamResponse(headers={
                "Content-Type": "text/event-stream",
                "Cache-Control": "no-cache",
                "Connection": "keep-alive",
            })
            await response.prepare(request)
            try:
                async for chunk in upstream.content.iter_any():
                    await response.write(chunk)
            except (aiohttp.ClientError, ConnectionResetError) as e:
                # Headers are already sent; the client sees a truncated stream.
                logger.warning(f"Upstream stream interrupted: {e!r}")
                return response
            await response.write_eof()
            return response
    except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as e:
        logger.error(f"Relay error: {e}", exc_info=True)
        return web.json_response({"error": str(e)}, status=500)


async def _client_session_context(app: web.Application):
    app[CLIENT_SESSION_KEY] = aiohttp.ClientSession()
    yield
    await app[CLIENT_SESSION_KEY].close()


def create_relay_app() -> web.Application:
    """Build the relay application exposing POST /api/chat."""
    app = web.Application()
    app.cleanup_ctx.append(_client_session_context)
    app.router.add_post("/api/chat", relay_handler)
    return app


def run_relay(host: str = "127.0.0.1", port: int = 8787, app: Optional[web.Application] = None) -> None:
    """Serve the relay until interrupted."""
    logger.info(f"Starting relay on http://{host}:{port}/api/chat")
    web.run_app(app or create_relay_app(), host=host, port=port, print=None)
