"""
Runs the writing practice bot together with a small HTTP healthcheck server.
"""

import asyncio
import logging
import sys
from typing import Optional

from aiohttp import web

from bots.writing_bot import WritingBot
from core.config import Config

logger = logging.getLogger(__name__)


def configure_logging(log_level: str):
    level = getattr(logging, (log_level or "INFO").strip().upper(), logging.INFO)
    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[logging.StreamHandler(sys.stdout)]
    )


async def _handle_health(_: web.Request) -> web.Response:
    return web.Response(text="OK")


def create_web_app() -> web.Application:
    app = web.Application()
    app.router.add_get("/", _handle_health)
    app.router.add_get("/health", _handle_health)
    return app


async def start_web_server(app: web.Application, port: int) -> web.AppRunner:
    """Start aiohttp healthcheck server on port."""
    runner = web.AppRunner(app)
    await runner.setup()
    site = web.TCPSite(runner, host="0.0.0.0", port=port)
    await site.start()
    logger.info(f"Healthcheck: http://0.0.0.0:{port}/health")
    return runner


async def main():
    """Start the HTTP server and the bot."""
    configure_logging(Config.LOG_LEVEL)

    if not Config.validate():
        logger.error("Invalid configuration: BOT_TOKEN and OPENAI_API_KEY must be set (see .env)")
        return

    web_runner: Optional[web.AppRunner] = None
    try:
        web_runner = await start_web_server(create_web_app(), Config.PORT)
    except OSError as e:
        logger.error(f"Could not start HTTP server on port {Config.PORT}: {e}", exc_info=True)
        logger.warning("Continuing without healthcheck")

    bot = WritingBot()
    try:
        await bot.start()
    finally:
        await bot.close()
        if web_runner:
            await web_runner.cleanup()
        logger.info("Writing Bot stopped")


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        logger.info("Stopping bot...")
