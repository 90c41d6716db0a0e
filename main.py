from __future__ import annotations

import argparse
import asyncio
import logging

from mcplink.config import get_settings
from mcplink.utils import setup_context_logging

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("main")


def parse_args():
    settings = get_settings()
    parser = argparse.ArgumentParser(description="mcplink API server")
    parser.add_argument("--host", default=settings.host)
    parser.add_argument("--port", type=int, default=settings.port)
    return parser.parse_args()


async def main_async():
    args = parse_args()
    settings = get_settings()
    logging.getLogger().setLevel(settings.log_level.upper())
    setup_context_logging()

    import uvicorn

    from mcplink.web.server import create_web_app

    logger.info(f"Starting mcplink API on {args.host}:{args.port}")
    config = uvicorn.Config(create_web_app(), host=args.host, port=args.port, log_level=settings.log_level)
    server = uvicorn.Server(config)
    await server.serve()


def main():
    try:
        asyncio.run(main_async())
    except KeyboardInterrupt:
        logger.info("Server stopped by user")


if __name__ == "__main__":
    main()
