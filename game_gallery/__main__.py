"""Run the Game Gallery backend: python -m game_gallery"""

import logging
import sys

import aiohttp.web as web

from .config import Settings
from .errors import ConfigError
from .web import create_app

logger = logging.getLogger("game_gallery")


def main() -> int:
    settings = Settings.from_env()
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    )

    try:
        settings.validate()
    except ConfigError as e:
        logger.error(f"Configuration error: {e}")
        return 1

    logger.info(f"Server starting on http://0.0.0.0:{settings.port}")
    web.run_app(create_app(settings), port=settings.port, print=None)
    return 0


if __name__ == "__main__":
    sys.exit(main())
