"""Application entry point"""

import logging
import sys
from pathlib import Path

# Add the project root to the path
sys.path.insert(0, str(Path(__file__).parent))

import uvicorn

from config.settings import settings
from api.main import app

logger = logging.getLogger(__name__)


def main():
    """Run the API server"""
    logger.info("=" * 60)
    logger.info("Christmas Card Generator starting")
    logger.info(f"Persons snapshot: {settings.PERSONS_DATA_PATH}")
    logger.info(f"Gallery: {settings.GALLERY_DIR}")
    logger.info(f"Gemini: {'configured' if settings.GEMINI_API_KEY else 'not configured, using fallback greetings'}")
    logger.info("=" * 60)

    try:
        uvicorn.run(
            app,
            host=settings.API_HOST,
            port=settings.API_PORT,
            log_level=settings.LOG_LEVEL.lower()
        )
    except KeyboardInterrupt:
        logger.info("Received exit signal (Ctrl+C)")
    except Exception as e:
        logger.error(f"Critical error: {e}", exc_info=True)
        sys.exit(1)
    finally:
        logger.info("Christmas Card Generator stopped")


if __name__ == "__main__":
    main()
