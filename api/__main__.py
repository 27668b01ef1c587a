"""Command line interface for running the API server."""
import logging

import uvicorn

from config import settings_conf

# Configure logging
logging.basicConfig(
    level=settings_conf['log_level'],
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


def main():
    """Run the API server; the app's lifespan opens and closes the database."""
    logger.info(f"Starting API on {settings_conf['host']}:{settings_conf['port']}")
    uvicorn.run(
        "api:app",
        host=settings_conf['host'],
        port=settings_conf['port'],
        log_level=settings_conf['log_level'].lower()
    )


if __name__ == "__main__":
    main()
