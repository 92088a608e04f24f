import uvicorn

from pgdeck.api import create_app
from pgdeck.config import load_settings
from pgdeck.logging_config import get_logger

logger = get_logger(__name__)


def main():
    settings = load_settings()
    if not settings.database_url:
        logger.error("PGDECK_DATABASE_URL is not set")
        raise SystemExit(2)

    uvicorn.run(create_app(settings), host=settings.host, port=settings.port, log_level="info")


if __name__ == "__main__":
    main()
