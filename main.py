"""
Main entrypoint: FastAPI server for the ACME metrics service.

Env: ACCUMULATE_API_V3_URL, ACCUMULATE_API_V2_URL, DATABASE_URL or TIMESTAMP_DB_PATH,
API_HOST, API_PORT, CACHE_WARM_INTERVAL_SEC, LOG_LEVEL, LOG_FORMAT.

Equivalent: uvicorn acme_metrics.api_server.app:app --host 0.0.0.0 --port 8080
"""

import os

# Configure structured logging before other imports that may log
from acme_metrics.logging import get_logger

logger = get_logger("main")


def main() -> None:
    """Open the timestamp store, then run the API server in the main thread."""
    from acme_metrics.config import get_settings
    from acme_metrics.database import get_timestamp_store

    settings = get_settings()
    get_timestamp_store(settings.database_url)
    logger.info(
        "main_config_loaded",
        api_v3_url=settings.api_v3_url,
        cache_ttl_sec=settings.cache_ttl_sec,
        warm_interval_sec=settings.cache_warm_interval_sec,
    )

    from acme_metrics.api_server.app import app
    import uvicorn

    logger.info("main_server_starting", host=settings.api_host, port=settings.api_port)
    uvicorn.run(app, host=settings.api_host, port=settings.api_port, log_level=os.getenv("LOG_LEVEL", "info").lower())


if __name__ == "__main__":
    main()
