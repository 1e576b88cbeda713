"""
Main entrypoint: FastAPI server for the verification registry.

Opens the registry in REGISTRY_DB_URL (constructing it as REGISTRY_OWNER when the
store is empty) and serves it on API_HOST:API_PORT.

Env: REGISTRY_DB_URL, REGISTRY_OWNER, REGISTRY_CALLER_HEADER, API_HOST, API_PORT, LOG_LEVEL.

Equivalent: uvicorn verification_registry.api_server.app:app --host 0.0.0.0 --port 8000
"""

import sys

# Configure structured JSON logging before other imports that may log
from verification_registry.registry_logging import configure_logging, get_logger

logger = get_logger("main")


def main() -> None:
    """Resolve settings, then run the API server in the main thread."""
    from verification_registry.config import get_settings

    try:
        settings = get_settings()
    except ValueError as e:
        logger.error("main_config_error", message=str(e))
        sys.exit(1)

    configure_logging(settings.log_level)
    from verification_registry.api_server.server import create_app
    import uvicorn

    app = create_app(settings=settings)
    logger.info("main_server_starting", host=settings.api_host, port=settings.api_port)
    uvicorn.run(app, host=settings.api_host, port=settings.api_port, log_level=settings.log_level.lower())


if __name__ == "__main__":
    main()
