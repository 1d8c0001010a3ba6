import uvicorn
import os

from api.config.logging_setup import get_logger, setup_logging
from api.config.settings import get_settings

# Configure logging from the YAML file
setup_logging()

logger = get_logger(__name__)


def main():
    """Start the API server locally."""
    settings = get_settings()
    host = settings.grofvuil_host
    port = settings.grofvuil_port
    reload = os.environ.get("GROFVUIL_RELOAD", "false").lower() in ("1", "true", "yes")

    logger.info(f"Starting API on http://{host}:{port}")

    uvicorn.run(
        "api.main:app",
        host=host,
        port=port,
        reload=reload,
        reload_dirs=["api/"],
        reload_includes=["*.py"],
        log_config=None  # Use the configuration initialized above
    )


if __name__ == "__main__":
    main()
