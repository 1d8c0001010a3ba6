"""
Configurable logging setup for the Grofvuil API.

Loads the logging configuration from a YAML file.
"""
import logging
import logging.config
from pathlib import Path

import yaml

DEFAULT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def setup_logging(config_path: str = None, default_level: int = logging.INFO):
    """
    Configure logging from a YAML file.

    Args:
        config_path: Path to the YAML configuration file.
                     If None, uses api/config/logging_config.yaml
        default_level: Logging level used when the configuration cannot be loaded
    """
    if config_path is None:
        config_path = Path(__file__).parent / "logging_config.yaml"

    config_path = Path(config_path)

    if config_path.exists():
        try:
            with open(config_path, "r", encoding="utf-8") as f:
                config = yaml.safe_load(f)

            # File handlers write below logs/
            Path("logs").mkdir(exist_ok=True)

            logging.config.dictConfig(config)

            logger = logging.getLogger(__name__)
            logger.info(f"Logging configured from: {config_path}")

        except (OSError, ValueError, yaml.YAMLError) as e:
            logging.basicConfig(level=default_level, format=DEFAULT_FORMAT)
            logging.error(f"Failed to load logging configuration: {e}")
            logging.warning("Using default logging configuration")
    else:
        logging.basicConfig(level=default_level, format=DEFAULT_FORMAT)
        logging.warning(f"Logging configuration not found: {config_path}")
        logging.info("Using default logging configuration")


def get_logger(name: str) -> logging.Logger:
    """
    Return a configured logger.

    Args:
        name: Logger name (usually the module's __name__)

    Returns:
        Configured logger
    """
    return logging.getLogger(name)
