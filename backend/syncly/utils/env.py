import logging
import os

from dotenv import load_dotenv

logger = logging.getLogger(__name__)


def require_env(name: str) -> str:
    """Return the value of a mandatory environment variable or raise RuntimeError.
    WHY: Scripts (alembic, key generation) fail fast when configuration is missing.
    """
    value = os.getenv(name)
    if not value:
        load_env_file()
        value = os.getenv(name)
    if not value:
        raise RuntimeError(f"Missing required environment variable: {name}")
    return value


def load_env_file() -> None:
    """Load variables from a local .env file without overwriting existing ones."""
    loaded = load_dotenv(override=False)

    if loaded:
        logger.info("Loaded local .env file (existing variables were NOT overwritten)")
    else:
        logger.debug("No local .env file found or loaded")
