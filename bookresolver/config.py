import os
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional

from dotenv import load_dotenv
from loguru import logger

from bookresolver.errors import ConfigurationError

ENV_PATH = Path(__file__).resolve().parent.parent / ".env"

_TRUTHY = {"1", "true", "yes", "on"}


def _flag(value: Optional[str], default: bool) -> bool:
    if value is None: return default
    return value.strip().lower() in _TRUTHY


@dataclass(frozen=True)
class Settings:
    google_api_key: str
    central_service_url: str
    redis_url: str = "redis://localhost:6379"
    source_timeout: float = 10.0
    central_timeout: float = 15.0
    open_library_fallback: bool = True
    cache_queue_size: int = 100
    log_level: str = "INFO"
    log_json: bool = True

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Settings":
        """
        Build settings from the environment (and `.env`, when reading os.environ).
        Raises ConfigurationError listing every missing required variable.
        """
        if environ is None:
            load_dotenv(dotenv_path=ENV_PATH)
            environ = os.environ

        missing = [name for name in ("GOOGLE_API_KEY", "CENTRAL_SERVICE_URL") if not environ.get(name)]
        if missing:
            raise ConfigurationError(f"Missing required configuration: {', '.join(missing)}")

        try:
            return cls(
                google_api_key=environ["GOOGLE_API_KEY"],
                central_service_url=environ["CENTRAL_SERVICE_URL"],
                redis_url=environ.get("REDIS_URL", cls.redis_url),
                source_timeout=float(environ.get("SOURCE_TIMEOUT", cls.source_timeout)),
                central_timeout=float(environ.get("CENTRAL_TIMEOUT", cls.central_timeout)),
                open_library_fallback=_flag(environ.get("OPEN_LIBRARY_FALLBACK"), cls.open_library_fallback),
                cache_queue_size=int(environ.get("CACHE_QUEUE_SIZE", cls.cache_queue_size)),
                log_level=environ.get("LOG_LEVEL", cls.log_level).upper(),
                log_json=_flag(environ.get("LOG_JSON"), cls.log_json),
            )
        except ValueError as e:
            raise ConfigurationError(f"Invalid numeric setting: {e}") from e


def configure_logging(level: str = "INFO", serialize: bool = True) -> None:
    logger.remove()
    logger.add(
        sys.stderr,
        serialize=serialize,
        enqueue=True,
        level=level,
        format="{time} {level} {message}",
    )
