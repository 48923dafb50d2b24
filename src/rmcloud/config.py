"""Runtime configuration for the rmcloud client.

Reads storage API settings from CLI args, environment variables,
.env files, and YAML config file fallbacks.

Precedence (highest to lowest):
    CLI args > Environment variables > .env file > YAML config > Built-in defaults

Environment variables:
    RMCLOUD_URL: Storage API root (optional, default: reMarkable internal cloud)
    RMCLOUD_TOKEN: User token sent as bearer auth (required)
    RMCLOUD_INSECURE: Skip SSL verification (optional, default: false)
    RMCLOUD_DEBUG: Enable debug logging (optional, default: false)
    RMCLOUD_CACHE_FILE: Tree cache location (optional)
    RMCLOUD_MAX_PARALLEL_REQUESTS: Max parallel blob requests (optional, default: 8)
"""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from urllib.parse import urlparse

logger = logging.getLogger(__name__)

DEFAULT_STORAGE_URL = "https://internal.cloud.remarkable.com"


def default_cache_path() -> Path:
    """Return the OS cache location for the tree cache file."""
    base = os.getenv("XDG_CACHE_HOME")
    root = Path(base) if base else Path.home() / ".cache"
    return root / "rmcloud" / "tree.cache"


@dataclass
class Config:
    token: str
    storage_url: str = DEFAULT_STORAGE_URL
    insecure: bool = False
    debug: bool = False
    max_parallel_requests: int = 8
    cache_path: Path = field(default_factory=default_cache_path)


def validate_config(config: Config) -> None:
    """Validate configuration values and raise ValueError if invalid.

    Args:
        config: Config instance to validate.

    Raises:
        ValueError: If URL format is invalid or the token is empty.
    """
    config.storage_url = config.storage_url.strip()

    if not config.storage_url.startswith(("http://", "https://")):
        raise ValueError(
            f"Invalid storage URL '{config.storage_url}': must start with http:// or https://"
        )

    parsed = urlparse(config.storage_url)
    if not parsed.hostname:
        raise ValueError(
            f"Invalid storage URL '{config.storage_url}': URL must include a hostname"
        )

    config.storage_url = config.storage_url.removesuffix("/")

    if not config.token.strip():
        raise ValueError(
            "Token cannot be empty. Set RMCLOUD_TOKEN environment variable."
        )

    if not (1 <= config.max_parallel_requests <= 100):
        raise ValueError(
            f"Invalid max_parallel_requests {config.max_parallel_requests}: must be between 1 and 100"
        )

    if config.insecure:
        logger.warning(
            "WARNING: SSL verification disabled (insecure=True). Use only for development."
        )


def _get_bool_env(key: str) -> bool | None:
    """Return True/False from env var, or None if unset."""
    val = os.getenv(key)
    if val is None:
        return None
    return val.lower() in ("true", "1", "yes", "on")


def load_config(
    url: str | None = None,
    token: str | None = None,
    cache_file: str | None = None,
    insecure: bool = False,
    debug: bool = False,
    yaml_fallbacks: dict | None = None,
) -> Config:
    """Load configuration with unified precedence.

    Resolution order for each field (highest to lowest):
        CLI arg > env var / .env > yaml_fallbacks > built-in default

    The caller is responsible for calling ``load_dotenv()`` before this
    function so that .env values are available via ``os.getenv()``.

    Args:
        url: Override storage URL.
        token: Override user token.
        cache_file: Override cache file path.
        insecure: Skip SSL verification (CLI flag).
        debug: Enable debug logging (CLI flag).
        yaml_fallbacks: Flat dict of values from the YAML ``cloud`` and
            ``cache`` sections, used when CLI arg and env var are unset.

    Returns:
        Validated Config instance.

    Raises:
        ValueError: If the token is missing after checking all sources,
            or any value is out of range.
    """
    fb = yaml_fallbacks or {}

    storage_url = (
        url or os.getenv("RMCLOUD_URL") or fb.get("url") or DEFAULT_STORAGE_URL
    )

    user_token = token or os.getenv("RMCLOUD_TOKEN") or fb.get("token")
    if not user_token:
        raise ValueError(
            "Token not found. Set RMCLOUD_TOKEN environment variable, "
            "pass --token CLI argument, or add 'token' to config.yml."
        )

    cache_raw = (
        cache_file or os.getenv("RMCLOUD_CACHE_FILE") or fb.get("file")
    )
    cache_path = (
        Path(cache_raw).expanduser() if cache_raw else default_cache_path()
    )

    if insecure:
        final_insecure = True
    else:
        env_insecure = _get_bool_env("RMCLOUD_INSECURE")
        if env_insecure is not None:
            final_insecure = env_insecure
        else:
            final_insecure = bool(fb.get("insecure", False))

    if debug:
        final_debug = True
    else:
        env_debug = _get_bool_env("RMCLOUD_DEBUG")
        if env_debug is not None:
            final_debug = env_debug
        else:
            final_debug = bool(fb.get("debug", False))

    max_parallel_raw = os.getenv("RMCLOUD_MAX_PARALLEL_REQUESTS")
    if max_parallel_raw is not None:
        try:
            final_max_parallel = int(max_parallel_raw)
        except ValueError:
            raise ValueError(
                f"Invalid RMCLOUD_MAX_PARALLEL_REQUESTS '{max_parallel_raw}': must be a number between 1 and 100"
            ) from None
    elif "max_parallel_requests" in fb:
        final_max_parallel = int(fb["max_parallel_requests"])
    else:
        final_max_parallel = 8

    config = Config(
        token=user_token.strip(),
        storage_url=storage_url,
        insecure=final_insecure,
        debug=final_debug,
        max_parallel_requests=final_max_parallel,
        cache_path=cache_path,
    )

    validate_config(config)

    return config
