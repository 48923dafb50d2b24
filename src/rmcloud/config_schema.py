"""Unified configuration schema for rmcloud.

Defines Pydantic models for the YAML config structure with dedicated
sections for the storage API, the tree cache, and logging.

Usage:
    from rmcloud.config_schema import build_config, yaml_fallbacks

    raw = load_hierarchical_config()
    unified = build_config(raw)
    config = load_config(yaml_fallbacks=yaml_fallbacks(unified))
"""

from __future__ import annotations

import logging
from typing import Any

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Section models
# ---------------------------------------------------------------------------


class CloudConfig(BaseModel):
    """Storage API connection settings.

    All fields are optional to support zero-config: env vars and CLI args
    can supply them at runtime instead.
    """

    url: str | None = Field(
        default=None, description="Storage API root URL"
    )
    token: str | None = Field(
        default=None, description="User token (bearer auth)"
    )
    insecure: bool = Field(
        default=False,
        description="Disable SSL verification (development only)",
    )
    debug: bool = Field(default=False, description="Enable debug mode")
    max_parallel_requests: int = Field(
        default=8,
        ge=1,
        le=100,
        description="Maximum concurrent blob requests (1-100)",
    )

    model_config = {"frozen": True}


class CacheConfig(BaseModel):
    """Tree cache location."""

    file: str | None = Field(
        default=None, description="Cache file path"
    )

    model_config = {"frozen": True}


class LoggingConfig(BaseModel):
    """Logging configuration.

    Attributes:
        level: Log level name (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        file: Optional log file path.
    """

    level: str = Field(default="INFO", description="Log level")
    file: str | None = Field(default=None, description="Log file path")

    model_config = {"frozen": True}


# ---------------------------------------------------------------------------
# Top-level unified config
# ---------------------------------------------------------------------------


class UnifiedConfig(BaseModel):
    """Top-level unified configuration.

    Every section has defaults, so ``UnifiedConfig()`` is always valid.
    """

    cloud: CloudConfig = Field(default_factory=CloudConfig)
    cache: CacheConfig = Field(default_factory=CacheConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    model_config = {"frozen": True}


def build_config(raw_data: dict) -> UnifiedConfig:
    """Construct a ``UnifiedConfig`` from the merged raw dict.

    Handles missing sections gracefully; anything absent gets defaults.
    """
    if not raw_data:
        return UnifiedConfig()

    return UnifiedConfig(**raw_data)


def yaml_fallbacks(unified: UnifiedConfig) -> dict[str, Any]:
    """Flatten the ``cloud`` and ``cache`` sections for ``load_config()``.

    Only values that were actually set are returned, so built-in defaults
    in ``load_config()`` still apply to the rest.
    """
    fallbacks = {
        k: v
        for k, v in unified.cloud.model_dump(exclude_unset=True).items()
        if v is not None
    }
    if unified.cache.file:
        fallbacks["file"] = unified.cache.file
    return fallbacks
