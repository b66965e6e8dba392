"""
Application context passed to every tool handler.
"""

import logging
from typing import Any, Optional

import httpx
from pydantic import BaseModel, ConfigDict

from .config import ServerConfig
from .masks import cleanup_temp_masks
from .provider import OpenAIImageProvider

logger = logging.getLogger(__name__)


class AppContext(BaseModel):
    """Application context with shared resources"""
    model_config = ConfigDict(arbitrary_types_allowed=True)

    config: ServerConfig
    # anything with create_image / edit_image / list_models
    provider: Any
    http_client: Optional[httpx.AsyncClient] = None

    async def aclose(self) -> None:
        if self.http_client is not None:
            await self.http_client.aclose()
        try:
            removed = cleanup_temp_masks(self.config.temp_dir)
            if removed:
                logger.info(f"Removed {removed} stale mask file(s)")
        except OSError as e:
            logger.warning(f"Temp cleanup failed: {e}")


def create_app_context(config: ServerConfig) -> AppContext:
    """Build the provider client and pooled HTTP client for ``config``"""
    config.temp_dir.mkdir(parents=True, exist_ok=True)
    logger.info(f"Temporary directory: {config.temp_dir}")

    http_client = httpx.AsyncClient(
        follow_redirects=True,
        timeout=httpx.Timeout(30.0, connect=10.0),
        limits=httpx.Limits(max_connections=20, max_keepalive_connections=10),
    )
    return AppContext(
        config=config,
        provider=OpenAIImageProvider.from_config(config),
        http_client=http_client,
    )
