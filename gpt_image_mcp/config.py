"""
Server configuration loaded from environment variables (and a .env file).
"""

import os
import tempfile
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field

from .payloads import DEFAULT_MODEL

_TRUE_VALUES = {"1", "true", "yes", "on"}


def _env_flag(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in _TRUE_VALUES


class ServerConfig(BaseModel):
    """Static configuration shared by every tool call"""

    openai_api_key: Optional[str] = None
    openai_base_url: Optional[str] = None
    azure_openai_api_key: Optional[str] = None
    azure_openai_api_version: str = "2024-02-01"
    azure_openai_endpoint: Optional[str] = None

    image_model: str = DEFAULT_MODEL
    default_save_dir: str = Field(default_factory=os.getcwd)
    strict_save_dir: bool = False
    temp_dir: Path = Field(default_factory=lambda: Path(tempfile.gettempdir()) / "gpt_image_mcp")

    log_level: str = "INFO"
    host: str = "0.0.0.0"
    port: int = 8080

    @property
    def api_key_configured(self) -> bool:
        return bool(self.openai_api_key or self.azure_openai_api_key)


def load_config(env_file: Optional[str] = None) -> ServerConfig:
    """Build a ServerConfig from the environment"""
    load_dotenv(env_file)

    temp_root = os.getenv("MCP_TEMP_DIR", tempfile.gettempdir())
    return ServerConfig(
        openai_api_key=os.getenv("OPENAI_API_KEY") or None,
        openai_base_url=os.getenv("OPENAI_BASE_URL") or None,
        azure_openai_api_key=os.getenv("AZURE_OPENAI_API_KEY") or None,
        azure_openai_api_version=os.getenv("AZURE_OPENAI_API_VERSION", "2024-02-01"),
        azure_openai_endpoint=os.getenv("AZURE_OPENAI_ENDPOINT") or None,
        image_model=os.getenv("OPENAI_IMAGE_MODEL", DEFAULT_MODEL),
        default_save_dir=os.path.abspath(os.getenv("IMAGE_SAVE_DIR") or os.getcwd()),
        strict_save_dir=_env_flag("IMAGE_MCP_STRICT_SAVE_DIR"),
        temp_dir=Path(temp_root) / "gpt_image_mcp",
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        host=os.getenv("HOST", "0.0.0.0"),
        port=int(os.getenv("PORT", "8080")),
    )
