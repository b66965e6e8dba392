"""
Shared fixtures for the GPT-Image MCP test suite
"""

import base64
import io
import sys
from pathlib import Path

import pytest
from PIL import Image

sys.path.append(str(Path(__file__).parent.parent))

from gpt_image_mcp.config import ServerConfig
from gpt_image_mcp.context import AppContext
from gpt_image_mcp.exceptions import ProviderRequestError

IMAGE_BYTES = b"\x89PNG\r\n\x1a\nfake image payload"
IMAGE_B64 = base64.b64encode(IMAGE_BYTES).decode()


def make_png(width: int = 32, height: int = 32, color=(200, 30, 30)) -> bytes:
    """Small solid-color PNG"""
    buffer = io.BytesIO()
    Image.new("RGB", (width, height), color).save(buffer, format="PNG")
    return buffer.getvalue()


class StubImageProvider:
    """In-memory provider that records every request"""

    def __init__(self, response=None, error=None, models=("gpt-image-1",)):
        self.response = response
        self.error = error
        self.models = list(models)
        self.calls = []

    def _respond(self, payload):
        if self.error is not None:
            raise self.error
        if self.response is not None:
            return self.response
        return {
            "data": [{"b64_json": IMAGE_B64} for _ in range(payload["n"])],
            "usage": {"total_tokens": 30, "input_tokens": 10, "output_tokens": 20},
        }

    async def create_image(self, payload):
        self.calls.append({"kind": "generate", "payload": payload})
        return self._respond(payload)

    async def edit_image(self, payload, images, mask=None):
        self.calls.append({"kind": "edit", "payload": payload, "images": images, "mask": mask})
        return self._respond(payload)

    async def list_models(self):
        self.calls.append({"kind": "models"})
        if self.error is not None:
            raise ProviderRequestError(f"API key validation failed: {self.error}")
        return self.models


@pytest.fixture
def provider():
    return StubImageProvider()


@pytest.fixture
def save_dir(tmp_path):
    path = tmp_path / "output"
    path.mkdir()
    return path


@pytest.fixture
def app_context(tmp_path, save_dir, provider):
    config = ServerConfig(
        openai_api_key="sk-test",
        default_save_dir=str(save_dir),
        temp_dir=tmp_path / "temp",
    )
    config.temp_dir.mkdir()
    return AppContext(config=config, provider=provider, http_client=None)


@pytest.fixture
def input_image(tmp_path):
    path = tmp_path / "input.png"
    path.write_bytes(make_png(64, 48))
    return path
