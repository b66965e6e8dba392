"""
OpenAI Images API provider.

Thin async wrapper around the OpenAI SDK. Responses are handed back as plain
dicts so the reconciler sees whatever shape the API returned; SDK errors are
converted to ProviderRequestError.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import aiofiles
import openai
from openai import AsyncAzureOpenAI, AsyncOpenAI

from .exceptions import ProviderRequestError

logger = logging.getLogger(__name__)

# images.edit keyword arguments; anything else in the payload goes through extra_body
_EDIT_PARAMS = frozenset({
    "model", "prompt", "n", "size", "quality", "background",
    "output_format", "output_compression",
})

_MIME_TYPES = {
    ".png": "image/png",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".webp": "image/webp",
    ".gif": "image/gif",
}


@dataclass(frozen=True)
class ImageUpload:
    """An image file to send in a multipart request"""
    filename: str
    data: bytes
    mime_type: str = "image/png"

    def as_file(self):
        return (self.filename, self.data, self.mime_type)


async def load_upload(file_path: Union[str, Path]) -> ImageUpload:
    """Read an image file for upload, guessing the mime type from its extension"""
    file_path = Path(file_path)
    async with aiofiles.open(file_path, "rb") as f:
        data = await f.read()
    mime_type = _MIME_TYPES.get(file_path.suffix.lower(), "image/png")
    return ImageUpload(filename=file_path.name, data=data, mime_type=mime_type)


def _error_message(error: openai.APIError) -> str:
    body = getattr(error, "body", None)
    if isinstance(body, dict):
        # the SDK sometimes unwraps {"error": {...}} and sometimes not
        inner = body.get("error", body)
        if isinstance(inner, dict) and inner.get("message"):
            return inner["message"]
    return getattr(error, "message", None) or str(error)


def _to_dict(response: Any) -> Dict[str, Any]:
    if hasattr(response, "model_dump"):
        return response.model_dump(exclude_none=True)
    if isinstance(response, dict):
        return response
    raise ProviderRequestError(f"Unexpected response type from image API: {type(response).__name__}")


class OpenAIImageProvider:
    """Images API client used by the tool handlers"""

    def __init__(self, client: Union[AsyncOpenAI, AsyncAzureOpenAI, None]):
        self.client = client

    @classmethod
    def from_config(cls, config) -> "OpenAIImageProvider":
        """Build the SDK client from a ServerConfig (Azure when configured)"""
        if config.azure_openai_api_key:
            client = AsyncAzureOpenAI(
                api_key=config.azure_openai_api_key,
                api_version=config.azure_openai_api_version,
                azure_endpoint=config.azure_openai_endpoint or "",
            )
            logger.info("Initialized Azure OpenAI client")
        elif config.openai_api_key:
            client = AsyncOpenAI(api_key=config.openai_api_key, base_url=config.openai_base_url)
            logger.info("Initialized OpenAI client")
        else:
            logger.warning("No OpenAI API key found - image tools will fail until OPENAI_API_KEY is set")
            client = None
        return cls(client)

    @property
    def configured(self) -> bool:
        return self.client is not None

    def _require_client(self):
        if self.client is None:
            raise ProviderRequestError("OpenAI API key not configured. Please set OPENAI_API_KEY environment variable.")
        return self.client

    async def create_image(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        """POST /images/generations"""
        client = self._require_client()
        try:
            response = await client.images.generate(**payload)
        except openai.APIError as e:
            message = _error_message(e)
            logger.error(f"Image generation request failed: {message}")
            raise ProviderRequestError(
                f"GPT-Image API Error: {message}", status_code=getattr(e, "status_code", None)
            )
        return _to_dict(response)

    async def edit_image(
        self,
        payload: Dict[str, Any],
        images: List[ImageUpload],
        mask: Optional[ImageUpload] = None,
    ) -> Dict[str, Any]:
        """POST /images/edits (multipart) with one or more input images"""
        client = self._require_client()
        params = {k: v for k, v in payload.items() if k in _EDIT_PARAMS}
        extra_body = {k: v for k, v in payload.items() if k not in _EDIT_PARAMS}
        if len(images) == 1:
            params["image"] = images[0].as_file()
        else:
            params["image"] = [image.as_file() for image in images]
        if mask is not None:
            params["mask"] = mask.as_file()
        if extra_body:
            params["extra_body"] = extra_body

        try:
            response = await client.images.edit(**params)
        except openai.APIError as e:
            message = _error_message(e)
            logger.error(f"Image edit request failed: {message}")
            raise ProviderRequestError(
                f"GPT-Image API Error: {message}", status_code=getattr(e, "status_code", None)
            )
        return _to_dict(response)

    async def list_models(self) -> List[str]:
        """GET /models, used to check the API key"""
        client = self._require_client()
        try:
            page = await client.models.list()
        except openai.APIError as e:
            message = _error_message(e)
            logger.error(f"Model listing failed: {message}")
            raise ProviderRequestError(f"API key validation failed: {message}")
        return [model.id for model in page.data]

