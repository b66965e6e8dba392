"""
Provider response reconciliation.

Image responses are not uniform: an item may carry a URL to download, or
base64 data under one of several field names. Each item is first parsed
into a typed record (``RemoteImage`` or ``InlineImage``) using one fixed
priority order, then all image bytes are collected, and only then written
to disk. A failure anywhere discards the whole batch: files already written
for the call are removed and no paths are reported.
"""

import base64
import binascii
import logging
import os
from dataclasses import dataclass, field
from typing import Any, List, Mapping, Optional, Sequence, Tuple, Union

import aiofiles
import httpx

from .exceptions import ImageToolError, ResponseShapeError
from .save_dirs import SaveTarget

logger = logging.getLogger(__name__)

# Priority order for inline base64 payloads; "url" is checked before these.
INLINE_IMAGE_FIELDS: Tuple[str, ...] = ("b64_json", "image", "image_base64")


@dataclass(frozen=True)
class RemoteImage:
    url: str


@dataclass(frozen=True)
class InlineImage:
    field: str
    data: str


ImageItem = Union[RemoteImage, InlineImage]


@dataclass(frozen=True)
class TokenUsage:
    """Token accounting reported by the provider; missing counts stay None"""
    total_tokens: Optional[int] = None
    input_tokens: Optional[int] = None
    output_tokens: Optional[int] = None
    text_tokens: Optional[int] = None
    image_tokens: Optional[int] = None

    @classmethod
    def from_raw(cls, usage: Any) -> Optional["TokenUsage"]:
        if not isinstance(usage, Mapping):
            return None
        details = usage.get("input_tokens_details")
        if not isinstance(details, Mapping):
            details = {}
        return cls(
            total_tokens=usage.get("total_tokens"),
            input_tokens=usage.get("input_tokens"),
            output_tokens=usage.get("output_tokens"),
            text_tokens=details.get("text_tokens"),
            image_tokens=details.get("image_tokens"),
        )


@dataclass(frozen=True)
class ImageGenerationResult:
    """Outcome of one tool call"""
    success: bool
    error_message: Optional[str] = None
    saved_paths: Tuple[str, ...] = ()
    token_usage: Optional[TokenUsage] = None
    prompt: Optional[str] = None
    model: Optional[str] = None
    save_dir: Optional[str] = None
    save_dir_fallback: Optional[str] = None

    @classmethod
    def failure(cls, message: str, prompt: str = None, model: str = None) -> "ImageGenerationResult":
        return cls(success=False, error_message=message, prompt=prompt, model=model)


@dataclass
class _ParsedResponse:
    items: List[ImageItem] = field(default_factory=list)
    usage: Optional[TokenUsage] = None


def parse_image_item(item: Any, index: int = 0) -> ImageItem:
    """Classify one response item as a remote reference or inline data"""
    if not isinstance(item, Mapping):
        raise ResponseShapeError(f"Image item {index} is not an object")

    url = item.get("url")
    if isinstance(url, str) and url:
        return RemoteImage(url=url)

    for field_name in INLINE_IMAGE_FIELDS:
        value = item.get(field_name)
        if isinstance(value, str) and value:
            return InlineImage(field=field_name, data=value)

    keys = ", ".join(sorted(str(k) for k in item.keys())) or "none"
    raise ResponseShapeError(
        f"Image data not found in any recognized field (url, {', '.join(INLINE_IMAGE_FIELDS)}) "
        f"for item {index}; fields present: {keys}"
    )


def parse_image_response(raw: Any) -> _ParsedResponse:
    """Turn a raw provider response into typed items plus usage"""
    if not isinstance(raw, Mapping):
        raise ResponseShapeError("Unexpected API response structure: response is not an object")

    data = raw.get("data")
    if not isinstance(data, Sequence) or isinstance(data, (str, bytes)) or len(data) == 0:
        raise ResponseShapeError("Unexpected API response structure. Missing or empty data array.")

    items = [parse_image_item(item, i) for i, item in enumerate(data)]
    return _ParsedResponse(items=items, usage=TokenUsage.from_raw(raw.get("usage")))


def decode_inline_image(data: str) -> bytes:
    """Decode base64 image data, tolerating a data URL prefix"""
    if data.startswith("data:"):
        _, _, data = data.partition(",")
    # line-wrapped base64 is still valid
    data = "".join(data.split())
    try:
        image_bytes = base64.b64decode(data, validate=True)
    except (binascii.Error, ValueError) as e:
        raise ResponseShapeError(f"Failed to decode base64 image data: {e}")
    if not image_bytes:
        raise ResponseShapeError("Base64 image data is empty")
    return image_bytes


async def fetch_remote_image(http_client: Optional[httpx.AsyncClient], url: str) -> bytes:
    """Download image bytes referenced by a response item"""
    if http_client is None:
        raise ResponseShapeError(f"HTTP client not available to download image from URL: {url}")
    try:
        response = await http_client.get(url)
        response.raise_for_status()
    except (httpx.HTTPError, httpx.InvalidURL) as e:
        logger.error(f"Failed to download image from URL {url}: {e}")
        raise ResponseShapeError(f"Failed to download image from URL: {url} ({e})")
    if not response.content:
        raise ResponseShapeError(f"Downloaded image from URL is empty: {url}")
    return response.content


async def _load_item(item: ImageItem, http_client: Optional[httpx.AsyncClient]) -> bytes:
    if isinstance(item, RemoteImage):
        return await fetch_remote_image(http_client, item.url)
    return decode_inline_image(item.data)


async def _write_image(path: str, data: bytes) -> None:
    async with aiofiles.open(path, "wb") as f:
        await f.write(data)
    if os.path.getsize(path) == 0:
        _remove_files([path])
        raise ResponseShapeError(f"Image file is empty after write: {path}")


def _remove_files(paths: Sequence[str]) -> None:
    for path in paths:
        try:
            os.remove(path)
        except OSError as e:
            logger.warning(f"Could not remove partial image {path}: {e}")


async def reconcile_response(
    raw: Any,
    target: SaveTarget,
    count: int,
    http_client: Optional[httpx.AsyncClient] = None,
) -> ImageGenerationResult:
    """
    Persist the images of a provider response.

    Args:
        raw: Provider response as a plain mapping
        target: Directory, base file name and extension for the files
        count: Number of images requested
        http_client: Client used for URL items

    Returns:
        ImageGenerationResult with one absolute path per image on success,
        or a failure result with no paths
    """
    written: List[str] = []
    try:
        parsed = parse_image_response(raw)
        if len(parsed.items) != count:
            raise ResponseShapeError(
                f"Expected {count} image(s) but the API returned {len(parsed.items)}"
            )

        images = []
        for item in parsed.items:
            images.append(await _load_item(item, http_client))

        for index, image_bytes in enumerate(images):
            path = target.path_for(index, count)
            try:
                await _write_image(path, image_bytes)
            except OSError as e:
                raise ResponseShapeError(f"Failed to write image to {path}: {e}")
            written.append(path)
            logger.info(f"Image saved to: {path}")

    except ImageToolError as e:
        if written:
            logger.warning(f"Discarding {len(written)} image(s) written before failure")
            _remove_files(written)
        return ImageGenerationResult.failure(e.message)

    return ImageGenerationResult(
        success=True,
        saved_paths=tuple(written),
        token_usage=parsed.usage,
        save_dir=target.directory,
    )
