"""
Size normalization for gpt-image-1.

The Images API only accepts a handful of sizes. Callers (usually an LLM) ask
for whatever they like, so requested sizes are mapped onto the closest
supported one instead of being rejected.
"""

import logging
import re
from enum import Enum
from typing import Optional, Tuple

logger = logging.getLogger(__name__)

_SIZE_RE = re.compile(r"^\s*(\d+)\s*[xX]\s*(\d+)\s*$")

# Scale applied to the aspect-ratio difference before the area difference is added.
ASPECT_RATIO_WEIGHT = 1000


class ImageSize(str, Enum):
    AUTO = "auto"
    SQUARE = "1024x1024"
    PORTRAIT = "1024x1536"
    LANDSCAPE = "1536x1024"

    def __str__(self) -> str:
        return self.value

    @property
    def dimensions(self) -> Optional[Tuple[int, int]]:
        """(width, height), or None for AUTO"""
        if self is ImageSize.AUTO:
            return None
        width, height = self.value.split("x")
        return int(width), int(height)


SUPPORTED_SIZES: Tuple[ImageSize, ...] = (
    ImageSize.SQUARE,
    ImageSize.PORTRAIT,
    ImageSize.LANDSCAPE,
)


def parse_dimensions(size: str) -> Optional[Tuple[int, int]]:
    """Parse 'WIDTHxHEIGHT' into positive integers, or None"""
    match = _SIZE_RE.match(size)
    if not match:
        return None
    width, height = int(match.group(1)), int(match.group(2))
    if width <= 0 or height <= 0:
        return None
    return width, height


def size_score(requested: Tuple[int, int], candidate: Tuple[int, int]) -> float:
    """Closeness score between two sizes, lower is closer."""
    req_w, req_h = requested
    cand_w, cand_h = candidate
    ratio_difference = abs(req_w / req_h - cand_w / cand_h)
    area_difference = abs(req_w * req_h - cand_w * cand_h)
    return ratio_difference * ASPECT_RATIO_WEIGHT + area_difference


def normalize_size(size: Optional[str] = None) -> ImageSize:
    """
    Map a requested size onto a supported gpt-image-1 size.

    Never raises: anything that is not 'auto', a supported size or a
    parseable WIDTHxHEIGHT string degrades to ImageSize.AUTO.

    Args:
        size: Requested size string, e.g. '1024x1024', '800x600' or 'auto'

    Returns:
        A supported ImageSize, or ImageSize.AUTO
    """
    if not size or size == ImageSize.AUTO.value:
        return ImageSize.AUTO

    for supported in SUPPORTED_SIZES:
        if size == supported.value:
            return supported

    requested = parse_dimensions(size)
    if requested is None:
        logger.warning(f"Size '{size}' is not in the format WIDTHxHEIGHT; normalized to 'auto'")
        return ImageSize.AUTO

    closest = SUPPORTED_SIZES[0]
    best_score = float("inf")
    for supported in SUPPORTED_SIZES:
        score = size_score(requested, supported.dimensions)
        # strict comparison keeps the first candidate on ties
        if score < best_score:
            best_score = score
            closest = supported

    logger.warning(f"Requested size '{size}' adjusted to closest supported size '{closest.value}'")
    return closest
