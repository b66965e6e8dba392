"""
Request payload assembly for the Images API.

Only values the API is known to accept are forwarded. Anything else is left
out so the provider applies its own default instead of rejecting the call.
"""

from typing import Any, Dict

from .schemas import ImageGenerationOptions
from .sizes import normalize_size

DEFAULT_MODEL = "gpt-image-1"
DEFAULT_OUTPUT_FORMAT = "png"

QUALITY_VALUES = frozenset({"high", "medium", "low", "auto"})
BACKGROUND_VALUES = frozenset({"transparent", "opaque", "auto"})
MODERATION_VALUES = frozenset({"low", "auto"})
OUTPUT_FORMAT_VALUES = frozenset({"png", "jpeg", "webp"})
COMPRESSIBLE_FORMATS = frozenset({"jpeg", "webp"})


def _valid_compression(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and 0 <= value <= 100


def effective_output_format(options: ImageGenerationOptions) -> str:
    """File format the provider will return for ``options``"""
    if options.output_format in OUTPUT_FORMAT_VALUES:
        return options.output_format
    return DEFAULT_OUTPUT_FORMAT


def build_request_payload(
    prompt: str,
    options: ImageGenerationOptions,
    model: str = DEFAULT_MODEL,
) -> Dict[str, Any]:
    """
    Build Images API parameters from normalized tool options.

    Args:
        prompt: Text prompt
        options: Caller options
        model: Image model name

    Returns:
        Keyword arguments for images.generate / images.edit (without image files)
    """
    params: Dict[str, Any] = {
        "model": model,
        "prompt": prompt,
        "n": options.count,
        "size": normalize_size(options.size).value,
    }

    if options.quality in QUALITY_VALUES:
        params["quality"] = options.quality
    if options.background in BACKGROUND_VALUES:
        params["background"] = options.background
    if options.moderation in MODERATION_VALUES:
        params["moderation"] = options.moderation
    if options.output_format in OUTPUT_FORMAT_VALUES:
        params["output_format"] = options.output_format

    # compression only applies to lossy formats
    if options.output_format in COMPRESSIBLE_FORMATS and _valid_compression(options.output_compression):
        params["output_compression"] = options.output_compression

    return params
