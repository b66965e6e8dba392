"""
Text responses returned to the MCP client.
"""

from typing import List, Optional, Sequence

from .results import ImageGenerationResult, TokenUsage

GENERATE_ERROR_PREFIX = "Error generating image"
EDIT_ERROR_PREFIX = "Error editing image"
IMAGE_TO_IMAGE_ERROR_PREFIX = "Error generating image from input image"
MULTI_EDIT_ERROR_PREFIX = "Error editing multiple images"
VALIDATE_ERROR_PREFIX = "Error validating API key"


def _plural(count: int, word: str) -> str:
    return f"{count} {word}{'' if count == 1 else 's'}"


def format_failure(prefix: str, message: Optional[str]) -> str:
    return f"{prefix}: {message or 'unknown error'}"


def format_usage(usage: Optional[TokenUsage]) -> List[str]:
    if usage is None:
        return []
    lines = ["Token usage:"]
    for label, value in (
        ("Total tokens", usage.total_tokens),
        ("Input tokens", usage.input_tokens),
        ("Output tokens", usage.output_tokens),
        ("Text tokens", usage.text_tokens),
        ("Image tokens", usage.image_tokens),
    ):
        if value is not None:
            lines.append(f"- {label}: {value}")
    return lines if len(lines) > 1 else []


def format_result(
    result: ImageGenerationResult,
    summary: str,
    inputs: Sequence[str] = (),
    saved_label: str = "Image",
) -> str:
    """
    Success text: summary, inputs, prompt, token usage and saved paths.

    Args:
        result: Successful tool result
        summary: First line, e.g. "Successfully generated 2 images using gpt-image-1."
        inputs: Lines describing the input files
        saved_label: Noun used in the "saved to" header
    """
    count = len(result.saved_paths)
    lines = [summary, ""]
    if inputs:
        lines.extend(inputs)
    lines.append(f'Prompt: "{result.prompt}"')
    lines.append("")

    usage_lines = format_usage(result.token_usage)
    if usage_lines:
        lines.extend(usage_lines)
        lines.append("")

    if result.save_dir_fallback:
        lines.append(f"Note: requested save directory was unusable ({result.save_dir_fallback}); "
                     f"images were saved to {result.save_dir}")
        lines.append("")

    lines.append(f"{saved_label}{'' if count == 1 else 's'} saved to:")
    lines.extend(f"- {path}" for path in result.saved_paths)
    return "\n".join(lines)


def format_generate(result: ImageGenerationResult) -> str:
    if not result.success:
        return format_failure(GENERATE_ERROR_PREFIX, result.error_message)
    count = len(result.saved_paths)
    return format_result(result, f"Successfully generated {_plural(count, 'image')} using {result.model}.")


def format_edit(result: ImageGenerationResult, image_path: str, mask: Optional[str] = None,
                shape_count: int = 0) -> str:
    if not result.success:
        return format_failure(EDIT_ERROR_PREFIX, result.error_message)
    count = len(result.saved_paths)
    inputs = [f"Original image: {image_path}"]
    if mask:
        inputs.append(f"Mask: {mask}")
    elif shape_count:
        inputs.append(f"Mask: rasterized from {_plural(shape_count, 'shape')}")
    summary = f"Successfully edited image and generated {_plural(count, 'variation')} using {result.model}."
    return format_result(result, summary, inputs, saved_label="Edited image")


def format_image_to_image(result: ImageGenerationResult, image_path: str) -> str:
    if not result.success:
        return format_failure(IMAGE_TO_IMAGE_ERROR_PREFIX, result.error_message)
    count = len(result.saved_paths)
    summary = f"Successfully generated {_plural(count, 'image')} from input image using {result.model}."
    return format_result(result, summary, [f"Input image: {image_path}"])


def format_multi_edit(result: ImageGenerationResult, image_paths: Sequence[str]) -> str:
    if not result.success:
        return format_failure(MULTI_EDIT_ERROR_PREFIX, result.error_message)
    count = len(result.saved_paths)
    summary = (f"Successfully combined {_plural(len(image_paths), 'input image')} into "
               f"{_plural(count, 'image')} using {result.model}.")
    inputs = ["Input images:"] + [f"- {path}" for path in image_paths]
    return format_result(result, summary, inputs)


def format_validation(is_valid: bool) -> str:
    return "API key is valid" if is_valid else "API key is invalid"
