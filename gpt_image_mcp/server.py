"""
GPT-Image MCP server: tool registration and the outer call boundary.

The tool functions only collect arguments; ``handle_*`` does the work and
always returns text, converting any failure into an error message with the
tool's prefix.
"""

import logging
import os
import time
from contextlib import asynccontextmanager
from typing import Any, Awaitable, Callable, Dict, List, Optional

from fastmcp import Context, FastMCP
from starlette.requests import Request
from starlette.responses import JSONResponse

from . import operations
from .context import AppContext
from .exceptions import ImageToolError
from .formatting import (
    EDIT_ERROR_PREFIX,
    GENERATE_ERROR_PREFIX,
    IMAGE_TO_IMAGE_ERROR_PREFIX,
    MULTI_EDIT_ERROR_PREFIX,
    VALIDATE_ERROR_PREFIX,
    format_edit,
    format_failure,
    format_generate,
    format_image_to_image,
    format_multi_edit,
    format_validation,
)
from .schemas import (
    EditImageArgs,
    GenerateImageArgs,
    ImageToImageArgs,
    MultiImageEditArgs,
    parse_arguments,
)

logger = logging.getLogger(__name__)

SERVER_NAME = "GPT Image MCP"


async def _guarded(prefix: str, work: Callable[[], Awaitable[str]]) -> str:
    """Run a tool body; every failure becomes an error text"""
    try:
        return await work()
    except ImageToolError as e:
        logger.warning(f"{prefix}: {e.message}")
        return format_failure(prefix, e.message)
    except Exception as e:
        logger.exception(f"Unexpected error in tool ({prefix})")
        return format_failure(prefix, f"Unexpected error: {e}")


async def handle_generate_image(app: AppContext, arguments: Dict[str, Any],
                                ctx: Optional[Context] = None) -> str:
    async def work():
        args = parse_arguments(GenerateImageArgs, arguments)
        result = await operations.generate_image(app, args, ctx)
        return format_generate(result)

    return await _guarded(GENERATE_ERROR_PREFIX, work)


async def handle_edit_image(app: AppContext, arguments: Dict[str, Any],
                            ctx: Optional[Context] = None) -> str:
    async def work():
        args = parse_arguments(EditImageArgs, arguments)
        result = await operations.edit_image(app, args, ctx)
        mask = os.path.abspath(args.mask) if args.mask else None
        return format_edit(result, os.path.abspath(args.image_path), mask, len(args.mask_shapes or []))

    return await _guarded(EDIT_ERROR_PREFIX, work)


async def handle_image_to_image(app: AppContext, arguments: Dict[str, Any],
                                ctx: Optional[Context] = None) -> str:
    async def work():
        args = parse_arguments(ImageToImageArgs, arguments)
        result = await operations.image_to_image(app, args, ctx)
        return format_image_to_image(result, os.path.abspath(args.image_path))

    return await _guarded(IMAGE_TO_IMAGE_ERROR_PREFIX, work)


async def handle_multi_image_edit(app: AppContext, arguments: Dict[str, Any],
                                  ctx: Optional[Context] = None) -> str:
    async def work():
        args = parse_arguments(MultiImageEditArgs, arguments)
        result = await operations.multi_image_edit(app, args, ctx)
        return format_multi_edit(result, [os.path.abspath(p) for p in args.image_paths])

    return await _guarded(MULTI_EDIT_ERROR_PREFIX, work)


async def handle_validate_api_key(app: AppContext) -> str:
    async def work():
        return format_validation(await operations.validate_api_key(app))

    return await _guarded(VALIDATE_ERROR_PREFIX, work)


def create_server(app: AppContext) -> FastMCP:
    """Create the FastMCP server with every tool bound to ``app``"""

    @asynccontextmanager
    async def app_lifespan(server: FastMCP):
        """Yield the shared context and release its resources on shutdown"""
        try:
            yield app
        finally:
            await app.aclose()

    mcp = FastMCP(name=SERVER_NAME, lifespan=app_lifespan)

    # =============================================================================
    # IMAGE TOOLS (OpenAI Images API)
    # =============================================================================

    @mcp.tool()
    async def generate_image(
        prompt: str,
        ctx: Context = None,
        size: Optional[str] = None,
        quality: Optional[str] = None,
        background: Optional[str] = None,
        moderation: Optional[str] = None,
        output_format: Optional[str] = None,
        output_compression: Optional[int] = None,
        count: Optional[int] = None,
        saveDirPath: Optional[str] = None,
        fileName: Optional[str] = None,
    ) -> str:
        """
        Generate images from a text prompt using gpt-image-1 and save them to disk.

        Args:
            prompt: Text description of the desired image (max 32000 chars)
            size: 1024x1024, 1536x1024, 1024x1536 or auto; other WIDTHxHEIGHT values are mapped to the closest supported size
            quality: high, medium, low or auto
            background: transparent, opaque or auto
            moderation: low or auto
            output_format: png, jpeg or webp (default png)
            output_compression: 0-100, only used for jpeg and webp
            count: Number of images to generate (1-10)
            saveDirPath: Directory to save into, absolute or relative to the default save directory (IMAGE_SAVE_DIR, else the working directory)
            fileName: Base file name without extension

        Returns:
            Summary with the absolute paths of the saved images
        """
        return await handle_generate_image(app, {
            "prompt": prompt, "size": size, "quality": quality, "background": background,
            "moderation": moderation, "output_format": output_format,
            "output_compression": output_compression, "count": count,
            "saveDirPath": saveDirPath, "fileName": fileName,
        }, ctx)

    @mcp.tool()
    async def edit_image(
        prompt: str,
        imagePath: str,
        ctx: Context = None,
        mask: Optional[str] = None,
        mask_shapes: Optional[List[Any]] = None,
        size: Optional[str] = None,
        quality: Optional[str] = None,
        background: Optional[str] = None,
        moderation: Optional[str] = None,
        output_format: Optional[str] = None,
        output_compression: Optional[int] = None,
        count: Optional[int] = None,
        saveDirPath: Optional[str] = None,
        fileName: Optional[str] = None,
    ) -> str:
        """
        Edit an existing image with a text prompt, optionally limited to a masked region.

        Args:
            prompt: Description of the desired edit
            imagePath: Image to edit (absolute or relative path)
            mask: Mask image path; white areas are edited, black areas preserved
            mask_shapes: Alternative to mask. Shapes with coordinates in 0-1 relative to the image:
                {"type": "rectangle", "x", "y", "width", "height"},
                {"type": "circle", "cx", "cy", "radius"},
                {"type": "polygon", "points": [[x, y], ...]}
            size: Output size (see generate_image)
            quality: high, medium, low or auto
            background: transparent, opaque or auto
            moderation: low or auto
            output_format: png, jpeg or webp
            output_compression: 0-100, jpeg and webp only
            count: Number of edited versions (1-10)
            saveDirPath: Directory to save into
            fileName: Base file name without extension

        Returns:
            Summary with the absolute paths of the edited images
        """
        return await handle_edit_image(app, {
            "prompt": prompt, "imagePath": imagePath, "mask": mask, "mask_shapes": mask_shapes,
            "size": size, "quality": quality, "background": background,
            "moderation": moderation, "output_format": output_format,
            "output_compression": output_compression, "count": count,
            "saveDirPath": saveDirPath, "fileName": fileName,
        }, ctx)

    @mcp.tool()
    async def image_to_image(
        imagePath: str,
        prompt: str,
        ctx: Context = None,
        size: Optional[str] = None,
        quality: Optional[str] = None,
        background: Optional[str] = None,
        moderation: Optional[str] = None,
        output_format: Optional[str] = None,
        output_compression: Optional[int] = None,
        count: Optional[int] = None,
        saveDirPath: Optional[str] = None,
        fileName: Optional[str] = None,
    ) -> str:
        """
        Generate new images using an existing image as the starting point.

        Args:
            imagePath: Input image (absolute or relative path)
            prompt: Text guiding the generation
            size: Output size (see generate_image)
            quality: high, medium, low or auto
            background: transparent, opaque or auto
            moderation: low or auto
            output_format: png, jpeg or webp
            output_compression: 0-100, jpeg and webp only
            count: Number of images (1-10)
            saveDirPath: Directory to save into
            fileName: Base file name without extension
        """
        return await handle_image_to_image(app, {
            "imagePath": imagePath, "prompt": prompt, "size": size, "quality": quality,
            "background": background, "moderation": moderation,
            "output_format": output_format, "output_compression": output_compression,
            "count": count, "saveDirPath": saveDirPath, "fileName": fileName,
        }, ctx)

    @mcp.tool()
    async def multi_image_edit(
        prompt: str,
        imagePaths: List[str],
        ctx: Context = None,
        size: Optional[str] = None,
        quality: Optional[str] = None,
        background: Optional[str] = None,
        moderation: Optional[str] = None,
        output_format: Optional[str] = None,
        output_compression: Optional[int] = None,
        count: Optional[int] = None,
        saveDirPath: Optional[str] = None,
        fileName: Optional[str] = None,
    ) -> str:
        """
        Combine several input images into a new image guided by a prompt.

        Args:
            prompt: Description of the composite to create
            imagePaths: Input images (absolute or relative paths)
            size: Output size (see generate_image)
            quality: high, medium, low or auto
            background: transparent, opaque or auto
            moderation: low or auto
            output_format: png, jpeg or webp
            output_compression: 0-100, jpeg and webp only
            count: Number of images (1-10)
            saveDirPath: Directory to save into
            fileName: Base file name without extension
        """
        return await handle_multi_image_edit(app, {
            "prompt": prompt, "imagePaths": imagePaths, "size": size, "quality": quality,
            "background": background, "moderation": moderation,
            "output_format": output_format, "output_compression": output_compression,
            "count": count, "saveDirPath": saveDirPath, "fileName": fileName,
        }, ctx)

    @mcp.tool()
    async def validate_api_key() -> str:
        """Check that the configured OpenAI API key is accepted."""
        return await handle_validate_api_key(app)

    @mcp.custom_route("/health", methods=["GET"])
    async def health_check(request: Request):
        """Health check endpoint for HTTP deployments"""
        return JSONResponse({
            "status": "healthy",
            "timestamp": time.time(),
            "server": SERVER_NAME,
            "model": app.config.image_model,
            "openai_configured": app.config.api_key_configured,
            "default_save_dir": app.config.default_save_dir,
        })

    return mcp
