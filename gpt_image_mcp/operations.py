"""
Tool handlers: generate, edit, image-to-image, multi-image edit, key check.

Each handler validates its inputs, resolves where to save, sends exactly one
request to the provider and reconciles the response into an
ImageGenerationResult. Nothing is retried and every ImageToolError ends up
as a failure result rather than an exception.
"""

import logging
import os
import time
from dataclasses import replace
from typing import Any, Awaitable, Callable, Dict, Optional

from fastmcp import Context

from .context import AppContext
from .exceptions import ImageToolError, InvalidArgumentError, ProviderRequestError
from .masks import rasterize_mask, read_image_size, write_temp_mask
from .payloads import build_request_payload, effective_output_format
from .provider import load_upload
from .results import ImageGenerationResult, reconcile_response
from .save_dirs import SaveTarget, resolve_save_dir, safe_file_name
from .schemas import (
    EditImageArgs,
    GenerateImageArgs,
    ImageGenerationOptions,
    ImageToImageArgs,
    MultiImageEditArgs,
)

logger = logging.getLogger(__name__)

SendRequest = Callable[[Dict[str, Any]], Awaitable[Dict[str, Any]]]


def _timestamp() -> int:
    return int(time.time() * 1000)


def resolve_input_path(path: str, parameter: str, cwd: Optional[str] = None) -> str:
    """Absolute path of a caller supplied input file, which must exist"""
    path = path.strip()
    if not os.path.isabs(path):
        path = os.path.abspath(os.path.join(cwd or os.getcwd(), path))
    if not os.path.isfile(path):
        label = "Mask file" if parameter == "mask" else "Image file"
        raise InvalidArgumentError(f"{label} not found: {path}", parameter=parameter)
    return path


async def _info(ctx: Optional[Context], message: str) -> None:
    logger.info(message)
    if ctx:
        await ctx.info(message)


async def _failed(
    app: AppContext, prompt: str, error: ImageToolError, what: str, ctx: Optional[Context] = None
) -> ImageGenerationResult:
    logger.error(f"{what} failed: {error.message}")
    if ctx:
        await ctx.error(f"{what} failed: {error.message}")
    return ImageGenerationResult.failure(error.message, prompt, app.config.image_model)


async def _produce_images(
    app: AppContext,
    prompt: str,
    options: ImageGenerationOptions,
    file_prefix: str,
    send: SendRequest,
    ctx: Optional[Context] = None,
) -> ImageGenerationResult:
    """Save dir -> payload -> provider request -> reconciled result"""
    config = app.config
    resolution = resolve_save_dir(
        options.save_dir_path, cwd=config.default_save_dir, strict=config.strict_save_dir
    )
    if resolution.fell_back and ctx:
        await ctx.warning(f"Save directory unusable ({resolution.reason}); saving to {resolution.path}")

    target = SaveTarget(
        directory=resolution.path,
        file_name_base=safe_file_name(options.file_name, f"{file_prefix}-{_timestamp()}"),
        output_format=effective_output_format(options),
    )
    payload = build_request_payload(prompt, options, model=config.image_model)
    logged = {k: v for k, v in payload.items() if k != "prompt"}
    logger.debug(f"Request parameters: {logged}")

    await _info(ctx, f"Requesting {options.count} image(s) with prompt: {prompt[:100]}...")
    raw = await send(payload)

    result = await reconcile_response(raw, target, options.count, app.http_client)
    return replace(
        result,
        prompt=prompt,
        model=config.image_model,
        save_dir_fallback=resolution.reason if resolution.fell_back else None,
    )


async def generate_image(
    app: AppContext, args: GenerateImageArgs, ctx: Optional[Context] = None
) -> ImageGenerationResult:
    """Generate images from a text prompt"""
    try:
        return await _produce_images(
            app, args.prompt, args, "gpt-image", app.provider.create_image, ctx
        )
    except ImageToolError as e:
        return await _failed(app, args.prompt, e, "Image generation", ctx)


async def edit_image(
    app: AppContext, args: EditImageArgs, ctx: Optional[Context] = None
) -> ImageGenerationResult:
    """
    Edit one image, optionally restricted by a mask.

    The mask is either an image file (``mask``) or a list of normalized shapes
    (``mask_shapes``) rasterized to the size of the input image. Giving both
    is an error.
    """
    mask_file = None
    try:
        if args.mask and args.mask_shapes:
            raise InvalidArgumentError(
                "'mask' and 'mask_shapes' are mutually exclusive; provide only one of them",
                parameter="mask_shapes",
            )

        image_path = resolve_input_path(args.image_path, "imagePath")
        mask_path = resolve_input_path(args.mask, "mask") if args.mask else None

        if args.mask_shapes:
            try:
                width, height = read_image_size(image_path)
            except OSError as e:
                raise InvalidArgumentError(f"Could not read image dimensions of {image_path}: {e}")
            png = rasterize_mask(args.mask_shapes, width, height)
            mask_file = write_temp_mask(png, app.config.temp_dir)
            mask_path = str(mask_file)
            await _info(ctx, f"Rasterized {len(args.mask_shapes)} mask shape(s) at {width}x{height}")

        image = await load_upload(image_path)
        mask = await load_upload(mask_path) if mask_path else None

        async def send(payload):
            return await app.provider.edit_image(payload, [image], mask)

        return await _produce_images(app, args.prompt, args, "gpt-image-edit", send, ctx)

    except ImageToolError as e:
        return await _failed(app, args.prompt, e, "Image edit", ctx)
    finally:
        if mask_file is not None:
            mask_file.unlink(missing_ok=True)


async def image_to_image(
    app: AppContext, args: ImageToImageArgs, ctx: Optional[Context] = None
) -> ImageGenerationResult:
    """Generate new images guided by an input image"""
    try:
        image_path = resolve_input_path(args.image_path, "imagePath")
        image = await load_upload(image_path)

        async def send(payload):
            return await app.provider.edit_image(payload, [image])

        return await _produce_images(app, args.prompt, args, "gpt-img2img", send, ctx)

    except ImageToolError as e:
        return await _failed(app, args.prompt, e, "Image-to-image generation", ctx)


async def multi_image_edit(
    app: AppContext, args: MultiImageEditArgs, ctx: Optional[Context] = None
) -> ImageGenerationResult:
    """Compose a new image from several input images"""
    try:
        image_paths = [resolve_input_path(path, "imagePaths") for path in args.image_paths]
        images = [await load_upload(path) for path in image_paths]

        async def send(payload):
            return await app.provider.edit_image(payload, images)

        return await _produce_images(app, args.prompt, args, "image-edit", send, ctx)

    except ImageToolError as e:
        return await _failed(app, args.prompt, e, "Multi-image edit", ctx)


async def validate_api_key(app: AppContext) -> bool:
    """True when the provider accepts the configured credentials"""
    try:
        models = await app.provider.list_models()
    except ProviderRequestError as e:
        logger.warning(f"API key validation failed: {e.message}")
        return False
    logger.info(f"API key valid ({len(models)} models visible)")
    return True
