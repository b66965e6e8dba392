"""
Mask rasterization for image edits.

Instead of preparing a mask image by hand, callers can describe the region
to edit as a list of shapes with coordinates normalized to [0, 1]:

    {"type": "rectangle", "x": 0.1, "y": 0.1, "width": 0.5, "height": 0.3}
    {"type": "circle", "cx": 0.5, "cy": 0.5, "radius": 0.25}
    {"type": "polygon", "points": [[0.1, 0.9], [0.5, 0.2], [0.9, 0.9]]}

The shapes are painted white (editable) onto a black (preserved) canvas the
size of the source image. A shape record that does not validate is skipped
on its own; the remaining shapes are still drawn.
"""

import io
import logging
import tempfile
import time
from pathlib import Path
from typing import Annotated, Any, Iterable, List, Literal, Sequence, Tuple, Union

from PIL import Image as PILImage, ImageDraw
from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, TypeAdapter, ValidationError, field_validator

logger = logging.getLogger(__name__)

MASK_BACKGROUND = 0    # black: preserved
MASK_FOREGROUND = 255  # white: editable


def _coordinate(value: Any) -> float:
    # bool is an int subclass and strings would be coerced by pydantic
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError(f"expected a number, got {type(value).__name__}")
    return float(value)


Coordinate = Annotated[float, BeforeValidator(_coordinate), Field(ge=0.0, le=1.0)]


class RectangleShape(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: Literal["rectangle"]
    x: Coordinate
    y: Coordinate
    width: Coordinate
    height: Coordinate


class CircleShape(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: Literal["circle"]
    cx: Coordinate
    cy: Coordinate
    radius: Coordinate


class PolygonShape(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: Literal["polygon"]
    points: List[Tuple[Coordinate, Coordinate]] = Field(min_length=3)

    @field_validator("points", mode="before")
    @classmethod
    def _points_from_objects(cls, value: Any) -> Any:
        """Accept {"x": .., "y": ..} objects as well as [x, y] pairs"""
        if not isinstance(value, (list, tuple)):
            return value
        points = []
        for point in value:
            if isinstance(point, dict):
                if "x" not in point or "y" not in point:
                    raise ValueError("polygon point objects need 'x' and 'y'")
                points.append((point["x"], point["y"]))
            else:
                points.append(point)
        return points


ShapeDescriptor = Annotated[
    Union[RectangleShape, CircleShape, PolygonShape],
    Field(discriminator="type"),
]

_shape_adapter = TypeAdapter(ShapeDescriptor)


def parse_shapes(raw_shapes: Iterable[Any]) -> List[ShapeDescriptor]:
    """Validate raw shape records, dropping the ones that do not validate"""
    shapes = []
    for index, raw in enumerate(raw_shapes):
        try:
            shapes.append(_shape_adapter.validate_python(raw))
        except ValidationError as e:
            errors = "; ".join(
                f"{'.'.join(str(p) for p in err['loc']) or 'shape'}: {err['msg']}"
                for err in e.errors()
            )
            logger.warning(f"Skipping mask shape #{index}: {errors}")
    return shapes


def _draw_shape(draw: ImageDraw.ImageDraw, shape: ShapeDescriptor, width: int, height: int) -> None:
    if isinstance(shape, RectangleShape):
        x0 = shape.x * width
        y0 = shape.y * height
        # PIL includes the end coordinates, so stop one pixel short
        x1 = max(x0, (shape.x + shape.width) * width - 1)
        y1 = max(y0, (shape.y + shape.height) * height - 1)
        draw.rectangle([x0, y0, x1, y1], fill=MASK_FOREGROUND)
    elif isinstance(shape, CircleShape):
        # radius scales with the short side so circles stay circles
        cx = shape.cx * width
        cy = shape.cy * height
        r = shape.radius * min(width, height)
        draw.ellipse([cx - r, cy - r, cx + r, cy + r], fill=MASK_FOREGROUND)
    elif isinstance(shape, PolygonShape):
        points = [(x * width, y * height) for x, y in shape.points]
        draw.polygon(points, fill=MASK_FOREGROUND)


def render_mask(shapes: Sequence[ShapeDescriptor], width: int, height: int) -> PILImage.Image:
    """Paint validated shapes onto a black canvas, later shapes over earlier ones"""
    if width <= 0 or height <= 0:
        raise ValueError(f"Mask dimensions must be positive, got {width}x{height}")

    mask = PILImage.new("L", (width, height), MASK_BACKGROUND)
    draw = ImageDraw.Draw(mask)
    for shape in shapes:
        _draw_shape(draw, shape, width, height)
    return mask


def rasterize_mask(raw_shapes: Iterable[Any], width: int, height: int) -> bytes:
    """
    Convert shape descriptions into a black/white PNG mask.

    Args:
        raw_shapes: Shape records (dicts) with coordinates normalized to [0, 1]
        width: Width of the image being edited, in pixels
        height: Height of the image being edited, in pixels

    Returns:
        PNG bytes, white where the image may be edited and black elsewhere
    """
    shapes = parse_shapes(raw_shapes)
    mask = render_mask(shapes, width, height)
    buffer = io.BytesIO()
    mask.save(buffer, format="PNG")
    return buffer.getvalue()


def read_image_size(path: Union[str, Path]) -> Tuple[int, int]:
    """Pixel (width, height) of an image file"""
    with PILImage.open(path) as img:
        return img.size


def write_temp_mask(png_data: bytes, temp_dir: Union[str, Path]) -> Path:
    """Write a rasterized mask to a temp file; the caller deletes it"""
    temp_dir = Path(temp_dir)
    temp_dir.mkdir(parents=True, exist_ok=True)
    with tempfile.NamedTemporaryFile(
        prefix="mask_", suffix=".png", dir=temp_dir, delete=False
    ) as tmp:
        tmp.write(png_data)
    return Path(tmp.name)


def cleanup_temp_masks(temp_dir: Union[str, Path], max_age_seconds: int = 3600) -> int:
    """Remove leftover mask files older than ``max_age_seconds``"""
    temp_dir = Path(temp_dir)
    if not temp_dir.exists():
        return 0
    removed = 0
    now = time.time()
    for file_path in temp_dir.glob("mask_*.png"):
        try:
            if file_path.is_file() and now - file_path.stat().st_mtime > max_age_seconds:
                file_path.unlink()
                removed += 1
        except OSError as e:
            logger.warning(f"Could not remove stale mask {file_path}: {e}")
    return removed
