"""
Argument models for the image tools.

Unknown fields are ignored. Enumerated options (quality, background, ...)
stay plain strings here: unrecognized values are dropped later by the
request builder rather than rejected.
"""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .exceptions import InvalidArgumentError

MAX_PROMPT_LENGTH = 32000
MAX_IMAGE_COUNT = 10


class ImageGenerationOptions(BaseModel):
    """Options shared by every image producing tool"""
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    size: Optional[str] = None
    quality: Optional[str] = None
    background: Optional[str] = None
    moderation: Optional[str] = None
    output_format: Optional[str] = None
    output_compression: Optional[int] = None
    count: int = Field(1, ge=1, le=MAX_IMAGE_COUNT)
    save_dir_path: Optional[str] = Field(None, alias="saveDirPath")
    file_name: Optional[str] = Field(None, alias="fileName")

    @field_validator("output_compression", mode="before")
    @classmethod
    def _drop_non_integer_compression(cls, value: Any) -> Any:
        # not an error: the builder simply leaves compression out
        if isinstance(value, bool) or not isinstance(value, int):
            return None
        return value


class GenerateImageArgs(ImageGenerationOptions):
    prompt: str = Field(..., min_length=1, max_length=MAX_PROMPT_LENGTH)


class EditImageArgs(ImageGenerationOptions):
    prompt: str = Field(..., min_length=1, max_length=MAX_PROMPT_LENGTH)
    image_path: str = Field(..., min_length=1, alias="imagePath")
    mask: Optional[str] = None
    # validated shape by shape when the mask is rasterized
    mask_shapes: Optional[List[Any]] = None


class ImageToImageArgs(ImageGenerationOptions):
    image_path: str = Field(..., min_length=1, alias="imagePath")
    prompt: str = Field(..., min_length=1, max_length=MAX_PROMPT_LENGTH)


class MultiImageEditArgs(ImageGenerationOptions):
    prompt: str = Field(..., min_length=1, max_length=MAX_PROMPT_LENGTH)
    image_paths: List[str] = Field(..., min_length=1, alias="imagePaths")


def describe_validation_error(error: ValidationError) -> str:
    """One line summary of a pydantic validation error"""
    parts = []
    for err in error.errors():
        field = ".".join(str(p) for p in err["loc"]) or "arguments"
        if err["type"] == "missing":
            parts.append(f"missing required argument '{field}'")
        else:
            parts.append(f"{field}: {err['msg']}")
    return "; ".join(parts)


def parse_arguments(model: type, arguments: Dict[str, Any]):
    """Validate raw tool arguments into ``model``, raising InvalidArgumentError"""
    # explicit None means "not given"
    cleaned = {key: value for key, value in (arguments or {}).items() if value is not None}
    try:
        return model.model_validate(cleaned)
    except ValidationError as e:
        raise InvalidArgumentError(f"Invalid arguments: {describe_validation_error(e)}")
