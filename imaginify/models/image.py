from datetime import datetime

from beanie import Document, Indexed, PydanticObjectId
from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from imaginify.core.constants import ASPECT_RATIO_OPTIONS, TRANSFORMATION_TYPES


class _ConfigModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="forbid")


class RemoveOptions(_ConfigModel):
    prompt: str = ""
    remove_shadow: bool = True
    multiple: bool = True


class RecolorOptions(_ConfigModel):
    prompt: str = ""
    to: str = ""
    multiple: bool = True


class TransformationConfig(_ConfigModel):
    """Options passed to the image service; unknown keys are rejected."""

    restore: bool | None = None
    remove_background: bool | None = None
    fill_background: bool | None = None
    remove: RemoveOptions | None = None
    recolor: RecolorOptions | None = None


def check_transformation_types(v: list[str]) -> list[str]:
    if not v:
        raise ValueError("at least one transformation type is required")
    unknown = [t for t in v if t not in TRANSFORMATION_TYPES]
    if unknown:
        raise ValueError(f"unknown transformation types: {', '.join(unknown)}")
    return v


def check_aspect_ratio(v: str | None) -> str | None:
    if v is not None and v not in ASPECT_RATIO_OPTIONS:
        raise ValueError(f"unknown aspect ratio: {v}")
    return v


class Image(Document):
    title: str
    transformation_types: list[str]
    public_id: str
    secure_url: str
    width: int | None = None
    height: int | None = None
    config: TransformationConfig | None = None
    transformation_url: str | None = None
    aspect_ratio: str | None = None
    color: str | None = None
    prompt: str | None = None
    author: Indexed(PydanticObjectId)
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    @field_validator("transformation_types")
    @classmethod
    def validate_transformation_types(cls, v: list[str]) -> list[str]:
        return check_transformation_types(v)

    @field_validator("aspect_ratio")
    @classmethod
    def validate_aspect_ratio(cls, v: str | None) -> str | None:
        return check_aspect_ratio(v)

    class Settings:
        name = "images"
