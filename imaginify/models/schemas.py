"""Request/response payloads. Wire names are camelCase; snake_case is accepted too."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from imaginify.models.image import (
    Image,
    TransformationConfig,
    check_aspect_ratio,
    check_transformation_types,
)
from imaginify.models.user import User


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class UserCreate(CamelModel):
    clerk_id: str = Field(min_length=1)
    email: str = Field(min_length=1)
    username: str = Field(min_length=1)
    photo: str
    firstname: str = ""
    lastname: str = ""
    plan_id: int = 1
    credit_balance: int = 10
    stripe_id: str | None = None
    stripe_customer_id: str | None = None


class UserUpdate(CamelModel):
    """Profile fields that may change after sign-up. The balance moves only through credit adjustments."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="forbid")

    email: str | None = None
    username: str | None = None
    photo: str | None = None
    firstname: str | None = None
    lastname: str | None = None
    plan_id: int | None = None
    stripe_id: str | None = None
    stripe_customer_id: str | None = None


class UserOut(CamelModel):
    id: str
    clerk_id: str
    email: str
    username: str
    photo: str
    firstname: str
    lastname: str
    plan_id: int
    credit_balance: int
    stripe_id: str | None = None
    stripe_customer_id: str | None = None

    @classmethod
    def from_user(cls, user: User) -> "UserOut":
        return cls(id=str(user.id), **user.model_dump(exclude={"id", "revision_id", "created_at"}))


class ImageCreate(CamelModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="forbid")

    title: str = Field(min_length=1)
    transformation_types: list[str]
    public_id: str = Field(min_length=1)
    secure_url: str = Field(min_length=1)
    width: int | None = None
    height: int | None = None
    config: TransformationConfig | None = None
    transformation_url: str | None = None
    aspect_ratio: str | None = None
    color: str | None = None
    prompt: str | None = None

    @field_validator("transformation_types")
    @classmethod
    def validate_transformation_types(cls, v: list[str]) -> list[str]:
        return check_transformation_types(v)

    @field_validator("aspect_ratio")
    @classmethod
    def validate_aspect_ratio(cls, v: str | None) -> str | None:
        return check_aspect_ratio(v)


class ImageOut(CamelModel):
    id: str
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
    author: str
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_image(cls, image: Image) -> "ImageOut":
        data = image.model_dump(exclude={"id", "revision_id", "author"})
        return cls(id=str(image.id), author=str(image.author), **data)


class LedgerEntryOut(CamelModel):
    id: str
    amount: int
    balance_after: int | None
    reason: str
    reference_type: str | None = None
    reference_id: str | None = None
    created_at: datetime
