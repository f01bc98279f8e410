"""Base schema classes."""

from pydantic import AliasChoices, BaseModel, ConfigDict, Field


class BaseResponse(BaseModel):
    """Base for all response schemas with from_attributes config."""

    model_config = ConfigDict(from_attributes=True)


def camel_alias(name: str, camel: str, **kwargs):
    """Request field accepting both ``name`` and its camelCase spelling."""
    return Field(default=None, validation_alias=AliasChoices(name, camel), **kwargs)
