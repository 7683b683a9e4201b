"""Reusable, strict base models for the harness."""

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """
    A base model that converts field names to camel case when serializing.

    For example, the field name `return_code` in a Python model will be
    represented as `returnCode` when it is serialized to JSON.

    Reports written by the CLI use this so they read naturally from JS tooling.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        validate_default=True,
        arbitrary_types_allowed=True,
    )


class StrictBaseModel(CamelModel):
    """A strict, immutable pydantic base model."""

    model_config = CamelModel.model_config | {
        "extra": "forbid",
        "frozen": True,
        "strict": True,
    }


class ConfigModel(BaseModel):
    """
    Immutable model for human-authored configuration files.

    Keys are kept in snake_case as written in YAML/TOML files.
    Unlike StrictBaseModel, lax mode is used so that YAML scalars
    (e.g. a quoted "4") are coerced into the declared field types.
    """

    model_config = ConfigDict(
        extra="forbid",
        frozen=True,
        validate_default=True,
    )
