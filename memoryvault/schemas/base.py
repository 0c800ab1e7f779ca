"""Base schema configuration."""

from pydantic import BaseModel, ConfigDict


class BaseSchema(BaseModel):
    """Base schema with common configuration."""

    model_config = ConfigDict(
        from_attributes=True,  # Enable ORM mode
        str_strip_whitespace=True,
        validate_assignment=True,
    )


class FrozenSchema(BaseModel):
    """Immutable value object, used for state owned by the session machines."""

    model_config = ConfigDict(from_attributes=True, frozen=True)
