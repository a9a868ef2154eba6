"""
Input models for service operations.

Payloads are validated with pydantic before any store access. A
ValidationError never escapes a service: parse_input() converts it into
an InvalidArgumentError carrying every message in details["errors"].
"""

from __future__ import annotations

from typing import Any, TypeVar

from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator

from ..errors import InvalidArgumentError

M = TypeVar("M", bound=BaseModel)


class _Input(BaseModel):
    model_config = {"str_strip_whitespace": True, "extra": "forbid"}


class RegisterUserInput(_Input):
    """Seed a user account."""

    username: str = Field(..., min_length=1, max_length=64)
    fullname: str = Field(..., min_length=1, max_length=128)
    email: str = Field(..., min_length=3, max_length=254)
    avatar: str | None = Field(None, description="Avatar media locator")
    cover_image: str | None = Field(None, description="Cover image media locator")

    @field_validator("username", "email")
    @classmethod
    def _lowercase(cls, value: str) -> str:
        return value.lower()

    @field_validator("email")
    @classmethod
    def _email_shape(cls, value: str) -> str:
        local, _, domain = value.partition("@")
        if not local or "." not in domain:
            raise ValueError("email must look like name@example.com")
        return value


class PublishVideoInput(_Input):
    """Publish a new video."""

    title: str = Field(..., min_length=1, max_length=200)
    description: str = Field(..., min_length=1)
    video_file: bytes = Field(..., min_length=1, description="Video bytes")
    thumbnail: bytes = Field(..., min_length=1, description="Thumbnail bytes")
    duration: float = Field(0.0, ge=0)


class UpdateVideoInput(_Input):
    """Update a video's details; at least one field is required."""

    title: str | None = Field(None, min_length=1, max_length=200)
    description: str | None = Field(None, min_length=1)
    thumbnail: bytes | None = Field(None, min_length=1)

    @model_validator(mode="after")
    def _not_empty(self) -> UpdateVideoInput:
        if self.title is None and self.description is None and self.thumbnail is None:
            raise ValueError("at least one of title, description or thumbnail is required")
        return self


class ContentInput(_Input):
    """Text body of a comment or post."""

    content: str = Field(..., min_length=1, max_length=5000)


class CreatePlaylistInput(_Input):
    """Create a playlist; the name is required."""

    name: str = Field(..., min_length=1, max_length=150)
    description: str = ""


class UpdatePlaylistInput(_Input):
    """Update a playlist; at least one field is required."""

    name: str | None = Field(None, min_length=1, max_length=150)
    description: str | None = None

    @model_validator(mode="after")
    def _not_empty(self) -> UpdatePlaylistInput:
        if self.name is None and self.description is None:
            raise ValueError("at least one of name or description is required")
        return self


def _format_error(error: dict[str, Any]) -> str:
    location = ".".join(str(part) for part in error.get("loc", ()))
    return f"{location}: {error['msg']}" if location else error["msg"]


def parse_input(model: type[M], **data: Any) -> M:
    """Validate raw operation input.

    Args:
        model: Input model class
        **data: Raw field values

    Returns:
        Validated model instance

    Raises:
        InvalidArgumentError: With every validation message in errors
    """
    try:
        return model(**data)
    except ValidationError as e:
        errors = e.errors()
        messages = [_format_error(err) for err in errors]
        first = errors[0].get("loc", ()) if errors else ()
        raise InvalidArgumentError(
            f"Invalid input: {messages[0] if messages else 'validation failed'}",
            field_name=str(first[0]) if first else None,
            errors=messages,
        ) from e
