"""
Unit tests for input validation.

Tests cover:
- Required fields and whitespace handling
- Conversion of validation errors to InvalidArgumentError
"""

import pytest

from streamgraph.errors import InvalidArgumentError
from streamgraph.services.inputs import (
    ContentInput,
    CreatePlaylistInput,
    PublishVideoInput,
    RegisterUserInput,
    UpdatePlaylistInput,
    UpdateVideoInput,
    parse_input,
)


class TestParseInput:
    """Tests for parse_input."""

    def test_blank_playlist_name(self):
        """Empty name and description are rejected."""
        with pytest.raises(InvalidArgumentError) as exc_info:
            parse_input(CreatePlaylistInput, name="", description="")
        assert exc_info.value.field_name == "name"
        assert exc_info.value.errors

    def test_whitespace_is_stripped(self):
        """Whitespace-only content is blank."""
        with pytest.raises(InvalidArgumentError):
            parse_input(ContentInput, content="   ")
        assert parse_input(ContentInput, content="  hi ").content == "hi"

    def test_playlist_description_optional(self):
        data = parse_input(CreatePlaylistInput, name="Favourites")
        assert data.description == ""

    def test_all_errors_reported(self):
        """Every failing field is listed."""
        with pytest.raises(InvalidArgumentError) as exc_info:
            parse_input(
                PublishVideoInput,
                title="",
                description="",
                video_file=b"",
                thumbnail=b"",
                duration=-1,
            )
        assert len(exc_info.value.errors) == 5
        assert exc_info.value.details["errors"] == exc_info.value.errors

    def test_unknown_field(self):
        """Extra fields are refused."""
        with pytest.raises(InvalidArgumentError):
            parse_input(ContentInput, content="x", owner="someone")

    def test_update_requires_a_field(self):
        with pytest.raises(InvalidArgumentError):
            parse_input(UpdateVideoInput)
        with pytest.raises(InvalidArgumentError):
            parse_input(UpdatePlaylistInput, name=None, description=None)
        assert parse_input(UpdatePlaylistInput, description="").description == ""


class TestRegisterUserInput:
    """Tests for user registration input."""

    def test_lowercases_identity_fields(self):
        data = parse_input(
            RegisterUserInput,
            username="Ana",
            fullname="Ana Lima",
            email="Ana@Example.com",
        )
        assert data.username == "ana"
        assert data.email == "ana@example.com"
        assert data.fullname == "Ana Lima"

    @pytest.mark.parametrize("email", ["ana", "@example.com", "ana@localhost"])
    def test_rejects_malformed_email(self, email):
        with pytest.raises(InvalidArgumentError) as exc_info:
            parse_input(RegisterUserInput, username="ana", fullname="Ana", email=email)
        assert exc_info.value.field_name == "email"
