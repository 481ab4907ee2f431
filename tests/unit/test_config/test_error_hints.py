"""Unit tests for configuration error hints."""

import pytest

from prerender.config.error_hints import (
    ERROR_HINTS,
    FIELD_HINTS,
    format_validation_error,
    get_error_hint,
)


class TestGetErrorHint:
    """Tests for get_error_hint function."""

    @pytest.mark.unit
    def test_returns_hint_for_known_error_type(self) -> None:
        """Test that known error types return their hints."""
        hint = get_error_hint("missing")
        assert hint == ERROR_HINTS["missing"]
        assert "required" in hint.lower()

    @pytest.mark.unit
    def test_returns_default_for_unknown_error_type(self) -> None:
        """Test that unknown error types return the default hint."""
        assert "documentation" in get_error_hint("no_such_error").lower()

    @pytest.mark.unit
    def test_field_hint_takes_precedence(self) -> None:
        """Test that setting-specific hints override error type hints."""
        assert get_error_hint("greater_than", "timeout_ms") == FIELD_HINTS["timeout_ms"]

    @pytest.mark.unit
    def test_innermost_field_wins(self) -> None:
        """Test the last component of a dotted location is tried first."""
        assert get_error_hint("missing", "database.url") == FIELD_HINTS["url"]

    @pytest.mark.unit
    def test_falls_back_to_outer_field(self) -> None:
        """Test an unknown inner component falls back to its parent."""
        hint = get_error_hint("float_type", "database.connect_timeout_seconds")
        assert hint == FIELD_HINTS["database"]

    @pytest.mark.unit
    def test_unknown_field_uses_error_type(self) -> None:
        """Test locations without a setting hint use the error type hint."""
        assert get_error_hint("bool_type", "coalesce_renders") == ERROR_HINTS["bool_type"]


class TestFormatValidationError:
    """Tests for format_validation_error function."""

    @pytest.mark.unit
    def test_includes_hint(self) -> None:
        """Test the formatted error carries a hint line."""
        formatted = format_validation_error("timeout_ms", "must be > 0", "greater_than")
        assert formatted.startswith("timeout_ms: must be > 0")
        assert "\n    Hint: " in formatted

    @pytest.mark.unit
    def test_without_hint(self) -> None:
        """Test hints can be disabled."""
        formatted = format_validation_error(
            "timeout_ms", "must be > 0", "greater_than", include_hint=False
        )
        assert formatted == "timeout_ms: must be > 0"
