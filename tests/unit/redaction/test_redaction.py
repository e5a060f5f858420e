"""
Tests for sensitive fragment redaction.
"""

import pytest

from logrelay.core.redaction import REDACTION_MARKER, redact, redact_with_count


class TestRedaction:
    """Test the ddd-dddd redaction transform."""

    def test_single_fragment(self) -> None:
        assert redact("call 555-1234") == "call [REDACTED]"

    def test_multiple_fragments(self) -> None:
        assert redact("555-1234 or 555-9876") == "[REDACTED] or [REDACTED]"

    def test_no_match_returns_input(self) -> None:
        text = "nothing sensitive here: 55-1234, 5551234"
        assert redact(text) == text

    def test_empty_text(self) -> None:
        assert redact("") == ""

    def test_fragment_inside_longer_number(self) -> None:
        """Matches are not anchored to word boundaries."""
        assert redact("1-800-555-1234") == "1-800-[REDACTED]"

    def test_non_overlapping_matches(self) -> None:
        assert redact("123-45678-9012") == "[REDACTED]8-9012"

    def test_custom_marker(self) -> None:
        assert redact("call 555-1234", marker="***") == "call ***"

    @pytest.mark.parametrize("text", [
        "call 555-1234",
        "555-1234555-1234",
        "123-4567-890-1234",
        "no digits",
        "",
    ])
    def test_idempotent(self, text: str) -> None:
        once = redact(text)
        assert redact(once) == once

    def test_count(self) -> None:
        assert redact_with_count("a 555-1234 b 555-0000") == (
            f"a {REDACTION_MARKER} b {REDACTION_MARKER}",
            2,
        )
        assert redact_with_count("clean") == ("clean", 0)
