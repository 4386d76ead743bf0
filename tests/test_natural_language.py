"""
Tests for free-text step parsing.
"""

import pytest

from hazelpilot.core.types import ActionKind
from hazelpilot.normalizer.natural_language import clean_hint, first_quoted, parse_sentence


class TestParseSentence:
    """Tests for the verb heuristics."""

    def test_goto_absolute_url(self):
        parsed = parse_sentence("Go to https://example.com/login")
        assert parsed.action == ActionKind.GOTO
        assert parsed.target == "https://example.com/login"

    def test_goto_path(self):
        parsed = parse_sentence("Navigate to /settings.")
        assert parsed.action == ActionKind.GOTO
        assert parsed.target == "/settings"

    def test_goto_without_address(self):
        parsed = parse_sentence("Open the homepage")
        assert parsed.action == ActionKind.GOTO
        assert parsed.target is None

    def test_fill_into(self):
        parsed = parse_sentence('Enter "user" into username')
        assert parsed.action == ActionKind.FILL
        assert parsed.target == "username"
        assert parsed.value == "user"

    def test_fill_into_strips_widget_noun(self):
        parsed = parse_sentence("Type 'hello' into the search box")
        assert parsed.target == "search"
        assert parsed.value == "hello"

    def test_fill_with(self):
        parsed = parse_sentence("Fill email with a@b.com")
        assert parsed.action == ActionKind.FILL
        assert parsed.target == "email"
        assert parsed.value == "a@b.com"

    def test_click(self):
        parsed = parse_sentence("Click on the Login button")
        assert parsed.action == ActionKind.CLICK
        assert parsed.target == "Login"

    def test_click_quoted(self):
        parsed = parse_sentence('Tap "Sign in" to continue')
        assert parsed.action == ActionKind.CLICK
        assert parsed.target == "Sign in"

    @pytest.mark.parametrize("sentence,key", [
        ("Press Enter", "Enter"),
        ("press tab", "Tab"),
        ("Press Esc", "Escape"),
    ])
    def test_press_key(self, sentence, key):
        parsed = parse_sentence(sentence)
        assert parsed.action == ActionKind.PRESS
        assert parsed.key == key

    def test_press_button_is_a_click(self):
        parsed = parse_sentence("Press the Submit button")
        assert parsed.action == ActionKind.CLICK
        assert parsed.target == "Submit"

    def test_url_contains(self):
        parsed = parse_sentence("URL should contain /dashboard")
        assert parsed.action == ActionKind.ASSERT_URL
        assert parsed.pattern == "/dashboard"

    def test_should_see_quoted(self):
        parsed = parse_sentence('I should see "Welcome back"')
        assert parsed.action == ActionKind.ASSERT_TEXT
        assert parsed.pattern == "Welcome back"

    def test_verify_drops_outcome_words(self):
        parsed = parse_sentence("Verify dashboard is displayed")
        assert parsed.action == ActionKind.ASSERT_TEXT
        assert parsed.pattern == "dashboard"

    @pytest.mark.parametrize("sentence", ["hello world", "", "   ", "Wait a bit"])
    def test_unrecognized(self, sentence):
        assert parse_sentence(sentence) is None


class TestHelpers:
    """Tests for quoting and hint cleanup."""

    def test_first_quoted(self):
        assert first_quoted('say "hi" and "bye"') == "hi"
        assert first_quoted("say 'hi'") == "hi"
        assert first_quoted("nothing") is None

    def test_clean_hint(self):
        assert clean_hint("the Email field.") == "Email"
        assert clean_hint("an Accept terms checkbox") == "Accept terms"
        assert clean_hint("") is None
        assert clean_hint("the") == "the"
