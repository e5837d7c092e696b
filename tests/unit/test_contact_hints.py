"""Unit tests for contact hint extraction."""
from app.services.contacts.hints import extract_contact_hints, extract_email, extract_name


class TestExtractName:
    """Test name detection in message text."""

    def test_my_name_is(self):
        assert extract_name("Hi, my name is Dana Smith and I need a quote") == "Dana Smith"

    def test_this_is(self):
        assert extract_name("Hey this is Marcus from the dealership") == "Marcus"

    def test_non_names_are_skipped(self):
        assert extract_name("This is The best shop around") is None
        assert extract_name("this is about my van") is None

    def test_no_name(self):
        assert extract_name("How much for a full wrap?") is None
        assert extract_name("") is None


class TestExtractEmail:
    """Test email detection."""

    def test_email_is_lowercased(self):
        assert extract_email("Send it to Dana.Smith@Example.com.") == "dana.smith@example.com"

    def test_no_email(self):
        assert extract_email("call me at 240-555-1234") is None


class TestExtractContactHints:
    """Test combining hints across messages."""

    def test_first_match_wins(self):
        hints = extract_contact_hints(
            [
                "this is Dana",
                "my email is dana@example.com",
                "my name is Someone Else, other@example.com",
            ]
        )
        assert hints.name == "Dana"
        assert hints.email == "dana@example.com"

    def test_no_hints(self):
        hints = extract_contact_hints(["need a quote"])
        assert hints.name is None
        assert hints.email is None
