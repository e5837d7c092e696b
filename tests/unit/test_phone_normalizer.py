"""Unit tests for phone number normalization."""
import pytest

from app.services.phone.normalizer import (
    UNMATCHABLE,
    conversation_key,
    conversation_phone,
    format_display,
    format_e164,
    is_matchable,
    normalize_phone,
    phone_variants,
    phones_match,
)


class TestNormalizePhone:
    """Test canonical phone keys."""

    @pytest.mark.parametrize(
        "raw",
        [
            "2405551234",
            "12405551234",
            "+12405551234",
            "+1 (240) 555-1234",
            "240.555.1234",
            " 240-555-1234 ",
        ],
    )
    def test_formats_share_one_key(self, raw):
        """Test that formatting and a leading country code don't change the key."""
        assert normalize_phone(raw) == "2405551234"

    @pytest.mark.parametrize("national", ["2405551234", "3015550000", "9995550001"])
    def test_leading_country_code_digit_is_ignored(self, national):
        """Test numbers differing only by the leading 1 normalize identically."""
        assert normalize_phone(national) == normalize_phone("1" + national)

    @pytest.mark.parametrize("raw", [None, "", "   ", "abc", "555-1234", "+1", 42])
    def test_dirty_input_is_unmatchable(self, raw):
        """Test that malformed input maps to the sentinel instead of raising."""
        assert normalize_phone(raw) == UNMATCHABLE

    def test_international_numbers_keep_their_digits(self):
        """Test that long non-NANP numbers are returned as bare digits."""
        assert normalize_phone("+44 20 7946 0958") == "442079460958"

    def test_phones_match(self):
        """Test fuzzy matching across formats, never matching unmatchable input."""
        assert phones_match("+12405551234", "(240) 555-1234")
        assert not phones_match("+12405551234", "+12405551235")
        assert not phones_match("", "")
        assert not phones_match(None, "abc")


class TestVariants:
    """Test variant sets used for matching stored numbers."""

    def test_ten_digit_variants(self):
        assert phone_variants("(240) 555-1234") == {"2405551234", "12405551234"}

    def test_eleven_digit_variants(self):
        assert phone_variants("+12405551234") == {"12405551234", "2405551234"}

    def test_empty_input_has_no_variants(self):
        assert phone_variants(None) == set()
        assert phone_variants("n/a") == set()

    def test_variants_agree_with_canonical_key(self):
        """Test numbers share a variant exactly when their keys are equal."""
        numbers = ["2405551234", "+1 240 555 1234", "3015551234", "+442079460958", "12345"]
        for a in numbers:
            for b in numbers:
                same_key = normalize_phone(a) == normalize_phone(b) != UNMATCHABLE
                assert phones_match(a, b) == same_key, (a, b)


class TestConversationKeys:
    """Test grouping keys and addressable phones for conversations."""

    def test_matchable_numbers_group_by_canonical_key(self):
        assert conversation_key("+1 (240) 555-1234") == "2405551234"
        assert conversation_phone("+1 (240) 555-1234") == "2405551234"

    def test_unmatchable_numbers_group_by_raw_string(self):
        assert conversation_key(" 12345 ") == "unmatchable:12345"
        assert conversation_key("12345") != conversation_key("99999")

    def test_unmatchable_numbers_are_addressed_by_raw_string(self):
        """Test the grouping sentinel never leaks into the addressable phone."""
        assert conversation_phone(" 12345 ") == "12345"
        assert conversation_phone(None) == ""

    def test_grouping_keys_are_not_matchable(self):
        assert is_matchable("2405551234")
        assert not is_matchable(UNMATCHABLE)
        assert not is_matchable(conversation_key("12345"))
        assert not is_matchable("")


class TestFormatting:
    """Test outbound and display formatting."""

    def test_format_e164(self):
        assert format_e164("240-555-1234") == "+12405551234"
        assert format_e164("12405551234") == "+12405551234"
        assert format_e164("+442079460958") == "+442079460958"
        assert format_e164("") is None

    def test_format_display(self):
        assert format_display("+12405551234") == "(240) 555-1234"
        assert format_display("short") == "short"
        assert format_display(None) == ""
