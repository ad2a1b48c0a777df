"""Tests for the letter counting capability."""

import pytest

from letterflow.capabilities import DEFAULT_LETTER, LetterCounter, count_letter

SAMPLE_WORDS = [
    "",
    "e",
    "E",
    "splendiferous",
    "EVERGREEN",
    "rhythm",
    "Ééeè",
    "excellence excellence",
    "x" * 1000 + "e",
]


class TestCountLetter:
    """Test count_letter function."""

    @pytest.mark.parametrize("word,expected", [
        ("splendiferous", "2"),
        ("", "0"),
        ("rhythm", "0"),
        ("EeEe", "4"),
        ("Evergreen", "4"),
    ])
    def test_known_counts(self, word: str, expected: str):
        """Count for known words."""
        assert count_letter(word) == expected

    def test_default_letter_is_e(self):
        """The default letter is lowercase e."""
        assert DEFAULT_LETTER == "e"

    def test_other_letter(self):
        """Any single letter can be counted."""
        assert count_letter("Banana", "a") == "3"

    @pytest.mark.parametrize("word", SAMPLE_WORDS)
    def test_count_bounds(self, word: str):
        """Count is a non-negative decimal no larger than the word."""
        result = count_letter(word)
        assert result.isdigit()
        assert 0 <= int(result) <= len(word)

    @pytest.mark.parametrize("word", SAMPLE_WORDS)
    def test_invariant_under_case_permutation(self, word: str):
        """Changing the case of any letter leaves the count unchanged."""
        expected = count_letter(word)
        assert count_letter(word.upper()) == expected
        assert count_letter(word.lower()) == expected
        assert count_letter(word.swapcase()) == expected


class TestLetterCounter:
    """Test LetterCounter executor."""

    def test_execute(self):
        """The executor returns the count as text."""
        counter = LetterCounter()
        assert counter.execute("splendiferous") == "2"
        assert counter("splendiferous") == "2"

    def test_repeated_calls_are_identical(self):
        """Repeated calls give the same result."""
        counter = LetterCounter()
        assert {counter("cheese") for _ in range(5)} == {"3"}

    @pytest.mark.parametrize("letter", ["", "ee"])
    def test_rejects_non_single_letter(self, letter: str):
        """Only a single letter is accepted."""
        with pytest.raises(ValueError):
            LetterCounter(letter)

    def test_repr(self):
        """Test repr."""
        assert repr(LetterCounter("a")) == "LetterCounter(letter='a')"
