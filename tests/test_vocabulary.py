"""Tests for src.data.vocabulary — seed aliases and reply patterns."""

import pytest

from src.data.vocabulary import SEED_ALIASES, extract_negation_remainder, is_affirmative


class TestSeedAliases:
    @pytest.mark.parametrize("alias,canonical", [
        ("pant", "pantning"),
        ("dammsuga", "dammsugning"),
        ("disk", "diskning"),
        ("tvätt", "tvättning"),
        ("städ", "städning"),
        ("hoovered", "vacuuming"),
    ])
    def test_required_mappings(self, alias, canonical):
        assert SEED_ALIASES[alias] == canonical

    def test_keys_are_lowercase(self):
        for key in SEED_ALIASES:
            assert key == key.lower()

    def test_no_empty_values(self):
        for key, value in SEED_ALIASES.items():
            assert value, f"value for {key!r} should be non-empty"


class TestAffirmative:
    @pytest.mark.parametrize("text", ["yes", "Yep", "ok", "ja", "Japp", "mm", "okej", "precis", " yes! "])
    def test_affirmative(self, text):
        assert is_affirmative(text) is True

    @pytest.mark.parametrize("text", ["no", "yes but no", "maybe", "", "nej, disk"])
    def test_not_affirmative(self, text):
        assert is_affirmative(text) is False


class TestNegationRemainder:
    def test_english(self):
        assert extract_negation_remainder("no, I did the laundry") == "I did the laundry"

    def test_swedish(self):
        assert extract_negation_remainder("Nej tvättade") == "tvättade"

    def test_bare_negation(self):
        assert extract_negation_remainder("no") is None

    def test_negation_with_only_punctuation(self):
        assert extract_negation_remainder("nope, ") is None

    def test_not_a_negation(self):
        assert extract_negation_remainder("nothing happened") is None

    def test_empty(self):
        assert extract_negation_remainder("") is None
