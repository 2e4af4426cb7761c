"""Tests for query normalization and cache key derivation."""

import pytest

from src.modules.chat import derive_key, is_generic_follow_up, normalize
from src.modules.chat.normalizer import GENERIC_FOLLOW_UPS


class TestNormalize:
    """Tests for normalize()."""

    def test_lowercases_and_strips_punctuation(self) -> None:
        """Case and punctuation should not survive normalization."""
        assert normalize("BANGKOK, Thailand!!!") == "bangkok thailand"

    def test_drops_stop_words(self) -> None:
        """Articles, prepositions and question words should be removed."""
        assert normalize("What packages exist in Thailand?") == "packages exist thailand"

    def test_collapses_whitespace(self) -> None:
        """Runs of whitespace should become single spaces."""
        assert normalize("  bali \t\n  honeymoon   ") == "bali honeymoon"

    def test_punctuation_inside_words_splits_tokens(self) -> None:
        """Punctuation is replaced by a space, not deleted."""
        assert normalize("6-night trip") == "6 night trip"
        assert normalize("kuala_lumpur") == "kuala lumpur"

    @pytest.mark.parametrize("text", ["", None, "   ", "?!...", "What is the"])
    def test_degenerate_input_normalizes_to_empty(self, text: str | None) -> None:
        """Empty, missing, punctuation-only or stop-word-only input yields ""."""
        assert normalize(text) == ""

    @pytest.mark.parametrize(
        "text",
        [
            "What packages exist in Thailand?",
            "Singapore & Malaysia -- 6 nights, from Delhi!",
            "  ¿Qué? Ünïcödé  text ",
            "the the the",
            "a_b_c",
        ],
    )
    def test_is_idempotent(self, text: str) -> None:
        """Normalizing twice should equal normalizing once."""
        once = normalize(text)
        assert normalize(once) == once


class TestDeriveKey:
    """Tests for derive_key()."""

    def test_key_is_fixed_length_hex(self) -> None:
        """Keys should be SHA-256 hex digests."""
        key = derive_key("Bali packages")
        assert len(key) == 64
        int(key, 16)

    def test_paraphrases_share_a_key(self) -> None:
        """Queries differing only in case, punctuation or stop words collide."""
        assert derive_key("What packages exist in Thailand?") == derive_key(
            "packages exist thailand"
        )
        assert derive_key("Bali honeymoon") == derive_key("the BALI honeymoon?")

    def test_different_queries_have_different_keys(self) -> None:
        """Distinct normalized text should give distinct keys."""
        assert derive_key("Bali honeymoon") != derive_key("Bangkok city break")

    def test_is_deterministic(self) -> None:
        """Same input always yields the same key."""
        assert derive_key("Vietnam discovery") == derive_key("Vietnam discovery")


class TestGenericFollowUp:
    """Tests for is_generic_follow_up()."""

    @pytest.mark.parametrize(
        "query",
        ["What else?", "what else", "Tell me more!", "Other options?", "thanks", "Why?"],
    )
    def test_generic_phrases_are_detected(self, query: str) -> None:
        """Context-dependent phrases should bypass the cache."""
        assert is_generic_follow_up(query) is True

    @pytest.mark.parametrize(
        "query",
        ["What about Bangkok?", "Tell me more about the Bali package", "Cheapest trip"],
    )
    def test_specific_questions_are_not_generic(self, query: str) -> None:
        """Questions with their own subject should use the cache."""
        assert is_generic_follow_up(query) is False

    def test_stop_word_only_query_is_generic(self) -> None:
        """A query that normalizes to nothing must not share the empty key."""
        assert is_generic_follow_up("What is it?") is True

    def test_generic_set_is_stored_normalized(self) -> None:
        """Phrases are matched in normalized form."""
        assert "else" in GENERIC_FOLLOW_UPS
        assert all(phrase == normalize(phrase) for phrase in GENERIC_FOLLOW_UPS)
