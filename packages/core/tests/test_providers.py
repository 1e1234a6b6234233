"""Tests for the provider registry and fuzzy matching."""

import pytest

from billport_core.providers import (
    PROVIDER_REGISTRY,
    fuzzy_match_provider,
    normalize_vendor,
    resolve_provider,
    slugify,
    token_overlap,
)


class TestFuzzyMatchProvider:
    """Test suite for fuzzy_match_provider."""

    def test_exact_match(self):
        match = fuzzy_match_provider("ROGERS")
        assert match.provider_id == "rogers"
        assert match.score == 1.0
        assert match.category == "telecom"

    def test_accents_ignored(self):
        """Accented registry names match their unaccented spelling."""
        match = fuzzy_match_provider("Hydro Quebec")
        assert match.provider_id == "hydro_quebec"
        assert match.score == 1.0

    def test_containment(self):
        """A vendor string containing a provider name scores 0.9."""
        match = fuzzy_match_provider("Enbridge Gas Distribution Inc")
        assert match.provider_id == "enbridge_gas"
        assert match.score == 0.9

    def test_typo_scores_partially(self):
        match = fuzzy_match_provider("Torronto Hydro")
        assert match.provider_id == "toronto_hydro"
        assert 0.4 <= match.score < 0.9

    @pytest.mark.parametrize("name", ["", "   ", "!!!", "Qwxz Plumbing"])
    def test_no_match(self, name):
        assert fuzzy_match_provider(name) is None


class TestResolveProvider:
    """Test suite for resolve_provider."""

    def test_known_provider(self):
        resolved = resolve_provider("  Toronto Hydro ")
        assert resolved.provider_id == "toronto_hydro"
        assert not resolved.is_custom

    def test_custom_provider(self):
        resolved = resolve_provider("Joe's Landscaping & Snow")
        assert resolved.provider_id == "custom_joes_landscaping_snow"
        assert resolved.provider_name == "Joe's Landscaping & Snow"
        assert resolved.is_custom


class TestHelpers:
    """Test suite for normalization helpers."""

    def test_normalize_vendor(self):
        assert normalize_vendor("  Énergir,  Inc. ") == "energir inc"

    def test_slugify(self):
        assert slugify("Disney+ Canada") == "disney_canada"

    def test_token_overlap(self):
        assert token_overlap("Bell Canada", "Bell") == 0.5
        assert token_overlap("Bell", "") == 0.0

    def test_registry_ids_are_unique_slugs(self):
        for provider_id in PROVIDER_REGISTRY:
            assert provider_id == provider_id.lower()
            assert " " not in provider_id
