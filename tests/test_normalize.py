"""Tests for address normalization, search keys and fuzzy matching."""

import pytest

from location_intelligence.core.models import Region
from location_intelligence.core.normalize import (
    derive_search_keys,
    extract_state_code,
    fold,
    levenshtein,
    normalize,
    region_for_state,
    similarity,
    split_address,
)


# ---------------------------------------------------------------------------
# normalize
# ---------------------------------------------------------------------------

class TestNormalize:
    def test_lowercases_and_collapses_whitespace(self):
        assert normalize("  Rua  das   Flores,  123 ") == "rua das flores, 123"

    def test_strips_punctuation_noise(self):
        assert normalize("Centro!, Montes Claros (MG).") == "centro, montes claros mg"

    def test_keeps_hyphens_and_accents(self):
        assert normalize("São José - Norte") == "são josé - norte"

    def test_comma_spacing_is_canonical(self):
        assert normalize("Centro,Montes Claros ,MG") == "centro, montes claros, mg"

    def test_drops_empty_components(self):
        assert normalize("Centro,, ,Montes Claros") == "centro, montes claros"

    def test_empty_and_noise_only(self):
        assert normalize("") == ""
        assert normalize("   ") == ""
        assert normalize("!!!") == ""

    @pytest.mark.parametrize("raw", [
        "Rua Dr. Santos 120, Centro, Montes Claros, MG",
        "  a . b  ,, c ",
        "AV. PAULISTA, 1000 - SÃO PAULO/SP",
        "\tcentro\n, moc ",
        ", , ,",
    ])
    def test_idempotent(self, raw):
        once = normalize(raw)
        assert normalize(once) == once

    def test_case_whitespace_and_noise_variants_share_a_key(self):
        variants = [
            "Centro, Montes Claros, MG",
            "centro,montes claros,mg",
            "  CENTRO ,  Montes   Claros , MG. ",
        ]
        assert len({normalize(v) for v in variants}) == 1


# ---------------------------------------------------------------------------
# derive_search_keys
# ---------------------------------------------------------------------------

class TestSearchKeys:
    def test_full_hierarchy(self):
        keys = derive_search_keys("Rua A 10, Centro, Montes Claros, MG")
        assert keys == [
            "rua a 10, centro, montes claros, mg",
            "centro, montes claros, mg",
            "montes claros, mg",
        ]

    def test_short_keys_dropped(self):
        # "mg" alone is shorter than three characters
        assert "mg" not in derive_search_keys("Centro, Montes Claros, MG")

    def test_duplicates_removed_keeping_first(self):
        assert derive_search_keys("Montes Claros, MG") == ["montes claros, mg"]

    def test_single_component(self):
        assert derive_search_keys("São Paulo") == ["são paulo"]

    def test_empty(self):
        assert derive_search_keys("") == []
        assert derive_search_keys("  ,  ") == []

    def test_state_name_kept_when_long_enough(self):
        keys = derive_search_keys("Centro, Curitiba, Paraná")
        assert keys[-1] == "paraná"


class TestSplitAddress:
    def test_trims_and_skips_empty(self):
        assert split_address(" Centro , , Montes Claros,MG ") == ["Centro", "Montes Claros", "MG"]

    def test_none_safe(self):
        assert split_address("") == []


# ---------------------------------------------------------------------------
# similarity
# ---------------------------------------------------------------------------

class TestSimilarity:
    def test_both_empty_is_identical(self):
        assert similarity("", "") == 1.0

    def test_one_empty(self):
        assert similarity("abc", "") == 0.0
        assert similarity("", "abc") == 0.0

    def test_identical(self):
        assert similarity("ibituruna", "ibituruna") == 1.0

    def test_single_character_substitution(self):
        assert similarity("abc", "abd") == pytest.approx(2 / 3)

    def test_single_character_deletion(self):
        assert similarity("ibituruna", "ibiturna") == pytest.approx(8 / 9)

    def test_symmetric(self):
        assert similarity("kitten", "sitting") == similarity("sitting", "kitten")

    def test_range(self):
        for a, b in [("a", "zzzz"), ("centro", "cintra"), ("x", "x")]:
            assert 0.0 <= similarity(a, b) <= 1.0

    def test_levenshtein_classic(self):
        assert levenshtein("kitten", "sitting") == 3
        assert levenshtein("", "abc") == 3
        assert levenshtein("abc", "abc") == 0


class TestFold:
    def test_strips_accents_and_case(self):
        assert fold("  Cândida   CÂMARA ") == "candida camara"


# ---------------------------------------------------------------------------
# state and region helpers
# ---------------------------------------------------------------------------

class TestStateCodes:
    @pytest.mark.parametrize("part, expected", [
        ("Minas Gerais", "MG"),
        ("São Paulo", "SP"),
        ("sao paulo", "SP"),
        ("Paraná", "PR"),
        ("mg", "MG"),
        (" RJ ", "RJ"),
        ("", ""),
    ])
    def test_extract_state_code(self, part, expected):
        assert extract_state_code(part) == expected

    def test_region_for_state(self):
        assert region_for_state("BA") == Region.NORTHEAST
        assert region_for_state("df") == Region.CENTER_WEST
        assert region_for_state("RS") == Region.SOUTH
        assert region_for_state("AM") == Region.NORTH

    def test_unknown_state_defaults_to_southeast(self):
        assert region_for_state("XX") == Region.SOUTHEAST
        assert region_for_state("") == Region.SOUTHEAST
