"""
Similarity Layer Tests

Pairwise scoring, variant search, greedy clustering and the lexical
fallback path.
"""

import string

import pytest
from hypothesis import given, settings, strategies as st

from mutation_engine.contracts.base import MutationType
from mutation_engine.contracts.events import TextItem
from mutation_engine.similarity import SimilarityConfig, SimilarityEngine, jaccard

from tests.fixtures import ORIGINAL, PARAPHRASE, NUMERIC_VARIANT, UNRELATED


words = st.lists(
    st.text(alphabet=string.ascii_lowercase, min_size=1, max_size=8), max_size=12
).map(' '.join)


class BrokenCompositeEngine(SimilarityEngine):
    """Composite scoring always fails, forcing the lexical fallback."""

    def _composite_breakdown(self, pa, pb):
        raise ValueError("composite unavailable")


class BrokenFallbackEngine(BrokenCompositeEngine):
    """Both the composite and the lexical path fail."""

    def _basic_breakdown(self, a, b):
        raise ValueError("lexical unavailable")


class TestPairwiseSimilarity:
    """calculate_similarity / score."""

    def test_plain_jaccard(self):
        engine = SimilarityEngine()
        result = engine.calculate_similarity("apple banana cherry", "apple banana grape")
        assert result.overall_similarity == pytest.approx(0.5)
        assert result.is_variant is False
        assert result.variant_analysis.primary_type is None
        assert result.fallback_used is False

    def test_paraphrase_is_variant(self):
        """Canonical forms plus the shared medical cluster carry a paraphrase over the threshold."""
        result = SimilarityEngine().calculate_similarity(PARAPHRASE, ORIGINAL)
        assert result.overall_similarity == pytest.approx(5 / 6 + 0.1)
        assert result.breakdown.shared_clusters == ('medical',)
        assert result.is_variant is True
        assert result.variant_analysis.primary_type == MutationType.CONTEXT_SHIFT
        assert result.confidence == result.overall_similarity

    def test_numeric_variant_score(self):
        assert SimilarityEngine().score(NUMERIC_VARIANT, ORIGINAL) == pytest.approx(4 / 6 + 0.1)

    def test_unrelated_scores_zero(self):
        assert SimilarityEngine().score(UNRELATED, ORIGINAL) == 0.0

    def test_identical_texts_capped_at_one(self):
        """Lexical 1.0 plus a cluster boost never exceeds 1.0."""
        assert SimilarityEngine().score(ORIGINAL, ORIGINAL) == 1.0

    def test_threshold_is_inclusive(self):
        engine = SimilarityEngine(SimilarityConfig(similarity_threshold=0.5))
        assert engine.calculate_similarity("apple banana cherry", "apple banana grape").is_variant

    def test_empty_texts(self):
        assert SimilarityEngine().score("", "") == 0.0

    @settings(max_examples=50)
    @given(words, words)
    def test_symmetry(self, a, b):
        engine = SimilarityEngine()
        assert engine.score(a, b) == engine.score(b, a)

    @settings(max_examples=50)
    @given(words, words)
    def test_bounds(self, a, b):
        assert 0.0 <= SimilarityEngine().score(a, b) <= 1.0

    def test_jaccard_helper(self):
        assert jaccard(frozenset(), frozenset()) == 0.0
        assert jaccard(frozenset({'a'}), frozenset({'a', 'b'})) == 0.5


class TestFallback:
    """Composite failure degrades to plain word Jaccard instead of raising."""

    def test_fallback_result_is_flagged(self):
        calls = []
        engine = BrokenCompositeEngine(on_fallback=lambda: calls.append(1))
        result = engine.calculate_similarity("apple banana cherry", "apple banana grape")
        assert result.fallback_used is True
        assert result.overall_similarity == pytest.approx(0.5)
        assert result.breakdown.structural == 0.0
        assert calls == [1]

    def test_fallback_keeps_cluster_boost(self):
        engine = BrokenCompositeEngine()
        assert engine.score("flood warning", "flood relief") == pytest.approx(1 / 3 + 0.1)

    def test_basic_similarity_matches_fallback(self):
        assert SimilarityEngine().basic_similarity("flood warning", "flood relief") == \
            pytest.approx(1 / 3 + 0.1)

    def test_failed_fallback_scores_zero(self):
        calls = []
        engine = BrokenFallbackEngine(on_fallback=lambda: calls.append(1))
        result = engine.calculate_similarity(ORIGINAL, ORIGINAL)
        assert result.overall_similarity == 0.0
        assert result.fallback_used is True
        assert not result.is_variant
        assert calls == [1]
        assert engine.score(ORIGINAL, PARAPHRASE) == 0.0


class TestFindVariants:
    """Linear scan, ranked highest first."""

    def test_ranking_and_floor(self):
        engine = SimilarityEngine()
        matches = engine.find_variants(ORIGINAL, [UNRELATED, NUMERIC_VARIANT, PARAPHRASE])
        assert [m.item.content for m in matches] == [PARAPHRASE, NUMERIC_VARIANT]
        assert matches[0].similarity_score > matches[1].similarity_score

    def test_max_results(self):
        engine = SimilarityEngine()
        matches = engine.find_variants(ORIGINAL, [NUMERIC_VARIANT, PARAPHRASE], max_results=1)
        assert len(matches) == 1
        assert matches[0].item.content == PARAPHRASE

    def test_min_similarity_override(self):
        engine = SimilarityEngine()
        matches = engine.find_variants(ORIGINAL, [NUMERIC_VARIANT, PARAPHRASE], min_similarity=0.9)
        assert [m.item.content for m in matches] == [PARAPHRASE]

    def test_items_keep_provenance(self):
        item = TextItem(content=PARAPHRASE, family_id="family_x")
        matches = SimilarityEngine().find_variants(ORIGINAL, [item])
        assert matches[0].item.family_id == "family_x"

    def test_ties_keep_input_order(self):
        engine = SimilarityEngine()
        matches = engine.find_variants(
            "apple banana", ["apple banana cherry", "apple banana grape"], min_similarity=0.5
        )
        assert [m.item.content for m in matches] == ["apple banana cherry", "apple banana grape"]

    def test_empty_collection(self):
        assert SimilarityEngine().find_variants(ORIGINAL, []) == ()


class TestClustering:
    """Greedy single-pass clustering against representatives."""

    def test_greedy_grouping(self):
        texts = ["apple banana cherry", "apple banana cherry date", "zebra yak", "apple banana cherry"]
        clusters = SimilarityEngine().cluster_similar_texts(texts, threshold=0.75)
        assert len(clusters) == 2
        first = clusters[0]
        assert first.cluster_size == 3
        assert first.representative.content == "apple banana cherry"
        assert first.similarity_scores == pytest.approx((0.75, 1.0))
        assert clusters[1].members[0].content == "zebra yak"
        assert clusters[1].average_similarity == 1.0

    def test_largest_cluster_first(self):
        texts = ["zebra yak", "apple banana cherry", "apple banana cherry"]
        clusters = SimilarityEngine().cluster_similar_texts(texts)
        assert [c.cluster_size for c in clusters] == [2, 1]
        assert clusters[0].representative.content == "apple banana cherry"

    def test_cluster_ids_deterministic(self):
        texts = ["apple banana cherry", "zebra yak"]
        first = SimilarityEngine().cluster_similar_texts(texts)
        second = SimilarityEngine().cluster_similar_texts(texts)
        assert [c.cluster_id for c in first] == [c.cluster_id for c in second]
        assert all(c.cluster_id.startswith("cluster_") for c in first)


class TestLabelRelatedness:
    """Edit-distance similarity of variant-type labels."""

    def test_kitten_sitting(self):
        assert SimilarityEngine().string_similarity("kitten", "sitting") == pytest.approx(4 / 7)

    def test_empty_strings(self):
        assert SimilarityEngine().string_similarity("", "") == 1.0

    def test_labels_related(self):
        engine = SimilarityEngine()
        assert engine.labels_related("NUMERICAL_CHANGE", "NUMERICAL_CHANGE")
        assert not engine.labels_related("TIME_SHIFT", "NUMERICAL_CHANGE")
        assert not engine.labels_related(None, "TIME_SHIFT")
