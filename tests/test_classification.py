"""
Mutation Classification Tests

Each rule of the cascade fires on its own, and the first match wins.
"""

import pytest

from mutation_engine.contracts.base import MutationType
from mutation_engine.contracts.events import NumericChange
from mutation_engine.classification import (
    MutationClassifier, ClassifierConfig, shared_word_ratio
)
from mutation_engine.normalization import profile


BASE = "Turmeric cures covid"


@pytest.fixture
def classifier():
    return MutationClassifier()


class TestSingleRules:
    """One rule firing at a time."""

    @pytest.mark.parametrize("child,parent,expected", [
        ("Cure in 5 days", "Cure in 3 days", MutationType.NUMERICAL_CHANGE),
        ("Shocking warning: turmeric cures covid", BASE, MutationType.EMOTIONAL_AMPLIFICATION),
        ("Turmeric cures covid in Mumbai", BASE, MutationType.LOCATION_CHANGE),
        ("Turmeric cures covid today", BASE, MutationType.TIME_SHIFT),
        ("Doctors say turmeric cures covid", BASE, MutationType.SOURCE_MODIFICATION),
        ("Turmeric cures covid and also boosts immunity naturally", BASE, MutationType.PHRASE_ADDITION),
        ("turmeric cures covid very rapidly at home",
         "turmeric cures covid very quickly at home", MutationType.WORD_SUBSTITUTION),
        ("alpha beta", "gamma delta", MutationType.CONTEXT_SHIFT),
    ])
    def test_rule(self, classifier, child, parent, expected):
        assert classifier.classify(child, parent) == expected


class TestPriority:
    """Ordered cascade semantics."""

    def test_numeric_beats_emotional(self, classifier):
        """A change that is both numeric and emotional reports the numeric label."""
        child, parent = "Shocking: cure in 5 days", "Cure in 3 days"
        assert classifier.classify(child, parent) == MutationType.NUMERICAL_CHANGE
        assert classifier.matching_rules(child, parent) == [
            MutationType.NUMERICAL_CHANGE, MutationType.EMOTIONAL_AMPLIFICATION
        ]

    def test_emotion_only_counts_increases(self, classifier):
        """Dropping an emotional word is not amplification."""
        child, parent = BASE, "Shocking turmeric cures covid"
        assert classifier.classify(child, parent) == MutationType.WORD_SUBSTITUTION

    def test_hyphenated_names_are_not_numeric_changes(self, classifier):
        """COVID-19 on both sides with no standalone numbers."""
        assert classifier.classify("Shocking COVID-19 news", "COVID-19 news") == \
            MutationType.EMOTIONAL_AMPLIFICATION

    def test_rules_table_order(self, classifier):
        labels = [label for _, label in classifier.rules]
        assert labels == [
            MutationType.NUMERICAL_CHANGE,
            MutationType.EMOTIONAL_AMPLIFICATION,
            MutationType.LOCATION_CHANGE,
            MutationType.TIME_SHIFT,
            MutationType.SOURCE_MODIFICATION,
            MutationType.PHRASE_ADDITION,
            MutationType.WORD_SUBSTITUTION,
        ]

    def test_config_moves_phrase_threshold(self):
        """With a higher ratio the same addition no longer counts as a phrase addition."""
        strict = MutationClassifier(ClassifierConfig(phrase_addition_ratio=3.0))
        assert strict.classify("Turmeric cures covid and also boosts immunity naturally", BASE) == \
            MutationType.CONTEXT_SHIFT


class TestSharedWordRatio:

    def test_empty_texts(self):
        assert shared_word_ratio(profile(""), profile("")) == 0.0

    def test_uses_longer_text(self):
        assert shared_word_ratio(profile("a b c"), profile("a b c d")) == pytest.approx(0.75)


class TestChangeAnalysis:
    """Descriptive deltas stored with each mutation."""

    def test_numeric_delta(self, classifier):
        analysis = classifier.analyze_changes("Cure in 5 days", "Cure in 3 days")
        assert analysis.length_change == 0
        assert analysis.word_count_change == 0
        assert analysis.added_words == ('5',)
        assert analysis.removed_words == ('3',)
        assert analysis.changed_numbers == (NumericChange(from_value='3', to_value='5', position=0),)

    def test_added_number_has_no_predecessor(self, classifier):
        analysis = classifier.analyze_changes("Cure in 3 days for 10 people", "Cure in 3 days")
        assert analysis.changed_numbers == (NumericChange(from_value=None, to_value='10', position=1),)
        assert analysis.word_count_change == 3
