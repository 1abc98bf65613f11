"""
Normalization & Fingerprinting Layer

RESPONSIBILITY: Turn raw text into deterministic, comparable representations
ALLOWED INPUTS: Plain strings
OUTPUTS: ContentFingerprint, AdvancedFingerprint, TextProfile (immutable)

WHAT THIS LAYER MUST NOT DO:
============================
- Store content or maintain indices
- Compare two texts (that is the similarity layer)
- Assign mutation types or families
- Depend on wall-clock time or randomness

BOUNDARY ENFORCEMENT:
=====================
Every function here is pure: the same text always yields the same hash,
the same tokens and the same profile.
"""

from __future__ import annotations
from collections import Counter
from dataclasses import dataclass
from functools import lru_cache
from typing import Callable, FrozenSet, Iterable, List, Tuple
import hashlib
import math
import re

from ..contracts.base import SemanticCluster
from ..contracts.events import ContentFingerprint, AdvancedFingerprint
from .vocabulary import (
    FINGERPRINT_STOPWORDS, SIMILARITY_STOPWORDS, SYNONYMS,
    SEMANTIC_CLUSTER_KEYWORDS, CLUSTER_ORDER
)


_WORD_RE = re.compile(r'\b\w+\b')
_NON_WORD_RE = re.compile(r'[^\w\s]')
_WHITESPACE_RE = re.compile(r'\s+')
_SENTENCE_SPLIT_RE = re.compile(r'[.!?]+')
# Standalone numbers only: "COVID-19" carries no numeric claim.
_NUMBER_RE = re.compile(r'(?<![\w-])\d+(?:\.\d+)?(?![\w-])')


# =============================================================================
# TOKENIZATION
# =============================================================================

def normalize_text(text: str) -> str:
    """Lowercase, strip punctuation, collapse whitespace."""
    stripped = _NON_WORD_RE.sub('', text.lower())
    return _WHITESPACE_RE.sub(' ', stripped).strip()


def extract_words(text: str) -> List[str]:
    """All lowercase word tokens in order, duplicates kept."""
    return _WORD_RE.findall(text.lower())


def extract_numbers(text: str) -> List[str]:
    """Standalone numeric tokens in order of appearance."""
    return _NUMBER_RE.findall(text)


def replace_numbers(text: str, transform: Callable[[float], float]) -> str:
    """Rewrite every standalone number through `transform`, floored to an integer."""
    return _NUMBER_RE.sub(lambda m: str(math.floor(transform(float(m.group(0))))), text)


def count_sentences(text: str) -> int:
    return len([s for s in _SENTENCE_SPLIT_RE.split(text) if s.strip()])


def canonicalize(token: str) -> str:
    """
    Fold a lowercase token onto its canonical form.

    Direct synonym lookup first, then a naive plural strip followed by a
    second lookup.
    """
    if token in SYNONYMS:
        return SYNONYMS[token]
    if len(token) > 3 and token.endswith('s') and not token.endswith(('ss', 'us', 'is')):
        stem = token[:-1]
        return SYNONYMS.get(stem, stem)
    return token


def is_significant(token: str) -> bool:
    return len(token) > 2 and token not in SIMILARITY_STOPWORDS and not token.isdigit()


def keyword_hits(keywords: Iterable[str], words: FrozenSet[str], text_lower: str) -> int:
    """
    Count keywords present in a text.

    Single-word keywords match whole tokens; keywords containing spaces or
    punctuation ("new delhi", "cover-up", "#") match as substrings.
    """
    hits = 0
    for keyword in keywords:
        if keyword.isalnum():
            if keyword in words:
                hits += 1
        elif keyword in text_lower:
            hits += 1
    return hits


# =============================================================================
# TEXT PROFILE (cached token view of a text)
# =============================================================================

@dataclass(frozen=True)
class TextProfile:
    """
    Precomputed token view of one text.

    words: every lowercase token, in order
    word_set: distinct lowercase tokens
    tokens: canonical significant tokens (similarity vocabulary)
    keyword_space: word_set plus canonical tokens, used for cluster hits
    """
    text: str
    lower: str
    words: Tuple[str, ...]
    word_set: FrozenSet[str]
    tokens: FrozenSet[str]
    keyword_space: FrozenSet[str]
    numbers: Tuple[str, ...]
    sentence_count: int

    @property
    def word_count(self) -> int:
        return len(self.words)


@lru_cache(maxsize=8192)
def profile(text: str) -> TextProfile:
    """Build (or fetch from cache) the TextProfile of a text."""
    words = tuple(extract_words(text))
    word_set = frozenset(words)
    tokens = frozenset(canonicalize(w) for w in words if is_significant(w))
    return TextProfile(
        text=text,
        lower=text.lower(),
        words=words,
        word_set=word_set,
        tokens=tokens,
        keyword_space=word_set | tokens,
        numbers=tuple(extract_numbers(text)),
        sentence_count=count_sentences(text),
    )


def cluster_hits(text_profile: TextProfile) -> Tuple[Tuple[SemanticCluster, int], ...]:
    """Keyword hit count per semantic cluster, in fixed cluster order."""
    return tuple(
        (cluster, keyword_hits(SEMANTIC_CLUSTER_KEYWORDS[cluster],
                               text_profile.keyword_space, text_profile.lower))
        for cluster in CLUSTER_ORDER
    )


def determine_semantic_cluster(text: str) -> SemanticCluster:
    """
    Assign the best-matching semantic cluster.

    Score = matched keywords / cluster size; strict improvement wins, so
    ties keep the earlier cluster. No hits at all yields GENERAL.
    """
    best = SemanticCluster.GENERAL
    best_score = 0.0
    for cluster, hits in cluster_hits(profile(text)):
        score = hits / len(SEMANTIC_CLUSTER_KEYWORDS[cluster])
        if score > best_score:
            best_score = score
            best = cluster
    return best


# =============================================================================
# FINGERPRINT GENERATION (Deterministic)
# =============================================================================

class FingerprintGenerator:
    """
    Deterministic fingerprinting of content.

    content_hash gates exact duplicates; semantic_fingerprint is a coarse
    bucketing key kept as an auxiliary index, never used for equality.
    """

    def __init__(self, max_fingerprint_tokens: int = 20, min_token_length: int = 4):
        self._max_tokens = max_fingerprint_tokens
        self._min_token_length = min_token_length

    def content_hash(self, text: str) -> str:
        return hashlib.sha256(normalize_text(text).encode('utf-8')).hexdigest()

    def semantic_fingerprint(self, text: str) -> str:
        significant = sorted({
            w for w in extract_words(text)
            if len(w) >= self._min_token_length and w not in FINGERPRINT_STOPWORDS
        })
        joined = '|'.join(significant[:self._max_tokens])
        return hashlib.md5(joined.encode('utf-8')).hexdigest()

    def fingerprint(self, text: str) -> ContentFingerprint:
        return ContentFingerprint(
            content_hash=self.content_hash(text),
            semantic_fingerprint=self.semantic_fingerprint(text)
        )

    def advanced_fingerprint(self, text: str) -> AdvancedFingerprint:
        """
        Multi-view fingerprint: top words, leading bigrams and domain scores,
        combined under one sha256.
        """
        p = profile(text)
        significant = [canonicalize(w) for w in p.words if is_significant(w)]

        top_words = sorted(
            Counter(significant).items(), key=lambda kv: (-kv[1], kv[0])
        )[:10]
        word_fp = hashlib.md5(
            '|'.join(w for w, _ in top_words).encode('utf-8')
        ).hexdigest()

        bigrams = sorted({
            f"{a}_{b}" for a, b in zip(significant, significant[1:])
        })[:self._max_tokens]
        ngram_fp = hashlib.md5('|'.join(bigrams).encode('utf-8')).hexdigest()

        domain = '|'.join(f"{c.value}:{h}" for c, h in cluster_hits(p))
        domain_fp = hashlib.md5(domain.encode('utf-8')).hexdigest()

        basic = self.semantic_fingerprint(text)
        combined = hashlib.sha256(
            f"{basic}|{word_fp}|{ngram_fp}|{domain_fp}".encode('utf-8')
        ).hexdigest()

        return AdvancedFingerprint(
            basic_fingerprint=basic,
            word_fingerprint=word_fp,
            ngram_fingerprint=ngram_fp,
            domain_fingerprint=domain_fp,
            combined_hash=combined
        )
