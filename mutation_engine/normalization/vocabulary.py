"""
Fixed Keyword Vocabularies

All keyword sets used by fingerprinting, similarity, classification and
prediction. Frozen, module-level, and deterministic: changing any set changes
engine behavior, so they live in one place.
"""

from __future__ import annotations
from typing import Dict, FrozenSet, Tuple

from ..contracts.base import SemanticCluster


# =============================================================================
# STOPWORDS
# =============================================================================

FINGERPRINT_STOPWORDS: FrozenSet[str] = frozenset({
    'the', 'and', 'or', 'but', 'in', 'on', 'at', 'to', 'for', 'of', 'with',
    'by', 'from', 'up', 'about', 'into', 'through', 'during', 'before',
    'after', 'above', 'below', 'between', 'among', 'this', 'that', 'these',
    'those', 'is', 'are', 'was', 'were', 'be', 'been', 'being', 'have',
    'has', 'had', 'do', 'does', 'did', 'will', 'would', 'could', 'should',
})

SIMILARITY_STOPWORDS: FrozenSet[str] = FINGERPRINT_STOPWORDS | frozenset({
    'may', 'might', 'must', 'can', 'shall', 'a', 'an', 'as', 'if', 'when',
    'where', 'why', 'how', 'what', 'who', 'which', 'whom', 'whose',
})


# =============================================================================
# SEMANTIC CLUSTERS
# =============================================================================

SEMANTIC_CLUSTER_KEYWORDS: Dict[SemanticCluster, FrozenSet[str]] = {
    SemanticCluster.MEDICAL: frozenset({
        'cure', 'treatment', 'vaccine', 'medicine', 'doctor', 'hospital', 'health',
    }),
    SemanticCluster.DISASTER: frozenset({
        'flood', 'earthquake', 'emergency', 'evacuation', 'disaster', 'crisis',
    }),
    SemanticCluster.FINANCIAL: frozenset({
        'scam', 'money', 'investment', 'fraud', 'bank', 'payment', 'crypto',
    }),
    SemanticCluster.POLITICAL: frozenset({
        'government', 'election', 'vote', 'policy', 'politician', 'party',
    }),
    SemanticCluster.CONSPIRACY: frozenset({
        'cover-up', 'secret', 'hidden', 'conspiracy', 'truth', 'exposed',
    }),
}

# Cluster iteration order; ties in cluster scoring resolve to the earliest.
CLUSTER_ORDER: Tuple[SemanticCluster, ...] = (
    SemanticCluster.MEDICAL,
    SemanticCluster.DISASTER,
    SemanticCluster.FINANCIAL,
    SemanticCluster.POLITICAL,
    SemanticCluster.CONSPIRACY,
)


# =============================================================================
# CANONICAL FORMS (paraphrase folding for lexical similarity)
# =============================================================================

_SYNONYM_GROUPS: Dict[str, Tuple[str, ...]] = {
    # medical
    'cure': ('cures', 'cured', 'curing', 'heal', 'heals', 'healed', 'healing',
             'remedy', 'remedies'),
    'doctor': ('physician', 'medic', 'practitioner', 'specialist'),
    'medicine': ('drug', 'medication', 'pharmaceutical'),
    'disease': ('illness', 'condition', 'disorder', 'ailment'),
    'covid': ('coronavirus', 'corona', 'sars'),
    'vaccine': ('vaccines', 'vaccination', 'jab'),
    # disaster
    'flood': ('flooding', 'deluge', 'inundation', 'overflow'),
    'emergency': ('alarm',),
    'disaster': ('catastrophe', 'calamity', 'tragedy'),
    'evacuation': ('relocation', 'exodus', 'withdrawal'),
    # financial
    'scam': ('fraud', 'swindle', 'con'),
    'money': ('cash', 'funds', 'currency'),
    'investment': ('funding', 'stake', 'venture'),
    'profit': ('gain', 'earnings', 'income'),
    # political
    'government': ('administration', 'regime'),
    'politician': ('leader', 'representative'),
    'election': ('ballot', 'poll'),
    'policy': ('regulation', 'guideline'),
    # modifiers
    'completely': ('fully', 'entirely', 'totally', 'wholly'),
}

SYNONYMS: Dict[str, str] = {
    variant: canonical
    for canonical, variants in _SYNONYM_GROUPS.items()
    for variant in variants
}


# =============================================================================
# CLASSIFIER KEYWORDS
# =============================================================================

EMOTIONAL_WORDS: FrozenSet[str] = frozenset({
    'urgent', 'critical', 'dangerous', 'shocking', 'breaking', 'alert',
    'warning', 'emergency',
})

LOCATION_WORDS: FrozenSet[str] = frozenset({
    'mumbai', 'delhi', 'bangalore', 'chennai', 'kolkata', 'india', 'city',
    'state', 'country',
})

TIME_WORDS: FrozenSet[str] = frozenset({
    'hours', 'days', 'minutes', 'weeks', 'months', 'years', 'today',
    'tomorrow', 'yesterday',
})

SOURCE_WORDS: FrozenSet[str] = frozenset({
    'doctors', 'experts', 'scientists', 'researchers', 'officials',
    'authorities',
})


# =============================================================================
# PREDICTION KEYWORDS
# =============================================================================

VIRAL_KEYWORDS: FrozenSet[str] = frozenset({
    'urgent', 'breaking', 'shocking', 'must', 'share', 'everyone',
    'immediately', 'warning', 'alert', 'emergency', 'critical', 'dangerous',
    'exposed', 'truth',
})

EMOTIONAL_INTENSIFIERS: FrozenSet[str] = frozenset({
    'very', 'extremely', 'incredibly', 'absolutely', 'completely', 'totally',
    'massive', 'huge', 'enormous', 'devastating', 'catastrophic',
})

# Ordered: ties in audience scoring resolve to the earliest entry.
AUDIENCE_INDICATORS: Tuple[Tuple[str, FrozenSet[str]], ...] = (
    ('elderly', frozenset({'grandparents', 'seniors', 'elderly', 'retirement', 'pension'})),
    ('parents', frozenset({'children', 'kids', 'family', 'school', 'parenting'})),
    ('youth', frozenset({'students', 'college', 'young', 'teens', 'university'})),
    ('professionals', frozenset({'work', 'office', 'career', 'business', 'corporate'})),
    ('medical', frozenset({'patients', 'doctors', 'health', 'medical', 'treatment'})),
)

AUDIENCE_VULNERABILITY: Dict[str, float] = {
    'elderly': 0.9,
    'parents': 0.8,
    'youth': 0.7,
    'professionals': 0.5,
    'medical': 0.4,
}

TARGETING_STRATEGIES: Dict[str, str] = {
    'elderly': 'authority_based_fear_appeal',
    'parents': 'child_safety_concern',
    'youth': 'peer_pressure_viral',
    'professionals': 'career_impact_warning',
    'medical': 'health_authority_challenge',
}

GEO_KEYWORDS: Tuple[Tuple[str, FrozenSet[str]], ...] = (
    ('mumbai', frozenset({'mumbai', 'bombay'})),
    ('delhi', frozenset({'delhi', 'new delhi'})),
    ('bangalore', frozenset({'bangalore', 'bengaluru'})),
    ('chennai', frozenset({'chennai', 'madras'})),
    ('kolkata', frozenset({'kolkata', 'calcutta'})),
    ('hyderabad', frozenset({'hyderabad'})),
    ('pune', frozenset({'pune'})),
    ('ahmedabad', frozenset({'ahmedabad'})),
    ('india', frozenset({'india', 'indian', 'bharat'})),
    ('global', frozenset({'world', 'global', 'international', 'worldwide'})),
)

METRO_LOCATIONS: FrozenSet[str] = frozenset({'mumbai', 'delhi', 'bangalore'})
WIDE_LOCATIONS: FrozenSet[str] = frozenset({'india', 'global'})
LOCAL_TREND_LOCATIONS: FrozenSet[str] = frozenset({'mumbai', 'delhi', 'bangalore', 'chennai'})
GLOBAL_TREND_LOCATIONS: FrozenSet[str] = frozenset({'global', 'world', 'international'})

PLATFORM_INDICATORS: Tuple[Tuple[str, FrozenSet[str]], ...] = (
    ('twitter', frozenset({'#', '@', 'tweet', 'retweet', 'twitter'})),
    ('facebook', frozenset({'facebook', 'fb', 'share', 'like'})),
    ('whatsapp', frozenset({'whatsapp', 'forward', 'group'})),
    ('telegram', frozenset({'telegram', 'channel'})),
    ('instagram', frozenset({'instagram', 'story', 'post'})),
    ('youtube', frozenset({'youtube', 'video', 'subscribe'})),
    ('tiktok', frozenset({'tiktok', 'viral', 'trend'})),
)
