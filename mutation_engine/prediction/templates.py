"""
Content Templates

Illustrative rewrites of a family's original content, one per prediction
kind. Every random choice goes through the injected random.Random, so a
seeded generator reproduces the same text.
"""

from __future__ import annotations
from typing import Dict, Optional, Sequence, Tuple
import random
import re

from ..contracts.base import MutationType
from ..normalization import replace_numbers


URGENCY_WORDS = ('URGENT', 'BREAKING', 'IMMEDIATE', 'NOW', 'QUICKLY')
TIME_PRESSURE = ('within hours', 'by tomorrow', "before it's too late", 'right now')

EMOTIONAL_ESCALATION: Tuple[Tuple[str, str], ...] = (
    ('important', 'URGENT'),
    ('serious', 'CRITICAL'),
    ('bad', 'DANGEROUS'),
    ('problem', 'CRISIS'),
    ('issue', 'EMERGENCY'),
)

RELOCATION_CITIES = ('Mumbai', 'Delhi', 'Bangalore', 'Chennai', 'Kolkata', 'Hyderabad')

CONTEXT_PREFIXES = (
    'New evidence suggests: ',
    'Updated information: ',
    'Latest developments: ',
    'Recent findings show: ',
    'Breaking update: ',
)

VIRAL_PREFIXES = ('VIRAL ALERT:', 'EVERYONE MUST KNOW:', 'TRENDING NOW:', 'EXPLOSIVE NEWS:', 'GOING VIRAL:')
VIRAL_SUFFIXES = (
    "SHARE BEFORE IT'S DELETED!",
    'SPREAD THE WORD!',
    "DON'T LET THEM HIDE THIS!",
    'EVERYONE NEEDS TO SEE THIS!',
    'SHARE TO SAVE LIVES!',
)

AUDIENCE_FRAMES: Dict[str, str] = {
    'elderly': 'Seniors need to know: ',
    'parents': 'PARENTS WARNING: This affects your children! ',
    'youth': 'Students and young people: ',
    'professionals': 'Working professionals beware: ',
    'medical': 'Healthcare workers alert: ',
}

LOCATION_FRAMES: Dict[str, str] = {
    'mumbai': 'Mumbai residents alert: ',
    'delhi': 'Delhi breaking news: ',
    'bangalore': 'Bangalore urgent: ',
    'india': 'All India warning: ',
    'global': 'Global emergency: ',
}

DRIFT_SOFTENING: Tuple[Tuple[str, str], ...] = (
    ('dangerous', 'risky'),
    ('critical', 'important'),
    ('emergency', 'situation'),
    ('warning', 'notice'),
    ('urgent', 'timely'),
)

SIMPLIFY_WORDS: Tuple[Tuple[str, str], ...] = (
    ('extremely', 'very'),
    ('incredibly', 'very'),
    ('absolutely', 'very'),
    ('catastrophic', 'bad'),
    ('devastating', 'bad'),
)

AUTHORITY_PREFIXES = (
    'According to recent studies,',
    'Medical experts confirm that',
    'Research indicates that',
    'Scientific evidence shows',
)

_LOCATION_PHRASE_RE = re.compile(r'\b(in|at|from)\s+\w+', re.IGNORECASE)
_CLAUSE_PUNCT_RE = re.compile(r'[,;:]')
_SOURCE_RE = re.compile(r'\b(doctors?|experts?)\b', re.IGNORECASE)
_TIME_RE = re.compile(r'\b(today|tomorrow|soon)\b', re.IGNORECASE)


def _replace_words(text: str, pairs: Sequence[Tuple[str, str]]) -> str:
    for word, replacement in pairs:
        text = re.sub(rf'\b{word}\b', replacement, text, flags=re.IGNORECASE)
    return text


def _authority(match: re.Match) -> str:
    return 'TOP MEDICAL EXPERTS' if match.group(1).lower().startswith('doctor') else 'LEADING SCIENTISTS'


class ContentTemplates:
    """
    Rewrite generators used by the prediction synthesizer.

    The output is a sample of what the next variant could look like; it is
    never fed back into a family.
    """

    def __init__(self, rng: Optional[random.Random] = None):
        self._rng = rng or random.Random()

    def choice(self, options: Sequence[str]) -> str:
        return self._rng.choice(options)

    def velocity_content(self, content: str) -> str:
        urgency = self._rng.choice(URGENCY_WORDS)
        pressure = self._rng.choice(TIME_PRESSURE)
        return f"{urgency}: {content} - Act {pressure}!"

    def evolved_content(self, content: str, mutation_type: str) -> str:
        if mutation_type == MutationType.EMOTIONAL_AMPLIFICATION.value:
            return _replace_words(content, EMOTIONAL_ESCALATION)
        if mutation_type == MutationType.NUMERICAL_CHANGE.value:
            factor = 1.5 + self._rng.random()
            return replace_numbers(content, lambda n: n * factor)
        if mutation_type == MutationType.LOCATION_CHANGE.value:
            city = self._rng.choice(RELOCATION_CITIES)
            return _LOCATION_PHRASE_RE.sub(lambda m: f"{m.group(1)} {city}", content)
        return self._rng.choice(CONTEXT_PREFIXES) + content

    def viral_content(self, content: str) -> str:
        prefix = self._rng.choice(VIRAL_PREFIXES)
        suffix = self._rng.choice(VIRAL_SUFFIXES)
        return f"{prefix} {content} {suffix}"

    def audience_content(self, content: str, audience: str) -> str:
        return AUDIENCE_FRAMES.get(audience, '') + content

    def location_content(self, content: str, location: str) -> str:
        return LOCATION_FRAMES.get(location, '') + content

    def platform_content(self, content: str) -> str:
        """Twitter format: truncated body plus hashtags and a mention."""
        return content[:200] + " #BreakingNews #Alert @everyone"

    def drifted_content(self, content: str) -> str:
        return _replace_words(content, DRIFT_SOFTENING)

    def complexity_content(self, content: str, direction: str) -> str:
        if direction == 'simplify':
            simplified = _CLAUSE_PUNCT_RE.sub('.', _replace_words(content, SIMPLIFY_WORDS))
            return simplified.split('.')[0] + '.'
        if direction == 'complexify':
            prefix = self._rng.choice(AUTHORITY_PREFIXES)
            return (
                f"{prefix} {content} This has been verified through multiple "
                "independent sources and peer-reviewed analysis."
            )
        return content

    def intensified_content(self, content: str, mutation_type: str) -> str:
        """Push the family's dominant mutation type one step further."""
        if mutation_type == MutationType.EMOTIONAL_AMPLIFICATION.value:
            return f"CRITICAL ALERT: {content.upper()} - SHARE IMMEDIATELY TO SAVE LIVES!"
        if mutation_type == MutationType.NUMERICAL_CHANGE.value:
            return replace_numbers(content, lambda n: n * 0.5)
        if mutation_type == MutationType.LOCATION_CHANGE.value:
            return f"GLOBAL EMERGENCY: {content} - Spreading worldwide!"
        if mutation_type == MutationType.PHRASE_ADDITION.value:
            return f"VERIFIED BY EXPERTS: {content} - Multiple sources confirm this shocking truth!"
        if mutation_type == MutationType.SOURCE_MODIFICATION.value:
            return _SOURCE_RE.sub(_authority, content)
        if mutation_type == MutationType.TIME_SHIFT.value:
            return _TIME_RE.sub('RIGHT NOW', content)
        return f"URGENT UPDATE: {content} - This changes everything!"
