"""
Taxonomy Mapper for keyword-based vocabulary normalization.

Feeds describe themes and audiences with free-text categories, keywords and
feature flags. The calendar only accepts a closed list of canonical values
for "thematic focus" and "target group", so every term is mapped onto that
list by keyword:

- exact match of the lowercased term against a synonym
- otherwise, the first synonym (in table order) contained in the term

Thematic focus mapping always yields at least "Other"; target group mapping
may yield nothing.
"""

import logging
from typing import Dict, Iterable, List, Optional, Tuple

logger = logging.getLogger(__name__)

DEFAULT_THEME = "Other"

THEMATIC_FOCUS: Dict[str, List[str]] = {
    "Sea and water": [
        "sea", "water", "ocean", "marine", "maritime", "coastal", "fisheries",
        "aquatic", "sea & water", "sea and water",
    ],
    "Europe": ["europe", "european", "eu"],
    "Sustainability": [
        "sustainability", "sustainable", "environment", "environmental",
        "climate", "green", "ecology", "ecological", "renewable", "energy",
    ],
    "Cultural Heritage": [
        "cultural heritage", "culture", "heritage", "history", "historical",
        "museum", "archaeology", "art", "arts",
    ],
    "Health and well-being": [
        "health", "well-being", "wellbeing", "medicine", "medical", "wellness",
        "mental health", "healthcare",
    ],
    "Talents": [
        "talents", "talent", "education", "science", "discovery", "students",
        "youth", "skills", "training", "career",
    ],
}

TARGET_GROUPS: Dict[str, List[str]] = {
    "Children (0-16 y)": [
        "target group children", "target group kids", "children", "kids", "child",
    ],
    "Young people (16-26 y)": [
        "target group teenager", "target group young adults", "target group youth",
        "teenager", "yadult", "talents", "young", "youth", "student", "students",
    ],
    "General public/Civil society": [
        "target group adult", "target group general public",
        "target group civil society", "target group teachers", "adult", "public",
        "general", "civil", "teacher", "teachers",
    ],
    "Elderly people (+65y)": [
        "target group the elderly", "target group seniors", "senior", "seniors",
        "elderly",
    ],
    "Entrepreneurs/Businesses": [
        "target group entrepreneurs", "target group businesses",
        "target group business", "entrepreneur", "entrepreneurs", "business",
        "businesses", "company", "companies",
    ],
    "Policy makers": [
        "target group policy makers", "target group politicians", "policy",
        "policy maker", "policy makers", "politician", "politicians", "government",
    ],
    "Early career researchers": [
        "target group early career researchers", "target group phd students",
        "target group postdocs", "phd", "postdoc", "postdocs", "early career",
    ],
    "All researchers": [
        "target group researchers", "target group scientists", "researcher",
        "researchers", "scientist", "scientists", "academic", "academics",
    ],
}

# Phrases searched in free-text descriptions, mapped to a term the
# target group table understands.
TARGET_HINTS: List[Tuple[str, str]] = [
    ("children", "children"),
    ("kids", "kids"),
    ("young people", "young"),
    ("youth", "youth"),
    ("teenager", "teenager"),
    ("students", "students"),
    ("elderly", "elderly"),
    ("seniors", "seniors"),
    ("general public", "public"),
    ("researchers", "researchers"),
    ("scientists", "scientists"),
    ("early career", "early career"),
    ("phd", "phd"),
    ("postdoc", "postdoc"),
    ("entrepreneurs", "entrepreneurs"),
    ("business", "business"),
    ("policy makers", "policy makers"),
]


def _dedupe(values: Iterable[str]) -> List[str]:
    seen = set()
    result = []
    for value in values:
        if value not in seen:
            seen.add(value)
            result.append(value)
    return result


class TaxonomyMapper:
    """
    Maps free-text terms onto the canonical thematic focus and target group
    vocabularies.

    Both tables are canonical value -> synonyms. The lookup structures are
    built once per instance; matching never raises.
    """

    def __init__(
        self,
        thematic_focus: Optional[Dict[str, List[str]]] = None,
        target_groups: Optional[Dict[str, List[str]]] = None,
    ):
        self._themes = self._flatten(thematic_focus or THEMATIC_FOCUS)
        self._targets = self._flatten(target_groups or TARGET_GROUPS)

    @staticmethod
    def _flatten(table: Dict[str, List[str]]) -> List[Tuple[str, str]]:
        """(synonym, canonical) pairs in table order; first mapping wins."""
        pairs = []
        seen = set()
        for canonical, synonyms in table.items():
            for synonym in synonyms:
                key = synonym.lower()
                if key not in seen:
                    seen.add(key)
                    pairs.append((key, canonical))
        return pairs

    @staticmethod
    def _match_term(term: str, pairs: List[Tuple[str, str]]) -> Optional[str]:
        for synonym, canonical in pairs:
            if term == synonym:
                return canonical
        for synonym, canonical in pairs:
            if synonym in term:
                return canonical
        return None

    def _map(self, terms: Iterable[Optional[str]], pairs: List[Tuple[str, str]]) -> List[str]:
        matched = []
        for term in terms:
            if term is None:
                continue
            normalized = str(term).strip().lower()
            if not normalized:
                continue
            canonical = self._match_term(normalized, pairs)
            if canonical:
                matched.append(canonical)
        return _dedupe(matched)

    def map_themes(self, terms: Iterable[Optional[str]]) -> List[str]:
        """Map terms to thematic focus values, defaulting to ["Other"]."""
        return self._map(terms, self._themes) or [DEFAULT_THEME]

    def map_target_groups(self, terms: Iterable[Optional[str]]) -> List[str]:
        """Map terms to target group values; may be empty."""
        return self._map(terms, self._targets)

    @staticmethod
    def extract_target_hints(text: Optional[str]) -> List[str]:
        """Pull audience hint terms out of free text."""
        if not text:
            return []
        lowered = text.lower()
        return _dedupe(hint for needle, hint in TARGET_HINTS if needle in lowered)
