"""Country name resolution."""

import logging
from typing import Callable, Dict, Optional

logger = logging.getLogger(__name__)

COUNTRY_ALIASES: Dict[str, int] = {
    "germany": 85,
    "deutschland": 85,
    "de": 85,
    "croatia": 58,
    "hrvatska": 58,
    "hr": 58,
}


class CountryResolver:
    """
    Resolves a country name to a country id.

    Known aliases are matched case-insensitively first; anything else is
    looked up through `lookup` (usually the entry store's country table).
    Results are cached per resolver.
    """

    def __init__(
        self,
        lookup: Optional[Callable[[str], Optional[int]]] = None,
        aliases: Optional[Dict[str, int]] = None,
    ):
        self._lookup = lookup
        self._aliases = {k.lower(): v for k, v in (aliases or COUNTRY_ALIASES).items()}
        self._cache: Dict[str, Optional[int]] = {}

    def resolve(self, name: Optional[str]) -> Optional[int]:
        if not name or not str(name).strip():
            return None
        key = str(name).strip().lower()
        if key in self._aliases:
            return self._aliases[key]
        if key in self._cache:
            return self._cache[key]

        country_id = self._lookup(str(name).strip()) if self._lookup else None
        if country_id is None:
            logger.debug(f"Unresolved country '{name}'")
        self._cache[key] = country_id
        return country_id

    __call__ = resolve
