"""Per-request compilation context.

Geo filters and the random-score modifier must wrap the whole compiled
query, so the option compiler stages them here and the request assembler
consumes them once. The keyword cache lives here too. A context is created
for every compiled request and never shared.
"""

from typing import Any, Dict, List, Optional

from ...abc import MappingLookup
from ...settings import settings as api_settings
from .keywords import KeywordResolver

__all__ = ("CompilationContext",)


class CompilationContext:
    """Request-local state shared by the compilers for one request.

    Attributes:
        index: Index the request targets (used for mapping lookups)
        keywords: Lazily loaded keyword-field resolver
        bypass_map_validation: Skip keyword resolution for term-level operators
        allow_id_sort: Keep `_id` sorts instead of dropping them
        inner_hits_size: Default inner_hits size for nested queries without options
    """

    def __init__(
        self,
        index: Optional[str] = None,
        lookup: Optional[MappingLookup] = None,
        bypass_map_validation: Optional[bool] = None,
        allow_id_sort: Optional[bool] = None,
        inner_hits_size: Optional[int] = None,
    ) -> None:
        self.index = index
        self.keywords = KeywordResolver(lookup, index)
        self.bypass_map_validation = (
            api_settings.ES_BYPASS_MAP_VALIDATION if bypass_map_validation is None else bypass_map_validation
        )
        self.allow_id_sort = api_settings.ES_ALLOW_ID_SORT if allow_id_sort is None else allow_id_sort
        self.inner_hits_size = api_settings.ES_INNER_HITS_SIZE if inner_hits_size is None else inner_hits_size
        self._filters: List[Dict[str, Any]] = []
        self._function_score: Optional[Dict[str, Any]] = None

    # ------------------------------------------------------------------
    # Keyword resolution
    # ------------------------------------------------------------------
    def keyword_field(self, field: str) -> Optional[str]:
        return self.keywords.resolve(field)

    # ------------------------------------------------------------------
    # Staged modifiers
    # ------------------------------------------------------------------
    def stage_filter(self, kind: str, payload: Dict[str, Any]) -> None:
        """Stage one filter clause; a later clause of the same kind replaces the earlier one."""
        self._filters = [f for f in self._filters if kind not in f]
        self._filters.append({kind: payload})

    def stage_random_score(self, field: str, seed: Any) -> None:
        self._function_score = {"random_score": {"field": field, "seed": seed}}

    @property
    def has_staged_filter(self) -> bool:
        return bool(self._filters)

    @property
    def has_staged_score(self) -> bool:
        return self._function_score is not None

    def consume_filters(self) -> List[Dict[str, Any]]:
        filters, self._filters = self._filters, []
        return filters

    def consume_function_score(self) -> Optional[Dict[str, Any]]:
        score, self._function_score = self._function_score, None
        return score
