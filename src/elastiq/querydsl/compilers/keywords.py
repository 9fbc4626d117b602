"""Keyword sub-field resolution.

Term-level operators (`exact`, `in`, `nin`) only behave as exact matches on
fields mapped as `keyword`. Text fields usually carry a `.keyword`
multi-field; the resolver finds it from the index mapping, fetched once and
cached for the lifetime of a single compilation.
"""

from typing import Dict, Optional

from ...abc import MappingLookup
from ...logger import Logger

__all__ = ("KeywordResolver",)


class KeywordResolver:
    """Lazily resolve a field to its keyword-capable name.

    The mapping lookup is only called on the first `resolve()`; the filtered
    `{field: "keyword"}` map is cached and never changes afterwards.
    """

    def __init__(self, lookup: Optional[MappingLookup], index: Optional[str]) -> None:
        self._lookup = lookup
        self._index = index
        self._keyword_fields: Optional[Dict[str, str]] = None
        self.logger = Logger(self.__class__.__name__)

    @property
    def is_loaded(self) -> bool:
        return self._keyword_fields is not None

    @property
    def keyword_fields(self) -> Dict[str, str]:
        if self._keyword_fields is None:
            self._keyword_fields = self._load()
        return self._keyword_fields

    def _load(self) -> Dict[str, str]:
        if self._lookup is None or not self._index:
            return {}
        mapping = self._lookup.get_field_mapping(self._index, "*")
        keywords = {field: kind for field, kind in mapping.items() if kind == "keyword"}
        self.logger.debug("Loaded %d keyword fields for index=%s", len(keywords), self._index)
        return keywords

    def resolve(self, field: str) -> Optional[str]:
        """Return `field` if it is a keyword, `field.keyword` if that exists, else None."""
        keywords = self.keyword_fields
        if not keywords:
            return None
        if field in keywords:
            return field
        candidate = f"{field}.keyword"
        if candidate in keywords:
            return candidate
        return None
