"""Translate list query parameters into a search filter and a page window."""

from __future__ import annotations

import math
import re
from dataclasses import dataclass
from typing import Any, Mapping, NamedTuple, Optional, Tuple

from .models import Recipe

DEFAULT_PAGE = 1
DEFAULT_LIMIT = 8
MAX_LIMIT = 50

SEARCH_FIELDS: Tuple[str, ...] = ("title", "ingredients", "instructions")


class SortOrder(NamedTuple):
    field: str
    descending: bool


DEFAULT_SORT = SortOrder(field="created_at", descending=True)


@dataclass(frozen=True)
class RecipeFilter:
    """Case-insensitive substring match across the searchable fields.

    ``pattern`` is built from escaped user text only, so regex
    metacharacters in a search never change what matches.
    """

    pattern: Optional[re.Pattern] = None
    fields: Tuple[str, ...] = SEARCH_FIELDS

    @property
    def is_empty(self) -> bool:
        return self.pattern is None

    def matches(self, recipe: Recipe) -> bool:
        if self.pattern is None:
            return True

        for name in self.fields:
            value = getattr(recipe, name, None)
            if isinstance(value, str):
                candidates = [value]
            else:
                candidates = list(value or [])
            if any(self.pattern.search(candidate) for candidate in candidates):
                return True
        return False


@dataclass(frozen=True)
class RecipeQuery:
    filter: RecipeFilter
    page: int
    limit: int
    sort: SortOrder = DEFAULT_SORT

    @property
    def skip(self) -> int:
        return (self.page - 1) * self.limit


def build_filter(text: Optional[str]) -> RecipeFilter:
    term = (text or "").strip()
    if not term:
        return RecipeFilter()
    return RecipeFilter(pattern=re.compile(re.escape(term), re.IGNORECASE))


def _parse_int(value: Any) -> Optional[int]:
    try:
        return int(str(value).strip())
    except (TypeError, ValueError):
        return None


def parse_page(value: Any) -> int:
    page = _parse_int(value)
    if page is None:
        return DEFAULT_PAGE
    return max(1, page)


def parse_limit(value: Any) -> int:
    limit = _parse_int(value)
    if limit is None:
        return DEFAULT_LIMIT
    return min(MAX_LIMIT, max(1, limit))


def total_pages(total: int, limit: int) -> int:
    return max(1, math.ceil(total / limit))


def build_query(args: Mapping[str, Any]) -> RecipeQuery:
    """Build the list query from request arguments.

    ``search`` wins over its alias ``q`` when both are present and non-empty.
    """

    text = args.get("search") or args.get("q") or ""
    return RecipeQuery(
        filter=build_filter(text),
        page=parse_page(args.get("page")),
        limit=parse_limit(args.get("limit")),
    )


__all__ = [
    "DEFAULT_LIMIT",
    "DEFAULT_SORT",
    "MAX_LIMIT",
    "RecipeFilter",
    "RecipeQuery",
    "SortOrder",
    "build_filter",
    "build_query",
    "parse_limit",
    "parse_page",
    "total_pages",
]
