from __future__ import annotations

from typing import List, Optional, Protocol

from .errors import InvalidIdentifier
from .models import Recipe, RecipePayload
from .query import DEFAULT_SORT, RecipeFilter, SortOrder

MAX_ID_BYTES = 1500


class RecipeStore(Protocol):
    """Protocol describing the behaviour required by the web layer."""

    def create(self, payload: RecipePayload, image_url: str = "") -> Recipe:
        """Persist a new recipe and return the stored instance."""

    def get_by_id(self, recipe_id: str) -> Recipe:
        """Return a single recipe or raise :class:`RecipeNotFound` if missing."""

    def find(
        self,
        recipe_filter: RecipeFilter,
        *,
        sort: SortOrder = DEFAULT_SORT,
        skip: int = 0,
        limit: int,
    ) -> List[Recipe]:
        """Return one window of matching recipes, newest first."""

    def count(self, recipe_filter: RecipeFilter) -> int:
        """Return how many recipes match, ignoring any window."""

    def update_by_id(
        self,
        recipe_id: str,
        payload: RecipePayload,
        image_url: Optional[str] = None,
    ) -> Recipe:
        """Replace the recipe fields; ``image_url=None`` keeps the stored image."""

    def delete_by_id(self, recipe_id: str) -> Recipe:
        """Remove a recipe and return what was stored."""

    def delete_all(self) -> int:
        """Remove every recipe and return how many were deleted."""

    def status(self) -> str:
        """Return ``"connected"`` when the backend answers, else ``"disconnected"``."""


class ImageStorage(Protocol):
    max_bytes: int

    def upload(self, data: bytes, filename: str, content_type: Optional[str] = None) -> str:
        """Store the image and return its public URL."""


def check_document_id(recipe_id: str) -> str:
    """Raise :class:`InvalidIdentifier` for ids no document can have."""

    if (
        not recipe_id
        or "/" in recipe_id
        or recipe_id in {".", ".."}
        or (recipe_id.startswith("__") and recipe_id.endswith("__"))
        or len(recipe_id.encode("utf-8")) > MAX_ID_BYTES
    ):
        raise InvalidIdentifier(recipe_id)
    return recipe_id


__all__ = ["ImageStorage", "RecipeStore", "check_document_id"]
