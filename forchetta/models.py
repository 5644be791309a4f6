from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional


def _isoformat(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value is not None else None


@dataclass
class Recipe:
    """Domain object representing a stored recipe."""

    id: str
    title: str
    ingredients: List[str]
    instructions: str = ""
    image_url: str = ""
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "ingredients": list(self.ingredients),
            "instructions": self.instructions,
            "imageUrl": self.image_url,
            "createdAt": _isoformat(self.created_at),
            "updatedAt": _isoformat(self.updated_at),
        }


@dataclass(frozen=True)
class RecipePayload:
    """Validated, canonical recipe fields accepted by the stores."""

    title: str
    ingredients: List[str]
    instructions: str = ""


@dataclass
class RecipePage:
    items: List[Recipe]
    page: int
    limit: int
    total: int
    pages: int = field(default=1)

    def to_dict(self) -> Dict[str, Any]:
        # ``totalPages`` mirrors ``pages`` for older clients.
        return {
            "items": [recipe.to_dict() for recipe in self.items],
            "page": self.page,
            "limit": self.limit,
            "total": self.total,
            "pages": self.pages,
            "totalPages": self.pages,
        }


__all__ = ["Recipe", "RecipePage", "RecipePayload"]
