"""Normalisation and validation of submitted recipe fields.

The same endpoints accept JSON bodies and multipart forms. Forms flatten
lists into strings, so ``ingredients`` may arrive as a real list, as a JSON
encoded list (clients use this to keep commas inside an ingredient) or as a
plain comma separated string. Everything is folded into a ``list[str]``
here; nothing past :func:`normalize_recipe` needs to know about the wire
format.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional

from .errors import ValidationError
from .models import RecipePayload

TITLE_MIN_LENGTH = 2
TITLE_MAX_LENGTH = 120
INSTRUCTIONS_MAX_LENGTH = 2000
MIN_INGREDIENTS = 1
MAX_INGREDIENTS = 50

ALLOWED_IMAGE_EXTENSIONS = {"png", "jpg", "jpeg", "gif", "webp"}


@dataclass(frozen=True)
class NormalizedRecipe:
    """Recipe fields after normalisation, before any rule is checked.

    ``ingredients`` is ``None`` when the submitted value held something that
    cannot be read as a list of strings (nested objects, booleans, ...).
    """

    title: Any
    ingredients: Optional[List[str]]
    instructions: Any
    image_filename: Optional[str] = None


def _clean_items(items: List[Any]) -> Optional[List[str]]:
    cleaned: List[str] = []
    for item in items:
        if item is None:
            continue
        if isinstance(item, bool) or not isinstance(item, (str, int, float)):
            return None
        text = str(item).strip()
        if text:
            cleaned.append(text)
    return cleaned


def normalize_ingredients(value: Any) -> Optional[List[str]]:
    if isinstance(value, (list, tuple)):
        return _clean_items(list(value))

    if isinstance(value, str):
        try:
            decoded = json.loads(value)
        except ValueError:
            decoded = None
        if isinstance(decoded, list):
            return _clean_items(decoded)
        return [part.strip() for part in value.split(",") if part.strip()]

    return []


def normalize_text(value: Any) -> Any:
    if isinstance(value, str):
        return value.strip()
    return value


def normalize_recipe(raw: Mapping[str, Any], image_filename: Optional[str] = None) -> NormalizedRecipe:
    return NormalizedRecipe(
        title=normalize_text(raw.get("title")),
        ingredients=normalize_ingredients(raw.get("ingredients")),
        instructions=normalize_text(raw.get("instructions")),
        image_filename=image_filename,
    )


def _title_errors(title: Any) -> List[str]:
    if title is None or title == "":
        return ["Title is required."]
    if not isinstance(title, str):
        return ["Title must be a string."]

    errors = []
    if len(title) < TITLE_MIN_LENGTH:
        errors.append(f"Title must be at least {TITLE_MIN_LENGTH} characters long.")
    if len(title) > TITLE_MAX_LENGTH:
        errors.append(f"Title must be at most {TITLE_MAX_LENGTH} characters long.")
    return errors


def _ingredient_errors(ingredients: Optional[List[str]]) -> List[str]:
    if ingredients is None:
        return ["Ingredients must be a list of strings."]

    errors = []
    if len(ingredients) < MIN_INGREDIENTS:
        errors.append("At least one ingredient is required.")
    if len(ingredients) > MAX_INGREDIENTS:
        errors.append(f"No more than {MAX_INGREDIENTS} ingredients are allowed.")
    return errors


def _instruction_errors(instructions: Any) -> List[str]:
    if instructions is None:
        return []
    if not isinstance(instructions, str):
        return ["Instructions must be a string."]
    if len(instructions) > INSTRUCTIONS_MAX_LENGTH:
        return [f"Instructions must be at most {INSTRUCTIONS_MAX_LENGTH} characters long."]
    return []


def _image_errors(filename: Optional[str]) -> List[str]:
    if filename is None:
        return []
    if "." in filename and filename.rsplit(".", 1)[1].lower() in ALLOWED_IMAGE_EXTENSIONS:
        return []
    return ["Unsupported image format. Allowed formats: PNG, JPG, JPEG, GIF, WEBP."]


def validate_recipe(recipe: NormalizedRecipe) -> RecipePayload:
    """Check every field rule and return the canonical payload.

    All violations are collected before raising so clients can show every
    problem at once. Nothing is written anywhere when this raises.
    """

    details: Dict[str, List[str]] = {}
    for name, messages in (
        ("title", _title_errors(recipe.title)),
        ("ingredients", _ingredient_errors(recipe.ingredients)),
        ("instructions", _instruction_errors(recipe.instructions)),
        ("image", _image_errors(recipe.image_filename)),
    ):
        if messages:
            details[name] = messages

    if details:
        raise ValidationError(details)

    return RecipePayload(
        title=recipe.title,
        ingredients=list(recipe.ingredients or []),
        instructions=recipe.instructions or "",
    )


__all__ = [
    "ALLOWED_IMAGE_EXTENSIONS",
    "NormalizedRecipe",
    "normalize_ingredients",
    "normalize_recipe",
    "normalize_text",
    "validate_recipe",
]
