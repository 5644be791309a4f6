from __future__ import annotations

import sys
import uuid
from dataclasses import replace
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Dict, List, Optional

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from forchetta import create_app
from forchetta.config import Settings
from forchetta.errors import DependencyFault, RecipeNotFound, UploadTooLarge
from forchetta.models import Recipe, RecipePayload
from forchetta.query import DEFAULT_SORT, RecipeFilter, SortOrder
from forchetta.storage import check_document_id


class InMemoryRecipeStore:
    """Simple storage backend used for tests."""

    def __init__(self) -> None:
        self._recipes: Dict[str, Recipe] = {}
        self._last_tick = datetime.min.replace(tzinfo=timezone.utc)

    def _now(self) -> datetime:
        # Strictly increasing so ordering never depends on clock resolution.
        self._last_tick = max(datetime.now(timezone.utc), self._last_tick + timedelta(microseconds=1))
        return self._last_tick

    def create(self, payload: RecipePayload, image_url: str = "") -> Recipe:
        now = self._now()
        recipe = Recipe(
            id=uuid.uuid4().hex,
            title=payload.title,
            ingredients=list(payload.ingredients),
            instructions=payload.instructions,
            image_url=image_url or "",
            created_at=now,
            updated_at=now,
        )
        self._recipes[recipe.id] = recipe
        return replace(recipe)

    def get_by_id(self, recipe_id: str) -> Recipe:
        check_document_id(recipe_id)
        try:
            return replace(self._recipes[recipe_id])
        except KeyError:
            raise RecipeNotFound(recipe_id) from None

    def _matching(self, recipe_filter: RecipeFilter, sort: SortOrder = DEFAULT_SORT) -> List[Recipe]:
        ordered = sorted(
            self._recipes.values(),
            key=lambda recipe: getattr(recipe, sort.field) or datetime.min.replace(tzinfo=timezone.utc),
            reverse=sort.descending,
        )
        return [replace(recipe) for recipe in ordered if recipe_filter.matches(recipe)]

    def find(self, recipe_filter, *, sort=DEFAULT_SORT, skip=0, limit):
        return self._matching(recipe_filter, sort)[skip : skip + limit]

    def count(self, recipe_filter) -> int:
        return len(self._matching(recipe_filter))

    def update_by_id(self, recipe_id: str, payload: RecipePayload, image_url: Optional[str] = None) -> Recipe:
        check_document_id(recipe_id)
        if recipe_id not in self._recipes:
            raise RecipeNotFound(recipe_id)

        recipe = self._recipes[recipe_id]
        recipe.title = payload.title
        recipe.ingredients = list(payload.ingredients)
        recipe.instructions = payload.instructions
        if image_url is not None:
            recipe.image_url = image_url
        recipe.updated_at = self._now()
        return replace(recipe)

    def delete_by_id(self, recipe_id: str) -> Recipe:
        check_document_id(recipe_id)
        try:
            return self._recipes.pop(recipe_id)
        except KeyError:
            raise RecipeNotFound(recipe_id) from None

    def delete_all(self) -> int:
        removed = len(self._recipes)
        self._recipes.clear()
        return removed

    def status(self) -> str:
        return "connected"


class BrokenRecipeStore(InMemoryRecipeStore):
    """Store whose backend is unreachable."""

    def _fail(self, *args, **kwargs):
        raise DependencyFault("firestore unavailable: secret-host:443")

    find = count = create = get_by_id = update_by_id = delete_by_id = _fail

    def status(self) -> str:
        return "disconnected"


class FakeImageStorage:
    def __init__(self, max_bytes: int = 1024) -> None:
        self.max_bytes = max_bytes
        self.uploads: List[tuple] = []

    def upload(self, data: bytes, filename: str, content_type: Optional[str] = None) -> str:
        if len(data) > self.max_bytes:
            raise UploadTooLarge(self.max_bytes)
        self.uploads.append((filename, data, content_type))
        return f"https://images.example.com/{len(self.uploads)}/{filename}"


@pytest.fixture
def settings() -> Settings:
    return Settings(
        rate_limit="",
        allowed_origins=["http://localhost:3000"],
        max_upload_bytes=1024,
    )


@pytest.fixture
def store() -> InMemoryRecipeStore:
    return InMemoryRecipeStore()


@pytest.fixture
def images() -> FakeImageStorage:
    return FakeImageStorage()


@pytest.fixture
def app(settings, store, images):
    app = create_app(settings=settings, store=store, images=images)
    app.config.update(TESTING=True)
    return app


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def make_client(settings, store, images):
    """Build a client with some collaborators swapped out."""

    def factory(**overrides):
        options = {"settings": settings, "store": store, "images": images}
        options.update(overrides)
        app = create_app(**options)
        app.config.update(TESTING=True)
        return app.test_client()

    return factory


@pytest.fixture
def broken_store() -> BrokenRecipeStore:
    return BrokenRecipeStore()
