from __future__ import annotations

import logging
import uuid
from contextlib import contextmanager
from datetime import datetime
from itertools import islice
from typing import Iterator, List, Optional

from google.api_core import exceptions as gcloud_exceptions
from google.auth import exceptions as auth_exceptions
from google.cloud import firestore, storage
from werkzeug.utils import secure_filename

from .config import DEFAULT_MAX_UPLOAD_BYTES
from .errors import DependencyFault, RecipeNotFound, UploadTooLarge
from .models import Recipe, RecipePayload
from .query import DEFAULT_SORT, RecipeFilter, SortOrder
from .storage import ImageStorage, RecipeStore, check_document_id

logger = logging.getLogger(__name__)

# Firestore encodes query offsets as int32.
MAX_QUERY_OFFSET = 2**31 - 1


@contextmanager
def _google_call(action: str) -> Iterator[None]:
    try:
        yield
    except (gcloud_exceptions.GoogleAPIError, auth_exceptions.GoogleAuthError) as exc:
        raise DependencyFault(f"Failed to {action}: {exc}") from exc


def _timestamp(value: object) -> Optional[datetime]:
    return value if isinstance(value, datetime) else None


class FirestoreRecipeStore(RecipeStore):
    """Recipe store backed by a Firestore collection.

    Firestore has no substring queries, so filtered listings stream the
    collection newest first and match each document in process. Unfiltered
    listings use the native ``offset``/``limit`` window and count aggregation.
    """

    def __init__(self, *, project: Optional[str] = None, collection_name: str = "recipes") -> None:
        self._project = project
        self._collection_name = collection_name

        self._firestore_client = firestore.Client(project=project)
        self._collection = self._firestore_client.collection(collection_name)

    def create(self, payload: RecipePayload, image_url: str = "") -> Recipe:
        doc = {
            "title": payload.title,
            "ingredients": list(payload.ingredients),
            "instructions": payload.instructions,
            "image_url": image_url or "",
            "created_at": firestore.SERVER_TIMESTAMP,
            "updated_at": firestore.SERVER_TIMESTAMP,
        }

        with _google_call("create recipe"):
            doc_ref = self._collection.document()
            doc_ref.set(doc)
            snapshot = doc_ref.get()

        return self._doc_to_recipe(snapshot.id, snapshot.to_dict() or {})

    def get_by_id(self, recipe_id: str) -> Recipe:
        check_document_id(recipe_id)

        with _google_call("load recipe"):
            snapshot = self._collection.document(recipe_id).get()

        if not snapshot.exists:
            raise RecipeNotFound(recipe_id)
        return self._doc_to_recipe(snapshot.id, snapshot.to_dict() or {})

    def find(
        self,
        recipe_filter: RecipeFilter,
        *,
        sort: SortOrder = DEFAULT_SORT,
        skip: int = 0,
        limit: int,
    ) -> List[Recipe]:
        direction = firestore.Query.DESCENDING if sort.descending else firestore.Query.ASCENDING
        query = self._collection.order_by(sort.field, direction=direction)

        with _google_call("list recipes"):
            if recipe_filter.is_empty:
                if skip > MAX_QUERY_OFFSET:
                    return []
                docs = query.offset(skip).limit(limit).stream()
                return [self._doc_to_recipe(doc.id, doc.to_dict() or {}) for doc in docs]

            matching = (
                recipe
                for recipe in (
                    self._doc_to_recipe(doc.id, doc.to_dict() or {}) for doc in query.stream()
                )
                if recipe_filter.matches(recipe)
            )
            return list(islice(matching, skip, skip + limit))

    def count(self, recipe_filter: RecipeFilter) -> int:
        with _google_call("count recipes"):
            if recipe_filter.is_empty:
                results = self._collection.count(alias="total").get()
                return int(results[0][0].value)

            return sum(
                1
                for doc in self._collection.stream()
                if recipe_filter.matches(self._doc_to_recipe(doc.id, doc.to_dict() or {}))
            )

    def update_by_id(
        self,
        recipe_id: str,
        payload: RecipePayload,
        image_url: Optional[str] = None,
    ) -> Recipe:
        check_document_id(recipe_id)

        update_doc = {
            "title": payload.title,
            "ingredients": list(payload.ingredients),
            "instructions": payload.instructions,
            "updated_at": firestore.SERVER_TIMESTAMP,
        }
        if image_url is not None:
            update_doc["image_url"] = image_url

        doc_ref = self._collection.document(recipe_id)
        with _google_call("update recipe"):
            try:
                doc_ref.update(update_doc)
            except gcloud_exceptions.NotFound:
                raise RecipeNotFound(recipe_id) from None
            snapshot = doc_ref.get()

        return self._doc_to_recipe(snapshot.id, snapshot.to_dict() or {})

    def delete_by_id(self, recipe_id: str) -> Recipe:
        check_document_id(recipe_id)

        doc_ref = self._collection.document(recipe_id)
        with _google_call("delete recipe"):
            snapshot = doc_ref.get()
            if not snapshot.exists:
                raise RecipeNotFound(recipe_id)
            doc_ref.delete()

        return self._doc_to_recipe(snapshot.id, snapshot.to_dict() or {})

    def delete_all(self) -> int:
        deleted = 0
        with _google_call("clear recipes"):
            for doc in self._collection.stream():
                doc.reference.delete()
                deleted += 1
        return deleted

    def status(self) -> str:
        try:
            list(self._collection.limit(1).stream())
        except (gcloud_exceptions.GoogleAPIError, auth_exceptions.GoogleAuthError):
            logger.warning("Firestore collection '%s' is unreachable", self._collection_name, exc_info=True)
            return "disconnected"
        return "connected"

    def _doc_to_recipe(self, doc_id: str, data: dict) -> Recipe:
        ingredients = data.get("ingredients")
        if not isinstance(ingredients, list):
            ingredients = []

        return Recipe(
            id=doc_id,
            title=data.get("title", ""),
            ingredients=[str(item) for item in ingredients],
            instructions=data.get("instructions") or "",
            image_url=data.get("image_url") or "",
            created_at=_timestamp(data.get("created_at")),
            updated_at=_timestamp(data.get("updated_at")),
        )


class GCSImageStorage(ImageStorage):
    """Image provider writing to a Cloud Storage bucket.

    Objects are expected to be publicly readable; the stored URL is the
    object's public URL so it never expires.
    """

    def __init__(
        self,
        *,
        bucket_name: str,
        project: Optional[str] = None,
        folder: str = "forchetta",
        max_bytes: int = DEFAULT_MAX_UPLOAD_BYTES,
    ) -> None:
        self._bucket_name = bucket_name
        self._folder = folder.strip("/")
        self.max_bytes = max_bytes

        self._storage_client = storage.Client(project=project)
        self._bucket = self._storage_client.bucket(bucket_name)

    def upload(self, data: bytes, filename: str, content_type: Optional[str] = None) -> str:
        if len(data) > self.max_bytes:
            raise UploadTooLarge(self.max_bytes)

        blob = self._bucket.blob(self._build_blob_name(filename))
        with _google_call("upload image"):
            blob.upload_from_string(data, content_type=content_type)

        logger.info("Uploaded image to gs://%s/%s", self._bucket_name, blob.name)
        return blob.public_url

    def _build_blob_name(self, filename: str) -> str:
        safe = secure_filename(filename) or "image"
        unique = uuid.uuid4().hex
        return f"{self._folder}/{unique}_{safe}"


__all__ = ["FirestoreRecipeStore", "GCSImageStorage"]
