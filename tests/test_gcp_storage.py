from __future__ import annotations

from datetime import datetime, timezone
from unittest import mock

import pytest
from google.api_core import exceptions as gcloud_exceptions
from google.cloud import firestore

from forchetta.config import Settings
from forchetta.errors import DependencyFault, InvalidIdentifier, RecipeNotFound, UploadTooLarge
from forchetta.gcp_storage import FirestoreRecipeStore, GCSImageStorage
from forchetta.models import RecipePayload
from forchetta.query import RecipeFilter, build_filter

CREATED = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


def _doc(doc_id, title, ingredients=("egg",), exists=True, **extra):
    data = {"title": title, "ingredients": list(ingredients), "created_at": CREATED, **extra}
    doc = mock.MagicMock()
    doc.id = doc_id
    doc.exists = exists
    doc.to_dict.return_value = data
    return doc


@pytest.fixture
def collection():
    with mock.patch("forchetta.gcp_storage.firestore.Client") as client_cls:
        yield client_cls.return_value.collection.return_value


@pytest.fixture
def recipe_store(collection):
    return FirestoreRecipeStore(project="demo", collection_name="recipes")


def test_create_sets_server_timestamps(recipe_store, collection):
    doc_ref = collection.document.return_value
    doc_ref.get.return_value = _doc("abc", "Carbonara", ["spaghetti"], image_url="https://img/1.jpg")

    recipe = recipe_store.create(
        RecipePayload(title="Carbonara", ingredients=["spaghetti"]), image_url="https://img/1.jpg"
    )

    stored = doc_ref.set.call_args.args[0]
    assert stored["created_at"] is firestore.SERVER_TIMESTAMP
    assert stored["updated_at"] is firestore.SERVER_TIMESTAMP
    assert stored["image_url"] == "https://img/1.jpg"
    assert recipe.id == "abc"
    assert recipe.created_at == CREATED
    assert recipe.image_url == "https://img/1.jpg"


def test_get_by_id_checks_identifier_before_calling_firestore(recipe_store, collection):
    with pytest.raises(InvalidIdentifier):
        recipe_store.get_by_id("a/b")

    collection.document.assert_not_called()


def test_get_by_id_missing_document(recipe_store, collection):
    collection.document.return_value.get.return_value = _doc("missing", "", exists=False)

    with pytest.raises(RecipeNotFound):
        recipe_store.get_by_id("missing")


def test_update_without_image_leaves_image_field_alone(recipe_store, collection):
    doc_ref = collection.document.return_value
    doc_ref.get.return_value = _doc("abc", "Soup", ["water"], image_url="https://img/old.jpg")

    recipe = recipe_store.update_by_id("abc", RecipePayload(title="Soup", ingredients=["water"]))

    update_doc = doc_ref.update.call_args.args[0]
    assert "image_url" not in update_doc
    assert update_doc["updated_at"] is firestore.SERVER_TIMESTAMP
    assert recipe.image_url == "https://img/old.jpg"


def test_update_missing_document_is_not_found(recipe_store, collection):
    collection.document.return_value.update.side_effect = gcloud_exceptions.NotFound("no document")

    with pytest.raises(RecipeNotFound):
        recipe_store.update_by_id("abc", RecipePayload(title="Soup", ingredients=["water"]))


def test_delete_returns_stored_recipe(recipe_store, collection):
    doc_ref = collection.document.return_value
    doc_ref.get.return_value = _doc("abc", "Soup")

    recipe = recipe_store.delete_by_id("abc")

    doc_ref.delete.assert_called_once_with()
    assert recipe.title == "Soup"


def test_google_errors_become_dependency_faults(recipe_store, collection):
    collection.document.return_value.get.side_effect = gcloud_exceptions.ServiceUnavailable("down")

    with pytest.raises(DependencyFault) as excinfo:
        recipe_store.get_by_id("abc")

    assert isinstance(excinfo.value.__cause__, gcloud_exceptions.ServiceUnavailable)


def test_find_without_search_uses_native_window(recipe_store, collection):
    query = collection.order_by.return_value
    query.offset.return_value.limit.return_value.stream.return_value = iter([_doc("a", "Pie")])

    recipes = recipe_store.find(RecipeFilter(), skip=8, limit=8)

    collection.order_by.assert_called_once_with("created_at", direction=firestore.Query.DESCENDING)
    query.offset.assert_called_once_with(8)
    query.offset.return_value.limit.assert_called_once_with(8)
    assert [recipe.id for recipe in recipes] == ["a"]


def test_find_past_the_largest_offset_is_empty(recipe_store, collection):
    query = collection.order_by.return_value

    recipes = recipe_store.find(RecipeFilter(), skip=(300_000_000 - 1) * 8, limit=8)

    assert recipes == []
    query.offset.assert_not_called()


def test_find_with_search_filters_in_process(recipe_store, collection):
    collection.order_by.return_value.stream.return_value = iter(
        [
            _doc("1", "Carbonara", ["egg"]),
            _doc("2", "Salad", ["lettuce"]),
            _doc("3", "Omelette", ["Egg", "milk"]),
            _doc("4", "Eggnog", ["milk"]),
        ]
    )

    recipes = recipe_store.find(build_filter("egg"), skip=1, limit=2)

    assert [recipe.id for recipe in recipes] == ["3", "4"]


def test_count_uses_aggregation_without_search(recipe_store, collection):
    collection.count.return_value.get.return_value = [[mock.MagicMock(value=12)]]

    assert recipe_store.count(RecipeFilter()) == 12


def test_count_with_search(recipe_store, collection):
    collection.stream.return_value = iter([_doc("1", "Carbonara", ["egg"]), _doc("2", "Salad", ["lettuce"])])

    assert recipe_store.count(build_filter("EGG")) == 1


def test_status_reports_disconnected_on_error(recipe_store, collection):
    collection.limit.return_value.stream.side_effect = gcloud_exceptions.ServiceUnavailable("down")

    assert recipe_store.status() == "disconnected"


@pytest.fixture
def bucket():
    with mock.patch("forchetta.gcp_storage.storage.Client") as client_cls:
        yield client_cls.return_value.bucket.return_value


def test_image_upload_returns_public_url(bucket):
    blob = bucket.blob.return_value
    blob.public_url = "https://storage.googleapis.com/pics/forchetta/x_pie.png"
    images = GCSImageStorage(bucket_name="pics", max_bytes=100)

    url = images.upload(b"png bytes", "my pie.png", content_type="image/png")

    blob_name = bucket.blob.call_args.args[0]
    assert blob_name.startswith("forchetta/")
    assert blob_name.endswith("_my_pie.png")
    blob.upload_from_string.assert_called_once_with(b"png bytes", content_type="image/png")
    assert url == blob.public_url


def test_image_upload_size_cap(bucket):
    images = GCSImageStorage(bucket_name="pics", max_bytes=4)

    with pytest.raises(UploadTooLarge):
        images.upload(b"too many bytes", "pie.png")

    bucket.blob.assert_not_called()


def test_image_storage_defaults_to_configured_upload_cap(bucket):
    images = GCSImageStorage(bucket_name="pics")

    assert images.max_bytes == Settings().max_upload_bytes
