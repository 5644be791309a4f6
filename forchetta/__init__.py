import atexit
import logging
from concurrent.futures import ThreadPoolExecutor, wait
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Tuple

from flask import Flask, jsonify, request
from flask_cors import CORS
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
from werkzeug.datastructures import FileStorage
from werkzeug.exceptions import HTTPException, RequestEntityTooLarge

from .cli import seed_command
from .config import Settings
from .errors import DependencyFault, RecipeError, UploadTooLarge, ValidationError
from .models import Recipe, RecipePage
from .query import build_query, total_pages
from .storage import ImageStorage, RecipeStore, check_document_id
from .validation import normalize_recipe, validate_recipe

try:
    from .gcp_storage import FirestoreRecipeStore, GCSImageStorage
except ImportError:  # pragma: no cover - allows running tests without optional deps
    FirestoreRecipeStore = None  # type: ignore[assignment,misc]
    GCSImageStorage = None  # type: ignore[assignment,misc]

logger = logging.getLogger(__name__)

RATE_LIMIT_MESSAGE = "Too many requests, please try again later."


@dataclass
class AppContext:
    """Collaborators shared by every request, built once per application."""

    settings: Settings
    store: RecipeStore
    images: Optional[ImageStorage]
    executor: ThreadPoolExecutor


def create_app(
    settings: Optional[Settings] = None,
    store: Optional[RecipeStore] = None,
    images: Optional[ImageStorage] = None,
) -> Flask:
    """Create and configure the Flask application.

    Parameters
    ----------
    settings:
        Process configuration. Defaults to :meth:`Settings.from_env`.
    store:
        Optional recipe store. When ``None`` the application will use
        :class:`FirestoreRecipeStore` configured from ``settings``.
    images:
        Optional image provider. When ``None`` a :class:`GCSImageStorage` is
        built if ``settings.gcs_bucket`` is set; otherwise uploads are refused.
    """

    settings = settings or Settings.from_env()

    app = Flask(__name__)
    app.config["MAX_CONTENT_LENGTH"] = settings.max_content_length
    app.json.sort_keys = False

    if store is None:
        if FirestoreRecipeStore is None:
            raise RuntimeError(
                "google-cloud-firestore is not installed. Install it or pass an "
                "explicit store to create_app."
            )
        store = FirestoreRecipeStore(
            project=settings.gcp_project, collection_name=settings.recipes_collection
        )

    if images is None and settings.gcs_bucket and GCSImageStorage is not None:
        images = GCSImageStorage(
            bucket_name=settings.gcs_bucket,
            project=settings.gcp_project,
            folder=settings.gcs_image_folder,
            max_bytes=settings.max_upload_bytes,
        )

    executor = ThreadPoolExecutor(max_workers=4, thread_name_prefix="recipes-list")
    atexit.register(executor.shutdown, wait=False)

    context = AppContext(settings=settings, store=store, images=images, executor=executor)
    app.extensions["forchetta"] = context

    origins = "*" if "*" in settings.allowed_origins else settings.allowed_origins
    CORS(
        app,
        origins=origins,
        methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type"],
    )

    limiter = Limiter(
        get_remote_address,
        app=app,
        default_limits=[settings.rate_limit] if settings.rate_limit else [],
        storage_uri="memory://",
        enabled=bool(settings.rate_limit),
    )

    app.cli.add_command(seed_command)

    def read_submission() -> Tuple[Dict[str, Any], Optional[FileStorage], bytes]:
        if request.is_json:
            body = request.get_json(silent=True)
            if not isinstance(body, dict):
                raise ValidationError({"body": ["Request body must be a JSON object."]})
            return body, None, b""

        raw: Dict[str, Any] = {
            "title": request.form.get("title"),
            "instructions": request.form.get("instructions"),
        }
        values = request.form.getlist("ingredients")
        raw["ingredients"] = values if len(values) > 1 else request.form.get("ingredients")

        image = request.files.get("image")
        if image is None or not image.filename:
            return raw, None, b""

        data = image.read()
        if len(data) > settings.max_upload_bytes:
            logger.warning(
                "Rejected image '%s' of %d bytes (limit %d)",
                image.filename,
                len(data),
                settings.max_upload_bytes,
            )
            raise UploadTooLarge(settings.max_upload_bytes)
        return raw, image, data

    def store_image(image: Optional[FileStorage], data: bytes) -> Optional[str]:
        if image is None:
            return None
        if context.images is None:
            raise DependencyFault("An image was supplied but no image storage is configured.")
        return context.images.upload(data, image.filename or "image", content_type=image.mimetype)

    @app.get("/")
    def index() -> str:
        return "API is working!"

    @app.get("/healthz")
    @limiter.exempt
    def healthz():
        return jsonify(
            ok=True,
            storeStatus=context.store.status(),
            imageProviderConfigured=context.images is not None,
            env=settings.environment,
            time=datetime.now(timezone.utc).isoformat(),
        )

    @app.get("/recipes")
    def list_recipes():
        query = build_query(request.args)

        # Both reads run against the same filter but not the same snapshot;
        # a concurrent write can show up in one and not the other.
        found = context.executor.submit(
            context.store.find,
            query.filter,
            sort=query.sort,
            skip=query.skip,
            limit=query.limit,
        )
        counted = context.executor.submit(context.store.count, query.filter)
        wait((found, counted))
        if found.exception() is not None and counted.exception() is not None:
            logger.error("Counting recipes failed as well", exc_info=counted.exception())
        items = found.result()
        total = counted.result()

        page = RecipePage(
            items=items,
            page=query.page,
            limit=query.limit,
            total=total,
            pages=total_pages(total, query.limit),
        )
        return jsonify(page.to_dict())

    @app.get("/recipes/<recipe_id>")
    def get_recipe(recipe_id: str):
        recipe = context.store.get_by_id(recipe_id)
        return jsonify(recipe.to_dict())

    @app.post("/recipes")
    def create_recipe():
        raw, image, data = read_submission()
        filename = image.filename if image is not None else None
        payload = validate_recipe(normalize_recipe(raw, image_filename=filename))

        image_url = store_image(image, data) or ""
        recipe = context.store.create(payload, image_url=image_url)

        logger.info("Created recipe %s (%s)", recipe.id, recipe.title)
        return jsonify(recipe.to_dict()), 201

    @app.put("/recipes/<recipe_id>")
    def update_recipe(recipe_id: str):
        check_document_id(recipe_id)

        raw, image, data = read_submission()
        filename = image.filename if image is not None else None
        payload = validate_recipe(normalize_recipe(raw, image_filename=filename))

        image_url = store_image(image, data)
        recipe = context.store.update_by_id(recipe_id, payload, image_url=image_url)

        logger.info("Updated recipe %s", recipe.id)
        return jsonify(recipe.to_dict())

    @app.delete("/recipes/<recipe_id>")
    def delete_recipe(recipe_id: str):
        recipe = context.store.delete_by_id(recipe_id)

        logger.info("Deleted recipe %s", recipe.id)
        return jsonify(recipe.to_dict())

    @app.errorhandler(RecipeError)
    def handle_recipe_error(exc: RecipeError):
        if exc.status_code >= 500:
            logger.error("%s %s failed: %s", request.method, request.path, exc, exc_info=exc)
        return jsonify(exc.to_dict()), exc.status_code

    @app.errorhandler(RequestEntityTooLarge)
    def handle_request_too_large(exc: RequestEntityTooLarge):
        return handle_recipe_error(UploadTooLarge(settings.max_upload_bytes))

    @app.errorhandler(404)
    def handle_route_not_found(exc: HTTPException):
        return jsonify(error="Route not found", path=request.path), 404

    @app.errorhandler(429)
    def handle_rate_limited(exc: HTTPException):
        return jsonify(error=RATE_LIMIT_MESSAGE), 429

    @app.errorhandler(HTTPException)
    def handle_http_error(exc: HTTPException):
        return jsonify(error=exc.name), exc.code

    @app.errorhandler(Exception)
    def handle_unexpected_error(exc: Exception):
        logger.exception("Unhandled error on %s %s", request.method, request.path)
        return jsonify(error="Internal Server Error"), 500

    return app


__all__ = ["AppContext", "Recipe", "create_app"]
