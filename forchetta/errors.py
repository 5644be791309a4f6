"""Exceptions raised by the recipe pipeline.

Every error knows the HTTP status it maps to and the JSON body shown to the
client, so the web layer can translate them with a single error handler.
"""

from __future__ import annotations

from typing import Any, Dict, List, Mapping


class RecipeError(Exception):
    status_code = 500
    message = "Internal Server Error"

    def to_dict(self) -> Dict[str, Any]:
        return {"error": self.message}


class ValidationError(RecipeError):
    """The submitted payload broke one or more field rules."""

    status_code = 400
    message = "Invalid payload"

    def __init__(self, details: Mapping[str, List[str]]) -> None:
        super().__init__(f"{self.message}: {dict(details)}")
        self.details = {name: list(messages) for name, messages in details.items()}

    def to_dict(self) -> Dict[str, Any]:
        return {"error": self.message, "details": self.details}


class RecipeNotFound(RecipeError, KeyError):
    status_code = 404
    message = "Not found"

    def __init__(self, recipe_id: str) -> None:
        super().__init__(f"Recipe '{recipe_id}' does not exist.")
        self.recipe_id = recipe_id

    def __str__(self) -> str:
        # KeyError would otherwise repr() the message.
        return Exception.__str__(self)


class InvalidIdentifier(RecipeError, ValueError):
    status_code = 400
    message = "Invalid id"

    def __init__(self, recipe_id: str) -> None:
        super().__init__(f"'{recipe_id}' is not a valid recipe id.")
        self.recipe_id = recipe_id


class UploadTooLarge(RecipeError):
    status_code = 400
    message = "Image too large"

    def __init__(self, max_bytes: int) -> None:
        super().__init__(f"Uploads are limited to {max_bytes} bytes.")
        self.max_bytes = max_bytes

    def to_dict(self) -> Dict[str, Any]:
        return {"error": self.message, "maxBytes": self.max_bytes}


class DependencyFault(RecipeError):
    """The document store or the image provider failed.

    The original cause is chained (``raise ... from exc``) and logged by the
    web layer; clients only ever see the generic 500 body.
    """

    status_code = 500


__all__ = [
    "DependencyFault",
    "InvalidIdentifier",
    "RecipeError",
    "RecipeNotFound",
    "UploadTooLarge",
    "ValidationError",
]
