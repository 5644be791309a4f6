from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import List, Mapping, Optional

DEFAULT_MAX_UPLOAD_BYTES = 5 * 1024 * 1024
DEFAULT_RATE_LIMIT = "100 per 15 minutes"


def _split_origins(value: str) -> List[str]:
    return [origin.strip() for origin in value.split(",") if origin.strip()]


@dataclass
class Settings:
    """Process-wide configuration, read once at start-up."""

    environment: str = "local"
    log_level: str = "INFO"
    gcp_project: Optional[str] = None
    recipes_collection: str = "recipes"
    gcs_bucket: Optional[str] = None
    gcs_image_folder: str = "forchetta"
    max_upload_bytes: int = DEFAULT_MAX_UPLOAD_BYTES
    allowed_origins: List[str] = field(default_factory=lambda: ["*"])
    rate_limit: str = DEFAULT_RATE_LIMIT

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Settings":
        """Build settings from environment variables."""

        env = os.environ if environ is None else environ
        return cls(
            environment=env.get("ENVIRONMENT", "local"),
            log_level=env.get("LOG_LEVEL", "INFO").upper(),
            gcp_project=env.get("GCP_PROJECT") or None,
            recipes_collection=env.get("RECIPES_COLLECTION", "recipes"),
            gcs_bucket=env.get("GCS_BUCKET") or None,
            gcs_image_folder=env.get("GCS_IMAGE_FOLDER", "forchetta"),
            max_upload_bytes=int(env.get("MAX_UPLOAD_BYTES", DEFAULT_MAX_UPLOAD_BYTES)),
            allowed_origins=_split_origins(env.get("ALLOWED_ORIGIN", "*")) or ["*"],
            rate_limit=env.get("RATE_LIMIT", DEFAULT_RATE_LIMIT).strip(),
        )

    @property
    def max_content_length(self) -> int:
        # Room for the text fields sent alongside the image.
        return self.max_upload_bytes + 1024 * 1024


__all__ = ["Settings"]
