"""WSGI entrypoint for the Forchetta recipe API.

The Flask development server is intentionally not started from this module so
that deployments rely on Gunicorn (``gunicorn main:app``). Local development
can still use ``flask --app main run`` which imports the ``app`` object
defined below. Settings are read from the environment, with a ``.env`` file
in the working directory loaded first when present.
"""

import logging

from dotenv import load_dotenv

from forchetta import create_app
from forchetta.config import Settings

load_dotenv()

settings = Settings.from_env()

logging.basicConfig(
    level=getattr(logging, settings.log_level, logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logging.getLogger(__name__).info("Starting recipe API in environment: %s", settings.environment)

app = create_app(settings)


__all__ = ["app"]
