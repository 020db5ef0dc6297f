import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from conceptdeck.core.logging import _initialize_logging


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
  """Ensure logging is correctly set up after uvicorn starts."""
  from conceptdeck.config import get_settings

  settings = get_settings()
  logger = logging.getLogger("conceptdeck.core.lifespan")

  try:
    _initialize_logging(settings)
    logger.info("Startup complete - logging verified.")
  except RuntimeError:
    # Keep serving with default logging when the log directory is not writable.
    logger.warning("Initial logging setup failed; continuing with default handlers.", exc_info=True)

  # Credentials are resolved per task, so a missing key only warns at startup.
  if settings.ai_provider == "google" and not settings.google_ai_api_key:
    logger.warning("AI_PROVIDER=google but GOOGLE_AI_API_KEY is not configured; generation jobs will fail with API_KEY.")
  if settings.ai_provider == "openai" and not settings.openai_api_key:
    logger.warning("AI_PROVIDER=openai but OPENAI_API_KEY is not configured; generation jobs will fail with API_KEY.")

  yield
