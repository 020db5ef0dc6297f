import logging
import logging.handlers
import sys
import time
from pathlib import Path

from conceptdeck.config import Settings

LOG_FORMATTER = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s", datefmt="%H:%M:%S")
_QUIET_LOGGERS = ("httpx", "httpcore", "openai", "google_genai")

_LOGGING_INITIALIZED = False


def setup_logging(settings: Settings, log_dir: Path | None = None) -> Path:
  """Send application, uvicorn and fastapi records to stdout and a rotating file."""
  log_dir = log_dir or Path(__file__).resolve().parent.parent.parent / "logs"
  try:
    log_dir.mkdir(parents=True, exist_ok=True)
  except OSError as exc:
    raise RuntimeError(f"Failed to create log directory at {log_dir}: {exc}") from exc

  log_path = log_dir / f"conceptdeck_{time.strftime('%Y%m%d_%H%M%S')}.log"
  handlers: list[logging.Handler] = [
    logging.StreamHandler(sys.stdout),
    logging.handlers.RotatingFileHandler(log_path, encoding="utf-8", maxBytes=settings.log_max_bytes, backupCount=settings.log_backup_count),
  ]
  for handler in handlers:
    handler.setFormatter(LOG_FORMATTER)

  for logger_name in ("uvicorn", "uvicorn.error", "uvicorn.access", "fastapi"):
    log = logging.getLogger(logger_name)
    log.handlers = list(handlers)
    log.propagate = False

  logging.basicConfig(level=logging.DEBUG if settings.debug else logging.INFO, handlers=handlers, force=True)
  # Provider SDKs log full request bodies at debug level.
  for noisy in _QUIET_LOGGERS:
    logging.getLogger(noisy).setLevel(logging.WARNING)
  return log_path


def _initialize_logging(settings: Settings) -> None:
  """Configure logging once per process."""
  global _LOGGING_INITIALIZED
  if _LOGGING_INITIALIZED:
    return
  log_path = setup_logging(settings)
  _LOGGING_INITIALIZED = True
  logger = logging.getLogger("conceptdeck.core.logging")
  logger.info("Logging initialized. Writing to %s", log_path)
  logger.info("Generation provider=%s model=%s task_service=%s", settings.ai_provider, settings.ai_model, settings.task_service_provider)
