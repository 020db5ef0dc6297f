"""Application configuration loaded from environment variables."""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache

from conceptdeck.utils.env import default_env_path, load_env_file

load_env_file(default_env_path(), override=False)

_SUPPORTED_AI_PROVIDERS = {"google", "openai"}
_SUPPORTED_TASK_PROVIDERS = {"gcp", "local-http"}


@dataclass(frozen=True)
class Settings:
  """Typed settings for the ConceptDeck service."""

  environment: str
  allowed_origins: tuple[str, ...]
  debug: bool
  log_max_bytes: int
  log_backup_count: int
  log_http_4xx: bool
  pg_dsn: str | None
  pg_connect_timeout: int
  ai_provider: str
  ai_model: str
  embedding_model: str | None
  google_ai_api_key: str | None
  openai_api_key: str | None
  min_prompt_length: int
  max_prompt_length: int
  max_concurrent_jobs: int
  target_phrasings_per_concept: int
  rate_limit_max_attempts: int
  rate_limit_window_seconds: int
  completed_job_retention_days: int
  failed_job_retention_days: int
  task_service_provider: str
  cloud_tasks_queue_path: str | None
  base_url: str | None
  task_secret: str | None
  cloud_run_invoker_service_account: str | None
  jobs_auto_process: bool = True


@dataclass(frozen=True)
class DatabaseSettings:
  """Typed settings for database connectivity."""

  debug: bool
  pg_dsn: str | None
  pg_connect_timeout: int


def _parse_origins(raw: str | None) -> tuple[str, ...]:
  if not raw:
    raise ValueError("CONCEPTDECK_ALLOWED_ORIGINS must be set to one or more origins.")

  origins = [origin.strip() for origin in raw.split(",") if origin.strip()]

  if not origins:
    raise ValueError("CONCEPTDECK_ALLOWED_ORIGINS must include at least one origin.")

  if "*" in origins:
    raise ValueError("CONCEPTDECK_ALLOWED_ORIGINS must not include wildcard origins.")

  return tuple(origins)


def _parse_bool(raw: str | None) -> bool:
  """Parse a boolean-ish string from environment variables."""

  if raw is None:
    return False

  normalized = raw.strip().lower()
  return normalized in {"1", "true", "yes", "on"}


def _parse_positive_int(name: str, default: str) -> int:
  value = int(os.getenv(name, default))
  if value <= 0:
    raise ValueError(f"{name} must be a positive integer.")
  return value


@lru_cache(maxsize=1)
def get_settings() -> Settings:
  """Load settings once per process."""

  environment = os.getenv("CONCEPTDECK_ENV", "development").lower()
  debug = _parse_bool(os.getenv("CONCEPTDECK_DEBUG"))

  log_max_bytes = _parse_positive_int("CONCEPTDECK_LOG_MAX_BYTES", "5242880")  # 5MB default
  log_backup_count = int(os.getenv("CONCEPTDECK_LOG_BACKUP_COUNT", "10"))
  if log_backup_count < 0:
    raise ValueError("CONCEPTDECK_LOG_BACKUP_COUNT must be zero or a positive integer.")

  # Provider selection is a process setting; credentials stay optional here and are checked per task.
  ai_provider = (os.getenv("AI_PROVIDER") or "openai").strip().lower()
  if ai_provider not in _SUPPORTED_AI_PROVIDERS:
    raise ValueError(f"Unsupported AI_PROVIDER: {ai_provider}. Use 'google' or 'openai'.")

  min_prompt_length = _parse_positive_int("CONCEPTDECK_MIN_PROMPT_LENGTH", "3")
  max_prompt_length = _parse_positive_int("CONCEPTDECK_MAX_PROMPT_LENGTH", "5000")
  if min_prompt_length > max_prompt_length:
    raise ValueError("CONCEPTDECK_MIN_PROMPT_LENGTH must not exceed CONCEPTDECK_MAX_PROMPT_LENGTH.")

  task_service_provider = os.getenv("CONCEPTDECK_TASK_SERVICE_PROVIDER", "local-http").lower()
  if task_service_provider not in _SUPPORTED_TASK_PROVIDERS:
    raise ValueError("CONCEPTDECK_TASK_SERVICE_PROVIDER must be 'gcp' or 'local-http'.")

  return Settings(
    environment=environment,
    allowed_origins=_parse_origins(os.getenv("CONCEPTDECK_ALLOWED_ORIGINS")),
    debug=debug,
    log_max_bytes=log_max_bytes,
    log_backup_count=log_backup_count,
    log_http_4xx=_parse_bool(os.getenv("CONCEPTDECK_LOG_HTTP_4XX")),
    pg_dsn=os.getenv("CONCEPTDECK_PG_DSN") or os.getenv("DATABASE_URL"),
    pg_connect_timeout=_parse_positive_int("CONCEPTDECK_PG_CONNECT_TIMEOUT", "5"),
    ai_provider=ai_provider,
    ai_model=(os.getenv("AI_MODEL") or "gpt-5-mini").strip(),
    embedding_model=_optional_str(os.getenv("CONCEPTDECK_EMBEDDING_MODEL")),
    google_ai_api_key=_optional_str(os.getenv("GOOGLE_AI_API_KEY")),
    openai_api_key=_optional_str(os.getenv("OPENAI_API_KEY")),
    min_prompt_length=min_prompt_length,
    max_prompt_length=max_prompt_length,
    max_concurrent_jobs=_parse_positive_int("CONCEPTDECK_MAX_CONCURRENT_JOBS", "3"),
    target_phrasings_per_concept=_parse_positive_int("CONCEPTDECK_TARGET_PHRASINGS_PER_CONCEPT", "4"),
    rate_limit_max_attempts=_parse_positive_int("CONCEPTDECK_RATE_LIMIT_MAX_ATTEMPTS", "100"),
    rate_limit_window_seconds=_parse_positive_int("CONCEPTDECK_RATE_LIMIT_WINDOW_SECONDS", "3600"),
    completed_job_retention_days=_parse_positive_int("CONCEPTDECK_COMPLETED_JOB_RETENTION_DAYS", "7"),
    failed_job_retention_days=_parse_positive_int("CONCEPTDECK_FAILED_JOB_RETENTION_DAYS", "30"),
    task_service_provider=task_service_provider,
    cloud_tasks_queue_path=_optional_str(os.getenv("CONCEPTDECK_CLOUD_TASKS_QUEUE_PATH")),
    base_url=_optional_str(os.getenv("CONCEPTDECK_BASE_URL")),
    task_secret=_optional_str(os.getenv("CONCEPTDECK_TASK_SECRET")),
    cloud_run_invoker_service_account=_optional_str(os.getenv("CONCEPTDECK_CLOUD_RUN_INVOKER_SERVICE_ACCOUNT")),
    jobs_auto_process=os.getenv("CONCEPTDECK_JOBS_AUTO_PROCESS") is None or _parse_bool(os.getenv("CONCEPTDECK_JOBS_AUTO_PROCESS")),
  )


@lru_cache(maxsize=1)
def get_database_settings() -> DatabaseSettings:
  """Load database settings without requiring web-runtime configuration like CORS."""
  # Keep database configuration isolated so offline scripts don't require unrelated env vars.
  debug = _parse_bool(os.getenv("CONCEPTDECK_DEBUG"))
  pg_connect_timeout = _parse_positive_int("CONCEPTDECK_PG_CONNECT_TIMEOUT", "5")
  pg_dsn = os.getenv("CONCEPTDECK_PG_DSN") or os.getenv("DATABASE_URL")
  return DatabaseSettings(debug=debug, pg_dsn=pg_dsn, pg_connect_timeout=pg_connect_timeout)


def _optional_str(raw: str | None) -> str | None:
  if raw is None:
    return None
  value = raw.strip()
  if value == "":
    return None
  return value
