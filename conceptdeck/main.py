from __future__ import annotations

from fastapi import FastAPI, HTTPException
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware

from conceptdeck.api.routes import concepts, jobs, tasks
from conceptdeck.config import get_settings
from conceptdeck.core.exceptions import global_exception_handler, http_exception_handler, request_validation_exception_handler
from conceptdeck.core.lifespan import lifespan
from conceptdeck.core.middleware import RequestLoggingMiddleware

settings = get_settings()

app = FastAPI(title="ConceptDeck", lifespan=lifespan, docs_url=None, redoc_url=None)

app.add_middleware(CORSMiddleware, allow_origins=settings.allowed_origins, allow_credentials=True, allow_methods=["GET", "POST", "OPTIONS"], allow_headers=["content-type", "authorization", "x-owner-id"], expose_headers=["x-request-id"])

app.add_exception_handler(Exception, global_exception_handler)
app.add_exception_handler(HTTPException, http_exception_handler)
app.add_exception_handler(RequestValidationError, request_validation_exception_handler)

app.add_middleware(RequestLoggingMiddleware)


@app.get("/health", include_in_schema=False)
async def health_check() -> dict[str, str]:
  """Return a simple health status."""
  return {"status": "ok", "version": "0.1.0"}


app.include_router(jobs.router, prefix="/v1/jobs", tags=["jobs"])
app.include_router(concepts.router, prefix="/v1/concepts", tags=["concepts"])
app.include_router(tasks.router, prefix="/internal", tags=["tasks"])
