"""Error payload sanitization and request id tagging."""

from __future__ import annotations

import httpx
import pytest

from conceptdeck.core.exceptions import _coerce_json_safe, _sanitize_validation_errors
from conceptdeck.main import app


def test_sanitize_validation_errors_drops_submitted_prompt() -> None:
  errors = [{"type": "extra_forbidden", "loc": ("body", "model"), "msg": "Extra inputs are not permitted", "input": "gpt-x", "ctx": {"error": ValueError("bad field"), "input": {"prompt": "secret"}}}]
  sanitized = _sanitize_validation_errors(errors)
  assert "input" not in sanitized[0]
  assert "input" not in sanitized[0]["ctx"]
  assert sanitized[0]["ctx"]["error"] == "ValueError: bad field"
  assert sanitized[0]["loc"] == ["body", "model"]


def test_coerce_json_safe_falls_back_to_str() -> None:
  assert _coerce_json_safe({1: {"a", "a"}, "k": None}) == {"1": ["a"], "k": None}
  assert _coerce_json_safe(RuntimeError()) == "RuntimeError"


@pytest.mark.anyio
async def test_error_responses_carry_request_id() -> None:
  async with httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://test") as client:
    response = await client.get("/v1/jobs/job-1")

  assert response.status_code == 401
  body = response.json()
  assert body["detail"] == "Missing owner identity."
  assert body["requestId"] == response.headers["x-request-id"]
