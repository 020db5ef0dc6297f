"""HTTP surface: admission, lifecycle and the internal task endpoint."""

from __future__ import annotations

from collections.abc import AsyncIterator
from dataclasses import replace
from datetime import UTC, datetime, timedelta

import httpx
import pytest

from conceptdeck.api.deps import get_admission_rate_limiter, get_concepts_repo, get_enqueuer, get_jobs_repo, get_task_registry
from conceptdeck.config import get_settings
from conceptdeck.jobs.dispatch import build_registry
from conceptdeck.main import app
from conceptdeck.services.tasks.interface import CONCEPT_SYNTHESIS_TASK, PHRASING_EXPANSION_TASK
from tests.support import FakeModel, InMemoryRateLimiter, make_job, model_factory_for

OWNER = {"X-Owner-Id": "user-1"}
TASK_AUTH = {"Authorization": "Bearer test-task-secret"}

SYNTHESIS_RESPONSE = {
  "concepts": [{"title": "Grace as Gift", "description": "Grace is freely given and never earned, an invitation the learner can recall on its own.", "rationale": "Core."}]
}


@pytest.fixture
def rate_limiter() -> InMemoryRateLimiter:
  return InMemoryRateLimiter(max_attempts=2)


@pytest.fixture
async def client(settings, jobs_repo, concepts_repo, enqueuer, rate_limiter) -> AsyncIterator[httpx.AsyncClient]:
  model = FakeModel(lambda prompt, schema: SYNTHESIS_RESPONSE)
  app.dependency_overrides[get_settings] = lambda: settings
  app.dependency_overrides[get_jobs_repo] = lambda: jobs_repo
  app.dependency_overrides[get_concepts_repo] = lambda: concepts_repo
  app.dependency_overrides[get_enqueuer] = lambda: enqueuer
  app.dependency_overrides[get_admission_rate_limiter] = lambda: rate_limiter
  app.dependency_overrides[get_task_registry] = lambda: build_registry(
    jobs_repo=jobs_repo, concepts_repo=concepts_repo, enqueuer=enqueuer, settings=settings, rate_limiter=rate_limiter, model_factory=model_factory_for(model)
  )
  transport = httpx.ASGITransport(app=app)
  async with httpx.AsyncClient(transport=transport, base_url="http://test") as http_client:
    yield http_client
  app.dependency_overrides.clear()


@pytest.mark.anyio
async def test_submit_creates_pending_job_and_schedules_synthesis(client, jobs_repo, enqueuer) -> None:
  response = await client.post("/v1/jobs", json={"prompt": "  Explain mitosis  "}, headers=OWNER)

  assert response.status_code == 202
  job_id = response.json()["job_id"]
  job = await jobs_repo.get_job(job_id)
  assert job is not None
  assert (job.status, job.phase, job.prompt, job.owner_id) == ("pending", "clarifying", "Explain mitosis", "user-1")
  assert enqueuer.calls == [(CONCEPT_SYNTHESIS_TASK, {"job_id": job_id}, 0)]


@pytest.mark.anyio
async def test_submit_requires_owner_identity(client) -> None:
  response = await client.post("/v1/jobs", json={"prompt": "Explain mitosis"})
  assert response.status_code == 401


@pytest.mark.anyio
@pytest.mark.parametrize("prompt", ["  ", "ab", "x" * 5001])
async def test_submit_rejects_out_of_bounds_prompt(client, jobs_repo, prompt: str) -> None:
  response = await client.post("/v1/jobs", json={"prompt": prompt}, headers=OWNER)
  assert response.status_code == 400
  assert jobs_repo.jobs == {}


@pytest.mark.anyio
async def test_submit_rejects_unknown_fields(client) -> None:
  response = await client.post("/v1/jobs", json={"prompt": "Explain mitosis", "model": "other"}, headers=OWNER)
  assert response.status_code == 422


@pytest.mark.anyio
async def test_submit_rejects_when_processing_ceiling_reached(client, jobs_repo, enqueuer) -> None:
  for _ in range(3):
    await jobs_repo.create_job(make_job(status="processing"))

  response = await client.post("/v1/jobs", json={"prompt": "Explain mitosis"}, headers=OWNER)

  assert response.status_code == 429
  assert "3" in response.json()["detail"]
  assert len(jobs_repo.jobs) == 3
  assert enqueuer.calls == []


@pytest.mark.anyio
async def test_submit_accepted_just_below_processing_ceiling(client, jobs_repo, enqueuer, settings) -> None:
  for _ in range(settings.max_concurrent_jobs - 1):
    await jobs_repo.create_job(make_job(status="processing"))

  response = await client.post("/v1/jobs", json={"prompt": "Explain mitosis"}, headers=OWNER)

  assert response.status_code == 202
  assert len(jobs_repo.jobs) == settings.max_concurrent_jobs
  created = await jobs_repo.get_job(response.json()["job_id"])
  assert created is not None and created.status == "pending"
  assert enqueuer.calls == [(CONCEPT_SYNTHESIS_TASK, {"job_id": created.job_id}, 0)]


@pytest.mark.anyio
async def test_pending_jobs_do_not_count_toward_ceiling(client, jobs_repo) -> None:
  for _ in range(3):
    await jobs_repo.create_job(make_job(status="pending"))

  response = await client.post("/v1/jobs", json={"prompt": "Explain mitosis"}, headers=OWNER)
  assert response.status_code == 202


@pytest.mark.anyio
async def test_submit_rejects_when_origin_rate_limited(client, jobs_repo) -> None:
  for _ in range(2):
    assert (await client.post("/v1/jobs", json={"prompt": "Explain mitosis"}, headers={**OWNER, "X-Forwarded-For": "203.0.113.9, 10.0.0.1"})).status_code == 202

  limited = await client.post("/v1/jobs", json={"prompt": "Explain mitosis"}, headers={**OWNER, "X-Forwarded-For": "203.0.113.9"})
  other_origin = await client.post("/v1/jobs", json={"prompt": "Explain mitosis"}, headers={**OWNER, "X-Forwarded-For": "198.51.100.4"})

  assert limited.status_code == 429
  assert other_origin.status_code == 202
  assert len(jobs_repo.jobs) == 3


@pytest.mark.anyio
async def test_enqueue_failure_fails_the_job(client, jobs_repo, enqueuer) -> None:
  async def broken_enqueue(task_name, args, delay_seconds=0):
    raise ConnectionError("network unreachable")

  enqueuer.enqueue = broken_enqueue

  response = await client.post("/v1/jobs", json={"prompt": "Explain mitosis"}, headers=OWNER)

  assert response.status_code == 202
  job = await jobs_repo.get_job(response.json()["job_id"])
  assert job is not None
  assert (job.status, job.error_code, job.retryable) == ("failed", "NETWORK", True)


@pytest.mark.anyio
async def test_get_job_hides_other_owners(client, jobs_repo) -> None:
  mine = make_job()
  theirs = make_job(owner_id="user-2")
  await jobs_repo.create_job(mine)
  await jobs_repo.create_job(theirs)

  ok = await client.get(f"/v1/jobs/{mine.job_id}", headers=OWNER)
  hidden = await client.get(f"/v1/jobs/{theirs.job_id}", headers=OWNER)

  assert ok.status_code == 200
  assert ok.json()["status"] == "pending"
  assert hidden.status_code == 404


@pytest.mark.anyio
async def test_list_recent_jobs_newest_first(client, jobs_repo) -> None:
  now = datetime.now(UTC)
  older = make_job(created_at=now - timedelta(minutes=5))
  newer = make_job(created_at=now)
  await jobs_repo.create_job(older)
  await jobs_repo.create_job(newer)
  await jobs_repo.create_job(make_job(owner_id="user-2"))

  response = await client.get("/v1/jobs", params={"limit": 10}, headers=OWNER)

  assert response.status_code == 200
  assert [job["job_id"] for job in response.json()["jobs"]] == [newer.job_id, older.job_id]


@pytest.mark.anyio
async def test_cancel_active_job_then_conflict(client, jobs_repo) -> None:
  job = make_job(status="processing")
  await jobs_repo.create_job(job)

  cancelled = await client.post(f"/v1/jobs/{job.job_id}/cancel", headers=OWNER)
  again = await client.post(f"/v1/jobs/{job.job_id}/cancel", headers=OWNER)

  assert cancelled.status_code == 200
  assert cancelled.json()["status"] == "cancelled"
  assert again.status_code == 409


@pytest.mark.anyio
async def test_request_phrasings_creates_manual_job(client, jobs_repo, concepts_repo, enqueuer) -> None:
  concept = concepts_repo.add_concept("user-1", "Grace as Gift")

  response = await client.post(f"/v1/concepts/{concept.concept_id}/phrasings", headers=OWNER)

  assert response.status_code == 202
  job = await jobs_repo.get_job(response.json()["job_id"])
  assert job is not None
  assert (job.status, job.phase, job.topic) == ("pending", "phrasing_generation", "Grace as Gift")
  assert job.prompt == "Manual concept phrasing request: Grace as Gift"
  assert job.concept_ids == job.pending_concept_ids == [concept.concept_id]
  assert job.estimated_total == 4
  assert enqueuer.calls == [(PHRASING_EXPANSION_TASK, {"job_id": job.job_id, "concept_id": concept.concept_id}, 0)]


@pytest.mark.anyio
async def test_request_phrasings_rejects_foreign_concept_and_active_job(client, jobs_repo, concepts_repo) -> None:
  foreign = concepts_repo.add_concept("user-2", "Someone Else's Concept")
  busy = concepts_repo.add_concept("user-1", "Busy Concept Title")
  await jobs_repo.create_job(make_job(status="processing", concept_ids=[busy.concept_id], pending_concept_ids=[busy.concept_id]))

  assert (await client.post(f"/v1/concepts/{foreign.concept_id}/phrasings", headers=OWNER)).status_code == 404
  assert (await client.post(f"/v1/concepts/{busy.concept_id}/phrasings", headers=OWNER)).status_code == 409


@pytest.mark.anyio
async def test_submit_skips_dispatch_when_auto_process_disabled(settings, jobs_repo, enqueuer, client) -> None:
  app.dependency_overrides[get_settings] = lambda: replace(settings, jobs_auto_process=False)

  response = await client.post("/v1/jobs", json={"prompt": "Explain mitosis"}, headers=OWNER)

  assert response.status_code == 202
  assert enqueuer.calls == []


@pytest.mark.anyio
async def test_task_endpoint_requires_secret(client) -> None:
  missing = await client.post(f"/internal/tasks/{CONCEPT_SYNTHESIS_TASK}", json={"job_id": "job-1"})
  wrong = await client.post(f"/internal/tasks/{CONCEPT_SYNTHESIS_TASK}", json={"job_id": "job-1"}, headers={"Authorization": "Bearer nope"})
  assert missing.status_code == 403
  assert wrong.status_code == 403


@pytest.mark.anyio
async def test_task_endpoint_rejects_unknown_task_and_bad_args(client) -> None:
  unknown = await client.post("/internal/tasks/unknown_task", json={}, headers=TASK_AUTH)
  invalid = await client.post(f"/internal/tasks/{PHRASING_EXPANSION_TASK}", json={"job_id": "job-1"}, headers=TASK_AUTH)
  assert unknown.status_code == 404
  assert invalid.status_code == 422


@pytest.mark.anyio
async def test_task_endpoint_runs_concept_synthesis(client, jobs_repo, concepts_repo, enqueuer) -> None:
  job = make_job()
  await jobs_repo.create_job(job)

  response = await client.post(f"/internal/tasks/{CONCEPT_SYNTHESIS_TASK}", json={"job_id": job.job_id}, headers={"X-Conceptdeck-Task-Secret": "test-task-secret"})

  assert response.status_code == 200
  assert response.json() == {"status": "accepted"}
  updated = await jobs_repo.get_job(job.job_id)
  assert updated is not None
  assert (updated.status, updated.phase) == ("processing", "phrasing_generation")
  assert len(concepts_repo.concepts) == 1
  assert [name for name, _, _ in enqueuer.calls] == [PHRASING_EXPANSION_TASK]


@pytest.mark.anyio
async def test_cleanup_task_removes_expired_jobs_and_prunes_attempts(client, jobs_repo, rate_limiter) -> None:
  old = datetime.now(UTC) - timedelta(days=40)
  expired_completed = make_job(status="completed", completed_at=old)
  expired_failed = make_job(status="failed", completed_at=old)
  recent_failed = make_job(status="failed", completed_at=datetime.now(UTC) - timedelta(days=10))
  for job in (expired_completed, expired_failed, recent_failed):
    await jobs_repo.create_job(job)
  rate_limiter.attempts["203.0.113.9"] = 2

  response = await client.post("/internal/tasks/cleanup_jobs", json={}, headers=TASK_AUTH)

  assert response.status_code == 200
  assert set(jobs_repo.jobs) == {recent_failed.job_id}
  assert rate_limiter.attempts == {}
