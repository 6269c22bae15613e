from __future__ import annotations

from collections.abc import AsyncIterator
from dataclasses import replace

import pytest
from httpx import ASGITransport, AsyncClient

from cvengine.api.deps import get_generation_service
from cvengine.config import get_settings
from cvengine.core.security import CurrentUser, get_current_user
from cvengine.main import app
from cvengine.services.generation import GenerationService
from tests.fakes import InMemoryJobsRepo, RecordingEnqueuer, build_service, make_job


@pytest.fixture
def repo() -> InMemoryJobsRepo:
  return InMemoryJobsRepo([make_job()])


@pytest.fixture
def enqueuer() -> RecordingEnqueuer:
  return RecordingEnqueuer()


@pytest.fixture
def service(repo: InMemoryJobsRepo, enqueuer: RecordingEnqueuer) -> GenerationService:
  return build_service(repo, enqueuer=enqueuer)


@pytest.fixture
async def client(service: GenerationService) -> AsyncIterator[AsyncClient]:
  app.dependency_overrides[get_generation_service] = lambda: service
  app.dependency_overrides[get_current_user] = lambda: CurrentUser(uid="user-1", email="jordan@example.com", claims={})
  async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as http_client:
    yield http_client
  app.dependency_overrides.clear()


@pytest.mark.anyio
async def test_health() -> None:
  async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as http_client:
    response = await http_client.get("/health")
  assert response.status_code == 200
  assert response.json()["status"] == "ok"
  assert response.headers["x-request-id"]


@pytest.mark.anyio
async def test_generate_requires_authentication() -> None:
  async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as http_client:
    response = await http_client.post("/v1/cv/job-1/generate", json={})
  assert response.status_code == 401


@pytest.mark.anyio
async def test_generate_initiates_job(client: AsyncClient, repo: InMemoryJobsRepo, enqueuer: RecordingEnqueuer) -> None:
  response = await client.post("/v1/cv/job-1/generate", json={"template_id": "modern", "features": ["embed-qr-code", "generate-podcast"]})

  assert response.status_code == 202
  body = response.json()
  assert body["success"] is True
  assert body["status"] == "initiated"
  assert body["estimated_time"] == 292
  assert (await repo.get_job("job-1")).status == "generating"
  assert len(enqueuer.tasks) == 1


@pytest.mark.anyio
async def test_generate_without_body_uses_defaults(client: AsyncClient, enqueuer: RecordingEnqueuer) -> None:
  response = await client.post("/v1/cv/job-1/generate")
  assert response.status_code == 202
  assert response.json()["selected_features"] == []
  assert enqueuer.tasks[0].template_id == "modern"


@pytest.mark.anyio
async def test_generate_rejects_unknown_body_fields(client: AsyncClient) -> None:
  response = await client.post("/v1/cv/job-1/generate", json={"template": "modern"})
  assert response.status_code == 422
  assert "requestId" in response.json()


@pytest.mark.anyio
async def test_domain_errors_map_to_http_statuses(client: AsyncClient, repo: InMemoryJobsRepo) -> None:
  missing = await client.post("/v1/cv/job-404/generate", json={})
  assert missing.status_code == 404
  assert missing.json()["detail"] == "Job not found"

  await repo.create_job(make_job("job-2", user_id="someone-else"))
  foreign = await client.get("/v1/cv/job-2/status")
  assert foreign.status_code == 403
  assert foreign.json()["detail"] == "Permission denied"

  first = await client.post("/v1/cv/job-1/generate", json={})
  assert first.status_code == 202
  again = await client.post("/v1/cv/job-1/generate", json={})
  assert again.status_code == 409


@pytest.mark.anyio
async def test_status_and_cancel(client: AsyncClient, repo: InMemoryJobsRepo) -> None:
  status = await client.get("/v1/cv/job-1/status")
  assert status.status_code == 200
  assert status.json()["queue_position"] == 1

  cancelled = await client.post("/v1/cv/job-1/cancel")
  assert cancelled.status_code == 200
  assert cancelled.json()["status"] == "cancelled"
  assert (await repo.get_job("job-1")).status == "cancelled"

  retry = await client.post("/v1/cv/job-1/retry")
  assert retry.status_code == 409


@pytest.mark.anyio
async def test_task_endpoint_requires_shared_secret(client: AsyncClient, repo: InMemoryJobsRepo, service: GenerationService) -> None:
  app.dependency_overrides[get_settings] = lambda: replace(get_settings(), task_secret="s3cret")
  payload = {"job_id": "job-1", "user_id": "user-1", "template_id": "modern", "features": []}

  denied = await client.post("/internal/tasks/process-job", json=payload, headers={"authorization": "Bearer wrong"})
  assert denied.status_code == 403

  await repo.update_job("job-1", status="generating")
  accepted = await client.post("/internal/tasks/process-job", json=payload, headers={"authorization": "Bearer s3cret"})
  assert accepted.status_code == 202
  assert accepted.json() == {"status": "accepted"}
  await service.runner.wait("job-1")
  assert (await repo.get_job("job-1")).status == "completed"
