"""Tests for the HTTP routes."""

from collections.abc import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from skillpath.config import settings
from skillpath.main import app

LEARNER = "learner-api"


@pytest_asyncio.fixture
async def client(db: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c


@pytest.mark.asyncio
async def test_next_activity_without_skills(client: AsyncClient) -> None:
    response = await client.get("/api/activities/next", params={"learner_id": LEARNER})
    assert response.status_code == 200
    body = response.json()
    assert body["activity"] is None
    assert body["reason"] == "no-activities"


@pytest.mark.asyncio
async def test_review_flow(client: AsyncClient, catalog: dict[str, str]) -> None:
    response = await client.post(
        "/api/review",
        json={
            "learner_id": LEARNER,
            "skill_id": catalog["skill"],
            "grade": "good",
            "reviewed_at": "2024-03-01T09:00:00Z",
        },
    )
    assert response.status_code == 200
    body = response.json()
    assert body["reps"] == 1
    assert body["status"] == "in_progress"
    assert body["last_reviewed_at"].startswith("2024-03-01T09:00:00")

    response = await client.get("/api/review/due", params={"learner_id": LEARNER})
    assert response.status_code == 200
    assert response.json()["count"] == 1  # Reviewed in the past, interval under a day

    response = await client.get("/api/review/queue", params={"learner_id": LEARNER, "limit": 5})
    assert response.json()["count"] == 1

    response = await client.get("/api/review/plan", params={"learner_id": LEARNER})
    assert response.status_code == 200
    plan = response.json()
    assert plan["recommended_minutes"] == 15
    assert plan["items"][0]["skill_id"] == catalog["skill"]


@pytest.mark.asyncio
async def test_review_rejects_invalid_input(client: AsyncClient, catalog: dict[str, str]) -> None:
    bad_grade = {"learner_id": LEARNER, "skill_id": catalog["skill"], "grade": "perfect"}
    assert (await client.post("/api/review", json=bad_grade)).status_code == 422

    bad_score = {"learner_id": LEARNER, "skill_id": catalog["skill"], "grade": "good", "score": 1.5}
    assert (await client.post("/api/review", json=bad_score)).status_code == 422


@pytest.mark.asyncio
async def test_attempt_and_next_activity(client: AsyncClient, catalog: dict[str, str]) -> None:
    response = await client.post(
        "/api/review/start", params={"learner_id": LEARNER, "skill_id": catalog["skill"]}
    )
    assert response.status_code == 200
    assert response.json()["status"] == "not_started"

    response = await client.get("/api/activities/next", params={"learner_id": LEARNER})
    body = response.json()
    assert body["reason"] == "due"
    assert body["activity"]["activity_id"] == catalog["halves"]
    assert body["activity"]["scheduling"]["level"] == 0
    assert body["skill_state"]["status"] == "not_started"

    for _ in range(2):
        response = await client.post(
            "/api/activities/attempt",
            json={"learner_id": LEARNER, "activity_id": catalog["halves"], "score": 9, "max_score": 10},
        )
        assert response.status_code == 201
    body = response.json()
    assert body["success"] is True
    assert body["srs"]["level"] == 1
    assert body["srs"]["consecutive_correct"] == 2
    assert body["skill_state"]["status"] == "in_progress"

    response = await client.get("/api/activities/next", params={"learner_id": LEARNER})
    assert response.json()["activity"]["activity_id"] == catalog["thirds"]

    response = await client.get("/api/activities/upcoming", params={"learner_id": LEARNER, "limit": 2})
    body = response.json()
    assert body["count"] == 2
    assert [a["activity_id"] for a in body["activities"]] == [catalog["thirds"], catalog["adding"]]


@pytest.mark.asyncio
async def test_attempt_unknown_activity(client: AsyncClient, catalog: dict[str, str]) -> None:
    response = await client.post(
        "/api/activities/attempt",
        json={"learner_id": LEARNER, "activity_id": "nope", "success": True},
    )
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_unknown_skill_not_found(client: AsyncClient, catalog: dict[str, str]) -> None:
    response = await client.post(
        "/api/review", json={"learner_id": LEARNER, "skill_id": "no-such-skill", "grade": "good"}
    )
    assert response.status_code == 404

    response = await client.post("/api/review/start", params={"learner_id": LEARNER, "skill_id": "no-such-skill"})
    assert response.status_code == 404

    response = await client.get("/api/review/due", params={"learner_id": LEARNER})
    assert response.json()["count"] == 0


@pytest.mark.asyncio
async def test_limits_default_to_settings(
    client: AsyncClient, catalog: dict[str, str], monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setattr(settings, "upcoming_activities_limit", 1)
    monkeypatch.setattr(settings, "study_queue_limit", 1)
    await client.post("/api/review/start", params={"learner_id": LEARNER, "skill_id": catalog["skill"]})

    response = await client.get("/api/activities/upcoming", params={"learner_id": LEARNER})
    assert response.json()["count"] == 1
    response = await client.get("/api/activities/upcoming", params={"learner_id": LEARNER, "limit": 3})
    assert response.json()["count"] == 3

    response = await client.get("/api/review/queue", params={"learner_id": LEARNER})
    assert response.json()["count"] == 1
