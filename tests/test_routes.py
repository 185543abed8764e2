import httpx
import pytest
from fastapi.testclient import TestClient

from reelhouse.api.deps import get_service
from reelhouse.core.app import app
from reelhouse.core.exceptions import DatabaseError, UpstreamError
from reelhouse.models.requests import SearchRequest
from reelhouse.models.results import SearchCandidate
from reelhouse.services.movie_service import validate_request

HEADERS = {"X-Household-Id": "house-1", "X-Profile-Id": "parent"}


class StubService:
    def __init__(self, error: Exception | None = None):
        self.error = error
        self.calls: list[tuple] = []

    async def search(self, household_id, payload):
        self.calls.append(("search", household_id, payload))
        if self.error:
            raise self.error
        request = validate_request(SearchRequest, payload)
        return [SearchCandidate(tmdb_id=1, title=request.query.title())]

    async def dequeue(self, payload):
        self.calls.append(("dequeue", payload))
        return False


@pytest.fixture
def override():
    def _install(service):
        app.dependency_overrides[get_service] = lambda: service
        return TestClient(app)

    yield _install
    app.dependency_overrides.clear()


def test_search_route_passes_household_and_body(override):
    stub = StubService()
    client = override(stub)

    response = client.post("/search", json={"query": "moana"}, headers=HEADERS)

    assert response.status_code == 200
    assert response.json()[0]["title"] == "Moana"
    assert stub.calls == [("search", "house-1", {"query": "moana"})]


def test_missing_household_header(override):
    client = override(StubService())

    response = client.post("/search", json={"query": "moana"}, headers={"X-Household-Id": "  "})

    assert response.status_code == 400


def test_validation_error_is_verbatim(override):
    client = override(StubService())

    response = client.post("/search", json={"year": 2001}, headers=HEADERS)

    assert response.status_code == 422
    body = response.json()
    assert body["code"] == "VALIDATION_ERROR"
    assert body["error"].startswith("Invalid SearchRequest parameters: query:")


@pytest.mark.parametrize(
    ("error", "status"),
    [
        (UpstreamError("TMDB returned 500 for /search/movie"), 502),
        (DatabaseError("Failed to load household policy: connection refused"), 500),
    ],
)
def test_internal_failures_are_generic(override, error, status):
    client = override(StubService(error=error))

    response = client.post("/search", json={"query": "moana"}, headers=HEADERS)

    assert response.status_code == status
    assert "connection refused" not in response.text
    assert "/search/movie" not in response.text


def test_dequeue_route_reports_removal(override):
    stub = StubService()
    client = override(stub)

    response = client.delete("/queue/42", headers=HEADERS)

    assert response.status_code == 200
    assert response.json() == {"success": True, "removed": False}
    assert stub.calls == [("dequeue", {"item_id": 42})]


@pytest.fixture
async def api(movie_service):
    app.dependency_overrides[get_service] = lambda: movie_service
    async with httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://test") as client:
        yield client
    app.dependency_overrides.clear()


async def test_watch_flow_over_http(api, catalog_api):
    catalog_api.add(10, "Paddington", year=2014)

    rating_first = await api.put("/watch/rating", json={"tmdb_id": 10, "rating": 8}, headers=HEADERS)
    assert rating_first.status_code == 404
    assert rating_first.json()["code"] == "NOT_FOUND"

    watched = await api.post("/watch", json={"tmdb_id": 10, "rating": 6}, headers=HEADERS)
    assert watched.status_code == 200
    assert watched.json()["movie"]["title"] == "Paddington"

    history = await api.get("/watch/history", headers=HEADERS)
    assert [entry["rating"] for entry in history.json()] == [6]

    removed = await api.delete(f"/watch/{watched.json()['watch_id']}?remove_rating=true", headers=HEADERS)
    assert removed.json()["rating_removed"] is True


async def test_queue_flow_over_http(api, catalog_api):
    catalog_api.add(20, "Moana", year=2016)

    added = await api.post("/queue", json={"tmdb_id": 20}, headers=HEADERS)
    again = await api.post("/queue", json={"tmdb_id": 20}, headers=HEADERS)
    assert again.json()["already_queued"] is True

    state = await api.post("/queue/state", json={"tmdb_ids": [20, 21]}, headers=HEADERS)
    assert state.json() == {"queued": [20]}

    item_id = added.json()["queue_item_id"]
    watched = await api.post(f"/queue/{item_id}/watched", json={"rating": 9}, headers=HEADERS)
    assert watched.status_code == 200
    assert (await api.get("/queue", headers=HEADERS)).json() == []


async def test_health(api):
    response = await api.get("/health")

    assert response.status_code == 200
    assert response.json()["redis"] == "ok"
