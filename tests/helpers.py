"""Fakes and builders shared by the test modules."""

import asyncio
import json
from collections.abc import Iterable
from datetime import datetime, timedelta, timezone
from typing import Any

import httpx

from reelhouse.core.exceptions import UpstreamError
from reelhouse.models.household import HouseholdPolicy
from reelhouse.models.movie import MovieRecord
from reelhouse.services.embeddings.service import cosine_similarity
from reelhouse.services.similarity_index import SimilarityHit, SimilarityIndex
from reelhouse.services.stores.corpus_store import CorpusStore

HOUSEHOLD = "house-1"
DIMENSIONS = 4


async def no_sleep(_seconds: float) -> None:
    return None


class Clock:
    """Controllable UTC clock."""

    def __init__(self, start: datetime | None = None):
        self.now = start or datetime(2024, 6, 1, 18, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


class FakeCatalogAPI:
    """Minimal TMDB API served through httpx.MockTransport."""

    def __init__(self, region: str = "US"):
        self.region = region
        self.movies: dict[int, dict[str, Any]] = {}
        self.searches: dict[str, list[int]] = {}
        self.failing: set[int] = set()
        self.failing_paths: set[str] = set()
        self.malformed: set[int] = set()
        # seconds to wait before answering; per path, falling back to `delay`
        self.delay = 0.0
        self.path_delays: dict[str, float] = {}
        self.cancelled: list[str] = []
        self.requests: list[httpx.Request] = []

    def add(
        self,
        tmdb_id: int,
        title: str,
        *,
        year: int | None = 2005,
        certification: str | None = "PG",
        runtime: int | None = 95,
        genres: Iterable[str] = ("Family",),
        keywords: Iterable[str] = (),
        popularity: float = 10.0,
        vote_average: float = 7.0,
        overview: str = "A movie.",
        flatrate: Iterable[str] = (),
        rent: Iterable[str] = (),
        buy: Iterable[str] = (),
        directors: Iterable[str] = (),
        cast: Iterable[str] = (),
    ) -> dict[str, Any]:
        self.movies[tmdb_id] = {
            "details": {
                "id": tmdb_id,
                "title": title,
                "release_date": f"{year}-05-01" if year else "",
                "poster_path": f"/poster{tmdb_id}.jpg",
                "overview": overview,
                "runtime": runtime,
                "genres": [{"id": i, "name": g} for i, g in enumerate(genres)],
                "popularity": popularity,
                "vote_average": vote_average,
                "vote_count": 100,
            },
            "certification": certification,
            "keywords": list(keywords),
            "providers": {"flatrate": list(flatrate), "rent": list(rent), "buy": list(buy)},
            "directors": list(directors),
            "cast": list(cast),
        }
        return self.movies[tmdb_id]

    def search_returns(self, query: str, ids: list[int]) -> None:
        self.searches[query.lower()] = ids

    def paths(self) -> list[str]:
        return [r.url.path.removeprefix("/3") for r in self.requests]

    def _movie_response(self, movie: dict[str, Any], section: str) -> dict[str, Any]:
        details = movie["details"]
        if section == "":
            if details["id"] in self.malformed:
                return {k: v for k, v in details.items() if k != "id"}
            return details
        if section == "release_dates":
            cert = movie["certification"] or ""
            return {
                "id": details["id"],
                "results": [
                    {"iso_3166_1": "GB", "release_dates": [{"certification": "12A", "type": 3}]},
                    {"iso_3166_1": self.region, "release_dates": [{"certification": cert, "type": 3}]},
                ],
            }
        if section == "keywords":
            return {"id": details["id"], "keywords": [{"id": i, "name": k} for i, k in enumerate(movie["keywords"])]}
        if section == "watch/providers":
            providers = movie["providers"]
            if not any(providers.values()):
                return {"id": details["id"], "results": {}}
            region = {
                kind: [
                    {"provider_id": i, "provider_name": name, "logo_path": f"/{name}.png"}
                    for i, name in enumerate(names)
                ]
                for kind, names in providers.items()
                if names
            }
            return {"id": details["id"], "results": {self.region: region}}
        if section == "credits":
            return {
                "id": details["id"],
                "cast": [{"name": n} for n in movie["cast"]],
                "crew": [{"name": n, "job": "Director"} for n in movie["directors"]],
            }
        raise KeyError(section)

    async def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path.removeprefix("/3")
        delay = self.path_delays.get(path, self.delay)
        if delay:
            try:
                await asyncio.sleep(delay)
            except asyncio.CancelledError:
                self.cancelled.append(path)
                raise
        if path in self.failing_paths:
            return httpx.Response(503, json={"status_message": "unavailable"})

        if path == "/search/movie":
            query = request.url.params.get("query", "").lower()
            ids = self.searches.get(query)
            if ids is None:
                ids = [mid for mid, m in self.movies.items() if query in m["details"]["title"].lower()]
            results = [{"id": mid, "title": self.movies[mid]["details"]["title"]} for mid in ids if mid in self.movies]
            return httpx.Response(200, json={"page": 1, "results": results})

        parts = path.strip("/").split("/", 2)
        if parts[0] != "movie":
            return httpx.Response(404, json={"status_message": "not found"})
        tmdb_id = int(parts[1])
        if tmdb_id in self.failing:
            return httpx.Response(503, json={"status_message": "unavailable"})
        movie = self.movies.get(tmdb_id)
        if movie is None:
            return httpx.Response(404, json={"status_message": "The resource you requested could not be found."})
        return httpx.Response(200, json=self._movie_response(movie, parts[2] if len(parts) > 2 else ""))


class FakeEmbeddingAPI:
    """OpenAI embeddings endpoint returning a fixed-size vector derived from the input text."""

    def __init__(self, dimensions: int = DIMENSIONS):
        self.dimensions = dimensions
        self.inputs: list[str] = []
        self.fail = False

    def vector_for(self, text: str) -> list[float]:
        seed = sum(ord(c) for c in text)
        return [1.0] + [float((seed >> i) % 7) for i in range(self.dimensions - 1)]

    def handler(self, request: httpx.Request) -> httpx.Response:
        if self.fail:
            return httpx.Response(500, json={"error": {"message": "boom"}})
        body = json.loads(request.content)
        self.inputs.append(body["input"])
        return httpx.Response(200, json={"data": [{"index": 0, "embedding": self.vector_for(body["input"])}]})


class FakeSimilarityIndex(SimilarityIndex):
    """In-memory index with the same filtering contract as the Qdrant implementation."""

    def __init__(self):
        self.points: dict[int, MovieRecord] = {}
        self.queries: list[dict[str, Any]] = []
        self.fail = False

    async def upsert(self, movie: MovieRecord) -> None:
        if movie.embedding:
            self.points[movie.tmdb_id] = movie

    async def query(
        self, policy: HouseholdPolicy, limit: int, taste_vector=None, exclude_ids=()
    ) -> list[SimilarityHit]:
        self.queries.append({"limit": limit, "taste_vector": taste_vector, "exclude_ids": set(exclude_ids)})
        if self.fail:
            raise UpstreamError("Similarity query failed: index offline")

        excluded = set(exclude_ids)
        movies = [
            m
            for m in self.points.values()
            if m.tmdb_id not in excluded
            and (m.certification is None or m.certification in policy.allowed_ratings)
            and (m.runtime is None or m.runtime <= policy.max_runtime)
        ]
        if taste_vector:
            scored = [(1.0 - cosine_similarity(taste_vector, m.embedding), m) for m in movies]
            scored.sort(key=lambda pair: pair[0])
            return [SimilarityHit(tmdb_id=m.tmdb_id, distance=d) for d, m in scored[:limit]]
        movies.sort(key=lambda m: m.popularity or 0.0, reverse=True)
        return [SimilarityHit(tmdb_id=m.tmdb_id) for m in movies[:limit]]


def make_movie(tmdb_id: int, title: str | None = None, **fields) -> MovieRecord:
    fields.setdefault("year", 2005)
    fields.setdefault("certification", "PG")
    fields.setdefault("runtime", 95)
    fields.setdefault("genres", ["Family"])
    fields.setdefault("popularity", 10.0)
    fields.setdefault("vote_average", 7.0)
    fields.setdefault("embedding", [1.0, 0.0, 0.0, 0.0])
    return MovieRecord(tmdb_id=tmdb_id, title=title or f"Movie {tmdb_id}", **fields)


async def seed_corpus(corpus_store: CorpusStore, index: FakeSimilarityIndex, movies: list[MovieRecord]) -> None:
    for movie in movies:
        await corpus_store.save_movie(movie)
        await index.upsert(movie)
