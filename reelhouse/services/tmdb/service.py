import asyncio
from typing import Any

from async_lru import alru_cache
from loguru import logger

from reelhouse.core.config import Settings, settings
from reelhouse.core.exceptions import UpstreamError
from reelhouse.core.rate_limiter import SlidingWindowRateLimiter
from reelhouse.models.movie import CompleteMovieData, ProviderAvailability
from reelhouse.services.tmdb.client import TMDBClient
from reelhouse.services.tmdb.normalize import MALFORMED_PAYLOAD_ERRORS, extract_keyword_names, normalize_providers


class TMDBService:
    """
    Movie metadata gateway over The Movie Database (TMDB) API.

    Every call goes through the shared TMDBClient, so all of them count against
    the same per-provider rate window.
    """

    def __init__(self, client: TMDBClient, region: str = "US"):
        self.client = client
        self.region = region

    async def close(self):
        """Close the underlying HTTP client."""
        await self.client.close()

    @alru_cache(maxsize=1000, ttl=1800)  # 30 mins
    async def search_movies(
        self, query: str, year: int | None = None, page: int = 1, deadline: float | None = None
    ) -> dict[str, Any]:
        """Search movies by title, optionally narrowed to a release year."""
        params: dict[str, Any] = {"query": query, "page": page, "include_adult": "false"}
        if year:
            params["year"] = year
        return await self.client.get("/search/movie", params=params, deadline=deadline)

    async def get_movie_details(self, movie_id: int, deadline: float | None = None) -> dict[str, Any]:
        return await self.client.get(f"/movie/{movie_id}", deadline=deadline)

    async def get_release_dates(self, movie_id: int, deadline: float | None = None) -> dict[str, Any]:
        """Release dates with their certifications, per country."""
        return await self.client.get(f"/movie/{movie_id}/release_dates", deadline=deadline)

    async def get_keywords(self, movie_id: int, deadline: float | None = None) -> dict[str, Any]:
        return await self.client.get(f"/movie/{movie_id}/keywords", deadline=deadline)

    async def get_watch_providers(self, movie_id: int, deadline: float | None = None) -> dict[str, Any]:
        return await self.client.get(f"/movie/{movie_id}/watch/providers", deadline=deadline)

    async def get_credits(self, movie_id: int, deadline: float | None = None) -> dict[str, Any]:
        return await self.client.get(f"/movie/{movie_id}/credits", deadline=deadline)

    def extract_certification(self, release_dates: dict[str, Any], region: str | None = None) -> str | None:
        """
        First non-empty certification for the home region.

        Release types are not reconciled: whichever release record lists a
        certification first wins.
        """
        region = region or self.region
        for country in release_dates.get("results") or []:
            if country.get("iso_3166_1") != region:
                continue
            for release in country.get("release_dates") or []:
                certification = (release.get("certification") or "").strip()
                if certification:
                    return certification
            return None
        return None

    async def fetch_complete(self, movie_id: int, deadline: float | None = None) -> CompleteMovieData:
        """
        Fetch details, certification, keywords, providers and credits concurrently.

        Any failing sub-request fails the whole call and cancels the others;
        there are no partial results.
        """
        tasks = [
            asyncio.ensure_future(fetch(movie_id, deadline=deadline))
            for fetch in (
                self.get_movie_details,
                self.get_release_dates,
                self.get_keywords,
                self.get_watch_providers,
                self.get_credits,
            )
        ]
        try:
            details, release_dates, keywords, providers, credits = await asyncio.gather(*tasks)
        except BaseException:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise

        logger.debug(f"[tmdb] Fetched complete data for movie {movie_id}")
        try:
            return CompleteMovieData(
                details=details,
                release_dates=release_dates,
                certification=self.extract_certification(release_dates),
                keywords=extract_keyword_names(keywords),
                watch_providers=providers,
                credits=credits,
            )
        except MALFORMED_PAYLOAD_ERRORS as e:
            raise UpstreamError(f"TMDB returned a malformed payload for movie {movie_id}: {e}") from e

    async def get_providers(
        self, movie_id: int, region: str | None = None, deadline: float | None = None
    ) -> ProviderAvailability | None:
        """Normalized provider availability for one region, or None when the movie has none there."""
        payload = await self.get_watch_providers(movie_id, deadline=deadline)
        try:
            return normalize_providers(movie_id, region or self.region, payload)
        except MALFORMED_PAYLOAD_ERRORS as e:
            raise UpstreamError(f"TMDB returned malformed providers for movie {movie_id}: {e}") from e


def build_tmdb_service(config: Settings = settings, **client_kwargs) -> TMDBService:
    """Construct the gateway with its own rate limiter. Call once per process."""
    limiter = SlidingWindowRateLimiter(
        max_requests=config.TMDB_MAX_REQUESTS_PER_WINDOW,
        window_seconds=config.TMDB_RATE_WINDOW_SECONDS,
        name="tmdb",
    )
    client = TMDBClient(
        api_key=config.TMDB_API_KEY or "",
        language=config.TMDB_LANGUAGE,
        max_retries=config.API_MAX_RETRIES,
        rate_limiter=limiter,
        retry_base_delay=config.API_RETRY_BASE_DELAY_SECONDS,
        deadline=config.REQUEST_DEADLINE_SECONDS,
        **client_kwargs,
    )
    return TMDBService(client, region=config.DEFAULT_REGION)
