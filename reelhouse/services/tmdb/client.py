from typing import Any

from reelhouse.core.base_client import BaseClient
from reelhouse.core.version import __version__

TMDB_BASE_URL = "https://api.themoviedb.org/3"


class TMDBClient(BaseClient):
    """HTTP client for TMDB v3. Every call carries the api key and the response language."""

    def __init__(self, api_key: str, language: str = "en-US", timeout: float = 10.0, max_retries: int = 3, **kwargs):
        super().__init__(
            base_url=TMDB_BASE_URL,
            timeout=timeout,
            max_retries=max_retries,
            headers={"User-Agent": f"Reelhouse/{__version__}", "Accept": "application/json"},
            name="tmdb",
            **kwargs,
        )
        self.api_key = api_key
        self.language = language

    async def _request(self, method: str, url: str, **kwargs) -> Any:
        kwargs["params"] = {**(kwargs.get("params") or {}), "api_key": self.api_key, "language": self.language}
        return await super()._request(method, url, **kwargs)
