from reelhouse.core.base_client import BaseClient
from reelhouse.core.version import __version__


class OpenAIEmbeddingClient(BaseClient):
    """
    Client for the OpenAI embeddings endpoint.
    """

    def __init__(self, api_key: str, timeout: float = 30.0, max_retries: int = 3, **kwargs):
        headers = {
            "Authorization": f"Bearer {api_key}",
            "Content-Type": "application/json",
            "User-Agent": f"Reelhouse/{__version__}",
        }
        super().__init__(
            base_url="https://api.openai.com/v1",
            timeout=timeout,
            max_retries=max_retries,
            headers=headers,
            name="openai",
            **kwargs,
        )
