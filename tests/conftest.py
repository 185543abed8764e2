import fakeredis.aioredis
import httpx
import pytest

from reelhouse.core.tasks import BackgroundTaskRunner
from reelhouse.services.catalog import CatalogService
from reelhouse.services.embeddings.client import OpenAIEmbeddingClient
from reelhouse.services.embeddings.service import EmbeddingService
from reelhouse.services.movie_service import MovieIntelligenceService
from reelhouse.services.redis_service import RedisService
from reelhouse.services.stores.corpus_store import CorpusStore
from reelhouse.services.stores.household_store import HouseholdStore
from reelhouse.services.tmdb.client import TMDBClient
from reelhouse.services.tmdb.service import TMDBService
from tests.helpers import DIMENSIONS, Clock, FakeCatalogAPI, FakeEmbeddingAPI, FakeSimilarityIndex, no_sleep


@pytest.fixture
async def redis_client():
    client = fakeredis.aioredis.FakeRedis(decode_responses=True)
    yield client
    await client.flushall()
    await client.aclose()


@pytest.fixture
def redis_service(redis_client) -> RedisService:
    return RedisService(url="redis://fake", key_prefix="test:", client=redis_client)


@pytest.fixture
def corpus_store(redis_service) -> CorpusStore:
    return CorpusStore(redis_service)


@pytest.fixture
def household_store(redis_service) -> HouseholdStore:
    return HouseholdStore(redis_service)


@pytest.fixture
def catalog_api() -> FakeCatalogAPI:
    return FakeCatalogAPI()


@pytest.fixture
def embedding_api() -> FakeEmbeddingAPI:
    return FakeEmbeddingAPI()


@pytest.fixture
async def tmdb_service(catalog_api):
    client = TMDBClient(
        api_key="test-tmdb-key",
        transport=httpx.MockTransport(catalog_api.handler),
        max_retries=2,
        retry_base_delay=0,
        sleep=no_sleep,
    )
    service = TMDBService(client, region="US")
    yield service
    TMDBService.search_movies.cache_clear()
    await service.close()


@pytest.fixture
async def embedding_service(embedding_api):
    client = OpenAIEmbeddingClient(
        api_key="sk-test",
        transport=httpx.MockTransport(embedding_api.handler),
        max_retries=1,
        retry_base_delay=0,
        sleep=no_sleep,
    )
    service = EmbeddingService(client, model="text-embedding-3-small", dimensions=DIMENSIONS)
    yield service
    await service.close()


@pytest.fixture
def similarity_index() -> FakeSimilarityIndex:
    return FakeSimilarityIndex()


@pytest.fixture
def catalog(tmdb_service, embedding_service, corpus_store, similarity_index) -> CatalogService:
    return CatalogService(tmdb_service, embedding_service, corpus_store, similarity_index)


@pytest.fixture
def task_runner() -> BackgroundTaskRunner:
    return BackgroundTaskRunner(name="taste")


@pytest.fixture
def clock() -> Clock:
    return Clock()


@pytest.fixture
async def movie_service(tmdb_service, embedding_service, redis_service, similarity_index, task_runner, clock):
    service = MovieIntelligenceService(
        tmdb=tmdb_service,
        embeddings=embedding_service,
        redis_service=redis_service,
        index=similarity_index,
        tasks=task_runner,
    )
    service.watches.clock = clock
    service.recommender.clock = clock
    yield service
    await task_runner.drain()
