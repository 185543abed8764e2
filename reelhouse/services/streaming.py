from loguru import logger

from reelhouse.core.exceptions import MovieServiceError
from reelhouse.models.movie import ProviderAvailability
from reelhouse.models.requests import GetStreamingRequest
from reelhouse.models.results import ProviderLists, StreamingResult
from reelhouse.services.catalog import CatalogService
from reelhouse.services.stores.household_store import HouseholdStore


def summarize_providers(availability: ProviderAvailability) -> str:
    """One line, e.g. 'Stream on: Netflix | Rent on: Apple TV'."""
    parts = []
    for label, providers in (
        ("Stream on", availability.flatrate),
        ("Rent on", availability.rent),
        ("Buy on", availability.buy),
    ):
        if providers:
            parts.append(f"{label}: {', '.join(p.provider_name for p in providers)}")
    return " | ".join(parts)


class StreamingService:
    """Provider availability for a movie in the household's region."""

    def __init__(self, catalog: CatalogService, households: HouseholdStore):
        self.catalog = catalog
        self.households = households

    async def get_streaming(
        self, household_id: str, request: GetStreamingRequest, deadline: float | None = None
    ) -> StreamingResult:
        region = request.region
        if region is None:
            region = (await self.households.get_policy(household_id)).region

        availability = await self.catalog.store.get_providers(request.tmdb_id, region)
        if availability is None:
            try:
                availability = await self.catalog.get_or_fetch_providers(
                    request.tmdb_id, region=region, deadline=deadline
                )
            except MovieServiceError as e:
                logger.warning(f"[streaming] Provider fetch failed for {request.tmdb_id} in {region}: {e}")

        if availability is None:
            return StreamingResult(
                tmdb_id=request.tmdb_id,
                region=region,
                available=False,
                message="Streaming information is not available for this movie.",
            )
        if availability.is_empty:
            return StreamingResult(
                tmdb_id=request.tmdb_id,
                region=region,
                available=False,
                message="This movie is not currently available on any streaming services.",
                providers=ProviderLists.from_availability(availability),
            )
        return StreamingResult(
            tmdb_id=request.tmdb_id,
            region=region,
            available=True,
            message=summarize_providers(availability),
            providers=ProviderLists.from_availability(availability),
        )
