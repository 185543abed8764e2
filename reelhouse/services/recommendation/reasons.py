from reelhouse.core.constants import HIGHLY_RATED_VOTE_AVERAGE
from reelhouse.models.household import HouseholdPolicy
from reelhouse.models.movie import MovieRecord, ProviderAvailability
from reelhouse.services.recommendation.filters import RecommendationFilters
from reelhouse.services.tmdb.normalize import format_runtime


def build_reason(
    movie: MovieRecord,
    policy: HouseholdPolicy,
    filters: RecommendationFilters,
    providers: ProviderAvailability | None = None,
) -> str:
    """
    One sentence explaining why a movie was picked. The first applicable reason wins:
    rating fit, runtime fit, preferred service, requested years, requested genre,
    then a vote/popularity fallback.
    """
    if movie.certification and movie.certification in policy.allowed_ratings:
        return f"Rated {movie.certification}, which fits your household's allowed ratings."

    if movie.runtime and movie.runtime <= policy.max_runtime:
        return f"Runs {format_runtime(movie.runtime)}, within your {policy.max_runtime} minute limit."

    if providers and policy.preferred_streaming_services:
        preferred = set(policy.preferred_streaming_services)
        matches = [name for name in providers.subscription_names() if name in preferred]
        if matches:
            return f"Streaming on {matches[0]}, one of your services."

    req = filters.request
    if movie.year and (req.year_min is not None or req.year_max is not None):
        if req.year_min is not None and req.year_max is not None:
            return f"Released in {movie.year}, within {req.year_min}-{req.year_max}."
        if req.year_min is not None:
            return f"Released in {movie.year}, {req.year_min} or later."
        return f"Released in {movie.year}, {req.year_max} or earlier."

    genre = filters.matched_genre(movie)
    if genre:
        return f"A {genre.lower()} pick, as requested."

    if movie.vote_average and movie.vote_average >= HIGHLY_RATED_VOTE_AVERAGE:
        return f"Highly rated ({movie.vote_average:.1f}/10)."
    return "Popular with families right now."
