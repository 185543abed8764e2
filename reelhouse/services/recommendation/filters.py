from reelhouse.models.movie import MovieRecord, ProviderAvailability
from reelhouse.models.requests import RecommendRequest


class RecommendationFilters:
    """
    Explicit, caller-requested filters applied after the similarity query.

    Year and genre run on stored metadata; the popularity, vote and streaming
    checks need stats and provider data, so the engine runs them afterwards.
    """

    def __init__(self, request: RecommendRequest):
        self.request = request
        self._genres = {g.strip().lower() for g in request.genres or [] if g.strip()}

    def passes_year(self, movie: MovieRecord) -> bool:
        req = self.request
        if req.year_min is None and req.year_max is None:
            return True
        if movie.year is None:
            return False
        if req.year_min is not None and movie.year < req.year_min:
            return False
        if req.year_max is not None and movie.year > req.year_max:
            return False
        return True

    def passes_genres(self, movie: MovieRecord) -> bool:
        if not self._genres:
            return True
        return any(g.lower() in self._genres for g in movie.genres)

    def passes_popularity(self, movie: MovieRecord) -> bool:
        if self.request.min_popularity is None:
            return True
        return (movie.popularity or 0.0) >= self.request.min_popularity

    def passes_vote_average(self, movie: MovieRecord) -> bool:
        if self.request.min_vote_average is None:
            return True
        return (movie.vote_average or 0.0) >= self.request.min_vote_average

    def passes_streaming(self, providers: ProviderAvailability | None) -> bool:
        if not self.request.streaming_only:
            return True
        return bool(providers and providers.flatrate)

    def matched_genre(self, movie: MovieRecord) -> str | None:
        for genre in movie.genres:
            if genre.lower() in self._genres:
                return genre
        return None
