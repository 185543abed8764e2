"""
Core constants used across the application. Keep these simple and documented.
"""

from typing import Final

# Household defaults when the settings layer has stored no policy
DEFAULT_ALLOWED_RATINGS: Final[list[str]] = ["G", "PG", "PG-13"]
DEFAULT_MAX_RUNTIME: Final[int] = 140
DEFAULT_REWATCH_COOLDOWN_DAYS: Final[int] = 365

# Search: examine at most this many catalog hits and return at most MAX candidates
SEARCH_MAX_ATTEMPTS: Final[int] = 15
SEARCH_MAX_CANDIDATES: Final[int] = 8

# Recommendation request bounds and over-fetch policy when explicit filters are present
RECOMMEND_DEFAULT_LIMIT: Final[int] = 10
RECOMMEND_MAX_LIMIT: Final[int] = 24
FILTERED_OVERFETCH_FACTOR: Final[int] = 10
FILTERED_OVERFETCH_FLOOR: Final[int] = 60
BACKFILL_FACTOR: Final[int] = 2

# "highly rated" reason fallback
HIGHLY_RATED_VOTE_AVERAGE: Final[float] = 7.5

# Broad family-oriented terms used to grow the corpus on demand
CORPUS_SEARCH_TERMS: Final[list[str]] = [
    "disney",
    "pixar",
    "dreamworks",
    "animation",
    "family",
    "kids",
    "adventure",
]
CORPUS_RESULTS_PER_TERM: Final[int] = 10

# Watch debounce and taste refresh thresholds (rating out of 10)
WATCH_DEBOUNCE_HOURS: Final[int] = 24
MARK_WATCHED_TASTE_THRESHOLD: Final[int] = 8
UPDATE_RATING_TASTE_THRESHOLD: Final[int] = 4

NOTES_MAX_LENGTH: Final[int] = 500
EMBEDDING_MAX_KEYWORDS: Final[int] = 10
MAIN_CAST_LIMIT: Final[int] = 5

QUEUE_LIST_TYPE: Final[str] = "queue"

TMDB_IMAGE_BASE: Final[str] = "https://image.tmdb.org/t/p"

# Redis key formats (prefixed with settings.REDIS_KEY_PREFIX by the stores)
MOVIE_KEY: Final[str] = "movie:{movie_id}"
PROVIDERS_KEY: Final[str] = "providers:{movie_id}:{region}"
POLICY_KEY: Final[str] = "household:{household_id}:policy"
TASTE_KEY: Final[str] = "household:{household_id}:taste"
WATCH_KEY: Final[str] = "watch:{watch_id}"
WATCH_ID_COUNTER: Final[str] = "counter:watch"
HOUSEHOLD_WATCHES_KEY: Final[str] = "household:{household_id}:watches"
MOVIE_WATCHES_KEY: Final[str] = "household:{household_id}:watches:{movie_id}"
RATINGS_KEY: Final[str] = "household:{household_id}:ratings"
QUEUE_ITEM_KEY: Final[str] = "queue_item:{item_id}"
QUEUE_ID_COUNTER: Final[str] = "counter:queue_item"
QUEUE_INDEX_KEY: Final[str] = "household:{household_id}:list:{list_type}"
MOVIES_INDEX_KEY: Final[str] = "movies"
