from enum import Enum

from loguru import logger
from pydantic import BaseModel

from reelhouse.models.household import HouseholdPolicy
from reelhouse.models.movie import MovieRecord


class PolicyMode(str, Enum):
    """
    How an unknown certification is treated.

    STRICT rejects it (search candidates). PERMISSIVE lets it through
    provisionally (corpus ingestion) so the corpus is not starved of movies
    that simply lack a certification record.
    """

    STRICT = "strict"
    PERMISSIVE = "permissive"


class PolicyDecision(BaseModel):
    accepted: bool
    reason: str | None = None

    def __bool__(self) -> bool:
        return self.accepted


def find_blocked_keyword(keywords: list[str], blocked_keywords: list[str]) -> tuple[str, str] | None:
    """Return (movie keyword, blocked term) for the first case-insensitive substring hit."""
    blocked = [b.lower() for b in blocked_keywords if b]
    for keyword in keywords:
        lowered = keyword.lower()
        for term in blocked:
            if term in lowered:
                return keyword, term
    return None


class ContentPolicyFilter:
    """
    Evaluates a movie against a household policy.

    Rules run in order (certification, runtime, blocked keywords) and the first
    failing rule is reported; failures are not aggregated.
    """

    @staticmethod
    def check_certification(movie: MovieRecord, policy: HouseholdPolicy, mode: PolicyMode) -> str | None:
        if movie.certification is None:
            if mode is PolicyMode.STRICT:
                return "rating: unknown certification is not allowed"
            return None
        if movie.certification not in policy.allowed_ratings:
            allowed = ", ".join(policy.allowed_ratings) or "none"
            return f"rating: {movie.certification} is not an allowed rating ({allowed})"
        return None

    @staticmethod
    def check_runtime(movie: MovieRecord, policy: HouseholdPolicy) -> str | None:
        if movie.runtime and movie.runtime > policy.max_runtime:
            return f"runtime: {movie.runtime} min exceeds the {policy.max_runtime} min limit"
        return None

    @staticmethod
    def check_keywords(movie: MovieRecord, policy: HouseholdPolicy) -> str | None:
        hit = find_blocked_keyword(movie.keywords, policy.blocked_keywords)
        if hit:
            keyword, term = hit
            return f"blocked keyword: '{keyword}' matches '{term}'"
        return None

    def accepts(
        self, movie: MovieRecord, policy: HouseholdPolicy, mode: PolicyMode = PolicyMode.STRICT
    ) -> PolicyDecision:
        for reason in (
            self.check_certification(movie, policy, mode),
            self.check_runtime(movie, policy),
            self.check_keywords(movie, policy),
        ):
            if reason:
                logger.debug(f"[policy] Rejected {movie.tmdb_id} '{movie.title}' ({mode.value}): {reason}")
                return PolicyDecision(accepted=False, reason=reason)

        logger.debug(
            f"[policy] Accepted {movie.tmdb_id} '{movie.title}' ({movie.certification}, {movie.runtime} min)"
        )
        return PolicyDecision(accepted=True)


content_policy = ContentPolicyFilter()
