"""
Mapping of TMDB response shapes onto the canonical corpus records.
"""

import re
from datetime import datetime, timezone
from typing import Any

from pydantic import ValidationError as PydanticValidationError

from reelhouse.core.constants import MAIN_CAST_LIMIT
from reelhouse.models.movie import MovieRecord, ProviderAvailability, ProviderEntry

_YEAR_PREFIX = re.compile(r"^(\d{4})")

# Raised while mapping a payload whose shape is not what TMDB documents
MALFORMED_PAYLOAD_ERRORS = (KeyError, TypeError, AttributeError, PydanticValidationError)


def parse_release_year(release_date: str | None) -> int | None:
    """Year from the leading 4 digits of a date string, or None."""
    if not release_date:
        return None
    match = _YEAR_PREFIX.match(release_date.strip())
    return int(match.group(1)) if match else None


def extract_keyword_names(keywords_payload: dict[str, Any] | None) -> list[str]:
    if not keywords_payload:
        return []
    return [k["name"] for k in keywords_payload.get("keywords") or [] if isinstance(k, dict) and k.get("name")]


def normalize_movie(details: dict[str, Any], certification: str | None, keywords: list[str]) -> MovieRecord:
    """Convert TMDB movie details into a MovieRecord (embedding left empty)."""
    return MovieRecord(
        tmdb_id=details["id"],
        title=details.get("title") or details.get("original_title") or "",
        year=parse_release_year(details.get("release_date")),
        poster_path=details.get("poster_path"),
        overview=details.get("overview") or None,
        runtime=details.get("runtime") or None,
        certification=certification or None,
        genres=[g["name"] for g in details.get("genres") or [] if isinstance(g, dict) and g.get("name")],
        keywords=list(keywords),
        popularity=details.get("popularity"),
        vote_average=details.get("vote_average"),
        vote_count=details.get("vote_count"),
        last_fetched_at=datetime.now(timezone.utc),
    )


def _normalize_provider(provider: dict[str, Any]) -> ProviderEntry:
    return ProviderEntry(
        provider_id=provider.get("provider_id"),
        provider_name=provider.get("provider_name") or "Unknown",
        logo_path=provider.get("logo_path"),
    )


def normalize_providers(tmdb_id: int, region: str, watch_providers: dict[str, Any]) -> ProviderAvailability | None:
    """Pick one region out of a watch/providers payload. None when the region is absent."""
    region_data = (watch_providers or {}).get("results", {}).get(region)
    if not region_data:
        return None

    return ProviderAvailability(
        tmdb_id=tmdb_id,
        region=region,
        flatrate=[_normalize_provider(p) for p in region_data.get("flatrate") or []],
        rent=[_normalize_provider(p) for p in region_data.get("rent") or []],
        buy=[_normalize_provider(p) for p in region_data.get("buy") or []],
    )


def extract_directors(credits: dict[str, Any] | None) -> list[str]:
    if not credits:
        return []
    return [p["name"] for p in credits.get("crew") or [] if p.get("job") == "Director" and p.get("name")]


def extract_main_cast(credits: dict[str, Any] | None, limit: int = MAIN_CAST_LIMIT) -> list[str]:
    if not credits:
        return []
    return [p["name"] for p in (credits.get("cast") or [])[:limit] if p.get("name")]


def format_runtime(minutes: int | None) -> str:
    """Human-readable runtime, e.g. 135 -> '2h 15m'."""
    if not minutes:
        return "Unknown"
    hours, mins = divmod(minutes, 60)
    if hours == 0:
        return f"{mins}m"
    if mins == 0:
        return f"{hours}h"
    return f"{hours}h {mins}m"
