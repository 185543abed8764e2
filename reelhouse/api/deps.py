from fastapi import Header, HTTPException

from reelhouse.services.movie_service import MovieIntelligenceService, get_movie_service


async def get_household_id(x_household_id: str = Header(default="", alias="X-Household-Id")) -> str:
    """Household resolved upstream by the session layer and passed along as a header."""
    household_id = x_household_id.strip()
    if not household_id:
        raise HTTPException(status_code=400, detail="X-Household-Id header is required")
    return household_id


async def get_profile_id(x_profile_id: str | None = Header(default=None, alias="X-Profile-Id")) -> str | None:
    return (x_profile_id or "").strip() or None


def get_service() -> MovieIntelligenceService:
    return get_movie_service()
