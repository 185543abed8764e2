import pytest

from reelhouse.core.exceptions import NotFoundError, UpstreamError, UpstreamTimeoutError
from reelhouse.services.tmdb.normalize import (
    extract_directors,
    extract_keyword_names,
    extract_main_cast,
    format_runtime,
    normalize_movie,
    normalize_providers,
    parse_release_year,
)


@pytest.mark.parametrize(
    "value,expected",
    [("1995-11-22", 1995), ("2004", 2004), ("", None), (None, None), ("unknown", None)],
)
def test_parse_release_year(value, expected):
    assert parse_release_year(value) == expected


def test_normalize_movie_maps_catalog_fields():
    details = {
        "id": 862,
        "title": "Toy Story",
        "release_date": "1995-10-30",
        "poster_path": "/toy.jpg",
        "overview": "Toys come alive.",
        "runtime": 81,
        "genres": [{"id": 16, "name": "Animation"}, {"id": 10751, "name": "Family"}],
        "popularity": 100.5,
        "vote_average": 7.9,
        "vote_count": 17000,
    }

    movie = normalize_movie(details, "G", ["toy", "friendship"])

    assert movie.tmdb_id == 862
    assert movie.year == 1995
    assert movie.certification == "G"
    assert movie.genres == ["Animation", "Family"]
    assert movie.keywords == ["toy", "friendship"]
    assert movie.embedding is None
    assert movie.poster_url == "https://image.tmdb.org/t/p/w500/toy.jpg"


def test_normalize_movie_treats_missing_runtime_and_certification_as_unknown():
    movie = normalize_movie({"id": 1, "title": "X", "runtime": 0}, "", [])
    assert movie.runtime is None
    assert movie.certification is None
    assert movie.year is None


def test_normalize_providers_picks_region():
    payload = {
        "results": {
            "US": {"flatrate": [{"provider_id": 8, "provider_name": "Netflix"}], "rent": []},
            "GB": {"buy": [{"provider_id": 2, "provider_name": "Apple TV"}]},
        }
    }

    us = normalize_providers(5, "US", payload)

    assert us.subscription_names() == ["Netflix"]
    assert us.rent == [] and us.buy == []
    assert normalize_providers(5, "DE", payload) is None


def test_credit_and_keyword_helpers():
    credits = {
        "cast": [{"name": f"Actor {i}"} for i in range(8)],
        "crew": [{"name": "Pete Docter", "job": "Director"}, {"name": "Someone", "job": "Writer"}],
    }
    assert extract_directors(credits) == ["Pete Docter"]
    assert extract_main_cast(credits) == [f"Actor {i}" for i in range(5)]
    assert extract_keyword_names({"keywords": [{"id": 1, "name": "space"}, {"id": 2}]}) == ["space"]


@pytest.mark.parametrize("minutes,expected", [(135, "2h 15m"), (120, "2h"), (45, "45m"), (None, "Unknown")])
def test_format_runtime(minutes, expected):
    assert format_runtime(minutes) == expected


def test_extract_certification_uses_home_region_first_value(tmdb_service):
    release_dates = {
        "results": [
            {"iso_3166_1": "GB", "release_dates": [{"certification": "12A"}]},
            {
                "iso_3166_1": "US",
                "release_dates": [{"certification": ""}, {"certification": "PG"}, {"certification": "PG-13"}],
            },
        ]
    }
    assert tmdb_service.extract_certification(release_dates) == "PG"
    assert tmdb_service.extract_certification(release_dates, region="GB") == "12A"
    assert tmdb_service.extract_certification(release_dates, region="FR") is None


async def test_fetch_complete_joins_all_sub_requests(tmdb_service, catalog_api):
    catalog_api.add(
        12,
        "Finding Nemo",
        certification="G",
        keywords=["fish", "ocean"],
        flatrate=["Disney Plus"],
        directors=["Andrew Stanton"],
        cast=["Albert Brooks"],
    )

    data = await tmdb_service.fetch_complete(12)

    assert data.details["title"] == "Finding Nemo"
    assert data.certification == "G"
    assert data.keywords == ["fish", "ocean"]
    assert data.watch_providers["results"]["US"]["flatrate"][0]["provider_name"] == "Disney Plus"
    assert extract_directors(data.credits) == ["Andrew Stanton"]
    assert sorted(catalog_api.paths()) == sorted(
        [
            "/movie/12",
            "/movie/12/release_dates",
            "/movie/12/keywords",
            "/movie/12/watch/providers",
            "/movie/12/credits",
        ]
    )
    assert all(r.url.params["api_key"] == "test-tmdb-key" for r in catalog_api.requests)


async def test_fetch_complete_has_no_partial_results(tmdb_service, catalog_api):
    catalog_api.failing.add(13)
    catalog_api.add(13, "Broken")

    with pytest.raises(UpstreamError):
        await tmdb_service.fetch_complete(13)


async def test_fetch_complete_for_unknown_movie_is_not_found(tmdb_service):
    with pytest.raises(NotFoundError):
        await tmdb_service.fetch_complete(999)


async def test_search_passes_year(tmdb_service, catalog_api):
    catalog_api.add(1, "Up", year=2009)

    response = await tmdb_service.search_movies("Up", 2009)

    assert [r["id"] for r in response["results"]] == [1]
    assert catalog_api.requests[0].url.params["year"] == "2009"


async def test_get_providers_normalizes_region(tmdb_service, catalog_api):
    catalog_api.add(3, "Cars", flatrate=["Disney Plus"], rent=["Apple TV"])

    providers = await tmdb_service.get_providers(3)

    assert providers.region == "US"
    assert providers.subscription_names() == ["Disney Plus"]
    assert [p.provider_name for p in providers.rent] == ["Apple TV"]


async def test_fetch_complete_cancels_sibling_requests_on_failure(tmdb_service, catalog_api):
    catalog_api.add(14, "Half Broken")
    catalog_api.failing_paths.add("/movie/14/keywords")
    catalog_api.path_delays["/movie/14/credits"] = 5.0

    with pytest.raises(UpstreamError):
        await tmdb_service.fetch_complete(14)

    assert catalog_api.cancelled == ["/movie/14/credits"]


async def test_malformed_details_do_not_map_onto_a_record(tmdb_service, catalog, catalog_api):
    catalog_api.add(15, "No Id")
    catalog_api.malformed.add(15)

    data = await tmdb_service.fetch_complete(15)

    with pytest.raises(UpstreamError, match="malformed"):
        catalog.to_record(data)


async def test_search_honours_caller_deadline(tmdb_service, catalog_api):
    catalog_api.add(1, "Up")
    catalog_api.delay = 1.0

    with pytest.raises(UpstreamTimeoutError):
        await tmdb_service.search_movies("Up", deadline=0.05)
