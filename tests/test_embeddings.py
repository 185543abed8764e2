import pytest

from reelhouse.core.exceptions import DimensionMismatchError, EmptyInputError, UpstreamError
from reelhouse.services.embeddings.service import build_movie_text, cosine_similarity
from tests.helpers import make_movie


@pytest.mark.parametrize("vector", [[1.0, 2.0, 3.0], [0.5, -0.25], [-3.0, 4.0, 0.0, 12.0]])
def test_cosine_similarity_of_a_vector_with_itself_is_one(vector):
    assert cosine_similarity(vector, vector) == pytest.approx(1.0)


def test_cosine_similarity_bounds():
    assert cosine_similarity([1.0, 0.0], [-1.0, 0.0]) == pytest.approx(-1.0)
    assert cosine_similarity([1.0, 0.0], [0.0, 1.0]) == pytest.approx(0.0)
    assert cosine_similarity([0.0, 0.0], [1.0, 1.0]) == 0.0


def test_cosine_similarity_rejects_mismatched_lengths():
    with pytest.raises(DimensionMismatchError):
        cosine_similarity([1.0, 2.0], [1.0, 2.0, 3.0])


def test_movie_text_weights_title_and_keeps_field_order():
    movie = make_movie(
        1,
        "Moana",
        overview="A voyage across the ocean.",
        genres=["Animation", "Adventure"],
        keywords=[f"kw{i}" for i in range(12)],
    )

    text = build_movie_text(movie)

    assert text.split("\n\n") == [
        "Moana",
        "Moana",
        "A voyage across the ocean.",
        "Genres: Animation, Adventure",
        "Themes: " + ", ".join(f"kw{i}" for i in range(10)),
    ]


async def test_embed_text_posts_model_and_dimensions(embedding_service, embedding_api):
    vector = await embedding_service.embed_text("friendly dragons")

    assert vector == embedding_api.vector_for("friendly dragons")
    assert embedding_api.inputs == ["friendly dragons"]


@pytest.mark.parametrize("text", ["", "   ", "\n\t"])
async def test_embed_text_rejects_blank_input(embedding_service, embedding_api, text):
    with pytest.raises(EmptyInputError):
        await embedding_service.embed_text(text)
    assert embedding_api.inputs == []


async def test_embed_movie_uses_movie_text(embedding_service, embedding_api):
    movie = make_movie(1, "Moana", overview="Ocean voyage", genres=[], keywords=[])

    await embedding_service.embed_movie(movie)

    assert embedding_api.inputs == ["Moana\n\nMoana\n\nOcean voyage"]


async def test_provider_failure_surfaces_as_upstream_error(embedding_service, embedding_api):
    embedding_api.fail = True
    with pytest.raises(UpstreamError):
        await embedding_service.embed_text("anything")


async def test_request_carries_bearer_token(embedding_service):
    client = await embedding_service.client.get_client()
    assert client.headers["Authorization"] == "Bearer sk-test"
