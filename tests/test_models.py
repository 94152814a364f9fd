from flickpick.models import Movie, Profile, ProfileUpdate, Registration


def test_movie_parses_api_aliases(movie_data):
    movie = Movie.model_validate(movie_data("m1", "Little Women"))

    assert movie.id == "m1"
    assert movie.title == "Little Women"
    assert movie.director.name == "Greta Gerwig"
    assert movie.director.death_year is None
    assert movie.genre.name == "Drama"


def test_profile_favorites_are_a_unique_set():
    profile = Profile.model_validate(
        {"Name": "ana", "FavoriteMovies": ["m2", "m1", "m2"]}
    )

    assert profile.favorite_movie_ids == frozenset({"m1", "m2"})


def test_profile_accepts_null_favorites():
    profile = Profile.model_validate({"Name": "ana", "FavoriteMovies": None})

    assert profile.favorite_movie_ids == frozenset()


def test_profile_storage_format_uses_api_field_names():
    profile = Profile.model_validate(
        {
            "_id": "u1",
            "Name": "ana",
            "Password": "hashed",
            "Email": "ana@example.com",
            "Birthday": "1990-04-01",
            "FavoriteMovies": ["m3", "m1"],
        }
    )

    assert profile.to_storage() == {
        "_id": "u1",
        "Name": "ana",
        "Password": "hashed",
        "Email": "ana@example.com",
        "Birthday": "1990-04-01",
        "FavoriteMovies": ["m1", "m3"],
    }


def test_profile_update_payload_omits_unset_fields():
    patch = ProfileUpdate(email="new@example.com")

    assert patch.to_payload() == {"Email": "new@example.com"}
    assert not patch.is_empty()
    assert ProfileUpdate().is_empty()


def test_registration_builds_matching_credentials():
    registration = Registration.model_validate(
        {"Name": "ana", "Password": "pw", "Email": "ana@example.com"}
    )

    credentials = registration.credentials()
    assert credentials.to_payload() == {"Name": "ana", "Password": "pw"}
