"""Response fixtures shared by the API tests."""
from datetime import datetime, timezone
from uuid import uuid4


def movie_summary_row(tmdb_id: str = "27205", **overrides) -> dict:
    base = {
        "id": uuid4(),
        "tmdb_id": tmdb_id,
        "title": "Inception",
        "year": 2010,
        "poster_url": "https://image.tmdb.org/t/p/w500/inception.jpg",
        "local_rating": {"average": 0.0, "count": 0},
    }
    base.update(overrides)
    return base


def movie_detail_row(tmdb_id: str = "27205", **overrides) -> dict:
    now = datetime.now(timezone.utc)
    base = movie_summary_row(tmdb_id)
    base.update(
        {
            "original_title": "Inception",
            "genres": [{"id": 28, "name": "Action"}],
            "tmdb_rating": {"average": 8.4, "count": 35000},
            "local_data": {"view_count": 1, "favorite_count": 0, "watchlist_count": 0},
            "created_at": now,
            "updated_at": now,
        }
    )
    base.update(overrides)
    return base


def review_row(**overrides) -> dict:
    now = datetime.now(timezone.utc)
    base = {
        "id": uuid4(),
        "user_id": uuid4(),
        "username": "alex",
        "movie": movie_summary_row(),
        "tmdb_id": "27205",
        "rating": 9.0,
        "title": "Layers",
        "comment": None,
        "created_at": now,
        "updated_at": now,
        "movie_rating": {"average": 9.0, "count": 1},
    }
    base.update(overrides)
    return base


def watchlist_row(**overrides) -> dict:
    now = datetime.now(timezone.utc)
    base = {
        "id": uuid4(),
        "user_id": uuid4(),
        "owner_username": "alex",
        "name": "Weekend",
        "description": "",
        "is_public": False,
        "is_default": False,
        "tags": [],
        "movies": [],
        "collaborators": [],
        "created_at": now,
        "updated_at": now,
    }
    base.update(overrides)
    return base
