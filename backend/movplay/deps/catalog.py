"""
Catalog dependency for routes that talk to TMDB directly.

Tests override it with a fake provider:
    app.dependency_overrides[get_catalog] = lambda: FakeCatalog()
"""
from movplay.services.tmdb_client import TMDBClient


def get_catalog() -> TMDBClient:
    """Raises TMDBConfigError (503) when no API key is configured."""
    return TMDBClient()
