import asyncio
import unittest
from unittest.mock import patch

from db_support import FakeCatalog, make_session, make_user, movie_snapshot

from movplay.core.config import settings
from movplay.core.errors import DependencyUnavailableError, InvalidInputError, NotFoundError
from movplay.db.models import Movie, UserFavorite
from movplay.services import movie_service
from movplay.services.movie_service import (
    MovieNotFoundError,
    adjust_movie_counter,
    build_movie,
    ensure_movie,
    get_movie_detail,
    movie_summary,
    normalize_tmdb_id,
)
from movplay.services.tmdb_client import TMDBConfigError, TMDBUpstreamError


class YieldingCatalog(FakeCatalog):
    """Suspends before answering so concurrent callers interleave."""

    async def get_movie_details(self, tmdb_id: str):
        await asyncio.sleep(0)
        return await super().get_movie_details(tmdb_id)


class TestMovieHelpers(unittest.TestCase):
    def test_normalize_tmdb_id_accepts_ints_and_strips(self) -> None:
        self.assertEqual(normalize_tmdb_id(27205), "27205")
        self.assertEqual(normalize_tmdb_id("  603 "), "603")

    def test_normalize_tmdb_id_rejects_empty(self) -> None:
        for value in (None, "", "   ", True, "9" * 40):
            with self.assertRaises(InvalidInputError):
                normalize_tmdb_id(value)

    def test_build_movie_starts_with_zeroed_local_state(self) -> None:
        movie = build_movie("27205", movie_snapshot("27205", "Inception"))
        self.assertEqual(movie.title, "Inception")
        self.assertEqual(movie.year, 2010)
        self.assertEqual((movie.local_rating_average, movie.local_rating_count), (0.0, 0))
        self.assertEqual((movie.view_count, movie.favorite_count, movie.watchlist_count), (0, 0, 0))
        self.assertEqual(movie.tmdb_rating_average, 8.4)
        self.assertEqual(movie.genres, [{"id": 18, "name": "Drama"}])

    def test_build_movie_tolerates_bad_release_date(self) -> None:
        movie = build_movie("1", movie_snapshot("1", release_date="soon"))
        self.assertIsNone(movie.release_date)
        self.assertIsNone(movie.year)

    def test_summary_keeps_tmdb_rating_out_of_local_rating(self) -> None:
        summary = movie_summary(build_movie("27205", movie_snapshot("27205", "Inception")))
        self.assertEqual(summary["local_rating"], {"average": 0.0, "count": 0})
        self.assertNotIn("average_rating", summary)
        self.assertNotIn("tmdb_rating", summary)


class TestEnsureMovie(unittest.IsolatedAsyncioTestCase):
    def setUp(self) -> None:
        self.db = make_session()

    def tearDown(self) -> None:
        self.db.close()

    async def test_creates_once_then_reuses_without_catalog(self) -> None:
        catalog = FakeCatalog()
        first = await ensure_movie(self.db, "27205", catalog)
        second = await ensure_movie(self.db, 27205, catalog)

        self.assertEqual(first.id, second.id)
        self.assertEqual(catalog.calls, ["27205"])
        self.assertEqual(self.db.query(Movie).count(), 1)

    async def test_existing_movie_is_returned_unchanged(self) -> None:
        await ensure_movie(self.db, "27205", FakeCatalog())
        refreshed = FakeCatalog(movies={"27205": movie_snapshot("27205", "Renamed upstream")})

        movie = await ensure_movie(self.db, "27205", refreshed)

        self.assertEqual(movie.title, "Movie 27205")
        self.assertEqual(refreshed.calls, [])

    async def test_concurrent_first_references_share_one_row(self) -> None:
        catalog = YieldingCatalog()

        movies = await asyncio.gather(*(ensure_movie(self.db, "603", catalog) for _ in range(5)))

        self.assertEqual(len({movie.id for movie in movies}), 1)
        self.assertEqual(self.db.query(Movie).filter(Movie.tmdb_id == "603").count(), 1)

    async def test_duplicate_key_race_falls_back_to_committed_row(self) -> None:
        winner = build_movie("550", movie_snapshot("550", "Fight Club"))
        self.db.add(winner)
        self.db.commit()

        real_lookup = movie_service.get_movie_by_tmdb_id
        with patch.object(
            movie_service,
            "get_movie_by_tmdb_id",
            side_effect=[None, real_lookup(self.db, "550")],
        ):
            with self.assertLogs("movplay.services.movie_service", level="WARNING"):
                movie = await ensure_movie(self.db, "550", FakeCatalog())

        self.assertEqual(movie.id, winner.id)
        self.assertEqual(self.db.query(Movie).count(), 1)

    async def test_unknown_catalog_id_is_not_found(self) -> None:
        with self.assertRaises(MovieNotFoundError) as ctx:
            await ensure_movie(self.db, "404404", FakeCatalog(movies={}))
        self.assertIsInstance(ctx.exception, NotFoundError)
        self.assertEqual(self.db.query(Movie).count(), 0)

    async def test_catalog_outage_is_dependency_unavailable(self) -> None:
        catalog = FakeCatalog(error=TMDBUpstreamError("TMDB rate limit exceeded"))
        with self.assertRaises(DependencyUnavailableError):
            await ensure_movie(self.db, "27205", catalog)
        self.assertEqual(self.db.query(Movie).count(), 0)

    async def test_missing_api_key_only_fails_uncached_lookups(self) -> None:
        await ensure_movie(self.db, "27205", FakeCatalog())

        with patch.object(settings, "TMDB_API_KEY", ""):
            cached = await ensure_movie(self.db, "27205")
            with self.assertRaises(TMDBConfigError):
                await ensure_movie(self.db, "603")

        self.assertEqual(cached.tmdb_id, "27205")


class TestMovieCounters(unittest.IsolatedAsyncioTestCase):
    def setUp(self) -> None:
        self.db = make_session()

    def tearDown(self) -> None:
        self.db.close()

    async def test_counter_never_drops_below_zero(self) -> None:
        movie = await ensure_movie(self.db, "27205", FakeCatalog())

        adjust_movie_counter(self.db, movie.id, "favorite_count", 1)
        adjust_movie_counter(self.db, movie.id, "favorite_count", -1)
        adjust_movie_counter(self.db, movie.id, "favorite_count", -1)
        self.db.commit()

        stored = self.db.query(Movie).filter(Movie.id == movie.id).populate_existing().one()
        self.assertEqual(stored.favorite_count, 0)

    async def test_unknown_counter_is_rejected(self) -> None:
        movie = await ensure_movie(self.db, "27205", FakeCatalog())
        with self.assertRaises(ValueError):
            adjust_movie_counter(self.db, movie.id, "local_rating_count", 1)

    async def test_detail_counts_views_and_reports_favorite_state(self) -> None:
        user = make_user(self.db)
        catalog = FakeCatalog()

        anonymous = await get_movie_detail(self.db, "27205", None, catalog)
        self.assertEqual(anonymous["local_data"]["view_count"], 1)
        self.assertFalse(anonymous["is_favorited"])

        self.db.add(UserFavorite(user_id=user.id, movie_id=anonymous["id"]))
        self.db.commit()

        viewed = await get_movie_detail(self.db, "27205", user.id, catalog)
        self.assertEqual(viewed["local_data"]["view_count"], 2)
        self.assertTrue(viewed["is_favorited"])
        self.assertEqual(viewed["tmdb_rating"], {"average": 8.4, "count": 35000})
        self.assertEqual(catalog.calls, ["27205"])
