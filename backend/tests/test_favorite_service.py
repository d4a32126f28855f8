import unittest
from unittest.mock import patch
from uuid import uuid4

from db_support import FakeCatalog, make_session, make_user

from movplay.db.models import Movie, UserFavorite
from movplay.services import favorite_service
from movplay.services.favorite_service import (
    add_favorite,
    get_favorites_page,
    list_favorites,
    remove_favorite,
)
from movplay.services.movie_service import MovieNotFoundError
from movplay.services.social_service import UserNotFoundError


class TestFavoriteService(unittest.IsolatedAsyncioTestCase):
    def setUp(self) -> None:
        self.db = make_session()
        self.catalog = FakeCatalog()
        self.user = make_user(self.db, "fan")

    def tearDown(self) -> None:
        self.db.close()

    def _movie(self, tmdb_id: str) -> Movie:
        return self.db.query(Movie).filter(Movie.tmdb_id == tmdb_id).populate_existing().one()

    async def test_adding_twice_keeps_one_entry_and_one_increment(self) -> None:
        first = await add_favorite(self.db, self.user.id, "27205", self.catalog)
        second = await add_favorite(self.db, self.user.id, 27205, self.catalog)

        self.assertEqual([m["tmdb_id"] for m in first], ["27205"])
        self.assertEqual(second, first)
        self.assertEqual(self.db.query(UserFavorite).count(), 1)
        self.assertEqual(self._movie("27205").favorite_count, 1)

    async def test_concurrent_add_is_a_silent_no_op(self) -> None:
        await add_favorite(self.db, self.user.id, "27205", self.catalog)
        # Forget loaded rows so the second insert reaches the database.
        self.db.expunge_all()

        with patch.object(favorite_service, "_is_favorite", return_value=False):
            result = await add_favorite(self.db, self.user.id, "27205", self.catalog)

        self.assertEqual([m["tmdb_id"] for m in result], ["27205"])
        self.assertEqual(self.db.query(UserFavorite).count(), 1)
        self.assertEqual(self._movie("27205").favorite_count, 1)

    async def test_remove_decrements_only_on_real_removal(self) -> None:
        await add_favorite(self.db, self.user.id, "27205", self.catalog)

        after_remove = remove_favorite(self.db, self.user.id, "27205")
        again = remove_favorite(self.db, self.user.id, "27205")

        self.assertEqual(after_remove, [])
        self.assertEqual(again, [])
        self.assertEqual(self._movie("27205").favorite_count, 0)

    async def test_removing_non_member_returns_unchanged_set(self) -> None:
        await add_favorite(self.db, self.user.id, "27205", self.catalog)
        await add_favorite(self.db, self.user.id, "603", self.catalog)
        before = list_favorites(self.db, self.user.id)

        self.assertEqual(remove_favorite(self.db, self.user.id, "550"), before)
        self.assertEqual(remove_favorite(self.db, self.user.id, "never-cached"), before)
        self.assertEqual(self._movie("27205").favorite_count, 1)

    async def test_counter_tracks_distinct_users(self) -> None:
        other = make_user(self.db, "other_fan")
        await add_favorite(self.db, self.user.id, "27205", self.catalog)
        await add_favorite(self.db, other.id, "27205", self.catalog)
        remove_favorite(self.db, other.id, "27205")
        remove_favorite(self.db, other.id, "27205")

        self.assertEqual(self._movie("27205").favorite_count, 1)

    async def test_unknown_catalog_movie_is_not_found(self) -> None:
        catalog = FakeCatalog(movies={})
        with self.assertRaises(MovieNotFoundError):
            await add_favorite(self.db, self.user.id, "404404", catalog)
        self.assertEqual(self.db.query(UserFavorite).count(), 0)

    async def test_unknown_user_is_not_found(self) -> None:
        with self.assertRaises(UserNotFoundError):
            await add_favorite(self.db, uuid4(), "27205", self.catalog)

    async def test_favorites_page(self) -> None:
        for tmdb_id in ("1", "2", "3"):
            await add_favorite(self.db, self.user.id, tmdb_id, self.catalog)

        page = get_favorites_page(self.db, self.user.id, page=1, limit=2)
        self.assertEqual([m["tmdb_id"] for m in page["results"]], ["1", "2"])
        self.assertEqual(page["total_results"], 3)
        self.assertEqual(page["total_pages"], 2)
