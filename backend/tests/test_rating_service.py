import unittest
from uuid import uuid4

from db_support import FakeCatalog, make_session, make_user

from movplay.db.models import Movie, Review
from movplay.services.movie_service import MovieNotFoundError, ensure_movie
from movplay.services.rating_service import compute_rating, recompute_local_rating
from movplay.services.review_service import (
    create_review,
    delete_review,
    set_review_visibility,
    update_review,
)


class TestComputeRating(unittest.TestCase):
    def test_empty_set_is_zero(self) -> None:
        self.assertEqual(compute_rating([]), {"average": 0.0, "count": 0})

    def test_plain_unrounded_mean(self) -> None:
        result = compute_rating([2.0, 4.0, 10.0])
        self.assertEqual(result["count"], 3)
        self.assertAlmostEqual(result["average"], 16 / 3)

    def test_single_rating(self) -> None:
        self.assertEqual(compute_rating([7.5]), {"average": 7.5, "count": 1})


class TestRecomputeLocalRating(unittest.IsolatedAsyncioTestCase):
    def setUp(self) -> None:
        self.db = make_session()
        self.catalog = FakeCatalog()

    def tearDown(self) -> None:
        self.db.close()

    async def test_mean_over_visible_reviews_only(self) -> None:
        movie = await ensure_movie(self.db, "27205", self.catalog)
        ratings = [3.0, 5.5, 9.0]
        for rating in ratings:
            user = make_user(self.db)
            self.db.add(Review(user_id=user.id, movie_id=movie.id, tmdb_id=movie.tmdb_id, rating=rating))
        hidden_author = make_user(self.db)
        self.db.add(
            Review(
                user_id=hidden_author.id,
                movie_id=movie.id,
                tmdb_id=movie.tmdb_id,
                rating=0.5,
                is_visible=False,
            )
        )
        self.db.commit()

        result = recompute_local_rating(self.db, movie.id)

        self.assertEqual(result["count"], 3)
        self.assertAlmostEqual(result["average"], sum(ratings) / 3)
        stored = self.db.query(Movie).filter(Movie.id == movie.id).one()
        self.assertEqual(stored.local_rating_count, 3)
        self.assertAlmostEqual(stored.local_rating_average, sum(ratings) / 3)

    async def test_tmdb_rating_is_never_overwritten(self) -> None:
        movie = await ensure_movie(self.db, "27205", self.catalog)
        user = make_user(self.db)
        await create_review(self.db, user.id, "27205", 2, catalog=self.catalog)

        stored = self.db.query(Movie).filter(Movie.id == movie.id).one()
        self.assertEqual(stored.tmdb_rating_average, 8.4)
        self.assertEqual(stored.tmdb_rating_count, 35000)
        self.assertEqual(stored.local_rating_average, 2.0)

    def test_missing_movie_raises_not_found(self) -> None:
        with self.assertRaises(MovieNotFoundError):
            recompute_local_rating(self.db, uuid4())

    async def test_visibility_exclusion(self) -> None:
        reviews = []
        for rating in (2, 4, 10):
            user = make_user(self.db)
            reviews.append(await create_review(self.db, user.id, "603", rating, catalog=self.catalog))

        self.assertEqual(reviews[-1]["movie_rating"]["count"], 3)
        self.assertAlmostEqual(reviews[-1]["movie_rating"]["average"], 16 / 3)

        hidden = set_review_visibility(self.db, reviews[0]["id"], False)

        self.assertEqual(hidden["movie_rating"], {"average": 7.0, "count": 2})

        restored = set_review_visibility(self.db, reviews[0]["id"], True)
        self.assertEqual(restored["movie_rating"]["count"], 3)

    async def test_create_edit_delete_scenario(self) -> None:
        user = make_user(self.db)

        created = await create_review(self.db, user.id, "550", 8, catalog=self.catalog)
        self.assertEqual(created["movie_rating"], {"average": 8.0, "count": 1})

        edited = update_review(self.db, user.id, created["id"], {"rating": 6})
        self.assertEqual(edited["movie_rating"], {"average": 6.0, "count": 1})
        self.assertIsNotNone(edited["edited_at"])

        after_delete = delete_review(self.db, user.id, created["id"])
        self.assertEqual(after_delete, {"average": 0.0, "count": 0})

        movie = self.db.query(Movie).filter(Movie.tmdb_id == "550").one()
        self.assertEqual(movie.local_rating_count, 0)
        self.assertEqual(movie.local_rating_average, 0.0)
