import unittest
from unittest.mock import patch
from uuid import uuid4

from db_support import FakeCatalog, make_session, make_user

from movplay.core.errors import ConflictError, InvalidInputError, NotFoundError, PermissionDeniedError
from movplay.db.models import Movie, Watchlist, WatchlistMovie
from movplay.services import watchlist_service
from movplay.services.watchlist_service import (
    DefaultWatchlistConflictError,
    MovieAlreadyInWatchlistError,
    WatchlistEntryNotFoundError,
    WatchlistNotFoundError,
    WatchlistPermissionError,
    add_collaborator,
    add_to_watchlist,
    create_watchlist,
    delete_watchlist,
    get_watchlist,
    list_my_watchlists,
    list_public_watchlists,
    mark_watched,
    remove_from_watchlist,
    toggle_like,
    update_watchlist,
)


class TestWatchlistService(unittest.IsolatedAsyncioTestCase):
    def setUp(self) -> None:
        self.db = make_session()
        self.catalog = FakeCatalog()
        self.owner = make_user(self.db, "owner")
        self.stranger = make_user(self.db, "stranger")
        self.watchlist = create_watchlist(self.db, self.owner.id, "Weekend", tags=["sci-fi"])

    def tearDown(self) -> None:
        self.db.close()

    def _watchlist_count(self, tmdb_id: str) -> int:
        movie = self.db.query(Movie).filter(Movie.tmdb_id == tmdb_id).populate_existing().one()
        return movie.watchlist_count

    # ── Membership ────────────────────────────────────────────────────────────

    async def test_adding_same_movie_twice_conflicts(self) -> None:
        wl_id = self.watchlist["id"]
        first = await add_to_watchlist(self.db, wl_id, self.owner.id, "27205", self.catalog)
        self.assertEqual(first["movie_count"], 1)

        with self.assertRaises(MovieAlreadyInWatchlistError) as ctx:
            await add_to_watchlist(self.db, wl_id, self.owner.id, 27205, self.catalog)
        self.assertIsInstance(ctx.exception, ConflictError)

        self.assertEqual(self.db.query(WatchlistMovie).filter(WatchlistMovie.watchlist_id == wl_id).count(), 1)
        self.assertEqual(self._watchlist_count("27205"), 1)

    async def test_concurrent_duplicate_add_hits_unique_constraint(self) -> None:
        wl_id = self.watchlist["id"]
        await add_to_watchlist(self.db, wl_id, self.owner.id, "27205", self.catalog)

        with patch.object(watchlist_service, "_find_entry", return_value=None):
            with self.assertRaises(MovieAlreadyInWatchlistError) as ctx:
                await add_to_watchlist(self.db, wl_id, self.owner.id, "27205", self.catalog)
        self.assertEqual(ctx.exception.code, "ALREADY_IN_WATCHLIST")

        self.assertEqual(self.db.query(WatchlistMovie).filter(WatchlistMovie.watchlist_id == wl_id).count(), 1)
        self.assertEqual(self._watchlist_count("27205"), 1)

    async def test_entries_keep_insertion_order(self) -> None:
        wl_id = self.watchlist["id"]
        for tmdb_id in ("3", "1", "2"):
            result = await add_to_watchlist(self.db, wl_id, self.owner.id, tmdb_id, self.catalog)
        self.assertEqual([entry["tmdb_id"] for entry in result["movies"]], ["3", "1", "2"])

    async def test_remove_is_a_no_op_when_absent(self) -> None:
        wl_id = self.watchlist["id"]
        await add_to_watchlist(self.db, wl_id, self.owner.id, "27205", self.catalog)

        removed = remove_from_watchlist(self.db, wl_id, self.owner.id, "27205")
        again = remove_from_watchlist(self.db, wl_id, self.owner.id, "27205")

        self.assertEqual(removed["movie_count"], 0)
        self.assertEqual(again["movie_count"], 0)
        self.assertEqual(self._watchlist_count("27205"), 0)

    async def test_mark_watched_sets_entry_state(self) -> None:
        wl_id = self.watchlist["id"]
        for tmdb_id in ("1", "2", "3"):
            await add_to_watchlist(self.db, wl_id, self.owner.id, tmdb_id, self.catalog)

        result = mark_watched(self.db, wl_id, self.owner.id, "2", rating=7.5, notes="  rewatch soon ")

        entry = next(e for e in result["movies"] if e["tmdb_id"] == "2")
        self.assertTrue(entry["watched"])
        self.assertIsNotNone(entry["watched_at"])
        self.assertEqual(entry["personal_rating"], 7.5)
        self.assertEqual(entry["personal_notes"], "rewatch soon")
        self.assertEqual(result["watched_count"], 1)
        self.assertEqual(result["completion_percentage"], 33)

    async def test_mark_watched_missing_entry_is_not_found(self) -> None:
        with self.assertRaises(WatchlistEntryNotFoundError) as ctx:
            mark_watched(self.db, self.watchlist["id"], self.owner.id, "27205")
        self.assertIsInstance(ctx.exception, NotFoundError)

    async def test_mark_watched_validates_rating_and_notes(self) -> None:
        wl_id = self.watchlist["id"]
        await add_to_watchlist(self.db, wl_id, self.owner.id, "27205", self.catalog)

        with self.assertRaises(InvalidInputError):
            mark_watched(self.db, wl_id, self.owner.id, "27205", rating=11)
        with self.assertRaises(InvalidInputError):
            mark_watched(self.db, wl_id, self.owner.id, "27205", notes="x" * 1001)

    def test_unknown_watchlist_is_not_found(self) -> None:
        with self.assertRaises(WatchlistNotFoundError):
            get_watchlist(self.db, uuid4(), self.owner.id)

    # ── Default flag ──────────────────────────────────────────────────────────

    def test_second_default_watchlist_conflicts(self) -> None:
        create_watchlist(self.db, self.owner.id, "Main", is_default=True)

        with self.assertRaises(DefaultWatchlistConflictError) as ctx:
            create_watchlist(self.db, self.owner.id, "Other", is_default=True)
        self.assertIsInstance(ctx.exception, ConflictError)

        with self.assertRaises(DefaultWatchlistConflictError):
            update_watchlist(self.db, self.watchlist["id"], self.owner.id, {"is_default": True})

        defaults = (
            self.db.query(Watchlist)
            .filter(Watchlist.user_id == self.owner.id, Watchlist.is_default.is_(True))
            .count()
        )
        self.assertEqual(defaults, 1)

    def test_default_is_per_user(self) -> None:
        create_watchlist(self.db, self.owner.id, "Main", is_default=True)
        other = create_watchlist(self.db, self.stranger.id, "Main", is_default=True)
        self.assertTrue(other["is_default"])

    def test_my_watchlists_list_default_first(self) -> None:
        create_watchlist(self.db, self.owner.id, "Main", is_default=True)
        names = [wl["name"] for wl in list_my_watchlists(self.db, self.owner.id)]
        self.assertEqual(names, ["Main", "Weekend"])

    # ── Lifecycle ─────────────────────────────────────────────────────────────

    async def test_delete_releases_watchlist_counts(self) -> None:
        wl_id = self.watchlist["id"]
        other = create_watchlist(self.db, self.stranger.id, "Also")
        await add_to_watchlist(self.db, wl_id, self.owner.id, "27205", self.catalog)
        await add_to_watchlist(self.db, other["id"], self.stranger.id, "27205", self.catalog)
        self.assertEqual(self._watchlist_count("27205"), 2)

        delete_watchlist(self.db, wl_id, self.owner.id)

        self.assertEqual(self._watchlist_count("27205"), 1)
        self.assertIsNone(self.db.query(Watchlist).filter(Watchlist.id == wl_id).first())

    def test_only_owner_updates_or_deletes(self) -> None:
        with self.assertRaises(WatchlistPermissionError):
            update_watchlist(self.db, self.watchlist["id"], self.stranger.id, {"name": "Mine"})
        with self.assertRaises(PermissionDeniedError):
            delete_watchlist(self.db, self.watchlist["id"], self.stranger.id)

    def test_blank_name_is_invalid(self) -> None:
        with self.assertRaises(InvalidInputError):
            create_watchlist(self.db, self.owner.id, "   ")

    # ── Visibility & collaboration ────────────────────────────────────────────

    def test_private_watchlist_hidden_from_strangers(self) -> None:
        with self.assertRaises(WatchlistPermissionError):
            get_watchlist(self.db, self.watchlist["id"], self.stranger.id)
        with self.assertRaises(WatchlistPermissionError):
            get_watchlist(self.db, self.watchlist["id"], None)

    def test_public_views_count_non_owner_visits(self) -> None:
        wl_id = self.watchlist["id"]
        update_watchlist(self.db, wl_id, self.owner.id, {"is_public": True})

        self.assertEqual(get_watchlist(self.db, wl_id, self.stranger.id)["views"], 1)
        self.assertEqual(get_watchlist(self.db, wl_id, None)["views"], 2)
        self.assertEqual(get_watchlist(self.db, wl_id, self.owner.id)["views"], 2)

    async def test_collaborator_permissions(self) -> None:
        wl_id = self.watchlist["id"]
        viewer = make_user(self.db, "viewer")
        editor = make_user(self.db, "editor")
        add_collaborator(self.db, wl_id, self.owner.id, viewer.id, "view")
        add_collaborator(self.db, wl_id, self.owner.id, editor.id, "edit")

        self.assertEqual(get_watchlist(self.db, wl_id, viewer.id)["name"], "Weekend")
        with self.assertRaises(WatchlistPermissionError):
            await add_to_watchlist(self.db, wl_id, viewer.id, "27205", self.catalog)

        result = await add_to_watchlist(self.db, wl_id, editor.id, "27205", self.catalog)
        self.assertEqual(result["movie_count"], 1)

        with self.assertRaises(WatchlistPermissionError):
            add_collaborator(self.db, wl_id, editor.id, self.stranger.id, "view")

    def test_add_collaborator_upserts_permission(self) -> None:
        wl_id = self.watchlist["id"]
        add_collaborator(self.db, wl_id, self.owner.id, self.stranger.id, "view")
        updated = add_collaborator(self.db, wl_id, self.owner.id, self.stranger.id, "admin")

        self.assertEqual(updated["permission"], "admin")
        detail = get_watchlist(self.db, wl_id, self.owner.id)
        self.assertEqual([(c["username"], c["permission"]) for c in detail["collaborators"]], [("stranger", "admin")])

    def test_add_collaborator_rejects_bad_input(self) -> None:
        wl_id = self.watchlist["id"]
        with self.assertRaises(InvalidInputError):
            add_collaborator(self.db, wl_id, self.owner.id, self.stranger.id, "owner")
        with self.assertRaises(InvalidInputError):
            add_collaborator(self.db, wl_id, self.owner.id, self.owner.id, "edit")

    def test_toggle_like(self) -> None:
        wl_id = self.watchlist["id"]
        update_watchlist(self.db, wl_id, self.owner.id, {"is_public": True})

        liked = toggle_like(self.db, wl_id, self.stranger.id)
        self.assertEqual((liked["like_count"], liked["is_liked"]), (1, True))

        unliked = toggle_like(self.db, wl_id, self.stranger.id)
        self.assertEqual((unliked["like_count"], unliked["is_liked"]), (0, False))

    def test_public_listing_filters_and_sorts(self) -> None:
        update_watchlist(self.db, self.watchlist["id"], self.owner.id, {"is_public": True})
        noir = create_watchlist(self.db, self.stranger.id, "Noir nights", is_public=True)
        create_watchlist(self.db, self.stranger.id, "Secret", is_public=False)
        toggle_like(self.db, noir["id"], self.owner.id)

        popular = list_public_watchlists(self.db, sort_by="popular")
        self.assertEqual([wl["name"] for wl in popular["results"]], ["Noir nights", "Weekend"])
        self.assertEqual(popular["total_results"], 2)

        by_tag = list_public_watchlists(self.db, q="sci-fi")
        self.assertEqual([wl["name"] for wl in by_tag["results"]], ["Weekend"])

        with self.assertRaises(InvalidInputError):
            list_public_watchlists(self.db, sort_by="random")
