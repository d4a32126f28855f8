import unittest
from types import SimpleNamespace
from unittest.mock import patch
from uuid import uuid4

from api_support import review_row
from fastapi.testclient import TestClient

from movplay.db.session import get_db
from movplay.deps.auth import get_current_user
from movplay.main import app
from movplay.services.review_service import DuplicateReviewError, NotReviewOwnerError


class TestReviewsApi(unittest.TestCase):
    def setUp(self) -> None:
        self.client = TestClient(app)
        self.user_id = uuid4()
        app.dependency_overrides[get_db] = lambda: iter([object()])
        app.dependency_overrides[get_current_user] = lambda: SimpleNamespace(id=self.user_id, is_admin=False)

    def tearDown(self) -> None:
        app.dependency_overrides.clear()

    def test_create_review_201(self) -> None:
        with patch("movplay.api.reviews.create_review", return_value=review_row()) as create:
            response = self.client.post(
                "/reviews",
                json={"tmdb_id": 27205, "rating": 9, "title": "Layers"},
            )

        self.assertEqual(response.status_code, 201)
        payload = response.json()
        self.assertEqual(payload["movie_rating"], {"average": 9.0, "count": 1})
        self.assertEqual(create.call_args.args[1:], (self.user_id, 27205, 9.0))

    def test_create_review_requires_auth(self) -> None:
        app.dependency_overrides.pop(get_current_user)
        response = self.client.post("/reviews", json={"tmdb_id": "27205", "rating": 9})
        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.json()["error"]["code"], "NOT_AUTHENTICATED")
        self.assertEqual(response.headers["www-authenticate"], "Bearer")

    def test_rating_out_of_range_is_400(self) -> None:
        with patch("movplay.api.reviews.create_review") as create:
            response = self.client.post("/reviews", json={"tmdb_id": "27205", "rating": 11})

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["error"]["code"], "INVALID_INPUT")
        create.assert_not_called()

    def test_second_review_is_409(self) -> None:
        with patch(
            "movplay.api.reviews.create_review",
            side_effect=DuplicateReviewError("You have already reviewed this movie"),
        ):
            response = self.client.post("/reviews", json={"tmdb_id": "27205", "rating": 7})

        self.assertEqual(response.status_code, 409)
        self.assertEqual(response.json()["error"]["code"], "ALREADY_REVIEWED")

    def test_edit_of_foreign_review_is_403(self) -> None:
        with patch(
            "movplay.api.reviews.update_review",
            side_effect=NotReviewOwnerError("You can only edit your own reviews"),
        ):
            response = self.client.patch(f"/reviews/{uuid4()}", json={"rating": 5})

        self.assertEqual(response.status_code, 403)

    def test_partial_update_sends_only_set_fields(self) -> None:
        review_id = uuid4()
        with patch("movplay.api.reviews.update_review", return_value=review_row(id=review_id)) as update:
            response = self.client.patch(f"/reviews/{review_id}", json={"comment": "Better on rewatch"})

        self.assertEqual(response.status_code, 200)
        self.assertEqual(update.call_args.args[3], {"comment": "Better on rewatch"})

    def test_delete_returns_refreshed_rating(self) -> None:
        with patch("movplay.api.reviews.delete_review", return_value={"average": 0.0, "count": 0}):
            response = self.client.delete(f"/reviews/{uuid4()}")

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json(), {"average": 0.0, "count": 0})

    def test_report_rejects_unknown_reason(self) -> None:
        response = self.client.post(f"/reviews/{uuid4()}/report", json={"reason": "boring"})
        self.assertEqual(response.status_code, 400)

    def test_visibility_requires_admin(self) -> None:
        with patch("movplay.api.reviews.set_review_visibility") as set_visibility:
            response = self.client.patch(f"/reviews/{uuid4()}/visibility", json={"is_visible": False})

        self.assertEqual(response.status_code, 403)
        set_visibility.assert_not_called()

    def test_admin_can_hide_review(self) -> None:
        app.dependency_overrides[get_current_user] = lambda: SimpleNamespace(id=self.user_id, is_admin=True)
        with patch(
            "movplay.api.reviews.set_review_visibility",
            return_value=review_row(is_visible=False),
        ):
            response = self.client.patch(f"/reviews/{uuid4()}/visibility", json={"is_visible": False})

        self.assertEqual(response.status_code, 200)
        self.assertFalse(response.json()["is_visible"])
