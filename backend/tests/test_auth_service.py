import unittest

from db_support import make_session, make_user

from movplay.core.security import decode_access_token
from movplay.services.auth_service import (
    DuplicateUserError,
    authenticate_user,
    create_user,
    issue_access_token,
)


class TestAuthService(unittest.TestCase):
    def setUp(self) -> None:
        self.db = make_session()

    def tearDown(self) -> None:
        self.db.close()

    def test_create_user_hashes_password_and_defaults_display_name(self) -> None:
        user = create_user(self.db, "Alex_R", " Alex@Example.com ", "secret1")

        self.assertEqual(user.username, "Alex_R")
        self.assertEqual(user.email, "alex@example.com")
        self.assertEqual(user.display_name, "Alex_R")
        self.assertNotEqual(user.password_hash, "secret1")

    def test_username_is_unique_ignoring_case(self) -> None:
        create_user(self.db, "alex", "alex@example.com", "secret1")

        with self.assertRaises(DuplicateUserError) as ctx:
            create_user(self.db, "ALEX", "other@example.com", "secret1")
        self.assertEqual(ctx.exception.field, "username")

        with self.assertRaises(DuplicateUserError) as ctx:
            create_user(self.db, "drew", "ALEX@example.com", "secret1")
        self.assertEqual(ctx.exception.field, "email")

    def test_login_by_username_or_email(self) -> None:
        user = create_user(self.db, "alex", "alex@example.com", "secret1")

        self.assertEqual(authenticate_user(self.db, "Alex", "secret1").id, user.id)
        self.assertEqual(authenticate_user(self.db, "ALEX@example.com", "secret1").id, user.id)
        self.assertIsNone(authenticate_user(self.db, "alex", "wrong"))
        self.assertIsNone(authenticate_user(self.db, "nobody", "secret1"))

    def test_deactivated_accounts_cannot_login(self) -> None:
        user = create_user(self.db, "alex", "alex@example.com", "secret1")
        user.is_active = False
        self.db.commit()

        self.assertIsNone(authenticate_user(self.db, "alex", "secret1"))

    def test_token_subject_is_user_id(self) -> None:
        user = make_user(self.db)
        self.assertEqual(decode_access_token(issue_access_token(user)), str(user.id))
