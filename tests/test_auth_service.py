"""Tests for kodbank.services.auth: validation, conflicts, login, session checks."""

import os
import tempfile
import threading
import unittest
from concurrent.futures import ThreadPoolExecutor
from datetime import UTC, datetime, timedelta
from decimal import Decimal
from unittest.mock import MagicMock

from sqlalchemy.exc import IntegrityError, OperationalError

from kodbank.core.errors import (
    ConflictError,
    InternalError,
    InvalidCredentialsError,
    NotAuthenticatedError,
    NotFoundError,
    SessionExpiredError,
    ValidationError,
)
from kodbank.core.security import create_session_token
from kodbank.models import User, UserToken
from kodbank.schemas.auth import SessionClaims
from kodbank.services.auth import (
    authenticate_user,
    check_session,
    get_account,
    register_user,
)
from tests.support import FastHashTestCase, make_database, make_settings


class TestRegisterValidation(unittest.TestCase):
    """Invalid input is rejected before the store is touched."""

    def _assert_rejected(self, message: str, **kwargs: object) -> None:
        db = MagicMock()
        fields = {"username": "alice", "email": "a@b.com", "password": "secret1"}
        fields.update(kwargs)
        with self.assertRaises(ValidationError) as ctx:
            register_user(db, **fields)
        self.assertEqual(ctx.exception.message, message)
        db.add.assert_not_called()
        db.commit.assert_not_called()

    def test_missing_fields(self) -> None:
        required = "Username, email and password are required."
        self._assert_rejected(required, username=None)
        self._assert_rejected(required, email="")
        self._assert_rejected(required, password=None)

    def test_short_username(self) -> None:
        self._assert_rejected("Username must be at least 3 characters.", username="al")

    def test_username_is_trimmed_before_length_check(self) -> None:
        self._assert_rejected("Username must be at least 3 characters.", username="  al  ")

    def test_short_password(self) -> None:
        self._assert_rejected("Password must be at least 6 characters.", password="12345")

    def test_overlong_values(self) -> None:
        self._assert_rejected("Username must be at most 50 characters.", username="u" * 51)
        self._assert_rejected("Email must be at most 100 characters.", email="e" * 95 + "@b.com")
        self._assert_rejected("Phone must be at most 20 characters.", phone="1" * 21)

    def test_unknown_role(self) -> None:
        self._assert_rejected("Role must be one of: customer, admin.", role="root")


class TestRegisterStoreFailures(FastHashTestCase):
    """Store errors are translated into ConflictError or InternalError."""

    def _db_failing_with(self, exc: Exception) -> MagicMock:
        db = MagicMock()
        db.commit.side_effect = exc
        return db

    def test_username_conflict_from_postgres_detail(self) -> None:
        orig = Exception(
            'duplicate key value violates unique constraint "ix_users_username"\n'
            "DETAIL:  Key (username)=(alice) already exists."
        )
        db = self._db_failing_with(IntegrityError("INSERT", {}, orig))
        with self.assertRaises(ConflictError) as ctx:
            register_user(db, "alice", "a@b.com", "secret1")
        self.assertEqual(ctx.exception.field, "Username")
        self.assertEqual(ctx.exception.message, "Username is already taken. Please choose another.")
        db.rollback.assert_called_once()

    def test_email_conflict_even_when_email_contains_username(self) -> None:
        orig = Exception(
            'duplicate key value violates unique constraint "uq_users_email"\n'
            "DETAIL:  Key (email)=(username@b.com) already exists."
        )
        db = self._db_failing_with(IntegrityError("INSERT", {}, orig))
        with self.assertRaises(ConflictError) as ctx:
            register_user(db, "bob", "username@b.com", "secret1")
        self.assertEqual(ctx.exception.field, "Email")

    def test_other_store_failure_is_internal(self) -> None:
        db = self._db_failing_with(OperationalError("INSERT", {}, Exception("connection reset")))
        with self.assertRaises(InternalError) as ctx:
            register_user(db, "alice", "a@b.com", "secret1")
        self.assertEqual(ctx.exception.message, "Registration failed. Please try again.")
        self.assertNotIn("connection reset", ctx.exception.message)
        db.rollback.assert_called_once()


class TestRegisterAgainstStore(FastHashTestCase):
    def setUp(self) -> None:
        super().setUp()
        self.database = make_database()
        self.addCleanup(self.database.dispose)
        self.db = self.database.session()
        self.addCleanup(self.db.close)

    def test_normalizes_and_sets_defaults(self) -> None:
        user = register_user(self.db, "  alice  ", " A@B.com ", "secret1", phone="555-0100")
        row = self.db.query(User).filter(User.uid == user.uid).one()
        self.assertEqual(row.username, "alice")
        self.assertEqual(row.email, "a@b.com")
        self.assertEqual(row.role, "customer")
        self.assertEqual(Decimal(row.balance), Decimal("100000.00"))
        self.assertEqual(row.phone, "555-0100")
        self.assertNotEqual(row.password_hash, "secret1")
        self.assertEqual(len(row.uid), 36)

    def test_duplicate_username(self) -> None:
        register_user(self.db, "alice", "a@b.com", "secret1")
        with self.assertRaises(ConflictError) as ctx:
            register_user(self.db, "alice", "other@b.com", "secret1")
        self.assertEqual(ctx.exception.field, "Username")

    def test_duplicate_email_ignores_case(self) -> None:
        register_user(self.db, "alice", "A@B.com", "secret1")
        with self.assertRaises(ConflictError) as ctx:
            register_user(self.db, "bob", "a@b.COM", "secret1")
        self.assertEqual(ctx.exception.field, "Email")

    def test_registration_does_not_issue_tokens(self) -> None:
        register_user(self.db, "alice", "a@b.com", "secret1")
        self.assertEqual(self.db.query(UserToken).count(), 0)


class TestConcurrentRegistration(FastHashTestCase):
    """Two registrations racing for one username: exactly one wins."""

    def test_exactly_one_succeeds(self) -> None:
        tmp = tempfile.TemporaryDirectory()
        self.addCleanup(tmp.cleanup)
        database = make_database(f"sqlite:///{os.path.join(tmp.name, 'race.db')}")
        self.addCleanup(database.dispose)
        barrier = threading.Barrier(2)

        def attempt(email: str) -> str:
            db = database.session()
            try:
                barrier.wait(timeout=5)
                register_user(db, "alice", email, "secret1")
                return "created"
            except ConflictError as e:
                return e.field
            finally:
                db.close()

        with ThreadPoolExecutor(max_workers=2) as pool:
            outcomes = list(pool.map(attempt, ["one@b.com", "two@b.com"]))

        self.assertEqual(sorted(outcomes), ["Username", "created"])
        db = database.session()
        self.addCleanup(db.close)
        self.assertEqual(db.query(User).filter(User.username == "alice").count(), 1)


class TestAuthenticateUser(FastHashTestCase):
    def setUp(self) -> None:
        super().setUp()
        self.settings = make_settings()
        self.database = make_database()
        self.addCleanup(self.database.dispose)
        self.db = self.database.session()
        self.addCleanup(self.db.close)
        self.user = register_user(self.db, "alice", "a@b.com", "secret1")

    def test_success_issues_token_and_records_it(self) -> None:
        now = datetime.now(UTC)
        user, token = authenticate_user(self.db, " alice ", "secret1", self.settings, now=now)
        self.assertEqual(user.uid, self.user.uid)
        claims = check_session(token, self.settings)
        self.assertEqual(claims, SessionClaims(username="alice", uid=self.user.uid, role="customer"))

        rows = self.db.query(UserToken).all()
        self.assertEqual(len(rows), 1)
        self.assertEqual(rows[0].token, token)
        self.assertEqual(rows[0].user_id, self.user.uid)
        expiry = rows[0].expiry
        if expiry.tzinfo is None:
            expiry = expiry.replace(tzinfo=UTC)
        self.assertEqual(expiry, now + timedelta(hours=24))

    def test_each_login_records_a_new_token_row(self) -> None:
        authenticate_user(self.db, "alice", "secret1", self.settings)
        authenticate_user(self.db, "alice", "secret1", self.settings)
        tids = {row.tid for row in self.db.query(UserToken).all()}
        self.assertEqual(len(tids), 2)

    def test_wrong_password_and_unknown_user_look_the_same(self) -> None:
        with self.assertRaises(InvalidCredentialsError) as wrong:
            authenticate_user(self.db, "alice", "wrong-password", self.settings)
        with self.assertRaises(InvalidCredentialsError) as unknown:
            authenticate_user(self.db, "nobody", "secret1", self.settings)
        self.assertEqual(wrong.exception.message, unknown.exception.message)
        self.assertEqual(self.db.query(UserToken).count(), 0)

    def test_deleting_user_removes_its_token_rows(self) -> None:
        authenticate_user(self.db, "alice", "secret1", self.settings)
        self.assertEqual(self.db.query(UserToken).count(), 1)
        self.db.query(User).filter(User.uid == self.user.uid).delete()
        self.db.commit()
        self.assertEqual(self.db.query(UserToken).count(), 0)

    def test_rejection_reason_is_logged(self) -> None:
        with self.assertLogs("kodbank.services.auth", level="INFO") as logs:
            with self.assertRaises(InvalidCredentialsError):
                authenticate_user(self.db, "alice", "wrong-password", self.settings)
            with self.assertRaises(InvalidCredentialsError):
                authenticate_user(self.db, "nobody", "secret1", self.settings)
        output = "\n".join(logs.output)
        self.assertIn("bad_password", output)
        self.assertIn("unknown_user", output)
        self.assertNotIn("wrong-password", output)

    def test_username_match_is_exact(self) -> None:
        with self.assertRaises(InvalidCredentialsError):
            authenticate_user(self.db, "ALICE", "secret1", self.settings)

    def test_missing_fields(self) -> None:
        for username, password in ((None, "secret1"), ("alice", None), ("   ", "secret1")):
            with self.assertRaises(ValidationError) as ctx:
                authenticate_user(self.db, username, password, self.settings)
            self.assertEqual(ctx.exception.message, "Username and password are required.")

    def test_token_write_failure_is_internal(self) -> None:
        db = MagicMock()
        db.query.return_value.filter.return_value.first.return_value = self.user
        db.commit.side_effect = OperationalError("INSERT", {}, Exception("disk full"))
        with self.assertRaises(InternalError) as ctx:
            authenticate_user(db, "alice", "secret1", self.settings)
        self.assertEqual(ctx.exception.message, "Login failed. Please try again.")
        db.rollback.assert_called_once()


class TestCheckSession(unittest.TestCase):
    def setUp(self) -> None:
        self.settings = make_settings()
        self.claims = SessionClaims(username="alice", uid="u-1", role="customer")

    def test_missing_token(self) -> None:
        for token in (None, ""):
            with self.assertRaises(NotAuthenticatedError):
                check_session(token, self.settings)

    def test_expired_and_invalid_share_one_error(self) -> None:
        expired = create_session_token(
            self.claims, self.settings, now=datetime.now(UTC) - timedelta(hours=25)
        )
        forged = create_session_token(self.claims, make_settings(JWT_SECRET="other"))
        messages = set()
        for token in (expired, forged, "garbage"):
            with self.assertRaises(SessionExpiredError) as ctx:
                check_session(token, self.settings)
            messages.add(ctx.exception.message)
        self.assertEqual(messages, {"Session expired. Please log in again."})

    def test_rejection_reason_is_logged(self) -> None:
        expired = create_session_token(
            self.claims, self.settings, now=datetime.now(UTC) - timedelta(hours=25)
        )
        with self.assertLogs("kodbank.services.auth", level="INFO") as logs:
            for token in (expired, "garbage"):
                with self.assertRaises(SessionExpiredError):
                    check_session(token, self.settings)
        output = "\n".join(logs.output)
        self.assertIn("Session token rejected: expired", output)
        self.assertIn("Session token rejected: invalid", output)

    def test_valid_token_returns_claims(self) -> None:
        token = create_session_token(self.claims, self.settings)
        self.assertEqual(check_session(token, self.settings), self.claims)


class TestGetAccount(FastHashTestCase):
    def setUp(self) -> None:
        super().setUp()
        self.database = make_database()
        self.addCleanup(self.database.dispose)
        self.db = self.database.session()
        self.addCleanup(self.db.close)

    def test_reads_live_row(self) -> None:
        user = register_user(self.db, "alice", "a@b.com", "secret1")
        self.db.query(User).filter(User.uid == user.uid).update({"balance": Decimal("42.50")})
        self.db.commit()
        account = get_account(self.db, SessionClaims(username="alice", uid=user.uid, role="customer"))
        self.assertEqual(Decimal(account.balance), Decimal("42.50"))

    def test_missing_user(self) -> None:
        with self.assertRaises(NotFoundError) as ctx:
            get_account(self.db, SessionClaims(username="ghost", uid="missing", role="customer"))
        self.assertEqual(ctx.exception.message, "User not found.")

    def test_store_failure_is_internal(self) -> None:
        db = MagicMock()
        db.query.side_effect = OperationalError("SELECT", {}, Exception("timeout"))
        with self.assertRaises(InternalError):
            get_account(db, SessionClaims(username="alice", uid="u-1", role="customer"))


if __name__ == "__main__":
    unittest.main()
