"""Tests for accounts and sessions: passwords, UserStore, SessionStore."""

from __future__ import annotations

import pytest

from webapp.errors import StateConflict, ValidationError


class TestPasswords:
    def test_hash_and_verify(self):
        from webapp.auth.passwords import hash_password, verify_password
        h = hash_password("secret123")
        assert h.startswith("pbkdf2:")
        assert verify_password("secret123", h)
        assert not verify_password("wrong", h)

    def test_different_hashes(self):
        from webapp.auth.passwords import hash_password
        assert hash_password("same") != hash_password("same")

    def test_verify_malformed_hash(self):
        from webapp.auth.passwords import verify_password
        assert not verify_password("x", "")
        assert not verify_password("x", "pbkdf2:notanumber:zz:zz")
        assert not verify_password("x", "md5:abc")

    def test_generate_token(self):
        from webapp.auth.passwords import generate_token
        t1 = generate_token()
        t2 = generate_token()
        assert len(t1) > 20
        assert t1 != t2

    def test_password_strength(self):
        from webapp.auth.passwords import validate_password_strength
        assert validate_password_strength("short") is not None
        assert validate_password_strength("        ") is not None
        assert validate_password_strength("long enough") is None


class TestUserStore:
    def test_create_and_get(self, stores):
        rec = stores.users.create_user("Alice@Example.com", "Alice", "password123")
        assert rec.email == "alice@example.com"
        fetched = stores.users.get_user(rec.user_id)
        assert fetched is not None
        assert fetched.name == "Alice"
        assert fetched.password_hash != "password123"

    def test_get_by_email_case_insensitive(self, stores):
        rec = stores.users.create_user("bob@x.com", "Bob", "password123")
        assert stores.users.get_by_email("BOB@X.COM").user_id == rec.user_id
        assert stores.users.get_by_email("nobody@x.com") is None

    def test_duplicate_email(self, stores):
        stores.users.create_user("carol@x.com", "Carol", "password123")
        with pytest.raises(StateConflict):
            stores.users.create_user("CAROL@x.com", "Carol 2", "password123")

    @pytest.mark.parametrize(
        "email,name,password",
        [
            ("", "Name", "password123"),
            ("not-an-email", "Name", "password123"),
            ("a@x.com", "", "password123"),
            ("a@x.com", "Name", "short"),
            (["a@x.com"], "Name", "password123"),
            (12345, "Name", "password123"),
            ("a@x.com", ["Name"], "password123"),
            ("a@x.com", "Name", 12345678),
        ],
    )
    def test_validation(self, stores, email, name, password):
        with pytest.raises(ValidationError):
            stores.users.create_user(email, name, password)

    def test_authenticate(self, stores):
        stores.users.create_user("dave@x.com", "Dave", "password123")
        assert stores.users.authenticate("DAVE@x.com", "password123") is not None
        assert stores.users.authenticate("dave@x.com", "wrong-pass") is None
        assert stores.users.authenticate("ghost@x.com", "password123") is None

    def test_authenticate_non_string_credentials(self, stores):
        stores.users.create_user("erin@x.com", "Erin", "password123")
        assert stores.users.authenticate("erin@x.com", 12345678) is None
        assert stores.users.authenticate(["erin@x.com"], "password123") is None


class TestSessionStore:
    def test_create_and_get(self, stores):
        u = stores.user("s1@x.com")
        token = stores.sessions.create_session(u.user_id, timeout_hours=1, ip="127.0.0.1")
        assert len(token) > 20
        session = stores.sessions.get_session(token)
        assert session is not None
        assert session["user_id"] == u.user_id

    def test_unknown_token(self, stores):
        assert stores.sessions.get_session("nope") is None
        assert stores.sessions.get_session("") is None

    def test_expired_session(self, stores):
        u = stores.user("s2@x.com")
        token = stores.sessions.create_session(u.user_id, timeout_hours=0)
        assert stores.sessions.get_session(token) is None
        # expired rows are removed on read
        assert stores.db.fetch_one("SELECT * FROM auth_sessions WHERE token = ?", (token,)) is None

    def test_delete_session(self, stores):
        u = stores.user("s3@x.com")
        token = stores.sessions.create_session(u.user_id)
        assert stores.sessions.delete_session(token)
        assert stores.sessions.get_session(token) is None

    def test_delete_user_sessions(self, stores):
        u1 = stores.user("s4@x.com")
        u2 = stores.user("s5@x.com")
        stores.sessions.create_session(u1.user_id)
        stores.sessions.create_session(u1.user_id)
        keep = stores.sessions.create_session(u2.user_id)
        assert stores.sessions.delete_user_sessions(u1.user_id) == 2
        assert stores.sessions.get_session(keep) is not None

    def test_cleanup_expired(self, stores):
        u = stores.user("s6@x.com")
        stores.sessions.create_session(u.user_id, timeout_hours=0)
        stores.sessions.create_session(u.user_id, timeout_hours=0)
        keep = stores.sessions.create_session(u.user_id, timeout_hours=24)
        assert stores.sessions.cleanup_expired() == 2
        assert stores.sessions.get_session(keep) is not None
