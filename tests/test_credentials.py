"""
Tests for credential verification against user and parent accounts.

Run with: pytest tests/test_credentials.py -v
"""
from __future__ import annotations

import bcrypt

from coaching.accounts import PARENT, USER
from coaching.auth.core import dummy_password_hash, hash_password, verify_password
from coaching.auth.credentials import verify_credentials

PASSWORD = "correct-pw"


# ---------------------------------------------------------------------------
# Password hashing
# ---------------------------------------------------------------------------

def test_hash_roundtrip():
    hashed = hash_password("s3cret-pass")
    assert hashed != "s3cret-pass"
    assert verify_password("s3cret-pass", hashed)
    assert not verify_password("wrong", hashed)


def test_malformed_hash_does_not_raise():
    assert verify_password("anything", "not-a-bcrypt-hash") is False


def test_dummy_hash_matches_configured_cost():
    real = hash_password("x" * 10)
    # "$2b$04$": same algorithm and cost factor
    assert dummy_password_hash()[:7] == real[:7]


# ---------------------------------------------------------------------------
# verify_credentials
# ---------------------------------------------------------------------------

def test_valid_credentials_return_principal_with_role(make_user):
    user = make_user(role="teacher", username="ahmet")
    principal = verify_credentials("ahmet", PASSWORD)
    assert principal is not None
    assert principal.id == user.id
    assert principal.username == "ahmet"
    assert principal.role == "teacher"


def test_login_by_email(make_user):
    user = make_user(role="student")
    principal = verify_credentials(user.email.upper(), PASSWORD)
    assert principal is not None and principal.id == user.id


def test_identifier_is_trimmed(make_user):
    user = make_user(role="student")
    assert verify_credentials(f"  {user.username} ", PASSWORD) is not None


def test_wrong_password_returns_none(make_user):
    user = make_user()
    assert verify_credentials(user.username, "not-the-password") is None


def test_unknown_identifier_returns_none():
    assert verify_credentials("nobody-here", PASSWORD) is None


def test_blank_identifier_returns_none():
    assert verify_credentials("   ", PASSWORD) is None


def test_inactive_account_rejected_with_correct_password(make_user, make_parent):
    user = make_user(is_active=False)
    parent = make_parent(is_active=False)
    assert verify_credentials(user.username, PASSWORD) is None
    assert verify_credentials(parent.email, PASSWORD) is None


def test_parent_resolves_with_parent_role(make_parent):
    parent = make_parent()
    principal = verify_credentials(parent.username, PASSWORD)
    assert principal is not None
    assert principal.role == "parent"
    assert principal.is_parent


def test_kinds_restrict_lookup(make_user, make_parent):
    user = make_user()
    parent = make_parent()
    assert verify_credentials(user.username, PASSWORD, kinds=(PARENT,)) is None
    assert verify_credentials(parent.username, PASSWORD, kinds=(USER,)) is None
    assert verify_credentials(parent.email, PASSWORD, kinds=(PARENT,)) is not None


# ---------------------------------------------------------------------------
# Timing equalisation: every path does exactly one bcrypt comparison
# ---------------------------------------------------------------------------

def _count_checkpw(monkeypatch) -> list:
    calls = []
    real = bcrypt.checkpw

    def counting(password, hashed):
        calls.append(hashed)
        return real(password, hashed)

    monkeypatch.setattr(bcrypt, "checkpw", counting)
    return calls


def test_unknown_identifier_still_compares_against_dummy(monkeypatch):
    calls = _count_checkpw(monkeypatch)
    assert verify_credentials("ghost-account", PASSWORD) is None
    assert calls == [dummy_password_hash().encode()]


def test_wrong_password_does_one_comparison(make_user, monkeypatch):
    user = make_user()
    calls = _count_checkpw(monkeypatch)
    assert verify_credentials(user.username, "wrong-password") is None
    assert len(calls) == 1


def test_inactive_account_does_one_comparison(make_user, monkeypatch):
    user = make_user(is_active=False)
    calls = _count_checkpw(monkeypatch)
    assert verify_credentials(user.username, PASSWORD) is None
    assert len(calls) == 1


def test_dummy_hash_is_built_at_startup(monkeypatch):
    import coaching.main  # noqa: F401  app startup has run

    hashes = []
    monkeypatch.setattr(bcrypt, "hashpw", lambda *args: hashes.append(args))
    assert dummy_password_hash.cache_info().currsize == 1
    assert verify_credentials("ghost-account", PASSWORD) is None
    assert hashes == []
