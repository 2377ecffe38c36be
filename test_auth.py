"""Auth helpers against a stand-in for the supabase `client.auth` namespace."""
from types import SimpleNamespace

import pytest

from examhall.auth import (
    AuthError, AuthUser, Profile, complete_profile, home_route, send_password_reset, sign_in, sign_out, sign_up,
)


class FakeAuth:
    def __init__(self, fail=None):
        self.fail = fail
        self.calls = []

    def _respond(self, name, payload):
        self.calls.append((name, payload))
        if self.fail:
            raise RuntimeError(self.fail)
        return SimpleNamespace(user=SimpleNamespace(id="u-1", email=payload["email"]))

    def sign_in_with_password(self, credentials):
        return self._respond("sign_in", credentials)

    def sign_up(self, credentials):
        return self._respond("sign_up", credentials)

    def reset_password_for_email(self, email):
        self.calls.append(("reset", email))
        if self.fail:
            raise RuntimeError(self.fail)

    def sign_out(self):
        self.calls.append(("sign_out", None))
        if self.fail:
            raise RuntimeError(self.fail)


def client(fail=None):
    return SimpleNamespace(auth=FakeAuth(fail))


def test_sign_in_returns_user():
    c = client()
    user = sign_in(c, " ada@example.test ", "secret1")
    assert user == AuthUser(id="u-1", email="ada@example.test")


@pytest.mark.parametrize(
    "email, password, message",
    [
        ("not-an-email", "secret1", "Please enter a valid email address"),
        ("ada@example.test", "123", "Password must be at least 6 characters"),
    ],
)
def test_sign_in_rejects_bad_credentials_locally(email, password, message):
    c = client()
    with pytest.raises(AuthError, match=message):
        sign_in(c, email, password)
    assert c.auth.calls == []


def test_backend_failure_is_wrapped():
    with pytest.raises(AuthError, match="Invalid login credentials"):
        sign_in(client("Invalid login credentials"), "ada@example.test", "secret1")


def test_sign_up_requires_matching_passwords():
    with pytest.raises(AuthError, match="Passwords do not match"):
        sign_up(client(), "ada@example.test", "secret1", "secret2")
    assert sign_up(client(), "ada@example.test", "secret1", "secret1").id == "u-1"


def test_password_reset():
    c = client()
    send_password_reset(c, "ada@example.test")
    assert c.auth.calls == [("reset", "ada@example.test")]
    with pytest.raises(AuthError):
        send_password_reset(client("smtp down"), "ada@example.test")


def test_sign_out_failure_does_not_raise():
    sign_out(client("session expired"))


def test_profile_completion_and_routing():
    user = AuthUser(id="u-1", email="ada@example.test")
    with pytest.raises(AuthError, match="Name cannot be empty"):
        complete_profile(user, "  ")
    with pytest.raises(AuthError):
        complete_profile(user, "Ada", role="owner")

    profile = complete_profile(user, " Ada ")
    assert profile == Profile(id="u-1", name="Ada", email="ada@example.test", role="student")
    assert home_route(None) == "complete_profile"
    assert home_route(profile) == "dashboard"
    assert home_route(complete_profile(user, "Ada", role="admin")) == "admin_dashboard"
