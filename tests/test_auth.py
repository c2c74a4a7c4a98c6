"""Tests for the identity provider and token codec."""

import json
import pytest
from datetime import datetime, timedelta, timezone

from jose import jwt
from pydantic import ValidationError

from fintracker.auth import (
    DEMO_USERS,
    AuthError,
    JWTTokenCodec,
    StaticIdentityProvider,
    load_users,
)
from fintracker.config import AuthSettings
from fintracker.models.expense import DemoUser


class TestStaticIdentityProvider:

    @pytest.fixture
    def provider(self, auth_settings):
        return StaticIdentityProvider(auth_settings)

    def test_authenticate(self, provider):
        user = provider.authenticate("Sarthak_Pawnar_03", "finance")
        assert user.username == "Sarthak_Pawnar_03"
        assert user.name == "Sarthak Pawnar"

    def test_username_with_space(self, provider):
        assert provider.authenticate("John Doe", "Fullstackdev").name == "John Doe"

    def test_wrong_password_and_unknown_user_look_the_same(self, provider):
        with pytest.raises(AuthError) as wrong_password:
            provider.authenticate("Sarthak_Pawnar_03", "nope")
        with pytest.raises(AuthError) as unknown_user:
            provider.authenticate("nobody", "finance")

        assert str(wrong_password.value) == str(unknown_user.value) == "Invalid credentials"
        assert wrong_password.value.reason != unknown_user.value.reason

    def test_password_is_case_sensitive(self, provider):
        with pytest.raises(AuthError):
            provider.authenticate("Sarthak_Pawnar_03", "Finance")

    @pytest.mark.parametrize("user", DEMO_USERS, ids=lambda u: u.username)
    def test_every_demo_user_can_log_in(self, provider, user):
        token, profile = provider.login(user.username, user.password.get_secret_value())
        assert profile.name == user.name
        assert provider.verify(token).username == user.username

    def test_login_then_verify(self, provider):
        token, user = provider.login("John Doe", "Fullstackdev")
        assert provider.verify(token) == user

    @pytest.mark.parametrize("token", [None, "", "not-a-jwt", "a.b.c"])
    def test_verify_rejects_garbage(self, provider, token):
        with pytest.raises(AuthError):
            provider.verify(token)

    def test_token_from_other_secret_rejected(self, provider):
        other = StaticIdentityProvider(AuthSettings(jwt_secret="another-secret-456"))
        token, _ = other.login("John Doe", "Fullstackdev")
        with pytest.raises(AuthError):
            provider.verify(token)

    def test_token_for_removed_user_rejected(self, auth_settings):
        issuer = StaticIdentityProvider(auth_settings)
        token, _ = issuer.login("John Doe", "Fullstackdev")

        only_sarthak = StaticIdentityProvider(auth_settings, users=[
            DemoUser(username="Sarthak_Pawnar_03", password="finance", name="Sarthak Pawnar"),
        ])
        with pytest.raises(AuthError):
            only_sarthak.verify(token)


class TestJWTTokenCodec:

    def test_claims(self, auth_settings):
        codec = JWTTokenCodec(auth_settings)
        now = datetime.now(timezone.utc)
        token = codec.encode("John Doe", now=now)

        claims = jwt.decode(token, auth_settings.jwt_secret, algorithms=["HS256"])
        assert claims["sub"] == "John Doe"
        assert claims["exp"] - claims["iat"] == 60 * 60

    def test_round_trip(self, auth_settings):
        codec = JWTTokenCodec(auth_settings)
        assert codec.decode(codec.encode("Sarthak_Pawnar_03")) == "Sarthak_Pawnar_03"

    def test_expired_token_rejected(self, auth_settings):
        codec = JWTTokenCodec(auth_settings)
        issued = datetime.now(timezone.utc) - timedelta(minutes=61)
        token = codec.encode("John Doe", now=issued)
        with pytest.raises(AuthError) as exc_info:
            codec.decode(token)
        assert str(exc_info.value) == "Invalid token"

    def test_token_without_subject_rejected(self, auth_settings):
        token = jwt.encode({"exp": 9999999999}, auth_settings.jwt_secret, algorithm="HS256")
        with pytest.raises(AuthError):
            JWTTokenCodec(auth_settings).decode(token)


class TestUsersFile:

    @pytest.fixture
    def users_file(self, tmp_path):
        path = tmp_path / "users.json"
        path.write_text(json.dumps([
            {"username": "alice", "password": "wonderland", "name": "Alice Liddell"},
        ]))
        return str(path)

    def test_load_users(self, users_file):
        users = load_users(users_file)
        assert [u.username for u in users] == ["alice"]
        assert users[0].password.get_secret_value() == "wonderland"

    def test_file_replaces_demo_users(self, users_file):
        settings = AuthSettings(jwt_secret="test-secret-123", users_file=users_file)
        provider = StaticIdentityProvider(settings)

        token, profile = provider.login("alice", "wonderland")
        assert profile.name == "Alice Liddell"
        assert provider.verify(token).username == "alice"
        with pytest.raises(AuthError):
            provider.authenticate("John Doe", "Fullstackdev")

    def test_explicit_users_win_over_file(self, users_file):
        settings = AuthSettings(jwt_secret="test-secret-123", users_file=users_file)
        provider = StaticIdentityProvider(settings, users=DEMO_USERS)
        assert provider.authenticate("John Doe", "Fullstackdev").name == "John Doe"

    def test_users_file_from_environment(self, users_file, monkeypatch):
        monkeypatch.setenv("AUTH_USERS_FILE", users_file)
        assert AuthSettings().users_file == users_file

    def test_malformed_file_is_rejected(self, tmp_path):
        path = tmp_path / "users.json"
        path.write_text(json.dumps([{"username": "alice"}]))
        with pytest.raises(ValidationError):
            load_users(str(path))
