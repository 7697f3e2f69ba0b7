"""
Token issuance and verification tests.
"""

from datetime import datetime, timedelta

import jwt
import pytest

from conftest import TEST_PASSWORD, auth_headers
from sales_api.errors import AuthenticationFailureError, InvalidTokenError
from sales_api.services import auth_service
from sales_api.services.token_service import (
    Authenticator,
    Claims,
    generate_private_key,
    load_authenticator,
    new_claims,
    private_key_to_pem,
    simple_key_lookup,
)
from sales_api.time_utils import to_epoch_seconds, utcnow


class TestTokenEndpoint:

    def test_basic_auth_returns_token(self, client, authenticator, admin):
        resp = client.get("/v1/users/token", auth=("admin@example.com", TEST_PASSWORD))
        assert resp.status_code == 200

        claims = authenticator.parse_claims(resp.get_json()["token"])
        assert claims.subject == admin.user_id
        assert set(claims.roles) == set(admin.roles)
        assert claims.expires_at - claims.issued_at == timedelta(hours=1)

    def test_issued_token_opens_protected_routes(self, client, user):
        token = client.get("/v1/users/token", auth=("user@example.com", TEST_PASSWORD)).get_json()["token"]
        resp = client.get("/v1/products", headers=auth_headers(token))
        assert resp.status_code == 200

    def test_email_is_case_insensitive(self, client, user):
        resp = client.get("/v1/users/token", auth=("User@Example.com", TEST_PASSWORD))
        assert resp.status_code == 200

    def test_ttl_comes_from_config(self, app, client, authenticator, user):
        app.config["AUTH_TOKEN_TTL"] = 60
        resp = client.get("/v1/users/token", auth=("user@example.com", TEST_PASSWORD))

        claims = authenticator.parse_claims(resp.get_json()["token"])
        assert claims.expires_at - claims.issued_at == timedelta(seconds=60)

    def test_wrong_password_and_unknown_email_look_the_same(self, client, user):
        wrong = client.get("/v1/users/token", auth=("user@example.com", "Wrong1234"))
        unknown = client.get("/v1/users/token", auth=("nobody@example.com", TEST_PASSWORD))

        assert wrong.status_code == unknown.status_code == 401
        assert wrong.get_json() == unknown.get_json() == {"error": "authentication failed"}

    def test_missing_credentials(self, client):
        resp = client.get("/v1/users/token")
        assert resp.status_code == 401
        assert resp.get_json() == {"error": "must provide email and password in Basic auth"}

    def test_bearer_is_not_accepted(self, client, user):
        resp = client.get("/v1/users/token", headers=user.headers)
        assert resp.status_code == 401
        assert resp.get_json() == {"error": "must provide email and password in Basic auth"}


class TestAuthenticator:

    def test_round_trip_keeps_claims(self, authenticator):
        now = utcnow().replace(microsecond=0)
        claims = new_claims("user-1", ["ADMIN", "USER"], now, timedelta(hours=1))

        parsed = authenticator.parse_claims(authenticator.generate_token(claims))
        assert parsed == claims
        assert parsed.has_role("ADMIN")
        assert not parsed.has_role("OWNER")

    def test_token_header_carries_key_id(self, authenticator):
        token = authenticator.generate_token(new_claims("u", [], utcnow(), timedelta(minutes=5)))
        header = jwt.get_unverified_header(token)
        assert header["kid"] == "1"
        assert header["alg"] == "RS256"

    def test_expired(self, authenticator):
        issued = utcnow() - timedelta(hours=3)
        token = authenticator.generate_token(new_claims("u", [], issued, timedelta(hours=1)))
        with pytest.raises(InvalidTokenError, match="expired"):
            authenticator.parse_claims(token)

    @pytest.mark.parametrize(
        "kwargs,message",
        [
            ({"key_id": ""}, "key id cannot be blank"),
            ({"algorithm": "RS999"}, "unknown algorithm"),
            ({"key_lookup": None}, "lookup cannot be None"),
            ({"private_key": None}, "private key cannot be None"),
        ],
    )
    def test_constructor_rejects_bad_arguments(self, signing_key, kwargs, message):
        args = {
            "private_key": signing_key,
            "key_id": "1",
            "algorithm": "RS256",
            "key_lookup": simple_key_lookup("1", signing_key.public_key()),
        }
        args.update(kwargs)
        with pytest.raises(ValueError, match=message):
            Authenticator(**args)

    def test_claims_payload_rejects_bad_roles(self):
        with pytest.raises(InvalidTokenError):
            Claims.from_payload({"sub": "u", "roles": "ADMIN"})

    def test_claims_payload_uses_epoch_seconds(self):
        issued = datetime(2030, 1, 1, 0, 0, 0)
        payload = new_claims("u", ["USER"], issued, timedelta(hours=1)).to_payload()
        assert payload == {
            "sub": "u",
            "roles": ["USER"],
            "iat": to_epoch_seconds(issued),
            "exp": to_epoch_seconds(issued) + 3600,
        }


class TestLoadAuthenticator:

    def test_loads_pem_file(self, tmp_path, signing_key):
        pem_path = tmp_path / "private.pem"
        pem_path.write_bytes(private_key_to_pem(signing_key))

        auth = load_authenticator({
            "AUTH_PRIVATE_KEY_FILE": str(pem_path),
            "AUTH_KEY_ID": "7",
            "AUTH_ALGORITHM": "RS256",
        })
        token = auth.generate_token(new_claims("u", [], utcnow(), timedelta(minutes=1)))
        assert auth.key_id == "7"
        assert auth.parse_claims(token).subject == "u"

    def test_missing_file(self, tmp_path):
        with pytest.raises(RuntimeError, match="reading auth private key"):
            load_authenticator({
                "AUTH_PRIVATE_KEY_FILE": str(tmp_path / "missing.pem"),
                "AUTH_KEY_ID": "1",
                "AUTH_ALGORITHM": "RS256",
            })

    def test_not_a_key(self, tmp_path):
        pem_path = tmp_path / "private.pem"
        pem_path.write_text("hello")
        with pytest.raises(RuntimeError, match="parsing auth private key"):
            load_authenticator({
                "AUTH_PRIVATE_KEY_FILE": str(pem_path),
                "AUTH_KEY_ID": "1",
                "AUTH_ALGORITHM": "RS256",
            })

    def test_generated_key_size(self):
        assert generate_private_key(1024).key_size == 1024


class TestPasswords:

    def test_authenticate_returns_claims(self, app, user):
        now = utcnow()
        with app.app_context():
            claims = auth_service.authenticate("user@example.com", TEST_PASSWORD, now)
        assert claims.subject == user.user_id
        assert claims.roles == ("USER",)
        assert claims.expires_at == now + timedelta(hours=1)

    def test_authenticate_rejects_bad_password(self, app, user):
        with app.app_context():
            with pytest.raises(AuthenticationFailureError):
                auth_service.authenticate("user@example.com", "nope", utcnow())

    @pytest.mark.parametrize("password", ["short1A", "alllowercase1", "ALLUPPERCASE1", "NoDigitsHere"])
    def test_weak_passwords_rejected(self, password):
        with pytest.raises(auth_service.PasswordValidationError):
            auth_service.validate_password_strength(password)

    def test_duplicate_email_rejected(self, app, user):
        with app.app_context():
            with pytest.raises(ValueError, match="already registered"):
                auth_service.create_user("x", "USER@example.com", TEST_PASSWORD, ["USER"], utcnow(), rounds=4)

    def test_unknown_role_rejected(self, app):
        with app.app_context():
            with pytest.raises(ValueError, match="Unknown role"):
                auth_service.create_user("x", "x@example.com", TEST_PASSWORD, ["ROOT"], utcnow(), rounds=4)

    def test_verify_password_tolerates_bad_hash(self):
        assert auth_service.verify_password("anything", "not-a-bcrypt-hash") is False

    def test_unknown_email_hash_is_built_on_first_use(self, app):
        auth_service._dummy_hash.cache_clear()
        assert auth_service._dummy_hash.cache_info().currsize == 0

        with app.app_context():
            for _ in range(2):
                with pytest.raises(AuthenticationFailureError):
                    auth_service.authenticate("nobody@example.com", TEST_PASSWORD, utcnow())

        info = auth_service._dummy_hash.cache_info()
        assert (info.currsize, info.misses, info.hits) == (1, 1, 1)
        assert auth_service._dummy_hash().startswith("$2b$12$")
