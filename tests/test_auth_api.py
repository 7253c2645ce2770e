"""End-to-end tests for signup, login, logout and the password flows."""

from datetime import timedelta

from conftest import API, PASSWORD, bearer, signup_payload
from core.security import utcnow
from models.user import User


def _kind(resp):
    return resp.json()["error"]["kind"]


class TestSignupAndLogin:
    def test_signup_then_login(self, client):
        payload = signup_payload(email="  Ada@CityLog.IO ")
        resp = client.post(f"{API}/users/signup", json=payload)

        assert resp.status_code == 201
        body = resp.json()
        assert body["success"] is True
        assert body["token"]
        assert body["user"]["email"] == "ada@citylog.io"
        assert body["user"]["role"] == "USER"
        assert "password" not in body["user"]
        assert "passwordHash" not in body["user"]
        assert resp.cookies.get("jwt") == body["token"]

        resp = client.post(
            f"{API}/users/login", json={"email": "ada@citylog.io", "password": PASSWORD}
        )
        assert resp.status_code == 200
        assert resp.json()["user"]["id"] == body["user"]["id"]

    def test_signup_sends_welcome_mail(self, client, mailer):
        client.post(f"{API}/users/signup", json=signup_payload(email="welcome@citylog.io"))
        assert [m[:2] for m in mailer.sent] == [("welcome", "welcome@citylog.io")]

    def test_signup_never_grants_a_role(self, client):
        resp = client.post(f"{API}/users/signup", json=signup_payload(role="ADMIN"))
        assert resp.json()["user"]["role"] == "USER"

    def test_wrong_password_and_unknown_email_look_the_same(self, client, register):
        user, _ = register()

        wrong = client.post(f"{API}/users/login", json={"email": user["email"], "password": "Nope12345"})
        unknown = client.post(f"{API}/users/login", json={"email": "ghost@citylog.io", "password": PASSWORD})

        assert wrong.status_code == unknown.status_code == 401
        assert wrong.json()["message"] == unknown.json()["message"] == "Incorrect email or password"

    def test_duplicate_email(self, client, register):
        user, _ = register()
        resp = client.post(f"{API}/users/signup", json=signup_payload(email=user["email"]))
        assert resp.status_code == 400
        assert _kind(resp) == "DuplicateValue"

    def test_duplicate_phone_number(self, client, register):
        user, _ = register()
        resp = client.post(f"{API}/users/signup", json=signup_payload(phoneNumber=user["phoneNumber"]))
        assert resp.status_code == 400
        assert _kind(resp) == "DuplicateValue"
        assert resp.json()["message"] == "This phone number is already in use! try another number"

    def test_mismatched_confirmation(self, client):
        resp = client.post(f"{API}/users/signup", json=signup_payload(confirmPassword="Other1234"))
        assert resp.status_code == 400
        assert _kind(resp) == "ValidationFailed"
        assert "Passwords are not same" in resp.json()["message"]

    def test_invalid_phone_number(self, client):
        resp = client.post(f"{API}/users/signup", json=signup_payload(phoneNumber="12345"))
        assert resp.status_code == 400
        assert _kind(resp) == "ValidationFailed"

    def test_password_length_bounds(self, client):
        short = client.post(f"{API}/users/signup", json=signup_payload(password="short", confirmPassword="short"))
        long_pw = "x" * 17
        long = client.post(f"{API}/users/signup", json=signup_payload(password=long_pw, confirmPassword=long_pw))
        assert short.status_code == long.status_code == 400


class TestLogout:
    def test_logout_overwrites_cookie(self, client, register):
        user, _ = register()
        client.post(f"{API}/users/login", json={"email": user["email"], "password": PASSWORD})
        assert client.get(f"{API}/users/me").json()["authenticated"] is True

        resp = client.get(f"{API}/users/logout")
        assert resp.status_code == 200
        assert resp.cookies.get("jwt") == "loggedout"

        assert client.get(f"{API}/users/me").json()["authenticated"] is False
        assert client.get(f"{API}/cities").status_code == 401


class TestSessionFreshness:
    def test_password_change_revokes_older_tokens(self, app, client, register):
        user, _ = register()
        issuer = app.state.token_issuer
        old = issuer.issue(user["id"], issued_at=utcnow() - timedelta(minutes=5))

        resp = client.patch(
            f"{API}/users/updateMyPassword",
            headers=bearer(old),
            json={"currentPassword": PASSWORD, "password": "NewPass123", "confirmPassword": "NewPass123"},
        )
        assert resp.status_code == 200
        fresh = resp.json()["token"]
        client.cookies.clear()

        stale = client.get(f"{API}/cities", headers=bearer(old))
        assert stale.status_code == 401
        assert _kind(stale) == "StaleSession"

        assert client.get(f"{API}/cities", headers=bearer(fresh)).status_code == 200

        login = client.post(f"{API}/users/login", json={"email": user["email"], "password": "NewPass123"})
        assert login.status_code == 200

    def test_profile_update_keeps_password_and_sessions(self, client, register):
        user, token = register()
        resp = client.patch(f"{API}/users/updateMe", headers=bearer(token), json={"firstName": "Augusta"})
        assert resp.status_code == 200

        assert client.get(f"{API}/cities", headers=bearer(token)).status_code == 200
        login = client.post(f"{API}/users/login", json={"email": user["email"], "password": PASSWORD})
        assert login.status_code == 200

    def test_wrong_current_password(self, client, register):
        _, token = register()
        resp = client.patch(
            f"{API}/users/updateMyPassword",
            headers=bearer(token),
            json={"currentPassword": "Wrong1234", "password": "NewPass123", "confirmPassword": "NewPass123"},
        )
        assert resp.status_code == 401
        assert resp.json()["message"] == "Your current password is wrong."

    def test_new_password_confirmation_mismatch(self, client, register):
        _, token = register()
        resp = client.patch(
            f"{API}/users/updateMyPassword",
            headers=bearer(token),
            json={"currentPassword": PASSWORD, "password": "NewPass123", "confirmPassword": "NewPass124"},
        )
        assert resp.status_code == 400
        assert _kind(resp) == "ValidationFailed"

    def test_requires_authentication(self, client):
        resp = client.patch(
            f"{API}/users/updateMyPassword",
            json={"currentPassword": PASSWORD, "password": "NewPass123", "confirmPassword": "NewPass123"},
        )
        assert resp.status_code == 401
        assert resp.json()["message"] == "You are not logged in! Please login to get access"


class TestPasswordReset:
    def _forgot(self, client, email):
        return client.post(f"{API}/users/forgotPassword", json={"email": email})

    def _reset(self, client, token, password="Reset1234"):
        return client.patch(
            f"{API}/users/resetPassword/{token}",
            json={"password": password, "confirmPassword": password},
        )

    def test_reset_flow_is_single_use(self, client, mailer, register):
        user, _ = register()

        resp = self._forgot(client, user["email"])
        assert resp.status_code == 200
        token = mailer.last_reset_token()
        assert f"/api/v1/users/resetPassword/{token}" in mailer.sent[-1][2]

        assert self._reset(client, token).status_code == 200
        login = client.post(f"{API}/users/login", json={"email": user["email"], "password": "Reset1234"})
        assert login.status_code == 200

        replay = self._reset(client, token, "Other1234")
        assert replay.status_code == 400
        assert _kind(replay) == "InvalidToken"
        assert replay.json()["message"] == "Token is invalid or link has expired"

    def test_reset_token_is_not_stored_in_the_clear(self, client, db, mailer, register):
        user, _ = register()
        self._forgot(client, user["email"])
        token = mailer.last_reset_token()

        row = db.get(User, user["id"])
        assert row.password_reset_token is not None
        assert row.password_reset_token != token

    def test_expired_reset_token(self, client, db, mailer, register):
        user, _ = register()
        self._forgot(client, user["email"])
        token = mailer.last_reset_token()

        row = db.get(User, user["id"])
        row.password_reset_expires = utcnow() - timedelta(minutes=1)
        db.commit()

        resp = self._reset(client, token)
        assert resp.status_code == 400
        assert _kind(resp) == "InvalidToken"

        db.expire_all()
        row = db.get(User, user["id"])
        assert row.password_reset_token is None
        assert row.password_reset_expires is None

    def test_unknown_email_gets_the_same_answer(self, client, mailer, register):
        user, _ = register()
        known = self._forgot(client, user["email"])
        unknown = self._forgot(client, "nobody@citylog.io")

        assert known.status_code == unknown.status_code == 200
        assert known.json()["message"] == unknown.json()["message"]
        assert len([m for m in mailer.sent if m[0] == "reset"]) == 1

    def test_mail_failure_clears_the_token(self, client, db, mailer, register):
        user, _ = register()
        mailer.fail = True

        resp = self._forgot(client, user["email"])
        assert resp.status_code == 500
        assert resp.json()["message"] == "There was an error in sending the email, Try again later."

        row = db.get(User, user["id"])
        assert row.password_reset_token is None
        assert row.password_reset_expires is None

    def test_reset_revokes_existing_sessions(self, app, client, mailer, register):
        user, _ = register()
        old = app.state.token_issuer.issue(user["id"], issued_at=utcnow() - timedelta(minutes=5))

        self._forgot(client, user["email"])
        self._reset(client, mailer.last_reset_token())

        resp = client.get(f"{API}/cities", headers=bearer(old))
        assert resp.status_code == 401
        assert _kind(resp) == "StaleSession"
