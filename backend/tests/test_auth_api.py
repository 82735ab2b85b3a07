from fastapi.testclient import TestClient

from blogauth.models.user import User

AUTH = "/api/v1/auth"

ALICE = {
    "username": "alice",
    "email": "a@x.com",
    "password": "pw123",
    "firstName": "Alice",
    "lastName": "A",
}


def _bearer(token):
    return {"Authorization": f"Bearer {token}"}


def test_register_returns_token_and_sets_refresh_cookie(client):
    response = client.post(f"{AUTH}/register", json=ALICE)

    assert response.status_code == 201
    body = response.json()
    assert body["accessToken"]
    assert body["tokenType"] == "bearer"
    assert body["expiresIn"] == 15 * 60
    assert body["user"] == {
        "id": body["user"]["id"],
        "username": "alice",
        "email": "a@x.com",
        "firstName": "Alice",
        "lastName": "A",
    }
    assert "refreshToken" not in body

    cookie = response.headers["set-cookie"].lower()
    assert cookie.startswith("refreshtoken=")
    assert "httponly" in cookie
    assert "secure" in cookie
    assert "samesite=strict" in cookie
    assert "max-age=604800" in cookie
    assert "path=/api/v1/auth" in cookie
    assert client.cookies.get("refreshToken")


def test_register_then_login_gives_new_token_for_same_user(client, codec):
    registered = client.post(f"{AUTH}/register", json=ALICE).json()
    response = client.post(f"{AUTH}/login", json={"email": "a@x.com", "password": "pw123"})

    assert response.status_code == 200
    body = response.json()
    assert body["accessToken"] != registered["accessToken"]
    assert body["user"]["id"] == registered["user"]["id"]
    assert codec.verify_access_token(body["accessToken"]) == registered["user"]["id"]


def test_register_twice_with_same_email_conflicts(client, db):
    assert client.post(f"{AUTH}/register", json=ALICE).status_code == 201
    response = client.post(f"{AUTH}/register", json={**ALICE, "username": "alice2"})

    assert response.status_code == 400
    body = response.json()
    assert body["success"] is False
    assert body["details"] == {"fields": ["email"]}
    assert db.query(User).count() == 1


def test_register_validates_payload(client):
    response = client.post(f"{AUTH}/register", json={**ALICE, "email": "not-an-email"})
    assert response.status_code == 422
    assert response.json()["error"] == "Validation failed"


def test_login_with_bad_credentials_is_uniform(client):
    client.post(f"{AUTH}/register", json=ALICE)

    wrong_password = client.post(f"{AUTH}/login", json={"email": "a@x.com", "password": "nope"})
    unknown_email = client.post(f"{AUTH}/login", json={"email": "z@x.com", "password": "pw123"})

    assert wrong_password.status_code == unknown_email.status_code == 400
    assert wrong_password.json()["error"] == unknown_email.json()["error"] == "Invalid credentials"


def test_refresh_rotates_cookie_and_returns_new_access_token(client, codec):
    registered = client.post(f"{AUTH}/register", json=ALICE).json()
    old_secret = client.cookies.get("refreshToken")

    response = client.post(f"{AUTH}/refresh")

    assert response.status_code == 200
    body = response.json()
    assert codec.verify_access_token(body["accessToken"]) == registered["user"]["id"]
    assert body["user"]["username"] == "alice"
    new_secret = client.cookies.get("refreshToken")
    assert new_secret and new_secret != old_secret


def test_replayed_refresh_cookie_is_rejected_and_cleared(app, client):
    client.post(f"{AUTH}/register", json=ALICE)
    old_secret = client.cookies.get("refreshToken")
    assert client.post(f"{AUTH}/refresh").status_code == 200

    attacker = TestClient(app, base_url="https://testserver")
    attacker.cookies.set("refreshToken", old_secret)
    response = attacker.post(f"{AUTH}/refresh")

    assert response.status_code == 401
    assert response.json()["error"] == "Invalid or expired session"
    assert 'refreshtoken=""' in response.headers["set-cookie"].lower()


def test_refresh_without_cookie_is_rejected(client):
    response = client.post(f"{AUTH}/refresh")
    assert response.status_code == 401
    assert response.json()["error"] == "Invalid or expired session"


def test_refresh_after_seven_days_is_rejected(client, clock):
    client.post(f"{AUTH}/register", json=ALICE)
    clock.advance(days=7, seconds=1)

    response = client.post(f"{AUTH}/refresh")
    assert response.status_code == 401


def test_logout_always_succeeds_and_revokes(client):
    assert client.post(f"{AUTH}/logout").status_code == 200

    client.post(f"{AUTH}/register", json=ALICE)
    response = client.post(f"{AUTH}/logout")
    assert response.status_code == 200
    assert response.json()["success"] is True
    assert client.cookies.get("refreshToken") is None

    assert client.post(f"{AUTH}/refresh").status_code == 401
    assert client.post(f"{AUTH}/logout").status_code == 200


def test_logout_all_ends_other_devices(app, client):
    client.post(f"{AUTH}/register", json=ALICE)
    laptop = TestClient(app, base_url="https://testserver")
    assert laptop.post(f"{AUTH}/login", json={"email": "a@x.com", "password": "pw123"}).status_code == 200

    response = client.post(f"{AUTH}/logout-all")
    assert response.status_code == 200
    assert response.json()["data"] == {"sessions_revoked": 2}

    assert laptop.post(f"{AUTH}/refresh").status_code == 401
    assert client.post(f"{AUTH}/logout-all").status_code == 200


def test_me_requires_valid_bearer(client, clock):
    token = client.post(f"{AUTH}/register", json=ALICE).json()["accessToken"]

    response = client.get(f"{AUTH}/me", headers=_bearer(token))
    assert response.status_code == 200
    assert response.json()["username"] == "alice"

    assert client.get(f"{AUTH}/me").status_code == 401
    assert client.get(f"{AUTH}/me", headers=_bearer("garbage")).status_code == 401

    clock.advance(minutes=16)
    response = client.get(f"{AUTH}/me", headers=_bearer(token))
    assert response.status_code == 401
    assert response.json()["error"] == "Invalid or expired token"


def test_me_for_deleted_user_is_unauthenticated(client, db):
    token = client.post(f"{AUTH}/register", json=ALICE).json()["accessToken"]
    db.query(User).filter(User.username == "alice").delete()
    db.commit()

    assert client.get(f"{AUTH}/me", headers=_bearer(token)).status_code == 401


def test_responses_carry_security_headers(client):
    response = client.post(f"{AUTH}/refresh")
    assert response.headers["X-Content-Type-Options"] == "nosniff"
    assert response.headers["Cache-Control"] == "no-store"
    assert response.headers["X-Request-ID"]
