from chatrooms.core.security import create_access_token, hash_password, verify_password
from chatrooms.models.orm import User


def test_register_returns_user_and_token(client):
    response = client.post(
        "/register", json={"name": "Alice", "email": "Alice@Example.com", "password": "secret-password"}
    )

    assert response.status_code == 201
    body = response.json()
    assert body["user"]["name"] == "Alice"
    assert body["user"]["email"] == "alice@example.com"
    assert body["token_type"] == "Bearer"
    assert body["access_token"]
    assert "password_hash" not in body["user"]


def test_register_rejects_taken_email(client, alice):
    response = client.post(
        "/register", json={"name": "Other", "email": "alice@example.com", "password": "secret-password"}
    )

    assert response.status_code == 400
    assert response.json() == {"error": "The email has already been taken."}


def test_register_validation_errors_are_400(client):
    response = client.post("/register", json={"name": "Alice", "email": "not-an-email", "password": "short"})

    assert response.status_code == 400
    body = response.json()
    assert body["error"] == "Validation errors occurred"
    fields = {detail["field"] for detail in body["details"]}
    assert {"email", "password"} <= fields


def test_login(client, alice):
    response = client.post("/login", json={"email": "alice@example.com", "password": "secret-password"})

    assert response.status_code == 200
    assert response.json()["user"]["id"] == alice["id"]


def test_login_with_wrong_password(client, alice):
    response = client.post("/login", json={"email": "alice@example.com", "password": "wrong-password"})

    assert response.status_code == 401
    assert response.json() == {"error": "Invalid credentials"}


def test_protected_routes_require_a_token(client):
    for method, path in [
        ("get", "/user"),
        ("get", "/chatrooms"),
        ("post", "/chatrooms/1/join"),
        ("post", "/chatrooms/1/leave"),
        ("get", "/chatrooms/1/messages"),
    ]:
        response = getattr(client, method)(path)
        assert response.status_code == 401, path
        assert response.json() == {"error": "Not authenticated"}


def test_garbage_token_is_rejected(client):
    response = client.get("/user", headers={"Authorization": "Bearer not-a-jwt"})

    assert response.status_code == 401


def test_current_user(client, alice):
    response = client.get("/user", headers=alice["headers"])

    assert response.status_code == 200
    assert response.json()["name"] == "Alice"


def test_logout_revokes_issued_tokens(client, alice):
    response = client.post("/logout", headers=alice["headers"])
    assert response.status_code == 200
    assert response.json() == {"message": "Logged out"}

    assert client.get("/user", headers=alice["headers"]).status_code == 401

    fresh = client.post("/login", json={"email": "alice@example.com", "password": "secret-password"}).json()
    headers = {"Authorization": f"Bearer {fresh['access_token']}"}
    assert client.get("/user", headers=headers).status_code == 200


def test_tokens_of_other_users_stay_valid_after_logout(client, alice, make_user):
    bob = make_user("Bob")
    client.post("/logout", headers=alice["headers"])

    assert client.get("/user", headers=bob["headers"]).status_code == 200


def test_password_hashing():
    hashed = hash_password("correct horse")

    assert hashed.startswith("pbkdf2_sha256$")
    assert verify_password("correct horse", hashed)
    assert not verify_password("battery staple", hashed)
    assert not verify_password("correct horse", "garbage")


def test_token_for_deleted_user_is_rejected(client, db):
    user = User(name="Ghost", email="ghost@example.com", password_hash=hash_password("x" * 8))
    db.add(user)
    db.commit()
    token = create_access_token(user)
    db.delete(user)
    db.commit()

    response = client.get("/user", headers={"Authorization": f"Bearer {token}"})

    assert response.status_code == 401
