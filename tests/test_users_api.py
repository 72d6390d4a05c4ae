import pytest

from museum.errors import ValidationError
from museum.theme_catalog import ThemeCatalog, ThemeTemplate


@pytest.fixture
def seeded_catalog(seed_object):
    seed_object(object_id="lamp-1", name="Street Lamp", surface="Floor")
    seed_object(object_id="bench-1", name="Bench", surface="Floor")
    return ThemeCatalog().with_templates({
        3: [ThemeTemplate("lamp-1", 0.75, 0.4), ThemeTemplate("bench-1", 0.3, 0.35)],
    })


def test_signup_login_and_theme_change(client, register):
    signed = register(client, "Visitor@Museum.test", password="pw-123456")
    assert signed["email"] == "visitor@museum.test"

    resp = client.post("/auth/login", json={"email": "visitor@museum.test", "password": "pw-123456"})
    assert resp.status_code == 200
    headers = {"Authorization": f"Bearer {resp.json()['token']}"}

    resp = client.put("/users/theme/3", headers=headers)
    assert resp.status_code == 200, resp.text
    body = resp.json()
    assert body["success"] is True
    assert body["message"] == "Theme updated successfully."
    assert body["data"]["themeId"] == 3
    assert body["data"]["weather"] == "night"
    assert body["data"]["defaultObjectsAdded"] == 0
    assert set(body["data"]["colors"]) == {"floorColor", "leftWallColor", "rightWallColor"}

    profile = client.get("/auth/profile", headers=headers).json()
    assert profile["themeId"] == 3
    assert profile["theme"]["weather"] == "night"
    assert profile["modifiedObjectIds"] == []


def test_signup_defaults_to_first_theme_state(client, register):
    user = register(client)
    profile = client.get("/auth/profile", headers=user["headers"]).json()
    assert profile["themeId"] is None
    assert profile["theme"]["weather"] == "sunny"
    assert profile["questionIndex"] == 0
    assert profile["objectIds"] == []


def test_theme_change_provisions_configured_defaults(make_client, register, seeded_catalog):
    client = make_client(seeded_catalog)
    user = register(client)

    resp = client.put("/users/theme/3", headers=user["headers"])
    assert resp.json()["data"]["defaultObjectsAdded"] == 2

    placed = client.get("/modified", headers=user["headers"]).json()
    assert sorted(o["name"] for o in placed) == ["Bench", "Street Lamp"]
    assert all(o["additionalData"]["provenance"]["isDefaultObject"] for o in placed)
    assert {(o["coordinates"]["x"], o["coordinates"]["y"]) for o in placed} == {(0.75, 0.4), (0.3, 0.35)}


def test_theme_change_replaces_previous_defaults(make_client, register, seeded_catalog):
    client = make_client(seeded_catalog)
    user = register(client)
    client.put("/users/theme/3", headers=user["headers"])

    lamp = client.get("/object/basic", headers=user["headers"]).json()
    lamp = next(o for o in lamp if o["id"] == "lamp-1")
    mine = client.post("/modified", json={
        "name": "My own lamp",
        "originalObjectId": "lamp-1",
        "currentImageSetId": lamp["imageSets"][0]["id"],
        "itemFunction": None,
        "coordinates": {"x": 0.5, "y": 0.5},
    }, headers=user["headers"]).json()

    resp = client.put("/users/theme/3", headers=user["headers"])
    assert resp.json()["data"]["defaultObjectsAdded"] == 2
    assert len(client.get("/modified", headers=user["headers"]).json()) == 3

    resp = client.put("/users/theme/4", headers=user["headers"])
    assert resp.status_code == 200
    assert resp.json()["data"]["defaultObjectsAdded"] == 0
    profile = client.get("/auth/profile", headers=user["headers"]).json()
    assert profile["modifiedObjectIds"] == [mine["id"]]
    assert profile["theme"]["weather"] == "raining"


@pytest.mark.parametrize("theme_id", ["0", "6", "abc", "-1"])
def test_invalid_theme_id(client, register, theme_id):
    user = register(client)
    resp = client.put(f"/users/theme/{theme_id}", headers=user["headers"])
    assert resp.status_code == 400
    assert resp.json()["message"] == "Invalid theme ID. Must be between 1 and 5."


def test_theme_change_requires_token(client):
    assert client.put("/users/theme/3").status_code == 401


def test_signup_validation(client, register):
    register(client, "taken@museum.test")
    resp = client.post("/auth/signup", json={"email": "TAKEN@museum.test", "password": "x"})
    assert resp.status_code == 409
    assert resp.json()["message"] == "Email already in use"

    resp = client.post("/auth/signup", json={"email": "not-an-email", "password": "x"})
    assert resp.status_code == 400

    resp = client.post("/auth/signup", json={"email": "a@b.co"})
    assert resp.status_code == 400


def test_login_failures(client, register):
    register(client, "someone@museum.test", password="right-password")
    resp = client.post("/auth/login", json={"email": "someone@museum.test", "password": "wrong"})
    assert resp.status_code == 401
    assert resp.json()["message"] == "Invalid email or password"
    resp = client.post("/auth/login", json={"email": "nobody@museum.test", "password": "wrong"})
    assert resp.status_code == 401


def test_verify_and_profile(client, register):
    user = register(client, "me@museum.test")
    resp = client.get("/auth/verify", headers=user["headers"])
    assert resp.json() == {"valid": True, "user": {"id": user["id"], "email": "me@museum.test", "name": None}}
    assert client.get("/auth/profile").status_code == 401


def test_invitation_and_music(client, register):
    user = register(client)
    resp = client.patch("/users/invitation", json={"invitation": "  Welcome to my museum  "}, headers=user["headers"])
    assert resp.status_code == 200
    assert resp.json()["invitation"] == "Welcome to my museum"

    resp = client.patch("/users/theme/music", json={"themeId": 2}, headers=user["headers"])
    assert resp.status_code == 200
    music = resp.json()["data"]["backgroundMusic"]
    profile = client.get("/auth/profile", headers=user["headers"]).json()
    assert profile["invitation"] == "Welcome to my museum"
    assert profile["theme"]["backgroundMusic"] == music
    assert profile["theme"]["weather"] == "sunny"

    resp = client.patch("/users/theme/music", json={"themeId": 9}, headers=user["headers"])
    assert resp.status_code == 400


def test_health(client):
    resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.json() == {"status": "ok", "database": True}


def test_password_is_not_trimmed(client, register):
    register(client, "spaces@museum.test", password="  secret123  ")
    resp = client.post("/auth/login", json={"email": "spaces@museum.test", "password": "secret123"})
    assert resp.status_code == 401
    resp = client.post("/auth/login", json={"email": "spaces@museum.test", "password": "  secret123  "})
    assert resp.status_code == 200


def test_password_longer_than_bcrypt_limit(client, register, backend):
    resp = client.post("/auth/signup", json={"email": "long@museum.test", "password": "x" * 80})
    assert resp.status_code == 400
    assert resp.json()["message"].startswith("password:")

    # multi-byte characters count by their encoded size
    resp = client.post("/auth/signup", json={"email": "long@museum.test", "password": "비" * 25})
    assert resp.status_code == 400

    with pytest.raises(ValidationError):
        backend.users.signup("direct@museum.test", "x" * 73)

    register(client, "edge@museum.test", password="x" * 72)
    resp = client.post("/auth/login", json={"email": "edge@museum.test", "password": "x" * 80})
    assert resp.status_code == 401
