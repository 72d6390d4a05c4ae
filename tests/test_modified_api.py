import pytest
from sqlalchemy.dialects import postgresql

from museum.entities import CapturedImage, CatalogObject, ModifiedObject, User
from museum.schemas import PROVENANCE_KEY


@pytest.fixture
def owner(client, register):
    return register(client, "owner@museum.test")


@pytest.fixture
def original(seed_object):
    return seed_object(object_id="clock-1", name="Grandfather Clock")


def _body(original, **overrides):
    body = {
        "name": "Grandpa's clock",
        "originalObjectId": original["id"],
        "currentImageSetId": original["imageSets"][1]["id"],
        "itemFunction": None,
        "coordinates": {"x": 0.4, "y": 0.6},
    }
    body.update(overrides)
    return body


def _create(client, headers, body):
    return client.post("/modified", json=body, headers=headers)


def test_create_with_null_behavior_and_empty_payload(client, owner, original):
    resp = _create(client, owner["headers"], _body(original, additionalData={}))
    assert resp.status_code == 201, resp.text
    data = resp.json()
    assert data["itemFunction"] is None
    assert data["additionalData"] == {}
    assert data["originalObjectId"] == original["id"]
    assert data["coordinates"] == {"x": 0.4, "y": 0.6}
    assert data["onType"] == "Wall"
    assert data["currentImageSet"] == {k: v for k, v in original["imageSets"][1].items() if k != "id"}
    assert data["imageSets"] == [{k: v for k, v in s.items() if k != "id"} for s in original["imageSets"]]

    profile = client.get("/auth/profile", headers=owner["headers"]).json()
    assert profile["modifiedObjectIds"] == [data["id"]]


def test_create_with_null_behavior_rejects_payload(client, owner, original):
    resp = _create(client, owner["headers"], _body(original, additionalData={"x": 1}))
    assert resp.status_code == 400
    assert "additionalData" in resp.json()["message"]
    assert client.get("/modified", headers=owner["headers"]).json() == []


def test_create_requires_known_original_and_variant(client, owner, original):
    resp = _create(client, owner["headers"], _body(original, originalObjectId="missing"))
    assert resp.status_code == 404

    resp = _create(client, owner["headers"], _body(original, currentImageSetId="not-a-variant"))
    assert resp.status_code == 400
    assert "currentImageSetId" in resp.json()["message"]


def test_create_rejects_original_without_variants(client, owner, seed_object):
    bare = seed_object(variant_count=0)
    resp = _create(client, owner["headers"], {
        "name": "Nothing",
        "originalObjectId": bare["id"],
        "currentImageSetId": "anything",
        "itemFunction": None,
        "coordinates": {"x": 0, "y": 0},
    })
    assert resp.status_code == 400


def test_create_requires_item_function_key(client, owner, original):
    body = _body(original)
    del body["itemFunction"]
    resp = _create(client, owner["headers"], body)
    assert resp.status_code == 400
    assert "itemFunction" in resp.json()["message"]


def test_create_link_and_board(client, owner, original):
    resp = _create(client, owner["headers"], _body(original, itemFunction="Link", additionalData={}))
    assert resp.status_code == 400

    resp = _create(client, owner["headers"], _body(
        original, itemFunction="Link", additionalData={"link": "https://memorial.example/video"}
    ))
    assert resp.status_code == 201
    assert resp.json()["additionalData"] == {"link": "https://memorial.example/video"}

    board = {"data": {"title": "Notes", "description": "", "items": [
        {"writer": "Jun", "text": "We remember", "color": "#AACCEE"},
        {"writer": "Ari", "text": "", "color": "#FFFFFF"},
    ]}}
    resp = _create(client, owner["headers"], _body(original, itemFunction="Board", additionalData=board))
    assert resp.status_code == 400
    assert "items.1.text" in resp.json()["message"]


def test_create_accepts_legacy_surface_and_strips_provenance(client, owner, original):
    resp = _create(client, owner["headers"], _body(
        original,
        onType="RightWall",
        itemFunction="Gallery",
        additionalData={"images": ["a.png"], PROVENANCE_KEY: {"isDefaultObject": True}},
    ))
    assert resp.status_code == 201
    data = resp.json()
    assert data["onType"] == "Wall"
    assert data["additionalData"] == {"images": ["a.png"]}


def test_delete_missing_is_404_and_foreign_is_403(client, register, owner, original):
    created = _create(client, owner["headers"], _body(original)).json()
    intruder = register(client, "intruder@museum.test")

    resp = client.delete("/modified/does-not-exist", headers=intruder["headers"])
    assert resp.status_code == 404

    resp = client.delete(f"/modified/{created['id']}", headers=intruder["headers"])
    assert resp.status_code == 403
    assert resp.json()["message"] == "Forbidden: You don't have permission to modify this object"

    resp = client.delete(f"/modified/{created['id']}", headers=owner["headers"])
    assert resp.status_code == 204
    assert client.get("/modified", headers=owner["headers"]).json() == []
    assert client.get("/auth/profile", headers=owner["headers"]).json()["modifiedObjectIds"] == []


def test_update_fields_and_ownership(client, register, owner, original):
    created = _create(client, owner["headers"], _body(original)).json()
    intruder = register(client, "intruder@museum.test")

    resp = client.patch(f"/modified/{created['id']}", json={"name": "Mine now"}, headers=intruder["headers"])
    assert resp.status_code == 403

    resp = client.patch(f"/modified/{created['id']}", json={
        "coordinates": {"x": 0.9, "y": 0.1},
        "isReversed": True,
        "currentImageSetId": original["imageSets"][0]["id"],
    }, headers=owner["headers"])
    assert resp.status_code == 200, resp.text
    data = resp.json()
    assert data["coordinates"] == {"x": 0.9, "y": 0.1}
    assert data["isReversed"] is True
    assert data["name"] == "Grandpa's clock"
    assert data["currentImageSet"] == {k: v for k, v in original["imageSets"][0].items() if k != "id"}


def test_update_validation(client, owner, original):
    created = _create(client, owner["headers"], _body(original)).json()
    url = f"/modified/{created['id']}"

    resp = client.patch(url, json={"imageSets": []}, headers=owner["headers"])
    assert resp.status_code == 400
    assert resp.json()["message"] == "imageSets cannot be modified"

    resp = client.patch(url, json={}, headers=owner["headers"])
    assert resp.status_code == 400

    resp = client.patch(url, json={"itemFunction": "Link"}, headers=owner["headers"])
    assert resp.status_code == 400

    resp = client.patch(url, json={"itemFunction": "Link", "additionalData": {"link": "https://a.b"}},
                        headers=owner["headers"])
    assert resp.status_code == 200
    assert resp.json()["itemFunction"] == "Link"

    resp = client.patch(url, json={"itemFunction": None}, headers=owner["headers"])
    assert resp.status_code == 400

    resp = client.patch(url, json={"itemFunction": None, "additionalData": {}}, headers=owner["headers"])
    assert resp.status_code == 200
    assert resp.json()["itemFunction"] is None


def test_update_keeps_provenance(backend, client, owner, original, session_factory):
    created = _create(client, owner["headers"], _body(original)).json()
    session = session_factory()
    try:
        obj = session.get(ModifiedObject, created["id"])
        obj.freeform_payload = {PROVENANCE_KEY: {"isDefaultObject": True, "themeId": 2}}
        session.commit()
    finally:
        session.close()

    resp = client.patch(f"/modified/{created['id']}", json={
        "itemFunction": "Gallery",
        "additionalData": {"images": [], PROVENANCE_KEY: {"forged": True}},
    }, headers=owner["headers"])
    assert resp.status_code == 200
    assert resp.json()["additionalData"] == {
        "images": [],
        PROVENANCE_KEY: {"isDefaultObject": True, "themeId": 2},
    }


def test_list_is_newest_first_and_per_owner(client, register, owner, original):
    first = _create(client, owner["headers"], _body(original, name="first")).json()
    second = _create(client, owner["headers"], _body(original, name="second")).json()
    other = register(client, "other@museum.test")
    _create(client, other["headers"], _body(original, name="theirs"))

    listed = client.get("/modified", headers=owner["headers"]).json()
    assert [o["id"] for o in listed] == [second["id"], first["id"]]


def test_requires_authentication(client, original):
    assert client.get("/modified").status_code == 401
    assert client.post("/modified", json=_body(original)).status_code == 401
    resp = client.get("/modified", headers={"Authorization": "Bearer not-a-jwt"})
    assert resp.status_code == 401


@pytest.mark.parametrize("entity", [User, CatalogObject, ModifiedObject, CapturedImage])
def test_ids_are_plain_text_on_postgres(entity):
    assert entity.__table__.c.id.type.compile(dialect=postgresql.dialect()) == "VARCHAR(36)"


@pytest.mark.parametrize("bad_id", ["not-a-uuid", "1234", "zzzzzzzz-zzzz-zzzz-zzzz-zzzzzzzzzzzz"])
def test_malformed_ids_are_not_found(client, owner, original, bad_id):
    assert client.delete(f"/modified/{bad_id}", headers=owner["headers"]).status_code == 404
    resp = _create(client, owner["headers"], _body(original, originalObjectId=bad_id))
    assert resp.status_code == 404
