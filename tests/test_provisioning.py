import pytest

from museum.entities import ModifiedObject
from museum.provisioning import ThemeProvisioner
from museum.schemas import ModifiedCreateRequest
from museum.theme_catalog import ThemeCatalog, ThemeTemplate


@pytest.fixture
def user_id(backend):
    return backend.users.signup("owner@museum.test", "secret123")["id"]


def _catalog(templates):
    return ThemeCatalog().with_templates({3: templates})


def _owned_ids(backend, user_id):
    session = backend.SessionFactory()
    try:
        return backend.modified_ids_for(session, user_id)
    finally:
        session.close()


def _load(backend, modified_id):
    session = backend.SessionFactory()
    try:
        return session.get(ModifiedObject, modified_id)
    finally:
        session.close()


def test_placeholder_theme_is_skipped(backend, user_id):
    result = backend.provisioner.provision_default_objects(3, user_id)
    assert result.success is False
    assert result.created_ids == []
    assert "not configured" in result.error
    assert _owned_ids(backend, user_id) == []


def test_unknown_theme(backend, user_id):
    result = backend.provisioner.provision_default_objects(9, user_id)
    assert result.success is False
    assert "Invalid theme" in result.error


def test_unknown_user(backend, session_factory, seed_object):
    seed_object(object_id="preset-a")
    provisioner = ThemeProvisioner(session_factory, _catalog([ThemeTemplate("preset-a", 0.5, 0.5)]))
    result = provisioner.provision_default_objects(3, "no-such-user")
    assert result.success is False
    assert result.error == "User not found"


def test_partial_provisioning_skips_missing_originals(backend, session_factory, seed_object, user_id):
    original = seed_object(object_id="preset-a", name="Street Lamp", surface="Floor")
    provisioner = ThemeProvisioner(session_factory, _catalog([
        ThemeTemplate("preset-a", 0.75, 0.4, is_reversed=True),
        ThemeTemplate("preset-missing", 0.3, 0.35),
    ]))

    result = provisioner.provision_default_objects(3, user_id)

    assert result.success is True
    assert len(result.created_ids) == 1
    assert _owned_ids(backend, user_id) == result.created_ids

    obj = _load(backend, result.created_ids[0])
    assert obj.original_object_id == "preset-a"
    assert obj.name == "Street Lamp"
    assert obj.placement_surface == "Floor"
    assert (obj.coordinate_x, obj.coordinate_y, obj.is_reversed) == (0.75, 0.4, True)
    assert obj.interaction_behavior is None
    assert all("id" not in v for v in obj.image_variants)
    assert "id" not in obj.current_image_variant
    assert len(obj.image_variants) == len(original["imageSets"])
    assert obj.provenance == {
        "originalObjectId": "preset-a",
        "userId": user_id,
        "themeId": 3,
        "objectIndex": 0,
        "isDefaultObject": True,
    }


def test_all_originals_missing_reports_failure(backend, session_factory, user_id):
    provisioner = ThemeProvisioner(session_factory, _catalog([
        ThemeTemplate("gone-1", 0.1, 0.1),
        ThemeTemplate("gone-2", 0.2, 0.2),
    ]))
    result = provisioner.provision_default_objects(3, user_id)
    assert result.success is False
    assert result.created_ids == []
    assert _owned_ids(backend, user_id) == []


def test_template_with_bad_payload_is_skipped(backend, session_factory, seed_object, user_id):
    seed_object(object_id="preset-a")
    seed_object(object_id="preset-b")
    provisioner = ThemeProvisioner(session_factory, _catalog([
        ThemeTemplate("preset-a", 0.1, 0.1, interaction_behavior="Link", freeform_payload={}),
        ThemeTemplate("preset-b", 0.2, 0.2, interaction_behavior="Link", freeform_payload={"link": "https://a.b"}),
    ]))
    result = provisioner.provision_default_objects(3, user_id)
    assert result.success is True
    assert len(result.created_ids) == 1
    obj = _load(backend, result.created_ids[0])
    assert obj.freeform_payload["link"] == "https://a.b"
    assert obj.provenance["objectIndex"] == 1


def test_provisioning_twice_creates_duplicates(backend, session_factory, seed_object, user_id):
    seed_object(object_id="preset-a")
    seed_object(object_id="preset-b")
    provisioner = ThemeProvisioner(session_factory, _catalog([
        ThemeTemplate("preset-a", 0.75, 0.4),
        ThemeTemplate("preset-b", 0.3, 0.35),
    ]))
    first = provisioner.provision_default_objects(3, user_id)
    second = provisioner.provision_default_objects(3, user_id)
    assert len(first.created_ids) == 2
    assert len(second.created_ids) == 2
    assert set(first.created_ids).isdisjoint(second.created_ids)
    assert _owned_ids(backend, user_id) == first.created_ids + second.created_ids


def test_remove_default_objects_keeps_user_placed(backend, session_factory, seed_object, user_id):
    original = seed_object(object_id="preset-a")
    provisioner = ThemeProvisioner(session_factory, _catalog([ThemeTemplate("preset-a", 0.75, 0.4)]))
    provisioned = provisioner.provision_default_objects(3, user_id).created_ids

    placed = backend.modified.create(user_id, ModifiedCreateRequest.model_validate({
        "name": "My Clock",
        "originalObjectId": original["id"],
        "currentImageSetId": original["imageSets"][0]["id"],
        "itemFunction": None,
        "coordinates": {"x": 0.2, "y": 0.2},
    }))

    session = session_factory()
    try:
        removed = provisioner.remove_default_objects(session, user_id)
        session.commit()
    finally:
        session.close()

    assert removed == 1
    assert _owned_ids(backend, user_id) == [placed["id"]]
    assert _load(backend, provisioned[0]) is None


def test_defaults_from_user_made_original_are_not_user_made(backend, session_factory, seed_object, user_id):
    seed_object(object_id="made-1", name="Hand-drawn Kite", user_made=True)
    provisioner = ThemeProvisioner(session_factory, _catalog([ThemeTemplate("made-1", 0.5, 0.5)]))

    result = provisioner.provision_default_objects(3, user_id)

    assert result.success is True
    assert _load(backend, result.created_ids[0]).is_user_made is False
