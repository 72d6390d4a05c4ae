import pytest

from museum.errors import ValidationError
from museum.schemas import PROVENANCE_KEY, normalize_surface, validate_freeform_payload


def test_null_behavior_accepts_only_empty_payload():
    assert validate_freeform_payload(None, {}) == {}
    assert validate_freeform_payload(None, None) == {}
    with pytest.raises(ValidationError):
        validate_freeform_payload(None, {"x": 1})


def test_null_behavior_ignores_provenance_key():
    payload = {PROVENANCE_KEY: {"isDefaultObject": True, "themeId": 3}}
    clean = validate_freeform_payload(None, payload)
    assert clean == payload
    assert clean[PROVENANCE_KEY] is not payload[PROVENANCE_KEY]


def test_gallery_accepts_any_object():
    assert validate_freeform_payload("Gallery", {"images": ["a.png"], "anything": 1}) == {
        "images": ["a.png"],
        "anything": 1,
    }
    assert validate_freeform_payload("Gallery", {}) == {}


def test_link_requires_non_empty_link():
    assert validate_freeform_payload("Link", {"link": "https://example.com"}) == {"link": "https://example.com"}
    with pytest.raises(ValidationError) as exc:
        validate_freeform_payload("Link", {})
    assert "link" in exc.value.message
    with pytest.raises(ValidationError):
        validate_freeform_payload("Link", {"link": "   "})


def test_board_shape():
    board = {
        "data": {
            "title": "Guestbook",
            "description": "Leave a note",
            "items": [{"writer": "Mina", "text": "Miss you", "color": "#FFEEAA"}],
        }
    }
    assert validate_freeform_payload("Board", board) == board

    empty_items = {"data": {"title": "", "description": "", "items": []}}
    assert validate_freeform_payload("Board", empty_items) == empty_items


def test_board_rejects_single_bad_item():
    board = {
        "data": {
            "title": "Guestbook",
            "description": "Leave a note",
            "items": [
                {"writer": "Mina", "text": "Miss you", "color": "#FFEEAA"},
                {"writer": "", "text": "hello", "color": "#FFFFFF"},
            ],
        }
    }
    with pytest.raises(ValidationError) as exc:
        validate_freeform_payload("Board", board)
    assert "items.1.writer" in exc.value.message


def test_board_requires_data_block():
    with pytest.raises(ValidationError):
        validate_freeform_payload("Board", {"title": "no data wrapper"})


def test_unknown_behavior_and_non_object_payload():
    with pytest.raises(ValidationError):
        validate_freeform_payload("Video", {})
    with pytest.raises(ValidationError):
        validate_freeform_payload("Gallery", ["not", "an", "object"])


@pytest.mark.parametrize("raw,expected", [
    ("Wall", "Wall"),
    ("Floor", "Floor"),
    ("LeftWall", "Wall"),
    ("right_wall", "Wall"),
    ("ceiling", None),
    (None, None),
])
def test_normalize_surface(raw, expected):
    assert normalize_surface(raw) == expected
