import uuid

from helper import SESSION_CODE_ALPHABET, generate_id, generate_session_code, to_camel_case


def test_to_camel_case():
    assert to_camel_case("anchor_story_points") == "anchorStoryPoints"
    assert to_camel_case("code") == "code"


def test_generate_session_code():
    code = generate_session_code()
    assert len(code) == 6
    assert set(code) <= set(SESSION_CODE_ALPHABET)
    assert not set("IO01") & set(SESSION_CODE_ALPHABET)


def test_generate_id_is_uuid():
    assert uuid.UUID(generate_id())
    assert generate_id() != generate_id()
