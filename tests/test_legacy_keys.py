import pytest

from vision_gateway.analyzers.legacy_keys import LEGACY_APP_KEYS, resolve_legacy_key
from vision_gateway.models.schemas import AnalysisType
from vision_gateway.utils.errors import InvalidAppKeyError


def test_table_has_exactly_three_keys():
    assert set(LEGACY_APP_KEYS) == {"fGr3Ase", "88330fgvv", "gie3faavv3r1"}


def test_table_is_read_only():
    with pytest.raises(TypeError):
        LEGACY_APP_KEYS["newKey"] = LEGACY_APP_KEYS["fGr3Ase"]


def test_tagging_key_has_two_fixed_tags():
    config = resolve_legacy_key("fGr3Ase")
    assert config.analysis_type is AnalysisType.TAGGING
    wire = config.payload_for("https://example.com/a.jpg").to_wire()
    assert wire == {
        "source": {"uri": "https://example.com/a.jpg"},
        "tag_definitions": [
            {"name": "prompt1", "description": "Tag for prompt1"},
            {"name": "prompt2", "description": "Tag for prompt2"},
        ],
    }
    assert config.echo() == wire["tag_definitions"]


def test_moderation_and_general_keys():
    moderation = resolve_legacy_key("88330fgvv")
    assert moderation.analysis_type is AnalysisType.MODERATION
    assert moderation.echo() == ["is it safe?"]

    general = resolve_legacy_key("gie3faavv3r1")
    assert general.analysis_type is AnalysisType.GENERAL
    assert general.payload_for("https://example.com/a.jpg").to_wire()["prompts"] == [
        "write a very long song about this image"
    ]


@pytest.mark.parametrize("key", ["", "fgr3ase", "unknown", "fGr3Ase "])
def test_unknown_key_is_rejected(key):
    with pytest.raises(InvalidAppKeyError) as exc:
        resolve_legacy_key(key)
    assert exc.value.status_code == 400
    assert exc.value.code == "INVALID_APP_KEY"
