"""Tests for repair.py: the JSON repair ladder and metadata validation."""

import json

import pytest

import repair
from errors import EnrichmentParseError

_VALID = '{"summary": "Ruta clásica", "best_season": ["Verano", "Otoño"]}'


# ---------------------------------------------------------------------------
# Individual stages
# ---------------------------------------------------------------------------


def test_remove_trailing_commas_before_closers():
    assert (
        repair.remove_trailing_commas('{"a": 1, "b": [1, 2,],}')
        == '{"a": 1, "b": [1, 2]}'
    )


def test_remove_trailing_commas_leaves_commas_inside_strings():
    text = '{"a": "uno, dos,]", "b": 2,}'

    assert repair.remove_trailing_commas(text) == '{"a": "uno, dos,]", "b": 2}'


def test_remove_trailing_commas_drops_doubled_commas():
    assert repair.remove_trailing_commas('[1,, 2]') == "[1, 2]"


def test_insert_missing_commas_between_members():
    assert (
        repair.insert_missing_commas('{"a": "x" "b": 2 "c": true}')
        == '{"a": "x", "b": 2, "c": true}'
    )


def test_insert_missing_commas_between_objects_in_array():
    assert (
        repair.insert_missing_commas('[{"a": 1}\n{"a": 2}]')
        == '[{"a": 1},\n{"a": 2}]'
    )


def test_balance_brackets_closes_truncated_string_and_containers():
    text = '{"summary": "Una ruta", "gallery": [{"alt": "Ordesa", "url": "https://ma'

    balanced = repair.balance_brackets(text)

    data = json.loads(balanced)
    assert data["summary"] == "Una ruta"
    assert data["gallery"][0]["alt"] == "Ordesa"


def test_balance_brackets_gives_dangling_key_a_null():
    data = json.loads(repair.balance_brackets('{"summary": "x", "difficulty"'))

    assert data == {"summary": "x", "difficulty": None}


def test_balance_brackets_gives_dangling_colon_a_null():
    data = json.loads(repair.balance_brackets('{"summary": "x", "difficulty": '))

    assert data == {"summary": "x", "difficulty": None}


def test_balance_brackets_cuts_text_after_top_level_value():
    assert repair.balance_brackets('{"a": 1} trailing words') == '{"a": 1}'


def test_extract_payload_strips_code_fence():
    assert repair.extract_payload("```json\n" + _VALID + "\n```") == _VALID


def test_extract_payload_strips_leading_prose():
    assert repair.extract_payload("Aquí tienes el JSON:\n" + _VALID) == _VALID


def test_extract_payload_handles_unclosed_fence():
    assert repair.extract_payload("```json\n" + _VALID) == _VALID


def test_extract_payload_keeps_backticks_inside_strings():
    payload = json.dumps({"storytelling": "Usa ```gpx``` para el track"})

    assert repair.extract_payload("```json\n" + payload + "\n```") == payload


# ---------------------------------------------------------------------------
# repair_with_stage / repair_json_text
# ---------------------------------------------------------------------------


def test_valid_json_passes_strict():
    text, stage = repair.repair_with_stage(_VALID)

    assert stage == "strict"
    assert text == _VALID


def test_single_trailing_comma_repairs_to_stripped_equivalent():
    text, stage = repair.repair_with_stage('{"summary": "x", "dogs": "Atados",}')

    assert stage == "remove_trailing_commas"
    assert json.loads(text) == {"summary": "x", "dogs": "Atados"}


def test_missing_comma_repaired_by_second_stage():
    text, stage = repair.repair_with_stage('{"summary": "x"\n"dogs": "No"}')

    assert stage == "insert_missing_commas"
    assert json.loads(text) == {"summary": "x", "dogs": "No"}


def test_truncated_response_repaired_by_bracket_balancing():
    text, stage = repair.repair_with_stage('{"summary": "x", "safety_tips": ["Agua", "Cas')

    assert stage == "balance_brackets"
    assert json.loads(text) == {"summary": "x", "safety_tips": ["Agua", "Cas"]}


def test_valid_json_with_fenced_markdown_passes_strict():
    raw = json.dumps({"summary": "x", "storytelling": "Usa ```gpx``` para el track"})

    text, stage = repair.repair_with_stage(raw)

    assert stage == "strict"
    assert json.loads(text)["storytelling"] == "Usa ```gpx``` para el track"


def test_fenced_json_with_backticks_in_a_value_is_unwrapped():
    raw = "```json\n" + json.dumps({"storytelling": "a ```{\"b\": 1}``` c"}) + "\n```"

    text, stage = repair.repair_with_stage(raw)

    assert stage == "strict"
    assert json.loads(text) == {"storytelling": "a ```{\"b\": 1}``` c"}


def test_glued_coordinates_repaired_by_offset_comma():
    # The bare-token scan reads "43.1-4.8" as one token, so only the comma
    # at the decoder's error offset separates the pair.
    text, stage = repair.repair_with_stage('{"parking": [43.1-4.8]}')

    assert stage == "offset_comma"
    assert json.loads(text) == {"parking": [43.1, -4.8]}


def test_raw_newlines_inside_strings_are_tolerated():
    _, stage = repair.repair_with_stage('{"storytelling": "## Título\nTexto"}')

    assert stage == "strict"


@pytest.mark.parametrize(
    "raw",
    [
        _VALID,
        '{"a": [1, 2,],}',
        '```json\n{"a": "x" "b": 2}\n```',
        'Respuesta: {"a": {"b": [1, 2',
        '{"a": "texto \\u00',
        '{"a": 1} Espero que te sirva',
    ],
)
def test_repair_is_idempotent(raw):
    once = repair.repair_json_text(raw)

    assert repair.repair_json_text(once) == once
    json.loads(once, strict=False)


def test_unrecoverable_text_raises_with_excerpt():
    with pytest.raises(EnrichmentParseError) as excinfo:
        repair.repair_json_text("no hay ningún JSON aquí")

    assert excinfo.value.excerpt.startswith("no")


# ---------------------------------------------------------------------------
# parse_enrichment
# ---------------------------------------------------------------------------


def test_parse_enrichment_treats_nulls_as_defaults():
    raw = json.dumps(
        {
            "summary": None,
            "difficulty": "Difícil",
            "best_season": None,
            "location": {"region": "Aragón", "province": None},
            "hero_image": {"url": None, "alt": "Ordesa"},
        }
    )

    metadata, stage = repair.parse_enrichment(raw)

    assert stage == "strict"
    assert metadata.summary == ""
    assert metadata.difficulty == "Difícil"
    assert metadata.best_season == []
    assert metadata.location.province == ""
    assert metadata.hero_image.url == ""
    assert metadata.hero_image.alt == "Ordesa"


def test_parse_enrichment_coerces_numbers_to_text():
    metadata, _ = repair.parse_enrichment('{"duration": 5, "summary": "x"}')

    assert metadata.duration == "5"


def test_parse_enrichment_rejects_non_object():
    with pytest.raises(EnrichmentParseError, match="not an object"):
        repair.parse_enrichment("[1, 2, 3]")


def test_parse_enrichment_rejects_schema_mismatch():
    with pytest.raises(EnrichmentParseError, match="metadata schema"):
        repair.parse_enrichment('{"parking": [{"lat": "norte"}]}')


def test_parse_enrichment_accepts_camel_case_keys():
    raw = json.dumps(
        {
            "bestSeason": ["Verano"],
            "safetyTips": ["Lleva agua"],
            "heroImage": {"alt": "Monte Perdido"},
            "seo": {"metaTitle": "Ordesa", "keywords": ["ordesa"]},
            "approach_info": "Desde Torla",
        }
    )

    metadata, _ = repair.parse_enrichment(raw)

    assert metadata.best_season == ["Verano"]
    assert metadata.safety_tips == ["Lleva agua"]
    assert metadata.hero_image.alt == "Monte Perdido"
    assert metadata.seo.meta_title == "Ordesa"
    assert metadata.seo.keywords == ("ordesa",)
    assert metadata.approach_info == "Desde Torla"
