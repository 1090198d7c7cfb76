import re

import pytest

from shipline.common.errors import CoercionError, ConfigError, DeserializationError
from shipline.common.models import FieldSpec, FieldType
from shipline.deserializers.regex import RegexDeserializer, coerce, parse_boolean, parse_number

FIELDS = [
    FieldSpec(name="lvl", type=FieldType.BOOLEAN, index=0),
    FieldSpec(name="n", type=FieldType.NUMBER, index=1),
    FieldSpec(name="msg", type=FieldType.STRING, index=2),
]
PATTERN = r"^(\w+) (\d+) (.*)$"


def test_deserialize_binds_groups_to_typed_fields():
    event = RegexDeserializer(PATTERN, FIELDS).deserialize("true 42 hello world")
    assert event == {"lvl": True, "n": 42, "msg": "hello world"}
    assert isinstance(event["n"], int)


def test_deserialize_preserves_field_order():
    event = RegexDeserializer(PATTERN, FIELDS).deserialize("false 7 x")
    assert list(event) == ["lvl", "n", "msg"]


def test_deserialize_requires_full_match():
    deserializer = RegexDeserializer(r"(\w+) (\d+)", FIELDS[:2])
    with pytest.raises(DeserializationError):
        deserializer.deserialize("true 42 trailing")


def test_deserialize_non_match_raises():
    with pytest.raises(DeserializationError) as exc_info:
        RegexDeserializer(PATTERN, FIELDS).deserialize("no-digits-here")
    assert exc_info.value.error_code == "DESERIALIZATION_ERROR"


def test_extra_groups_are_ignored():
    deserializer = RegexDeserializer(PATTERN, FIELDS[:1])
    assert deserializer.deserialize("true 42 hello") == {"lvl": True}


def test_extra_fields_are_skipped():
    fields = FIELDS + [FieldSpec(name="unused", type=FieldType.STRING, index=3)]
    event = RegexDeserializer(PATTERN, fields).deserialize("true 1 m")
    assert set(event) == {"lvl", "n", "msg"}


def test_unmatched_optional_group_is_skipped():
    deserializer = RegexDeserializer(r"(\w+)(?: (\d+))?", FIELDS[:2])
    assert deserializer.deserialize("true") == {"lvl": True}


def test_accepts_precompiled_pattern():
    deserializer = RegexDeserializer(re.compile(PATTERN), FIELDS)
    assert deserializer.deserialize("TRUE 3 a")["lvl"] is True


def test_bad_number_reports_the_failing_field():
    with pytest.raises(CoercionError) as exc_info:
        RegexDeserializer(r"^(\w+) (\w+) (.*)$", FIELDS).deserialize("true xx hello")
    assert exc_info.value.field == "n"
    assert exc_info.value.error_code == "COERCION_ERROR"
    assert isinstance(exc_info.value, DeserializationError)


def test_boolean_parse_never_raises():
    assert parse_boolean("true") is True
    assert parse_boolean("TrUe") is True
    assert parse_boolean("false") is False
    # Non-boolean text silently becomes False.
    assert parse_boolean("yes") is False
    assert parse_boolean("1") is False
    assert parse_boolean(" true") is False


@pytest.mark.parametrize(
    ("text", "expected"),
    [
        ("42", 42),
        ("-17", -17),
        ("1.5", 1.5),
        ("2e3", 2000.0),
        ("0x1F", 31),
        ("10L", 10),
        ("2.5f", 2.5),
    ],
)
def test_parse_number_picks_most_specific_type(text, expected):
    value = parse_number(text)
    assert value == expected
    assert type(value) is type(expected)


@pytest.mark.parametrize("text", ["", "abc", "1.2.3", "nan", "inf", "--1"])
def test_parse_number_rejects_garbage(text):
    with pytest.raises(ValueError):
        parse_number(text)


def test_coercion_text_round_trips():
    assert str(coerce("42", FieldType.NUMBER)) == "42"
    assert str(coerce("3.25", FieldType.NUMBER)) == "3.25"
    assert str(coerce("true", FieldType.BOOLEAN)).lower() == "true"
    assert str(coerce("false", FieldType.BOOLEAN)).lower() == "false"
    assert coerce("as-is", FieldType.STRING) == "as-is"


def test_fields_without_index_bind_by_position():
    deserializer = RegexDeserializer(r"(\w+) (\w+)", [FieldSpec("a"), FieldSpec("b")])
    assert deserializer.deserialize("x y") == {"a": "x", "b": "y"}


def test_field_index_must_match_position():
    with pytest.raises(ConfigError):
        RegexDeserializer(r"(\w+) (\w+)", [FieldSpec("a", index=1), FieldSpec("b", index=0)])
