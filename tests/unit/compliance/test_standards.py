"""Unit tests for token standard types and the tagged field values."""

import pytest

from app.compliance.field_values import FieldBag, FieldValue, ValueKind
from app.compliance.standards import TokenStandard


@pytest.mark.parametrize(
    "raw,expected",
    [
        ("ASA", TokenStandard.ASA),
        ("arc3", TokenStandard.ARC3),
        ("ARC-19", TokenStandard.ARC19),
        ("arc_200", TokenStandard.ARC200),
        (" erc-20 ", TokenStandard.ERC20),
    ],
)
def test_token_standard_parse(raw, expected):
    assert TokenStandard.parse(raw) is expected


def test_token_standard_parse_rejects_unknown():
    with pytest.raises(ValueError, match="Unknown token standard"):
        TokenStandard.parse("ERC721")


def test_field_value_tags_bool_before_int():
    assert FieldValue.of(True).kind is ValueKind.BOOL
    assert FieldValue.of(1).kind is ValueKind.INT
    assert FieldValue.of(None).kind is ValueKind.NULL
    assert FieldValue.of(["x"]).kind is ValueKind.OTHER


def test_field_value_int_view():
    assert FieldValue.of("42").as_int() == 42
    assert FieldValue.of(3.0).as_int() == 3
    assert FieldValue.of(3.5).as_int() is None
    assert FieldValue.of(False).as_int() is None


def test_field_value_bool_view():
    assert FieldValue.of("TRUE").as_bool() is True
    assert FieldValue.of("no").as_bool() is None
    assert FieldValue.of(0).as_bool() is None


def test_field_bag_lookup_prefers_first_present_key():
    bag = FieldBag({"unit_name": "", "symbol": "HRB"})

    key, value = bag.lookup(("unit_name", "symbol"))

    assert key == "symbol"
    assert value.as_str() == "HRB"
    assert "unit_name" not in bag
