"""Tests for the EEPROM field table, read planning and field decoders."""

import pytest

from ethtool_exporter import FieldMap, get_default_fieldmap
from ethtool_exporter.errors import UnknownEntryError
from ethtool_exporter.fieldmap import decode_int, decode_oui, decode_text
from ethtool_exporter.types import DecodeKind, FieldDef, InfoFlag


def test_default_table_layout() -> None:
    m = get_default_fieldmap()
    assert m.names == ["vendor", "oui", "product", "revision", "wavelen", "serial", "mfgdate"]
    assert m.lookup("serial") == FieldDef("serial", 0x44, 16, InfoFlag.SERIAL, DecodeKind.TEXT)
    assert m.lookup("wavelen").kind == DecodeKind.INT
    assert m.lookup("mfgdate").flag == InfoFlag.DATE


def test_lookup_unknown_raises() -> None:
    with pytest.raises(UnknownEntryError) as exc_info:
        get_default_fieldmap().lookup("color")
    assert exc_info.value.entry == "color"


def test_plan_all_fields_two_reads() -> None:
    spans = get_default_fieldmap().plan(InfoFlag.ALL)
    assert [(s.offset, s.length) for s in spans] == [(0x14, 0x2A), (0x44, 0x18)]
    assert [f.name for f in spans[0].fields] == ["vendor", "oui", "product", "revision", "wavelen"]
    assert [f.name for f in spans[1].fields] == ["serial", "mfgdate"]


def test_plan_single_field() -> None:
    spans = get_default_fieldmap().plan(InfoFlag.SERIAL)
    assert [(s.offset, s.length) for s in spans] == [(0x44, 16)]


def test_plan_nothing_selected() -> None:
    assert get_default_fieldmap().plan(0) == []
    assert get_default_fieldmap().plan(InfoFlag.ALLOW_CACHE) == []


def test_plan_skips_unselected_fields_between() -> None:
    # vendor and revision are too far apart to share a read
    spans = get_default_fieldmap().plan(InfoFlag.VENDOR | InfoFlag.REVISION)
    assert len(spans) == 2
    spans = get_default_fieldmap().plan(InfoFlag.REVISION | InfoFlag.WAVELEN)
    assert [(s.offset, s.length) for s in spans] == [(0x38, 6)]


@pytest.fixture
def gap_map() -> FieldMap:
    return FieldMap(
        [
            FieldDef("a", 0, 2, InfoFlag.VENDOR, DecodeKind.TEXT),
            FieldDef("b", 6, 2, InfoFlag.OUI, DecodeKind.TEXT),
            FieldDef("c", 13, 2, InfoFlag.PRODUCT, DecodeKind.TEXT),
        ]
    )


def test_plan_merges_gap_of_four(gap_map: FieldMap) -> None:
    spans = gap_map.plan(InfoFlag.VENDOR | InfoFlag.OUI)
    assert [(s.offset, s.length) for s in spans] == [(0, 8)]


def test_plan_splits_gap_of_five(gap_map: FieldMap) -> None:
    spans = gap_map.plan(InfoFlag.OUI | InfoFlag.PRODUCT)
    assert [(s.offset, s.length) for s in spans] == [(6, 2), (13, 2)]


def test_decode_span_relative_offsets(gap_map: FieldMap) -> None:
    (span,) = gap_map.plan(InfoFlag.VENDOR | InfoFlag.OUI)
    assert gap_map.decode_span(span, b"ab\x00\x00\x00\x00cd") == {"a": "ab", "b": "cd"}


def test_unsorted_table_rejected() -> None:
    with pytest.raises(ValueError, match="not sorted"):
        FieldMap(
            [
                FieldDef("late", 0x40, 2, InfoFlag.VENDOR, DecodeKind.TEXT),
                FieldDef("early", 0x10, 2, InfoFlag.OUI, DecodeKind.TEXT),
            ]
        )


def test_duplicate_field_rejected() -> None:
    with pytest.raises(ValueError, match="Duplicate field"):
        FieldMap(
            [
                FieldDef("x", 0x10, 2, InfoFlag.VENDOR, DecodeKind.TEXT),
                FieldDef("x", 0x20, 2, InfoFlag.OUI, DecodeKind.TEXT),
            ]
        )


def test_fielddef_validation() -> None:
    with pytest.raises(ValueError):
        FieldDef("neg", -1, 2, InfoFlag.VENDOR, DecodeKind.TEXT)
    with pytest.raises(ValueError):
        FieldDef("empty", 0, 0, InfoFlag.VENDOR, DecodeKind.TEXT)
    with pytest.raises(ValueError):
        FieldDef("oui", 0, 4, InfoFlag.OUI, DecodeKind.OUI)


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        (b"FINISAR CORP.   ", "FINISAR CORP."),
        (b"  LEAD\x00\x00", "  LEAD"),
        (b"A\x00B  ", "A\x00B"),
        (b"\x00\x00\x00\x00", ""),
        (b"\xe9t\xe9", "été"),
    ],
)
def test_decode_text(raw: bytes, expected: str) -> None:
    assert decode_text(raw) == expected


def test_decode_int() -> None:
    assert decode_int(b"\x03\x52") == "850"
    assert decode_int(b"\x05\x1e") == "1310"
    assert decode_int(b"\x00\x00") == "0"


def test_decode_oui() -> None:
    assert decode_oui(b"\x00\x90\x65") == "00:90:65"
    assert decode_oui(b"\xac\xde\x48") == "ac:de:48"
