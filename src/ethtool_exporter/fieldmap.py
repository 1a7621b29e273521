"""FieldMap: static SFF-8472 identity field table, read planning with gap merging, field decoders."""

import logging
from functools import lru_cache
from typing import Iterable

from .errors import UnknownEntryError
from .types import DecodeKind, FieldDef, InfoFlag, ReadSpan

logger = logging.getLogger(__name__)

# Merge reads separated by at most this many unrequested bytes
GAP_MERGE = 4

# Page A0 identity fields, SFF-8472 table 4-1. Must be sorted by offset.
SFF8472_FIELDS: tuple[FieldDef, ...] = (
    FieldDef("vendor", 0x14, 16, InfoFlag.VENDOR, DecodeKind.TEXT),
    FieldDef("oui", 0x25, 3, InfoFlag.OUI, DecodeKind.OUI),
    FieldDef("product", 0x28, 16, InfoFlag.PRODUCT, DecodeKind.TEXT),
    FieldDef("revision", 0x38, 4, InfoFlag.REVISION, DecodeKind.TEXT),
    FieldDef("wavelen", 0x3C, 2, InfoFlag.WAVELEN, DecodeKind.INT),
    FieldDef("serial", 0x44, 16, InfoFlag.SERIAL, DecodeKind.TEXT),
    FieldDef("mfgdate", 0x54, 8, InfoFlag.DATE, DecodeKind.TEXT),
)


def decode_text(buf: bytes) -> str:
    """Latin-1 text with trailing NULs and spaces removed; leading blanks are kept."""
    return buf.decode("latin-1").rstrip("\x00 ")


def decode_int(buf: bytes) -> str:
    """Big-endian unsigned integer as a decimal string."""
    return str(int.from_bytes(buf, "big"))


def decode_oui(buf: bytes) -> str:
    """IEEE company id as colon-separated hex, e.g. 00:90:65."""
    return ":".join(f"{b:02x}" for b in buf[:3])


_DECODERS = {
    DecodeKind.TEXT: decode_text,
    DecodeKind.INT: decode_int,
    DecodeKind.OUI: decode_oui,
}


def decode_field(defn: FieldDef, buf: bytes) -> str:
    """Decode the bytes of one field according to its DecodeKind."""
    return _DECODERS[defn.kind](buf)


class FieldMap:
    """
    Offset-sorted table of EEPROM identity fields.
    Plans the minimal set of device reads for a flag selection by merging
    fields that lie within GAP_MERGE bytes of each other.
    """

    def __init__(self, fields: Iterable[FieldDef] = SFF8472_FIELDS, gap_merge: int = GAP_MERGE) -> None:
        self._fields: tuple[FieldDef, ...] = tuple(fields)
        self._gap_merge = gap_merge
        self._by_name: dict[str, FieldDef] = {}
        prev: FieldDef | None = None
        for defn in self._fields:
            if defn.name in self._by_name:
                raise ValueError(f"Duplicate field in map: {defn.name}")
            if prev is not None and defn.offset < prev.offset:
                raise ValueError(f"Field table not sorted by offset: {defn.name!r} after {prev.name!r}")
            self._by_name[defn.name] = defn
            prev = defn
        logger.debug("FieldMap loaded: %d fields, gap merge %d", len(self._fields), gap_merge)

    def lookup(self, name: str) -> FieldDef:
        """Return FieldDef for a field name; raise UnknownEntryError if not in the table."""
        if name not in self._by_name:
            raise UnknownEntryError(name)
        return self._by_name[name]

    def plan(self, flags: int) -> list[ReadSpan]:
        """
        Walk the table once and group selected fields into read spans.
        A selected field starting more than gap_merge bytes past the end of the
        pending span flushes that span and starts a new one.
        """
        spans: list[ReadSpan] = []
        pending: list[FieldDef] = []
        start = end = 0
        for defn in self._fields:
            if not defn.flag & flags:
                continue
            if pending and defn.offset > end + self._gap_merge:
                spans.append(ReadSpan(start, end - start, tuple(pending)))
                pending = []
            if not pending:
                start, end = defn.offset, defn.end
            else:
                end = max(end, defn.end)
            pending.append(defn)
        if pending:
            spans.append(ReadSpan(start, end - start, tuple(pending)))
        return spans

    def decode_span(self, span: ReadSpan, buf: bytes) -> dict[str, str]:
        """Decode every field of a span from the buffer returned for it."""
        out: dict[str, str] = {}
        for defn in span.fields:
            pos = defn.offset - span.offset
            out[defn.name] = decode_field(defn, buf[pos : pos + defn.length])
        return out

    def __iter__(self):
        return iter(self._fields)

    def __len__(self) -> int:
        return len(self._fields)

    @property
    def names(self) -> list[str]:
        return [defn.name for defn in self._fields]


@lru_cache(maxsize=None)
def get_default_fieldmap() -> FieldMap:
    """Return the shared SFF-8472 field map."""
    return FieldMap()
