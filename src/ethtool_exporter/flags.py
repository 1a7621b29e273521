"""Parse user-facing field names into InfoFlag selections."""

from typing import Iterable

from .fieldmap import FieldMap, get_default_fieldmap
from .types import InfoFlag

# Keywords accepted besides plain field names
_KEYWORDS: dict[str, InfoFlag] = {
    "ALL": InfoFlag.ALL,
    # CACHE implies every field: a cache hit returns the full stored tag set
    "CACHE": InfoFlag.ALL | InfoFlag.ALLOW_CACHE,
}


def parse_info_flags(names: Iterable[str], fieldmap: FieldMap | None = None) -> InfoFlag:
    """
    Combine field names (vendor, serial, ...) and the ALL / CACHE keywords into one flag set.

    Keywords are case-sensitive, as are field names.
    Raises UnknownEntryError naming the first string that is neither.
    """
    fmap = fieldmap if fieldmap is not None else get_default_fieldmap()
    flags = InfoFlag(0)
    for name in names:
        if name in _KEYWORDS:
            flags |= _KEYWORDS[name]
        else:
            flags |= fmap.lookup(name).flag
    return flags


def flag_names(flags: int, fieldmap: FieldMap | None = None) -> list[str]:
    """Field names selected by flags, in table order."""
    fmap = fieldmap if fieldmap is not None else get_default_fieldmap()
    return [defn.name for defn in fmap if defn.flag & flags]
