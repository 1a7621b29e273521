"""Core data model: decode kinds, info flags, field definitions, diagnostics and collection records."""

from dataclasses import dataclass, field
from enum import Enum, IntFlag

# Module type reported by ETHTOOL_GMODULEINFO for SFF-8472 transceivers
ETH_MODULE_SFF_8472 = 0x2
ETH_MODULE_SFF_8472_LEN = 512


class DecodeKind(str, Enum):
    """How the raw bytes of an EEPROM field are turned into text."""

    TEXT = "text"
    INT = "int"
    OUI = "oui"


class InfoFlag(IntFlag):
    """Selects EEPROM identity fields; ALLOW_CACHE permits serving them from the serial cache."""

    VENDOR = 1 << 0
    OUI = 1 << 1
    PRODUCT = 1 << 2
    REVISION = 1 << 3
    WAVELEN = 1 << 4
    SERIAL = 1 << 5
    DATE = 1 << 6
    ALL = 0x3FFF
    ALLOW_CACHE = 0x4000


@dataclass(frozen=True)
class FieldDef:
    """Static EEPROM field: byte offset and length on page A0, flag bit and decoder."""

    name: str
    offset: int
    length: int
    flag: InfoFlag
    kind: DecodeKind

    def __post_init__(self) -> None:
        if self.offset < 0:
            raise ValueError(f"offset must be >= 0, got {self.offset}")
        if self.length < 1:
            raise ValueError(f"length must be >= 1, got {self.length}")
        if self.kind == DecodeKind.OUI and self.length != 3:
            raise ValueError(f"OUI field {self.name!r} must be 3 bytes, got {self.length}")

    @property
    def end(self) -> int:
        return self.offset + self.length


@dataclass(frozen=True)
class ReadSpan:
    """One planned EEPROM read covering one or more adjacent fields."""

    offset: int
    length: int
    fields: tuple[FieldDef, ...]


@dataclass(frozen=True)
class ModuleHandle:
    """Transceiver plugged into one interface, as reported by ETHTOOL_GMODULEINFO."""

    ifname: str
    module_type: int
    eeprom_len: int


@dataclass(frozen=True)
class Diagnostics:
    """Live SFF-8472 diagnostics converted to physical units."""

    temperature_c: float
    voltage_v: float
    bias_ma: float
    transmit_mw: float
    receive_mw: float
    transmit_dbm: float
    receive_dbm: float


@dataclass(frozen=True)
class CollectionRecord:
    """Result of collecting one interface; diagnostics is None whenever error is set."""

    iface: str
    error: Exception | None = None
    tags: dict[str, str] = field(default_factory=dict)
    diagnostics: Diagnostics | None = None

    def __post_init__(self) -> None:
        if self.error is not None and self.diagnostics is not None:
            raise ValueError("a failed record must not carry diagnostics")
        if self.error is None and self.diagnostics is None:
            raise ValueError("a successful record must carry diagnostics")

    @property
    def present(self) -> bool:
        return self.error is None
