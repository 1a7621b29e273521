"""EthtoolModule: bounded EEPROM reads, coalesced identity field reads and SFF-8472 diagnostics."""

import logging
import math
import struct
from typing import Protocol

from .errors import EepromRangeError, NoEepromError, UnsupportedModuleError
from .fieldmap import FieldMap, get_default_fieldmap
from .types import ETH_MODULE_SFF_8472, Diagnostics, ModuleHandle

logger = logging.getLogger(__name__)

# Page A2 starts at 0x100 in the blob returned by the kernel; measurements at A2 byte 96
DIAG_OFFSET = 0x160
DIAG_LENGTH = 10

_DIAG_STRUCT = struct.Struct(">5H")

MULT_C = 1.0 / 256.0
MULT_V = 1.0 / 10000.0
MULT_MA = 1.0 / 500.0
MULT_MW = 1.0 / 10000.0


class Transport(Protocol):
    def module_info(self, ifname: str) -> tuple[int, int]: ...

    def read_eeprom(self, ifname: str, offset: int, length: int) -> bytes: ...


def mw_to_dbm(mw: float) -> float:
    """Optical power in dBm; zero power gives -inf instead of raising."""
    if mw <= 0.0:
        return -math.inf
    return 10.0 * math.log10(mw)


def decode_diagnostics(data: bytes) -> Diagnostics:
    """
    Convert the 10-byte measurement block into physical units.

    Layout (network byte order, 16-bit each):
    temperature 1/256 C, supply voltage 1/10000 V, laser bias 2 uA,
    tx power 1/10000 mW, rx power 1/10000 mW.
    """
    temp, volt, bias, tx, rx = _DIAG_STRUCT.unpack(data[:DIAG_LENGTH])
    tx_mw = tx * MULT_MW
    rx_mw = rx * MULT_MW
    return Diagnostics(
        temperature_c=temp * MULT_C,
        voltage_v=volt * MULT_V,
        bias_ma=bias * MULT_MA,
        transmit_mw=tx_mw,
        receive_mw=rx_mw,
        transmit_dbm=mw_to_dbm(tx_mw),
        receive_dbm=mw_to_dbm(rx_mw),
    )


class EthtoolModule:
    """
    Transceiver on one interface. Holds the module type and EEPROM length
    reported at open time and reads through a shared transport.
    """

    def __init__(self, handle: ModuleHandle, transport: Transport, fieldmap: FieldMap | None = None) -> None:
        self.handle = handle
        self._transport = transport
        self._fieldmap = fieldmap if fieldmap is not None else get_default_fieldmap()

    @classmethod
    def open(cls, ifname: str, transport: Transport, fieldmap: FieldMap | None = None) -> "EthtoolModule":
        """Query module type and EEPROM length; raises TransportError if the driver refuses."""
        module_type, eeprom_len = transport.module_info(ifname)
        logger.debug("%s: module type 0x%x, eeprom length %d", ifname, module_type, eeprom_len)
        return cls(ModuleHandle(ifname, module_type, eeprom_len), transport, fieldmap)

    @property
    def ifname(self) -> str:
        return self.handle.ifname

    def _check_supported(self) -> None:
        if self.handle.module_type != ETH_MODULE_SFF_8472:
            raise UnsupportedModuleError(self.handle.module_type, self.ifname)

    def read(self, offset: int, length: int) -> bytes:
        """
        Read EEPROM bytes, clamping length to the end of the EEPROM.
        Reading exactly at the end returns b"".
        """
        eeprom_len = self.handle.eeprom_len
        if eeprom_len < 1:
            raise NoEepromError(self.ifname)
        if offset > eeprom_len:
            raise EepromRangeError(offset, eeprom_len)
        if offset == eeprom_len:
            return b""
        length = min(length, eeprom_len - offset)
        return self._transport.read_eeprom(self.ifname, offset, length)

    def read_fields(self, flags: int) -> dict[str, str]:
        """Read and decode the identity fields selected by flags, one device read per planned span."""
        self._check_supported()
        out: dict[str, str] = {}
        for span in self._fieldmap.plan(flags):
            buf = self.read(span.offset, span.length)
            out.update(self._fieldmap.decode_span(span, buf))
        return out

    def diagnostics(self) -> Diagnostics:
        """Read the live measurement block and decode it."""
        self._check_supported()
        data = self.read(DIAG_OFFSET, DIAG_LENGTH)
        if len(data) < DIAG_LENGTH:
            raise EepromRangeError(
                DIAG_OFFSET,
                self.handle.eeprom_len,
                f"ethtool: Short diagnostics read ({len(data)} of {DIAG_LENGTH} bytes).",
            )
        return decode_diagnostics(data)

    def __repr__(self) -> str:
        h = self.handle
        return f"EthtoolModule({h.ifname!r}, type=0x{h.module_type:x}, eeprom_len={h.eeprom_len})"
