"""Clear exceptions for ethtool-exporter: device transport, EEPROM layout and configuration errors."""


class EthtoolExporterError(Exception):
    """Base exception for ethtool-exporter."""

    pass


class TransportError(EthtoolExporterError):
    """Raised when the ethtool ioctl channel cannot be opened or the driver rejects a request."""

    def __init__(
        self,
        message: str,
        *,
        ifname: str | None = None,
        errno: int | None = None,
        cause: BaseException | None = None,
    ) -> None:
        self.ifname = ifname
        self.errno = errno
        self.cause = cause
        super().__init__(message)


class UnsupportedModuleError(EthtoolExporterError):
    """Raised when the transceiver is not an SFF-8472 module."""

    def __init__(self, module_type: int, ifname: str | None = None) -> None:
        self.module_type = module_type
        self.ifname = ifname
        super().__init__(f"Unsupported module type: {module_type}")


class EepromRangeError(EthtoolExporterError):
    """Raised when a read starts beyond the EEPROM length reported by the driver."""

    def __init__(self, offset: int, eeprom_len: int, message: str | None = None) -> None:
        self.offset = offset
        self.eeprom_len = eeprom_len
        super().__init__(message or "ethtool: Offset out of bounds.")


class NoEepromError(EthtoolExporterError):
    """Raised when the driver reports a zero-length EEPROM."""

    def __init__(self, ifname: str | None = None) -> None:
        self.ifname = ifname
        super().__init__("ethtool: No EEPROM to read.")


class UnknownEntryError(EthtoolExporterError):
    """Raised when a requested field name is not in the EEPROM field table."""

    def __init__(self, entry: str, message: str | None = None) -> None:
        self.entry = entry
        super().__init__(message or f"Unknown entry {entry!r}")
