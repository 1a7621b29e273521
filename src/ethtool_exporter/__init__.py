"""ethtool-exporter: SFF-8472 transceiver diagnostics via SIOCETHTOOL, exported to Prometheus and InfluxDB."""

__version__ = "0.2.0"

from .cache import ModuleCache, valid_serial
from .collector import Exporter, TransceiverCollector
from .emitters import InfluxSink, PrometheusSink, RecordSink, escape_tag_value
from .errors import (
    EepromRangeError,
    EthtoolExporterError,
    NoEepromError,
    TransportError,
    UnknownEntryError,
    UnsupportedModuleError,
)
from .fieldmap import GAP_MERGE, FieldMap, get_default_fieldmap
from .flags import parse_info_flags
from .module import EthtoolModule
from .transport import EthtoolSocket
from .types import CollectionRecord, DecodeKind, Diagnostics, FieldDef, InfoFlag, ModuleHandle, ReadSpan

__all__ = [
    "__version__",
    "EthtoolExporterError",
    "EepromRangeError",
    "NoEepromError",
    "TransportError",
    "UnknownEntryError",
    "UnsupportedModuleError",
    "EthtoolSocket",
    "EthtoolModule",
    "ModuleCache",
    "valid_serial",
    "Exporter",
    "TransceiverCollector",
    "RecordSink",
    "PrometheusSink",
    "InfluxSink",
    "escape_tag_value",
    "GAP_MERGE",
    "FieldMap",
    "get_default_fieldmap",
    "parse_info_flags",
    "CollectionRecord",
    "DecodeKind",
    "Diagnostics",
    "FieldDef",
    "InfoFlag",
    "ModuleHandle",
    "ReadSpan",
]
