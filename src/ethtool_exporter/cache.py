"""ModuleCache: identity fields cached by transceiver serial number, shared by all collection threads."""

import logging
import threading

from .module import EthtoolModule
from .types import InfoFlag

logger = logging.getLogger(__name__)


def valid_serial(sn: str) -> bool:
    """
    A serial usable as cache key: more than 3 alphanumerics and only printable ASCII.
    Blank or garbage EEPROMs (all 0xff, control bytes) never validate.
    """
    alnum = 0
    for ch in sn:
        if ch < " " or ch > "~":
            return False
        if ch.isascii() and ch.isalnum():
            alnum += 1
    return alnum > 3


class ModuleCache:
    """
    Read-through cache of identity tag sets keyed by serial number.
    With ALLOW_CACHE a repeat scrape of the same module costs one serial read
    instead of every identity field. Entries live for the process lifetime.
    """

    def __init__(self) -> None:
        self._entries: dict[str, dict[str, str]] = {}
        self._lock = threading.Lock()

    def get(self, serial: str) -> dict[str, str] | None:
        with self._lock:
            tags = self._entries.get(serial)
            return dict(tags) if tags is not None else None

    def put(self, serial: str, tags: dict[str, str]) -> None:
        with self._lock:
            self._entries[serial] = dict(tags)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def get_module_info(self, module: EthtoolModule, flags: int) -> dict[str, str]:
        """Return identity tags for module, serving them from the cache when ALLOW_CACHE is set."""
        serial: str | None = None
        if flags & InfoFlag.ALLOW_CACHE:
            serial = module.read_fields(InfoFlag.SERIAL).get("serial")
            if serial is not None and valid_serial(serial):
                cached = self.get(serial)
                if cached is not None:
                    logger.debug("%s: cache hit for serial %s", module.ifname, serial)
                    return cached
        if serial is not None:
            flags = flags & ~int(InfoFlag.SERIAL)
        tags = module.read_fields(flags)
        if serial is not None:
            tags["serial"] = serial
            if valid_serial(serial):
                self.put(serial, tags)
        return tags
