"""EthtoolSocket: SIOCETHTOOL ioctl requests over one lazily opened, process-wide datagram socket."""

import ctypes
import errno as errno_mod
import fcntl
import logging
import os
import socket
import threading
from typing import Any

from .errors import TransportError
from .types import ETH_MODULE_SFF_8472_LEN

logger = logging.getLogger(__name__)

# linux/sockios.h, linux/ethtool.h
SIOCETHTOOL = 0x8946
ETHTOOL_GMODULEINFO = 0x00000042
ETHTOOL_GMODULEEEPROM = 0x00000043
IFNAMSIZ = 16


class IfReq(ctypes.Structure):
    # ifr_data member of the ifreq union; padding covers the largest union member
    _fields_ = [
        ("ifr_name", ctypes.c_char * IFNAMSIZ),
        ("ifr_data", ctypes.c_void_p),
        ("_pad", ctypes.c_ubyte * 24),
    ]


class EthtoolModInfo(ctypes.Structure):
    _fields_ = [
        ("cmd", ctypes.c_uint32),
        ("type", ctypes.c_uint32),
        ("eeprom_len", ctypes.c_uint32),
        ("reserved", ctypes.c_uint32 * 8),
    ]


class EthtoolEeprom(ctypes.Structure):
    _fields_ = [
        ("cmd", ctypes.c_uint32),
        ("magic", ctypes.c_uint32),
        ("offset", ctypes.c_uint32),
        ("len", ctypes.c_uint32),
        ("data", ctypes.c_ubyte * ETH_MODULE_SFF_8472_LEN),
    ]


def _encode_ifname(ifname: str) -> bytes:
    # sysfs names are raw bytes; glob hands back undecodable ones surrogate-escaped
    raw = os.fsencode(ifname)
    if not raw or len(raw) >= IFNAMSIZ:
        raise TransportError(f"Invalid interface name: {ifname!r}", ifname=ifname, errno=errno_mod.EINVAL)
    return raw


class EthtoolSocket:
    """
    Issues ethtool ioctls on behalf of every interface.
    The socket is created on first use and shared by all worker threads;
    each request is a single blocking ioctl call.
    """

    def __init__(self) -> None:
        self._sock: socket.socket | None = None
        self._lock = threading.Lock()

    def _get_socket(self) -> socket.socket:
        with self._lock:
            if self._sock is None:
                try:
                    self._sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM, socket.IPPROTO_IP)
                except OSError as e:
                    raise TransportError(f"Cannot open ethtool socket: {e}", errno=e.errno, cause=e) from e
                logger.debug("Opened ethtool socket fd=%d", self._sock.fileno())
            return self._sock

    def _ioctl(self, ifname: str, data: ctypes.Structure) -> None:
        ifr = IfReq(ifr_name=_encode_ifname(ifname), ifr_data=ctypes.addressof(data))
        sock = self._get_socket()
        try:
            fcntl.ioctl(sock.fileno(), SIOCETHTOOL, ifr)
        except OSError as e:
            raise TransportError(f"{ifname}: {e.strerror or e}", ifname=ifname, errno=e.errno, cause=e) from e

    def module_info(self, ifname: str) -> tuple[int, int]:
        """Return (module type, EEPROM length) of the transceiver on ifname."""
        modinfo = EthtoolModInfo(cmd=ETHTOOL_GMODULEINFO)
        self._ioctl(ifname, modinfo)
        return int(modinfo.type), int(modinfo.eeprom_len)

    def read_eeprom(self, ifname: str, offset: int, length: int) -> bytes:
        """Read up to length bytes of module EEPROM starting at offset."""
        length = min(length, ETH_MODULE_SFF_8472_LEN)
        eeprom = EthtoolEeprom(cmd=ETHTOOL_GMODULEEEPROM, offset=offset, len=length)
        self._ioctl(ifname, eeprom)
        return bytes(eeprom.data[: min(eeprom.len, length)])

    def close(self) -> None:
        """Close the socket; the next request opens a new one."""
        with self._lock:
            if self._sock is not None:
                try:
                    self._sock.close()
                except OSError as e:
                    logger.warning("Error closing ethtool socket: %s", e)
                self._sock = None

    def __enter__(self) -> "EthtoolSocket":
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()
