"""Shared fixtures: fake transport with one SFF-8472 module and a fake sysfs tree."""

from pathlib import Path

import pytest

from ethtool_exporter.types import ETH_MODULE_SFF_8472

from fakes import FakeTransport, make_eeprom


@pytest.fixture
def eeprom() -> bytes:
    return make_eeprom()


@pytest.fixture
def transport(eeprom: bytes) -> FakeTransport:
    return FakeTransport({"eth0": (ETH_MODULE_SFF_8472, eeprom)})


@pytest.fixture
def make_sysfs(tmp_path: Path):
    """Create <tmp>/<pci>/net/<iface> directories and return the matching glob."""

    def _make(*ifaces: str) -> str:
        for i, iface in enumerate(ifaces):
            (tmp_path / f"0000:0{i}:00.0" / "net" / iface).mkdir(parents=True)
        return str(tmp_path / "*:*" / "net" / "*")

    return _make
