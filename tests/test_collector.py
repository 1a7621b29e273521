"""Tests for interface discovery, partitioning and the collection pass."""

import io
import logging
import os
import re
import sys
import threading

import pytest

from ethtool_exporter import Exporter, RecordSink
from ethtool_exporter.collector import NO_MATCH_KEY, partition, partition_key
from ethtool_exporter.errors import TransportError, UnsupportedModuleError
from ethtool_exporter.transport import EthtoolSocket
from ethtool_exporter.types import ETH_MODULE_SFF_8472, CollectionRecord

from fakes import FakeTransport, make_eeprom


class ListSink(RecordSink):
    def __init__(self) -> None:
        self.records: list[CollectionRecord] = []
        self.threads: set[str] = set()
        self._lock = threading.Lock()

    def emit(self, record: CollectionRecord) -> None:
        with self._lock:
            self.records.append(record)
            self.threads.add(threading.current_thread().name)

    def by_iface(self) -> dict[str, CollectionRecord]:
        return {r.iface: r for r in self.records}


def test_partition_strips_trailing_digits() -> None:
    pattern = re.compile(r"^(.*[^0-9])")
    groups = partition(pattern, ["enp1s2f0", "enp1s2f1", "enp1s3f0"])
    assert list(groups.values()) == [["enp1s2f0", "enp1s2f1"], ["enp1s3f0"]]


def test_partition_full_parallel_default() -> None:
    groups = partition(re.compile("^(.*)$"), ["eth0", "eth1", "eth2"])
    assert len(groups) == 3


def test_partition_key_no_match() -> None:
    assert partition_key(re.compile(r"^eth(\d)"), "lo") == NO_MATCH_KEY


def test_partition_key_joins_captures() -> None:
    pattern = re.compile(r"^(enp\d+)s(\d+)")
    assert partition_key(pattern, "enp1s2f0") == "enp1\x022"
    # distinct capture tuples must not collide when concatenated
    assert partition_key(pattern, "enp11s2f0") != partition_key(re.compile(r"^(enp\d)(\d)s"), "enp11s2f0")


def test_partition_key_unmatched_optional_group() -> None:
    assert partition_key(re.compile(r"^(x)?(eth)"), "eth0") == "\x02eth"


def test_get_ifaces_sorted_unique(make_sysfs) -> None:
    pattern = make_sysfs("eth1", "eth0", "eth0")
    exporter = Exporter(path_globs=[pattern, pattern], transport=FakeTransport())
    assert exporter.get_ifaces() == ["eth0", "eth1"]


def test_get_ifaces_no_match() -> None:
    exporter = Exporter(path_globs=["/nonexistent/*/net/*"], transport=FakeTransport())
    assert exporter.get_ifaces() == []


@pytest.fixture
def mixed_transport() -> FakeTransport:
    return FakeTransport(
        {
            "eth0": (0x3, make_eeprom()),
            "eth1": (ETH_MODULE_SFF_8472, make_eeprom(serial=b"SN-1111")),
            "eth3": (ETH_MODULE_SFF_8472, make_eeprom(serial=b"SN-3333", length=256)),
        }
    )


def test_failures_do_not_stop_siblings(make_sysfs, mixed_transport: FakeTransport) -> None:
    glob = make_sysfs("eth0", "eth1", "eth2", "eth3")
    exporter = Exporter(path_globs=[glob], parallel=r"^(eth)", transport=mixed_transport)
    sink = ListSink()
    exporter.discover_and_collect(sink)

    # one partition: collected in order on the calling thread
    assert [r.iface for r in sink.records] == ["eth0", "eth1", "eth2", "eth3"]
    assert sink.threads == {threading.current_thread().name}

    records = sink.by_iface()
    assert isinstance(records["eth0"].error, UnsupportedModuleError)
    assert records["eth0"].diagnostics is None
    assert records["eth0"].tags == {}
    assert records["eth1"].error is None
    assert records["eth1"].tags["serial"] == "SN-1111"
    assert records["eth1"].diagnostics.voltage_v == pytest.approx(3.2889)
    assert isinstance(records["eth2"].error, TransportError)
    # identity readable but no diagnostics page: tags kept, error recorded
    assert records["eth3"].diagnostics is None
    assert records["eth3"].tags["serial"] == "SN-3333"


def test_partitions_run_concurrently(make_sysfs, mixed_transport: FakeTransport) -> None:
    glob = make_sysfs("eth0", "eth1", "eth2", "eth3")
    exporter = Exporter(path_globs=[glob], transport=mixed_transport)
    sink = ListSink()
    exporter.discover_and_collect(sink)

    assert sorted(r.iface for r in sink.records) == ["eth0", "eth1", "eth2", "eth3"]
    assert all(name.startswith("ethtool") for name in sink.threads)


def test_partition_order_kept_under_concurrency(make_sysfs) -> None:
    ifaces = ["enp1s2f0", "enp1s2f1", "enp1s3f0", "enp1s3f1"]
    t = FakeTransport({i: (ETH_MODULE_SFF_8472, make_eeprom(serial=f"SN{i}".encode())) for i in ifaces})
    exporter = Exporter(path_globs=[make_sysfs(*ifaces)], parallel=r"^(.*[^0-9])", transport=t)
    sink = ListSink()
    exporter.discover_and_collect(sink)

    order = [r.iface for r in sink.records]
    assert order.index("enp1s2f0") < order.index("enp1s2f1")
    assert order.index("enp1s3f0") < order.index("enp1s3f1")
    assert all(r.error is None for r in sink.records)


def test_cache_reused_across_passes(make_sysfs) -> None:
    t = FakeTransport({"eth0": (ETH_MODULE_SFF_8472, make_eeprom())})
    exporter = Exporter(path_globs=[make_sysfs("eth0")], transport=t)
    exporter.discover_and_collect(ListSink())
    t.reads.clear()
    exporter.discover_and_collect(ListSink())
    # serial read plus diagnostics
    assert t.reads == [("eth0", 0x44, 16), ("eth0", 0x160, 10)]


def test_unexpected_errors_propagate(make_sysfs) -> None:
    class BrokenTransport(FakeTransport):
        def module_info(self, ifname: str) -> tuple[int, int]:
            raise RuntimeError("driver bug")

    exporter = Exporter(path_globs=[make_sysfs("eth0", "eth1")], transport=BrokenTransport())
    with pytest.raises(RuntimeError, match="driver bug"):
        exporter.discover_and_collect(ListSink())


def test_influxdb_stamps_every_line(make_sysfs, mixed_transport: FakeTransport) -> None:
    exporter = Exporter(path_globs=[make_sysfs("eth0", "eth1")], transport=mixed_transport)
    buf = io.StringIO()
    exporter.influxdb(buf, now_ns=1700000000000000000)
    lines = buf.getvalue().splitlines()
    assert len(lines) == 2
    assert all(line.endswith(" 1700000000000000000") for line in lines)
    assert sum("present=1i" in line for line in lines) == 1
    assert sum("present=0i" in line for line in lines) == 1


@pytest.mark.skipif(not sys.platform.startswith("linux"), reason="SIOCETHTOOL is Linux only")
def test_undecodable_interface_name_does_not_stop_siblings(make_sysfs) -> None:
    bad = os.fsdecode(b"bad\xff")
    with EthtoolSocket() as sock:
        exporter = Exporter(path_globs=[make_sysfs("eth0", bad)], transport=sock)
        sink = ListSink()
        exporter.discover_and_collect(sink)

    records = sink.by_iface()
    assert sorted(records) == sorted(["eth0", bad])
    assert isinstance(records[bad].error, TransportError)
    assert records[bad].error.ifname == bad


def test_default_fields_logged(caplog: pytest.LogCaptureFixture) -> None:
    with caplog.at_level(logging.DEBUG, logger="ethtool_exporter.collector"):
        Exporter(path_globs=["/nonexistent/*"], transport=FakeTransport())
    assert "Identity fields: vendor oui product revision wavelen serial mfgdate" in caplog.text
