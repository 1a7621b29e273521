"""Exporter: discover interfaces, partition them, collect transceiver data concurrently and feed record sinks."""

import glob
import logging
import platform
import re
import time
from concurrent.futures import ThreadPoolExecutor, wait
from typing import Iterable, Iterator, TextIO

from prometheus_client.core import GaugeMetricFamily, Metric
from prometheus_client.registry import Collector

from . import __version__
from .cache import ModuleCache
from .emitters import NAMESPACE, InfluxSink, PrometheusSink, RecordSink
from .errors import EthtoolExporterError
from .flags import flag_names, parse_info_flags
from .module import EthtoolModule, Transport
from .transport import EthtoolSocket
from .types import CollectionRecord, Diagnostics

logger = logging.getLogger(__name__)

DEFAULT_DEVICES = ["/sys/bus/pci/drivers/ixgbe/*:*/net/*"]
DEFAULT_PARALLEL = "^(.*)$"

# Partition key of interfaces the parallel pattern does not match
NO_MATCH_KEY = "\x01!nil!"
# Joins capture groups; never part of an interface name
KEY_SEPARATOR = "\x02"

# Tag set published for each transceiver; CACHE alone would select the same fields
DEFAULT_INFO_FIELDS = ["CACHE", "vendor", "revision", "product", "serial", "wavelen", "mfgdate"]


def partition_key(pattern: re.Pattern[str], iface: str) -> str:
    """Interfaces with equal keys are collected one after another."""
    m = pattern.search(iface)
    if m is None:
        return NO_MATCH_KEY
    return KEY_SEPARATOR.join(m.groups(default=""))


def partition(pattern: re.Pattern[str], ifaces: Iterable[str]) -> dict[str, list[str]]:
    """Group interfaces by partition key, keeping input order inside each group."""
    groups: dict[str, list[str]] = {}
    for iface in ifaces:
        groups.setdefault(partition_key(pattern, iface), []).append(iface)
    return groups


class Exporter:
    """
    Collects optical transceiver data from every interface matched by the device globs.

    Interfaces whose names give the same capture groups under the parallel
    pattern are read serially; different groups are read concurrently,
    one worker thread per group.
    """

    def __init__(
        self,
        path_globs: list[str] | None = None,
        parallel: str | re.Pattern[str] = DEFAULT_PARALLEL,
        transport: Transport | None = None,
        cache: ModuleCache | None = None,
        flags: int | None = None,
    ) -> None:
        self.path_globs = list(path_globs) if path_globs else list(DEFAULT_DEVICES)
        self.parallel = re.compile(parallel) if isinstance(parallel, str) else parallel
        self.transport: Transport = transport if transport is not None else EthtoolSocket()
        self.cache = cache if cache is not None else ModuleCache()
        self.flags = flags if flags is not None else parse_info_flags(DEFAULT_INFO_FIELDS)
        logger.debug("Identity fields: %s", " ".join(flag_names(self.flags)))

    def get_ifaces(self) -> list[str]:
        """Last path component of every glob match, sorted and deduplicated."""
        names: set[str] = set()
        for pattern in self.path_globs:
            matches = glob.glob(pattern)
            logger.debug("get_ifaces() %s -> %s", pattern, matches)
            names.update(match.rsplit("/", 1)[-1] for match in matches)
        return sorted(names)

    def collect_one(self, iface: str) -> CollectionRecord:
        """Open, read identity fields and diagnostics; device errors end up on the record."""
        tags: dict[str, str] = {}
        diagnostics: Diagnostics | None = None
        try:
            module = EthtoolModule.open(iface, self.transport)
            tags = self.cache.get_module_info(module, self.flags)
            diagnostics = module.diagnostics()
        except EthtoolExporterError as e:
            logger.debug("%s: %s", iface, e)
            return CollectionRecord(iface, error=e, tags=tags)
        return CollectionRecord(iface, tags=tags, diagnostics=diagnostics)

    def collect_serially(self, ifaces: Iterable[str], sink: RecordSink) -> None:
        for iface in ifaces:
            sink.emit(self.collect_one(iface))

    def discover_and_collect(self, sink: RecordSink) -> None:
        """Run one full collection pass; returns after every partition has finished."""
        ifaces = self.get_ifaces()
        groups = partition(self.parallel, ifaces)
        if len(groups) < 2:
            self.collect_serially(ifaces, sink)
            return
        with ThreadPoolExecutor(max_workers=len(groups), thread_name_prefix="ethtool") as executor:
            futures = []
            for series in groups.values():
                logger.debug("Collecting %s", series)
                futures.append(executor.submit(self.collect_serially, series, sink))
            wait(futures)
        for future in futures:
            future.result()

    def influxdb(self, writer: TextIO, now_ns: int | None = None) -> None:
        """Write one pass as line protocol, all lines stamped with the same time."""
        ts = now_ns if now_ns is not None else time.time_ns()
        sink = InfluxSink()
        self.discover_and_collect(sink)
        for line in sink.lines():
            writer.write(f"{line} {ts}\n")


class TransceiverCollector(Collector):
    """prometheus_client collector running a collection pass on every scrape."""

    def __init__(self, exporter: Exporter) -> None:
        self.exporter = exporter

    def describe(self) -> Iterator[Metric]:
        return iter(PrometheusSink().families())

    def collect(self) -> Iterator[Metric]:
        sink = PrometheusSink()
        self.exporter.discover_and_collect(sink)
        return iter(sink.families())


class BuildInfoCollector(Collector):
    """Constant ethtool_build_info gauge carrying package and interpreter versions."""

    def collect(self) -> Iterator[Metric]:
        info = GaugeMetricFamily(
            f"{NAMESPACE}_build_info",
            "A metric with a constant '1' value labeled by version and pythonversion",
            labels=["version", "pythonversion"],
        )
        info.add_metric([__version__, platform.python_version()], 1)
        yield info
