"""Record sinks: turn CollectionRecords into Prometheus metric families or InfluxDB line protocol."""

import logging
import math
import os
import re
import threading
from abc import ABC, abstractmethod

from prometheus_client.core import GaugeMetricFamily, Metric

from .types import CollectionRecord

logger = logging.getLogger(__name__)

NAMESPACE = "ethtool"

# Label order of the present metric; everything after "error" comes from the tag set
TRANSCEIVER_FULL_LABELS = ["iface", "error", "vendor", "revision", "product", "serial", "wavelen", "mfgdate"]
TRANSCEIVER_LABELS = ["iface"]

# Quotes and backticks become "~": influxdb parses quotes inconsistently in tags
_DANGEROUS_CHARS = re.compile(r"[\"'`]")
# Control characters and space become an escaped space
_WHITE_CHARS = re.compile(r"[\x00-\x20\x7f]")
_ESCAPE_CHARS = re.compile(r"([,=])")


def printable(text: str) -> str:
    """Text safe to publish; interface name bytes that are not UTF-8 become \\xNN escapes."""
    return os.fsencode(text).decode("utf-8", "backslashreplace")


def label_values(record: CollectionRecord) -> list[str]:
    """Values for TRANSCEIVER_FULL_LABELS; missing tags are empty strings."""
    values: list[str] = []
    for label in TRANSCEIVER_FULL_LABELS:
        if label == "iface":
            values.append(printable(record.iface))
        elif label == "error":
            values.append(printable(str(record.error)) if record.error is not None else "")
        else:
            values.append(record.tags.get(label, ""))
    return values


def escape_tag_value(value: str) -> str:
    """Make a string safe as an InfluxDB tag value."""
    value = _DANGEROUS_CHARS.sub("~", value)
    value = _WHITE_CHARS.sub(r"\\ ", value)
    return _ESCAPE_CHARS.sub(r"\\\1", value)


class RecordSink(ABC):
    """Consumer of per-interface collection records; emit() may be called from several threads."""

    @abstractmethod
    def emit(self, record: CollectionRecord) -> None: ...


class PrometheusSink(RecordSink):
    """Collects records into gauge families for a prometheus_client custom collector."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self.present = GaugeMetricFamily(
            f"{NAMESPACE}_transciever_present",
            "Scrape of transciever was successfull",
            labels=TRANSCEIVER_FULL_LABELS,
        )
        self.temp = GaugeMetricFamily(
            f"{NAMESPACE}_transciever_temp", "Transciever temperature (C)", labels=TRANSCEIVER_LABELS
        )
        self.volt = GaugeMetricFamily(
            f"{NAMESPACE}_transciever_volt", "Transciever voltage (V)", labels=TRANSCEIVER_LABELS
        )
        self.bias = GaugeMetricFamily(
            f"{NAMESPACE}_transciever_bias", "Laser bias current (A)", labels=TRANSCEIVER_LABELS
        )
        self.txw = GaugeMetricFamily(
            f"{NAMESPACE}_transciever_txw", "Laser output power (W)", labels=TRANSCEIVER_LABELS
        )
        self.rxw = GaugeMetricFamily(
            f"{NAMESPACE}_transciever_rxw",
            "Receiver signal average optical power (W)",
            labels=TRANSCEIVER_LABELS,
        )

    def emit(self, record: CollectionRecord) -> None:
        labels = label_values(record)
        with self._lock:
            diag = record.diagnostics
            if diag is None:
                self.present.add_metric(labels, 0)
                return
            iface = [printable(record.iface)]
            self.present.add_metric(labels, 1)
            self.temp.add_metric(iface, diag.temperature_c)
            self.volt.add_metric(iface, diag.voltage_v)
            self.bias.add_metric(iface, diag.bias_ma * 0.001)
            self.txw.add_metric(iface, diag.transmit_mw * 0.001)
            self.rxw.add_metric(iface, diag.receive_mw * 0.001)

    def families(self) -> list[Metric]:
        with self._lock:
            return [self.present, self.temp, self.volt, self.bias, self.txw, self.rxw]


def format_line(record: CollectionRecord) -> str:
    """One line-protocol record without timestamp."""
    tags = [
        f"{label}={escape_tag_value(value)}"
        for label, value in zip(TRANSCEIVER_FULL_LABELS, label_values(record))
        if value
    ]
    head = f"{NAMESPACE}_transciever,{','.join(tags)}"
    diag = record.diagnostics
    if diag is None:
        return f"{head} present=0i"
    fields = [
        ("present", "1i"),
        ("temperature_C", f"{diag.temperature_c:.2f}"),
        ("voltage_V", f"{diag.voltage_v:.3f}"),
        ("bias_A", f"{diag.bias_ma * 0.001:.6f}"),
    ]
    # Line protocol has no representation for -inf dBm (zero optical power)
    if math.isfinite(diag.receive_dbm):
        fields.append(("receive_power_dBm", f"{diag.receive_dbm:.2f}"))
    if math.isfinite(diag.transmit_dbm):
        fields.append(("transmit_power_dBm", f"{diag.transmit_dbm:.2f}"))
    fields.append(("receive_power_W", f"{diag.receive_mw * 0.001:.7f}"))
    fields.append(("transmit_power_W", f"{diag.transmit_mw * 0.001:.7f}"))
    return f"{head} " + ",".join(f"{k}={v}" for k, v in fields)


class InfluxSink(RecordSink):
    """Accumulates line-protocol records; the caller appends the timestamp when writing."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._lines: list[str] = []

    def emit(self, record: CollectionRecord) -> None:
        line = format_line(record)
        with self._lock:
            self._lines.append(line)

    def lines(self) -> list[str]:
        with self._lock:
            return list(self._lines)
