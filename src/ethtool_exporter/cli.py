#!/usr/bin/env python3
"""Command line interface for ethtool-exporter using Typer."""

import json
import logging
import re
import sys
import time
from typing import Optional

import typer
from prometheus_client import CollectorRegistry, PlatformCollector, ProcessCollector, generate_latest
from typing_extensions import Annotated

from . import __version__  # type: ignore
from .cache import ModuleCache
from .collector import DEFAULT_DEVICES, DEFAULT_PARALLEL, BuildInfoCollector, Exporter, TransceiverCollector
from .errors import EthtoolExporterError, UnknownEntryError
from .fieldmap import get_default_fieldmap
from .flags import parse_info_flags
from .module import EthtoolModule
from .server import make_app, parse_listen_address, serve as serve_app
from .transport import EthtoolSocket
from .types import InfoFlag

app = typer.Typer(
    name="ethtool-exporter",
    help="Export SFF-8472 optical transceiver diagnostics to Prometheus and InfluxDB.",
    no_args_is_help=True,
)

logger = logging.getLogger(__name__)

# ============================================================================
# Shared options and helpers
# ============================================================================

DevicesOption = Annotated[
    Optional[list[str]],
    typer.Option(
        "--devices",
        "-d",
        help=(
            "Shell glob that enumerates network devices to scrape. Repeatable. "
            "Last component must resolve to the name of a network device. "
            f"Default: {', '.join(DEFAULT_DEVICES)}"
        ),
        envvar="ETHTOOL_EXPORTER_DEVICES",
    ),
]
ParallelOption = Annotated[
    str,
    typer.Option(
        "--parallel",
        help=(
            "Regular expression matched against interface names. Interfaces that differ in "
            "capture groups are collected in parallel: '^(.*)$' means fully parallel, "
            "'^(.*[^0-9])' collects enp1s2f0 and enp1s2f1 in series but in parallel with enp1s3f0."
        ),
        envvar="ETHTOOL_EXPORTER_PARALLEL",
    ),
]
VerboseOption = Annotated[
    bool,
    typer.Option("--verbose", "-v", help="Enable debug logging"),
]
JsonOption = Annotated[
    bool,
    typer.Option("--json", help="Output as JSON"),
]


def setup_logging(verbose: bool) -> None:
    """Configure logging based on verbose flag."""
    level = logging.DEBUG if verbose else logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(levelname)s: %(message)s" if not verbose else "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )


def create_exporter(devices: Optional[list[str]], parallel: str) -> Exporter:
    """Create an Exporter, rejecting an invalid parallel pattern."""
    try:
        pattern = re.compile(parallel)
    except re.error as e:
        typer.echo(f"Error: Invalid --parallel pattern {parallel!r}: {e}", err=True)
        raise typer.Exit(2)
    return Exporter(path_globs=devices or DEFAULT_DEVICES, parallel=pattern)


def build_registry(exporter: Exporter) -> CollectorRegistry:
    """Registry holding the transceiver collector, build info and process/platform metrics."""
    registry = CollectorRegistry()
    ProcessCollector(registry=registry)
    PlatformCollector(registry=registry)
    registry.register(TransceiverCollector(exporter))
    registry.register(BuildInfoCollector())
    return registry


def format_span(offset: int, length: int, names: list[str]) -> str:
    """One read plan line, e.g. '0x0014 +40  vendor oui product'."""
    return f"0x{offset:04x} +{length:<3d} {' '.join(names)}"


def fail_unexpected(e: Exception, verbose: bool) -> None:
    typer.echo(f"Error: Unexpected error: {e}", err=True)
    if verbose:
        import traceback
        traceback.print_exc()
    raise typer.Exit(4)


# ============================================================================
# Commands
# ============================================================================

@app.command()
def serve(
    listen_address: Annotated[
        str,
        typer.Option(
            "--listen-address",
            "-l",
            help="The address to listen on for HTTP requests",
            envvar="ETHTOOL_EXPORTER_LISTEN_ADDRESS",
        ),
    ] = "127.0.0.1:9992",
    devices: DevicesOption = None,
    parallel: ParallelOption = DEFAULT_PARALLEL,
    verbose: VerboseOption = False,
) -> None:
    """
    Serve /metrics (Prometheus) and /influx (line protocol) over HTTP.

    Every scrape reads all matched interfaces; identity fields are cached by serial number.
    """
    setup_logging(verbose)

    try:
        host, port = parse_listen_address(listen_address)
    except ValueError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(2)

    exporter = create_exporter(devices, parallel)
    try:
        ifaces = exporter.get_ifaces()
        logger.info("Found %d interfaces: %s", len(ifaces), " ".join(ifaces))
        serve_app(make_app(exporter, build_registry(exporter)), host, port)
    except KeyboardInterrupt:
        typer.echo("\nStopped by user", err=True)
        raise typer.Exit(0)
    except OSError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)
    except Exception as e:
        fail_unexpected(e, verbose)


@app.command()
def test(
    devices: DevicesOption = None,
    parallel: ParallelOption = DEFAULT_PARALLEL,
    verbose: VerboseOption = False,
) -> None:
    """Test run: gather metrics once and print them in Prometheus text format."""
    setup_logging(verbose)

    exporter = create_exporter(devices, parallel)
    try:
        typer.echo(generate_latest(build_registry(exporter)).decode("utf-8"), nl=False)
    except Exception as e:
        fail_unexpected(e, verbose)


@app.command(name="test-influx")
def test_influx(
    devices: DevicesOption = None,
    parallel: ParallelOption = DEFAULT_PARALLEL,
    verbose: VerboseOption = False,
) -> None:
    """Single run: gather metrics once and print them in InfluxDB line format."""
    setup_logging(verbose)

    exporter = create_exporter(devices, parallel)
    try:
        exporter.influxdb(sys.stdout)
    except Exception as e:
        fail_unexpected(e, verbose)


@app.command()
def probe(
    iface: Annotated[str, typer.Argument(help="Network interface, e.g. enp1s0f0")],
    verbose: VerboseOption = False,
) -> None:
    """
    Read one transceiver and show how long each step takes.

    The identity fields are read twice: the second read is served from the serial cache.
    """
    setup_logging(verbose)

    transport = EthtoolSocket()
    cache = ModuleCache()
    try:
        t = time.perf_counter()
        module = EthtoolModule.open(iface, transport)
        d = time.perf_counter() - t
        h = module.handle
        typer.echo(f"[{d:.4f}s] Module type: {h.module_type} eeprom len: {h.eeprom_len}")

        t = time.perf_counter()
        diag = module.diagnostics()
        d = time.perf_counter() - t
        typer.echo(
            f"[{d:.4f}s] {diag.temperature_c:.2f}C {diag.voltage_v:.4f}V {diag.bias_ma:.3f}mA "
            f"{diag.transmit_mw:.4f}mW({diag.transmit_dbm:.2f}dBm) "
            f"{diag.receive_mw:.4f}mW({diag.receive_dbm:.2f}dBm)"
        )

        for _ in range(2):
            t = time.perf_counter()
            tags = cache.get_module_info(module, InfoFlag.ALL | InfoFlag.ALLOW_CACHE)
            d = time.perf_counter() - t
            pairs = " ".join(f"{k}={v!r}" for k, v in tags.items())
            typer.echo(f"[{d:.4f}s] {pairs}")
        typer.echo(f"Cache entries: {len(cache)}")
    except EthtoolExporterError as e:
        typer.echo(f"Error: {iface}: {e}", err=True)
        raise typer.Exit(3)
    except Exception as e:
        fail_unexpected(e, verbose)
    finally:
        transport.close()


@app.command()
def plan(
    fields: Annotated[
        Optional[list[str]],
        typer.Argument(help=f"Field names ({', '.join(get_default_fieldmap().names)}) or ALL"),
    ] = None,
    verbose: VerboseOption = False,
    json_output: JsonOption = False,
) -> None:
    """
    Show the coalesced EEPROM reads used for a set of fields.

    Does not touch hardware; uses the built-in field table only.
    """
    setup_logging(verbose)

    try:
        flags = parse_info_flags(fields or ["ALL"])
        spans = get_default_fieldmap().plan(flags)
        if json_output:
            out = [
                {"offset": s.offset, "length": s.length, "fields": [f.name for f in s.fields]}
                for s in spans
            ]
            typer.echo(json.dumps(out, indent=2))
        else:
            for s in spans:
                typer.echo(format_span(s.offset, s.length, [f.name for f in s.fields]))
            typer.echo(f"Reads: {len(spans)}")
    except UnknownEntryError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(2)
    except Exception as e:
        fail_unexpected(e, verbose)


def version_callback(value: bool) -> None:
    """Show version and exit."""
    if value:
        typer.echo(f"ethtool-exporter {__version__}")
        raise typer.Exit(0)


@app.callback()
def main(
    version: Annotated[
        Optional[bool],
        typer.Option("--version", callback=version_callback, is_eager=True, help="Show version and exit"),
    ] = None,
) -> None:
    """ethtool-exporter - optical transceiver diagnostics for Prometheus and InfluxDB."""
    pass


if __name__ == "__main__":
    app()
