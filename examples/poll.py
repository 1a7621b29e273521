#!/usr/bin/env python3
"""Example: write InfluxDB lines for all ixgbe transceivers on an interval; graceful shutdown on Ctrl+C."""

import sys
import time

from ethtool_exporter import Exporter


def main() -> None:
    devices = ["/sys/bus/pci/drivers/ixgbe/*:*/net/*"]  # change to match your NICs
    interval_s = 10.0

    # Ports of one NIC (enp1s0f0, enp1s0f1) are read in series, NICs in parallel
    exporter = Exporter(path_globs=devices, parallel=r"^(.*[^0-9])")
    print(f"Polling {exporter.get_ifaces()} every {interval_s}s (Ctrl+C to stop)...", file=sys.stderr)
    try:
        while True:
            exporter.influxdb(sys.stdout)
            sys.stdout.flush()
            time.sleep(interval_s)
    except KeyboardInterrupt:
        print("\nStopped.", file=sys.stderr)


if __name__ == "__main__":
    main()
