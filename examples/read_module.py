#!/usr/bin/env python3
"""Example: open one transceiver, print its identity fields and live diagnostics."""

import sys

from ethtool_exporter import EthtoolModule, EthtoolSocket, InfoFlag, ModuleCache
from ethtool_exporter.errors import EepromRangeError, TransportError, UnsupportedModuleError


def main() -> None:
    iface = "enp1s0f0"  # change to your interface

    try:
        with EthtoolSocket() as sock:
            module = EthtoolModule.open(iface, sock)
            print(f"{iface}: module type {module.handle.module_type}, eeprom {module.handle.eeprom_len} bytes")

            # Only the wavelength (one 2 byte read)
            print(f"wavelen: {module.read_fields(InfoFlag.WAVELEN)}")

            # Everything; the second call only re-reads the serial number
            cache = ModuleCache()
            for _ in range(2):
                print(cache.get_module_info(module, InfoFlag.ALL | InfoFlag.ALLOW_CACHE))

            diag = module.diagnostics()
            print(f"temperature: {diag.temperature_c:.2f} C")
            print(f"voltage:     {diag.voltage_v:.4f} V")
            print(f"bias:        {diag.bias_ma:.3f} mA")
            print(f"tx power:    {diag.transmit_mw:.4f} mW ({diag.transmit_dbm:.2f} dBm)")
            print(f"rx power:    {diag.receive_mw:.4f} mW ({diag.receive_dbm:.2f} dBm)")
    except UnsupportedModuleError as e:
        print(f"{iface}: {e}", file=sys.stderr)
        sys.exit(1)
    except EepromRangeError as e:
        print(f"{iface}: no diagnostics page: {e}", file=sys.stderr)
        sys.exit(1)
    except TransportError as e:
        print(f"ioctl error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
