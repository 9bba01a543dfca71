"""Command-line interface for hwtest-owon.

Usage:
    # Identify the supply on a serial port
    hwtest-owon --port /dev/ttyUSB0 identify

    # Program 12 V / 1.5 A and switch the output on
    hwtest-owon --port COM3 set --voltage 12 --current 1.5 --output on

    # Read voltage, current, power, faults and regulation mode
    hwtest-owon --config bench_psu.yaml status

    # Try the commands without hardware
    hwtest-owon --emulator status
"""

from __future__ import annotations

import argparse
import logging
import sys

from hwtest_scpi import (
    DEFAULT_SCPI_PORT,
    ScpiError,
    ScpiTransport,
    SerialSettings,
    SerialTransport,
    TcpTransport,
)

from hwtest_owon.config import create_transport, load_config
from hwtest_owon.emulator import EMULATOR_MODELS
from hwtest_owon.psu import OwonDcPsu


def setup_logging(debug: bool = False) -> None:
    """Configure logging."""
    level = logging.DEBUG if debug else logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


def parse_on_off(value: str) -> bool:
    """Parse an ``on``/``off`` argument."""
    token = value.strip().lower()
    if token in ("on", "1", "true"):
        return True
    if token in ("off", "0", "false"):
        return False
    raise argparse.ArgumentTypeError(f"expected on or off, got {value!r}")


def parse_tcp_address(value: str) -> tuple[str, int]:
    """Parse ``HOST`` or ``HOST:PORT``."""
    host, sep, port = value.rpartition(":")
    if not sep:
        return (value, DEFAULT_SCPI_PORT)
    try:
        return (host, int(port))
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid TCP port in {value!r}") from None


def build_transport(args: argparse.Namespace) -> ScpiTransport:
    """Create the transport selected on the command line."""
    if args.config:
        return create_transport(load_config(args.config))
    if args.tcp:
        host, port = args.tcp
        return TcpTransport(host, port, timeout_ms=args.timeout_ms)
    if args.emulator:
        return EMULATOR_MODELS[args.model or "SPE6103"]()
    return SerialTransport(
        SerialSettings(
            port=args.port,
            baudrate=args.baudrate,
            read_timeout_ms=args.timeout_ms,
            write_timeout_ms=args.timeout_ms,
        )
    )


def cmd_identify(psu: OwonDcPsu, args: argparse.Namespace) -> int:
    """Print the identification string."""
    print(psu.identify())
    return 0


def cmd_measure(psu: OwonDcPsu, args: argparse.Namespace) -> int:
    """Print measured voltage, current and power."""
    volts, amps, watts = psu.measure_all()
    print(f"{volts:.3f} V  {amps:.3f} A  {watts:.3f} W")
    return 0


def cmd_status(psu: OwonDcPsu, args: argparse.Namespace) -> int:
    """Print measurements, protection faults and regulation mode."""
    info = psu.measure_all_info()
    mode = info.operating_mode
    print(f"Output:  {'on' if psu.get_output() else 'off'}")
    print(f"Measure: {info.volts:.3f} V  {info.amps:.3f} A  {info.watts:.3f} W")
    print(f"Mode:    {mode.name if mode is not None else f'unknown ({info.mode})'}")
    faults = [
        name
        for name, active in (("OVP", info.ovp_fault), ("OCP", info.ocp_fault), ("OTP", info.otp_fault))
        if active
    ]
    print(f"Faults:  {', '.join(faults) if faults else 'none'}")
    return 0


def cmd_set(psu: OwonDcPsu, args: argparse.Namespace) -> int:
    """Apply the given setpoints and limits."""
    psu.set_remote()
    if args.voltage_limit is not None:
        psu.set_voltage_limit(args.voltage_limit)
    if args.current_limit is not None:
        psu.set_current_limit(args.current_limit)
    if args.voltage is not None:
        psu.set_voltage(args.voltage)
    if args.current is not None:
        psu.set_current(args.current)
    if args.output is not None:
        psu.set_output(args.output)
    return 0


def cmd_output(psu: OwonDcPsu, args: argparse.Namespace) -> int:
    """Switch the output on or off."""
    psu.set_output(args.state)
    return 0


def cmd_local(psu: OwonDcPsu, args: argparse.Namespace) -> int:
    """Return the front panel to local control."""
    psu.set_local()
    return 0


def cmd_remote(psu: OwonDcPsu, args: argparse.Namespace) -> int:
    """Lock the front panel for remote control."""
    psu.set_remote()
    return 0


COMMANDS = {
    "identify": cmd_identify,
    "measure": cmd_measure,
    "status": cmd_status,
    "set": cmd_set,
    "output": cmd_output,
    "local": cmd_local,
    "remote": cmd_remote,
}


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser."""
    parser = argparse.ArgumentParser(
        prog="hwtest-owon",
        description="Control an OWON DC power supply over SCPI",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")

    target = parser.add_mutually_exclusive_group()
    target.add_argument("--config", "-c", help="YAML instrument configuration file")
    target.add_argument("--port", "-p", help="Serial port (e.g. /dev/ttyUSB0, COM3)")
    target.add_argument(
        "--tcp", type=parse_tcp_address, metavar="HOST[:PORT]",
        help=f"SCPI-over-TCP address (default port {DEFAULT_SCPI_PORT})"
    )
    target.add_argument("--emulator", action="store_true", help="Use an in-process emulator")

    parser.add_argument(
        "--model", choices=sorted(EMULATOR_MODELS),
        help="Model emulated by --emulator (default: SPE6103); requires --emulator"
    )
    parser.add_argument(
        "--baudrate", type=int, default=115200,
        help="Serial baud rate (default: 115200)"
    )
    parser.add_argument(
        "--timeout-ms", type=int, default=5000,
        help="Read/write timeout in milliseconds (default: 5000)"
    )

    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    subparsers.add_parser("identify", help="Print the *IDN? reply")
    subparsers.add_parser("measure", help="Print measured voltage, current and power")
    subparsers.add_parser("status", help="Print measurements, faults and regulation mode")

    set_parser = subparsers.add_parser("set", help="Apply setpoints (enters remote mode)")
    set_parser.add_argument("--voltage", "-v", type=float, help="Voltage setpoint in volts")
    set_parser.add_argument("--current", "-i", type=float, help="Current setpoint in amps")
    set_parser.add_argument("--voltage-limit", type=float, help="Over-voltage protection level")
    set_parser.add_argument("--current-limit", type=float, help="Over-current protection level")
    set_parser.add_argument("--output", type=parse_on_off, help="Switch the output on or off")

    output_parser = subparsers.add_parser("output", help="Switch the output on or off")
    output_parser.add_argument("state", type=parse_on_off, help="on or off")

    subparsers.add_parser("local", help="Return to front-panel control")
    subparsers.add_parser("remote", help="Lock the front panel for remote control")

    return parser


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 1

    if not (args.config or args.port or args.tcp or args.emulator):
        print("Error: one of --config, --port, --tcp or --emulator is required")
        return 1

    if args.model and not args.emulator:
        print("Error: --model requires --emulator")
        return 1

    setup_logging(args.debug)

    try:
        transport = build_transport(args)
        with OwonDcPsu(transport) as psu:
            return COMMANDS[args.command](psu, args)
    except (ScpiError, ValueError, FileNotFoundError) as exc:
        print(f"Error: {exc}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
