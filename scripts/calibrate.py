"""Interactive battery sensor calibration for ArduPilot and iNav boards."""

from __future__ import annotations

import argparse
import logging
import sys
import time
from pathlib import Path
from typing import Sequence

import yaml

# Ensure local sources are importable without installation
REPO_ROOT = Path(__file__).resolve().parents[1]
SRC_DIR = REPO_ROOT / "src"
if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

from fc_calibration.calibration import (  # noqa: E402
    EXIT_ABORTED,
    EXIT_FAILED,
    CalibrationRoutine,
    CancellationToken,
    OperatorConsole,
)
from fc_calibration.config import (  # noqa: E402
    FIRMWARE_CHOICES,
    CalibrationConfig,
    load_calibration_config,
)
from fc_calibration.firmware import (  # noqa: E402
    FirmwareInterface,
    FirmwareTarget,
    MockFirmwareInterface,
    SensorChannel,
    open_firmware,
)
from fc_calibration.protocols.mavlink import MavlinkClient  # noqa: E402
from fc_calibration.protocols.msp import MSPClient  # noqa: E402
from fc_calibration.utils.logging import configure_logging, level_for  # noqa: E402

LOGGER = logging.getLogger("fc_calibration.scripts.calibrate")

CHANNEL_CHOICES = {
    "voltage": (SensorChannel.VOLTAGE,),
    "current": (SensorChannel.CURRENT,),
    "both": (SensorChannel.VOLTAGE, SensorChannel.CURRENT),
}

# Dry-run readings, roughly a 3S pack under a light load.
MOCK_SAMPLES = {
    SensorChannel.VOLTAGE: (11.48, 11.52, 11.50, 11.47, 11.53),
    SensorChannel.CURRENT: (1.95, 2.05, 2.00, 1.98, 2.02),
}


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    """Parse CLI arguments for the calibration tool."""
    parser = argparse.ArgumentParser(
        description="Calibrate the battery voltage and current sensors of a flight controller"
    )
    parser.add_argument(
        "port",
        nargs="?",
        default=None,
        help="Serial device of the flight controller (e.g. /dev/ttyACM0)",
    )
    parser.add_argument(
        "--baud",
        type=int,
        default=None,
        help="Serial line speed (default 115200)",
    )
    parser.add_argument(
        "--firmware",
        choices=FIRMWARE_CHOICES,
        default=None,
        help="Firmware running on the board; 'auto' probes MSP then MAVLink",
    )
    parser.add_argument(
        "--channel",
        choices=sorted(CHANNEL_CHOICES),
        default="both",
        help="Sensor channel(s) to calibrate",
    )
    parser.add_argument(
        "--acquisition-time",
        type=float,
        default=None,
        help="Length of each sampling window in seconds (default 5)",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="YAML file with a top-level 'calibration' mapping",
    )
    parser.add_argument(
        "--enable",
        action="store_true",
        help="Enable disabled sensors and reboot the board before calibrating",
    )
    parser.add_argument(
        "--report",
        type=Path,
        default=None,
        help="Write the calibration of every completed channel to this YAML file",
    )
    parser.add_argument(
        "--mock",
        action="store_true",
        help="Dry run against a simulated board instead of a serial port",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Enable debug logging",
    )
    args = parser.parse_args(argv)
    if args.port is None and not args.mock:
        parser.error("a serial port is required unless --mock is given")
    return args


def build_config(args: argparse.Namespace) -> CalibrationConfig:
    """Load the optional config file and apply CLI overrides."""
    config = CalibrationConfig()
    if args.config is not None:
        config = load_calibration_config(args.config.expanduser().resolve())
    return config.with_overrides(
        acquisition_time_s=args.acquisition_time,
        baudrate=args.baud,
        firmware=args.firmware,
    )


def open_board(port: str | None, config: CalibrationConfig, *, mock: bool = False) -> FirmwareInterface:
    """Connect to the board described by ``config``."""
    if mock:
        target = config.firmware_target or FirmwareTarget.ARDUPILOT
        LOGGER.info("Using simulated %s board", target.value)
        return MockFirmwareInterface(
            target=target,
            samples=MOCK_SAMPLES,
            loop=True,
            sample_hook=lambda channel, index: time.sleep(config.telemetry_interval_s),
        )

    assert port is not None

    def msp_factory(device: str, baudrate: int) -> MSPClient:
        return MSPClient(
            device,
            baudrate,
            timeout_s=config.protocol_timeout_s,
            reboot_settle_s=config.reboot_settle_s,
        )

    def mavlink_factory(device: str, baudrate: int) -> MavlinkClient:
        return MavlinkClient(device, baudrate, timeout_s=config.protocol_timeout_s)

    return open_firmware(
        port,
        config.firmware_target,
        config.baudrate,
        msp_factory=msp_factory,
        mavlink_factory=mavlink_factory,
        msp_attempts=config.autodetect_attempts,
        reboot_settle_s=config.reboot_settle_s,
        telemetry_interval_s=config.telemetry_interval_s,
    )


def write_report(path: Path, routine: CalibrationRoutine, target: FirmwareTarget) -> None:
    """Dump the completed calibrations as YAML."""
    payload = {"firmware": target.value, "channels": routine.calibration_data()}
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", encoding="utf-8") as handle:
        yaml.safe_dump(payload, handle, sort_keys=False)
    LOGGER.info("Calibration report written to %s", path)


def main(argv: Sequence[str] | None = None) -> int:
    """Entry point for the calibration CLI."""
    args = parse_args(argv)
    configure_logging(level_for(args.verbose))

    try:
        config = build_config(args)
    except FileNotFoundError as exc:
        LOGGER.error("Config file not found: %s", exc)
        return EXIT_FAILED
    except ValueError as exc:
        LOGGER.error("Invalid configuration: %s", exc)
        return EXIT_FAILED

    console = OperatorConsole(CancellationToken())
    try:
        firmware = open_board(args.port, config, mock=args.mock)
    except KeyboardInterrupt:
        LOGGER.info("Interrupted while connecting to the board")
        return EXIT_ABORTED
    except Exception:
        LOGGER.exception("Unable to connect to the flight controller")
        return EXIT_FAILED

    with firmware:
        routine = CalibrationRoutine(
            firmware,
            console,
            channels=CHANNEL_CHOICES[args.channel],
            acquisition_time_s=config.acquisition_time_s,
            enable_missing=args.enable,
        )
        try:
            exit_code = routine.run()
        except KeyboardInterrupt:
            LOGGER.info("Received keyboard interrupt, stopping calibration")
            return EXIT_ABORTED
        except Exception:
            LOGGER.exception("Calibration terminated with an error")
            return EXIT_FAILED

    if args.report is not None:
        write_report(args.report.expanduser(), routine, firmware.target)
    return exit_code


if __name__ == "__main__":  # pragma: no cover - CLI entry point
    sys.exit(main())
