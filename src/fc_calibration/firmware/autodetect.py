"""Serial-port firmware autodetection and interface construction.

The two protocols cannot be told apart without sending protocol specific
bytes, so detection probes MSP first: it answers quickly and, when the board
is iNav, no reboot is needed. A board that answers MSP with the ArduPilot
identifier is rebooted without resuming the MSP session before MAVLink is
tried, which returns the port to its MAVLink-only state.
"""

from __future__ import annotations

import logging
import time
from typing import Callable

from ..protocols.base import (
    MavlinkLink,
    MavlinkTimeout,
    MSPLink,
    MSPReadTimeout,
    MSPSyncFailed,
)
from .ardupilot import ArdupilotInterface
from .base import FirmwareAutodetectionFailed, FirmwareInterface, FirmwareTarget
from .inav import INavInterface

LOGGER = logging.getLogger(__name__)

ARDUPILOT_VARIANT = "ARDU"
DEFAULT_MSP_ATTEMPTS = 4

MSPFactory = Callable[[str, int], MSPLink]
MavlinkFactory = Callable[[str, int], MavlinkLink]


def _default_msp_factory(port: str, baudrate: int) -> MSPLink:
    from ..protocols.msp import MSPClient

    return MSPClient(port, baudrate)


def _default_mavlink_factory(port: str, baudrate: int) -> MavlinkLink:
    from ..protocols.mavlink import MavlinkClient

    return MavlinkClient(port, baudrate)


def autodetect(
    port: str,
    baudrate: int = 115200,
    *,
    msp_factory: MSPFactory | None = None,
    mavlink_factory: MavlinkFactory | None = None,
    msp_attempts: int = DEFAULT_MSP_ATTEMPTS,
    reboot_settle_s: float = 1.0,
    telemetry_interval_s: float = 0.02,
    sleep: Callable[[float], None] = time.sleep,
) -> FirmwareInterface:
    """Identify the firmware on ``port`` and return the matching interface.

    Args:
        port: Serial device path.
        baudrate: Line speed used for both protocols.
        msp_factory: Builds an MSP link; defaults to :class:`MSPClient`.
        mavlink_factory: Builds a MAVLink link; defaults to :class:`MavlinkClient`.
        msp_attempts: Identity queries tried before MSP is given up.
        reboot_settle_s: Pause after rebooting an ArduPilot board found over MSP.
        telemetry_interval_s: SYS_STATUS period for the ArduPilot probe.
        sleep: Sleep function, injectable for tests.

    Returns:
        FirmwareInterface: An :class:`INavInterface` or :class:`ArdupilotInterface`.

    Raises:
        UnsupportedFirmwareError: If MSP answers with an unknown firmware.
        FirmwareAutodetectionFailed: If neither protocol answers.
    """
    msp_factory = msp_factory or _default_msp_factory
    mavlink_factory = mavlink_factory or _default_mavlink_factory

    interface = _probe_msp(port, baudrate, msp_factory, msp_attempts, reboot_settle_s, sleep)
    if interface is not None:
        return interface

    mavlink = mavlink_factory(port, baudrate)
    try:
        mavlink.set_message_interval("SYS_STATUS", telemetry_interval_s)
        mavlink.wait_for_message("SYS_STATUS")
    except MavlinkTimeout:
        LOGGER.info("No MAVLink SYS_STATUS received on %s", port)
        mavlink.close()
    else:
        LOGGER.info("Detected ArduPilot firmware on %s", port)
        return ArdupilotInterface(mavlink, telemetry_interval_s=telemetry_interval_s)

    raise FirmwareAutodetectionFailed(f"firmware auto-detection failed on {port}")


def _probe_msp(
    port: str,
    baudrate: int,
    msp_factory: MSPFactory,
    attempts: int,
    reboot_settle_s: float,
    sleep: Callable[[float], None],
) -> FirmwareInterface | None:
    msp = msp_factory(port, baudrate)
    try:
        variant = None
        for attempt in range(1, attempts + 1):
            try:
                variant = msp.fc_variant()
                break
            except (MSPReadTimeout, MSPSyncFailed) as exc:
                LOGGER.warning("MSP identity attempt %d/%d failed: %s", attempt, attempts, exc)
        if variant is None:
            msp.close()
            return None

        if variant == ARDUPILOT_VARIANT:
            LOGGER.info("Board answered MSP as ArduPilot; rebooting before MAVLink probe")
            msp.reboot(resume=False)
            sleep(reboot_settle_s)
            return None

        LOGGER.info("Detected %s firmware over MSP on %s", variant, port)
        return INavInterface(msp)
    except BaseException:
        msp.close()
        raise


def open_firmware(
    port: str,
    target: FirmwareTarget | None,
    baudrate: int = 115200,
    *,
    msp_factory: MSPFactory | None = None,
    mavlink_factory: MavlinkFactory | None = None,
    msp_attempts: int = DEFAULT_MSP_ATTEMPTS,
    reboot_settle_s: float = 1.0,
    telemetry_interval_s: float = 0.02,
) -> FirmwareInterface:
    """Connect to ``port`` as ``target``, or autodetect when ``target`` is None."""
    if target is None:
        return autodetect(
            port,
            baudrate,
            msp_factory=msp_factory,
            mavlink_factory=mavlink_factory,
            msp_attempts=msp_attempts,
            reboot_settle_s=reboot_settle_s,
            telemetry_interval_s=telemetry_interval_s,
        )
    if target is FirmwareTarget.INAV:
        return INavInterface((msp_factory or _default_msp_factory)(port, baudrate))
    if target is FirmwareTarget.ARDUPILOT:
        link = (mavlink_factory or _default_mavlink_factory)(port, baudrate)
        return ArdupilotInterface(link, telemetry_interval_s=telemetry_interval_s)
    raise ValueError(f"unsupported firmware target: {target}")
