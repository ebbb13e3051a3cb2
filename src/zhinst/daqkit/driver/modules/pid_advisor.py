# Copyright (C) 2021 Zurich Instruments
#
# This software may be modified and distributed under the terms
# of the MIT license. See the LICENSE file for details.

"""PID Advisor Module."""
import logging
from enum import IntEnum
from typing import Dict

from zhinst.daqkit.driver.capabilities import DeviceFamily
from zhinst.daqkit.driver.modules.base_module import (
    BaseModule,
    DeviceLike,
    ModuleKind,
    ModuleState,
    device_serial,
)
from zhinst.daqkit.exceptions import OperationTimeoutError
from zhinst.daqkit.helper import wait_for
from zhinst.daqkit.sample import Lookup, SampleKind, SweepVariant

logger = logging.getLogger(__name__)


class PIDAdvisorKeys:
    """Configuration keys of the PID advisor module."""

    DEVICE = "device"
    AUTO = "auto"
    INDEX = "index"
    CALCULATE = "calculate"
    TODEVICE = "todevice"
    BW = "bw"
    PID_TARGETBW = "pid/targetbw"
    PID_MODE = "pid/mode"
    PID_TYPE = "pid/type"
    PID_P = "pid/p"
    PID_I = "pid/i"
    PID_D = "pid/d"
    PID_RATE = "pid/rate"
    PID_DLIMITTIMECONSTANT = "pid/dlimittimeconstant"
    DUT_SOURCE = "dut/source"
    DUT_DELAY = "dut/delay"


class AdviseMode(IntEnum):
    """Bit mask of the PID parameters the advisor optimizes."""

    P = 1
    I = 2  # noqa: E741
    D = 4
    PI = 3
    PID = 7


class PIDAdvisorModule(BaseModule):
    """PID advisor module.

    Simulates a PID controller (or a PLL of an HF2) together with a model of
    the device under test and calculates the PID parameters that reach the
    target bandwidth.

    >>> with session.create_pid_advisor_module() as advisor:
    ...     advisor.configure_pid("dev1234", index=0, target_bw=10e3)
    ...     advice = advisor.advise()
    ...     advisor.to_device()

    Args:
        raw_module: Instance of the ``zhinst.core`` PID advisor module.
        session (Session): Session to the Data Server.
    """

    sweep_variant = SweepVariant.ADVISOR

    def __init__(self, raw_module, session):
        super().__init__(raw_module, session, ModuleKind.PID_ADVISOR)

    def _chunk_kind(self, path: str) -> SampleKind:
        return SampleKind.SWEEP_RESULT

    def configure_pid(
        self,
        device: DeviceLike,
        index: int = 0,
        *,
        target_bw: float = 10e3,
        mode: AdviseMode = AdviseMode.PID,
        dut_source: int = 4,
        dut_delay: float = 0.0,
        p: float = 0.0,
        i: float = 0.0,
        d: float = 0.0,
    ) -> None:
        """Configure the advisor for a PID controller of a device.

        Automatic calculation is disabled, the advice has to be requested
        with :meth:`advise`. On HF2 devices the PLL is modelled instead of a
        PID controller.

        Args:
            device: Device (or its serial).
            index (int): Index of the PID controller (or PLL). (default = 0)
            target_bw (float): Target bandwidth in Hz. (default = 10 kHz)
            mode (AdviseMode): Parameters to optimize. (default = PID)
            dut_source (int): Model of the device under test. (default = 4)
            dut_delay (float): Delay of the device under test in seconds.
            p (float): Start value of the proportional gain.
            i (float): Start value of the integral gain.
            d (float): Start value of the derivative gain.
        """
        serial = device_serial(device)
        self.configure(PIDAdvisorKeys.AUTO, 0)
        self.configure(PIDAdvisorKeys.DEVICE, serial)
        self.configure(PIDAdvisorKeys.PID_TARGETBW, target_bw)
        self.configure(PIDAdvisorKeys.PID_MODE, int(mode))
        self.configure(PIDAdvisorKeys.INDEX, index)
        self.configure(PIDAdvisorKeys.DUT_SOURCE, dut_source)
        if self.session.has_family(serial, DeviceFamily.HF2):
            self.configure(PIDAdvisorKeys.PID_TYPE, "pll")
        self.configure(PIDAdvisorKeys.DUT_DELAY, dut_delay)
        self.configure(PIDAdvisorKeys.PID_P, p)
        self.configure(PIDAdvisorKeys.PID_I, i)
        self.configure(PIDAdvisorKeys.PID_D, d)
        self.configure(PIDAdvisorKeys.CALCULATE, 0)

    def advise(self, timeout: float = 60.0) -> Dict[str, float]:
        """Calculate the advised PID parameters.

        Args:
            timeout (float): max calculation time in seconds. (default = 60)

        Returns:
            dict: advised ``p``, ``i``, ``d``, ``dlimittimeconstant``, ``rate``
            and the resulting bandwidth ``bw``

        Raises:
            OperationTimeoutError: if the calculation did not finish in time.
        """
        if self.state is not ModuleState.EXECUTING:
            self.execute()
        self.configure(PIDAdvisorKeys.CALCULATE, 1)
        logger.info("Calculating the PID advice")
        try:
            wait_for(lambda: self.get_int(PIDAdvisorKeys.CALCULATE) == 0, timeout)
        except OperationTimeoutError as error:
            logger.critical(f"{repr(self)}: PID advice calculation timed out")
            raise OperationTimeoutError(
                f"{repr(self)}: PID advice not calculated within {timeout}s."
            ) from error
        advice = {
            "p": self.get_double(PIDAdvisorKeys.PID_P),
            "i": self.get_double(PIDAdvisorKeys.PID_I),
            "d": self.get_double(PIDAdvisorKeys.PID_D),
            "dlimittimeconstant": self.get_double(
                PIDAdvisorKeys.PID_DLIMITTIMECONSTANT
            ),
            "rate": self.get_double(PIDAdvisorKeys.PID_RATE),
            "bw": self.get_double(PIDAdvisorKeys.BW),
        }
        logger.info(f"PID advice: {advice}")
        return advice

    def to_device(self) -> None:
        """Write the advised parameters to the PID controller of the device."""
        self.configure(PIDAdvisorKeys.TODEVICE, 1)

    def _response(self, name: str) -> Lookup:
        # some versions prefix the module name, e.g. /pidadvisor/bode
        raw = {
            path: value
            for path, value in self.get("*").items()
            if path.rsplit("/", 1)[-1] == name
        }
        return Lookup.from_raw(
            raw,
            kind_of=self._chunk_kind,
            variant=self.sweep_variant,
        )

    def bode(self) -> Lookup:
        """Bode plot of the modelled closed loop (``/bode``)."""
        return self._response("bode")

    def step(self) -> Lookup:
        """Step response of the modelled closed loop (``/step``)."""
        return self._response("step")
