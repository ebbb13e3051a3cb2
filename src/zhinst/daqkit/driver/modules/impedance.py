# Copyright (C) 2021 Zurich Instruments
#
# This software may be modified and distributed under the terms
# of the MIT license. See the LICENSE file for details.

"""Impedance Module."""
import logging
from enum import IntEnum

from zhinst.daqkit.driver.modules.base_module import (
    BaseModule,
    DeviceLike,
    ModuleKind,
    ModuleState,
    device_serial,
)
from zhinst.daqkit.exceptions import OperationTimeoutError
from zhinst.daqkit.helper import wait_for

logger = logging.getLogger(__name__)


class ImpedanceKeys:
    """Configuration keys of the impedance module."""

    DEVICE = "device"
    MODE = "mode"
    STEP = "step"
    CALIBRATE = "calibrate"
    MESSAGE = "message"
    PATH = "path"
    FILENAME = "filename"
    FREQ_START = "freq/start"
    FREQ_STOP = "freq/stop"
    FREQ_SAMPLECOUNT = "freq/samplecount"

    @staticmethod
    def load_r(load: int) -> str:
        """Resistance of a calibration load."""
        return f"loads/{load}/r"

    @staticmethod
    def load_c(load: int) -> str:
        """Capacitance of a calibration load."""
        return f"loads/{load}/c"


class CalibrationMode(IntEnum):
    """Compensation sequence of the impedance calibration."""

    SHORT_OPEN = 3
    LOAD = 4
    SHORT_LOAD = 5
    LOAD_OPEN = 6
    SHORT_OPEN_LOAD = 7
    LOAD_LOAD_LOAD = 8


class ImpedanceModule(BaseModule):
    """Impedance module.

    Runs the user compensation of the impedance analyzer. The compensation
    consists of one or more steps (one per calibration load) that are
    triggered one after the other.

    Args:
        raw_module: Instance of the ``zhinst.core`` impedance module.
        session (Session): Session to the Data Server.
    """

    def __init__(self, raw_module, session):
        super().__init__(raw_module, session, ModuleKind.IMPEDANCE)

    def configure_calibration(
        self,
        device: DeviceLike,
        *,
        mode: CalibrationMode = CalibrationMode.LOAD,
        load: int = 2,
        resistance: float = 1000.0,
        capacitance: float = 0.0,
        start: float = 100.0,
        stop: float = 500e3,
        samplecount: int = 21,
    ) -> None:
        """Configure the compensation of an impedance analyzer.

        The module is started first since it only accepts the device once
        it is executing.

        Args:
            device: Device (or its serial).
            mode (CalibrationMode): Compensation sequence. (default = LOAD)
            load (int): Index of the calibration load. (default = 2)
            resistance (float): Resistance of the load in Ohm. (default = 1 kOhm)
            capacitance (float): Capacitance of the load in F. (default = 0)
            start (float): Start frequency in Hz. (default = 100)
            stop (float): Stop frequency in Hz. (default = 500 kHz)
            samplecount (int): Number of frequency points. (default = 21)
        """
        if self.state is not ModuleState.EXECUTING:
            self.execute()
        self.configure(ImpedanceKeys.DEVICE, device_serial(device))
        self.configure(ImpedanceKeys.MODE, int(mode))
        self.configure(ImpedanceKeys.load_r(load), resistance)
        self.configure(ImpedanceKeys.load_c(load), capacitance)
        self.configure(ImpedanceKeys.FREQ_START, start)
        self.configure(ImpedanceKeys.FREQ_STOP, stop)
        self.configure(ImpedanceKeys.FREQ_SAMPLECOUNT, samplecount)

    def calibrate(self, step: int, timeout: float = 60.0) -> str:
        """Run a single step of the compensation.

        Args:
            step (int): Index of the compensation step (load).
            timeout (float): max duration of the step in seconds.
                (default = 60)

        Returns:
            str: status message of the module after the step

        Raises:
            OperationTimeoutError: if the step did not finish in time.
        """
        if self.state is not ModuleState.EXECUTING:
            self.execute()
        self.configure(ImpedanceKeys.STEP, step)
        self.configure(ImpedanceKeys.CALIBRATE, 1)
        logger.info(f"Running compensation step {step}")
        try:
            wait_for(lambda: self.get_int(ImpedanceKeys.CALIBRATE) == 0, timeout)
        except OperationTimeoutError as error:
            logger.critical(f"{repr(self)}: Compensation step {step} timed out")
            raise OperationTimeoutError(
                f"{repr(self)}: Compensation step {step} not finished within "
                f"{timeout}s."
            ) from error
        message = self.get_string(ImpedanceKeys.MESSAGE)
        logger.info(f"Compensation step {step}: {message}")
        return message
