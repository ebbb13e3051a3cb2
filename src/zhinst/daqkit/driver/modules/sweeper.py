# Copyright (C) 2021 Zurich Instruments
#
# This software may be modified and distributed under the terms
# of the MIT license. See the LICENSE file for details.

"""Sweeper Module."""
import logging

from zhinst.daqkit.driver.modules.base_module import (
    BaseModule,
    DeviceLike,
    ModuleKind,
    device_serial,
)
from zhinst.daqkit.sample import Lookup, SampleKind

logger = logging.getLogger(__name__)


class SweeperKeys:
    """Configuration keys of the sweeper module."""

    DEVICE = "device"
    GRIDNODE = "gridnode"
    START = "start"
    STOP = "stop"
    SAMPLECOUNT = "samplecount"
    ORDER = "order"
    BANDWIDTHCONTROL = "bandwidthcontrol"
    BANDWIDTH = "bandwidth"
    MAXBANDWIDTH = "maxbandwidth"
    BANDWIDTHOVERLAP = "bandwidthoverlap"
    XMAPPING = "xmapping"
    SCAN = "scan"
    LOOPCOUNT = "loopcount"
    ENDLESS = "endless"
    OMEGASUPPRESSION = "omegasuppression"
    SETTLING_INACCURACY = "settling/inaccuracy"
    SETTLING_TIME = "settling/time"
    AVERAGING_SAMPLE = "averaging/sample"
    AVERAGING_TIME = "averaging/time"
    AVERAGING_TC = "averaging/tc"
    HISTORYLENGTH = "historylength"


class SweeperModule(BaseModule):
    """Sweeper module for lock-in amplifiers and impedance analyzers.

    Sweeps a device parameter (by default the oscillator frequency) and
    records the subscribed demodulator or impedance samples for every sweep
    point. Results are only complete once the module finished.

    >>> with session.create_sweeper_module() as sweeper:
    ...     sweeper.configure(SweeperKeys.DEVICE, "dev1234")
    ...     sweeper.configure(SweeperKeys.START, 1e3)
    ...     sweeper.configure(SweeperKeys.STOP, 1e5)
    ...     sweeper.configure(SweeperKeys.SAMPLECOUNT, 100)
    ...     sweeper.subscribe("/dev1234/demods/0/sample")
    ...     sweeper.execute()
    ...     sweeper.wait_done()
    ...     result = sweeper.read()

    Args:
        raw_module: Instance of the ``zhinst.core`` sweeper module.
        session (Session): Session to the Data Server.
    """

    def __init__(self, raw_module, session):
        super().__init__(raw_module, session, ModuleKind.SWEEPER)

    def _chunk_kind(self, path: str) -> SampleKind:
        return SampleKind.SWEEP_RESULT

    def sweep(
        self,
        device: DeviceLike,
        sample_path: str,
        start: float,
        stop: float,
        samplecount: int,
        *,
        gridnode: str = None,
        timeout: float = 60.0,
        **settings,
    ) -> Lookup:
        """Run a single sweep and return its result.

        Args:
            device: Device (or its serial) to sweep.
            sample_path (str): Node that is recorded, e.g.
                ``/dev1234/demods/0/sample``.
            start (float): First sweep point.
            stop (float): Last sweep point.
            samplecount (int): Number of sweep points.
            gridnode (str): Node that is swept. (default = oscillator 0 frequency)
            timeout (float): max duration of the sweep in seconds.
                (default = 60)
            settings: additional configuration keys, e.g. ``xmapping=1``.

        Returns:
            Lookup: sweep result of ``sample_path``

        Raises:
            OperationTimeoutError: if the sweep did not finish in time.
        """
        self.configure(SweeperKeys.DEVICE, device_serial(device))
        if gridnode:
            self.configure(SweeperKeys.GRIDNODE, gridnode)
        self.configure(SweeperKeys.START, start)
        self.configure(SweeperKeys.STOP, stop)
        self.configure(SweeperKeys.SAMPLECOUNT, samplecount)
        self.configure_many(settings)
        self.subscribe(sample_path)
        self.execute()
        logger.info(f"Sweeping from {start} to {stop} in {samplecount} points")
        self.wait_done(timeout=timeout)
        return self.read()
