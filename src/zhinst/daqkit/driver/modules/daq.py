# Copyright (C) 2021 Zurich Instruments
#
# This software may be modified and distributed under the terms
# of the MIT license. See the LICENSE file for details.

"""Data Acquisition Module."""
import logging
from enum import IntEnum

from zhinst.daqkit.driver.modules.base_module import (
    BaseModule,
    DeviceLike,
    ModuleKind,
    device_serial,
)
from zhinst.daqkit.sample import SampleKind

logger = logging.getLogger(__name__)


class DAQKeys:
    """Configuration keys of the data acquisition module."""

    DEVICE = "device"
    TYPE = "type"
    TRIGGERNODE = "triggernode"
    LEVEL = "level"
    HYSTERESIS = "hysteresis"
    EDGE = "edge"
    BANDWIDTH = "bandwidth"
    DELAY = "delay"
    DURATION = "duration"
    COUNT = "count"
    ENDLESS = "endless"
    HOLDOFF_TIME = "holdoff/time"
    HOLDOFF_COUNT = "holdoff/count"
    GRID_MODE = "grid/mode"
    GRID_COLS = "grid/cols"
    GRID_ROWS = "grid/rows"
    GRID_REPETITIONS = "grid/repetitions"


class TriggerType(IntEnum):
    """Trigger types of the data acquisition module."""

    CONTINUOUS = 0
    EDGE = 1
    DIGITAL = 2
    PULSE = 3
    TRACKING = 4
    CHANGE = 5
    HARDWARE = 6
    TRACKING_EDGE = 7
    EVENT_COUNT = 8


class GridMode(IntEnum):
    """Interpolation of the samples onto the grid."""

    NEAREST = 1
    LINEAR = 2
    EXACT = 4


class TriggerEdge(IntEnum):
    """Edge of a level trigger."""

    RISING = 1
    FALLING = 2
    BOTH = 3


class DAQModule(BaseModule):
    """Data acquisition module.

    Records triggered or continuous data of the subscribed nodes on a grid.
    The module delivers partial results while it is executing, ``read`` can
    therefore be called repeatedly before the module finished.

    Subscriptions use the signal suffixes of the module, e.g.
    ``/dev1234/demods/0/sample.r``.

    Args:
        raw_module: Instance of the ``zhinst.core`` data acquisition module.
        session (Session): Session to the Data Server.
    """

    def __init__(self, raw_module, session):
        super().__init__(raw_module, session, ModuleKind.DAQ)

    def _chunk_kind(self, path: str) -> SampleKind:
        return SampleKind.SCALAR_EVENT

    def configure_trigger(
        self,
        device: DeviceLike,
        trigger_node: str,
        *,
        trigger_type: TriggerType = TriggerType.EDGE,
        level: float = 0.0,
        hysteresis: float = 0.0,
        edge: TriggerEdge = TriggerEdge.RISING,
        bandwidth: float = 0.0,
        grid_mode: GridMode = GridMode.LINEAR,
        duration: float = None,
        rate: float = None,
        cols: int = None,
        count: int = 1,
    ) -> None:
        """Configure a triggered acquisition.

        The number of grid columns is either given directly by ``cols`` or
        calculated from ``rate * duration``.

        Args:
            device: Device (or its serial).
            trigger_node (str): Node the trigger listens to, e.g.
                ``/dev1234/demods/0/sample.R``.
            trigger_type (TriggerType): Type of the trigger. (default = EDGE)
            level (float): Trigger level. (default = 0)
            hysteresis (float): Trigger hysteresis. (default = 0)
            edge (TriggerEdge): Trigger edge. (default = RISING)
            bandwidth (float): Filter bandwidth for tracking triggers, 0 means
                no filtering. (default = 0)
            grid_mode (GridMode): Interpolation onto the grid. (default = LINEAR)
            duration (float): Duration of a single grid row in seconds.
            rate (float): Sampling rate used to calculate the grid columns.
            cols (int): Number of grid columns.
            count (int): Number of triggers to record. (default = 1)

        Raises:
            ValueError: if neither ``cols`` nor ``rate`` and ``duration`` are
                specified.
        """
        if cols is None:
            if rate is None or duration is None:
                raise ValueError("Either cols or rate and duration must be specified.")
            cols = int(rate * duration)
        self.configure(DAQKeys.DEVICE, device_serial(device))
        self.configure(DAQKeys.TYPE, int(trigger_type))
        self.configure(DAQKeys.TRIGGERNODE, trigger_node)
        self.configure(DAQKeys.LEVEL, level)
        self.configure(DAQKeys.HYSTERESIS, hysteresis)
        self.configure(DAQKeys.EDGE, int(edge))
        self.configure(DAQKeys.BANDWIDTH, bandwidth)
        self.configure(DAQKeys.GRID_MODE, int(grid_mode))
        self.configure(DAQKeys.GRID_COLS, cols)
        self.configure(DAQKeys.COUNT, count)
        if duration is not None:
            self.configure(DAQKeys.DURATION, duration)
        logger.debug(f"Trigger on {trigger_node} with {cols} columns configured")
