# Copyright (C) 2021 Zurich Instruments
#
# This software may be modified and distributed under the terms
# of the MIT license. See the LICENSE file for details.

""" Zurich Instruments daqkit Base Instrument Driver.

This driver provides a high-level controller for all Zurich Instrument
lock-in amplifiers and impedance analyzers. It is based on the LabOne Python
API zhinst.core and exposes the parameter tree of a single device.
"""
import time
import logging
from typing import Dict, Union

import numpy as np

from zhinst.daqkit.driver.capabilities import Capabilities, DeviceFamily
from zhinst.daqkit.exceptions import OperationTimeoutError
from zhinst.daqkit.helper import lazy_property, wait_for
from zhinst.daqkit.nodetree import Node, NodeTree
from zhinst.daqkit.sample import DemodulatorSample

logger = logging.getLogger(__name__)

PRESET_INDICES = range(0, 7)


class BaseInstrument(Node):
    """Generic driver for a Zurich Instrument device.

    It exposes the nodetree as also implements common functions valid for all
    devices. The typed node access of the nodetree (``get_int``,
    ``set_double``, ...) is available directly on the instrument and accepts
    paths relative to the device (e.g. ``"demods/0/rate"``) as well as
    absolute ones.

    Args:
        serial (str): Serial number of the device, e.g. *'dev12000'*.
            The serial number can be found on the back panel of the instrument.
        device_type (str): Type of the device.
        session (Session): Session to the Data Server
    """

    def __init__(self, serial: str, device_type: str, session):
        self._serial = serial.lower()
        self._device_type = device_type
        self._session = session
        nodetree = NodeTree(
            self._session.daq_server,
            prefix_hide=self._serial,
            list_nodes=[f"/{self._serial}/*"],
            subscriptions=self._session.subscriptions,
        )
        super().__init__(nodetree, tuple())

    def __repr__(self):
        return f"{self.__class__.__name__}({self._device_type},{self.serial})"

    def __hash__(self):
        return hash(self._serial)

    def __eq__(self, other):
        if not isinstance(other, BaseInstrument):
            return NotImplemented
        return self._serial == other.serial and self._session is other.session

    def factory_reset(self, timeout: float = 15.0) -> None:
        """Bring the device into its default state.

        The behaviour depends on the family of the device:
            * HDAWG devices have no preset, nothing is done.
            * HF2 devices have no preset either, only the rate of all
              demodulators is reset.
            * All other devices load the factory preset and wait until it
              is applied.

        WARNING: Loading a preset takes several seconds. Do not call this
        function in a loop.

        Args:
            timeout (float): max wait time for the preset in seconds.
                (default = 15)
        """
        if self.capabilities.has_family(DeviceFamily.HDAWG):
            logger.info(f"{repr(self)}: presets are not supported, nothing reset.")
            return
        if self.capabilities.has_family(DeviceFamily.HF2):
            self.root.set_double("demods/*/rate", 250)
            logger.info(f"{repr(self)}: demodulator rates reset.")
            return
        self.load_preset(0, timeout=timeout)
        # The device needs some time after the preset before it settled.
        time.sleep(1)

    def load_preset(self, index: int = 0, timeout: float = 15.0) -> None:
        """Load a preset and block until the device applied it.

        Args:
            index (int): Index of the preset, 0 is the factory preset.
                (default = 0)
            timeout (float): max wait time in seconds. (default = 15)

        Raises:
            ValueError: if the index is not a valid preset index.
            OperationTimeoutError: if the device is still busy after the
                timeout.
        """
        if index not in PRESET_INDICES:
            raise ValueError(
                f"Preset index {index} is out of range "
                f"[{PRESET_INDICES.start}, {PRESET_INDICES.stop - 1}]."
            )
        self.root.set_int("system/preset/index", index)
        self.root.set_int("system/preset/load", 1)
        try:
            wait_for(
                lambda: self.root.get_int("system/preset/busy") == 0,
                timeout,
                sleep_time=0.1,
            )
        except OperationTimeoutError as error:
            logger.critical(f"{repr(self)}: Loading preset {index} timed out")
            raise OperationTimeoutError(
                f"{repr(self)}: Loading preset {index} timed out"
            ) from error
        logger.info(f"Preset {index} is loaded to device {self.serial.upper()}.")

    def get_demod_sample(self, index: int = 0) -> DemodulatorSample:
        """Read the latest sample of a demodulator.

        Args:
            index (int): Index of the demodulator. (default = 0)
        """
        return self.root.get_sample(f"demods/{index}/sample")

    def get_streamingnodes(self) -> Dict[str, Node]:
        """Create a dictionary with all streaming nodes available"""
        streaming_nodes = {}
        for node, info in self:
            if "Stream" in info.get("Properties", ""):
                node_name = node.raw_tree[0][:-1] + node.raw_tree[1]
                if "pid" in node_name:
                    node_name += f"_{node.raw_tree[-1]}"
                streaming_nodes[node_name] = node
        return streaming_nodes

    def disable_everything(self) -> None:
        """Disable all outputs, demodulators, scopes and impedance channels.

        Hardware that is not present on the device is skipped.
        """
        paths = [
            "demods/*/enable",
            "demods/*/trigger",
            "sigouts/*/enables/*",
            "sigouts/*/on",
            "scopes/*/enable",
            "imps/*/enable",
        ]
        with self.root.set_transaction():
            for path in paths:
                self.root.set_int(path, 0)

    # Typed node access relative to the device

    def get_int(self, path: str) -> int:
        """Get the value of an integer node."""
        return self.root.get_int(path)

    def get_double(self, path: str) -> float:
        """Get the value of a double node."""
        return self.root.get_double(path)

    def get_string(self, path: str) -> str:
        """Get the value of a string node."""
        return self.root.get_string(path)

    def get_vector(self, path: str) -> Union[np.ndarray, str]:
        """Get the value of a vector node."""
        return self.root.get_vector(path)

    def set_int(self, path: str, value: int) -> None:
        """Set the value of integer node(s)."""
        self.root.set_int(path, value)

    def set_double(self, path: str, value: float) -> None:
        """Set the value of double node(s)."""
        self.root.set_double(path, value)

    def set_string(self, path: str, value: str) -> None:
        """Set the value of string node(s)."""
        self.root.set_string(path, value)

    def set_vector(self, path: str, value: Union[np.ndarray, list, str]) -> None:
        """Set the value of a vector node."""
        self.root.set_vector(path, value)

    def list_nodes(self, pattern: str = "*", **kwargs):
        """List the nodes of the device that match a pattern.

        See ``NodeTree.list_nodes`` for the arguments.
        """
        return self.root.list_nodes(pattern, **kwargs)

    @lazy_property
    def capabilities(self) -> Capabilities:
        """Family and installed options of the device.

        Read once from the device, the options of a device do not change
        while it is connected.
        """
        return Capabilities.from_raw(
            self._device_type, self.root.get_string("features/options")
        )

    @property
    def set_transaction(self):
        """Context manager for a transactional set.

        Can be used as a context in a with statement and bundles all node set
        commands into a single transaction. This reduces the network overhead
        and often increases the speed.

        Examples:
            >>> with device.set_transaction():
                    device.demods[0].enable(1)
                    device.demods[1].enable(1)
        """
        return self._root.set_transaction

    @property
    def serial(self) -> str:
        """instrument specific serial."""
        return self._serial

    @property
    def device_type(self) -> str:
        """Type of the instrument (e.g. MFLI)"""
        return self._device_type

    @property
    def session(self):
        """Session the device belongs to."""
        return self._session
