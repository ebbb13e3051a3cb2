# Copyright (C) 2021 Zurich Instruments
#
# This software may be modified and distributed under the terms
# of the MIT license. See the LICENSE file for details.

"""Multi Device Sync Module."""
import logging
from enum import IntEnum
from typing import Iterable

from zhinst.daqkit.driver.modules.base_module import (
    BaseModule,
    DeviceLike,
    ModuleKind,
    ModuleState,
    device_serial,
)
from zhinst.daqkit.exceptions import DaqkitError, OperationTimeoutError
from zhinst.daqkit.helper import wait_for

logger = logging.getLogger(__name__)


class MultiDeviceSyncKeys:
    """Configuration keys of the multi device sync module."""

    START = "start"
    GROUP = "group"
    DEVICES = "devices"
    STATUS = "status"
    MESSAGE = "message"
    PHASESYNC = "phasesync"
    RECOVER = "recover"


class SyncStatus(IntEnum):
    """Value of ``status``."""

    ERROR = -1
    IDLE = 0
    SYNCING = 1
    SYNCED = 2


class MultiDeviceSyncModule(BaseModule):
    """Multi device sync module.

    Synchronizes the timestamps of multiple devices that are cabled as
    shown in the MDS tab of LabOne. The first device is the leader.

    Args:
        raw_module: Instance of the ``zhinst.core`` multi device sync module.
        session (Session): Session to the Data Server.
    """

    def __init__(self, raw_module, session):
        super().__init__(raw_module, session, ModuleKind.MULTI_DEVICE_SYNC)

    def _final_status(self):
        status = self.get_int(MultiDeviceSyncKeys.STATUS)
        if status in (SyncStatus.SYNCED, SyncStatus.ERROR):
            return SyncStatus(status)
        return None

    def synchronize(
        self, devices: Iterable[DeviceLike], group: int = 0, timeout: float = 20.0
    ) -> None:
        """Synchronize the timestamps of the devices.

        Args:
            devices: Devices (or their serials), leader first.
            group (int): Synchronization group. (default = 0)
            timeout (float): max duration of the synchronization in seconds.
                (default = 20)

        Raises:
            ValueError: if less than two devices are specified.
            OperationTimeoutError: if the devices are not synchronized in
                time.
            DaqkitError: if the module reports an error during the
                synchronization.
        """
        serials = [device_serial(device) for device in devices]
        if len(serials) < 2:
            raise ValueError("At least two devices are needed for a synchronization.")
        self.configure(MultiDeviceSyncKeys.START, 0)
        self.configure(MultiDeviceSyncKeys.GROUP, group)
        if self.state is not ModuleState.EXECUTING:
            self.execute()
        self.configure(MultiDeviceSyncKeys.DEVICES, ",".join(serials))
        self.configure(MultiDeviceSyncKeys.START, 1)
        logger.info(f"Synchronizing devices {','.join(serials)}")
        try:
            status = wait_for(self._final_status, timeout)
        except OperationTimeoutError as error:
            logger.critical(
                f"Error during synchronization of {','.join(serials)} "
                f"(status {self.get_int(MultiDeviceSyncKeys.STATUS)})"
            )
            raise OperationTimeoutError(
                f"Devices {','.join(serials)} not synchronized within {timeout}s."
            ) from error
        if status is SyncStatus.ERROR:
            message = self.get_string(MultiDeviceSyncKeys.MESSAGE)
            logger.critical(
                f"Error during synchronization of {','.join(serials)}: {message}"
            )
            raise DaqkitError(
                f"Synchronization of {','.join(serials)} failed: {message}"
            )
        logger.info("Devices successfully synchronized")
