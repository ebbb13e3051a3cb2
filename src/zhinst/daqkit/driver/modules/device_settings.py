# Copyright (C) 2021 Zurich Instruments
#
# This software may be modified and distributed under the terms
# of the MIT license. See the LICENSE file for details.

"""Device Settings Module."""
import logging
from pathlib import Path
from typing import Union

from zhinst.daqkit.driver.modules.base_module import (
    BaseModule,
    DeviceLike,
    ModuleKind,
    device_serial,
)

logger = logging.getLogger(__name__)


class DeviceSettingsKeys:
    """Configuration keys of the device settings module."""

    DEVICE = "device"
    COMMAND = "command"
    FILENAME = "filename"
    PATH = "path"
    THROWONERROR = "throwonerror"


class DeviceSettingsModule(BaseModule):
    """Device settings module.

    Saves the settings of a device into an XML file on the machine running
    the data server and loads them back onto the device.

    >>> with session.create_device_settings_module() as settings:
    ...     settings.save("dev1234", "my_settings", "/tmp")
    ...     settings.load("dev1234", "my_settings", "/tmp")

    Args:
        raw_module: Instance of the ``zhinst.core`` device settings module.
        session (Session): Session to the Data Server.
    """

    def __init__(self, raw_module, session):
        super().__init__(raw_module, session, ModuleKind.DEVICE_SETTINGS)

    def _run(
        self,
        command: str,
        device: DeviceLike,
        filename: str,
        path: Union[str, Path],
        timeout: float,
    ) -> None:
        self.configure(DeviceSettingsKeys.DEVICE, device_serial(device))
        self.configure(DeviceSettingsKeys.COMMAND, command)
        self.configure(DeviceSettingsKeys.FILENAME, filename)
        self.configure(DeviceSettingsKeys.PATH, str(path))
        self.execute()
        self.wait_done(timeout=timeout)
        logger.info(f"Device settings {command} of {filename} finished")

    def save(
        self,
        device: DeviceLike,
        filename: str,
        path: Union[str, Path] = ".",
        timeout: float = 15.0,
    ) -> None:
        """Save the settings of a device into a file.

        Args:
            device: Device (or its serial).
            filename (str): Name of the settings file (without extension).
            path: Directory of the settings file. (default = ".")
            timeout (float): max duration in seconds. (default = 15)

        Raises:
            OperationTimeoutError: if saving did not finish in time.
        """
        self._run("save", device, filename, path, timeout)

    def load(
        self,
        device: DeviceLike,
        filename: str,
        path: Union[str, Path] = ".",
        timeout: float = 15.0,
    ) -> None:
        """Load the settings of a device from a file.

        Args:
            device: Device (or its serial).
            filename (str): Name of the settings file (without extension).
            path: Directory of the settings file. (default = ".")
            timeout (float): max duration in seconds. (default = 15)

        Raises:
            OperationTimeoutError: if loading did not finish in time.
        """
        self._run("load", device, filename, path, timeout)
