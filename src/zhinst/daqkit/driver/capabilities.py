# Copyright (C) 2021 Zurich Instruments
#
# This software may be modified and distributed under the terms
# of the MIT license. See the LICENSE file for details.

"""Device family and installed options of an instrument."""
from dataclasses import dataclass, field
from enum import Enum
from typing import FrozenSet, Iterable, Union

from zhinst.daqkit.exceptions import UnsupportedByDeviceError


class DeviceFamily(Enum):
    """Hardware family of a Zurich Instruments device."""

    HF2 = "HF2"
    UHF = "UHF"
    MF = "MF"
    HDAWG = "HDAWG"
    SHF = "SHF"
    GHF = "GHF"
    PQSC = "PQSC"
    UNKNOWN = ""

    @classmethod
    def from_device_type(cls, device_type: str) -> "DeviceFamily":
        """Family of a device type, e.g. ``MFLI`` belongs to ``MF``."""
        device_type = device_type.upper()
        for family in cls:
            if family is not cls.UNKNOWN and device_type.startswith(family.value):
                return family
        return cls.UNKNOWN


@dataclass(frozen=True)
class Capabilities:
    """Capabilities of a device.

    Resolved once when the device is attached. All queries are pure and do
    not communicate with the device.

    Args:
        device_type: Type of the device (e.g. ``MFLI``).
        options: Installed option codes (e.g. ``{"MD", "IA"}``).
    """

    device_type: str
    options: FrozenSet[str] = field(default_factory=frozenset)

    @classmethod
    def from_raw(cls, device_type: str, options: Union[str, Iterable[str]]):
        """Create the capabilities from the raw ``features`` nodes.

        Args:
            device_type: value of ``/devN/features/devtype``
            options: value of ``/devN/features/options`` (newline separated)
        """
        if isinstance(options, str):
            options = options.split()
        return cls(
            device_type=device_type.strip().upper(),
            options=frozenset(option.strip().upper() for option in options if option),
        )

    @property
    def family(self) -> DeviceFamily:
        """Family of the device."""
        return DeviceFamily.from_device_type(self.device_type)

    def has_family(self, family: Union[DeviceFamily, str]) -> bool:
        """Check if the device belongs to a family.

        Args:
            family: Family or device type prefix (e.g. ``"MFIA"``).
        """
        if isinstance(family, DeviceFamily):
            return self.family is family
        return self.device_type.startswith(family.upper())

    def has_option(self, option: str) -> bool:
        """Check if an option (e.g. ``"MD"``) is installed."""
        return option.upper() in self.options

    def require_option(self, option: str) -> None:
        """Raise if an option is not installed.

        Raises:
            UnsupportedByDeviceError: if the option is missing.
        """
        if not self.has_option(option):
            raise UnsupportedByDeviceError(
                f"{self.device_type} has no {option.upper()} option installed."
            )

    def exclude_family(self, family: Union[DeviceFamily, str]) -> None:
        """Raise if the device belongs to a family.

        Raises:
            UnsupportedByDeviceError: if the device belongs to the family.
        """
        if self.has_family(family):
            raise UnsupportedByDeviceError(
                f"The functionality is not supported by {self.device_type} devices."
            )

    def require_option_for_family(
        self, family: Union[DeviceFamily, str], option: str
    ) -> None:
        """Raise if the device belongs to a family but lacks an option.

        Some functionality is available on all families but needs an option
        on a single one (e.g. impedance measurements need the IA option on
        MF devices).

        Raises:
            UnsupportedByDeviceError: if the option is missing.
        """
        if self.has_family(family):
            self.require_option(option)
