"""Instrument and module drivers."""
from zhinst.daqkit.driver.base import BaseInstrument
from zhinst.daqkit.driver.capabilities import Capabilities, DeviceFamily

__all__ = ["BaseInstrument", "Capabilities", "DeviceFamily"]
