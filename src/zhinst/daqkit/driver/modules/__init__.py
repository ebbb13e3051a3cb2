"""Asynchronous modules of the data server."""
from zhinst.daqkit.driver.modules.base_module import (
    BaseModule,
    ModuleKind,
    ModuleState,
)
from zhinst.daqkit.driver.modules.awg import AWGKeys, AWGModule
from zhinst.daqkit.driver.modules.daq import DAQKeys, DAQModule
from zhinst.daqkit.driver.modules.device_settings import (
    DeviceSettingsKeys,
    DeviceSettingsModule,
)
from zhinst.daqkit.driver.modules.impedance import ImpedanceKeys, ImpedanceModule
from zhinst.daqkit.driver.modules.mds import (
    MultiDeviceSyncKeys,
    MultiDeviceSyncModule,
)
from zhinst.daqkit.driver.modules.pid_advisor import (
    PIDAdvisorKeys,
    PIDAdvisorModule,
)
from zhinst.daqkit.driver.modules.scope import ScopeKeys, ScopeModule
from zhinst.daqkit.driver.modules.spectrum import SpectrumKeys, SpectrumModule
from zhinst.daqkit.driver.modules.sweeper import SweeperKeys, SweeperModule

MODULE_CLASSES = {
    ModuleKind.SWEEPER: SweeperModule,
    ModuleKind.SPECTRUM: SpectrumModule,
    ModuleKind.SCOPE: ScopeModule,
    ModuleKind.AWG: AWGModule,
    ModuleKind.DAQ: DAQModule,
    ModuleKind.PID_ADVISOR: PIDAdvisorModule,
    ModuleKind.IMPEDANCE: ImpedanceModule,
    ModuleKind.DEVICE_SETTINGS: DeviceSettingsModule,
    ModuleKind.MULTI_DEVICE_SYNC: MultiDeviceSyncModule,
}

__all__ = [
    "AWGKeys",
    "AWGModule",
    "BaseModule",
    "DAQKeys",
    "DAQModule",
    "DeviceSettingsKeys",
    "DeviceSettingsModule",
    "ImpedanceKeys",
    "ImpedanceModule",
    "MODULE_CLASSES",
    "ModuleKind",
    "ModuleState",
    "MultiDeviceSyncKeys",
    "MultiDeviceSyncModule",
    "PIDAdvisorKeys",
    "PIDAdvisorModule",
    "ScopeKeys",
    "ScopeModule",
    "SpectrumKeys",
    "SpectrumModule",
    "SweeperKeys",
    "SweeperModule",
]
