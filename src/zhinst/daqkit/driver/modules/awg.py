# Copyright (C) 2021 Zurich Instruments
#
# This software may be modified and distributed under the terms
# of the MIT license. See the LICENSE file for details.

"""AWG Module."""
import time
import logging
from enum import IntEnum

import numpy as np
import zhinst.utils as zi_utils

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


class AWGKeys:
    """Configuration keys of the AWG module."""

    DEVICE = "device"
    INDEX = "index"
    DIRECTORY = "directory"
    PROGRESS = "progress"
    COMPILER_SOURCESTRING = "compiler/sourcestring"
    COMPILER_SOURCEFILE = "compiler/sourcefile"
    COMPILER_STATUS = "compiler/status"
    COMPILER_STATUSSTRING = "compiler/statusstring"
    COMPILER_UPLOAD = "compiler/upload"
    ELF_STATUS = "elf/status"
    ELF_FILE = "elf/file"


class CompilerStatus(IntEnum):
    """Value of ``compiler/status``."""

    IDLE = -1
    SUCCESS = 0
    FAILED = 1
    WARNING = 2


class ElfStatus(IntEnum):
    """Value of ``elf/status``."""

    SUCCESS = 0
    FAILED = 1
    IN_PROGRESS = 2


class AWGModule(BaseModule):
    """AWG module.

    Compiles sequencer programs and uploads them to the AWG of a device.

    Args:
        raw_module: Instance of the ``zhinst.core`` AWG module.
        session (Session): Session to the Data Server.
    """

    def __init__(self, raw_module, session):
        super().__init__(raw_module, session, ModuleKind.AWG)

    def load_sequencer_program(
        self,
        device: DeviceLike,
        sequencer_program: str,
        index: int = 0,
        timeout: float = 100.0,
    ) -> None:
        """Compile a sequencer program and upload it to the device.

        Args:
            device: Device (or its serial).
            sequencer_program (str): Sequencer program.
            index (int): Index of the AWG core. (default = 0)
            timeout (float): max time for compilation and upload in seconds.
                (default = 100)

        Raises:
            DaqkitError: if the compilation failed or the ELF upload is not
                successful.
            OperationTimeoutError: if the program upload is not completed
                before timeout.
        """
        self.configure(AWGKeys.DEVICE, device_serial(device))
        self.configure(AWGKeys.INDEX, index)
        if self.state is not ModuleState.EXECUTING:
            self.execute()
        start = time.time()
        logger.info(f"{repr(self)}: Compiling sequencer program")
        self.configure(AWGKeys.COMPILER_SOURCESTRING, sequencer_program)
        try:
            wait_for(
                lambda: self.get_int(AWGKeys.COMPILER_STATUS) != CompilerStatus.IDLE,
                timeout,
            )
        except OperationTimeoutError as error:
            logger.critical(f"{repr(self)}: Program compilation timed out")
            raise OperationTimeoutError(
                f"{repr(self)}: Program compilation timed out"
            ) from error

        compiler_status = self.get_int(AWGKeys.COMPILER_STATUS)
        if compiler_status == CompilerStatus.FAILED:
            logger.critical(
                f"{repr(self)}: Error during sequencer compilation: "
                f"{self.get_string(AWGKeys.COMPILER_STATUSSTRING)}"
            )
            logger.debug(f"Sequencer program:\n{sequencer_program}")
            raise DaqkitError(
                f"{repr(self)}: Error during sequencer compilation. "
                "Check the log for detailed information"
            )
        if compiler_status == CompilerStatus.WARNING:
            logger.warning(
                f"{repr(self)}: Warning during sequencer compilation: "
                f"{self.get_string(AWGKeys.COMPILER_STATUSSTRING)}"
            )
        else:
            logger.info(f"{repr(self)}: Compilation successful")

        logger.info(f"{repr(self)}: Uploading ELF file to device")
        try:
            wait_for(
                lambda: self.get_double(AWGKeys.PROGRESS) >= 1.0
                or self.get_int(AWGKeys.ELF_STATUS) != ElfStatus.IN_PROGRESS,
                max(timeout - (time.time() - start), 0),
            )
        except OperationTimeoutError as error:
            logger.critical(f"{repr(self)}: Program upload timed out")
            raise OperationTimeoutError(
                f"{repr(self)}: Program upload timed out"
            ) from error

        elf_status = self.get_int(AWGKeys.ELF_STATUS)
        if elf_status != ElfStatus.SUCCESS:
            logger.critical(
                f"{repr(self)}: Error during upload of ELF file "
                f"(with status {elf_status})"
            )
            raise DaqkitError(
                f"{repr(self)}: Error during upload of ELF file. "
                "Check the log for detailed information"
            )
        logger.info(f"{repr(self)}: ELF file uploaded")

    def upload_waveform(
        self,
        device: DeviceLike,
        slot: int,
        wave1: np.ndarray,
        wave2: np.ndarray = None,
        markers: np.ndarray = None,
        index: int = 0,
    ) -> None:
        """Write a waveform to the waveform memory of an AWG core.

        The waveform must already be declared in the loaded sequencer
        program. The waves are converted into the native AWG format
        (interleaved waves and markers as uint16) before they are written.

        Args:
            device: Device (or its serial).
            slot (int): Index of the waveform in the sequencer program.
            wave1 (array): Data of waveform 1 in the range [-1, 1].
            wave2 (array): Data of waveform 2. (default = None)
            markers (array): Marker data. (default = None)
            index (int): Index of the AWG core. (default = 0)
        """
        serial = device_serial(device)
        vector = zi_utils.convert_awg_waveform(wave1, wave2, markers)
        self.session.devices[serial].set_vector(
            f"awgs/{index}/waveform/waves/{slot}", vector
        )
        logger.debug(f"Waveform {slot} written to {serial.upper()} AWG {index}")
