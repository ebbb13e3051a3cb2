# Copyright (C) 2021 Zurich Instruments
#
# This software may be modified and distributed under the terms
# of the MIT license. See the LICENSE file for details.

"""Scope Module."""
from zhinst.daqkit.driver.modules.base_module import BaseModule, ModuleKind
from zhinst.daqkit.helper import wait_for
from zhinst.daqkit.sample import Lookup, SampleKind


class ScopeKeys:
    """Configuration keys of the scope module."""

    MODE = "mode"
    HISTORYLENGTH = "historylength"
    AVERAGER_WEIGHT = "averager/weight"
    AVERAGER_RESTART = "averager/restart"
    FFT_WINDOW = "fft/window"
    FFT_POWER = "fft/power"


class ScopeModule(BaseModule):
    """Scope module.

    Assembles the scope shots of the subscribed ``/devN/scopes/M/wave``
    nodes. The module keeps running until it is finished or cleared, poll
    ``read`` until :meth:`all_segments_received` reports a complete
    recording.

    Args:
        raw_module: Instance of the ``zhinst.core`` scope module.
        session (Session): Session to the Data Server.
    """

    def __init__(self, raw_module, session):
        super().__init__(raw_module, session, ModuleKind.SCOPE)

    def _chunk_kind(self, path: str) -> SampleKind:
        return SampleKind.SCOPE_WAVE

    @staticmethod
    def all_segments_received(lookup: Lookup, path: str) -> bool:
        """Check if a read contains the last segment of a recording.

        Recordings without segmentation are complete with their first shot.
        A read may contain several shots, any of them can hold the last
        segment.

        Args:
            lookup (Lookup): result of ``read``
            path (str): scope wave node
        """
        if path not in lookup:
            return False
        return any(
            wave.total_segments == 0 or wave.segment_number >= wave.total_segments - 1
            for wave in lookup.payloads(path)
        )

    def read_all_segments(
        self, path: str, timeout: float = 10.0, sleep_time: float = 0.1
    ) -> Lookup:
        """Read until the recording of a scope wave node is complete.

        Args:
            path (str): scope wave node, must be subscribed on the module.
            timeout (float): max wait time in seconds. (default = 10)
            sleep_time (float): interval between two reads. (default = 0.1)

        Returns:
            Lookup: the first read that contained the complete recording

        Raises:
            OperationTimeoutError: if the recording is not complete in time.
        """

        def complete_read():
            lookup = self.read()
            return lookup if self.all_segments_received(lookup, path) else None

        return wait_for(
            complete_read,
            timeout,
            sleep_time=sleep_time,
            message=f"Scope recording of {path} incomplete after {timeout}s.",
        )
