# Copyright (C) 2021 Zurich Instruments
#
# This software may be modified and distributed under the terms
# of the MIT license. See the LICENSE file for details.

"""Spectrum (zoom FFT) Module."""
from zhinst.daqkit.driver.modules.base_module import BaseModule, ModuleKind
from zhinst.daqkit.sample import SampleKind, SweepVariant


class SpectrumKeys:
    """Configuration keys of the spectrum module."""

    DEVICE = "device"
    BIT = "bit"
    MODE = "mode"
    ABSOLUTE = "absolute"
    LOOPCOUNT = "loopcount"
    OVERLAP = "overlap"
    ENDLESS = "endless"
    SETTLING_TIME = "settling/time"
    SETTLING_TC = "settling/tc"


class SpectrumModule(BaseModule):
    """Zoom FFT of a demodulator.

    Computes the spectrum around the demodulation frequency of the subscribed
    demodulator. ``bit`` sets the number of FFT points to ``2**bit``.

    Args:
        raw_module: Instance of the ``zhinst.core`` zoom FFT module.
        session (Session): Session to the Data Server.
    """

    sweep_variant = SweepVariant.SPECTRUM

    def __init__(self, raw_module, session):
        super().__init__(raw_module, session, ModuleKind.SPECTRUM)

    def _chunk_kind(self, path: str) -> SampleKind:
        return SampleKind.SWEEP_RESULT
